"""Typer CLI for Keylock."""

import asyncio
import sys
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from keylock.common.exceptions import KeylockError
from keylock.licensing.keygen import validate_format
from keylock.licensing.service import LicensingService

app = typer.Typer(name="keylock", help="Keylock: first-use license key server")
console = Console()

T = TypeVar("T")


def _run(action: Callable[[LicensingService], Awaitable[T]]) -> T:
    """Run ``action`` against the configured store, then close it."""
    from keylock.common.config import get_settings
    from keylock.common.logging import setup_logging
    from keylock.deps import get_licensing_service, get_store, initialize_store

    # stdout carries command output; logs go to stderr.
    setup_logging(get_settings().log_level, stream=sys.stderr)

    async def runner():
        await initialize_store()
        try:
            return await action(get_licensing_service())
        finally:
            await get_store().close()

    try:
        return asyncio.run(runner())
    except KeylockError as e:
        console.print(f"[bold red]{e.code}[/bold red]: {e.message}")
        raise typer.Exit(1)


def _check_key(key: str) -> None:
    """Exit early on keys that cannot exist under the configured format."""
    from keylock.common.config import get_settings

    settings = get_settings()
    result = validate_format(
        key,
        prefix=settings.key_prefix,
        groups=settings.key_groups,
        group_bytes=settings.key_group_bytes,
    )
    if not result.valid:
        console.print(f"[bold red]{result.code}[/bold red]: {result.message}")
        raise typer.Exit(1)


def _fmt(value) -> str:
    if value is None:
        return "-"
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d %H:%M")
    return str(value)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (defaults to KEYLOCK_HOST)"),
    port: Optional[int] = typer.Option(None, help="Bind port (defaults to KEYLOCK_PORT)"),
):
    """Start the Keylock API server."""
    import uvicorn
    from keylock.app import create_app
    from keylock.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting Keylock on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def create(
    owner: str = typer.Argument(..., help="License owner display name"),
    days: int = typer.Option(0, "--days", help="Days until expiry (0 or less = lifetime)"),
    notes: str = typer.Option("", "--notes", help="Administrator notes"),
):
    """Create a license and print its key."""
    key, record = _run(lambda svc: svc.create_license(owner, days, notes))
    console.print(f"[bold]{key}[/bold]")
    expiry = _fmt(record.expiry_date) if record.expiry_date else "lifetime"
    console.print(f"  Owner: {record.owner}  Expires: {expiry}")


@app.command("list")
def list_licenses():
    """List every license with its binding state."""
    licenses = _run(lambda svc: svc.list_licenses())

    table = Table(title=f"Licenses ({len(licenses)})")
    table.add_column("Key", style="bold", no_wrap=True)
    table.add_column("Owner")
    table.add_column("Status")
    table.add_column("Environment")
    table.add_column("Expires")
    table.add_column("Verified", justify="right")
    for key, rec in licenses:
        status = "[green]active[/green]" if rec.active else "[red]disabled[/red]"
        table.add_row(
            key,
            rec.owner,
            status,
            rec.bound_environment_id or "-",
            _fmt(rec.expiry_date) if rec.expiry_date else "lifetime",
            str(rec.verification_count),
        )
    console.print(table)


@app.command()
def toggle(key: str = typer.Argument(..., help="License key")):
    """Enable or disable a license."""
    _check_key(key)
    record = _run(lambda svc: svc.toggle_license(key))
    state = "[green]active[/green]" if record.active else "[red]disabled[/red]"
    console.print(f"{key} is now {state}")


@app.command("reset-binding")
def reset_binding(key: str = typer.Argument(..., help="License key")):
    """Clear the environment a license is bound to."""
    _check_key(key)
    _run(lambda svc: svc.reset_binding(key))
    console.print(f"Binding cleared for [bold]{key}[/bold]")


@app.command()
def delete(
    key: str = typer.Argument(..., help="License key"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a license permanently."""
    _check_key(key)
    if not yes:
        typer.confirm(f"Delete {key}?", abort=True)
    _run(lambda svc: svc.delete_license(key))
    console.print(f"Deleted [bold]{key}[/bold]")


@app.command("set-version")
def set_version(
    version: str = typer.Argument(..., help="Version to broadcast"),
    force: bool = typer.Option(False, "--force", help="Require clients to update"),
    message: Optional[str] = typer.Option(None, "--message", help="Update message shown to clients"),
):
    """Publish the current distributable version."""
    meta = _run(lambda svc: svc.update_distribution(version, force, message))
    flag = " [bold red](forced)[/bold red]" if meta.force_update else ""
    console.print(f"Version set to [bold]{meta.current_version}[/bold]{flag}")


@app.command("show-version")
def show_version():
    """Show the broadcast version and update flag."""
    meta = _run(lambda svc: svc.get_distribution())
    console.print(f"Version: [bold]{meta.current_version}[/bold]")
    console.print(f"  Force update: {meta.force_update}")
    console.print(f"  Message: {meta.update_message}")


@app.command()
def health(
    url: str = typer.Option("http://localhost:3000", help="Server URL"),
):
    """Check Keylock server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
