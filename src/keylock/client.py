"""
LicenseClient SDK: sync client for Keylock.

Used by consuming deployments to verify their license key and to learn
whether a newer version must be installed. A rejected verification that
carries ``forceStop`` halts the client: later calls return the same
rejection without contacting the server.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import httpx

from keylock.distribution.registry import parse_version
from keylock.licensing.keygen import validate_format

# Statuses the verify endpoint uses for rejection verdicts.
VERDICT_STATUSES = (400, 401, 503)


def _failure(code: str, error: str) -> dict[str, str]:
    return {"code": code, "error": error}


@dataclass
class ClientVerifyResult:
    """Result of verify() call."""

    valid: bool
    error: str = ""
    message: str = ""
    owner: Optional[str] = None
    expiry_date: Optional[datetime] = None
    version: Optional[str] = None
    force_update: bool = False
    force_stop: bool = False


@dataclass
class ClientDistributionInfo:
    """Result of distribution_info() call."""

    version: str = ""
    force_update: bool = False
    update_message: str = ""
    error: str = ""


class LicenseClient:
    """Synchronous HTTP client for one licensed deployment."""

    def __init__(
        self,
        server_url: str = "http://localhost:3000",
        license_key: Optional[str] = None,
        environment_id: Optional[str] = None,
        sub_resource_id: Optional[str] = None,
        timeout: float = 10,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
        check_format: bool = True,
    ):
        self.server_url = server_url.rstrip("/")
        self.license_key = license_key
        self.environment_id = environment_id
        self.sub_resource_id = sub_resource_id
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self.check_format = check_format
        self.halted = False
        self._last_rejection: Optional[ClientVerifyResult] = None
        self._http = httpx.Client(base_url=self.server_url, timeout=timeout)

    def _backoff(self, attempt: int) -> bool:
        """Sleep before the next attempt. False once attempts are used up."""
        if attempt >= self.max_retries - 1:
            return False
        time.sleep(self.retry_backoff_base * (2 ** attempt))
        return True

    def _request(
        self,
        method: str,
        path: str,
        accept_statuses: tuple[int, ...] = (),
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Send one logical request, retrying transport faults, 429 and 5xx.

        Returns the decoded body for 2xx responses and for statuses listed
        in ``accept_statuses``. Anything else comes back as a
        ``{"code", "error"}`` failure dict.
        """
        reason = "no attempt made"
        for attempt in range(self.max_retries):
            try:
                resp = getattr(self._http, method)(path, **kwargs)
            except httpx.HTTPError as exc:
                reason = "timeout" if isinstance(exc, httpx.TimeoutException) else str(exc)
                if self._backoff(attempt):
                    continue
                break

            status = resp.status_code
            if status < 400 or status in accept_statuses:
                try:
                    return resp.json()
                except ValueError:
                    return _failure("JSON_ERROR", "Invalid JSON response")
            if status >= 500 or status == 429:
                reason = f"HTTP {status}"
                if self._backoff(attempt):
                    continue
                return _failure("SERVER_ERROR", f"Server error: {status}")
            return _failure("CLIENT_ERROR", f"Client error: {status}")

        return _failure("CONNECTION_ERROR", f"Gave up after {self.max_retries} attempts: {reason}")

    @staticmethod
    def _parse_datetime(value: Any) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None

    # ── Verification ──

    def verify(self) -> ClientVerifyResult:
        """Verify the configured license key for this environment."""
        if self.halted and self._last_rejection is not None:
            return self._last_rejection

        # A malformed key can never verify; answer as the server would.
        if self.license_key and self.check_format:
            fmt = validate_format(self.license_key, prefix=None)
            if not fmt.valid:
                return self._halt(ClientVerifyResult(
                    valid=False, error="invalid_key", message=fmt.message, force_stop=True,
                ))

        body: dict[str, Any] = {
            "licenseKey": self.license_key or "",
            "environmentId": self.environment_id or "",
        }
        if self.sub_resource_id:
            body["subResourceId"] = self.sub_resource_id

        data = self._request(
            "post", "/api/license/verify",
            accept_statuses=VERDICT_STATUSES,
            json=body,
        )

        # Transport failure: not a verdict, so never halts the client.
        if "code" in data and "valid" not in data:
            return ClientVerifyResult(
                valid=False,
                error=data.get("code", ""),
                message=data.get("error", ""),
            )

        result = ClientVerifyResult(
            valid=bool(data.get("valid", False)),
            error=data.get("error", "") or "",
            message=data.get("message", "") or "",
            owner=data.get("owner"),
            expiry_date=self._parse_datetime(data.get("expiryDate")),
            version=data.get("version"),
            force_update=bool(data.get("forceUpdate", False)),
            force_stop=bool(data.get("forceStop", False)),
        )
        if result.force_stop:
            return self._halt(result)
        return result

    def _halt(self, rejection: ClientVerifyResult) -> ClientVerifyResult:
        self.halted = True
        self._last_rejection = rejection
        return rejection

    # ── Distribution ──

    def distribution_info(self) -> ClientDistributionInfo:
        data = self._request("get", "/api/distribution")
        if "code" in data and "version" not in data:
            return ClientDistributionInfo(error=data.get("code", ""))
        return ClientDistributionInfo(
            version=data.get("version", ""),
            force_update=bool(data.get("forceUpdate", False)),
            update_message=data.get("updateMessage", ""),
        )

    def needs_update(self, local_version: str) -> bool:
        """True when the server publishes a version newer than ``local_version``."""
        info = self.distribution_info()
        if not info.version:
            return False
        return parse_version(local_version) < parse_version(info.version)

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
