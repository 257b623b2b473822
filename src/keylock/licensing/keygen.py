"""
License key generation and format validation.

Format: {PREFIX}-{HHHHHHHH}-{HHHHHHHH}-{HHHHHHHH}
- configurable alphanumeric prefix (default MUSIC)
- 3 groups of 4 random bytes rendered as 8 uppercase hex digits (96 bits)

Keys carry no signature; a key is valid only if the record store knows it.
"""

import re
import secrets

DEFAULT_PREFIX = "MUSIC"
DEFAULT_GROUPS = 3
DEFAULT_GROUP_BYTES = 4

PREFIX_PATTERN = re.compile(r"^[A-Z0-9]{1,16}$")


def _random_group(group_bytes: int) -> str:
    """Generate one random uppercase hex group."""
    return secrets.token_hex(group_bytes).upper()


def generate_key(
    prefix: str = DEFAULT_PREFIX,
    groups: int = DEFAULT_GROUPS,
    group_bytes: int = DEFAULT_GROUP_BYTES,
) -> str:
    """
    Generate a fresh license key.

    Args:
        prefix: Key prefix, uppercased (e.g. 'MUSIC')
        groups: Number of random hex groups
        group_bytes: Random bytes per group (each byte is two hex digits)

    Returns:
        Formatted license key string
    """
    prefix = prefix.upper()
    if not PREFIX_PATTERN.match(prefix):
        raise ValueError(f"Key prefix must be 1-16 letters or digits, got {prefix!r}")
    if groups < 1 or group_bytes < 1:
        raise ValueError("groups and group_bytes must be positive")

    random_groups = [_random_group(group_bytes) for _ in range(groups)]
    return "-".join([prefix, *random_groups])


class FormatResult:
    """Result of offline key format validation."""

    __slots__ = ("valid", "code", "message")

    def __init__(self, valid: bool, code: str = "", message: str = ""):
        self.valid = valid
        self.code = code
        self.message = message


def validate_format(
    key: str,
    prefix: str | None = DEFAULT_PREFIX,
    groups: int = DEFAULT_GROUPS,
    group_bytes: int = DEFAULT_GROUP_BYTES,
) -> FormatResult:
    """
    Validate the structural format of a license key.

    Checks the segment count, the prefix (when one is given) and that every
    random group is uppercase hex of the expected width. Passing
    ``prefix=None`` accepts any well-formed prefix.
    """
    if not key or not isinstance(key, str):
        return FormatResult(False, "INVALID_FORMAT", "Key is empty or not a string")

    parts = key.split("-")
    if len(parts) != 1 + groups:
        return FormatResult(
            False,
            "INVALID_FORMAT",
            f"Expected {1 + groups} segments, got {len(parts)}",
        )

    if prefix is None:
        if not PREFIX_PATTERN.match(parts[0]):
            return FormatResult(False, "INVALID_PREFIX", "Prefix must be letters or digits")
    elif parts[0] != prefix.upper():
        return FormatResult(
            False,
            "INVALID_PREFIX",
            f"Expected prefix {prefix.upper()!r}, got {parts[0]!r}",
        )

    group_pattern = re.compile(f"^[0-9A-F]{{{group_bytes * 2}}}$")
    for i, group in enumerate(parts[1:], start=1):
        if not group_pattern.match(group):
            return FormatResult(
                False,
                "INVALID_GROUP",
                f"Group {i} is not {group_bytes * 2} uppercase hex digits (got '{group}')",
            )

    return FormatResult(True, "OK", "Key format is valid")
