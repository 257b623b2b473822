"""License record and distribution metadata types.

Both are plain dataclasses with explicit optional fields; ``None`` always
means "not set" (never activated, never verified, no expiry). Conversion to
and from the persisted camelCase document lives here so every store shares
one wire shape.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class LicenseRecord:
    """A single license grant, keyed externally by its license key."""

    owner: str
    active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    expiry_date: Optional[datetime] = None
    bound_environment_id: Optional[str] = None
    bound_sub_resource_id: Optional[str] = None
    first_activation: Optional[datetime] = None
    last_verified: Optional[datetime] = None
    verification_count: int = 0
    notes: str = ""

    @property
    def is_bound(self) -> bool:
        return self.bound_environment_id is not None

    def is_expired(self, now: datetime) -> bool:
        return self.expiry_date is not None and self.expiry_date < now

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "active": self.active,
            "createdAt": format_timestamp(self.created_at),
            "expiryDate": format_timestamp(self.expiry_date),
            "boundEnvironmentId": self.bound_environment_id,
            "boundSubResourceId": self.bound_sub_resource_id,
            "firstActivation": format_timestamp(self.first_activation),
            "lastVerified": format_timestamp(self.last_verified),
            "verificationCount": self.verification_count,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LicenseRecord":
        # universeId/placeId are the field names used by legacy data files.
        env_id = data.get("boundEnvironmentId", data.get("universeId"))
        sub_id = data.get("boundSubResourceId", data.get("placeId"))
        return cls(
            owner=data.get("owner") or "Unknown",
            active=bool(data.get("active", True)),
            created_at=parse_timestamp(data.get("createdAt")) or utcnow(),
            expiry_date=parse_timestamp(data.get("expiryDate")),
            bound_environment_id=_optional_str(env_id),
            bound_sub_resource_id=_optional_str(sub_id),
            first_activation=parse_timestamp(data.get("firstActivation")),
            last_verified=parse_timestamp(data.get("lastVerified")),
            verification_count=int(data.get("verificationCount") or 0),
            notes=data.get("notes") or "",
        )


@dataclass(frozen=True)
class DistributionMeta:
    """Current distributable version broadcast to every verifying client."""

    current_version: str = "1.0.0"
    force_update: bool = False
    update_message: str = "Update available"

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentVersion": self.current_version,
            "forceUpdate": self.force_update,
            "updateMessage": self.update_message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DistributionMeta":
        return cls(
            current_version=data.get("currentVersion") or data.get("scriptVersion") or "1.0.0",
            force_update=bool(data.get("forceUpdate", False)),
            update_message=data.get("updateMessage") or "Update available",
        )
