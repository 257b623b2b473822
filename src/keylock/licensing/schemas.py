"""Pydantic schemas for licensing endpoints.

The wire format is camelCase (clients were written against it); Python
attributes stay snake_case.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from keylock.licensing.records import LicenseRecord


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _as_optional_str(value):
    if value is None or value == "":
        return None
    return str(value)


# ── Verification ──

class VerifyRequest(CamelModel):
    # Fields are optional so that absent values reach the service and are
    # answered with missing_parameters instead of a 422.
    license_key: Optional[Union[str, int]] = None
    environment_id: Optional[Union[str, int]] = Field(
        default=None,
        validation_alias=AliasChoices("environmentId", "environment_id", "universeId"),
    )
    sub_resource_id: Optional[Union[str, int]] = Field(
        default=None,
        validation_alias=AliasChoices("subResourceId", "sub_resource_id", "placeId"),
    )

    @field_validator("license_key", "environment_id", "sub_resource_id", mode="after")
    @classmethod
    def _normalize(cls, value):
        return _as_optional_str(value)


class VerifyResponse(CamelModel):
    valid: bool
    owner: Optional[str] = None
    expiry_date: Optional[datetime] = None
    version: Optional[str] = None
    force_update: Optional[bool] = None
    error: Optional[str] = None
    message: str = ""
    force_stop: Optional[bool] = None


class DistributionResponse(CamelModel):
    version: str
    force_update: bool
    update_message: str


# ── Administration ──

class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class LoginResponse(BaseModel):
    success: bool
    token: Optional[str] = None


class LicenseCreate(CamelModel):
    owner: Optional[str] = Field(default=None, max_length=255)
    expiry_days: Optional[int] = 0
    notes: Optional[str] = None


class LicenseKeyRequest(CamelModel):
    license_key: str = ""


class VersionUpdate(CamelModel):
    version: str = ""
    force_update: bool = False
    update_message: Optional[str] = None


class LicenseView(CamelModel):
    license_key: str
    owner: str
    active: bool
    created_at: datetime
    expiry_date: Optional[datetime] = None
    bound_environment_id: Optional[str] = None
    bound_sub_resource_id: Optional[str] = None
    first_activation: Optional[datetime] = None
    last_verified: Optional[datetime] = None
    verification_count: int = 0
    notes: str = ""

    @classmethod
    def from_record(cls, key: str, record: LicenseRecord) -> "LicenseView":
        return cls(
            license_key=key,
            owner=record.owner,
            active=record.active,
            created_at=record.created_at,
            expiry_date=record.expiry_date,
            bound_environment_id=record.bound_environment_id,
            bound_sub_resource_id=record.bound_sub_resource_id,
            first_activation=record.first_activation,
            last_verified=record.last_verified,
            verification_count=record.verification_count,
            notes=record.notes,
        )


class LicenseStatsView(CamelModel):
    total: int
    active: int
    bound: int


class LicenseListResponse(CamelModel):
    success: bool = True
    licenses: list[LicenseView]
    version: str
    force_update: bool
    stats: LicenseStatsView


class LicenseCreateResponse(CamelModel):
    success: bool = True
    license_key: str
    expiry_date: Optional[datetime] = None


class ToggleResponse(CamelModel):
    success: bool = True
    active: bool


class SuccessResponse(CamelModel):
    success: bool = True
