"""
License verification engine.

A pure decision function: given the stored record (or ``None``), the
caller's request and the current distribution metadata, decide the verdict
and the updated record to persist. Nothing here touches storage or clocks;
``now`` is always passed in.

Rules are evaluated in a fixed order and the first match wins:

1. unknown key            -> invalid_key
2. active is false        -> disabled
3. expiry strictly past   -> expired
4. unbound                -> bind to the caller, then continue as a match
5. bound elsewhere        -> environment_mismatch
6. success                -> stamp lastVerified, count, sub-resource
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from keylock.licensing.records import DistributionMeta, LicenseRecord

OK = "ok"
INVALID_KEY = "invalid_key"
DISABLED = "disabled"
EXPIRED = "expired"
ENVIRONMENT_MISMATCH = "environment_mismatch"
MISSING_PARAMETERS = "missing_parameters"
STORAGE_FAILURE = "storage_failure"

MESSAGES = {
    OK: "License verified",
    INVALID_KEY: "Invalid license key",
    DISABLED: "License disabled",
    EXPIRED: "License expired",
    ENVIRONMENT_MISMATCH: "License used in another environment",
    MISSING_PARAMETERS: "Missing parameters",
    STORAGE_FAILURE: "License could not be verified",
}


@dataclass(frozen=True)
class VerificationRequest:
    environment_id: str
    sub_resource_id: Optional[str] = None


@dataclass(frozen=True)
class Verdict:
    """Outcome of a verification attempt.

    ``updated`` is the record to persist, or ``None`` when the verdict
    leaves the store untouched. ``bound`` is true only for the call that
    performed the first-use binding.
    """

    code: str
    updated: Optional[LicenseRecord] = None
    owner: Optional[str] = None
    expiry_date: Optional[datetime] = None
    version: Optional[str] = None
    force_update: bool = False
    bound: bool = False

    @property
    def valid(self) -> bool:
        return self.code == OK

    @property
    def force_stop(self) -> bool:
        # Every rejection instructs the client to halt.
        return not self.valid

    @property
    def message(self) -> str:
        return MESSAGES.get(self.code, self.code)


def reject(code: str) -> Verdict:
    return Verdict(code=code)


def verify(
    record: Optional[LicenseRecord],
    request: VerificationRequest,
    meta: DistributionMeta,
    now: datetime,
) -> Verdict:
    """Decide the verdict for one verification request."""
    if record is None:
        return reject(INVALID_KEY)

    if not record.active:
        return reject(DISABLED)

    if record.is_expired(now):
        return reject(EXPIRED)

    bound = False
    if record.bound_environment_id is None:
        record = replace(
            record,
            bound_environment_id=request.environment_id,
            first_activation=now,
        )
        bound = True
    elif record.bound_environment_id != request.environment_id:
        return reject(ENVIRONMENT_MISMATCH)

    updated = replace(
        record,
        last_verified=now,
        verification_count=record.verification_count + 1,
    )
    if request.sub_resource_id:
        updated = replace(updated, bound_sub_resource_id=request.sub_resource_id)

    return Verdict(
        code=OK,
        updated=updated,
        owner=updated.owner,
        expiry_date=updated.expiry_date,
        version=meta.current_version,
        force_update=meta.force_update,
        bound=bound,
    )
