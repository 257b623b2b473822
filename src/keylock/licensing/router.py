"""Licensing API router: public verification and administrative endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from keylock.common.security import require_admin
from keylock.licensing import engine
from keylock.licensing.engine import Verdict
from keylock.licensing.schemas import (
    DistributionResponse,
    LicenseCreate,
    LicenseCreateResponse,
    LicenseKeyRequest,
    LicenseListResponse,
    LicenseStatsView,
    LicenseView,
    LoginRequest,
    LoginResponse,
    SuccessResponse,
    ToggleResponse,
    VerifyRequest,
    VerifyResponse,
    VersionUpdate,
)

router = APIRouter()

REJECTION_STATUS = {
    engine.MISSING_PARAMETERS: 400,
    engine.INVALID_KEY: 401,
    engine.DISABLED: 401,
    engine.EXPIRED: 401,
    engine.ENVIRONMENT_MISMATCH: 401,
    engine.STORAGE_FAILURE: 503,
}


def _get_service():
    from keylock.deps import get_licensing_service
    return get_licensing_service()


def render_verdict(verdict: Verdict) -> JSONResponse:
    """Wire form of a verdict: 200 on success, the mapped 4xx/5xx otherwise."""
    if verdict.valid:
        response = VerifyResponse(
            valid=True,
            owner=verdict.owner,
            expiry_date=verdict.expiry_date,
            version=verdict.version,
            force_update=verdict.force_update,
            message=verdict.message,
        )
        # expiryDate is part of the success contract even when null.
        return JSONResponse(
            content=response.model_dump(mode="json", by_alias=True, exclude={"error", "force_stop"}),
        )
    response = VerifyResponse(
        valid=False,
        error=verdict.code,
        message=verdict.message,
        force_stop=verdict.force_stop,
    )
    return JSONResponse(
        status_code=REJECTION_STATUS.get(verdict.code, 401),
        content=response.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


# ── Public ──

@router.post(
    "/api/license/verify",
    response_model=VerifyResponse,
    response_model_exclude_none=True,
)
async def verify_license(body: Optional[VerifyRequest] = None):
    body = body or VerifyRequest()
    svc = _get_service()
    verdict = await svc.verify(
        body.license_key,
        body.environment_id,
        body.sub_resource_id,
    )
    return render_verdict(verdict)


@router.get("/api/distribution", response_model=DistributionResponse)
@router.get("/api/script/version", response_model=DistributionResponse, include_in_schema=False)
async def distribution_info():
    meta = await _get_service().get_distribution()
    return DistributionResponse(
        version=meta.current_version,
        force_update=meta.force_update,
        update_message=meta.update_message,
    )


# ── Administration ──

@router.post("/api/admin/auth", response_model=LoginResponse, response_model_exclude_none=True)
async def admin_login(body: LoginRequest):
    from keylock.deps import get_authenticator

    token = get_authenticator().login(body.username, body.password)
    return LoginResponse(success=token is not None, token=token)


@router.get("/api/admin/licenses", response_model=LicenseListResponse)
async def list_licenses(_=Depends(require_admin)):
    svc = _get_service()
    licenses = await svc.list_licenses()
    meta = await svc.get_distribution()
    stats = await svc.stats()
    return LicenseListResponse(
        licenses=[LicenseView.from_record(key, rec) for key, rec in licenses],
        version=meta.current_version,
        force_update=meta.force_update,
        stats=LicenseStatsView(total=stats.total, active=stats.active, bound=stats.bound),
    )


@router.post("/api/admin/licenses/create", response_model=LicenseCreateResponse)
async def create_license(body: LicenseCreate, _=Depends(require_admin)):
    key, record = await _get_service().create_license(
        owner=body.owner,
        expiry_days=body.expiry_days,
        notes=body.notes,
    )
    return LicenseCreateResponse(license_key=key, expiry_date=record.expiry_date)


@router.post("/api/admin/licenses/toggle", response_model=ToggleResponse)
async def toggle_license(body: LicenseKeyRequest, _=Depends(require_admin)):
    record = await _get_service().toggle_license(body.license_key)
    return ToggleResponse(active=record.active)


@router.post("/api/admin/licenses/delete", response_model=SuccessResponse)
async def delete_license(body: LicenseKeyRequest, _=Depends(require_admin)):
    await _get_service().delete_license(body.license_key)
    return SuccessResponse()


@router.post("/api/admin/licenses/reset-binding", response_model=SuccessResponse)
@router.post("/api/admin/licenses/reset-hwid", response_model=SuccessResponse, include_in_schema=False)
async def reset_binding(body: LicenseKeyRequest, _=Depends(require_admin)):
    await _get_service().reset_binding(body.license_key)
    return SuccessResponse()


@router.post("/api/admin/version/update", response_model=SuccessResponse)
async def update_version(body: VersionUpdate, _=Depends(require_admin)):
    await _get_service().update_distribution(
        body.version,
        force_update=body.force_update,
        update_message=body.update_message,
    )
    return SuccessResponse()
