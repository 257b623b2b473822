"""FastAPI application factory for Keylock."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from keylock.common.config import get_settings
from keylock.common.exceptions import KeylockError
from keylock.common.logging import get_logger, setup_logging
from keylock.common.schemas import AdminResult, HealthResponse

logger = get_logger("app")

ERROR_STATUS = {
    "unauthorized": 401,
    "not_found": 404,
    "invalid_request": 400,
    "storage_failure": 503,
}


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from keylock.deps import initialize_store
        store = await initialize_store()
        logger.info("Keylock ready (%s storage)", settings.storage_backend)
        yield
        # Shutdown
        await store.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(KeylockError)
    async def keylock_error_handler(request: Request, exc: KeylockError):
        status = ERROR_STATUS.get(exc.code, 400)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        body = AdminResult(success=False, error=exc.code, message=exc.message)
        return JSONResponse(status_code=status, content=body.model_dump())

    verify_path = f"{settings.api_prefix}/api/license/verify"
    admin_prefix = f"{settings.api_prefix}/api/admin/"

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # Unparseable verify bodies are still answered with a verdict.
        path = request.url.path
        if path == verify_path:
            from keylock.licensing import engine
            from keylock.licensing.router import render_verdict
            return render_verdict(engine.reject(engine.MISSING_PARAMETERS))
        if path.startswith(admin_prefix):
            body = AdminResult(success=False, error="invalid_request", message="Malformed request body")
            return JSONResponse(status_code=400, content=body.model_dump())
        return await request_validation_exception_handler(request, exc)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    from keylock.licensing.router import router as licensing_router

    app.include_router(licensing_router, prefix=settings.api_prefix, tags=["licensing"])

    return app
