from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from labguard.auth import RoleResolver, TokenValidator
from labguard.config import Settings, load_settings
from labguard.exceptions import LabGuardError
from labguard.modules.admin.router import router as admin_router
from labguard.modules.analysts.router import router as analysts_router
from labguard.modules.identity.router import router as identity_router
from labguard.modules.samples.router import router as samples_router
from labguard.supabase import SupabaseClient

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    supabase: Optional[SupabaseClient] = None,
    supabase_anon: Optional[SupabaseClient] = None,
) -> FastAPI:
    """
    Build the API. Both Supabase clients live as long as the app:
      - app.state.supabase       service role (registry + account lookups)
      - app.state.supabase_anon  anon key (public probes)
    """
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title="labguard-api")

    app.state.settings = settings
    app.state.supabase = supabase or SupabaseClient(
        settings.supabase_url, settings.service_role_key, timeout=settings.timeout
    )
    app.state.supabase_anon = supabase_anon or SupabaseClient(
        settings.supabase_url, settings.anon_key, timeout=settings.timeout
    )
    app.state.token_validator = TokenValidator(app.state.supabase, settings.expected_issuer)
    app.state.role_resolver = RoleResolver(app.state.supabase)

    logger.info("CORS Origins: %s", settings.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
        max_age=3600,
    )

    @app.exception_handler(LabGuardError)
    async def labguard_error_handler(request: Request, exc: LabGuardError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, **exc.extra},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body.", "detail": jsonable_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error."})

    @app.get("/")
    @app.get("/health")
    def health_check():
        return {
            "status": "ok",
            "service": "labguard-api",
            "auth": app.state.supabase_anon.health(),
        }

    app.include_router(identity_router)
    app.include_router(admin_router)
    app.include_router(samples_router)
    app.include_router(analysts_router)

    return app


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


if __name__ == "__main__":
    import uvicorn

    _settings = load_settings()
    uvicorn.run(create_app(_settings), host="0.0.0.0", port=_settings.port)
