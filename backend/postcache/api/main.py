"""Factory de la aplicacion FastAPI para postcache."""

from __future__ import annotations

from datetime import date

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from postcache.adapters.placeholder_client import UpstreamError
from postcache.api.routers.posts import router as posts_router
from postcache.api.routers.system import router as system_router
from postcache.config import get_config, settings
from postcache.logging_utils import configure_logging, get_logger
from postcache.services.refresh_service import RefreshInProgressError, build_coordinator


def create_app() -> FastAPI:
    """Crea y configura la instancia de FastAPI."""
    configure_logging(force=True)
    logger = get_logger(__name__)

    cfg = get_config()
    app = FastAPI(title=settings.app_name)

    app.add_middleware(  # pyright: ignore[reportUnknownMemberType]
        CORSMiddleware,
        allow_origins=cfg.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Simple DI via app.state
    app.state.settings = settings
    app.state.environment = cfg.environment
    app.state.coordinator = build_coordinator(cfg.environment)
    app.state.store = app.state.coordinator.store

    @app.exception_handler(RefreshInProgressError)
    def refresh_conflict(  # pyright: ignore[reportUnusedFunction]
        request: Request, exc: RefreshInProgressError
    ) -> JSONResponse:
        body = {"detail": str(exc), **exc.state.to_json_dict()}
        return JSONResponse(status_code=429, content=body)

    @app.exception_handler(UpstreamError)
    def upstream_failed(  # pyright: ignore[reportUnusedFunction]
        request: Request, exc: UpstreamError
    ) -> JSONResponse:
        status_code = 404 if exc.status_code == 404 else 502
        logger.warning("Upstream error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    app.include_router(system_router, prefix="/api", tags=["system"])
    app.include_router(posts_router, prefix="/api", tags=["posts"])

    logger.debug(
        "FastAPI app created for %s with cache at %s",
        cfg.environment.value,
        cfg.output_directory,
    )

    @app.get("/health", include_in_schema=False, status_code=200)
    def health() -> dict[str, str]:  # pyright: ignore[reportUnusedFunction]
        return {"status": "ok", "date": date.today().isoformat()}

    return app


app = create_app()
