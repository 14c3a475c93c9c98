"""FastAPI application factory wiring all infrastructure components together."""

from __future__ import annotations

from fastapi import APIRouter, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, get_settings
from saveai import __version__
from saveai.logging_config import configure_logging

from .bootstrap import shutdown, startup
from .endpoints import (
    affiliate_endpoint,
    analyze_endpoint,
    create_saved_endpoint,
    delete_history_endpoint,
    delete_saved_endpoint,
    health_endpoint,
    http_exception_handler,
    list_history_endpoint,
    list_notifications_endpoint,
    list_saved_endpoint,
    mark_notification_read_endpoint,
    metrics_endpoint,
    retry_history_endpoint,
    search_endpoint,
    unhandled_exception_handler,
    update_saved_endpoint,
    validation_exception_handler,
)
from .middleware import security_headers_middleware
from .services import Services


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = settings or get_settings()
    configure_logging(settings)
    services = services or Services.from_settings(settings)

    app = FastAPI(title="SaveAI Backend", version=__version__)
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )
    app.middleware("http")(security_headers_middleware)

    router = APIRouter()

    router.add_api_route("/api/search", search_endpoint, methods=["POST"], response_model=None)
    router.add_api_route("/api/analyze", analyze_endpoint, methods=["POST"], response_model=None)
    router.add_api_route("/api/affiliate", affiliate_endpoint, methods=["POST"], response_model=None)

    router.add_api_route("/api/history", list_history_endpoint, methods=["GET"], response_model=None)
    router.add_api_route("/api/history", delete_history_endpoint, methods=["DELETE"], response_model=None)
    router.add_api_route("/api/history/retry", retry_history_endpoint, methods=["POST"], response_model=None)

    router.add_api_route("/api/saved", list_saved_endpoint, methods=["GET"], response_model=None)
    router.add_api_route("/api/saved", create_saved_endpoint, methods=["POST"], response_model=None)
    router.add_api_route("/api/saved", update_saved_endpoint, methods=["PATCH"], response_model=None)
    router.add_api_route("/api/saved", delete_saved_endpoint, methods=["DELETE"], response_model=None)

    router.add_api_route("/api/notifications", list_notifications_endpoint, methods=["GET"], response_model=None)
    router.add_api_route(
        "/api/notifications",
        mark_notification_read_endpoint,
        methods=["PATCH"],
        response_model=None,
    )

    router.add_api_route("/health", health_endpoint, methods=["GET"], include_in_schema=False, response_model=None)
    router.add_api_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False, response_model=None)

    app.include_router(router)

    @app.on_event("startup")
    async def _on_startup() -> None:
        startup(services, settings)

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        shutdown()

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    return app


__all__ = ["create_app"]
