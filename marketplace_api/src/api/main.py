from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from jose import JWTError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import configure_logging, correlation_id_var, user_id_var
from src.core.security import decode_token
from src.core.settings import get_app_settings
from src.db.run_migrations import main as run_alembic
from src.db.seed import seed_all
from src.db.session import get_async_session
from src.repositories.profiles import ProfileRepository
from src.schemas.common import ErrorInfo, ErrorResponse, MessageResponse
from src.services.errors import ServiceError
from src.services.realtime import broadcast_manager

# Routers
from src.api.routes.admin import router as admin_router
from src.api.routes.analytics import router as analytics_router
from src.api.routes.auth import router as auth_router
from src.api.routes.cron import router as cron_router
from src.api.routes.favorites import router as favorites_router
from src.api.routes.listings import router as listings_router
from src.api.routes.messages import router as messages_router
from src.api.routes.notifications import router as notifications_router
from src.api.routes.offers import router as offers_router
from src.api.routes.profiles import router as profiles_router
from src.api.routes.reports import router as reports_router
from src.api.routes.reviews import router as reviews_router
from src.api.routes.search import router as search_router

settings = get_app_settings()

# Configure structured logging once at import
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Liveness probes."},
    {"name": "Auth", "description": "Registration, login and token endpoints."},
    {"name": "Profiles", "description": "Own profile, public profiles and notification preferences."},
    {"name": "Listings", "description": "Vehicle listings, images and seller analytics."},
    {"name": "Search", "description": "Plain, cached, advanced and dynamic listing search."},
    {"name": "Favorites", "description": "Saved listings."},
    {"name": "Reviews", "description": "Buyer and seller reviews."},
    {"name": "Offers", "description": "Offers, counter-offers, history and analytics."},
    {"name": "Cron", "description": "Scheduled maintenance endpoints."},
    {"name": "Messages", "description": "Listing conversations and threaded replies."},
    {"name": "Notifications", "description": "In-app notifications."},
    {"name": "Reports", "description": "Message reports and moderation."},
    {"name": "Analytics", "description": "Search analytics."},
    {"name": "Admin", "description": "Staff dashboards, user management and exports (CSV/Excel/PDF)."},
    {"name": "WebSocket", "description": "WebSocket usage and connection details."},
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Enrich request context with a correlation_id for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    token_corr = correlation_id_var.set(corr)
    token_user = user_id_var.set(None)
    request.state.correlation_id = corr

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)
        user_id_var.reset(token_user)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Render business-rule failures raised by services."""
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type=exc.error_type,
        message=exc.message,
        details=exc.details,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    response = _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors; malformed input is a 400.
    """
    return _build_error_response(
        request=request,
        status_code=400,
        error_type="validation_error",
        message="Invalid request data",
        details=jsonable_errors(exc),
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Pydantic error list without non-serializable ctx values."""
    errors = []
    for error in exc.errors():
        item = {key: value for key, value in error.items() if key in ("type", "loc", "msg")}
        errors.append(item)
    return errors


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    """Unique and foreign-key violations that escaped the services."""
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return _build_error_response(
        request=request,
        status_code=409,
        error_type="conflict",
        message="Request conflicts with existing data",
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="internal_error",
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations and optional seeding on service startup.

    This ensures the database schema is up to date. Seeding is opt-in via settings.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            # env.py drives its own event loop, so it cannot share the running one
            await asyncio.to_thread(run_alembic, ["upgrade", "head"])
            logger.info("Migrations completed.")
        except Exception as exc:
            # Keep serving; readiness depends on the database coming up later.
            logger.exception("Migration step failed: %s", exc)

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_all()
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)


# Uploaded images are served from UPLOAD_DIR under PUBLIC_UPLOAD_BASE_URL
if settings.PUBLIC_UPLOAD_BASE_URL.startswith("/"):
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    app.mount(settings.PUBLIC_UPLOAD_BASE_URL, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="Healthy")


# PUBLIC_INTERFACE
@api_v1.get(
    "/websocket-info",
    response_model=Dict[str, Any],
    summary="WebSocket Usage Information",
    description="Connection details for the realtime messaging socket.",
    tags=["WebSocket"],
)
def websocket_info() -> Dict[str, Any]:
    """Describe how to connect to the realtime endpoint."""
    return {
        "usage": (
            "Connect with a valid access token as the 'token' query parameter. "
            "Each socket receives events addressed to the authenticated profile. "
            "Message format is JSON: { type: string, payload: object, at: ISO-8601, user_id?: string, channel?: string }."
        ),
        "endpoints": [
            {
                "path": "/ws/messages",
                "summary": "New messages and in-app notifications for the caller.",
                "query": ["token"],
                "messages": {
                    "client_to_server": ["ping"],
                    "server_to_client": ["message.created", "notification.created"],
                },
            }
        ],
        "notes": "WebSocket endpoints are not represented in OpenAPI schema; refer to this endpoint for usage.",
    }


app.include_router(api_v1)
for router in (
    auth_router,
    profiles_router,
    listings_router,
    search_router,
    favorites_router,
    reviews_router,
    offers_router,
    cron_router,
    messages_router,
    notifications_router,
    reports_router,
    analytics_router,
    admin_router,
):
    app.include_router(router)


def _ws_profile_id(token: Optional[str]) -> Optional[UUID]:
    """Profile id from an access token, or None when the token is missing or invalid."""
    if not token:
        return None
    try:
        claims = decode_token(token)
    except JWTError:
        return None
    if claims.get("type") != "access":
        return None
    try:
        return UUID(str(claims.get("sub")))
    except ValueError:
        return None


# PUBLIC_INTERFACE
@app.websocket("/ws/messages")
async def ws_messages(websocket: WebSocket, session: AsyncSession = Depends(get_async_session)):
    """
    WebSocket endpoint for realtime messages and notifications.

    Security:
      - Query param 'token' must be a valid access JWT of an existing, active profile;
        otherwise the socket is closed with 4401.
    Messages:
      - Server -> Client: 'message.created' and 'notification.created' envelopes.
      - Client -> Server: 'ping' is answered with 'pong'; other messages are ignored.
    """
    await websocket.accept()
    profile_id = _ws_profile_id(websocket.query_params.get("token"))
    profile = await ProfileRepository(session).get_profile_by_id(profile_id) if profile_id else None
    # release the connection; the socket may stay open for hours
    await session.close()
    if profile is None or not profile.is_active:
        await websocket.close(code=4401)
        return

    topic = broadcast_manager.user_topic(profile_id)
    await broadcast_manager.connect(topic, websocket)
    try:
        while True:
            msg = await websocket.receive_text()
            if msg and msg.strip().lower() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        await broadcast_manager.disconnect(topic, websocket)
    except Exception:
        logger.exception("Error on ws_messages connection")
        await broadcast_manager.disconnect(topic, websocket)
        await websocket.close()
