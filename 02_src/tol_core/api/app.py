"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..app import Application
from ..broadcaster import InvalidEventError
from ..config import cors_origins
from ..logging_config import get_logger
from .routes import auth, crm, events, invitations, realtime, users

logger = get_logger(__name__)


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    The Application is owned by the returned app (``app.state.application``);
    pass one in to share it with a test or an embedding process.
    """
    application = application or Application()

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        """Manage application lifespan."""
        await application.start()
        fastapi_app.state.broadcaster = application.broadcaster
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="Tree of Life Agency API",
        description="CRM, auth and real-time notification API for the client portal",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.application = application

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @fastapi_app.exception_handler(InvalidEventError)
    async def invalid_event_handler(request: Request, exc: InvalidEventError) -> JSONResponse:
        logger.warning("Rejected event: %s", exc, extra={"context": {"path": request.url.path}})
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)}
        )

    fastapi_app.include_router(auth.create_auth_router(application))
    fastapi_app.include_router(users.create_users_router(application))
    fastapi_app.include_router(invitations.create_invitations_router(application))
    fastapi_app.include_router(crm.create_crm_router(application))
    fastapi_app.include_router(events.create_events_router(application))
    fastapi_app.include_router(realtime.create_realtime_router(application))

    return fastapi_app
