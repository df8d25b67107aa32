from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ncp_portal.config import settings
from ncp_portal.core.database import async_session_maker, engine, init_db
from ncp_portal.core.exceptions import NCPPortalError
from ncp_portal.core.gateway import PersistenceGateway
from ncp_portal.core.logging_config import get_logger, setup_logging
from ncp_portal.api.analytics import router as analytics_router
from ncp_portal.api.auth import router as auth_router
from ncp_portal.api.ncp import router as ncp_router
from ncp_portal.api.notifications import router as notifications_router
from ncp_portal.api.users import router as users_router
from ncp_portal.services.audit_service import AuditRecorder
from ncp_portal.services.ncp_queries import NCPQueryService
from ncp_portal.services.ncp_workflow import build_engine
from ncp_portal.services.notification_service import NotificationService

setup_logging()
logger = get_logger(__name__)


def _cors_origins() -> list:
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    return origins or ["*"]


def create_app(session_maker=None, bind=None) -> FastAPI:
    """Build the application; tests pass their own session maker and engine."""
    session_maker = session_maker or async_session_maker
    bind = bind or engine

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db(bind)
        logger.info("Database tables checked/created")
        gateway = PersistenceGateway(session_maker)
        app.state.gateway = gateway
        app.state.workflow = build_engine(gateway)
        app.state.queries = NCPQueryService(gateway)
        app.state.notifications = NotificationService(gateway)
        app.state.audit = AuditRecorder(gateway)
        yield
        await bind.dispose()

    app = FastAPI(title="NCP Portal", version="1.0.0", lifespan=lifespan)

    @app.exception_handler(NCPPortalError)
    async def portal_error_handler(request: Request, exc: NCPPortalError):
        if exc.status_code >= 500:
            logger.error("%s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(ncp_router)
    app.include_router(notifications_router)
    app.include_router(users_router)
    app.include_router(analytics_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
