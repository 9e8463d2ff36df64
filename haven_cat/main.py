"""
Main FastAPI application.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from haven_cat.api.v1.api import api_router
from haven_cat.core.cat.engine import CATSessionManager
from haven_cat.core.cat.exposure_control import ExposureMonitor
from haven_cat.core.cat.item_bank import InMemoryItemBank
from haven_cat.core.cat.session_store import InMemorySessionStore
from haven_cat.core.config import settings
from haven_cat.core.logging_config import setup_logging
from haven_cat.middleware import RequestLoggingMiddleware

# Initialize logging configuration at startup
setup_logging()

logger = logging.getLogger(__name__)


def build_session_manager() -> CATSessionManager:
    """
    Build the default CATSessionManager from settings.

    Loads the item bank from CAT_ITEM_BANK_PATH when configured; otherwise the
    bank starts empty and session starts are rejected until one is provided.
    """
    if settings.CAT_ITEM_BANK_PATH:
        item_bank = InMemoryItemBank.from_json_file(settings.CAT_ITEM_BANK_PATH)
    else:
        logger.warning("CAT_ITEM_BANK_PATH not configured; item bank is empty")
        item_bank = InMemoryItemBank([])

    return CATSessionManager(
        item_bank=item_bank,
        session_store=InMemorySessionStore(),
        exposure_monitor=ExposureMonitor(
            alert_threshold=settings.CAT_EXPOSURE_ALERT_THRESHOLD
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    - On startup: builds the session manager unless one was injected
    - On shutdown: logs item exposure alerts for the process lifetime
    """
    if getattr(app.state, "session_manager", None) is None:
        app.state.session_manager = build_session_manager()
    app.state.item_bank = app.state.session_manager.item_bank
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started ({settings.ENV})")

    yield

    monitor = app.state.session_manager.exposure_monitor
    if monitor is not None and monitor.total_selections > 0:
        monitor.check_and_alert()
    logger.info("Application shutting down")


# OpenAPI tags metadata
tags_metadata = [
    {
        "name": "health",
        "description": "Health check endpoints for monitoring application status",
    },
    {
        "name": "cat",
        "description": "Adaptive test sessions: start, submit responses, status and reports",
    },
]


def create_application(
    session_manager: Optional[CATSessionManager] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        session_manager: Optional pre-built manager (used by tests). When
            omitted, one is built from settings at startup.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**Haven CAT API** - Computerized Adaptive Testing for NCLEX-style exams.\n\n"
            "This API provides:\n"
            "* Adaptive item selection under the 3PL IRT model\n"
            "* Ability estimation (EAP or MLE) after every response\n"
            "* Pass/fail decisions by confidence interval, precision or length\n"
            "* End-of-test reports with category proficiency"
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    if session_manager is not None:
        app.state.session_manager = session_manager

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions.

        Generates a unique error_id for each exception so a response can be
        traced to its log entry.
        """
        error_id = str(uuid.uuid4())
        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"path": str(request.url.path)},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "error_id": error_id,
            },
        )

    return app


app = create_application()


@app.get("/")
async def root():
    """
    Root endpoint.
    """
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
    }
