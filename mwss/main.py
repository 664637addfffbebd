import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mwss.api.v1.auth.router import router as auth_router
from mwss.api.v1.members.router import router as members_router
from mwss.api.v1.registrations.router import router as registrations_router
from mwss.api.v1.students.router import router as students_router
from mwss.api.v1.transactions.router import router as transactions_router
from mwss.api.v1.volunteers.router import router as volunteers_router
from mwss.core.config import settings
from mwss.core.logging_config import configure_logging
from mwss.db.session import AsyncSessionLocal
from mwss.jobs.account_cleanup import run_account_cleanup
from mwss.notifications.dispatcher import build_dispatcher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.log_level)

    dispatcher = build_dispatcher()
    dispatcher.start()
    app.state.dispatcher = dispatcher

    cleanup_task: Optional[asyncio.Task] = None
    if settings.account_cleanup_enabled:
        cleanup_task = asyncio.create_task(
            run_account_cleanup(AsyncSessionLocal, settings.cleanup_interval_seconds),
            name="account-cleanup",
        )
    logger.info("MWSS backend started")

    try:
        yield
    finally:
        if cleanup_task is not None:
            cleanup_task.cancel()
            try:
                await cleanup_task
            except asyncio.CancelledError:
                pass
        await dispatcher.stop()
        logger.info("MWSS backend stopped")


def create_app() -> FastAPI:
    app = FastAPI(title="MWSS Backend", lifespan=lifespan)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth_router)
    app.include_router(transactions_router)
    app.include_router(members_router)
    app.include_router(registrations_router)
    app.include_router(students_router)
    app.include_router(volunteers_router)

    return app


app = create_app()
