from typing import Optional

from fastapi import FastAPI

from roomchat.core.config import settings
from roomchat.core.logger import configure_logging, get_logger

# Configure logging
configure_logging()
logger = get_logger(__name__)

from roomchat.core.db import async_session_factory, create_tables
from roomchat.api.chat_router import ChatRouter
from roomchat.notifications.notifier import Notifier
from roomchat.services.chat_service import ChatService
from roomchat.store.base import RecordStore
from roomchat.store.sql import SqlRecordStore


def create_app(
    store: Optional[RecordStore] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    """
    Build the HTTP application around one ChatService.

    Without an explicit store the SQL-backed store on DATABASE_URL is used
    and its tables are created at startup.
    """
    use_sql = store is None
    if use_sql:
        store = SqlRecordStore(async_session_factory)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        debug=settings.DEBUG,
    )
    app.state.chat_service = ChatService.from_store(store, notifier=notifier)

    chat_router = ChatRouter()
    app.include_router(chat_router.router, prefix="/api/v1")

    if use_sql:
        @app.on_event("startup")
        async def on_startup():
            logger.info("Creating database tables (startup)")
            await create_tables()
            logger.info("Database tables ensured (startup)")

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
