"""
Connected Accounts service — application entry point.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.errors import register_error_handlers
from api.middleware import register_middleware
from config.settings import config
from connections.events import EventNotifier
from connections.linker import AccountLinker
from connections.orchestrator import CallbackOrchestrator
from connections.registry import ConnectionRegistry
from connections.routes import router as connections_router

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "sqlalchemy.engine"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


async def _build_orchestrator() -> CallbackOrchestrator:
    from connections.repository import SqlConnectedAccountRepository
    from database.session import async_session_factory, create_tables

    await create_tables()
    linker = AccountLinker(SqlConnectedAccountRepository(async_session_factory))

    registry = ConnectionRegistry()
    registry.discover(linker)
    logger.info("Connections registered: %s", ", ".join(registry.list_identifiers()))
    return CallbackOrchestrator(registry, EventNotifier())


def create_app(orchestrator: Optional[CallbackOrchestrator] = None) -> FastAPI:
    """
    Build the app.  Without *orchestrator* the default one (SQL storage,
    all known connections) is built at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if orchestrator is None:
            app.state.orchestrator = await _build_orchestrator()
        logger.info("Application ready to accept requests.")
        yield

    app = FastAPI(
        title="Connected Accounts",
        version="1.0.0",
        description="Link platform users to external accounts over OAuth2.",
        lifespan=lifespan,
    )
    if orchestrator is not None:
        app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)
    register_error_handlers(app)

    app.include_router(connections_router, prefix=f"{config.api_prefix}/connections")

    return app


if __name__ == "__main__":
    uvicorn.run(
        "main:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
