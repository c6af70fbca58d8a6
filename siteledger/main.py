"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from siteledger.config import get_settings
from siteledger.infrastructure.database import (
    create_database_engine,
    create_session_factory,
    initialize_database,
    is_sqlite_url,
)
from siteledger.infrastructure.notifications import ChangeFeed
from siteledger.infrastructure.record_store import SqlRecordStore
from siteledger.interfaces.api.routes import register_routes


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the database and record store on startup and release them on shutdown."""

    settings = get_settings()
    engine = create_database_engine(settings.database_url)
    initialize_database(engine)
    feed = ChangeFeed()
    max_workers = 1 if is_sqlite_url(settings.database_url) else settings.database_max_workers
    app.state.engine = engine
    app.state.record_store = SqlRecordStore(
        create_session_factory(engine), feed, max_workers=max_workers
    )
    yield
    feed.drop_all("server shutting down")
    engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    app = FastAPI(title="SiteLedger", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_routes(app)
    return app


app = create_app()
