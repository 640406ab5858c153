# orderflow/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from orderflow.api.errors import register_exception_handlers
from orderflow.api.routers import carts, health, orders
from orderflow.data.database import build_engine, build_sessionmaker, create_tables
from orderflow.data.memory_store import MemoryRecordStore
from orderflow.data.sql_store import SqlRecordStore
from orderflow.data.store import RecordStore
from orderflow.utils.logging import configure_logging, get_logger
from orderflow.utils.settings import DATABASE_URL, STORE_BACKEND

logger = get_logger(__name__)


def build_store(backend: str = STORE_BACKEND, url: str = DATABASE_URL):
    """Returns (store, engine); engine is None for the in-memory backend."""
    if backend == "memory":
        return MemoryRecordStore(), None
    if backend == "sql":
        engine = build_engine(url)
        return SqlRecordStore(build_sessionmaker(engine)), engine
    raise ValueError(f"Unknown STORE_BACKEND: {backend}")


def create_app(store: RecordStore | None = None) -> FastAPI:
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        if getattr(app.state, "store", None) is None:
            app.state.store, engine = build_store()
            if engine is not None:
                logger.info("Initializing database tables")
                await create_tables(engine)
        logger.info(f"Store ready: {type(app.state.store).__name__}")
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Order Service",
        version="1.0.0",
        lifespan=lifespan,
    )
    if store is not None:
        app.state.store = store
    register_exception_handlers(app)

    # Include routers
    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
