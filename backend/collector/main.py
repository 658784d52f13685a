"""Main FastAPI application for the Monit collector."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .database import init_db, close_db, async_session
from .routers import collector_router, hosts_router, status_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create or migrate the schema on startup, release the pool on shutdown."""
    logger.info(f"Starting Monit collector on port {settings.port}")

    await init_db()
    logger.info("Schema ready")

    yield

    await close_db()
    logger.info("Collector stopped")


def create_app() -> FastAPI:
    """Build the collector app: the ingest endpoint plus the read API."""
    app = FastAPI(
        title="Monit Collector",
        description="Receive Monit status reports and store them for querying",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS middleware for dashboards
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(collector_router)
    app.include_router(hosts_router)
    app.include_router(status_router)

    # Reports the store as reachable only if a trivial query succeeds
    @app.get("/health")
    async def health_check():
        try:
            async with async_session() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Health check failed: {e}")
            raise HTTPException(status_code=500, detail="Database unavailable")
        return {"status": "ok", "database": "connected"}

    @app.get("/")
    async def root():
        return {"name": "Monit Collector", "version": "1.0.0", "collector": "/collector"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
