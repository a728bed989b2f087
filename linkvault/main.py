"""LinkVault API server."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Response
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text

from linkvault import __version__
from linkvault.api.routes import links
from linkvault.config import settings
from linkvault.db.models import Base
from linkvault.db.session import engine
from linkvault.logging_config import setup_logging
from linkvault.worker.scheduler import setup_scheduler

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, run the health sweep scheduler, release the pool on exit."""
    logger.info(f"Starting LinkVault {__version__}")

    # Alembic owns migrations; create_all only fills in a fresh dev database
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.scheduler = setup_scheduler()
    app.state.scheduler.start()
    jobs = [job.id for job in app.state.scheduler.get_jobs()]
    logger.info(f"Scheduler started with jobs: {jobs or 'none'}")

    try:
        yield
    finally:
        logger.info("Stopping LinkVault")
        app.state.scheduler.shutdown(wait=False)
        await engine.dispose()


app = FastAPI(
    title="LinkVault",
    description="Affiliate link ingestion, health monitoring, rotation and reporting",
    version=__version__,
    lifespan=lifespan,
)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics", "/health", "/favicon.ico"],
    inprogress_name="linkvault_http_requests_inprogress",
    inprogress_labels=True,
).instrument(app).expose(app, include_in_schema=False)

app.include_router(links.router)


@app.get("/health")
async def health():
    """Liveness plus a database round trip."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.warning(f"Database health probe failed: {e}")
        database = "unavailable"

    scheduler = getattr(app.state, "scheduler", None)
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "scheduler_running": bool(scheduler and scheduler.running),
    }


@app.get("/favicon.ico")
async def favicon():
    return Response(status_code=204)


if __name__ == "__main__":
    uvicorn.run(
        "linkvault.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
