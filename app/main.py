from pathlib import Path
from contextlib import asynccontextmanager
import asyncio
from typing import Optional

from alembic import command
from alembic.config import Config
from fastapi import FastAPI

from app.api.routes import grants, health, stats, sync
from app.core.config import settings
from app.core.db import SessionLocal
from app.core.logging import get_logger
from app.services.sync_service import SyncService


log = get_logger("app")

# Background task handle
_sync_task: Optional[asyncio.Task] = None


def run_migrations() -> None:
    """Execute Alembic migrations programmatically on startup."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    log.info("Running Alembic migrations to head")
    command.upgrade(alembic_cfg, "head")
    log.info("Alembic migrations applied")


async def run_sync_pipeline() -> None:
    """Run one scheduler batch over every enabled source."""
    log.info("Starting grant sync for all enabled sources...")
    db = SessionLocal()
    try:
        service = SyncService(db, api_keys=settings.source_api_keys)
        results = await service.run_scheduled()

        for summary in results:
            if summary.status == "completed":
                log.info(
                    f"Sync {summary.source_key}: fetched={summary.grants_fetched} "
                    f"created={summary.grants_created} updated={summary.grants_updated}"
                )
            else:
                log.error(f"Sync {summary.source_key}: failed - {summary.error or 'unknown error'}")

        log.info("Grant sync completed")
    except Exception as exc:
        log.exception(f"Grant sync failed: {exc}")
    finally:
        db.close()


async def scheduled_sync_task() -> None:
    """Background task that runs the sync batch at the configured interval."""
    interval = settings.SYNC_INTERVAL_SECONDS
    log.info(f"Scheduled sync task started (interval: {interval}s)")

    await run_sync_pipeline()

    while True:
        try:
            await asyncio.sleep(interval)
            await run_sync_pipeline()
        except asyncio.CancelledError:
            log.info("Scheduled sync task cancelled")
            break
        except Exception as exc:
            log.exception(f"Scheduled sync task error: {exc}")
            await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _sync_task

    log.info(f"Starting application in {settings.ENV.upper()} mode")
    if settings.is_production:
        log.info("Production mode: Debug disabled, docs disabled, stricter logging")
    else:
        log.info("Development mode: Debug enabled, docs available")

    # Startup
    try:
        run_migrations()
    except Exception:
        log.exception("Failed to apply migrations on startup")
        raise

    if settings.SYNC_ENABLED:
        log.info("Starting scheduled sync background task...")
        _sync_task = asyncio.create_task(scheduled_sync_task())
    else:
        log.info("Scheduled sync is disabled (SYNC_ENABLED=false)")

    yield

    # Shutdown
    log.info("Shutting down services...")

    if _sync_task:
        log.info("Cancelling scheduled sync task...")
        _sync_task.cancel()
        try:
            await _sync_task
        except asyncio.CancelledError:
            pass

    log.info("Application shutdown complete")


app = FastAPI(
    title="Grant Sync Service",
    description="Multi-source grant ingestion and synchronization pipeline",
    version="1.0.0",
    lifespan=lifespan,
    # Disable docs in production for security
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
    debug=settings.debug_enabled,
)


app.include_router(grants.router)
app.include_router(health.router)
app.include_router(stats.router)
app.include_router(sync.router)
