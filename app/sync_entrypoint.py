"""Sync entrypoint - Standalone script for running grant syncs.

Usage:
    python -m app.sync_entrypoint                    # Scheduler batch over enabled sources
    python -m app.sync_entrypoint grants_gov         # Single source (incremental when possible)
    python -m app.sync_entrypoint opengrants full    # Single source, forced full sync
"""

import asyncio
import sys

from app.core.config import settings
from app.core.db import SessionLocal
from app.core.logging import get_logger
from app.services.sync_service import SyncService

logger = get_logger("sync_entrypoint")


async def run_sync_job(source_key: str, job_type: str = "incremental"):
    """Run a sync for a single source."""
    logger.info(f"Starting {job_type} sync for source: {source_key}")
    with SessionLocal() as db:
        service = SyncService(db, api_keys=settings.source_api_keys)
        job = await service.run_sync(source_key, job_type=job_type)  # type: ignore[arg-type]
        logger.info(
            f"Sync completed for {source_key}: status={job.status} fetched={job.grants_fetched} "
            f"created={job.grants_created} updated={job.grants_updated} skipped={job.grants_skipped}"
        )
        return job


async def run_all_sources():
    """Run the scheduler batch."""
    logger.info("Running sync for all enabled sources")
    with SessionLocal() as db:
        service = SyncService(db, api_keys=settings.source_api_keys)
        results = await service.run_scheduled()
        logger.info(f"Sync completed for all sources: {[r.model_dump() for r in results]}")
        return results


def main():
    """Main entry point for the sync pipeline."""
    logger.info("Grant sync starting...")

    if len(sys.argv) > 1:
        source_key = sys.argv[1]
        job_type = sys.argv[2] if len(sys.argv) > 2 else "incremental"
        if job_type not in ("full", "incremental"):
            logger.error(f"Invalid job type: {job_type}. Must be one of: full, incremental")
            sys.exit(1)
        try:
            job = asyncio.run(run_sync_job(source_key, job_type))
        except Exception as exc:
            logger.error(f"Sync failed for {source_key}: {exc}")
            sys.exit(1)
        return job

    results = asyncio.run(run_all_sources())

    # Exit with error code if any source failed
    if any(r.status != "completed" for r in results):
        sys.exit(1)

    return results


if __name__ == "__main__":
    main()
