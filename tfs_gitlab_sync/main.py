"""Main FastAPI application"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from pydantic import ValidationError

from tfs_gitlab_sync import __version__
from tfs_gitlab_sync.api import sync
from tfs_gitlab_sync.config import get_settings
from tfs_gitlab_sync.scheduler import SyncScheduler
from tfs_gitlab_sync.services.sync_service import SyncService

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("════════════════════════════════════════")
    logger.info("TFS-GitLab Sync starting")
    logger.info(f"  TFS     : {settings.tfs_url}/{settings.tfs_project}")
    logger.info(f"  GitLab  : {settings.gitlab_url}/{settings.gitlab_namespace}")
    logger.info(f"  Interval: {settings.sync_interval}s")
    logger.info(f"  Repos   : {', '.join(settings.repo_names) or 'all (auto-discover)'}")
    logger.info("════════════════════════════════════════")

    scheduler = SyncScheduler(SyncService.from_settings(settings), settings.sync_interval)
    app.state.scheduler = scheduler
    scheduler.start()
    yield
    logger.info("Stopping TFS-GitLab Sync")
    # Waits for the running repository to finish; keep it off the event loop.
    await asyncio.to_thread(scheduler.stop)
    app.state.scheduler = None


app = FastAPI(
    title="TFS-GitLab Sync",
    description="Mirror TFS repositories into GitLab and bridge pull requests",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(sync.router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "TFS-GitLab Sync"}


def main() -> None:
    """Validate configuration, then serve until terminated."""
    try:
        settings = get_settings()
    except ValidationError as e:
        configure_logging()
        logger.error(f"Invalid or missing configuration:\n{e}")
        sys.exit(1)
    configure_logging(settings.log_level)

    import uvicorn

    uvicorn.run(
        "tfs_gitlab_sync.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
