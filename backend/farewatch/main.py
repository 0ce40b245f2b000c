import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from farewatch.config import settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(os.environ.get("LOG_DIR", Path(__file__).resolve().parent.parent / "logs"))
_LOG_DIR.mkdir(parents=True, exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "farewatch.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from farewatch.dependencies import get_trigger_service, shutdown_services  # noqa: E402
from farewatch.routers import watches  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: sweep active watches on a cron schedule
    scheduler = None
    if settings.scheduler_enabled:
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger

            scheduler = AsyncIOScheduler()

            async def _run_watch_sweep():
                result = await get_trigger_service().run_all_active()
                summary = result["summary"]
                if summary["total"]:
                    logger.info(
                        f"Watch sweep: {summary['notified']} notified, "
                        f"{summary['noop']} noop, {summary['errors']} errors"
                    )

            scheduler.add_job(
                _run_watch_sweep,
                CronTrigger(hour=settings.sweep_hours, minute=0, timezone=settings.sweep_timezone),
                id="watch_sweep",
                max_instances=1,
                coalesce=True,
            )
            scheduler.start()
            logger.info(f"Background scheduler started (sweep at hours {settings.sweep_hours} {settings.sweep_timezone})")
        except Exception as e:
            logger.error(f"Scheduler failed to start: {e}")
            scheduler = None

    yield

    # Shutdown
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
    await shutdown_services()


app = FastAPI(
    title="FareWatch",
    description="Flight fare watches with price-drop alerts",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(watches.router, prefix="/api", tags=["watches"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "farewatch"}
