import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .settings import settings
from .api import router as api_router, get_orchestrator
from .log_utils import rotate_logs

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="HCMC Construction Watch API",
    version="0.1.0",
    description="Thu thập tin công trình xây dựng TP.HCM từ báo và cổng thông tin, tạo đề xuất chờ kiểm duyệt.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)

# coalesce=True rolls up missed executions into one;
# a second overlapping run would be rejected by the per-source lock anyway.
job_defaults = {
    'coalesce': True,
    'max_instances': 1,
    'misfire_grace_time': 300
}
scheduler = BackgroundScheduler(timezone=settings.app_timezone, job_defaults=job_defaults)

def scheduled_scrape():
    """Runs in a scheduler thread, so it gets its own event loop."""
    runs = asyncio.run(get_orchestrator().run_all())
    created = sum(r.suggestions_created for r in runs)
    failed = [r.source for r in runs if r.status == "failed"]
    logger.info(f"Scheduled scrape finished: {len(runs)} runs, {created} new suggestions, failed={failed}")

@app.on_event("startup")
async def on_startup():
    from .database import engine, Base
    from . import models  # noqa: F401  register tables
    Base.metadata.create_all(bind=engine)

    scheduler.add_job(
        scheduled_scrape,
        trigger=IntervalTrigger(minutes=settings.crawl_interval_minutes, jitter=60),
        id="scrape_all",
        replace_existing=True,
    )
    scheduler.add_job(
        rotate_logs,
        trigger=IntervalTrigger(hours=12, jitter=60),
        id="log_rotation",
        replace_existing=True,
        misfire_grace_time=600
    )
    scheduler.start()

@app.on_event("shutdown")
async def on_shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)
