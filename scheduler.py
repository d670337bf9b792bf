import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from database import session_scope
from rollover import RolloverEngine


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        self.settings = get_settings()
        self.scheduler = BackgroundScheduler(timezone=self.settings.timezone)

    def run_rollover(self, source: str = "manual") -> dict[str, list]:
        logger.info(f"rollover_job: source={source}")
        with session_scope() as session:
            result = RolloverEngine(session).run()
        logger.info(
            f"rollover_job: source={source} transactions={result.transactions} "
            f"tasks={result.tasks} failed={result.failed}"
        )
        return result.as_dict()

    def start(self) -> None:
        if not self.settings.scheduler_enabled:
            logger.info("Scheduler disabled via CHRONODEX_SCHEDULER_ENABLED")
            return

        self.run_rollover("startup")

        self.scheduler.add_job(
            self.run_rollover,
            CronTrigger(hour=0, minute=5),
            args=["daily_00:05"],
            id="rollover_daily",
            replace_existing=True,
            misfire_grace_time=3600,
        )
        self.scheduler.add_job(
            self.run_rollover,
            IntervalTrigger(hours=1),
            args=["hourly_safety_net"],
            id="rollover_hourly_safety",
            replace_existing=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info("Scheduler started with daily 00:05 rollover and hourly safety net")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
