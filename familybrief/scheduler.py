# familybrief/scheduler.py
import os
from datetime import date, timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from .brief_runner import run_weekly_briefs
from .logger import logger
from .store import get_store
from .week_range import today_local

CRON_DAY = os.getenv("WEEKLY_BRIEF_CRON_DAY", "sun")
CRON_HOUR = int(os.getenv("WEEKLY_BRIEF_CRON_HOUR", "18"))


def upcoming_week_start(today: Optional[date] = None) -> date:
    """Weekend runs prepare the coming week; weekday runs the current one."""
    today = today or today_local()
    if today.weekday() >= 5:
        return today + timedelta(days=7 - today.weekday())
    return today


def tick(week_start=None) -> int:
    """Run one scheduled pass; return how many family briefs were attempted."""
    week_start = week_start or upcoming_week_start()
    logger.debug(f"[SCHEDULER] tick(week_start={week_start})")
    store = get_store()
    try:
        out = run_weekly_briefs(store, week_start=week_start, trigger="scheduled")
        return out["generated"]
    finally:
        store.close()


def start_scheduler():
    sched = BackgroundScheduler(timezone=os.getenv("WEEKLY_BRIEF_TIMEZONE", "UTC"))
    sched.add_job(tick, "cron", day_of_week=CRON_DAY, hour=CRON_HOUR, minute=0, id="weekly_briefs")
    sched.start()
    return sched
