# lending/tasks/scheduler.py
from __future__ import annotations

import atexit
import os
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from lending.tasks.analytics_job import run_analytics_job
from lending.tasks.expiry_sweep import run_expiry_sweep_job

SWEEP_JOB_ID = "borrow_expiry_sweep"
ANALYTICS_JOB_ID = "library_analytics"
STARTUP_JOB_ID = "library_startup_run"

# Run order; each task is its own job so it can be paused or rescheduled
# alone. On the interval, later tasks tick a minute after the one before.
TASKS = (
    (SWEEP_JOB_ID, run_expiry_sweep_job),
    (ANALYTICS_JOB_ID, run_analytics_job),
)


def run_startup_tasks(app):
    """Runs every task once, in order; each task logs and absorbs its own failures."""
    for _job_id, task in TASKS:
        task(app)


def start_scheduler(app, paused: bool = False):
    """
    - At startup one job runs every task back to back (sweep, then analytics).
    - After that every task runs hourly (SCHEDULER_INTERVAL_MINUTES).
    - The debug reloader starts two processes; only the real one schedules.
    - Shutdown does not wait for running jobs and drops the pending tick.
    """
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        app.logger.info("[scheduler] Debug reloader secondary process: scheduler skipped.")
        return None

    interval = app.config.get("SCHEDULER_INTERVAL_MINUTES", 60)
    scheduler = BackgroundScheduler(timezone="UTC")
    first_run = datetime.now(timezone.utc)

    for offset, (job_id, task) in enumerate(TASKS):
        scheduler.add_job(
            func=task,
            args=[app],
            trigger=IntervalTrigger(minutes=interval),
            id=job_id,
            replace_existing=True,
            max_instances=1,        # no overlapping runs of the same task
            coalesce=True,          # missed ticks collapse into one
            misfire_grace_time=120,
            next_run_time=first_run + timedelta(minutes=interval + offset),
        )

    scheduler.add_job(func=run_startup_tasks, args=[app], id=STARTUP_JOB_ID, replace_existing=True)

    scheduler.start(paused=paused)
    app.logger.info(f"[scheduler] {', '.join(job_id for job_id, _ in TASKS)} started (every {interval} minutes).")

    app.extensions["apscheduler"] = scheduler
    atexit.register(stop_scheduler, app)
    return scheduler


def stop_scheduler(app):
    sch = app.extensions.get("apscheduler")
    if sch and getattr(sch, "running", False):
        sch.shutdown(wait=False)
        app.logger.info("[scheduler] Scheduler shutdown.")


def pause_task(app, job_id: str):
    app.extensions["apscheduler"].pause_job(job_id)


def resume_task(app, job_id: str):
    app.extensions["apscheduler"].resume_job(job_id)
