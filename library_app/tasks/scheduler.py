import atexit
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger


def start_scheduler(app):
    """
    Runs the overdue reminder job in the background.
    Skipped in the Werkzeug reloader's secondary process so the job is not doubled.
    """
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        app.logger.info("[scheduler] Debug reloader secondary process: scheduler skipped.")
        return None

    # imported here to keep app import order free of cycles
    from library_app.tasks.overdue_check import run_overdue_check

    minutes = int(app.config.get("OVERDUE_CHECK_MINUTES", 60))
    scheduler = BackgroundScheduler(timezone="UTC")

    def _job_wrapper():
        try:
            run_overdue_check(app)
        except Exception as ex:
            app.logger.exception(f"[scheduler] overdue_check job error: {ex}")

    scheduler.add_job(
        func=_job_wrapper,
        trigger=IntervalTrigger(minutes=minutes),
        id="overdue_check_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=120,
    )

    scheduler.start()
    app.logger.info(f"[scheduler] Overdue check job started (every {minutes} minutes).")
    app.extensions["apscheduler"] = scheduler
    atexit.register(lambda: scheduler.shutdown(wait=False) if scheduler.running else None)
    return scheduler
