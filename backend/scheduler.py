from apscheduler.schedulers.background import BackgroundScheduler
from datetime import date


def close_expired_campaigns(app, today: date = None):
    # always run inside app context in the background thread
    with app.app_context():
        lifecycle = app.extensions["services"].lifecycle
        try:
            closed = lifecycle.close_expired_campaigns(today)
        except Exception:
            app.logger.exception("Closing expired campaigns failed")
            return []

        for project_id, status in closed:
            app.logger.info("Campaign for project %s closed as %s", project_id, status)
        app.logger.info("Closed %d expired campaign(s)", len(closed))
        return closed


def start_scheduler(app, dev_mode=False):
    scheduler = BackgroundScheduler()

    if dev_mode:
        # run every minute for local testing
        scheduler.add_job(
            lambda: close_expired_campaigns(app),
            trigger="interval",
            minutes=1,
            id="close_campaigns_dev",
            replace_existing=True,
        )
        app.logger.info("Dev mode scheduler running every minute.")
    else:
        scheduler.add_job(
            lambda: close_expired_campaigns(app),
            trigger="cron",
            hour=0,
            minute=15,
            id="close_campaigns",
            replace_existing=True,
        )
        app.logger.info("Scheduler started for daily campaign closing.")

    scheduler.start()
    return scheduler
