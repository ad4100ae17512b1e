from apscheduler.schedulers.background import BackgroundScheduler
import atexit
from datetime import datetime
from app.extensions import db
from app.services import order_service

scheduler = BackgroundScheduler()


def run_queue_recalculation(app):
    """Keep queue numbers compact after cancellations and finished orders."""
    current_time_str = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    with app.app_context():
        try:
            result = order_service.recalculate_queue_numbers()
            db.session.commit()
            print(
                f"[SCHEDULER] {current_time_str} - Renumbered {result['updated']} of "
                f"{result['total']} active order(s)"
            )
            return result
        except Exception as e:
            db.session.rollback()
            app.logger.error(
                f"[SCHEDULER] {current_time_str} - Error recalculating queue numbers: {e}"
            )
            return None


def init_scheduler(app):
    """Initialize the APScheduler scheduler with Flask app context."""

    @scheduler.scheduled_job(
        "interval", minutes=app.config.get("QUEUE_RECALC_MINUTES", 60)
    )
    def scheduled_task():
        run_queue_recalculation(app)

    if not scheduler.running:
        scheduler.start()
        print("[SCHEDULER] Scheduler started")
    else:
        print("[SCHEDULER] Scheduler already running (skipping duplicate start)")

    # Shut down the scheduler when exiting the app
    atexit.register(lambda: scheduler.shutdown())
