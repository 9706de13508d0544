"""
Background rescoring scheduler

Periodically looks for games that went final since the previous run and
recomputes those weeks for every league with members, using APScheduler.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pickem import db
from pickem.models import Game
from pickem.models.game import GAME_STATUS_FINAL
from pickem.services.scoring_service import ScoringEngine

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages the periodic rescoring job"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.engine = None
        self.is_running = False
        self.last_checked = None
        self.sync_stats = {
            "last_run": None,
            "total_runs": 0,
            "successful_runs": 0,
            "failed_runs": 0,
            "last_error": None,
            "weeks_rescored": 0,
        }

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")
        self.engine = ScoringEngine()

        # Register shutdown
        atexit.register(self.shutdown)

        # Start scheduler if enabled
        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            self.scheduler.remove_all_jobs()

            interval = self.app.config.get("SCORING_SYNC_INTERVAL_MINUTES", 5)
            self.scheduler.add_job(
                func=self._rescore_finalized_weeks,
                trigger=IntervalTrigger(minutes=interval),
                id="rescore_finalized_weeks",
                name="Rescore Finalized Weeks",
                max_instances=1,
                coalesce=True,
                misfire_grace_time=60,
            )

            self.scheduler.start()
            self.is_running = True

            logger.info(f"Scheduler started, rescoring every {interval} minutes")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def find_finalized_weeks(self, since=None):
        """Weeks holding final games updated after ``since`` (all final weeks when None)"""
        query = db.session.query(Game.week).filter(Game.status == GAME_STATUS_FINAL)
        if since is not None:
            # Timestamps are stored as naive UTC
            query = query.filter(Game.updated_at > since.replace(tzinfo=None))
        rows = query.distinct().order_by(Game.week).all()
        return [row.week for row in rows]

    def _rescore_finalized_weeks(self):
        """Recompute every week with newly finalized games"""
        with self.app.app_context():
            started = datetime.now(timezone.utc)
            try:
                weeks = self.find_finalized_weeks(self.last_checked)

                for week in weeks:
                    summary = self.engine.rescore_finalized_week(week)
                    logger.info(
                        f"Week {week} rescored: {summary['scored']} leagues scored, "
                        f"{summary['failed']} failed"
                    )

                self.last_checked = started
                self.sync_stats["weeks_rescored"] += len(weeks)
                self._update_stats(True)

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error rescoring finalized weeks: {e}", exc_info=True)

    def _update_stats(self, success):
        self.sync_stats["last_run"] = datetime.now(timezone.utc)
        self.sync_stats["total_runs"] += 1
        if success:
            self.sync_stats["successful_runs"] += 1
        else:
            self.sync_stats["failed_runs"] += 1

    def get_status(self):
        """Scheduler state shown by `manage.py status`"""
        jobs = []
        if self.scheduler and self.is_running:
            for job in self.scheduler.get_jobs():
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": (
                            job.next_run_time.isoformat() if job.next_run_time else None
                        ),
                    }
                )

        return {"is_running": self.is_running, "jobs": jobs, "stats": dict(self.sync_stats)}


scheduler_service = SchedulerService()
