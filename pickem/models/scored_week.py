from datetime import datetime, timezone

from pickem import db


class ScoredWeek(db.Model):
    """Marks a league week whose scores were all saved by one computation"""

    __tablename__ = "scored_weeks"

    id = db.Column(db.Integer, primary_key=True)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    week = db.Column(db.Integer, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("league_id", "week", name="unique_league_week_scored"),
    )

    def __repr__(self):
        return f"<ScoredWeek league_id={self.league_id} week={self.week}>"

    @staticmethod
    def mark(league_id, week):
        """Record a complete computation; updated_at holds the latest one"""
        from pickem.utils.db_utils import upsert

        upsert(
            ScoredWeek,
            ("league_id", "week"),
            {"league_id": league_id, "week": week},
            (),
        )

    @staticmethod
    def is_scored(league_id, week):
        return (
            db.session.query(ScoredWeek.id)
            .filter_by(league_id=league_id, week=week)
            .first()
            is not None
        )
