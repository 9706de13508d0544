from datetime import datetime, timezone

from sqlalchemy import func

from pickem import db


class Score(db.Model):
    """Point total for one user in one league for one week"""

    __tablename__ = "scores"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    week = db.Column(db.Integer, nullable=False)
    points = db.Column(db.Integer, nullable=False, default=0)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "league_id", "week", name="unique_user_league_week_score"
        ),
        db.CheckConstraint("points >= 0", name="non_negative_points"),
        db.Index("idx_score_league_week", "league_id", "week"),
    )

    def __repr__(self):
        return f"<Score user_id={self.user_id} league_id={self.league_id} week={self.week} points={self.points}>"

    @staticmethod
    def upsert(user_id, league_id, week, points):
        """Store an absolute point total, replacing any earlier value"""
        from pickem.utils.db_utils import upsert

        upsert(
            Score,
            ("user_id", "league_id", "week"),
            {
                "user_id": user_id,
                "league_id": league_id,
                "week": week,
                "points": points,
            },
            ("points",),
        )

    @staticmethod
    def get_week_points(league_id, week):
        """Map user_id -> points for one league week"""
        rows = (
            db.session.query(Score.user_id, Score.points)
            .filter(Score.league_id == league_id, Score.week == week)
            .all()
        )
        return {row.user_id: row.points for row in rows}

    @staticmethod
    def get_season_points(league_id):
        """Map user_id -> points summed over the league weeks that scored completely"""
        from .scored_week import ScoredWeek

        rows = (
            db.session.query(Score.user_id, func.sum(Score.points).label("total"))
            .join(
                ScoredWeek,
                (ScoredWeek.league_id == Score.league_id)
                & (ScoredWeek.week == Score.week),
            )
            .filter(Score.league_id == league_id)
            .group_by(Score.user_id)
            .all()
        )
        return {row.user_id: int(row.total or 0) for row in rows}
