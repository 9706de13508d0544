from datetime import datetime, timezone

from pickem import db

GAME_STATUS_SCHEDULED = "scheduled"
GAME_STATUS_IN_PROGRESS = "in_progress"
GAME_STATUS_FINAL = "final"


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)

    # External ID from the sports-data provider
    espn_id = db.Column(db.String(50), unique=True, index=True)

    # Teams
    home_team = db.Column(db.String(64), nullable=False)
    away_team = db.Column(db.String(64), nullable=False)

    # Kickoff, stored as UTC
    game_time = db.Column(db.DateTime, nullable=False)
    week = db.Column(db.Integer, nullable=False)

    # Result fields, owned by the game sync
    status = db.Column(db.String(20), nullable=False, default=GAME_STATUS_SCHEDULED)
    winner = db.Column(db.String(64))  # NULL on a final game means a tie
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    picks = db.relationship("Pick", backref="game", lazy="dynamic")

    # Indexes
    __table_args__ = (
        db.Index("idx_game_week", "week"),
        db.Index("idx_game_time", "game_time"),
        db.CheckConstraint("home_team != away_team", name="different_teams"),
    )

    def __repr__(self):
        return f"<Game {self.away_team} @ {self.home_team} Week {self.week} ({self.status})>"

    @property
    def is_final(self):
        return self.status == GAME_STATUS_FINAL

    @staticmethod
    def get_games_for_week(week, newest_first=False):
        """Get all games for a week ordered by kickoff"""
        order = Game.game_time.desc() if newest_first else Game.game_time.asc()
        return Game.query.filter_by(week=week).order_by(order, Game.id).all()

    @staticmethod
    def get_weeks():
        """Get every distinct week that has at least one game"""
        rows = db.session.query(Game.week).distinct().order_by(Game.week).all()
        return [row.week for row in rows]
