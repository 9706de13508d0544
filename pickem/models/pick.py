from datetime import datetime, timezone

from pickem import db


class Pick(db.Model):
    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)

    # Pick identification
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    week = db.Column(db.Integer, nullable=False)

    # Selected team name
    pick = db.Column(db.String(64), nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "game_id", "league_id", name="unique_user_game_league_pick"
        ),
        db.Index("idx_pick_league_week", "league_id", "week"),
        db.Index("idx_pick_game", "game_id"),
    )

    def __repr__(self):
        return f"<Pick user_id={self.user_id} game_id={self.game_id} team={self.pick}>"

    @staticmethod
    def upsert(user_id, league_id, game_id, week, pick):
        """Save a pick, overwriting the user's earlier pick for the same game and league"""
        from pickem.utils.db_utils import upsert

        upsert(
            Pick,
            ("user_id", "game_id", "league_id"),
            {
                "user_id": user_id,
                "league_id": league_id,
                "game_id": game_id,
                "week": week,
                "pick": pick,
            },
            ("week", "pick"),
        )

    @staticmethod
    def get_for_league_week(league_id, week, user_id=None):
        """
        Get picks for a league and week paired with their game.

        Uses an outer join so a pick whose game row is missing comes back
        as ``(pick, None)`` instead of silently disappearing.
        """
        from .game import Game

        query = (
            db.session.query(Pick, Game)
            .outerjoin(Game, Pick.game_id == Game.id)
            .filter(Pick.league_id == league_id, Pick.week == week)
        )
        if user_id is not None:
            query = query.filter(Pick.user_id == user_id)

        return query.order_by(Game.game_time, Pick.id).all()
