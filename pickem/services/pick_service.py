"""
Pick submission

Saves a user's picks for a week and rescores that league week right after,
so standings always reflect the latest picks.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from pickem import db
from pickem.models import Game, League, Pick
from pickem.services.scoring_service import ScoringEngine
from pickem.utils.errors import AuthorizationFailure, LeagueNotFound, PicksLocked
from pickem.utils.timezone_utils import ensure_utc

logger = logging.getLogger(__name__)


class PickService:
    def __init__(self, engine=None):
        self.engine = engine or ScoringEngine()

    def submit_picks(self, user_id, league_id, week, picks, now=None):
        """
        Save picks and rescore the league week.

        Args:
            user_id: Submitting user
            league_id: League the picks belong to
            week: Week number
            picks: List of {"game_id", "pick"} dicts
            now: Submission time, defaults to the current UTC time

        Raises:
            ValueError: empty submission, or a game/team outside the week
            AuthorizationFailure: user is not a league member
            PicksLocked: the earliest game of the week has kicked off
        """
        week = self.engine.validate_week(week)
        if not picks:
            raise ValueError("At least one pick is required")

        league = db.session.get(League, league_id)
        if league is None:
            raise LeagueNotFound(league_id)
        if not league.is_user_member(user_id):
            raise AuthorizationFailure(user_id, league_id)

        games = {game.id: game for game in Game.get_games_for_week(week)}
        now = now or datetime.now(timezone.utc)
        if games and now >= min(ensure_utc(game.game_time) for game in games.values()):
            raise PicksLocked(week)

        entries = []
        for entry in picks:
            try:
                game_id = int(entry.get("game_id"))
            except (AttributeError, TypeError, ValueError):
                raise ValueError(f"Invalid pick entry: {entry!r}") from None

            game = games.get(game_id)
            if game is None:
                raise ValueError(f"Game {game_id} is not part of week {week}")

            team = entry.get("pick")
            if team not in (game.home_team, game.away_team):
                raise ValueError(f"{team!r} is not playing in game {game_id}")
            entries.append((game_id, team))

        try:
            for game_id, team in entries:
                Pick.upsert(user_id, league_id, game_id, week, team)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(
                f"Failed to save picks for user {user_id} in league {league_id}, week {week}: {e}"
            )
            raise

        logger.info(
            f"Saved {len(entries)} picks for user {user_id} in league {league_id}, week {week}"
        )

        result = self.engine.compute_week_scores(league_id, week)
        return {"saved": len(entries), "week_status": result.status}
