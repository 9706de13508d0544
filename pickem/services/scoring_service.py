"""
Scoring Engine for the pick'em scoring service

Turns the picks of a league week and the finalized game results into one
Score row per user, and serves the leaderboard and pick-detail views from
the same point rule so they never disagree with the stored totals.
"""

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from pickem import db
from pickem.models import Game, League, Pick, Score, ScoredWeek, User
from pickem.utils.errors import (
    AuthorizationFailure,
    LeagueNotFound,
    PersistenceFailure,
)
from pickem.utils.logging_config import ContextualLogger, get_logger
from pickem.utils.performance import timer
from pickem.utils.scoring import calculate_pick_points, find_featured_kickoff
from pickem.utils.timezone_utils import ensure_utc, get_league_timezone

DEFAULT_MIN_WEEK = 1
DEFAULT_MAX_WEEK = 18


class WeekScoreResult:
    """Outcome of scoring one league week"""

    SCORED = "scored"
    NOT_SCOREABLE = "not_scoreable"

    def __init__(self, league_id, week, status, scores=None, skipped_picks=None):
        self.league_id = league_id
        self.week = week
        self.status = status
        self.scores = scores or {}
        self.skipped_picks = skipped_picks or []

    @property
    def scored(self):
        return self.status == self.SCORED


class ScoringEngine:
    """Computes, persists and reports weekly pick'em scores"""

    def __init__(self, logger=None, tz=None):
        self.log = ContextualLogger(logger or get_logger("pickem.scoring"))
        self._tz = tz

    @property
    def tz(self):
        return self._tz or get_league_timezone()

    def validate_week(self, week):
        """Coerce a week number and check it is inside the season"""
        min_week, max_week = DEFAULT_MIN_WEEK, DEFAULT_MAX_WEEK
        if has_app_context():
            min_week = current_app.config.get("MIN_WEEK", DEFAULT_MIN_WEEK)
            max_week = current_app.config.get("MAX_WEEK", DEFAULT_MAX_WEEK)

        try:
            week = int(week)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid week: {week!r}") from None

        if not min_week <= week <= max_week:
            raise ValueError(f"Week must be between {min_week} and {max_week}, got {week}")
        return week

    def _load_week(self, league_id, week, user_id=None):
        """
        Read everything needed to score a league week.

        Returns:
            (games newest kickoff first, featured kickoff, [(pick, game or None)])
        """
        games = Game.get_games_for_week(week, newest_first=True)
        featured_kickoff = find_featured_kickoff(games)
        pick_rows = Pick.get_for_league_week(league_id, week, user_id=user_id)
        return games, featured_kickoff, pick_rows

    @timer(context=("league_id", "week"))
    def compute_week_scores(self, league_id, week):
        """
        Recompute and store every user's point total for a league week.

        A week without any final game is not scoreable yet: nothing is
        written or cleared. Otherwise each user with picks gets their total
        upserted, including explicit zeros.

        Raises:
            PersistenceFailure: a user's score could not be saved; the
                other users' scores from this run are still stored
        """
        week = self.validate_week(week)
        log = self.log.bind(league_id=league_id, week=week)

        games, featured_kickoff, pick_rows = self._load_week(league_id, week)

        if not any(game.is_final for game in games):
            log.info(
                "No finished games, week is not scoreable yet",
                extra={"event": "week_not_scoreable"},
            )
            return WeekScoreResult(league_id, week, WeekScoreResult.NOT_SCOREABLE)

        log.debug(f"Scoring {len(pick_rows)} picks against {len(games)} games")

        totals = {}
        skipped = []
        for pick, game in pick_rows:
            if game is None:
                log.warning(
                    f"Pick {pick.id} references missing game {pick.game_id}, skipping",
                    extra={
                        "event": "pick_skipped",
                        "pick_id": pick.id,
                        "user_id": pick.user_id,
                    },
                )
                skipped.append(pick.id)
                continue

            _, points = calculate_pick_points(pick.pick, game, featured_kickoff, self.tz)
            totals[pick.user_id] = totals.get(pick.user_id, 0) + points

        failure = None
        for user_id in sorted(totals):
            try:
                Score.upsert(user_id, league_id, week, totals[user_id])
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                log.error(
                    f"Failed to save score for user {user_id}: {e}",
                    extra={"event": "score_persist_failed", "user_id": user_id},
                )
                if failure is None:
                    failure = PersistenceFailure(league_id, week, user_id, e)
                continue

            log.debug(
                f"Saved score for user {user_id}: {totals[user_id]} points",
                extra={"event": "score_saved", "user_id": user_id},
            )

        if failure is not None:
            raise failure

        try:
            ScoredWeek.mark(league_id, week)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error(
                f"Failed to mark week as scored: {e}",
                extra={"event": "score_persist_failed"},
            )
            raise PersistenceFailure(league_id, week, cause=e)

        log.info(
            f"Scored week for {len(totals)} users",
            extra={"event": "week_scored", "users": len(totals)},
        )
        return WeekScoreResult(
            league_id, week, WeekScoreResult.SCORED, totals, skipped
        )

    def get_league_stats(self, league_id, week):
        """
        Weekly and season-to-date standings for every league member.

        The week is recomputed first; if saving fails the last stored
        numbers are served. Until one computation of the week has saved
        every user's score, ``available`` is False and the week shows no
        points.
        """
        week = self.validate_week(week)
        league = db.session.get(League, league_id)
        if league is None:
            raise LeagueNotFound(league_id)

        try:
            self.compute_week_scores(league_id, week)
        except PersistenceFailure as e:
            self.log.bind(league_id=league_id, week=week).error(
                f"Serving stored standings after failed recompute: {e}",
                extra={"event": "stats_recompute_failed"},
            )

        # Rows left by a partial first run are not shown
        available = ScoredWeek.is_scored(league_id, week)
        weekly_points = Score.get_week_points(league_id, week) if available else {}
        season_points = Score.get_season_points(league_id)
        members = league.get_members()

        def standings(points_by_user):
            entries = [
                {
                    "user_id": member.user_id,
                    "username": member.user.username,
                    "profile_image": member.user.profile_image,
                    "points": points_by_user.get(member.user_id, 0),
                }
                for member in members
            ]
            # Stable: equal points keep membership order
            return sorted(entries, key=lambda entry: entry["points"], reverse=True)

        return {
            "league_id": league_id,
            "week": week,
            "available": available,
            "weekly": standings(weekly_points),
            "total": standings(season_points),
        }

    def get_user_picks_details(self, league_id, week, user_id):
        """Each of a user's picks for the week with its points under the point rule"""
        week = self.validate_week(week)
        log = self.log.bind(league_id=league_id, week=week, user_id=user_id)

        _, featured_kickoff, pick_rows = self._load_week(league_id, week, user_id=user_id)

        details = []
        for pick, game in pick_rows:
            if game is None:
                log.warning(
                    f"Pick {pick.id} references missing game {pick.game_id}, skipping",
                    extra={"event": "pick_skipped", "pick_id": pick.id},
                )
                continue

            correct, points = calculate_pick_points(
                pick.pick, game, featured_kickoff, self.tz
            )
            details.append(
                {
                    "game_id": game.id,
                    "home_team": game.home_team,
                    "away_team": game.away_team,
                    "pick": pick.pick,
                    "winner": game.winner,
                    "correct": correct,
                    "points": points,
                    "date": ensure_utc(game.game_time).isoformat(),
                    "status": game.status,
                }
            )

        return {
            "league_id": league_id,
            "week": week,
            "user_id": user_id,
            "available": ScoredWeek.is_scored(league_id, week),
            "details": details,
            "total_points": sum(detail["points"] for detail in details),
        }

    def authorize(self, requester_id, league_ids):
        """Check the requester belongs to every league, unless a site admin"""
        requester = db.session.get(User, requester_id)
        if requester is None:
            raise AuthorizationFailure(requester_id, message=f"Unknown user {requester_id}")

        for league_id in league_ids:
            if db.session.get(League, league_id) is None:
                raise LeagueNotFound(league_id)
            if not requester.is_admin and not requester.is_member_of_league(league_id):
                raise AuthorizationFailure(requester_id, league_id)

        return requester

    def recalculate_scores(self, requester_id, league_id=None, week=None, all_leagues=False):
        """
        Administrative recompute.

        Scopes: one league week, every week of one league, or every league
        the requester belongs to. Authorization is checked before anything
        is computed.
        """
        if all_leagues:
            requester = db.session.get(User, requester_id)
            if requester is None:
                raise AuthorizationFailure(
                    requester_id, message=f"Unknown user {requester_id}"
                )
            league_ids = requester.get_league_ids()
        elif league_id is not None:
            league_ids = [int(league_id)]
        else:
            raise ValueError("league_id or all_leagues is required")

        weeks = [self.validate_week(week)] if week is not None else Game.get_weeks()

        self.authorize(requester_id, league_ids)

        self.log.info(
            f"Recalculating {len(league_ids)} leagues over {len(weeks)} weeks",
            extra={"event": "recalculate_started", "user_id": requester_id},
        )
        return self._run_units(
            (league, unit_week) for league in league_ids for unit_week in weeks
        )

    def rescore_finalized_week(self, week):
        """Recompute a week for every league that has members"""
        week = self.validate_week(week)
        league_ids = League.get_ids_with_members()
        return self._run_units((league_id, week) for league_id in league_ids)

    def _run_units(self, units):
        summary = {"units": [], "scored": 0, "not_scoreable": 0, "failed": 0}

        for league_id, week in units:
            unit = {"league_id": league_id, "week": week}
            try:
                result = self.compute_week_scores(league_id, week)
            except Exception as e:
                db.session.rollback()
                self.log.bind(league_id=league_id, week=week).error(
                    f"Recalculation failed: {e}",
                    extra={"event": "recalculate_unit_failed"},
                    exc_info=True,
                )
                unit.update({"status": "failed", "error": str(e)})
                summary["failed"] += 1
            else:
                unit.update({"status": result.status, "users": len(result.scores)})
                summary[result.status] += 1

            summary["units"].append(unit)

        return summary
