from functools import wraps

from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from pickem import limiter
from pickem.routes.api import bp
from pickem.services.pick_service import PickService
from pickem.services.scoring_service import ScoringEngine


def add_security_headers(f):
    """Add no-cache headers to API responses"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = f(*args, **kwargs)
        if hasattr(response, "headers"):
            response.headers["Cache-Control"] = (
                "no-store, no-cache, must-revalidate, max-age=0"
            )
        return response

    return decorated_function


def _bad_request(message):
    return jsonify({"error": message}), 400


def _recalculate_limit():
    return current_app.config.get("RECALCULATE_RATE_LIMIT", "10 per minute")


@bp.route("/health")
def health():
    return jsonify({"status": "ok"})


@bp.route("/stats/league")
@login_required
@add_security_headers
def league_stats():
    """Weekly and season standings for a league"""
    league_id = request.args.get("league_id", type=int)
    week = request.args.get("week", type=int)
    if league_id is None or week is None:
        return _bad_request("league_id and week are required")

    try:
        stats = ScoringEngine().get_league_stats(league_id, week)
    except ValueError as e:
        return _bad_request(str(e))

    return jsonify(stats)


@bp.route("/stats/user-picks")
@login_required
@add_security_headers
def user_picks_details():
    """A user's picks for a week with the points each one earned"""
    league_id = request.args.get("league_id", type=int)
    week = request.args.get("week", type=int)
    user_id = request.args.get("user_id", default=current_user.id, type=int)
    if league_id is None or week is None:
        return _bad_request("league_id and week are required")

    try:
        details = ScoringEngine().get_user_picks_details(league_id, week, user_id)
    except ValueError as e:
        return _bad_request(str(e))

    return jsonify(details)


@bp.route("/stats/recalculate-scores", methods=["POST"])
@login_required
@limiter.limit(_recalculate_limit)
@add_security_headers
def recalculate_scores():
    """Recompute stored scores for a league week, a league or all of the user's leagues"""
    data = request.get_json(silent=True) or {}

    try:
        summary = ScoringEngine().recalculate_scores(
            current_user.id,
            league_id=data.get("league_id"),
            week=data.get("week"),
            all_leagues=bool(data.get("all_leagues", False)),
        )
    except ValueError as e:
        return _bad_request(str(e))

    return jsonify({"success": summary["failed"] == 0, **summary})


@bp.route("/picks", methods=["POST"])
@login_required
@add_security_headers
def submit_picks():
    """Save the current user's picks for a week"""
    data = request.get_json(silent=True) or {}
    league_id = data.get("league_id")
    week = data.get("week")
    if league_id is None or week is None:
        return _bad_request("league_id and week are required")

    try:
        result = PickService().submit_picks(
            current_user.id, int(league_id), week, data.get("picks") or []
        )
    except ValueError as e:
        return _bad_request(str(e))

    return jsonify({"message": "Picks saved", **result})
