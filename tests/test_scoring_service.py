import logging

import pytest
from sqlalchemy.exc import SQLAlchemyError

from pickem.models import Score
from pickem.models.game import GAME_STATUS_FINAL
from pickem.services.scoring_service import ScoringEngine, WeekScoreResult
from pickem.utils.errors import LeagueNotFound, PersistenceFailure
from tests.conftest import (
    MONDAY_NIGHT,
    SUNDAY_EARLY,
    SUNDAY_LATE,
    SUNDAY_NIGHT,
    THURSDAY_NIGHT,
    make_game,
    make_league,
    make_pick,
    make_user,
    scheduled_game,
)


def stored_scores(db, league_id, week):
    db.session.expire_all()
    return {
        score.user_id: score.points
        for score in Score.query.filter_by(league_id=league_id, week=week).all()
    }


def test_basic_week(db, users, league):
    alice = users["alice"]
    packers = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
    chiefs = make_game("Chiefs", "Ravens", SUNDAY_EARLY, winner="Chiefs")
    make_pick(alice, league, packers, "Packers")
    make_pick(alice, league, chiefs, "Chiefs")

    result = ScoringEngine().compute_week_scores(league.id, 1)

    assert result.status == WeekScoreResult.SCORED
    assert result.scores == {alice.id: 4}
    assert stored_scores(db, league.id, 1) == {alice.id: 4}


def test_tie_week(db, users, league):
    tie = make_game("Steelers", "Browns", SUNDAY_NIGHT, week=2, winner=None)
    make_pick(users["alice"], league, tie, "Steelers")
    make_pick(users["bob"], league, tie, "Browns")

    ScoringEngine().compute_week_scores(league.id, 2)

    assert stored_scores(db, league.id, 2) == {users["alice"].id: 1, users["bob"].id: 1}


def test_wrong_pick_gets_explicit_zero_row(db, users, league):
    game = make_game("Bears", "Vikings", MONDAY_NIGHT, week=3, winner="Vikings")
    make_pick(users["alice"], league, game, "Bears")

    ScoringEngine().compute_week_scores(league.id, 3)

    assert stored_scores(db, league.id, 3) == {users["alice"].id: 0}


def test_users_without_picks_get_no_row(db, users, league):
    game = make_game("Bears", "Vikings", MONDAY_NIGHT, winner="Vikings")
    make_pick(users["alice"], league, game, "Vikings")

    ScoringEngine().compute_week_scores(league.id, 1)

    assert set(stored_scores(db, league.id, 1)) == {users["alice"].id}


def test_featured_bonus_goes_to_latest_sunday_game(db, users, league):
    alice = users["alice"]
    games = [
        make_game("Bills", "Jets", SUNDAY_EARLY, winner="Bills"),
        make_game("Rams", "49ers", SUNDAY_LATE, winner="Rams"),
        make_game("Cowboys", "Eagles", SUNDAY_NIGHT, winner="Cowboys"),
    ]
    for game in games:
        make_pick(alice, league, game, game.home_team)

    details = ScoringEngine().get_user_picks_details(league.id, 1, alice.id)

    assert [d["points"] for d in details["details"]] == [2, 2, 3]


def test_simultaneous_late_sunday_games_share_the_bonus(db, users, league):
    alice = users["alice"]
    for home, away in (("Cowboys", "Eagles"), ("Raiders", "Broncos")):
        game = make_game(home, away, SUNDAY_NIGHT, winner=home)
        make_pick(alice, league, game, home)

    result = ScoringEngine().compute_week_scores(league.id, 1)

    assert result.scores[alice.id] == 3 + 3


def test_monday_game_takes_featured_slot(db, users, league):
    alice = users["alice"]
    sunday = make_game("Cowboys", "Eagles", SUNDAY_NIGHT, winner="Cowboys")
    monday = make_game("Bears", "Vikings", MONDAY_NIGHT, winner="Vikings")
    make_pick(alice, league, sunday, "Cowboys")
    make_pick(alice, league, monday, "Vikings")

    result = ScoringEngine().compute_week_scores(league.id, 1)

    assert result.scores[alice.id] == 2 + 3


def test_featured_game_counts_unfinished_games(db, users, league):
    alice = users["alice"]
    sunday = make_game("Cowboys", "Eagles", SUNDAY_NIGHT, winner="Cowboys")
    scheduled_game("Bears", "Vikings", MONDAY_NIGHT)
    make_pick(alice, league, sunday, "Cowboys")

    result = ScoringEngine().compute_week_scores(league.id, 1)

    assert result.scores[alice.id] == 2


def test_unfinished_games_do_not_count_yet(db, users, league):
    alice = users["alice"]
    final = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
    pending = scheduled_game("Cowboys", "Eagles", SUNDAY_NIGHT)
    make_pick(alice, league, final, "Packers")
    make_pick(alice, league, pending, "Cowboys")

    result = ScoringEngine().compute_week_scores(league.id, 1)

    assert result.scores == {alice.id: 1}


def test_week_without_final_games_is_a_no_op(db, users, league, caplog):
    game = scheduled_game("Cowboys", "Eagles", SUNDAY_NIGHT, week=4)
    make_pick(users["alice"], league, game, "Cowboys")
    db.session.add(Score(user_id=users["bob"].id, league_id=league.id, week=4, points=7))
    db.session.commit()

    with caplog.at_level(logging.INFO, logger="pickem.scoring"):
        result = ScoringEngine().compute_week_scores(league.id, 4)

    assert result.status == WeekScoreResult.NOT_SCOREABLE
    assert not result.scored
    # Existing rows are neither written nor cleared
    assert stored_scores(db, league.id, 4) == {users["bob"].id: 7}
    assert any(getattr(r, "event", None) == "week_not_scoreable" for r in caplog.records)


def test_week_with_no_games_is_a_no_op(db, league):
    result = ScoringEngine().compute_week_scores(league.id, 9)

    assert result.status == WeekScoreResult.NOT_SCOREABLE
    assert stored_scores(db, league.id, 9) == {}


def test_recompute_is_idempotent(db, users, league):
    alice, bob = users["alice"], users["bob"]
    packers = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
    chiefs = make_game("Chiefs", "Ravens", SUNDAY_NIGHT, winner="Chiefs")
    make_pick(alice, league, packers, "Packers")
    make_pick(alice, league, chiefs, "Chiefs")
    make_pick(bob, league, chiefs, "Ravens")

    engine = ScoringEngine()
    engine.compute_week_scores(league.id, 1)
    first = stored_scores(db, league.id, 1)
    engine.compute_week_scores(league.id, 1)
    second = stored_scores(db, league.id, 1)

    assert first == second == {alice.id: 4, bob.id: 0}
    assert Score.query.filter_by(league_id=league.id, week=1).count() == 2


def test_recompute_replaces_stale_total(db, users, league):
    alice = users["alice"]
    game = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
    make_pick(alice, league, game, "Packers")
    db.session.add(Score(user_id=alice.id, league_id=league.id, week=1, points=40))
    db.session.commit()

    ScoringEngine().compute_week_scores(league.id, 1)

    assert stored_scores(db, league.id, 1) == {alice.id: 1}


def test_picks_in_other_leagues_are_ignored(db, users, league):
    alice = users["alice"]
    other = make_league("Other", alice, members=[alice])
    game = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
    make_pick(alice, league, game, "Lions")
    make_pick(alice, other, game, "Packers")

    ScoringEngine().compute_week_scores(league.id, 1)

    assert stored_scores(db, league.id, 1) == {alice.id: 0}
    assert stored_scores(db, other.id, 1) == {}


def test_pick_with_missing_game_is_skipped(db, users, league, caplog):
    alice = users["alice"]
    game = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
    make_pick(alice, league, game, "Packers")
    orphan = make_pick(alice, league, 99999, "Raiders", week=1)

    with caplog.at_level(logging.WARNING, logger="pickem.scoring"):
        result = ScoringEngine().compute_week_scores(league.id, 1)

    assert result.skipped_picks == [orphan.id]
    assert result.scores == {alice.id: 1}
    skipped = [r for r in caplog.records if getattr(r, "event", None) == "pick_skipped"]
    assert len(skipped) == 1
    assert skipped[0].league_id == league.id
    assert skipped[0].week == 1


def test_persistence_failure_keeps_other_users(db, users, league, monkeypatch, caplog):
    alice_id, bob_id = users["alice"].id, users["bob"].id
    game = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
    make_pick(users["alice"], league, game, "Packers")
    make_pick(users["bob"], league, game, "Packers")
    league_id = league.id

    original = Score.upsert

    def flaky_upsert(user_id, league_id, week, points):
        if user_id == alice_id:
            raise SQLAlchemyError("database unavailable")
        return original(user_id, league_id, week, points)

    monkeypatch.setattr(Score, "upsert", staticmethod(flaky_upsert))

    with caplog.at_level(logging.ERROR, logger="pickem.scoring"):
        with pytest.raises(PersistenceFailure) as exc_info:
            ScoringEngine().compute_week_scores(league_id, 1)

    assert exc_info.value.context() == {"league_id": league_id, "week": 1, "user_id": alice_id}
    assert stored_scores(db, league_id, 1) == {bob_id: 1}
    assert any(getattr(r, "event", None) == "score_persist_failed" for r in caplog.records)


@pytest.mark.parametrize("week", [0, 19, "abc", None])
def test_invalid_week_is_rejected(league, week):
    with pytest.raises(ValueError):
        ScoringEngine().compute_week_scores(league.id, week)


def test_injected_logger_receives_events(db, users, league, caplog):
    game = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
    make_pick(users["alice"], league, game, "Packers")
    logger = logging.getLogger("tests.scoring")

    with caplog.at_level(logging.INFO, logger="tests.scoring"):
        ScoringEngine(logger=logger).compute_week_scores(league.id, 1)

    events = [r for r in caplog.records if r.name == "tests.scoring"]
    assert [r.event for r in events] == ["week_scored"]
    assert "league_id=" in events[0].getMessage()


class TestLeagueStats:
    def test_every_member_listed_once(self, db, users, league):
        alice, bob, carol = users["alice"], users["bob"], users["carol"]
        game = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
        make_pick(alice, league, game, "Packers")
        make_pick(bob, league, game, "Lions")

        stats = ScoringEngine().get_league_stats(league.id, 1)

        for key in ("weekly", "total"):
            assert sorted(entry["user_id"] for entry in stats[key]) == sorted(
                [alice.id, bob.id, carol.id]
            )
        assert stats["weekly"][0] == {
            "user_id": alice.id,
            "username": "alice",
            "profile_image": "https://img.example.com/alice.png",
            "points": 1,
        }
        assert stats["available"] is True

    def test_weekly_and_total_sorted_descending(self, db, users, league):
        alice, bob, carol = users["alice"], users["bob"], users["carol"]
        week1 = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
        week2 = make_game("Chiefs", "Ravens", MONDAY_NIGHT.replace(day=16), week=2, winner="Chiefs")
        make_pick(alice, league, week1, "Packers")
        make_pick(bob, league, week1, "Lions")
        make_pick(bob, league, week2, "Chiefs")
        make_pick(carol, league, week2, "Ravens")

        engine = ScoringEngine()
        engine.compute_week_scores(league.id, 1)
        stats = engine.get_league_stats(league.id, 2)

        assert [(e["username"], e["points"]) for e in stats["weekly"]] == [
            ("bob", 3),
            ("alice", 0),
            ("carol", 0),
        ]
        assert [(e["username"], e["points"]) for e in stats["total"]] == [
            ("bob", 3),
            ("alice", 1),
            ("carol", 0),
        ]

    def test_unscored_week_is_not_available(self, db, users, league):
        game = scheduled_game("Packers", "Lions", THURSDAY_NIGHT)
        make_pick(users["alice"], league, game, "Packers")

        stats = ScoringEngine().get_league_stats(league.id, 1)

        assert stats["available"] is False
        assert [e["points"] for e in stats["weekly"]] == [0, 0, 0]

    def test_failed_recompute_serves_stored_numbers(self, db, users, league, monkeypatch):
        alice_id = users["alice"].id
        game = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
        make_pick(users["alice"], league, game, "Packers")
        engine = ScoringEngine()
        engine.compute_week_scores(league.id, 1)

        def broken_upsert(*args, **kwargs):
            raise SQLAlchemyError("database unavailable")

        monkeypatch.setattr(Score, "upsert", staticmethod(broken_upsert))
        stats = engine.get_league_stats(league.id, 1)

        assert stats["available"] is True
        assert {e["user_id"]: e["points"] for e in stats["weekly"]}[alice_id] == 1

    def test_partial_first_run_is_not_available(self, db, users, league, monkeypatch):
        alice_id, bob_id = users["alice"].id, users["bob"].id
        week1 = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
        week2 = make_game("Chiefs", "Ravens", THURSDAY_NIGHT.replace(day=12), week=2, winner="Chiefs")
        make_pick(users["alice"], league, week1, "Packers")
        make_pick(users["bob"], league, week1, "Packers")
        make_pick(users["bob"], league, week2, "Chiefs")
        engine = ScoringEngine()
        engine.compute_week_scores(league.id, 2)

        original = Score.upsert

        def flaky_upsert(user_id, league_id, week, points):
            if user_id == alice_id:
                raise SQLAlchemyError("database unavailable")
            return original(user_id, league_id, week, points)

        monkeypatch.setattr(Score, "upsert", staticmethod(flaky_upsert))
        stats = engine.get_league_stats(league.id, 1)

        # Bob's row was saved, but the week never scored completely
        assert stored_scores(db, league.id, 1) == {bob_id: 1}
        assert stats["available"] is False
        assert [e["points"] for e in stats["weekly"]] == [0, 0, 0]
        assert {e["user_id"]: e["points"] for e in stats["total"]}[bob_id] == 1

        monkeypatch.setattr(Score, "upsert", staticmethod(original))
        stats = engine.get_league_stats(league.id, 1)

        assert stats["available"] is True
        assert {e["user_id"]: e["points"] for e in stats["weekly"]} == {
            alice_id: 1,
            bob_id: 1,
            users["carol"].id: 0,
        }
        assert {e["user_id"]: e["points"] for e in stats["total"]}[bob_id] == 2

    def test_member_without_profile_still_listed(self, db, users, league):
        dave = make_user("dave")
        league.add_member(dave)
        db.session.commit()

        stats = ScoringEngine().get_league_stats(league.id, 1)

        assert {"user_id": dave.id, "username": "dave", "profile_image": None, "points": 0} in stats["total"]

    def test_unknown_league(self, app):
        with pytest.raises(LeagueNotFound):
            ScoringEngine().get_league_stats(404, 1)


class TestUserPicksDetails:
    def test_detail_fields(self, db, users, league):
        alice = users["alice"]
        game = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
        make_pick(alice, league, game, "Lions")

        details = ScoringEngine().get_user_picks_details(league.id, 1, alice.id)

        assert details["details"] == [
            {
                "game_id": game.id,
                "home_team": "Packers",
                "away_team": "Lions",
                "pick": "Lions",
                "winner": "Packers",
                "correct": False,
                "points": 0,
                "date": "2025-09-05T00:20:00+00:00",
                "status": GAME_STATUS_FINAL,
            }
        ]

    def test_tie_counts_as_correct(self, db, users, league):
        alice = users["alice"]
        tie = make_game("Steelers", "Browns", SUNDAY_NIGHT, winner=None)
        make_pick(alice, league, tie, "Browns")

        detail = ScoringEngine().get_user_picks_details(league.id, 1, alice.id)["details"][0]

        assert detail["correct"] is True
        assert detail["points"] == 1
        assert detail["winner"] is None

    def test_sum_matches_stored_score(self, db, users, league):
        games = [
            make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers"),
            make_game("Bills", "Jets", SUNDAY_EARLY, winner="Jets"),
            make_game("Steelers", "Browns", SUNDAY_LATE, winner=None),
            make_game("Cowboys", "Eagles", SUNDAY_NIGHT, winner="Eagles"),
            make_game("Bears", "Vikings", MONDAY_NIGHT, winner="Bears"),
        ]
        choices = {
            "alice": ["Packers", "Jets", "Steelers", "Eagles", "Bears"],
            "bob": ["Lions", "Bills", "Browns", "Cowboys", "Bears"],
            "carol": ["Packers", "Bills", "Steelers", "Eagles", "Vikings"],
        }
        for name, teams in choices.items():
            for game, team in zip(games, teams):
                make_pick(users[name], league, game, team)

        engine = ScoringEngine()
        engine.compute_week_scores(league.id, 1)
        stored = stored_scores(db, league.id, 1)

        for name in choices:
            user_id = users[name].id
            details = engine.get_user_picks_details(league.id, 1, user_id)
            assert sum(d["points"] for d in details["details"]) == stored[user_id]
            assert details["total_points"] == stored[user_id]

        # Monday is the featured game, so Sunday night earns the regular value
        assert stored == {users["alice"].id: 1 + 2 + 1 + 2 + 3, users["bob"].id: 1 + 3, users["carol"].id: 1 + 1 + 2}

    def test_user_without_picks(self, db, users, league):
        details = ScoringEngine().get_user_picks_details(league.id, 1, users["carol"].id)

        assert details["details"] == []
        assert details["total_points"] == 0

    def test_unscored_week_is_flagged(self, db, users, league):
        alice = users["alice"]
        game = scheduled_game("Cowboys", "Eagles", SUNDAY_NIGHT)
        make_pick(alice, league, game, "Cowboys")
        engine = ScoringEngine()

        details = engine.get_user_picks_details(league.id, 1, alice.id)

        assert details["available"] is False
        assert details["details"][0]["status"] == "scheduled"

        game.status = GAME_STATUS_FINAL
        game.winner = "Cowboys"
        db.session.commit()
        engine.compute_week_scores(league.id, 1)

        details = engine.get_user_picks_details(league.id, 1, alice.id)

        assert details["available"] is True
        assert details["total_points"] == 3


def test_slow_run_warning_carries_league_and_week(app, db, users, league, caplog):
    game = make_game("Packers", "Lions", THURSDAY_NIGHT, winner="Packers")
    make_pick(users["alice"], league, game, "Packers")
    app.config["SLOW_FUNCTION_THRESHOLD"] = -1

    with caplog.at_level(logging.WARNING, logger="pickem.scoring"):
        ScoringEngine().compute_week_scores(league.id, 1)

    slow = [r for r in caplog.records if getattr(r, "event", None) == "slow_function"]
    assert len(slow) == 1
    assert slow[0].league_id == league.id
    assert slow[0].week == 1
    assert "compute_week_scores" in slow[0].getMessage()
