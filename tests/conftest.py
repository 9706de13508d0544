from datetime import datetime

import pytest

from pickem import create_app
from pickem import db as _db
from pickem.models import Game, League, LeagueMember, Pick, User
from pickem.models.game import GAME_STATUS_FINAL, GAME_STATUS_SCHEDULED

# 2025 week 1, kickoffs in UTC. League time is UTC-4.
THURSDAY_NIGHT = datetime(2025, 9, 5, 0, 20)  # Thu 20:20 local
FRIDAY_NIGHT = datetime(2025, 9, 6, 0, 0)  # Fri 20:00 local
SATURDAY_AFTERNOON = datetime(2025, 9, 6, 17, 0)  # Sat 13:00 local
SUNDAY_EARLY = datetime(2025, 9, 7, 17, 0)  # Sun 13:00 local
SUNDAY_LATE = datetime(2025, 9, 7, 20, 25)  # Sun 16:25 local
SUNDAY_NIGHT = datetime(2025, 9, 8, 0, 20)  # Sun 20:20 local
MONDAY_NIGHT = datetime(2025, 9, 9, 0, 15)  # Mon 20:15 local


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, user):
    """Authenticate the test client's session as ``user``"""
    with client.session_transaction() as sess:
        sess["_user_id"] = str(user.id)
        sess["_fresh"] = True


def make_user(username, **kwargs):
    user = User(username=username, email=f"{username}@example.com", **kwargs)
    _db.session.add(user)
    _db.session.commit()
    return user


def make_league(name, admin, members=()):
    league = League(name=name, admin_id=admin.id)
    _db.session.add(league)
    _db.session.flush()
    for member in members:
        _db.session.add(LeagueMember(user_id=member.id, league_id=league.id))
    _db.session.commit()
    return league


_espn_ids = iter(range(1, 100000))


def make_game(home, away, game_time, week=1, status=GAME_STATUS_FINAL, winner=None):
    game = Game(
        espn_id=str(next(_espn_ids)),
        home_team=home,
        away_team=away,
        game_time=game_time,
        week=week,
        status=status,
        winner=winner,
    )
    _db.session.add(game)
    _db.session.commit()
    return game


def make_pick(user, league, game, team, week=None):
    pick = Pick(
        user_id=user.id,
        league_id=league.id,
        game_id=game.id if isinstance(game, Game) else game,
        week=week if week is not None else game.week,
        pick=team,
    )
    _db.session.add(pick)
    _db.session.commit()
    return pick


def scheduled_game(home, away, game_time, week=1):
    return make_game(home, away, game_time, week=week, status=GAME_STATUS_SCHEDULED)


@pytest.fixture
def users(app):
    return {
        "alice": make_user("alice", profile_image="https://img.example.com/alice.png"),
        "bob": make_user("bob"),
        "carol": make_user("carol"),
    }


@pytest.fixture
def league(users):
    return make_league(
        "Sunday Squad",
        users["alice"],
        members=[users["alice"], users["bob"], users["carol"]],
    )
