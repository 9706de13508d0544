from pickem import db  # noqa: F401 - imported for model imports

from .game import Game
from .league import League
from .league_member import LeagueMember
from .pick import Pick
from .score import Score
from .scored_week import ScoredWeek
from .user import User

__all__ = [
    "User",
    "League",
    "LeagueMember",
    "Game",
    "Pick",
    "Score",
    "ScoredWeek",
]
