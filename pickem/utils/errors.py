"""
Errors raised by the scoring service
"""


class ScoringError(Exception):
    """Base class for scoring service errors"""


class PersistenceFailure(ScoringError):
    """Saving a score row failed"""

    def __init__(self, league_id, week, user_id=None, cause=None):
        self.league_id = league_id
        self.week = week
        self.user_id = user_id
        self.cause = cause

        message = f"Failed to save scores for league {league_id}, week {week}"
        if user_id is not None:
            message += f", user {user_id}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)

    def context(self):
        return {"league_id": self.league_id, "week": self.week, "user_id": self.user_id}


class AuthorizationFailure(ScoringError):
    """Requester may not act on a league"""

    def __init__(self, user_id, league_id=None, message=None):
        self.user_id = user_id
        self.league_id = league_id
        if message is None:
            message = f"User {user_id} is not a member of league {league_id}"
        super().__init__(message)


class PicksLocked(ScoringError):
    """The week has already kicked off"""

    def __init__(self, week):
        self.week = week
        super().__init__(f"Picks for week {week} are closed")


class LeagueNotFound(ScoringError):
    def __init__(self, league_id):
        self.league_id = league_id
        super().__init__(f"League {league_id} not found")
