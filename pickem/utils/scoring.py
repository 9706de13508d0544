"""
Point rule for pick'em scoring

A correct pick is worth points according to the league-local day of week of
the game's kickoff. The game with the latest kickoff of the week is the
featured game; a correct pick on it is worth the Monday value when it is
played on Sunday. Every pick on a tied game earns the tie value.
"""

from pickem.utils.timezone_utils import convert_to_league_time, ensure_utc

# datetime.weekday() values
MONDAY = 0
THURSDAY = 3
FRIDAY = 4
SATURDAY = 5
SUNDAY = 6

TIE_POINTS = 1
DEFAULT_POINTS = 1
SUNDAY_POINTS = 2
FEATURED_SUNDAY_POINTS = 3

DAY_POINTS = {
    THURSDAY: 1,
    FRIDAY: 1,
    SATURDAY: 1,
    SUNDAY: SUNDAY_POINTS,
    MONDAY: 3,
}


def league_weekday(kickoff, tz=None):
    """Day of week (Monday=0) of a kickoff in the league time zone"""
    return convert_to_league_time(kickoff, tz).weekday()


def find_featured_kickoff(games):
    """Latest kickoff among the games of a week, or None for an empty week"""
    kickoffs = [ensure_utc(game.game_time) for game in games if game.game_time]
    return max(kickoffs) if kickoffs else None


def is_featured_game(game, featured_kickoff):
    if featured_kickoff is None or game.game_time is None:
        return False
    return ensure_utc(game.game_time) == featured_kickoff


def points_for_correct_pick(game, featured_kickoff, tz=None):
    """Points for a correct pick on a game that had a winner"""
    day = league_weekday(game.game_time, tz)

    if day == SUNDAY and is_featured_game(game, featured_kickoff):
        return FEATURED_SUNDAY_POINTS

    return DAY_POINTS.get(day, DEFAULT_POINTS)


def calculate_pick_points(picked_team, game, featured_kickoff, tz=None):
    """
    Score one pick.

    Returns:
        (correct, points). Games that are not final give (False, 0); a tie
        gives (True, TIE_POINTS) whichever team was picked.

    Args:
        picked_team: Team name the user selected
        game: Game the pick was made on
        featured_kickoff: Latest kickoff of the game's week (see find_featured_kickoff)
        tz: League time zone, defaults to the configured one
    """
    if game is None or not game.is_final:
        return False, 0

    if game.winner is None:
        return True, TIE_POINTS

    if picked_team != game.winner:
        return False, 0

    return True, points_for_correct_pick(game, featured_kickoff, tz)
