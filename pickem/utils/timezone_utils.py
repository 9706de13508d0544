"""
Timezone utility functions for the pick'em scoring service
"""

from datetime import timezone

import pytz
from flask import current_app, has_app_context

DEFAULT_LEAGUE_UTC_OFFSET_HOURS = -4


def get_league_timezone(offset_hours=None):
    """
    Get the fixed-offset league time zone used to decide a game's day of week.

    Args:
        offset_hours: Hours from UTC; read from LEAGUE_UTC_OFFSET_HOURS when omitted
    """
    if offset_hours is None:
        if has_app_context():
            offset_hours = current_app.config.get(
                "LEAGUE_UTC_OFFSET_HOURS", DEFAULT_LEAGUE_UTC_OFFSET_HOURS
            )
        else:
            offset_hours = DEFAULT_LEAGUE_UTC_OFFSET_HOURS

    return pytz.FixedOffset(int(round(float(offset_hours) * 60)))


def ensure_utc(dt):
    """Attach UTC to a naive datetime, convert an aware one"""
    if dt is None:
        return None

    # If datetime is naive, assume it's UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def convert_to_league_time(dt, tz=None):
    """Convert a datetime to the league time zone"""
    if dt is None:
        return None

    return ensure_utc(dt).astimezone(tz or get_league_timezone())
