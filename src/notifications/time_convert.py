# slotbell - Discord Slot Notification Bot
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Time Conversion Module

Converts wall-clock times between named timezones for a specific calendar
day. Conversions always go through a concrete localized datetime so DST and
half-hour or 45-minute offsets are handled by the tz database, never by
integer hour arithmetic.
"""

import logging
from datetime import date, datetime, time
from typing import Optional

import pytz

from .errors import InvalidTimezoneError

logger = logging.getLogger("slotbell.notifications.time_convert")


def validate_timezone(tz_name: str) -> bool:
    """
    Validate that a timezone name is valid.

    Args:
        tz_name: IANA timezone name (e.g., "America/Los_Angeles")

    Returns:
        True if valid, False otherwise
    """
    if not isinstance(tz_name, str) or not tz_name:
        return False
    try:
        pytz.timezone(tz_name)
        return True
    except pytz.UnknownTimeZoneError:
        return False


def resolve_timezone(tz_name: str, fallback: str) -> str:
    """Return ``tz_name`` if it is a known zone, otherwise ``fallback``."""
    return tz_name if validate_timezone(tz_name) else fallback


def get_timezone(tz_name: str) -> pytz.BaseTzInfo:
    """
    Resolve a timezone name.

    Raises:
        InvalidTimezoneError: If the name is not a known zone
    """
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        raise InvalidTimezoneError(tz_name) from None


def today_in(tz_name: str, now: Optional[datetime] = None) -> date:
    """
    Calendar date in a timezone.

    Args:
        tz_name: IANA timezone name
        now: Aware datetime to use instead of the current time

    Returns:
        The local date at ``now`` in the given zone
    """
    tz = get_timezone(tz_name)
    if now is None:
        return datetime.now(tz).date()
    return now.astimezone(tz).date()


def convert_datetime(
    hour: int,
    minute: int,
    from_tz: str,
    to_tz: str,
    reference_date: date,
) -> datetime:
    """
    Reproject a wall-clock time on a given day from one zone into another.

    Args:
        hour: Hour in ``from_tz``
        minute: Minute in ``from_tz``
        from_tz: Source IANA timezone
        to_tz: Target IANA timezone
        reference_date: Calendar day the time is anchored to in ``from_tz``

    Returns:
        Aware datetime in ``to_tz`` (its date may differ from reference_date)
    """
    source = get_timezone(from_tz)
    target = get_timezone(to_tz)

    naive = datetime.combine(reference_date, time(hour, minute))
    # is_dst=None would raise inside DST gaps; pick the standard-time reading
    localized = source.localize(naive, is_dst=False)
    return target.normalize(localized.astimezone(target))


def convert_time(
    hour: int,
    minute: int,
    from_tz: str,
    to_tz: str,
    reference_date: date,
) -> tuple[int, int]:
    """Convert hour:minute from one timezone into another for a given day."""
    converted = convert_datetime(hour, minute, from_tz, to_tz, reference_date)
    return converted.hour, converted.minute


def day_offset(
    hour: int,
    minute: int,
    from_tz: str,
    to_tz: str,
    reference_date: date,
) -> int:
    """
    Calendar-day shift caused by a conversion (-1, 0 or +1).

    Useful for flagging slot times near midnight that land on another day
    in the target zone.
    """
    converted = convert_datetime(hour, minute, from_tz, to_tz, reference_date)
    return (converted.date() - reference_date).days


def convert_rule(
    hour: int,
    minute: int,
    from_tz: str,
    to_tz: str,
    reference_date: date,
) -> str:
    """Daily CRON rule in ``to_tz`` that fires at the converted wall-clock time."""
    to_hour, to_minute = convert_time(hour, minute, from_tz, to_tz, reference_date)
    return f"{to_minute} {to_hour} * * *"


def format_clock(hour: int, minute: int) -> str:
    """Format a time of day the way slot labels are written ('6:00 PM')."""
    return time(hour, minute).strftime("%I:%M %p").lstrip("0")


def timezone_abbreviation(tz_name: str, at: Optional[datetime] = None) -> str:
    """
    Get a short timezone abbreviation.

    Args:
        tz_name: IANA timezone name
        at: Moment to evaluate (defaults to now)

    Returns:
        Short abbreviation (e.g., EST, +07), or the name if unknown
    """
    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        return tz_name
    moment = datetime.now(tz) if at is None else at.astimezone(tz)
    return moment.strftime("%Z")
