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

"""Tests for timezone conversion."""

import sys
from datetime import date
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from notifications.errors import InvalidTimezoneError
from notifications.slots import SLOTS
from notifications.time_convert import (
    convert_rule,
    convert_time,
    day_offset,
    format_clock,
    resolve_timezone,
    validate_timezone,
)

WINTER = date(2026, 1, 15)
SUMMER = date(2026, 7, 15)


class TestConvertTime:
    """Test conversions between named timezones."""

    def test_reference_to_utc(self):
        assert convert_time(18, 0, "Asia/Bangkok", "UTC", WINTER) == (11, 0)

    def test_new_york_winter_and_summer(self):
        assert convert_time(18, 0, "UTC", "America/New_York", WINTER) == (13, 0)
        assert convert_time(18, 0, "UTC", "America/New_York", SUMMER) == (14, 0)

    def test_half_hour_offset(self):
        assert convert_time(18, 0, "UTC", "Asia/Kolkata", WINTER) == (23, 30)

    def test_forty_five_minute_offset(self):
        assert convert_time(18, 0, "UTC", "Asia/Kathmandu", WINTER) == (23, 45)

    def test_wall_time_inside_dst_gap_does_not_raise(self):
        # 02:30 does not exist in New York on 2026-03-08
        hour, minute = convert_time(2, 30, "America/New_York", "UTC", date(2026, 3, 8))
        assert (hour, minute) == (7, 30)

    def test_invalid_timezone(self):
        with pytest.raises(InvalidTimezoneError) as exc:
            convert_time(18, 0, "UTC", "Mars/Olympus_Mons", WINTER)
        assert exc.value.timezone == "Mars/Olympus_Mons"


class TestRoundTrip:
    """Converting there and back gives the original wall-clock time."""

    @pytest.mark.parametrize(
        "timezone",
        ["UTC", "America/New_York", "Europe/London", "Asia/Kolkata", "Asia/Kathmandu",
         "Australia/Adelaide", "Pacific/Auckland"],
    )
    @pytest.mark.parametrize(
        "reference_date",
        [
            date(2026, 3, 7),  # before US DST starts
            date(2026, 3, 9),  # after US DST starts
            date(2026, 10, 31),  # before US DST ends
            date(2026, 11, 2),  # after US DST ends
        ],
    )
    def test_round_trip_all_slots(self, timezone, reference_date):
        for slot in SLOTS:
            there = convert_time(slot.hour, slot.minute, "Asia/Bangkok", timezone, reference_date)
            back = convert_time(*there, timezone, "Asia/Bangkok", reference_date)
            assert back == (slot.hour, slot.minute), (slot.slot_id, timezone)


class TestDayOffset:
    def test_previous_day(self):
        # 01:30 Bangkok is 13:30 the day before in New York
        assert day_offset(1, 30, "Asia/Bangkok", "America/New_York", WINTER) == -1

    def test_same_day(self):
        assert day_offset(18, 0, "Asia/Bangkok", "Asia/Tokyo", WINTER) == 0

    def test_next_day(self):
        # Auckland is UTC+13 in January
        assert day_offset(22, 30, "Asia/Bangkok", "Pacific/Auckland", WINTER) == 1


class TestHelpers:
    def test_convert_rule(self):
        assert convert_rule(17, 55, "UTC", "America/New_York", WINTER) == "55 12 * * *"

    def test_format_clock(self):
        assert format_clock(18, 0) == "6:00 PM"
        assert format_clock(0, 0) == "12:00 AM"
        assert format_clock(9, 5) == "9:05 AM"

    def test_validate_timezone(self):
        assert validate_timezone("Asia/Bangkok")
        assert not validate_timezone("Not/AZone")
        assert not validate_timezone(None)
        assert not validate_timezone(7)

    def test_resolve_timezone(self):
        assert resolve_timezone("Asia/Tokyo", "UTC") == "Asia/Tokyo"
        assert resolve_timezone("Not/AZone", "UTC") == "UTC"
