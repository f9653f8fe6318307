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

"""Tests for the timer registry."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from notifications.registry import TimerKey, TimerRegistry


def make_handle(fail: bool = False) -> MagicMock:
    handle = MagicMock()
    if fail:
        handle.cancel.side_effect = RuntimeError("stuck")
    return handle


class TestTimerKey:
    def test_string_form_round_trips(self):
        key = TimerKey("1234", "18:00")
        assert str(key) == "1234:18:00:early-warning"
        assert TimerKey.parse(str(key)) == key


class TestRegistry:
    """Test timer registration and lifetime operations."""

    def test_register_replaces_existing_key(self):
        registry = TimerRegistry()
        first, second = make_handle(), make_handle()
        key = TimerKey("1", "18:00")

        registry.register(key, first)
        registry.register(key, second)

        assert len(registry) == 1
        assert registry.get(key) is second
        first.cancel.assert_called_once()

    def test_clear_all_continues_past_failures(self):
        registry = TimerRegistry()
        handles = [make_handle(), make_handle(fail=True), make_handle()]
        for i, handle in enumerate(handles):
            registry.register(TimerKey(str(i), "18:00"), handle)

        result = registry.clear_all()

        assert result.cleared == 2
        assert result.failed == 1
        assert len(registry) == 0
        for handle in handles:
            handle.cancel.assert_called_once()

    def test_stop_start_cancel(self):
        registry = TimerRegistry()
        handle = make_handle()
        key = TimerKey("1", "21:00")
        registry.register(key, handle)

        assert registry.stop(key)
        handle.stop.assert_called_once()
        assert registry.start(key)
        handle.start.assert_called_once()
        assert registry.cancel(key)
        handle.cancel.assert_called_once()
        assert key not in registry

    def test_unknown_key_operations_return_false(self):
        registry = TimerRegistry()
        key = TimerKey("nobody", "18:00")
        assert not registry.stop(key)
        assert not registry.start(key)
        assert not registry.cancel(key)

    def test_clear_user_only_touches_that_user(self):
        registry = TimerRegistry()
        registry.register(TimerKey("1", "18:00"), make_handle())
        registry.register(TimerKey("1", "21:00"), make_handle())
        registry.register(TimerKey("2", "18:00"), make_handle())

        result = registry.clear_user("1")

        assert result.cleared == 2
        assert registry.keys_for_user("1") == []
        assert registry.keys() == [TimerKey("2", "18:00")]
