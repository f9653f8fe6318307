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

"""Tests for the scheduling engine."""

import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conftest import FIXED_NOW, FakeTimerFactory
from notifications.engine import SchedulingEngine
from notifications.registry import TimerKey
from notifications.slots import get_slot
from notifications.store import JsonPreferenceStore


def user_keys(registry, user_id):
    return sorted(str(key) for key in registry.keys_for_user(user_id))


class TestBasicScheduling:
    """Scenario: a user with two slots in UTC."""

    @pytest.mark.asyncio
    async def test_two_slots_two_timers(self, store, engine, registry, timer_factory):
        store.put("U", selected_slots={"18:00", "21:00"}, timezone="UTC")

        result = await engine.reconcile()

        assert result.ok
        assert result.scheduled == 2
        assert user_keys(registry, "U") == ["U:18:00:early-warning", "U:21:00:early-warning"]
        assert sorted((t.rule, t.timezone) for t in timer_factory.timers) == [
            ("55 17 * * *", "UTC"),
            ("55 20 * * *", "UTC"),
        ]

    @pytest.mark.asyncio
    async def test_active_timer_ids_persisted(self, store, engine):
        store.put("U", selected_slots={"18:00"}, active_timer_ids=["stale:key"])

        await engine.reconcile()

        assert store.get("U").active_timer_ids == ["U:18:00:early-warning"]

    @pytest.mark.asyncio
    async def test_timezone_shift(self, store, engine, registry, timer_factory):
        store.put("U", selected_slots={"18:00", "21:00"}, timezone="UTC")
        await engine.reconcile()

        record = store.get("U")
        record.timezone = "America/New_York"
        store.records["U"] = record.to_dict()
        await engine.reconcile()

        live = [t for t in timer_factory.timers if not t.cancelled]
        assert len(live) == 2
        rules = {t.rule for t in live}
        # 18:00 UTC is 13:00 in New York in January
        assert "55 12 * * *" in rules
        assert all(t.timezone == "America/New_York" for t in live)
        assert len(registry.keys_for_user("U")) == 2

    @pytest.mark.asyncio
    async def test_reference_timezone_conversion(self, store, registry, dispatcher):
        factory = FakeTimerFactory()
        engine = SchedulingEngine(
            store, registry, dispatcher, "Asia/Bangkok", timer_factory=factory, now=lambda: FIXED_NOW
        )
        store.put("U", selected_slots={"18:00"}, timezone="UTC")

        await engine.reconcile()

        # 17:55 in Bangkok is 10:55 UTC
        assert factory.timers[0].rule == "55 10 * * *"


class TestIdempotence:
    """Repeated reconciles never grow the timer set."""

    @pytest.mark.asyncio
    async def test_same_keys_twice(self, store, engine, registry):
        store.put("A", selected_slots={"18:00", "21:00"})
        store.put("B", selected_slots={"09:00"}, paused=True)

        await engine.reconcile()
        first = set(registry.keys())
        await engine.reconcile()
        second = set(registry.keys())

        assert first == second
        assert len(registry) == 3

    @pytest.mark.asyncio
    async def test_three_reconciles_one_timer(self, store, engine, registry, timer_factory):
        store.put("U", selected_slots={"18:00"})

        for _ in range(3):
            await engine.reconcile()
            assert len(registry.keys_for_user("U")) == 1

        # Every earlier timer was cancelled
        assert [t.cancelled for t in timer_factory.timers] == [True, True, False]

    @pytest.mark.asyncio
    async def test_one_entry_per_user_and_slot(self, store, engine, registry):
        store.put("A", selected_slots={"18:00", "21:00", "00:00"})
        store.put("B", selected_slots={"18:00"})

        await engine.reconcile()

        keys = registry.keys()
        assert len(keys) == len(set(keys)) == 4
        assert TimerKey("B", "18:00") in registry


class TestPause:
    @pytest.mark.asyncio
    async def test_paused_timers_exist_but_are_stopped(self, store, engine, registry, timer_factory):
        store.put("U", selected_slots={"18:00", "21:00"}, paused=True)

        result = await engine.reconcile()

        assert result.paused == 2
        assert result.scheduled == 0
        assert len(registry.keys_for_user("U")) == 2
        assert not any(t.running for t in timer_factory.timers)


class TestSkipsAndFailures:
    """One user's bad data never blocks the others."""

    @pytest.mark.asyncio
    async def test_empty_selection_is_skipped_untouched(self, store, engine, registry):
        store.put("U", selected_slots=set(), active_timer_ids=["old"])

        result = await engine.reconcile()

        assert result.users == 0
        assert len(registry) == 0
        assert store.get("U").active_timer_ids == ["old"]

    @pytest.mark.asyncio
    async def test_unknown_slot_skipped(self, store, engine, registry):
        store.put("U", selected_slots={"18:00", "18:07"})

        result = await engine.reconcile()

        assert result.scheduled == 1
        assert result.skipped == 1
        assert result.ok
        issue = result.issues[0]
        assert (issue.phase, issue.user_id, issue.slot_id) == ("slot", "U", "18:07")
        assert user_keys(registry, "U") == ["U:18:00:early-warning"]

    @pytest.mark.asyncio
    async def test_timer_creation_failure_isolated(self, store, registry, dispatcher):
        factory = FakeTimerFactory()

        def flaky_factory(rule, timezone, callback):
            if rule == "55 17 * * *":
                raise RuntimeError("no timers today")
            return factory(rule, timezone, callback)

        engine = SchedulingEngine(
            store, registry, dispatcher, "UTC", timer_factory=flaky_factory, now=lambda: FIXED_NOW
        )
        store.put("A", selected_slots={"18:00"})
        store.put("B", selected_slots={"21:00"})

        result = await engine.reconcile()

        assert result.failed == 1
        assert not result.ok
        assert result.issues[0].phase == "schedule"
        assert registry.keys() == [TimerKey("B", "21:00")]
        assert store.get("A").active_timer_ids == []

    @pytest.mark.asyncio
    async def test_invalid_timezone_falls_back_to_reference(self, store, engine, timer_factory):
        store.put("U", selected_slots={"18:00"}, timezone="Not/AZone")

        result = await engine.reconcile()

        assert result.scheduled == 1
        assert result.ok
        assert timer_factory.timers[0].timezone == "UTC"
        assert [(i.phase, i.user_id) for i in result.issues] == [("timezone", "U")]

    @pytest.mark.asyncio
    async def test_malformed_record_does_not_block_others(self, tmp_path, registry, dispatcher, timer_factory):
        path = tmp_path / "prefs.json"
        path.write_text(json.dumps({"good": {"times": ["18:00"]}, "bad": None}))
        json_store = JsonPreferenceStore(str(path), "UTC")
        engine = SchedulingEngine(
            json_store, registry, dispatcher, "UTC", timer_factory=timer_factory, now=lambda: FIXED_NOW
        )

        result = await engine.reconcile()

        assert result.scheduled == 1
        assert user_keys(registry, "good") == ["good:18:00:early-warning"]

    @pytest.mark.asyncio
    async def test_unexpected_error_isolated_to_one_user(self, store, engine, registry):
        store.put("bad", selected_slots={"18:00", "21:00"})
        store.put("good", selected_slots={"18:00"})

        def broken_get_slot(slot_id):
            if slot_id == "21:00":
                raise RuntimeError("catalog exploded")
            return get_slot(slot_id)

        with patch("notifications.engine.get_slot", side_effect=broken_get_slot):
            result = await engine.reconcile()

        assert user_keys(registry, "bad") == []
        assert user_keys(registry, "good") == ["good:18:00:early-warning"]
        assert store.get("bad").active_timer_ids == []
        assert [(i.phase, i.user_id) for i in result.issues] == [("user", "bad")]
        assert not result.ok

    @pytest.mark.asyncio
    async def test_load_failure_reported(self, store, engine, registry):
        store.put("U", selected_slots={"18:00"})
        await engine.reconcile()
        store.fail_load = True

        result = await engine.reconcile()

        assert not result.ok
        assert result.issues[0].phase == "load"
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_save_failure_reported(self, store, engine, registry):
        store.put("U", selected_slots={"18:00"})
        store.fail_save = True

        result = await engine.reconcile()

        assert not result.ok
        assert result.issues[-1].phase == "save"
        assert len(registry) == 1


class TestFireCallback:
    @pytest.mark.asyncio
    async def test_timer_fires_dispatch_for_its_user_and_slot(self, store, engine, timer_factory, delivery):
        store.put("U", selected_slots={"21:00"})
        await engine.reconcile()

        await timer_factory.timers[0].fire()

        assert len(delivery.sent) == 1
        destination, text = delivery.sent[0]
        assert destination == "999"
        assert "<@U>" in text
        assert "9:00 PM" in text
