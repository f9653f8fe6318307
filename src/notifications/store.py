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
Preference Store Module

Durable mapping from user id to UserPreference. Two backends share one
contract: a JSON file (default) and PostgreSQL via asyncpg.

Every read-mutate-write sequence must hold ``store.lock``; it is the single
mutation queue that keeps concurrent edits from overwriting each other.
"""

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import asyncpg

from .errors import PreferenceStoreError
from .models import UserPreference

logger = logging.getLogger("slotbell.notifications.store")

Preferences = dict[str, UserPreference]


class PreferenceStore(ABC):
    """Load/save contract for user preferences."""

    def __init__(self, default_timezone: str):
        self.default_timezone = default_timezone
        self.lock = asyncio.Lock()

    @abstractmethod
    async def load(self) -> Preferences:
        """
        Load every user's preferences.

        Returns:
            Mapping of user id to preference (empty on first run)

        Raises:
            PreferenceStoreError: If the backing store cannot be read
        """

    @abstractmethod
    async def save(self, prefs: Preferences) -> None:
        """
        Persist the full mapping.

        Raises:
            PreferenceStoreError: If the backing store cannot be written
        """

    async def close(self) -> None:
        """Release backend resources."""

    def new_preference(self) -> UserPreference:
        """Default record for a user seen for the first time."""
        return UserPreference(timezone=self.default_timezone)

    def _decode(self, records) -> Preferences:
        """
        Build preferences from (user_id, record) pairs.

        A malformed record is logged and left out; the others still load.
        """
        prefs: Preferences = {}
        for user_id, record in records:
            try:
                prefs[str(user_id)] = UserPreference.from_dict(record, self.default_timezone)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed preference record for user {user_id}: {e}")
        return prefs


class JsonPreferenceStore(PreferenceStore):
    """Preferences kept in a single JSON document keyed by user id."""

    def __init__(self, path: str, default_timezone: str):
        super().__init__(default_timezone)
        self.path = Path(path)

    async def load(self) -> Preferences:
        raw = await asyncio.to_thread(self._read)
        return self._decode(raw.items())

    async def save(self, prefs: Preferences) -> None:
        payload = {user_id: pref.to_dict() for user_id, pref in prefs.items()}
        await asyncio.to_thread(self._write, payload)

    def _read(self) -> dict:
        if not self.path.exists():
            logger.info(f"No preference file at {self.path}, creating an empty one")
            self._write({})
            return {}

        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading user preferences from {self.path}: {e}")
            raise PreferenceStoreError(
                f"Could not read preferences: {e}", phase="load"
            ) from e

        if not isinstance(data, dict):
            raise PreferenceStoreError(
                f"Preference file {self.path} does not hold an object", phase="load"
            )
        return data

    def _write(self, payload: dict) -> None:
        # Write to a temp file in the same directory, then swap it in
        tmp: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving user preferences to {self.path}: {e}")
            if tmp is not None and os.path.exists(tmp):
                os.unlink(tmp)
            raise PreferenceStoreError(
                f"Could not save preferences: {e}", phase="save"
            ) from e


class PostgresPreferenceStore(PreferenceStore):
    """Preferences kept in the notification_preferences table."""

    def __init__(self, db_pool: asyncpg.Pool, default_timezone: str):
        """
        Initialize the PostgreSQL store.

        Args:
            db_pool: asyncpg connection pool
            default_timezone: Timezone for records that do not name one
        """
        super().__init__(default_timezone)
        self.db = db_pool

    async def load(self) -> Preferences:
        try:
            rows = await self.db.fetch(
                """
                SELECT user_id, times, pending_times, auto_apply, paused,
                       timezone, scheduled_jobs, last_setup_message_id
                FROM notification_preferences
                """
            )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Error loading user preferences: {e}")
            raise PreferenceStoreError(
                f"Could not read preferences: {e}", phase="load"
            ) from e

        return self._decode(
            (
                row["user_id"],
                {
                    "times": row["times"],
                    "pendingTimes": row["pending_times"],
                    "autoApply": row["auto_apply"],
                    "paused": row["paused"],
                    "timezone": row["timezone"],
                    "scheduledJobs": row["scheduled_jobs"],
                    "lastSetupMessageId": row["last_setup_message_id"],
                },
            )
            for row in rows
        )

    async def save(self, prefs: Preferences) -> None:
        records = []
        for user_id, pref in prefs.items():
            data = pref.to_dict()
            records.append(
                (
                    user_id,
                    data["times"],
                    data["pendingTimes"],
                    data["autoApply"],
                    data["paused"],
                    data["timezone"],
                    data["scheduledJobs"],
                    data["lastSetupMessageId"],
                )
            )

        try:
            async with self.db.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(
                        """
                        INSERT INTO notification_preferences (
                            user_id, times, pending_times, auto_apply, paused,
                            timezone, scheduled_jobs, last_setup_message_id, updated_at
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, NOW())
                        ON CONFLICT (user_id) DO UPDATE SET
                            times = EXCLUDED.times,
                            pending_times = EXCLUDED.pending_times,
                            auto_apply = EXCLUDED.auto_apply,
                            paused = EXCLUDED.paused,
                            timezone = EXCLUDED.timezone,
                            scheduled_jobs = EXCLUDED.scheduled_jobs,
                            last_setup_message_id = EXCLUDED.last_setup_message_id,
                            updated_at = NOW()
                        """,
                        records,
                    )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Error saving user preferences: {e}")
            raise PreferenceStoreError(
                f"Could not save preferences: {e}", phase="save"
            ) from e

    async def close(self) -> None:
        await self.db.close()
