"""Local persistence for finished sessions and the in-progress draft.

Everything lives in a small SQLite key-value table holding two flat
records: the full session array (newest pushed last, never pre-sorted) and
the draft log keyed by exercise ID.  The local store is the durability
floor of the application, but apart from :meth:`LocalStore.append_session`
its failures degrade silently: reads come back empty and draft writes are
dropped.  Writes to the session array refuse to run on top of a record
they could not read, so an unreadable history is never overwritten.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from dungym import DEFAULT_DB_PATH, DRAFT_KEY, SESSIONS_KEY
from dungym.db_backup import create_backup, restore_if_corrupt
from dungym.exceptions import StorageUnavailableError
from dungym.identifiers import IdentifierResolver
from dungym.program import Program
from dungym.utils import session_sort_key

logger = logging.getLogger(__name__)

# Unparseable session records are moved here before the array is rewritten
CORRUPT_SESSIONS_KEY = SESSIONS_KEY + "-corrupt"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


class LocalStore:
    """Session list and draft log kept in a local SQLite file."""

    def __init__(
        self,
        db_path: Path | str = DEFAULT_DB_PATH,
        resolver: IdentifierResolver | None = None,
        *,
        keep_backup: bool = True,
    ) -> None:
        self.db_path = Path(db_path)
        self.resolver = resolver or IdentifierResolver(Program())
        self.keep_backup = keep_backup
        if keep_backup:
            try:
                restore_if_corrupt(self.db_path)
            except OSError:
                logger.warning("Could not restore %s from backup", self.db_path, exc_info=True)

    # ------------------------------------------------------------------
    # Raw key-value access
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.execute(_SCHEMA)
        return conn

    def read(self, key: str) -> str | None:
        """Return the stored text for ``key`` or ``None``."""

        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailableError(f"Cannot read {key!r}: {exc}") from exc
        return row[0] if row else None

    def write(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute(
                        "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                        (key, value),
                    )
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailableError(f"Cannot write {key!r}: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailableError(f"Cannot remove {key!r}: {exc}") from exc

    def _read_json(self, key: str, default: Any) -> Any:
        try:
            text = self.read(key)
        except StorageUnavailableError:
            logger.warning("Local storage unavailable reading %s", key, exc_info=True)
            return default
        if not text:
            return default
        try:
            return json.loads(text)
        except ValueError:
            logger.warning("Discarding malformed JSON stored under %s", key)
            return default

    def _backup(self) -> None:
        if not self.keep_backup:
            return
        try:
            create_backup(self.db_path)
        except (sqlite3.Error, OSError):
            logger.warning("Could not back up %s", self.db_path, exc_info=True)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _raw_sessions(self) -> list[Any]:
        data = self._read_json(SESSIONS_KEY, [])
        return data if isinstance(data, list) else []

    def _stored_sessions(self) -> list[Any]:
        """Read the session array for a read-modify-write.

        Unlike :meth:`_raw_sessions` this raises
        :class:`StorageUnavailableError` when the record can't be read or
        parsed.  Unparseable text is copied to ``CORRUPT_SESSIONS_KEY`` first.
        """

        text = self.read(SESSIONS_KEY)
        if not text:
            return []
        try:
            data = json.loads(text)
        except ValueError:
            data = None
        if isinstance(data, list):
            return data
        logger.error("Session record is unparseable; saving it under %s", CORRUPT_SESSIONS_KEY)
        self.write(CORRUPT_SESSIONS_KEY, text)
        raise StorageUnavailableError(f"Stored {SESSIONS_KEY!r} is not a JSON array")

    def list_sessions(self) -> list[dict]:
        """Return every stored session, normalized, in stored (push) order."""

        return [
            self.resolver.normalize_session(s)
            for s in self._raw_sessions()
            if isinstance(s, dict)
        ]

    def append_session(self, session: dict) -> None:
        """Append ``session`` to the stored list.

        Raises :class:`StorageUnavailableError` if the stored list can't be
        read or the write fails, because a finished workout must never be
        dropped silently and the existing history must never be overwritten.
        """

        try:
            sessions = self._stored_sessions()
            sessions.append(session)
            self.write(SESSIONS_KEY, json.dumps(sessions))
        except StorageUnavailableError:
            logger.error("Failed to save session %s locally", session.get("id"))
            raise
        self._backup()

    def delete_session(self, session_id: str) -> bool:
        """Remove the session with ``session_id``; returns ``True`` if found."""

        try:
            sessions = self._stored_sessions()
        except StorageUnavailableError:
            logger.warning("Cannot read sessions to delete %s", session_id, exc_info=True)
            return False
        kept = [s for s in sessions if not (isinstance(s, dict) and s.get("id") == session_id)]
        if len(kept) == len(sessions):
            return False
        try:
            self.write(SESSIONS_KEY, json.dumps(kept))
        except StorageUnavailableError:
            logger.warning("Failed to delete session %s locally", session_id, exc_info=True)
            return False
        self._backup()
        return True

    def list_sessions_for_day(self, day_id: str) -> list[dict]:
        return [s for s in self.list_sessions() if s.get("day") == day_id]

    def get_last_session(self, day_id: str) -> dict | None:
        """Return the most recent session recorded for ``day_id``."""

        sessions = self.list_sessions_for_day(day_id)
        if not sessions:
            return None
        return max(sessions, key=session_sort_key)

    def export_sessions(self) -> str:
        """Return the stored sessions as pretty-printed JSON."""

        return json.dumps(self.list_sessions(), indent=2, ensure_ascii=False)

    def import_sessions(self, text: str) -> int:
        """Append sessions from exported JSON ``text`` that aren't stored yet.

        Returns the number of sessions added.  ``ValueError`` is raised when
        ``text`` isn't a JSON array of session objects, and
        :class:`StorageUnavailableError` when the stored list can't be read.
        """

        data = json.loads(text)
        if not isinstance(data, list):
            raise ValueError("Expected a JSON array of sessions")
        sessions = self._stored_sessions()
        known = {s.get("id") for s in sessions if isinstance(s, dict)}
        added = 0
        for item in data:
            if not isinstance(item, dict) or not item.get("id") or item["id"] in known:
                continue
            sessions.append(item)
            known.add(item["id"])
            added += 1
        if added:
            self.write(SESSIONS_KEY, json.dumps(sessions))
            self._backup()
        return added

    # ------------------------------------------------------------------
    # Draft log
    # ------------------------------------------------------------------

    def get_draft(self) -> dict[str, list[dict]]:
        data = self._read_json(DRAFT_KEY, {})
        return data if isinstance(data, dict) else {}

    def save_draft(self, draft: dict[str, list[dict]]) -> None:
        try:
            self.write(DRAFT_KEY, json.dumps(draft))
        except StorageUnavailableError:
            logger.warning("Local storage unavailable; draft not saved", exc_info=True)

    def clear_draft(self) -> None:
        try:
            self.remove(DRAFT_KEY)
        except StorageUnavailableError:
            logger.warning("Local storage unavailable; draft not cleared", exc_info=True)
