"""Single view over the local and remote session stores.

Authority rule for :meth:`SessionRepository.get_sessions`: when the remote
returns any rows it wins for every ``id`` present in both stores and
local-only sessions are appended; when it is unavailable or empty the local
list is used as is.  Writes always land locally first; the remote copy is
best-effort and its failures never reach the caller.
"""

from __future__ import annotations

import json
import logging

from dungym.local_store import LocalStore
from dungym.remote_store import RemoteStore
from dungym.utils import session_sort_key

logger = logging.getLogger(__name__)


class SessionRepository:
    """Merge local and remote sessions and own write-then-sync semantics."""

    def __init__(self, local: LocalStore, remote: RemoteStore | None = None) -> None:
        self.local = local
        self.remote = remote

    def _remote_available(self) -> bool:
        return self.remote is not None and self.remote.is_available()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def get_sessions(self) -> list[dict]:
        """Return all sessions, newest first."""

        local = self.local.list_sessions()
        remote = self.remote.list_sessions() if self._remote_available() else []
        if remote:
            merged = list(remote)
            seen = {s.get("id") for s in remote}
            for session in local:
                if session.get("id") not in seen:
                    merged.append(session)
                    seen.add(session.get("id"))
        else:
            merged = local
        return sorted(merged, key=session_sort_key, reverse=True)

    def save_session(self, session: dict) -> None:
        """Persist ``session`` locally, then mirror it remotely if possible.

        A local failure propagates as
        :class:`~dungym.exceptions.StorageUnavailableError`; a remote failure
        is only logged.
        """

        self.local.append_session(session)
        logger.info("Saved session %s locally", session.get("id"))
        if self._remote_available() and not self.remote.append_session(session):
            logger.info("Session %s not mirrored remotely", session.get("id"))

    def get_last_session_for_day(self, day_id: str) -> dict | None:
        """Return the latest session for ``day_id`` from either store."""

        candidates = []
        if self._remote_available():
            remote = self.remote.get_last_session(day_id)
            if remote is not None:
                candidates.append(remote)
        local = self.local.get_last_session(day_id)
        if local is not None:
            candidates.append(local)
        if not candidates:
            return None
        # max() keeps the first of equal keys, so the remote copy wins a tie
        return max(candidates, key=session_sort_key)

    def delete_session(self, session_id: str) -> None:
        """Delete ``session_id`` remotely (best-effort) and locally."""

        try:
            if self._remote_available():
                self.remote.delete_session(session_id)
        except Exception:
            logger.warning("Remote delete of %s raised", session_id, exc_info=True)
        finally:
            if self.local.delete_session(session_id):
                logger.info("Deleted session %s", session_id)

    def sync(self) -> int:
        """Push sessions that only exist locally to the remote store.

        Returns the number of sessions pushed.
        """

        if not self._remote_available():
            return 0
        remote_ids = {s.get("id") for s in self.remote.list_sessions()}
        pushed = 0
        for session in self.local.list_sessions():
            if session.get("id") in remote_ids:
                continue
            if self.remote.append_session(session):
                pushed += 1
        if pushed:
            logger.info("Pushed %d local sessions to the remote store", pushed)
        return pushed

    def export_sessions(self) -> str:
        """Return the merged session history as pretty-printed JSON."""

        return json.dumps(self.get_sessions(), indent=2, ensure_ascii=False)

    # ------------------------------------------------------------------
    # Draft log (local only)
    # ------------------------------------------------------------------

    def get_draft(self) -> dict[str, list[dict]]:
        return self.local.get_draft()

    def save_draft(self, draft: dict[str, list[dict]]) -> None:
        self.local.save_draft(draft)

    def clear_draft(self) -> None:
        self.local.clear_draft()
