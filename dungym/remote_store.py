"""Optional remote mirror of the session list.

Sessions are mirrored to a Supabase table through its PostgREST endpoint.
The mirror may be missing entirely (no configuration), unusable (no signed
in user) or failing (network errors, outages).  In all of those cases the
public methods behave as no-ops: reads return nothing, writes report
``False``, and nothing is raised into the caller.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from dungym.auth import AuthProvider
from dungym.exceptions import RemoteAuthError, RemoteStoreError
from dungym.identifiers import IdentifierResolver

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "workout_sessions"
DEFAULT_TIMEOUT = 10.0
_COLUMNS = "id,date,day,duration,exercises"


def _quote_filter_value(value: str) -> str:
    """Quote ``value`` for use inside a PostgREST ``or=(...)`` filter."""

    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class RemoteStore:
    """Session table accessed over HTTP with a per-request timeout."""

    def __init__(
        self,
        url: str | None,
        api_key: str | None,
        auth: AuthProvider,
        resolver: IdentifierResolver,
        *,
        table: str = DEFAULT_TABLE,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url.rstrip("/") if url else None
        self.api_key = api_key or None
        self.auth = auth
        self.resolver = resolver
        self.table = table
        self.timeout = timeout
        self._http = session or requests.Session()

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    @property
    def configured(self) -> bool:
        return bool(self.url and self.api_key)

    def is_available(self) -> bool:
        """Return ``True`` when configured and a signed in user is present."""

        if not self.configured:
            return False
        try:
            return bool(self.auth.is_authenticated())
        except Exception:
            logger.warning("Auth check failed; treating remote as unavailable", exc_info=True)
            return False

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    @property
    def endpoint(self) -> str:
        return f"{self.url}/rest/v1/{self.table}"

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key or "",
            "Authorization": f"Bearer {self.auth.access_token() or ''}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(
        self,
        method: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Send one request and return the decoded body (or ``None``).

        Raises :class:`RemoteStoreError` for transport failures and non-2xx
        responses.
        """

        try:
            resp = self._http.request(
                method,
                self.endpoint,
                params=params,
                json=json,
                headers=self._headers(prefer),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RemoteStoreError(f"{method} {self.table} failed: {exc}") from exc
        if resp.status_code in (401, 403):
            raise RemoteAuthError(
                f"{method} {self.table} rejected credentials", resp.status_code
            )
        if not 200 <= resp.status_code < 300:
            raise RemoteStoreError(
                f"{method} {self.table} returned {resp.status_code}: {resp.text}",
                resp.status_code,
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteStoreError(f"{method} {self.table} returned invalid JSON") from exc

    def _rows(self, params: dict[str, Any]) -> list[dict]:
        body = self._request("GET", params=params)
        if not isinstance(body, list):
            return []
        return [self.resolver.normalize_session(row) for row in body if isinstance(row, dict)]

    def _day_filter(self, day_id: str) -> str:
        forms = self.resolver.legacy_day_filters(day_id)
        clauses = [f"day.eq.{_quote_filter_value(forms['id'])}"]
        if forms["label"]:
            clauses.append(f"day.eq.{_quote_filter_value(forms['label'])}")
        if forms["focus"]:
            clauses.append(f"day.ilike.{_quote_filter_value('*' + forms['focus'] + '*')}")
        return f"({','.join(clauses)})"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list_sessions(self) -> list[dict]:
        """Return every remote session, newest first, or ``[]``."""

        if not self.is_available():
            logger.debug("Remote store unavailable; skipping list")
            return []
        try:
            return self._rows({"select": _COLUMNS, "order": "date.desc"})
        except RemoteStoreError as exc:
            logger.warning("Remote list failed: %s", exc)
            return []

    def append_session(self, session: dict) -> bool:
        """Upsert ``session`` remotely; returns ``True`` on success."""

        if not self.is_available():
            logger.debug("Remote store unavailable; skipping append")
            return False
        row = {
            "id": session.get("id"),
            "date": session.get("date"),
            "day": session.get("day"),
            "duration": session.get("duration"),
            "exercises": session.get("exercises", {}),
        }
        try:
            self._request(
                "POST",
                json=row,
                prefer="resolution=merge-duplicates,return=minimal",
            )
        except RemoteStoreError as exc:
            logger.warning("Remote append of %s failed: %s", session.get("id"), exc)
            return False
        return True

    def delete_session(self, session_id: str) -> bool:
        """Delete ``session_id`` remotely; returns ``True`` on success."""

        if not self.is_available():
            logger.debug("Remote store unavailable; skipping delete")
            return False
        try:
            self._request("DELETE", params={"id": f"eq.{session_id}"})
        except RemoteStoreError as exc:
            logger.warning("Remote delete of %s failed: %s", session_id, exc)
            return False
        return True

    def list_sessions_for_day(self, day_id: str) -> list[dict]:
        """Return sessions whose stored day matches ``day_id`` in any historical form."""

        if not self.is_available():
            return []
        params = {"select": _COLUMNS, "or": self._day_filter(day_id), "order": "date.desc"}
        try:
            return self._rows(params)
        except RemoteStoreError as exc:
            logger.warning("Remote day query failed: %s", exc)
            return []

    def get_last_session(self, day_id: str) -> dict | None:
        if not self.is_available():
            return None
        params = {
            "select": _COLUMNS,
            "or": self._day_filter(day_id),
            "order": "date.desc",
            "limit": 1,
        }
        try:
            rows = self._rows(params)
        except RemoteStoreError as exc:
            logger.warning("Remote last-session query failed: %s", exc)
            return None
        return rows[0] if rows else None
