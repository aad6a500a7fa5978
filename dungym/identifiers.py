"""Map historical day/exercise identifiers onto the program's canonical IDs.

Saved sessions identified their day in several free-text formats over time
(``"push"``, ``"Day 1"``, ``"Day 1 — Push / Anti-Extension"``,
``"Monday — Upper Push / Pull"`` ...) and keyed exercises by display name
before stable IDs existed.  Every record read from either store passes
through :func:`IdentifierResolver.normalize_session` so callers only ever
see canonical IDs.  Values that cannot be resolved are returned unchanged.
"""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import Any, Callable, Mapping

from dungym.program import Program

logger = logging.getLogger(__name__)

# Hyphen, en dash, em dash, figure dash and horizontal bar
_DASHES = re.compile("[\u2014\u2013\u2012\u2015-]")
# Dash used as the separator between a day's label and its focus
_TITLE_SEPARATOR = re.compile("\\s[\u2014\u2013\u2012\u2015-]\\s")
_DAY_NUMBER = re.compile(r"\bDay\s*(\d+)\b", re.IGNORECASE)


def normalize_dashes(value: str) -> str:
    """Fold every dash variant in ``value`` to an ASCII hyphen."""

    return _DASHES.sub("-", value)


def focus_keyword(title: str) -> str:
    """Return the first focus word of a day title.

    ``"Day 1 — Push / Anti-Extension"`` gives ``"Push"``.  Titles without a
    dash separator have no focus keyword.
    """

    parts = _TITLE_SEPARATOR.split(title, maxsplit=1)
    if len(parts) < 2:
        return ""
    return parts[1].split("/")[0].strip()


class IdentifierResolver:
    """Pure resolution of raw day and exercise identifiers.

    The lookup tables are built once from ``program`` and never change, so
    every method is deterministic for a given program.
    """

    def __init__(self, program: Program) -> None:
        self.program = program
        legacy: dict[str, str] = {}
        for day in program.days:
            legacy[day["id"]] = day["id"]
            legacy[day["label"]] = day["id"]
            legacy[day["title"]] = day["id"]
        self.legacy_day_to_id: Mapping[str, str] = MappingProxyType(legacy)
        self._dash_folded: tuple[tuple[str, str], ...] = tuple(
            (normalize_dashes(key), day_id) for key, day_id in legacy.items()
        )
        self._focus: tuple[tuple[str, str], ...] = tuple(
            (focus_keyword(day["title"]).lower(), day["id"]) for day in program.days
        )
        self._day_matchers: tuple[Callable[[str], str | None], ...] = (
            self._match_exact,
            self._match_dash_folded,
            self._match_day_number,
            self._match_focus_keyword,
            self._match_id_substring,
        )

    # ------------------------------------------------------------------
    # Day matchers, tried in order
    # ------------------------------------------------------------------

    def _match_exact(self, raw: str) -> str | None:
        return self.legacy_day_to_id.get(raw)

    def _match_dash_folded(self, raw: str) -> str | None:
        folded = normalize_dashes(raw)
        for key, day_id in self._dash_folded:
            if key == folded:
                return day_id
        return None

    def _match_day_number(self, raw: str) -> str | None:
        match = _DAY_NUMBER.search(raw)
        if not match:
            return None
        label = f"Day {match.group(1)}"
        for day in self.program.days:
            if day["label"] == label:
                return day["id"]
        return None

    def _match_focus_keyword(self, raw: str) -> str | None:
        lowered = raw.lower()
        for keyword, day_id in self._focus:
            if keyword and keyword in lowered:
                return day_id
        return None

    def _match_id_substring(self, raw: str) -> str | None:
        lowered = raw.lower()
        for day in self.program.days:
            if day["id"] in lowered:
                return day["id"]
        return None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_day_id(self, raw: Any) -> Any:
        """Return the canonical day ID for ``raw`` or ``raw`` itself."""

        if not isinstance(raw, str):
            return raw
        for matcher in self._day_matchers:
            day_id = matcher(raw)
            if day_id is not None:
                return day_id
        logger.debug("Unresolved day identifier %r", raw)
        return raw

    def resolve_exercise_id(self, raw: Any) -> Any:
        """Return the canonical exercise ID for a display name or ID."""

        if not isinstance(raw, str):
            return raw
        return self.program.exercise_name_to_id.get(raw, raw)

    def legacy_day_filters(self, day_id: str) -> dict[str, str]:
        """Return the historical forms a stored ``day`` value may take.

        The mapping has ``id``, ``label`` and ``focus`` keys; ``label`` and
        ``focus`` are empty when ``day_id`` is not part of the program.
        """

        day = self.program.day_by_id.get(day_id)
        if day is None:
            return {"id": day_id, "label": "", "focus": ""}
        return {
            "id": day_id,
            "label": day["label"],
            "focus": focus_keyword(day["title"]),
        }

    def normalize_session(self, raw: Any) -> Any:
        """Return a copy of session ``raw`` keyed by canonical IDs.

        Exercise keys that resolve to the same ID have their set lists
        concatenated in encounter order.  Non-mapping input is returned
        unchanged.
        """

        if not isinstance(raw, Mapping):
            return raw
        session = dict(raw)
        if "day" in session:
            session["day"] = self.resolve_day_id(session["day"])
        exercises = session.get("exercises")
        if isinstance(exercises, Mapping):
            normalized: dict[str, Any] = {}
            for key, sets in exercises.items():
                ex_id = self.resolve_exercise_id(key)
                if ex_id in normalized and isinstance(sets, list):
                    existing = normalized[ex_id]
                    if isinstance(existing, list):
                        normalized[ex_id] = existing + sets
                        continue
                normalized[ex_id] = sets
            session["exercises"] = normalized
        return session
