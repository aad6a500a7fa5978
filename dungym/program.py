"""Static kettlebell program and the lookup tables derived from it.

The plan itself is plain data.  :class:`Program` wraps a plan and builds
the name/ID tables once at construction so the identifier resolver and the
session runtime never touch module level mutable state.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Mapping

WORKOUT_PLAN: dict[str, Any] = {
    "warm_up": "5 min — hip 90/90s, arm bars, bodyweight windmills",
    "tempo_explanation": (
        "Eccentric – Bottom Pause – Concentric – Top Pause (in seconds). "
        "X = explosive."
    ),
    "complex": {
        "rounds": 3,
        "rest": "90–120 sec",
        "exercises": [
            {
                "id": "sa-swings",
                "name": "Single-Arm Swings",
                "bell": "Heavy",
                "reps": "10/arm",
                "tempo": "X-0-X-0",
                "rpe": "7",
            },
            {
                "id": "sa-clean-fsq-press",
                "name": "SA Clean → Front Squat → Press",
                "bell": "Heavy",
                "reps": "5/arm",
                "tempo": "2-1-X-1",
                "rpe": "8",
            },
            {
                "id": "windmill",
                "name": "Windmill",
                "bell": "Light",
                "reps": "5–8/side",
                "tempo": "3-1-3-1",
                "rpe": "6–7",
            },
        ],
    },
    "days": [
        {
            "id": "push",
            "label": "Day 1",
            "title": "Day 1 — Push / Anti-Extension",
            "supersets": [
                {
                    "name": "Superset",
                    "rounds": 3,
                    "rest": "60–90 sec",
                    "exercises": [
                        {
                            "id": "bench-press",
                            "name": "Bench Press",
                            "reps": "8–10",
                            "tempo": "3-1-1-0",
                            "rpe": "7–8",
                        },
                        {
                            "id": "sa-kb-row",
                            "name": "Single-Arm KB Row",
                            "reps": "8/arm",
                            "tempo": "2-1-1-1",
                            "rpe": "7–8",
                        },
                    ],
                }
            ],
            "finisher": {
                "id": "hanging-leg-raises",
                "name": "Hanging Leg Raises",
                "sets": 3,
                "reps": "10–15",
                "tempo": "2-0-2-1",
                "rpe": "8",
                "rest": "60 sec",
            },
        },
        {
            "id": "pull",
            "label": "Day 2",
            "title": "Day 2 — Pull / Anti-Rotation",
            "supersets": [
                {
                    "name": "Superset",
                    "rounds": 3,
                    "rest": "60–90 sec",
                    "exercises": [
                        {
                            "id": "pull-ups",
                            "name": "Pull-Ups",
                            "reps": "6–10 (or max)",
                            "tempo": "3-0-1-1",
                            "rpe": "8",
                        },
                        {
                            "id": "pallof-press",
                            "name": "Pallof Press",
                            "reps": "10/side",
                            "tempo": "1-3-1-0",
                            "rpe": "7",
                        },
                    ],
                }
            ],
            "finisher": {
                "id": "goblet-cossack-squat",
                "name": "Goblet Cossack Squat",
                "sets": 3,
                "reps": "6/side",
                "tempo": "3-2-2-0",
                "rpe": "7",
                "rest": "60 sec",
            },
        },
        {
            "id": "carry",
            "label": "Day 3",
            "title": "Day 3 — Carry / Total Body",
            "supersets": [
                {
                    "name": "Superset",
                    "rounds": 3,
                    "rest": "60–90 sec",
                    "exercises": [
                        {
                            "id": "rdl",
                            "name": "RDL",
                            "reps": "8–10",
                            "tempo": "3-1-1-0",
                            "rpe": "7–8",
                        },
                        {
                            "id": "dead-bug",
                            "name": "Dead Bug",
                            "reps": "8/side",
                            "tempo": "3-1-3-1",
                            "rpe": "7",
                        },
                    ],
                }
            ],
            "finisher": {
                "id": "farmers-carry",
                "name": "Farmer's Carry",
                "sets": 3,
                "reps": "50 yd",
                "rpe": "7–8",
                "rest": "60 sec",
            },
        },
    ],
    "progression_notes": [
        "Heavy bell: Should make round 3 challenging but clean. If form breaks "
        "on the press, size down.",
        "Light bell: Windmills should be slow and controlled. No grinding.",
        "Progress heavy bell first. When 3 rounds feel controlled, bump up one size.",
    ],
}

COMPLEX_UNIT_KEY = "complex"

# Trailing unit tokens recognised in an exercise's rep prescription
_UNIT_MAP = {
    "yd": {"short": "yd", "label": "Distance (yd)"},
    "m": {"short": "m", "label": "Distance (m)"},
    "ft": {"short": "ft", "label": "Distance (ft)"},
    "sec": {"short": "sec", "label": "Time"},
    "min": {"short": "min", "label": "Time"},
}
_DEFAULT_UNIT = {"short": "reps", "label": "Reps"}
_TRAILING_WORD = re.compile(r"[a-zA-Z]+$")


def parse_exercise_unit(reps: str) -> dict[str, str]:
    """Return the unit implied by a rep prescription such as ``"50 yd"``.

    Anything without a recognised trailing unit is counted in reps.
    """

    match = _TRAILING_WORD.search(reps or "")
    if not match:
        return dict(_DEFAULT_UNIT)
    return dict(_UNIT_MAP.get(match.group(0).lower(), _DEFAULT_UNIT))


def day_index_for_weekday(weekday: int) -> int:
    """Map ``date.weekday()`` (Monday=0) to the default program day index."""

    if weekday in (0, 1):
        return 0
    if weekday in (2, 3):
        return 1
    return 2


class Program:
    """Immutable view over a workout plan with its derived lookup tables."""

    def __init__(self, plan: Mapping[str, Any] = WORKOUT_PLAN) -> None:
        self.plan = plan
        self.days: tuple[Mapping[str, Any], ...] = tuple(plan["days"])
        self.complex: Mapping[str, Any] = plan["complex"]

        name_to_id: dict[str, str] = {}
        id_to_name: dict[str, str] = {}

        def register(exercise: Mapping[str, Any]) -> None:
            name_to_id[exercise["name"]] = exercise["id"]
            id_to_name[exercise["id"]] = exercise["name"]

        for ex in self.complex["exercises"]:
            register(ex)
        for day in self.days:
            for superset in day["supersets"]:
                for ex in superset["exercises"]:
                    register(ex)
            register(day["finisher"])

        self.exercise_name_to_id: Mapping[str, str] = MappingProxyType(name_to_id)
        self.exercise_id_to_name: Mapping[str, str] = MappingProxyType(id_to_name)
        self.day_by_id: Mapping[str, Mapping[str, Any]] = MappingProxyType(
            {day["id"]: day for day in self.days}
        )

    @property
    def day_ids(self) -> list[str]:
        return [day["id"] for day in self.days]

    def day_at(self, index: int) -> Mapping[str, Any]:
        """Return the day at ``index``, raising ``IndexError`` when invalid."""

        if index < 0 or index >= len(self.days):
            raise IndexError("Invalid day index")
        return self.days[index]

    def exercise_name(self, exercise_id: str) -> str:
        return self.exercise_id_to_name.get(exercise_id, exercise_id)

    def day_label(self, day_id: str) -> str:
        """Return the focus text of a day's title, e.g. ``"Push / Anti-Extension"``."""

        day = self.day_by_id.get(day_id)
        if day is None:
            return day_id
        parts = day["title"].split("—", 1)
        focus = parts[1].strip() if len(parts) > 1 else ""
        return focus or day["label"]

    def exercise_ids_for_day(self, day_id: str) -> list[str]:
        """Return every exercise ID performed on ``day_id`` in program order."""

        day = self.day_by_id.get(day_id)
        if day is None:
            return []
        ids = [ex["id"] for ex in self.complex["exercises"]]
        for superset in day["supersets"]:
            ids.extend(ex["id"] for ex in superset["exercises"])
        ids.append(day["finisher"]["id"])
        return ids

    def units_for_day(self, day_id: str) -> list[dict[str, Any]]:
        """Return the trackable completion units for ``day_id``.

        Each unit is ``{"key", "name", "target", "rest"}``.  The complex is
        shared by every day and always comes first.
        """

        day = self.day_by_id.get(day_id)
        if day is None:
            return []
        units = [
            {
                "key": COMPLEX_UNIT_KEY,
                "name": "The Complex",
                "target": self.complex["rounds"],
                "rest": self.complex["rest"],
            }
        ]
        for idx, superset in enumerate(day["supersets"]):
            units.append(
                {
                    "key": f"{day_id}-superset-{idx}",
                    "name": superset["name"],
                    "target": superset["rounds"],
                    "rest": superset["rest"],
                }
            )
        finisher = day["finisher"]
        units.append(
            {
                "key": f"{day_id}-finisher",
                "name": finisher["name"],
                "target": finisher["sets"],
                "rest": finisher["rest"],
            }
        )
        return units
