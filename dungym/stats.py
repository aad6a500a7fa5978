"""Pure helpers deriving statistics from a list of workout sessions.

Dates are grouped by the *local* calendar day of each session's ISO
timestamp.  Every function that depends on "today" accepts an optional
``now`` so results are reproducible.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Iterator, Mapping

from dungym import STREAK_GAP_DAYS
from dungym.program import Program
from dungym.utils import parse_iso, parse_reps, parse_weight, session_sort_key

HEATMAP_WEEKS = 12
PROGRESS_METRICS = ("weight", "reps")

_ROTATING_HEADLINES = (
    {"title": "Session complete", "subtitle": "Another one in the books."},
    {"title": "Work done", "subtitle": "That's how it's built."},
    {"title": "Solid session", "subtitle": "Show up again next time."},
)


# ----------------------------------------------------------------------
# Dates
# ----------------------------------------------------------------------


def _local_now(now: datetime | None) -> datetime:
    return (now or datetime.now()).astimezone()


def _local_date(iso: Any) -> date | None:
    parsed = parse_iso(iso)
    if parsed is None:
        return None
    return parsed.astimezone().date()


def to_date_key(iso: Any) -> str | None:
    """Return the local ``YYYY-MM-DD`` key of an ISO timestamp."""

    day = _local_date(iso)
    return day.isoformat() if day else None


def days_between(a: str, b: str) -> int:
    """Absolute number of whole days between two ``YYYY-MM-DD`` keys."""

    return abs((date.fromisoformat(a) - date.fromisoformat(b)).days)


def _unique_dates(sessions: Iterable[Mapping[str, Any]]) -> list[date]:
    days = {_local_date(s.get("date")) for s in sessions}
    days.discard(None)
    return sorted(days)


# ----------------------------------------------------------------------
# Set iteration
# ----------------------------------------------------------------------


def _iter_sets(exercises: Any) -> Iterator[tuple[str, Mapping[str, Any]]]:
    if not isinstance(exercises, Mapping):
        return
    for exercise_id, sets in exercises.items():
        if not isinstance(sets, list):
            continue
        for entry in sets:
            if isinstance(entry, Mapping):
                yield exercise_id, entry


def _is_logged(entry: Mapping[str, Any]) -> bool:
    return parse_weight(entry.get("weight")) > 0 or parse_reps(entry.get("reps")) > 0


# ----------------------------------------------------------------------
# Streaks
# ----------------------------------------------------------------------


def compute_streaks(
    sessions: list[Mapping[str, Any]], now: datetime | None = None
) -> dict[str, int]:
    """Return ``current``, ``longest``, ``this_week`` and ``this_month`` counts.

    Two workout dates belong to the same streak when they are at most
    :data:`~dungym.STREAK_GAP_DAYS` apart.  The current streak only counts
    while the most recent workout is itself within that gap of today.
    """

    result = {"current": 0, "longest": 0, "this_week": 0, "this_month": 0}
    if not sessions:
        return result
    now = _local_now(now)
    today = now.date()
    dates = _unique_dates(sessions)

    if dates and (today - dates[-1]).days <= STREAK_GAP_DAYS:
        current = 1
        for earlier, later in zip(reversed(dates[:-1]), reversed(dates[1:])):
            if (later - earlier).days > STREAK_GAP_DAYS:
                break
            current += 1
        result["current"] = current

    if dates:
        longest = run = 1
        for earlier, later in zip(dates, dates[1:]):
            run = run + 1 if (later - earlier).days <= STREAK_GAP_DAYS else 1
            longest = max(longest, run)
        result["longest"] = longest

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    monday = midnight - timedelta(days=today.weekday())
    month_start = midnight.replace(day=1)
    for session in sessions:
        moment = parse_iso(session.get("date"))
        if moment is None:
            continue
        if moment >= monday:
            result["this_week"] += 1
        if moment >= month_start:
            result["this_month"] += 1
    return result


# ----------------------------------------------------------------------
# Personal records
# ----------------------------------------------------------------------


def personal_records(sessions: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Return the heaviest set per exercise, heaviest first.

    Each record is ``{exercise, weight, reps, date}``.  A later set only
    replaces the record when it is strictly heavier.
    """

    records: dict[str, dict[str, Any]] = {}
    for session in sessions:
        for exercise_id, entry in _iter_sets(session.get("exercises")):
            weight = parse_weight(entry.get("weight"))
            if weight <= 0:
                continue
            best = records.get(exercise_id)
            if best is None or weight > best["weight"]:
                records[exercise_id] = {
                    "exercise": exercise_id,
                    "weight": weight,
                    "reps": entry.get("reps", ""),
                    "date": session.get("date"),
                }
    return sorted(records.values(), key=lambda r: r["weight"], reverse=True)


def find_new_prs(
    current: Mapping[str, Any], history: list[Mapping[str, Any]]
) -> list[dict[str, Any]]:
    """Return the records ``current`` set against every other session.

    Each entry is ``{exercise, weight, previous_weight}`` where
    ``previous_weight`` is ``None`` for a first-ever weighted set.
    """

    previous: dict[str, float] = {}
    for session in history:
        if session.get("id") == current.get("id"):
            continue
        for exercise_id, entry in _iter_sets(session.get("exercises")):
            weight = parse_weight(entry.get("weight"))
            if weight > previous.get(exercise_id, 0):
                previous[exercise_id] = weight

    found: dict[str, dict[str, Any]] = {}
    for exercise_id, entry in _iter_sets(current.get("exercises")):
        weight = parse_weight(entry.get("weight"))
        if weight <= 0 or weight <= previous.get(exercise_id, 0):
            continue
        pr = found.get(exercise_id)
        if pr is None:
            found[exercise_id] = {
                "exercise": exercise_id,
                "weight": weight,
                "previous_weight": previous.get(exercise_id),
            }
        elif weight > pr["weight"]:
            pr["weight"] = weight
    return sorted(found.values(), key=lambda r: r["weight"], reverse=True)


# ----------------------------------------------------------------------
# Volume and counts
# ----------------------------------------------------------------------


def compute_volume(exercises: Any) -> float:
    """Sum ``weight * reps`` over the sets where both are positive."""

    volume = 0.0
    for _exercise_id, entry in _iter_sets(exercises):
        weight = parse_weight(entry.get("weight"))
        reps = parse_reps(entry.get("reps"))
        if weight > 0 and reps > 0:
            volume += weight * reps
    return volume


def session_volume(session: Mapping[str, Any]) -> float:
    return compute_volume(session.get("exercises"))


def total_volume(sessions: Iterable[Mapping[str, Any]]) -> float:
    return sum(session_volume(s) for s in sessions)


def count_sets(exercises: Any) -> int:
    """Number of sets with a positive weight or rep count."""

    return sum(1 for _exercise_id, entry in _iter_sets(exercises) if _is_logged(entry))


def count_exercises(exercises: Any) -> int:
    """Number of exercises with at least one logged set."""

    return len({exercise_id for exercise_id, entry in _iter_sets(exercises) if _is_logged(entry)})


def average_duration(sessions: list[Mapping[str, Any]]) -> float:
    durations = [s.get("duration") for s in sessions]
    durations = [d for d in durations if isinstance(d, (int, float)) and not isinstance(d, bool)]
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


# ----------------------------------------------------------------------
# Activity
# ----------------------------------------------------------------------


def date_counts(sessions: Iterable[Mapping[str, Any]]) -> dict[str, int]:
    """Number of sessions per local ``YYYY-MM-DD`` key."""

    counts = Counter(to_date_key(s.get("date")) for s in sessions)
    counts.pop(None, None)
    return dict(counts)


def activity_heatmap(
    sessions: Iterable[Mapping[str, Any]],
    weeks: int = HEATMAP_WEEKS,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Return a Monday-aligned grid of ``{date, count, future}`` cells.

    The grid spans the ``weeks`` full weeks before the current one plus the
    current week, oldest first, so its length is always ``7 * (weeks + 1)``.
    Cells after today are flagged ``future``.
    """

    counts = date_counts(sessions)
    today = _local_now(now).date()
    start = today - timedelta(days=today.weekday() + 7 * weeks)
    grid = []
    for offset in range(7 * (weeks + 1)):
        day = start + timedelta(days=offset)
        key = day.isoformat()
        grid.append({"date": key, "count": counts.get(key, 0), "future": day > today})
    return grid


def day_distribution(
    sessions: Iterable[Mapping[str, Any]], program: Program | None = None
) -> dict[str, int]:
    """Count sessions per program day id, in program order."""

    program = program or Program()
    distribution = {day_id: 0 for day_id in program.day_ids}
    for session in sessions:
        day_id = session.get("day")
        if day_id in distribution:
            distribution[day_id] += 1
    return distribution


def progress_series(
    sessions: list[Mapping[str, Any]],
    exercise_id: str,
    metric: str = "weight",
    limit: int = 10,
) -> list[dict[str, Any]]:
    """Per-session best ``metric`` for ``exercise_id``, oldest first.

    Only the ``limit`` most recent sessions that logged the exercise are
    included.
    """

    if metric not in PROGRESS_METRICS:
        raise ValueError(f"Unknown progress metric '{metric}'")
    parse = parse_weight if metric == "weight" else parse_reps
    points = []
    for session in sorted(sessions, key=session_sort_key):
        exercises = session.get("exercises")
        sets = exercises.get(exercise_id) if isinstance(exercises, Mapping) else None
        if not isinstance(sets, list):
            continue
        entries = [e for e in sets if isinstance(e, Mapping) and (e.get("weight") or e.get("reps"))]
        if not entries:
            continue
        value = max(parse(e.get(metric)) for e in entries)
        points.append({"date": session.get("date"), "value": value})
    return points[-limit:] if limit > 0 else []


# ----------------------------------------------------------------------
# Text
# ----------------------------------------------------------------------


def session_headline(
    prs: list[Mapping[str, Any]], streak: int, total_sessions: int
) -> dict[str, str]:
    """Title and subtitle shown when a session is completed."""

    if total_sessions <= 1:
        return {
            "title": "First one down",
            "subtitle": "Welcome to the program. Consistency starts now.",
        }
    if prs:
        return {
            "title": "New PR" if len(prs) == 1 else f"{len(prs)} new PRs",
            "subtitle": "You're getting stronger.",
        }
    if streak >= 10:
        return {"title": f"{streak} sessions deep", "subtitle": "That's serious consistency."}
    if streak >= 5:
        return {"title": "On a roll", "subtitle": f"{streak} sessions and counting."}
    if streak >= 3:
        return {"title": "Building momentum", "subtitle": f"{streak} in a row. Keep showing up."}
    return dict(_ROTATING_HEADLINES[total_sessions % len(_ROTATING_HEADLINES)])


def format_duration(seconds: float) -> str:
    """``300`` -> ``"5m"``, ``3660`` -> ``"1h 1m"``."""

    minutes = int(max(0, seconds) // 60)
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes // 60}h {minutes % 60}m"


def format_volume(volume: float) -> str:
    """``0`` -> ``""``, ``500`` -> ``"500 lb"``, ``1500`` -> ``"1.5K lb"``."""

    if not volume:
        return ""
    if volume >= 1000:
        return f"{volume / 1000:.1f}K lb"
    return f"{round(volume)} lb"


def format_total_volume(volume: float) -> str:
    if volume >= 1_000_000:
        return f"{volume / 1_000_000:.1f}M lb"
    if volume >= 1000:
        return f"{volume / 1000:.1f}K lb"
    return f"{round(volume)} lb"


def format_date(iso: Any) -> str:
    """Local weekday, month and day, e.g. ``"Sun, Jun 15"``."""

    parsed = parse_iso(iso)
    if parsed is None:
        return str(iso or "")
    local = parsed.astimezone()
    return f"{local:%a}, {local:%b} {local.day}"


def _format_set(entry: Mapping[str, Any]) -> str:
    weight = str(entry.get("weight") or "").strip()
    reps = str(entry.get("reps") or "").strip()
    if weight and reps:
        text = f"{weight} x {reps}"
    else:
        text = weight or reps
    note = str(entry.get("note") or "").strip()
    if note:
        text = f"{text} ({note})" if text else note
    return text


def format_session_summary(session: Mapping[str, Any], program: Program | None = None) -> str:
    """Multi-line plain text description of one session."""

    program = program or Program()
    exercises = session.get("exercises")
    header = f"{format_date(session.get('date'))} - {program.day_label(str(session.get('day', '')))}"
    details = [format_duration(session.get("duration") or 0)]
    volume = format_volume(compute_volume(exercises))
    if volume:
        details.append(volume)
    details.append(f"{count_sets(exercises)} sets")
    lines = [header, " | ".join(details)]
    if isinstance(exercises, Mapping):
        for exercise_id, sets in exercises.items():
            if not isinstance(sets, list):
                continue
            logged = [_format_set(e) for e in sets if isinstance(e, Mapping)]
            logged = [text for text in logged if text]
            if logged:
                lines.append(f"  {program.exercise_name(exercise_id)}: {', '.join(logged)}")
    return "\n".join(lines)
