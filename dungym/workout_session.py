"""In-progress workout: completion counters, session clock and rest timer.

:class:`SessionRuntime` is the state machine behind the workout screen.  It
moves between ``not_started``, ``active`` and ``paused``; finishing saves a
session through the repository and discarding throws the draft away, both
returning to ``not_started``.  Both need a second tap inside a short
confirmation window.

The clock is kept as a start timestamp plus a bank of seconds carried
across pauses, so nothing needs to tick for the elapsed time to be right.
The one-second clock event only refreshes :attr:`SessionRuntime.elapsed`
for observers.
"""

from __future__ import annotations

import copy
import logging
import math
import time
from datetime import date
from typing import Any, Callable

from kivy.clock import Clock
from kivy.event import EventDispatcher
from kivy.properties import (
    BooleanProperty,
    DictProperty,
    NumericProperty,
    ObjectProperty,
)

from dungym import DISCARD_CONFIRM_SECONDS, FINISH_CONFIRM_SECONDS
from dungym.device import DeviceCapabilities
from dungym.exceptions import StorageUnavailableError
from dungym.program import Program, day_index_for_weekday
from dungym.repository import SessionRepository
from dungym.rest_timer import RestTimer
from dungym.utils import new_session_id, utc_now_iso

logger = logging.getLogger(__name__)

NOT_STARTED = "not_started"
ACTIVE = "active"
PAUSED = "paused"

SET_FIELDS = ("weight", "reps", "note")


class SessionRuntime(EventDispatcher):
    """Track one workout from the first logged set until finish or discard."""

    counts = DictProperty({})
    timer = ObjectProperty(None, allownone=True)
    elapsed = NumericProperty(0)
    active_day_index = NumericProperty(0)
    finish_armed = BooleanProperty(False)
    discard_armed = BooleanProperty(False)

    __events__ = (
        "on_unit_complete",
        "on_rest_finished",
        "on_session_saved",
        "on_session_discarded",
    )

    def __init__(
        self,
        repository: SessionRepository,
        program: Program | None = None,
        device: DeviceCapabilities | None = None,
        *,
        clock=Clock,
        now: Callable[[], float] = time.time,
        day_index: int | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.repository = repository
        self.program = program or Program()
        self.device = device or DeviceCapabilities()
        self._clock = clock
        self._now = now
        self.clock_start: float | None = None
        self.clock_bank = 0.0
        self._frozen_elapsed: int | None = None
        self._clock_event = None
        self._finish_event = None
        self._discard_event = None
        # A draft left behind by an interrupted session is picked up again
        self.draft: dict[str, list[dict]] = self.repository.get_draft()
        self.rest = RestTimer(
            self.device,
            self._on_rest_expired,
            self._on_timer_update,
            clock=clock,
        )
        if day_index is None:
            day_index = day_index_for_weekday(date.today().weekday())
        self.set_active_day(day_index)

    # ------------------------------------------------------------------
    # Default event handlers
    # ------------------------------------------------------------------

    def on_unit_complete(self, unit_key: str) -> None:
        pass

    def on_rest_finished(self, unit_key: str) -> None:
        pass

    def on_session_saved(self, session: dict) -> None:
        pass

    def on_session_discarded(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        if self.clock_start is not None:
            return ACTIVE
        if self.clock_bank > 0:
            return PAUSED
        return NOT_STARTED

    @property
    def active_day(self) -> dict[str, Any]:
        return self.program.day_at(int(self.active_day_index))

    def units(self) -> list[dict[str, Any]]:
        """Return the completion units of the active day."""

        return self.program.units_for_day(self.active_day["id"])

    def unit_target(self, unit_key: str) -> int | None:
        for unit in self.units():
            if unit["key"] == unit_key:
                return unit["target"]
        return None

    def is_unit_done(self, unit_key: str) -> bool:
        target = self.unit_target(unit_key)
        return target is not None and self.counts.get(unit_key, 0) >= target

    def is_complete(self) -> bool:
        """Return ``True`` when every unit of the active day reached its target."""

        units = self.units()
        return bool(units) and all(
            self.counts.get(unit["key"], 0) >= unit["target"] for unit in units
        )

    def _live_elapsed(self) -> int:
        running = 0.0
        if self.clock_start is not None:
            running = max(0.0, self._now() - self.clock_start)
        # Sub-second remainders stay banked across pauses
        return math.floor(self.clock_bank + running)

    def elapsed_seconds(self) -> int:
        """Seconds to display; frozen once the workout is complete."""

        if self._frozen_elapsed is not None:
            return self._frozen_elapsed
        return self._live_elapsed()

    def snapshot(self) -> dict[str, Any]:
        """Return the runtime state for display."""

        return {
            "state": self.state,
            "day": self.active_day["id"],
            "counts": dict(self.counts),
            "timer": self.timer,
            "elapsed": self.elapsed_seconds(),
            "complete": self.is_complete(),
            "clock_start": self.clock_start,
            "clock_bank": self.clock_bank,
        }

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def _start_clock(self) -> None:
        self.clock_start = self._now()
        if self._clock_event is None:
            self._clock_event = self._clock.schedule_interval(self._tick_clock, 1)
        self.elapsed = self.elapsed_seconds()

    def _stop_clock_event(self) -> None:
        if self._clock_event is not None:
            self._clock_event.cancel()
            self._clock_event = None

    def _tick_clock(self, _dt=None) -> None:
        self.elapsed = self.elapsed_seconds()

    def _refresh_completion(self) -> None:
        if self.is_complete() and self.state != NOT_STARTED:
            if self._frozen_elapsed is None:
                self._frozen_elapsed = self._live_elapsed()
        else:
            self._frozen_elapsed = None
        self.elapsed = self.elapsed_seconds()

    def pause(self) -> bool:
        """Bank the running time and stop the clock."""

        if self.state != ACTIVE:
            return False
        self.clock_bank += max(0.0, self._now() - self.clock_start)
        self.clock_start = None
        self._stop_clock_event()
        self.elapsed = self.elapsed_seconds()
        return True

    def resume(self) -> bool:
        """Restart the clock after a pause, keeping the banked time."""

        if self.state != PAUSED:
            return False
        self._start_clock()
        return True

    # ------------------------------------------------------------------
    # Day selection and counters
    # ------------------------------------------------------------------

    def set_active_day(self, index: int) -> None:
        self.program.day_at(index)
        self.active_day_index = index
        self._refresh_completion()

    def _set_count(self, unit_key: str, count: int, target: int) -> None:
        counts = dict(self.counts)
        counts[unit_key] = count
        self.counts = counts
        if count >= target:
            self.dispatch("on_unit_complete", unit_key)
        self._refresh_completion()

    def tap(self, unit_key: str, target: int | None = None) -> int:
        """Advance ``unit_key``'s counter, wrapping back to 0 past its target.

        ``target`` defaults to the unit's target in the active day.  A tap
        while paused resumes the clock.
        """

        if target is None:
            target = self.unit_target(unit_key)
        if target is None:
            logger.debug("Tap on unknown unit %s ignored", unit_key)
            return self.counts.get(unit_key, 0)
        if self.state == PAUSED:
            self._start_clock()
        count = (self.counts.get(unit_key, 0) + 1) % (target + 1)
        self._set_count(unit_key, count, target)
        return count

    # ------------------------------------------------------------------
    # Rest timer
    # ------------------------------------------------------------------

    def start_rest(self, spec: str | None, unit_key: str, target: int) -> None:
        """Start a rest countdown that advances ``unit_key`` when it ends."""

        self.rest.start(spec, unit_key, target)

    def cancel_rest(self) -> None:
        self.rest.cancel()

    def dismiss_rest(self) -> None:
        self.rest.dismiss()

    def _on_timer_update(self, snapshot: dict | None) -> None:
        self.timer = snapshot

    def _on_rest_expired(self, unit_key: str, target: int) -> None:
        current = self.counts.get(unit_key, 0)
        if current < target:
            self._set_count(unit_key, current + 1, target)
        self.dispatch("on_rest_finished", unit_key)

    # ------------------------------------------------------------------
    # Draft log
    # ------------------------------------------------------------------

    def update_draft_entry(self, exercise_key: str, index: int, field: str, value: str) -> None:
        """Set ``field`` of set ``index`` for ``exercise_key`` in the draft.

        The set list grows with empty entries as needed.  Editing while not
        started or paused (re)starts the clock.
        """

        if field not in SET_FIELDS:
            raise ValueError(f"Unknown set field '{field}'")
        if index < 0:
            raise IndexError("Invalid set index")
        sets = [dict(entry) for entry in self.draft.get(exercise_key, [])]
        while len(sets) <= index:
            sets.append({"weight": "", "reps": ""})
        sets[index][field] = "" if value is None else str(value)
        self.draft = {**self.draft, exercise_key: sets}
        self.repository.save_draft(self.draft)
        if self.state != ACTIVE:
            self._start_clock()

    # ------------------------------------------------------------------
    # Finish / discard
    # ------------------------------------------------------------------

    def _disarm_finish(self, _dt=None) -> None:
        self._finish_event = None
        self.finish_armed = False

    def _disarm_discard(self, _dt=None) -> None:
        self._discard_event = None
        self.discard_armed = False

    def _cancel_confirmations(self) -> None:
        for event in (self._finish_event, self._discard_event):
            if event is not None:
                event.cancel()
        self._finish_event = self._discard_event = None
        self.finish_armed = False
        self.discard_armed = False

    def build_session(self) -> dict[str, Any]:
        """Return a new session record from the current draft and clock."""

        return {
            "id": new_session_id(),
            "date": utc_now_iso(self._now()),
            "day": self.active_day["id"],
            "duration": int(self.elapsed_seconds()),
            "exercises": copy.deepcopy(self.draft),
        }

    def finish(self) -> dict | None:
        """Arm on the first tap, save on a second tap within the window.

        Returns the saved session on commit and ``None`` otherwise.  If the
        local write fails the draft and clock are kept so nothing is lost.
        """

        if not self.finish_armed:
            self._cancel_confirmations()
            self.finish_armed = True
            self._finish_event = self._clock.schedule_once(
                self._disarm_finish, FINISH_CONFIRM_SECONDS
            )
            return None
        self._cancel_confirmations()
        session = self.build_session()
        try:
            self.repository.save_session(session)
        except StorageUnavailableError:
            logger.error("Could not save session; keeping the draft", exc_info=True)
            return None
        self.repository.clear_draft()
        self.reset()
        self.dispatch("on_session_saved", session)
        return session

    def discard(self) -> bool:
        """Arm on the first tap, drop the workout on a second tap within the window."""

        if not self.discard_armed:
            self._cancel_confirmations()
            self.discard_armed = True
            self._discard_event = self._clock.schedule_once(
                self._disarm_discard, DISCARD_CONFIRM_SECONDS
            )
            return False
        self._cancel_confirmations()
        self.repository.clear_draft()
        self.reset()
        logger.info("Discarded in-progress workout")
        self.dispatch("on_session_discarded")
        return True

    def reset(self) -> None:
        """Return to ``not_started`` with empty counters, clock and draft."""

        self.rest.cancel()
        self._stop_clock_event()
        self._cancel_confirmations()
        self.clock_start = None
        self.clock_bank = 0.0
        self._frozen_elapsed = None
        self.counts = {}
        self.draft = {}
        self.elapsed = 0
