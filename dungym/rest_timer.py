"""Countdown rest timer with end-of-rest side effects.

Only one timer runs at a time: starting a new rest replaces the current one
together with its pending auto-dismiss.  When the countdown reaches zero
the device cue fires, ``on_expire`` is called so the owner can advance the
matching completion counter, and the finished timer stays visible for
:data:`~dungym.REST_DISMISS_SECONDS` unless dismissed earlier.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from kivy.clock import Clock

from dungym import DEFAULT_REST_SECONDS, REST_DISMISS_SECONDS
from dungym.device import DeviceCapabilities

logger = logging.getLogger(__name__)

_RANGE = re.compile("(\\d+)\\s*[-–—‒―]\\s*(\\d+)")
_NUMBER = re.compile(r"\d+")


def parse_rest_spec(spec: str | None) -> tuple[int, int]:
    """Return ``(lower, upper)`` rest bounds in seconds.

    ``"90–120 sec"`` gives ``(90, 120)``, ``"60 sec"`` gives ``(60, 60)``
    and anything without a number falls back to the default rest.
    """

    text = spec if isinstance(spec, str) else ""
    match = _RANGE.search(text)
    if match:
        low, high = int(match.group(1)), int(match.group(2))
        if high > 0:
            return min(low, high), max(low, high)
    match = _NUMBER.search(text)
    if match and int(match.group(0)) > 0:
        value = int(match.group(0))
        return value, value
    return DEFAULT_REST_SECONDS, DEFAULT_REST_SECONDS


def call_safely(action: Callable[[], object], what: str) -> None:
    """Run a device side effect, logging and ignoring any failure."""

    try:
        action()
    except Exception:
        logger.debug("%s failed", what, exc_info=True)


class RestTimer:
    """Single active countdown driven by a Kivy-style clock."""

    def __init__(
        self,
        device: DeviceCapabilities,
        on_expire: Callable[[str, int], None],
        on_update: Callable[[dict | None], None] | None = None,
        *,
        clock=Clock,
        dismiss_after: float = REST_DISMISS_SECONDS,
    ) -> None:
        self.device = device
        self.on_expire = on_expire
        self.on_update = on_update
        self.dismiss_after = dismiss_after
        self._clock = clock
        self._interval = None
        self._dismiss_event = None
        self.remaining = 0
        self.lower = 0
        self.total = 0
        self.finished = False
        self.unit_key: str | None = None
        self.unit_target = 0

    @property
    def active(self) -> bool:
        """``True`` while a countdown or its finished display is showing."""

        return self.unit_key is not None

    @property
    def is_urgent(self) -> bool:
        """``True`` once the rest taken has reached the lower bound."""

        return self.active and self.total - self.remaining >= self.lower

    def snapshot(self) -> dict | None:
        if not self.active:
            return None
        return {
            "remaining": self.remaining,
            "lower": self.lower,
            "total": self.total,
            "finished": self.finished,
            "urgent": self.is_urgent,
            "unit_key": self.unit_key,
        }

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update(self.snapshot())

    def _cancel_events(self) -> None:
        if self._interval is not None:
            self._interval.cancel()
            self._interval = None
        if self._dismiss_event is not None:
            self._dismiss_event.cancel()
            self._dismiss_event = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, spec: str | None, unit_key: str, unit_target: int) -> None:
        """Start counting down the rest described by ``spec``."""

        if self.active:
            self.cancel()
        self.lower, self.total = parse_rest_spec(spec)
        self.remaining = self.total
        self.finished = False
        self.unit_key = unit_key
        self.unit_target = unit_target
        call_safely(self.device.acquire_wake_lock, "Wake lock acquire")
        self._interval = self._clock.schedule_interval(self._tick, 1)
        self._notify()

    def cancel(self) -> None:
        """Stop the timer and clear it, releasing the wake lock."""

        was_running = self.active and not self.finished
        self._cancel_events()
        self.unit_key = None
        self.finished = False
        self.remaining = self.lower = self.total = 0
        self.unit_target = 0
        if was_running:
            call_safely(self.device.release_wake_lock, "Wake lock release")
        self._notify()

    def dismiss(self) -> None:
        """Manually dismiss the timer, cancelling any pending auto-dismiss."""

        self.cancel()

    # ------------------------------------------------------------------
    # Clock callbacks
    # ------------------------------------------------------------------

    def _tick(self, _dt=None):
        if not self.active or self.finished:
            return False
        self.remaining = max(0, self.remaining - 1)
        if self.remaining == 0:
            self._expire()
            return False
        self._notify()
        return None

    def _expire(self) -> None:
        if self._interval is not None:
            self._interval.cancel()
            self._interval = None
        self.finished = True
        call_safely(self.device.play_cue, "Audio cue")
        call_safely(self.device.vibrate, "Vibration")
        call_safely(self.device.release_wake_lock, "Wake lock release")
        unit_key, unit_target = self.unit_key, self.unit_target
        self._dismiss_event = self._clock.schedule_once(self._auto_dismiss, self.dismiss_after)
        self._notify()
        if unit_key is not None:
            self.on_expire(unit_key, unit_target)

    def _auto_dismiss(self, _dt=None) -> None:
        self._dismiss_event = None
        self.cancel()
