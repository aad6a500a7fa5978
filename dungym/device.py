"""Device side effects used by the rest timer.

:class:`DeviceCapabilities` is the interface the session runtime talks to;
its methods do nothing, which is the right behaviour wherever a capability
is missing.  :class:`KivyDevice` plays the audible cue through Kivy's
``SoundLoader`` and, on Android, vibrates and holds a screen wake lock
through pyjnius.  Callers treat every method as best-effort.
"""

from __future__ import annotations

import logging
from pathlib import Path

from kivy.clock import Clock
from kivy.core.audio import SoundLoader

try:  # pragma: no cover - jnius is only available on Android
    from jnius import autoclass  # type: ignore
except ImportError:  # pragma: no cover - capability absent off-device
    autoclass = None  # type: ignore

logger = logging.getLogger(__name__)

SOUNDS_DIR = Path(__file__).resolve().parent.parent / "assets" / "sounds"

# Three short pulses for the end-of-rest cue
CUE_PULSES = 3
CUE_SPACING_SECONDS = 0.25
VIBRATION_PATTERN_MS = (200, 100, 200, 100, 200)
WAKE_LOCK_TAG = "dungym:rest-timer"


class DeviceCapabilities:
    """Optional device features; the base class supports none of them."""

    def play_cue(self) -> None:
        """Play the three-pulse end-of-rest cue."""

    def vibrate(self, pattern_ms: tuple[int, ...] = VIBRATION_PATTERN_MS) -> None:
        """Pulse the vibration motor with ``pattern_ms`` (on/off durations)."""

    def acquire_wake_lock(self) -> None:
        """Keep the screen on until :meth:`release_wake_lock`."""

    def release_wake_lock(self) -> None:
        """Let the screen turn off again."""


class KivyDevice(DeviceCapabilities):
    """Capabilities backed by Kivy audio and, when present, Android services."""

    def __init__(
        self,
        *,
        sound_on: bool = True,
        sound_level: float = 1.0,
        vibrate_on: bool = True,
        keep_awake: bool = True,
        sounds_dir: Path = SOUNDS_DIR,
        clock=Clock,
    ) -> None:
        self.sound_on = sound_on
        self.sound_level = sound_level
        self.vibrate_on = vibrate_on
        self.keep_awake = keep_awake
        self._sounds_dir = Path(sounds_dir)
        self._clock = clock
        self._cache: dict[str, object] = {}
        self._pulse_events: list = []
        self._wake_lock = None

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    def _load(self, name: str):
        snd = self._cache.get(name)
        if snd is None:
            snd = SoundLoader.load(str(self._sounds_dir / f"{name}.wav"))
            if snd is None:
                logger.debug("Sound %s could not be loaded", name)
            self._cache[name] = snd
        return snd

    def _pulse(self, _dt=None) -> None:
        snd = self._load("beep")
        if snd:
            snd.volume = self.sound_level
            snd.stop()
            snd.play()

    def play_cue(self) -> None:
        if not self.sound_on:
            return
        for event in self._pulse_events:
            event.cancel()
        self._pulse_events = [
            self._clock.schedule_once(self._pulse, idx * CUE_SPACING_SECONDS)
            for idx in range(CUE_PULSES)
        ]

    # ------------------------------------------------------------------
    # Android services
    # ------------------------------------------------------------------

    @staticmethod
    def _activity():
        if autoclass is None:
            return None
        return autoclass("org.kivy.android.PythonActivity").mActivity

    def vibrate(self, pattern_ms: tuple[int, ...] = VIBRATION_PATTERN_MS) -> None:
        if not self.vibrate_on:
            return
        activity = self._activity()
        if activity is None:
            return
        Context = autoclass("android.content.Context")
        vibrator = activity.getSystemService(Context.VIBRATOR_SERVICE)
        # Android patterns start with an initial off period
        vibrator.vibrate([0, *pattern_ms], -1)

    def acquire_wake_lock(self) -> None:
        if not self.keep_awake or self._wake_lock is not None:
            return
        activity = self._activity()
        if activity is None:
            return
        Context = autoclass("android.content.Context")
        PowerManager = autoclass("android.os.PowerManager")
        manager = activity.getSystemService(Context.POWER_SERVICE)
        lock = manager.newWakeLock(
            PowerManager.SCREEN_BRIGHT_WAKE_LOCK | PowerManager.ON_AFTER_RELEASE,
            WAKE_LOCK_TAG,
        )
        lock.acquire()
        self._wake_lock = lock

    def release_wake_lock(self) -> None:
        lock, self._wake_lock = self._wake_lock, None
        if lock is not None and lock.isHeld():
            lock.release()
