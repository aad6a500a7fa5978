import json
import os
from pathlib import Path
import sys

import pytest

os.environ["KIVY_WINDOW"] = "mock"
os.environ.setdefault("KIVY_UNITTEST", "1")
os.environ.setdefault("KIVY_NO_ARGS", "1")
os.environ.setdefault("KIVY_NO_CONSOLELOG", "1")

sys.path.append(str(Path(__file__).resolve().parents[1]))

from dungym.device import DeviceCapabilities  # noqa: E402
from dungym.identifiers import IdentifierResolver  # noqa: E402
from dungym.local_store import LocalStore  # noqa: E402
from dungym.program import Program  # noqa: E402

# Arbitrary fixed epoch used as "now" by the fake clock
BASE_TIME = 1_750_000_000.0


class FakeEvent:
    """Scheduled callback returned by :class:`FakeClock`."""

    def __init__(self, clock, callback, timeout, repeat):
        self.callback = callback
        self.timeout = timeout
        self.repeat = repeat
        self.due = clock.time + timeout
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeClock:
    """Stand-in for ``kivy.clock.Clock`` that only moves when advanced."""

    def __init__(self):
        self.time = 0.0
        self.events = []

    def now(self):
        return BASE_TIME + self.time

    def schedule_once(self, callback, timeout=0):
        event = FakeEvent(self, callback, timeout, repeat=False)
        self.events.append(event)
        return event

    def schedule_interval(self, callback, timeout):
        event = FakeEvent(self, callback, timeout, repeat=True)
        self.events.append(event)
        return event

    def active(self):
        return [e for e in self.events if not e.cancelled]

    def advance(self, seconds):
        target = self.time + seconds
        while True:
            pending = [e for e in self.events if not e.cancelled and e.due <= target + 1e-9]
            if not pending:
                break
            event = min(pending, key=lambda e: e.due)
            self.time = event.due
            result = event.callback(event.timeout)
            if event.repeat and result is not False and not event.cancelled:
                event.due += event.timeout
            else:
                event.cancelled = True
        self.time = target
        self.events = [e for e in self.events if not e.cancelled]


class RecordingDevice(DeviceCapabilities):
    """Device that records every side effect, optionally failing each one."""

    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def _record(self, name):
        self.calls.append(name)
        if self.fail:
            raise RuntimeError(f"{name} unsupported")

    def play_cue(self):
        self._record("cue")

    def vibrate(self, pattern_ms=()):
        self._record("vibrate")

    def acquire_wake_lock(self):
        self._record("wake_lock")

    def release_wake_lock(self):
        self._record("wake_release")


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self.text = text or self.content.decode("utf-8")

    def json(self):
        return json.loads(self.content)


class FakeHTTP:
    """Records requests and replies with queued responses or exceptions."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        reply = self.responses.pop(0) if self.responses else FakeResponse(200, [])
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def device():
    return RecordingDevice()


@pytest.fixture
def program():
    return Program()


@pytest.fixture
def resolver(program):
    return IdentifierResolver(program)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "dungym.db"


@pytest.fixture
def local_store(db_path, resolver):
    return LocalStore(db_path, resolver)


@pytest.fixture
def http():
    return FakeHTTP()
