import pytest

from dungym.exceptions import StorageUnavailableError
from dungym.repository import SessionRepository
from dungym.workout_session import ACTIVE, NOT_STARTED, PAUSED, SessionRuntime

PUSH_UNITS = ("complex", "push-superset-0", "push-finisher")


@pytest.fixture
def repository(local_store):
    return SessionRepository(local_store)


@pytest.fixture
def runtime(repository, program, device, clock):
    return SessionRuntime(
        repository, program, device, clock=clock, now=clock.now, day_index=0
    )


def test_initial_state(runtime):
    assert runtime.state == NOT_STARTED
    assert runtime.active_day["id"] == "push"
    assert runtime.elapsed_seconds() == 0
    assert runtime.draft == {}
    assert not runtime.is_complete()


def test_tap_wraps_past_target(runtime):
    completed = []
    runtime.bind(on_unit_complete=lambda _inst, key: completed.append(key))
    assert [runtime.tap("complex") for _ in range(4)] == [1, 2, 3, 0]
    assert completed == ["complex"]
    assert runtime.counts["complex"] == 0


def test_tap_does_not_start_clock(runtime):
    runtime.tap("complex")
    assert runtime.state == NOT_STARTED


def test_tap_unknown_unit_is_ignored(runtime):
    assert runtime.tap("pull-finisher") == 0
    assert "pull-finisher" not in runtime.counts


def test_draft_edit_starts_clock_and_persists(runtime, repository, clock):
    runtime.update_draft_entry("bench-press", 1, "weight", "100")
    assert runtime.state == ACTIVE
    assert runtime.draft == {
        "bench-press": [{"weight": "", "reps": ""}, {"weight": "100", "reps": ""}]
    }
    assert repository.get_draft() == runtime.draft
    clock.advance(42)
    assert runtime.elapsed_seconds() == 42
    assert runtime.elapsed == 42


def test_draft_edit_rejects_unknown_field(runtime):
    with pytest.raises(ValueError):
        runtime.update_draft_entry("bench-press", 0, "tempo", "3-1-1-0")
    with pytest.raises(IndexError):
        runtime.update_draft_entry("bench-press", -1, "reps", "8")


def test_pause_and_resume(runtime, clock):
    runtime.update_draft_entry("rdl", 0, "reps", "10")
    clock.advance(10)
    assert runtime.pause()
    assert runtime.state == PAUSED
    assert runtime.clock_bank == 10
    clock.advance(100)
    assert runtime.elapsed_seconds() == 10
    assert not runtime.pause()

    runtime.tap("complex")
    assert runtime.state == ACTIVE
    clock.advance(5)
    assert runtime.elapsed_seconds() == 15


def test_resume_and_edit_after_pause(runtime, clock):
    runtime.update_draft_entry("rdl", 0, "reps", "10")
    clock.advance(3)
    runtime.pause()
    assert runtime.resume()
    assert not runtime.resume()
    clock.advance(2)
    runtime.pause()
    runtime.update_draft_entry("rdl", 0, "weight", "70")
    assert runtime.state == ACTIVE
    assert runtime.elapsed_seconds() == 5


def test_finish_needs_two_taps(runtime, repository, clock):
    saved = []
    runtime.bind(on_session_saved=lambda _inst, session: saved.append(session))
    runtime.update_draft_entry("bench-press", 0, "weight", "135")
    runtime.update_draft_entry("bench-press", 0, "reps", "8")
    clock.advance(600)

    assert runtime.finish() is None
    assert runtime.finish_armed
    clock.advance(3.5)
    assert not runtime.finish_armed
    assert runtime.finish() is None

    session = runtime.finish()
    assert session is not None
    assert session["day"] == "push"
    assert session["duration"] == 603
    assert session["exercises"] == {"bench-press": [{"weight": "135", "reps": "8"}]}
    assert session["date"].endswith("Z")
    assert saved == [session]

    assert runtime.state == NOT_STARTED
    assert runtime.draft == {}
    assert repository.get_draft() == {}
    assert [s["id"] for s in repository.get_sessions()] == [session["id"]]


def test_finish_keeps_draft_when_local_write_fails(runtime, repository, monkeypatch, clock):
    runtime.update_draft_entry("rdl", 0, "weight", "70")
    clock.advance(30)

    def broken(_session):
        raise StorageUnavailableError("disk full")

    monkeypatch.setattr(repository, "save_session", broken)
    runtime.finish()
    assert runtime.finish() is None
    assert runtime.state == ACTIVE
    assert runtime.draft == {"rdl": [{"weight": "70", "reps": ""}]}
    assert repository.get_draft() == runtime.draft


def test_discard_needs_two_taps(runtime, repository, clock):
    discarded = []
    runtime.bind(on_session_discarded=lambda _inst: discarded.append(True))
    runtime.update_draft_entry("rdl", 0, "weight", "70")
    runtime.tap("complex")

    assert runtime.discard() is False
    clock.advance(2.5)
    assert not runtime.discard_armed
    assert runtime.discard() is False
    assert runtime.discard() is True

    assert discarded == [True]
    assert runtime.state == NOT_STARTED
    assert dict(runtime.counts) == {}
    assert repository.get_draft() == {}
    assert repository.get_sessions() == []


def test_clock_freezes_when_complete(runtime, clock):
    runtime.update_draft_entry("bench-press", 0, "weight", "100")
    clock.advance(30)
    for unit in PUSH_UNITS:
        for _ in range(3):
            runtime.tap(unit)
    assert runtime.is_complete()
    clock.advance(90)
    assert runtime.elapsed_seconds() == 30

    # wrapping a counter back to zero unfreezes the display
    runtime.tap("complex")
    assert not runtime.is_complete()
    assert runtime.elapsed_seconds() == 120

    runtime.tap("complex")
    runtime.tap("complex")
    runtime.tap("complex")
    clock.advance(10)
    runtime.finish()
    assert runtime.finish()["duration"] == 120


def test_completing_before_clock_starts_keeps_timing(runtime, clock):
    for unit in PUSH_UNITS:
        for _ in range(3):
            runtime.tap(unit)
    assert runtime.is_complete()
    assert runtime.state == NOT_STARTED

    runtime.update_draft_entry("bench-press", 0, "weight", "100")
    clock.advance(1800)
    assert runtime.elapsed_seconds() == 1800
    runtime.finish()
    assert runtime.finish()["duration"] == 1800


def test_short_pause_keeps_session_paused(runtime, clock):
    runtime.update_draft_entry("rdl", 0, "reps", "10")
    clock.advance(0.4)
    assert runtime.pause()
    assert runtime.state == PAUSED
    assert runtime.elapsed_seconds() == 0


def test_pause_cycles_keep_fractional_seconds(runtime, clock):
    runtime.update_draft_entry("rdl", 0, "reps", "10")
    for _ in range(4):
        clock.advance(1.5)
        runtime.pause()
        runtime.resume()
    assert runtime.elapsed_seconds() == 6


def test_rest_expiry_advances_counter(runtime, device, clock):
    finished = []
    runtime.bind(on_rest_finished=lambda _inst, key: finished.append(key))
    runtime.start_rest("60–90 sec", "push-superset-0", 3)
    assert runtime.timer["remaining"] == 90
    clock.advance(90)
    assert runtime.counts["push-superset-0"] == 1
    assert finished == ["push-superset-0"]
    assert "cue" in device.calls
    clock.advance(5)
    assert runtime.timer is None


def test_rest_expiry_caps_at_target(runtime, clock):
    for _ in range(3):
        runtime.tap("push-finisher")
    runtime.start_rest("60 sec", "push-finisher", 3)
    clock.advance(60)
    assert runtime.counts["push-finisher"] == 3


def test_new_rest_replaces_running_one(runtime, clock):
    runtime.start_rest("10 sec", "complex", 3)
    clock.advance(5)
    runtime.start_rest("10 sec", "push-superset-0", 3)
    clock.advance(30)
    assert runtime.counts.get("complex", 0) == 0
    assert runtime.counts["push-superset-0"] == 1


def test_cancel_rest(runtime, clock):
    runtime.start_rest("10 sec", "complex", 3)
    runtime.cancel_rest()
    clock.advance(30)
    assert runtime.timer is None
    assert runtime.counts.get("complex", 0) == 0


def test_draft_recovered_on_start(repository, program, device, clock):
    repository.save_draft({"windmill": [{"weight": "16", "reps": "5"}]})
    runtime = SessionRuntime(repository, program, device, clock=clock, now=clock.now, day_index=2)
    assert runtime.draft == {"windmill": [{"weight": "16", "reps": "5"}]}
    assert runtime.active_day["id"] == "carry"


def test_set_active_day(runtime):
    runtime.set_active_day(1)
    assert runtime.active_day["id"] == "pull"
    assert [u["key"] for u in runtime.units()][-1] == "pull-finisher"
    with pytest.raises(IndexError):
        runtime.set_active_day(5)


def test_snapshot(runtime):
    runtime.tap("complex")
    snap = runtime.snapshot()
    assert snap["state"] == NOT_STARTED
    assert snap["day"] == "push"
    assert snap["counts"] == {"complex": 1}
    assert snap["timer"] is None
