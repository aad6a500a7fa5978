import json

import pytest

from conftest import FakeHTTP, FakeResponse
from dungym.auth import AuthProvider, TokenAuth
from dungym.exceptions import StorageUnavailableError
from dungym.remote_store import RemoteStore
from dungym.repository import SessionRepository


def _session(session_id, date, day="push", duration=1200):
    return {"id": session_id, "date": date, "day": day, "duration": duration, "exercises": {}}


def _remote(resolver, http, auth=None):
    return RemoteStore("https://db.example", "key", auth or TokenAuth("jwt"), resolver, session=http)


def test_local_only(local_store):
    repo = SessionRepository(local_store)
    repo.save_session(_session("a", "2025-06-01T10:00:00.000Z"))
    repo.save_session(_session("b", "2025-06-03T10:00:00.000Z"))
    assert [s["id"] for s in repo.get_sessions()] == ["b", "a"]


def test_remote_wins_and_local_fills_gaps(local_store, resolver):
    local_store.append_session(_session("X", "2025-06-01T10:00:00.000Z", duration=1))
    local_store.append_session(_session("Y", "2025-06-02T10:00:00.000Z"))
    remote_x = _session("X", "2025-06-01T10:00:00.000Z", duration=999)
    http = FakeHTTP(FakeResponse(200, [remote_x]))
    repo = SessionRepository(local_store, _remote(resolver, http))

    sessions = repo.get_sessions()
    assert [s["id"] for s in sessions] == ["Y", "X"]
    assert sessions[1]["duration"] == 999


def test_empty_or_failing_remote_uses_local(local_store, resolver):
    local_store.append_session(_session("a", "2025-06-01T10:00:00.000Z"))
    http = FakeHTTP(FakeResponse(200, []), FakeResponse(503, text="down"))
    repo = SessionRepository(local_store, _remote(resolver, http))
    assert [s["id"] for s in repo.get_sessions()] == ["a"]
    assert [s["id"] for s in repo.get_sessions()] == ["a"]


def test_unauthenticated_remote_is_skipped(local_store, resolver):
    http = FakeHTTP()
    repo = SessionRepository(local_store, _remote(resolver, http, auth=AuthProvider()))
    repo.save_session(_session("a", "2025-06-01T10:00:00.000Z"))
    repo.get_sessions()
    repo.delete_session("a")
    assert http.calls == []
    assert local_store.list_sessions() == []


def test_save_writes_local_before_remote(local_store, resolver):
    seen_locally = []

    class CheckingHTTP(FakeHTTP):
        def request(self, method, url, **kwargs):
            seen_locally.append([s["id"] for s in local_store.list_sessions()])
            return super().request(method, url, **kwargs)

    http = CheckingHTTP(FakeResponse(201))
    repo = SessionRepository(local_store, _remote(resolver, http))
    repo.save_session(_session("a", "2025-06-01T10:00:00.000Z"))
    assert seen_locally == [["a"]]


def test_remote_failure_on_save_is_swallowed(local_store, resolver):
    http = FakeHTTP(FakeResponse(500, text="boom"))
    repo = SessionRepository(local_store, _remote(resolver, http))
    repo.save_session(_session("a", "2025-06-01T10:00:00.000Z"))
    assert [s["id"] for s in local_store.list_sessions()] == ["a"]


def test_local_failure_on_save_propagates(local_store, monkeypatch):
    def broken(_session):
        raise StorageUnavailableError("full")

    monkeypatch.setattr(local_store, "append_session", broken)
    repo = SessionRepository(local_store)
    with pytest.raises(StorageUnavailableError):
        repo.save_session(_session("a", "2025-06-01T10:00:00.000Z"))


def test_last_session_for_day_prefers_newest(local_store, resolver):
    local_store.append_session(_session("local", "2025-06-05T10:00:00.000Z"))
    older_remote = _session("remote", "2025-06-01T10:00:00.000Z")
    http = FakeHTTP(FakeResponse(200, [older_remote]))
    repo = SessionRepository(local_store, _remote(resolver, http))
    assert repo.get_last_session_for_day("push")["id"] == "local"


def test_last_session_for_day_tie_goes_to_remote(local_store, resolver):
    local_store.append_session(_session("same", "2025-06-05T10:00:00.000Z", duration=1))
    remote = _session("same", "2025-06-05T10:00:00.000Z", duration=2)
    http = FakeHTTP(FakeResponse(200, [remote]))
    repo = SessionRepository(local_store, _remote(resolver, http))
    assert repo.get_last_session_for_day("push")["duration"] == 2


def test_last_session_for_day_none(local_store):
    assert SessionRepository(local_store).get_last_session_for_day("pull") is None


def test_delete_removes_local_even_if_remote_raises(local_store, resolver):
    local_store.append_session(_session("a", "2025-06-01T10:00:00.000Z"))

    class ExplodingRemote:
        def is_available(self):
            return True

        def delete_session(self, session_id):
            raise RuntimeError("unexpected")

    repo = SessionRepository(local_store, ExplodingRemote())
    repo.delete_session("a")
    assert local_store.list_sessions() == []


def test_delete_calls_remote(local_store, resolver):
    local_store.append_session(_session("a", "2025-06-01T10:00:00.000Z"))
    http = FakeHTTP(FakeResponse(204))
    repo = SessionRepository(local_store, _remote(resolver, http))
    repo.delete_session("a")
    assert http.calls[0]["method"] == "DELETE"
    assert local_store.list_sessions() == []


def test_sync_pushes_local_only_sessions(local_store, resolver):
    local_store.append_session(_session("a", "2025-06-01T10:00:00.000Z"))
    local_store.append_session(_session("b", "2025-06-02T10:00:00.000Z"))
    http = FakeHTTP(
        FakeResponse(200, [_session("a", "2025-06-01T10:00:00.000Z")]),
        FakeResponse(201),
    )
    repo = SessionRepository(local_store, _remote(resolver, http))
    assert repo.sync() == 1
    assert http.calls[1]["json"]["id"] == "b"
    assert SessionRepository(local_store).sync() == 0


def test_export_and_draft_delegation(local_store):
    repo = SessionRepository(local_store)
    repo.save_session(_session("a", "2025-06-01T10:00:00.000Z"))
    assert [s["id"] for s in json.loads(repo.export_sessions())] == ["a"]
    repo.save_draft({"rdl": [{"weight": "70", "reps": "10"}]})
    assert repo.get_draft() == {"rdl": [{"weight": "70", "reps": "10"}]}
    repo.clear_draft()
    assert repo.get_draft() == {}
