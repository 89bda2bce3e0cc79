from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from core.db import get_db
from core.errors import InvalidCallTransition, install_error_handlers
from models import Call, CallRecording, Notification
from routers.calls import service as calls_service
from routers.calls.api import router as calls_router
from routers.dependencies import get_current_user
from utils.call_state import CallStatus, call_log_entry, can_transition, is_terminal, sources_for
from utils.storage import StorageError


@pytest.fixture
def client(test_db, current_user):
    app = FastAPI()
    app.include_router(calls_router)
    install_error_handlers(app)

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: current_user

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides = {}


@pytest.fixture
def published(monkeypatch):
    publish = Mock(return_value=True)
    monkeypatch.setattr("routers.calls.service.publish_event_sync", publish)
    return publish


@pytest.fixture
def uploads(monkeypatch):
    stored = {}

    def fake_upload(bucket, key, data, content_type):
        stored[key] = data
        return f"https://storage.example.com/{bucket}/{key}"

    monkeypatch.setattr("routers.calls.service.upload_bytes", fake_upload)
    return stored


def _ringing_call(test_db, caller, callee, *, created_at=None):
    return calls_service.start_call(
        test_db, current_user=caller, callee_id=callee.account_id, now=created_at or datetime.utcnow()
    )


# --- State machine ---


def test_transition_table():
    assert can_transition("ringing", "accepted")
    assert can_transition("ringing", "ended")
    assert can_transition("accepted", "connected")
    assert not can_transition("connected", "accepted")
    assert not can_transition("ended", "connected")
    assert not can_transition("missed", "accepted")
    assert sorted(sources_for(CallStatus.ENDED)) == ["accepted", "connected", "ringing"]
    assert is_terminal("rejected") and not is_terminal("ringing")


def test_full_call_records_talk_time(test_db, current_user, other_user):
    call = _ringing_call(test_db, current_user, other_user)

    calls_service.accept_call(test_db, current_user=other_user, call_id=call.id)
    connected = calls_service.connect_call(test_db, current_user=current_user, call_id=call.id)
    ended = calls_service.end_call(
        test_db, current_user=current_user, call_id=call.id, now=connected.connected_at + timedelta(seconds=95)
    )

    assert ended.status == "ended"
    assert ended.duration_seconds == 95

    caller_view = call_log_entry(ended, current_user.account_id)
    callee_view = call_log_entry(ended, other_user.account_id)
    assert caller_view["direction"] == "outgoing"
    assert callee_view["direction"] == "incoming"
    assert callee_view["duration_seconds"] == 95
    assert callee_view["can_call_back"] is False


def test_only_callee_can_accept(test_db, current_user, other_user):
    call = _ringing_call(test_db, current_user, other_user)
    with pytest.raises(HTTPException) as exc:
        calls_service.accept_call(test_db, current_user=current_user, call_id=call.id)
    assert exc.value.status_code == 403


def test_cannot_call_self(test_db, current_user):
    with pytest.raises(HTTPException) as exc:
        calls_service.start_call(test_db, current_user=current_user, callee_id=current_user.account_id)
    assert exc.value.status_code == 400


def test_terminal_call_cannot_move(test_db, current_user, other_user):
    call = _ringing_call(test_db, current_user, other_user)
    calls_service.reject_call(test_db, current_user=other_user, call_id=call.id)

    with pytest.raises(InvalidCallTransition):
        calls_service.accept_call(test_db, current_user=other_user, call_id=call.id)

    assert test_db.query(Call).one().status == "rejected"


def test_caller_can_cancel_while_ringing(test_db, current_user, other_user):
    call = _ringing_call(test_db, current_user, other_user)
    ended = calls_service.end_call(test_db, current_user=current_user, call_id=call.id)
    assert ended.status == "ended"
    assert ended.duration_seconds == 0


def test_callee_hanging_up_while_ringing_rejects(test_db, current_user, other_user):
    call = _ringing_call(test_db, current_user, other_user)
    declined = calls_service.end_call(test_db, current_user=other_user, call_id=call.id)

    assert declined.status == "rejected"
    assert declined.duration_seconds == 0
    entry = call_log_entry(declined, other_user.account_id)
    assert entry["can_call_back"] is True


# --- Missed calls ---


def test_unanswered_call_becomes_missed_after_timeout(test_db, current_user, other_user, published):
    started = datetime(2026, 6, 1, 9, 0, 0)
    call = _ringing_call(test_db, current_user, other_user, created_at=started)

    assert calls_service.expire_ringing_calls(test_db, now=started + timedelta(seconds=29)) == 0
    assert calls_service.expire_ringing_calls(test_db, now=started + timedelta(seconds=31)) == 1

    test_db.refresh(call)
    assert call.status == "missed"
    assert call.duration_seconds == 0

    notification = test_db.query(Notification).one()
    assert notification.user_id == other_user.account_id
    assert notification.type == "missed_call"
    channel, event, _ = published.call_args.args
    assert (channel, event) == (f"private-user-{other_user.account_id}", "notification")

    log = calls_service.get_call_log(test_db, current_user=other_user, now=started + timedelta(minutes=5))
    entry = log["calls"][0]
    assert entry["status"] == "missed"
    assert entry["duration_seconds"] == 0
    assert entry["can_call_back"] is True

    caller_log = calls_service.get_call_log(test_db, current_user=current_user, now=started + timedelta(minutes=5))
    assert caller_log["calls"][0]["can_call_back"] is False


def test_accepted_call_is_not_swept(test_db, current_user, other_user):
    started = datetime(2026, 6, 1, 9, 0, 0)
    call = _ringing_call(test_db, current_user, other_user, created_at=started)
    calls_service.accept_call(test_db, current_user=other_user, call_id=call.id)

    assert calls_service.expire_ringing_calls(test_db, now=started + timedelta(minutes=2)) == 0
    assert test_db.query(Notification).count() == 0


def test_miss_twice_is_rejected(test_db, current_user, other_user):
    started = datetime(2026, 6, 1, 9, 0, 0)
    call = _ringing_call(test_db, current_user, other_user, created_at=started)
    later = started + timedelta(seconds=31)
    calls_service.miss_call(test_db, current_user=current_user, call_id=call.id, now=later)

    with pytest.raises(InvalidCallTransition):
        calls_service.miss_call(test_db, current_user=current_user, call_id=call.id, now=later)
    assert test_db.query(Notification).count() == 1


def test_only_caller_can_report_missed(test_db, current_user, other_user):
    started = datetime(2026, 6, 1, 9, 0, 0)
    call = _ringing_call(test_db, current_user, other_user, created_at=started)

    with pytest.raises(HTTPException) as exc:
        calls_service.miss_call(
            test_db, current_user=other_user, call_id=call.id, now=started + timedelta(seconds=31)
        )
    assert exc.value.status_code == 403
    assert test_db.query(Call).one().status == "ringing"


def test_missed_needs_the_ring_timeout(test_db, current_user, other_user):
    started = datetime(2026, 6, 1, 9, 0, 0)
    call = _ringing_call(test_db, current_user, other_user, created_at=started)

    with pytest.raises(InvalidCallTransition):
        calls_service.miss_call(
            test_db, current_user=current_user, call_id=call.id, now=started + timedelta(seconds=5)
        )
    assert test_db.query(Call).one().status == "ringing"
    assert test_db.query(Notification).count() == 0


def test_miss_endpoint_refuses_callee_on_fresh_call(client, test_db, current_user, other_user):
    call = _ringing_call(test_db, other_user, current_user)

    response = client.post(f"/calls/{call.id}/miss")

    assert response.status_code == 403
    assert test_db.query(Notification).count() == 0


def test_in_progress_calls_stay_out_of_the_log(test_db, current_user, other_user):
    _ringing_call(test_db, current_user, other_user)
    assert calls_service.get_call_log(test_db, current_user=current_user)["calls"] == []


# --- Group calls ---


def test_group_call_end_is_host_only(test_db, current_user, other_user):
    group_call = calls_service.start_group_call(test_db, current_user=current_user)

    with pytest.raises(HTTPException) as exc:
        calls_service.end_group_call(test_db, current_user=other_user, group_call_id=group_call.id)
    assert exc.value.status_code == 404

    ended = calls_service.end_group_call(test_db, current_user=current_user, group_call_id=group_call.id)
    assert ended.status == "ended"

    with pytest.raises(InvalidCallTransition):
        calls_service.end_group_call(test_db, current_user=current_user, group_call_id=group_call.id)


# --- Recordings ---


def test_recording_key_layout():
    key = calls_service.recording_key(1000000001, "call-1", datetime(2026, 1, 1))
    assert key.startswith("1000000001/call-1_")
    assert key.endswith(".webm")


def test_upload_recording_stores_blob_then_row(test_db, current_user, other_user, uploads):
    call = _ringing_call(test_db, current_user, other_user)

    recording = calls_service.upload_call_recording(
        test_db, current_user=current_user, call_id=call.id, data=b"webm-bytes", duration_seconds=42
    )

    assert list(uploads.values()) == [b"webm-bytes"]
    assert recording.file_url.startswith("https://storage.example.com/")
    assert recording.file_size_bytes == 10
    assert recording.duration_seconds == 42
    listed = calls_service.list_call_recordings(test_db, current_user=other_user, call_id=call.id)
    assert [r.id for r in listed["recordings"]] == [recording.id]


def test_storage_failure_leaves_call_untouched(test_db, current_user, other_user, monkeypatch):
    call = _ringing_call(test_db, current_user, other_user)
    calls_service.accept_call(test_db, current_user=other_user, call_id=call.id)

    def failing_upload(*args, **kwargs):
        raise StorageError("bucket unavailable")

    monkeypatch.setattr("routers.calls.service.upload_bytes", failing_upload)

    with pytest.raises(HTTPException) as exc:
        calls_service.upload_call_recording(test_db, current_user=current_user, call_id=call.id, data=b"x")

    assert exc.value.status_code == 502
    assert test_db.query(CallRecording).count() == 0
    assert test_db.query(Call).one().status == "accepted"


def test_empty_recording_rejected(test_db, current_user, other_user, uploads):
    call = _ringing_call(test_db, current_user, other_user)
    with pytest.raises(HTTPException) as exc:
        calls_service.upload_call_recording(test_db, current_user=current_user, call_id=call.id, data=b"")
    assert exc.value.status_code == 400
    assert uploads == {}


# --- Endpoints ---


def test_call_endpoints(client, test_db, current_user, other_user, published, uploads):
    started = client.post("/calls/start", json={"callee_id": other_user.account_id, "call_type": "video"})
    assert started.status_code == 200
    call_id = started.json()["id"]
    assert started.json()["status"] == "ringing"
    assert published.call_args.args[1] == "incoming-call"

    # the caller is not allowed to accept
    assert client.post(f"/calls/{call_id}/accept").status_code == 403

    ended = client.post(f"/calls/{call_id}/end")
    assert ended.json()["status"] == "ended"

    again = client.post(f"/calls/{call_id}/connect")
    assert again.status_code == 409
    assert again.json()["error"] == "invalid_call_transition"

    log = client.get("/calls/log").json()["calls"]
    assert [(c["status"], c["direction"]) for c in log] == [("ended", "outgoing")]

    upload = client.post(
        f"/calls/{call_id}/recordings",
        files={"file": ("call.webm", b"opus-data", "audio/webm")},
        data={"duration_seconds": "12"},
    )
    assert upload.status_code == 200
    assert upload.json()["duration_seconds"] == 12
    assert len(client.get(f"/calls/{call_id}/recordings").json()["recordings"]) == 1


def test_incoming_calls_endpoint(test_db, current_user, other_user):
    _ringing_call(test_db, other_user, current_user)

    incoming = calls_service.get_incoming_calls(test_db, current_user=current_user)
    assert [c.caller_id for c in incoming["calls"]] == [other_user.account_id]
    assert calls_service.get_incoming_calls(test_db, current_user=other_user)["calls"] == []


def test_unknown_call_is_404(client):
    assert client.post("/calls/missing/accept").status_code == 404
