"""Calls domain service layer: call state, call log, group calls and recordings."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import BackgroundTasks, HTTPException, status

from core.config import (
    CALL_RECORDING_MAX_BYTES,
    CALL_RECORDINGS_BUCKET,
    CALL_RING_TIMEOUT_SECONDS,
    CALLS_ENABLED,
)
from core.errors import InvalidCallTransition
from core.notifications import create_notification, notification_payload
from core.users import display_name, get_user_by_id, require_user
from utils.call_state import TERMINAL, CallStatus, call_duration, call_log_entry, sources_for
from utils.pusher_client import publish_event_sync, user_channel
from utils.storage import StorageError, upload_bytes

from . import repository as calls_repository

logger = logging.getLogger(__name__)

RECORDING_CONTENT_TYPE = "audio/webm"


def _require_calls_enabled():
    if not CALLS_ENABLED:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Calls are disabled")


def _require_call(db, *, call_id: str, user_id: int):
    call = calls_repository.get_call(db, call_id=call_id)
    if not call or user_id not in (call.caller_id, call.callee_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call not found")
    return call


def _publish_status(background_tasks: Optional[BackgroundTasks], call) -> None:
    if background_tasks is None:
        return
    payload = {"call_id": call.id, "status": call.status, "duration_seconds": call.duration_seconds}
    for user_id in (call.caller_id, call.callee_id):
        background_tasks.add_task(publish_event_sync, user_channel(user_id), "call-status", payload)


def _transition(db, *, call, target: CallStatus, values: dict):
    updated = calls_repository.transition_call(
        db,
        call_id=call.id,
        from_statuses=sources_for(target),
        values={"status": target.value, **values},
    )
    if not updated:
        db.rollback()
        current = calls_repository.get_call(db, call_id=call.id)
        raise InvalidCallTransition(
            f"Call is already {current.status}.", call_id=call.id, target=target.value
        )
    db.commit()
    return calls_repository.get_call(db, call_id=call.id)


# --- 1:1 calls ---


def start_call(
    db,
    *,
    current_user,
    callee_id: int,
    call_type: str = "voice",
    background_tasks: Optional[BackgroundTasks] = None,
    now: Optional[datetime] = None,
):
    _require_calls_enabled()
    if callee_id == current_user.account_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot call yourself")
    require_user(db, account_id=callee_id)

    call = calls_repository.create_call(
        db,
        caller_id=current_user.account_id,
        callee_id=callee_id,
        call_type=call_type,
        now=now or datetime.utcnow(),
    )
    db.commit()
    logger.info(f"Call {call.id} ringing: {current_user.account_id} -> {callee_id}")

    if background_tasks is not None:
        background_tasks.add_task(
            publish_event_sync,
            user_channel(callee_id),
            "incoming-call",
            {
                "call_id": call.id,
                "caller_id": current_user.account_id,
                "caller_name": display_name(current_user),
                "call_type": call_type,
            },
        )
    return call


def accept_call(db, *, current_user, call_id: str, background_tasks: Optional[BackgroundTasks] = None):
    call = _require_call(db, call_id=call_id, user_id=current_user.account_id)
    if current_user.account_id != call.callee_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the callee can accept")
    call = _transition(db, call=call, target=CallStatus.ACCEPTED, values={"answered_at": datetime.utcnow()})
    _publish_status(background_tasks, call)
    return call


def reject_call(db, *, current_user, call_id: str, background_tasks: Optional[BackgroundTasks] = None):
    call = _require_call(db, call_id=call_id, user_id=current_user.account_id)
    if current_user.account_id != call.callee_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the callee can reject")
    call = _transition(
        db,
        call=call,
        target=CallStatus.REJECTED,
        values={"ended_at": datetime.utcnow(), "duration_seconds": 0},
    )
    _publish_status(background_tasks, call)
    return call


def connect_call(db, *, current_user, call_id: str, background_tasks: Optional[BackgroundTasks] = None):
    """Media is flowing between both peers."""
    call = _require_call(db, call_id=call_id, user_id=current_user.account_id)
    call = _transition(db, call=call, target=CallStatus.CONNECTED, values={"connected_at": datetime.utcnow()})
    _publish_status(background_tasks, call)
    return call


def end_call(
    db,
    *,
    current_user,
    call_id: str,
    background_tasks: Optional[BackgroundTasks] = None,
    now: Optional[datetime] = None,
):
    """
    Either side hangs up.

    A caller hanging up while still ringing ends with duration 0. A callee hanging up while
    it rings is declining, so the call is rejected instead.
    """
    call = _require_call(db, call_id=call_id, user_id=current_user.account_id)
    if call.status == CallStatus.RINGING.value and current_user.account_id == call.callee_id:
        return reject_call(db, current_user=current_user, call_id=call_id, background_tasks=background_tasks)
    ended_at = now or datetime.utcnow()
    call = _transition(
        db,
        call=call,
        target=CallStatus.ENDED,
        values={"ended_at": ended_at, "duration_seconds": call_duration(call, ended_at)},
    )
    logger.info(f"Call {call.id} ended after {call.duration_seconds}s")
    _publish_status(background_tasks, call)
    return call


def _mark_missed(db, *, call, now: datetime):
    """ringing -> missed plus a notification for the callee. Returns the notification, or None if the call moved on."""
    updated = calls_repository.transition_call(
        db,
        call_id=call.id,
        from_statuses=[CallStatus.RINGING.value],
        values={"status": CallStatus.MISSED.value, "ended_at": now, "duration_seconds": 0},
    )
    if not updated:
        return None
    caller = get_user_by_id(db, account_id=call.caller_id)
    return create_notification(
        db,
        user_id=call.callee_id,
        actor_id=call.caller_id,
        type="missed_call",
        title="Missed call",
        message=f"You missed a {call.call_type} call from {display_name(caller)}",
        reference_type="call",
        reference_id=call.id,
    )


def miss_call(
    db,
    *,
    current_user,
    call_id: str,
    background_tasks: Optional[BackgroundTasks] = None,
    now: Optional[datetime] = None,
):
    """The caller's ring timer ran out. Only the caller reports it, and only after the ring timeout."""
    call = _require_call(db, call_id=call_id, user_id=current_user.account_id)
    if current_user.account_id != call.caller_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the caller can report a missed call")
    now = now or datetime.utcnow()
    ringing_for = now - call.created_at
    if call.status == CallStatus.RINGING.value and ringing_for < timedelta(seconds=CALL_RING_TIMEOUT_SECONDS):
        raise InvalidCallTransition("Call is still ringing.", call_id=call.id, target="missed")
    notification = _mark_missed(db, call=call, now=now)
    if notification is None:
        db.rollback()
        current = calls_repository.get_call(db, call_id=call.id)
        raise InvalidCallTransition(f"Call is already {current.status}.", call_id=call.id, target="missed")
    db.commit()
    call = calls_repository.get_call(db, call_id=call.id)
    _publish_status(background_tasks, call)
    if background_tasks is not None:
        background_tasks.add_task(
            publish_event_sync, user_channel(call.callee_id), "notification", notification_payload(notification)
        )
    return call


def expire_ringing_calls(db, *, now: Optional[datetime] = None) -> int:
    """Calls left ringing past the timeout become missed, and each callee gets a notification."""
    now = now or datetime.utcnow()
    expired = calls_repository.list_expired_ringing(
        db, created_before=now - timedelta(seconds=CALL_RING_TIMEOUT_SECONDS)
    )
    notifications = []
    for call in expired:
        notification = _mark_missed(db, call=call, now=now)
        if notification is not None:
            notifications.append(notification)
    db.commit()
    missed = len(notifications)
    for notification in notifications:
        publish_event_sync(user_channel(notification.user_id), "notification", notification_payload(notification))
    if missed:
        logger.info(f"Marked {missed} unanswered calls as missed")
    return missed


def get_call_log(db, *, current_user, limit: int = 50, now: Optional[datetime] = None):
    expire_ringing_calls(db, now=now)
    calls = calls_repository.list_calls_for_user(
        db,
        user_id=current_user.account_id,
        statuses=[s.value for s in TERMINAL],
        limit=limit,
    )
    entries = (call_log_entry(call, current_user.account_id) for call in calls)
    return {"calls": [entry for entry in entries if entry is not None]}


def get_incoming_calls(db, *, current_user, now: Optional[datetime] = None):
    now = now or datetime.utcnow()
    calls = calls_repository.list_ringing_for_callee(
        db,
        callee_id=current_user.account_id,
        created_after=now - timedelta(seconds=CALL_RING_TIMEOUT_SECONDS),
    )
    return {"calls": calls}


# --- Group calls ---


def _require_group_call(db, *, group_call_id: str, user_id: int):
    group_call = calls_repository.get_group_call(db, group_call_id=group_call_id)
    if not group_call:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group call not found")
    if group_call.host_id != user_id and not (
        group_call.conversation_id
        and calls_repository.is_conversation_participant(
            db, conversation_id=group_call.conversation_id, user_id=user_id
        )
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group call not found")
    return group_call


def start_group_call(db, *, current_user, conversation_id: Optional[str] = None, call_type: str = "voice"):
    _require_calls_enabled()
    if conversation_id and not calls_repository.is_conversation_participant(
        db, conversation_id=conversation_id, user_id=current_user.account_id
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    group_call = calls_repository.create_group_call(
        db,
        host_id=current_user.account_id,
        conversation_id=conversation_id,
        call_type=call_type,
        now=datetime.utcnow(),
    )
    db.commit()
    return group_call


def end_group_call(db, *, current_user, group_call_id: str):
    group_call = _require_group_call(db, group_call_id=group_call_id, user_id=current_user.account_id)
    if group_call.host_id != current_user.account_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the host can end the call")
    if not calls_repository.end_group_call(db, group_call_id=group_call_id, now=datetime.utcnow()):
        raise InvalidCallTransition("Group call already ended.", group_call_id=group_call_id)
    db.commit()
    return calls_repository.get_group_call(db, group_call_id=group_call_id)


# --- Recordings ---


def recording_key(user_id: int, call_id: str, now: datetime) -> str:
    return f"{user_id}/{call_id}_{int(now.timestamp() * 1000)}.webm"


def _store_recording(db, *, current_user, data: bytes, duration_seconds: int, call_id=None, group_call_id=None):
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Recording is empty")
    if len(data) > CALL_RECORDING_MAX_BYTES:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Recording is too large")

    key = recording_key(current_user.account_id, call_id or group_call_id, datetime.utcnow())
    try:
        file_url = upload_bytes(CALL_RECORDINGS_BUCKET, key, data, RECORDING_CONTENT_TYPE)
    except StorageError as e:
        logger.error(f"Recording upload failed for call={call_id or group_call_id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not save the recording")

    recording = calls_repository.create_recording(
        db,
        recorded_by=current_user.account_id,
        file_url=file_url,
        duration_seconds=max(0, duration_seconds),
        file_size_bytes=len(data),
        call_id=call_id,
        group_call_id=group_call_id,
    )
    db.commit()
    return recording


def upload_call_recording(db, *, current_user, call_id: str, data: bytes, duration_seconds: int = 0):
    """Store the recording blob, then the metadata row. A storage failure leaves the call untouched."""
    call = _require_call(db, call_id=call_id, user_id=current_user.account_id)
    return _store_recording(
        db, current_user=current_user, data=data, duration_seconds=duration_seconds, call_id=call.id
    )


def upload_group_call_recording(db, *, current_user, group_call_id: str, data: bytes, duration_seconds: int = 0):
    group_call = _require_group_call(db, group_call_id=group_call_id, user_id=current_user.account_id)
    return _store_recording(
        db,
        current_user=current_user,
        data=data,
        duration_seconds=duration_seconds,
        group_call_id=group_call.id,
    )


def list_call_recordings(db, *, current_user, call_id: str):
    call = _require_call(db, call_id=call_id, user_id=current_user.account_id)
    return {"recordings": calls_repository.list_recordings(db, call_id=call.id)}
