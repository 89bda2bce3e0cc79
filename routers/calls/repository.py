"""Calls domain repository layer."""

from sqlalchemy import or_
from sqlalchemy.orm import Session


def create_call(db: Session, *, caller_id: int, callee_id: int, call_type: str, now):
    from models import Call

    call = Call(caller_id=caller_id, callee_id=callee_id, call_type=call_type, status="ringing", created_at=now)
    db.add(call)
    db.flush()
    return call


def get_call(db: Session, *, call_id: str):
    from models import Call

    return db.query(Call).filter(Call.id == call_id).populate_existing().first()


def transition_call(db: Session, *, call_id: str, from_statuses: list[str], values: dict) -> int:
    """Compare-and-set: only applies while the call is still in one of `from_statuses`."""
    from models import Call

    return (
        db.query(Call)
        .filter(Call.id == call_id, Call.status.in_(from_statuses))
        .update(values, synchronize_session=False)
    )


def list_calls_for_user(db: Session, *, user_id: int, statuses: list[str], limit: int):
    from models import Call

    return (
        db.query(Call)
        .filter(or_(Call.caller_id == user_id, Call.callee_id == user_id), Call.status.in_(statuses))
        .order_by(Call.created_at.desc())
        .limit(limit)
        .populate_existing()
        .all()
    )


def list_ringing_for_callee(db: Session, *, callee_id: int, created_after):
    from models import Call

    return (
        db.query(Call)
        .filter(Call.callee_id == callee_id, Call.status == "ringing", Call.created_at >= created_after)
        .order_by(Call.created_at.desc())
        .all()
    )


def list_expired_ringing(db: Session, *, created_before):
    from models import Call

    return (
        db.query(Call)
        .filter(Call.status == "ringing", Call.created_at < created_before)
        .all()
    )


def create_group_call(db: Session, *, host_id: int, conversation_id, call_type: str, now):
    from models import GroupCall

    group_call = GroupCall(host_id=host_id, conversation_id=conversation_id, call_type=call_type, started_at=now)
    db.add(group_call)
    db.flush()
    return group_call


def get_group_call(db: Session, *, group_call_id: str):
    from models import GroupCall

    return db.query(GroupCall).filter(GroupCall.id == group_call_id).populate_existing().first()


def end_group_call(db: Session, *, group_call_id: str, now) -> int:
    from models import GroupCall

    return (
        db.query(GroupCall)
        .filter(GroupCall.id == group_call_id, GroupCall.status == "active")
        .update({GroupCall.status: "ended", GroupCall.ended_at: now}, synchronize_session=False)
    )


def is_conversation_participant(db: Session, *, conversation_id: str, user_id: int) -> bool:
    from models import ConversationParticipant

    return (
        db.query(ConversationParticipant.id)
        .filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        )
        .first()
        is not None
    )


def create_recording(
    db: Session,
    *,
    recorded_by: int,
    file_url: str,
    duration_seconds: int,
    file_size_bytes: int,
    call_id=None,
    group_call_id=None,
):
    from models import CallRecording

    recording = CallRecording(
        call_id=call_id,
        group_call_id=group_call_id,
        recorded_by=recorded_by,
        file_url=file_url,
        duration_seconds=duration_seconds,
        file_size_bytes=file_size_bytes,
    )
    db.add(recording)
    db.flush()
    return recording


def list_recordings(db: Session, *, call_id=None, group_call_id=None):
    from models import CallRecording

    query = db.query(CallRecording)
    if call_id is not None:
        query = query.filter(CallRecording.call_id == call_id)
    if group_call_id is not None:
        query = query.filter(CallRecording.group_call_id == group_call_id)
    return query.order_by(CallRecording.created_at.asc()).all()
