"""
Call lifecycle.

    ringing -> accepted | rejected | missed | ended (caller hung up)
    accepted -> connected | ended
    connected -> ended

Every terminal call shows up in both participants' call log.
"""

from enum import Enum
from typing import Optional


class CallStatus(str, Enum):
    RINGING = "ringing"
    ACCEPTED = "accepted"
    CONNECTED = "connected"
    REJECTED = "rejected"
    MISSED = "missed"
    ENDED = "ended"


TRANSITIONS = {
    CallStatus.RINGING: {CallStatus.ACCEPTED, CallStatus.REJECTED, CallStatus.MISSED, CallStatus.ENDED},
    CallStatus.ACCEPTED: {CallStatus.CONNECTED, CallStatus.ENDED},
    CallStatus.CONNECTED: {CallStatus.ENDED},
}

TERMINAL = frozenset({CallStatus.ENDED, CallStatus.REJECTED, CallStatus.MISSED})

# statuses where nobody talked
UNANSWERED = frozenset({CallStatus.REJECTED, CallStatus.MISSED})


def can_transition(current: str, target: str) -> bool:
    return CallStatus(target) in TRANSITIONS.get(CallStatus(current), set())


def sources_for(target: CallStatus) -> list[str]:
    """Statuses from which `target` may be reached."""
    return [source.value for source, targets in TRANSITIONS.items() if target in targets]


def is_terminal(status: str) -> bool:
    return CallStatus(status) in TERMINAL


def call_duration(call, ended_at) -> int:
    """Seconds spent talking. Counted from connect, or from accept when the media never connected."""
    started = call.connected_at or call.answered_at
    if started is None or ended_at is None:
        return 0
    return max(0, int((ended_at - started).total_seconds()))


def call_log_entry(call, viewer_id: int) -> Optional[dict]:
    """
    The call as `viewer_id` sees it in their history. Returns None for a call that
    is still in progress or that the viewer did not take part in.
    """
    if not is_terminal(call.status):
        return None
    if viewer_id == call.caller_id:
        direction, peer_id = "outgoing", call.callee_id
    elif viewer_id == call.callee_id:
        direction, peer_id = "incoming", call.caller_id
    else:
        return None

    status = CallStatus(call.status)
    duration = 0 if status in UNANSWERED else (call.duration_seconds or 0)
    return {
        "call_id": call.id,
        "call_type": call.call_type,
        "status": status.value,
        "direction": direction,
        "peer_id": peer_id,
        "duration_seconds": duration,
        # the callee gets a way back to a caller they never spoke to
        "can_call_back": direction == "incoming" and status in UNANSWERED,
        "created_at": call.created_at,
        "ended_at": call.ended_at,
    }
