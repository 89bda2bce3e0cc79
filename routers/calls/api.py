from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Path, Query, UploadFile
from sqlalchemy.orm import Session

from core.db import get_db
from routers.dependencies import get_current_user

from .schemas import (
    CallLogResponse,
    CallResponse,
    GroupCallResponse,
    IncomingCallsResponse,
    RecordingListResponse,
    RecordingResponse,
    StartCallRequest,
    StartGroupCallRequest,
)
from .service import accept_call as service_accept_call
from .service import connect_call as service_connect_call
from .service import end_call as service_end_call
from .service import end_group_call as service_end_group_call
from .service import get_call_log as service_get_call_log
from .service import get_incoming_calls as service_get_incoming_calls
from .service import list_call_recordings as service_list_call_recordings
from .service import miss_call as service_miss_call
from .service import reject_call as service_reject_call
from .service import start_call as service_start_call
from .service import start_group_call as service_start_group_call
from .service import upload_call_recording as service_upload_call_recording
from .service import upload_group_call_recording as service_upload_group_call_recording

router = APIRouter(prefix="/calls", tags=["Calls"])


@router.post("/start", response_model=CallResponse)
async def start_call(
    request: StartCallRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Ring another user. The callee's channel receives `incoming-call`."""
    return service_start_call(
        db,
        current_user=current_user,
        callee_id=request.callee_id,
        call_type=request.call_type,
        background_tasks=background_tasks,
    )


@router.get("/log", response_model=CallLogResponse)
async def get_call_log(
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Finished calls from the caller's point of view, newest first."""
    return service_get_call_log(db, current_user=current_user, limit=limit)


@router.get("/incoming", response_model=IncomingCallsResponse)
async def get_incoming_calls(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_get_incoming_calls(db, current_user=current_user)


@router.post("/group", response_model=GroupCallResponse)
async def start_group_call(
    request: StartGroupCallRequest,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_start_group_call(
        db, current_user=current_user, conversation_id=request.conversation_id, call_type=request.call_type
    )


@router.post("/group/{group_call_id}/end", response_model=GroupCallResponse)
async def end_group_call(
    group_call_id: str = Path(..., description="Group call ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_end_group_call(db, current_user=current_user, group_call_id=group_call_id)


@router.post("/group/{group_call_id}/recordings", response_model=RecordingResponse)
async def upload_group_call_recording(
    group_call_id: str = Path(..., description="Group call ID"),
    file: UploadFile = File(...),
    duration_seconds: int = Form(0),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    data = await file.read()
    return service_upload_group_call_recording(
        db,
        current_user=current_user,
        group_call_id=group_call_id,
        data=data,
        duration_seconds=duration_seconds,
    )


@router.post("/{call_id}/accept", response_model=CallResponse)
async def accept_call(
    background_tasks: BackgroundTasks,
    call_id: str = Path(..., description="Call ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_accept_call(db, current_user=current_user, call_id=call_id, background_tasks=background_tasks)


@router.post("/{call_id}/reject", response_model=CallResponse)
async def reject_call(
    background_tasks: BackgroundTasks,
    call_id: str = Path(..., description="Call ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_reject_call(db, current_user=current_user, call_id=call_id, background_tasks=background_tasks)


@router.post("/{call_id}/connect", response_model=CallResponse)
async def connect_call(
    background_tasks: BackgroundTasks,
    call_id: str = Path(..., description="Call ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_connect_call(db, current_user=current_user, call_id=call_id, background_tasks=background_tasks)


@router.post("/{call_id}/end", response_model=CallResponse)
async def end_call(
    background_tasks: BackgroundTasks,
    call_id: str = Path(..., description="Call ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_end_call(db, current_user=current_user, call_id=call_id, background_tasks=background_tasks)


@router.post("/{call_id}/miss", response_model=CallResponse)
async def miss_call(
    background_tasks: BackgroundTasks,
    call_id: str = Path(..., description="Call ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Reported by the caller when nobody answered before the ring timeout."""
    return service_miss_call(db, current_user=current_user, call_id=call_id, background_tasks=background_tasks)


@router.post("/{call_id}/recordings", response_model=RecordingResponse)
async def upload_call_recording(
    call_id: str = Path(..., description="Call ID"),
    file: UploadFile = File(...),
    duration_seconds: int = Form(0),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Upload a finished recording (webm/opus). A storage failure returns 502 and leaves the call as it was."""
    data = await file.read()
    return service_upload_call_recording(
        db, current_user=current_user, call_id=call_id, data=data, duration_seconds=duration_seconds
    )


@router.get("/{call_id}/recordings", response_model=RecordingListResponse)
async def list_call_recordings(
    call_id: str = Path(..., description="Call ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_list_call_recordings(db, current_user=current_user, call_id=call_id)
