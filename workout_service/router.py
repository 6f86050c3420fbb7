"""
REPCOACH Workout Service Router

Endpoints for workout sessions: lifecycle, manual overrides and landmark
frames (REST for single frames, WebSocket for live streams).
Pose estimation runs on the client; only landmarks arrive here.
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, ValidationError, field_validator

from core.threading import FrameDispatcher, FrameStatus
from shared.utils import success_response

from .models import (
    DetectionResult,
    ExerciseKind,
    LandmarkFrame,
    SessionLimitReached,
    WorkoutSession,
    WorkoutSessionHandler,
    WorkoutSessionState,
    create_analyzer,
    frame_sample_rate,
    get_session_handler,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============= Pydantic Models =============

class CreateSessionRequest(BaseModel):
    exercise: str
    target_reps: Optional[int] = Field(None, ge=1)
    target_seconds: Optional[int] = Field(None, ge=1)


class LandmarkPayload(BaseModel):
    x: float
    y: float
    likelihood: float = Field(..., ge=0.0, le=1.0)


class FrameRequest(BaseModel):
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    rotation: int = 0  # 0, 90, 180, 270
    timestamp: Optional[float] = None  # seconds, monotonic on the client
    landmarks: Dict[str, LandmarkPayload] = {}

    @field_validator("rotation")
    @classmethod
    def check_rotation(cls, value: int) -> int:
        if value % 90 != 0:
            raise ValueError("rotation must be a multiple of 90")
        return value % 360

    def to_frame(self) -> LandmarkFrame:
        return LandmarkFrame.from_dict(self.model_dump())


class SessionAction(str, Enum):
    START = "start"
    COUNTDOWN = "countdown"
    ACTIVATE = "activate"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    RESET = "reset"


_ACTION_METHODS = {
    SessionAction.START: "start",
    SessionAction.COUNTDOWN: "start_countdown",
    SessionAction.ACTIVATE: "activate",
    SessionAction.PAUSE: "pause",
    SessionAction.RESUME: "resume",
    SessionAction.STOP: "stop",
    SessionAction.RESET: "reset",
}


# ============= Helpers =============

def _parse_exercise(value: str) -> ExerciseKind:
    try:
        return ExerciseKind(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid exercise. Valid types: {[e.value for e in ExerciseKind]}"
        )


def _get_session_or_404(handler: WorkoutSessionHandler, session_id: str) -> WorkoutSession:
    session = handler.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _detection_message(session: WorkoutSession, result: DetectionResult) -> dict:
    return {
        "type": "DETECTION",
        "session_id": session.session_id,
        "rep_count": result.rep_count,
        "result": result.to_dict(),
    }


# ============= REST Endpoints =============

@router.get("/exercises")
async def list_exercises():
    """Supported exercises with their counting mode and frame sampling."""
    exercises = []
    for kind in ExerciseKind:
        exercises.append({
            "id": kind.value,
            "name": kind.display_name,
            "time_based": kind.is_time_based,
            "sample_rate": frame_sample_rate(kind),
            "initial_phase": kind.initial_phase.value,
            "required_joints": [j.name.lower() for j in create_analyzer(kind).REQUIRED_JOINTS],
        })
    return success_response({"exercises": exercises, "total": len(exercises)})


@router.post("/sessions", status_code=201)
async def create_session(
    request: CreateSessionRequest,
    handler: WorkoutSessionHandler = Depends(get_session_handler),
):
    """
    Create a workout session.

    Returns a session ID for the lifecycle endpoints and the WebSocket stream.
    """
    exercise = _parse_exercise(request.exercise)

    try:
        session = handler.create_session(
            exercise,
            target_reps=request.target_reps,
            target_seconds=request.target_seconds,
        )
    except SessionLimitReached as e:
        raise HTTPException(status_code=429, detail=str(e))

    return {
        "status": "created",
        "session": session.to_dict(),
        "websocket_url": f"/api/workout/ws/sessions/{session.session_id}",
    }


@router.get("/sessions/{session_id}")
async def get_session_status(
    session_id: str,
    handler: WorkoutSessionHandler = Depends(get_session_handler),
):
    """Get current session status."""
    session = _get_session_or_404(handler, session_id)
    return session.to_dict()


@router.delete("/sessions/{session_id}")
async def dispose_session(
    session_id: str,
    handler: WorkoutSessionHandler = Depends(get_session_handler),
):
    """Dispose a session and forget it."""
    session = _get_session_or_404(handler, session_id)
    summary = session.to_dict()
    handler.dispose_session(session_id)
    return {"status": "disposed", "session_id": session_id, "summary": summary}


@router.post("/sessions/{session_id}/manual-rep")
async def add_manual_rep(
    session_id: str,
    handler: WorkoutSessionHandler = Depends(get_session_handler),
):
    """Count one rep by hand when detection misses it."""
    session = _get_session_or_404(handler, session_id)
    event = session.add_manual_rep()
    if event is None:
        raise HTTPException(status_code=409, detail=f"Manual rep not allowed in state {session.state.value}")
    return {"status": "ok", "event": event.to_dict(), "session": session.to_dict()}


@router.post("/sessions/{session_id}/manual-second")
async def add_manual_second(
    session_id: str,
    handler: WorkoutSessionHandler = Depends(get_session_handler),
):
    """Add one held second by hand."""
    session = _get_session_or_404(handler, session_id)
    event = session.add_manual_second()
    if event is None:
        raise HTTPException(status_code=409, detail=f"Manual second not allowed in state {session.state.value}")
    return {"status": "ok", "event": event.to_dict(), "session": session.to_dict()}


@router.post("/sessions/{session_id}/frames")
async def process_frame(
    session_id: str,
    request: FrameRequest,
    handler: WorkoutSessionHandler = Depends(get_session_handler),
):
    """Analyze one landmark frame and return its detection result."""
    session = _get_session_or_404(handler, session_id)
    result = session.process_frame(request.to_frame())
    return _detection_message(session, result)


@router.post("/sessions/{session_id}/{action}")
async def session_action(
    session_id: str,
    action: SessionAction,
    handler: WorkoutSessionHandler = Depends(get_session_handler),
):
    """
    Drive the session lifecycle.

    start -> countdown -> activate -> pause/resume; stop and reset from anywhere.
    """
    session = _get_session_or_404(handler, session_id)
    previous = session.state

    if not getattr(session, _ACTION_METHODS[action])():
        raise HTTPException(
            status_code=409,
            detail=f"Cannot {action.value} session in state {previous.value}"
        )

    return {
        "status": action.value,
        "session_id": session_id,
        "previous_state": previous.value,
        "state": session.state.value,
    }


# ============= WebSocket Endpoints =============

@router.websocket("/ws/sessions/{session_id}")
async def workout_session_stream(
    websocket: WebSocket,
    session_id: str,
    report_drops: bool = False,
    handler: WorkoutSessionHandler = Depends(get_session_handler),
):
    """
    Live landmark stream for a session.

    Each text message is one frame (same shape as POST /frames). Frames
    are sampled and dropped while the previous one is in flight; replies
    are DETECTION messages, FRAME_DROPPED when ``report_drops`` is set,
    and ERROR for payloads that cannot be parsed.
    """
    await websocket.accept()

    session = handler.get_session(session_id)
    if not session:
        await websocket.send_json({
            "type": "ERROR",
            "message": f"Session {session_id} not found"
        })
        await websocket.close()
        return

    dispatcher = FrameDispatcher(
        session.process_frame,
        sample_rate=session.sample_rate,
        name=f"session_{session_id}",
    )
    send_lock = asyncio.Lock()
    pending = set()

    async def send(message: dict):
        async with send_lock:
            await websocket.send_json(message)

    async def reply(future):
        try:
            result = await asyncio.wrap_future(future)
        except Exception as e:
            await send({"type": "ERROR", "message": str(e)})
            return
        await send(_detection_message(session, result))
        if result.state == WorkoutSessionState.COMPLETED and any(result.events):
            await send({"type": "SESSION_COMPLETED", "session": session.to_dict()})

    try:
        await send({
            "type": "SESSION_CONNECTED",
            "session": session.to_dict(),
        })

        while True:
            raw = await websocket.receive_text()

            try:
                frame = FrameRequest.model_validate(json.loads(raw)).to_frame()
            except (json.JSONDecodeError, ValidationError) as e:
                await send({"type": "ERROR", "message": f"Invalid frame: {e}"})
                continue

            future = dispatcher.submit(frame)
            if future is None:
                if report_drops and dispatcher.last_status == FrameStatus.DROPPED:
                    await send({"type": "FRAME_DROPPED", "session_id": session_id})
                continue

            task = asyncio.create_task(reply(future))
            pending.add(task)
            task.add_done_callback(pending.discard)

    except WebSocketDisconnect:
        logger.info(f"Session {session_id} stream disconnected")
        # Mark session as paused
        if session.state == WorkoutSessionState.ACTIVE:
            session.pause()
    finally:
        for task in list(pending):
            task.cancel()
        dispatcher.shutdown(wait=False)
