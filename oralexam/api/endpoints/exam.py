"""
Exam API endpoints

Handles exam session lifecycle:
- Creating sessions
- Generating or loading the exam plan
- Starting, aborting and restarting runs
- Real-time snapshots, audio and recording over WebSocket
"""

import asyncio
import base64
import binascii
import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from oralexam.api.dependencies import get_orchestrator
from oralexam.core.exam_orchestrator import ExamOrchestrator
from oralexam.errors import PlanGenerationError, StateTransitionError
from oralexam.models.plan import ExamPlan, SectionKind
from oralexam.models.run import RunSnapshot
from oralexam.models.session import ExamStatus

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class SessionResponse(BaseModel):
    """Response model for a new session."""
    session_id: str
    status: str
    message: str


class SectionOutline(BaseModel):
    """One section of a loaded plan."""
    tag: SectionKind
    items: int
    max_score: float


class PlanResponse(BaseModel):
    """Response after a plan is generated or loaded."""
    session_id: str
    status: str
    plan_id: str
    total_items: int
    max_score: float
    sections: list[SectionOutline]


def _get_session_or_404(orchestrator: ExamOrchestrator, session_id: str):
    try:
        return orchestrator.get_session(session_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Session not found")


def _plan_response(session_id: str, status: ExamStatus, plan: ExamPlan) -> PlanResponse:
    return PlanResponse(
        session_id=session_id,
        status=status.value,
        plan_id=plan.plan_id,
        total_items=plan.total_items,
        max_score=plan.max_score,
        sections=[
            SectionOutline(tag=section.tag, items=len(section.items), max_score=section.max_score)
            for section in plan.sections
        ],
    )


# ============================================================================
# REST ENDPOINTS
# ============================================================================

@router.post("/sessions", response_model=SessionResponse)
async def create_session() -> SessionResponse:
    """Create a new exam session."""
    orchestrator = get_orchestrator()
    session = orchestrator.create_session()

    return SessionResponse(
        session_id=session.session_id,
        status=session.status.value,
        message="Exam session created. Call /generate to prepare a paper.",
    )


@router.post("/{session_id}/generate", response_model=PlanResponse)
async def generate_plan(session_id: str) -> PlanResponse:
    """
    Generate a new exam paper for the session.

    A generation failure leaves the session idle; no run can start.
    """
    orchestrator = get_orchestrator()
    session = _get_session_or_404(orchestrator, session_id)

    try:
        plan = await orchestrator.generate_plan(session_id)
    except StateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PlanGenerationError as e:
        raise HTTPException(status_code=502, detail=f"Failed to generate exam: {e}")

    return _plan_response(session_id, session.status, plan)


@router.post("/{session_id}/plan", response_model=PlanResponse)
async def load_plan(session_id: str, plan: ExamPlan) -> PlanResponse:
    """Load a prepared exam plan instead of generating one."""
    orchestrator = get_orchestrator()
    session = _get_session_or_404(orchestrator, session_id)

    try:
        await orchestrator.load_plan(session_id, plan)
    except StateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return _plan_response(session_id, session.status, plan)


@router.post("/{session_id}/start", response_model=RunSnapshot)
async def start_exam(session_id: str) -> RunSnapshot:
    """Start the timed run."""
    orchestrator = get_orchestrator()
    _get_session_or_404(orchestrator, session_id)

    try:
        await orchestrator.start(session_id)
    except StateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return orchestrator.snapshot(session_id)


@router.post("/{session_id}/abort", response_model=RunSnapshot)
async def abort_exam(session_id: str) -> RunSnapshot:
    """Abort the running exam and discard its responses."""
    orchestrator = get_orchestrator()
    _get_session_or_404(orchestrator, session_id)

    try:
        await orchestrator.abort(session_id)
    except StateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return orchestrator.snapshot(session_id)


@router.post("/{session_id}/restart", response_model=RunSnapshot)
async def restart_exam(session_id: str) -> RunSnapshot:
    """Return the session to idle so a new paper can be generated."""
    orchestrator = get_orchestrator()
    _get_session_or_404(orchestrator, session_id)

    try:
        await orchestrator.restart(session_id)
    except StateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return orchestrator.snapshot(session_id)


@router.get("/{session_id}/status", response_model=RunSnapshot)
async def get_status(session_id: str) -> RunSnapshot:
    """Get the read-only run snapshot."""
    orchestrator = get_orchestrator()
    _get_session_or_404(orchestrator, session_id)
    return orchestrator.snapshot(session_id)


# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws/{session_id}")
async def websocket_exam(websocket: WebSocket, session_id: str):
    """
    WebSocket endpoint for the exam room.

    Message types:
    - audio_chunk: Recorded audio (base64 in `data`)
    - stop_recording: Stop the current recording early
    - recording_error: Client-side microphone failure (`message`)
    - ping

    Server sends:
    - snapshot: Run snapshot after every change
    - state_change: Session status updated
    - audio: Synthesized prompt audio to play
    - error: Error occurred
    """
    await websocket.accept()

    orchestrator = get_orchestrator()
    try:
        session = orchestrator.get_session(session_id)
    except ValueError:
        await websocket.close(code=4004, reason="Session not found")
        return

    queue = orchestrator.subscribe(session_id)
    device = orchestrator.get_capture_device(session_id)
    player = orchestrator.get_player(session_id)

    async def forward_audio(clip: dict) -> None:
        await websocket.send_json({"type": "audio", "data": clip})

    async def forward_snapshots() -> None:
        last_status = session.status.value
        while True:
            snapshot = await queue.get()
            if snapshot.status != last_status:
                await websocket.send_json({
                    "type": "state_change",
                    "data": {"from": last_status, "to": snapshot.status},
                })
                last_status = snapshot.status
            await websocket.send_json({"type": "snapshot", "data": snapshot.model_dump(mode="json")})

    if hasattr(player, "add_listener"):
        player.add_listener(forward_audio)
    sender = asyncio.create_task(forward_snapshots())

    try:
        await websocket.send_json({
            "type": "snapshot",
            "data": orchestrator.snapshot(session_id).model_dump(mode="json"),
        })

        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict):
                await websocket.send_json({"type": "error", "message": "Messages must be JSON objects"})
                continue
            message_type = data.get("type")

            if message_type == "audio_chunk":
                try:
                    device.feed(base64.b64decode(data.get("data", "")))
                except (binascii.Error, ValueError):
                    await websocket.send_json({"type": "error", "message": "Invalid audio chunk"})

            elif message_type == "stop_recording":
                device.request_stop()

            elif message_type == "recording_error":
                device.fail(data.get("message", "Recording failed"))

            elif message_type == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        logger.info(f"WebSocket closed for session {session_id}")
    finally:
        sender.cancel()
        orchestrator.unsubscribe(session_id, queue)
        if hasattr(player, "remove_listener"):
            player.remove_listener(forward_audio)
