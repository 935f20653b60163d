"""Encounter sessions over HTTP.

Each session is an in-memory :class:`EncounterSessionController`. Sessions
share the application's generateContent client and never play audio on the
server; narration is returned as WAV bytes instead.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from battle_master.audio import NullPlayer
from battle_master.encounter import (
    EncounterRequestParams,
    EncounterSessionController,
    NarrationOutcome,
    VoiceStyle,
)
from battle_master.identity import resolve_identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


class SessionCreate(BaseModel):
    """Request to create a new session."""

    token: Optional[str] = None


class SessionCreated(BaseModel):
    session_id: str
    app_id: str
    user_id: str
    anonymous: bool


class NarrateRequest(BaseModel):
    voice_style: VoiceStyle = VoiceStyle.DRAMATIC


def _get_controller(request: Request, session_id: str) -> EncounterSessionController:
    controller = request.app.state.sessions.get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return controller


@router.post("", response_model=SessionCreated, status_code=201)
async def create_session(request: Request, body: Optional[SessionCreate] = None) -> SessionCreated:
    """Create a new encounter session."""
    settings = request.app.state.settings
    identity = resolve_identity(settings, token=body.token if body else None)

    session_id = str(uuid.uuid4())
    request.app.state.sessions[session_id] = EncounterSessionController(
        request.app.state.llm_client,
        settings=settings,
        player=NullPlayer(),
        session_id=session_id,
    )
    logger.info(f"Created session {session_id} for user {identity.user_id}")

    return SessionCreated(
        session_id=session_id,
        app_id=identity.app_id,
        user_id=identity.user_id,
        anonymous=identity.anonymous,
    )


@router.get("/{session_id}")
async def get_session(request: Request, session_id: str) -> dict[str, Any]:
    """Get the current state of a session."""
    controller = _get_controller(request, session_id)
    return controller.snapshot().to_public_dict()


@router.delete("/{session_id}")
async def delete_session(request: Request, session_id: str) -> dict[str, str]:
    """Discard a session."""
    controller = _get_controller(request, session_id)
    controller.stop_narration()
    del request.app.state.sessions[session_id]
    return {"status": "deleted", "session_id": session_id}


@router.post("/{session_id}/generate")
async def generate_encounter(
    request: Request, session_id: str, params: EncounterRequestParams
) -> dict[str, Any]:
    """Design a new encounter. Failures are reported in ``last_error``."""
    controller = _get_controller(request, session_id)
    if not await controller.generate(params):
        raise HTTPException(status_code=409, detail="A generation is already in progress")
    return controller.snapshot().to_public_dict()


@router.post("/{session_id}/flesh-out")
async def flesh_out_encounter(request: Request, session_id: str) -> dict[str, Any]:
    """Append tactics, environment and treasure to the current encounter."""
    controller = _get_controller(request, session_id)
    if not controller.session.has_narrative:
        raise HTTPException(status_code=409, detail="Generate an encounter first")
    if not await controller.flesh_out():
        raise HTTPException(status_code=409, detail="Details are already being added")
    return controller.snapshot().to_public_dict()


@router.post("/{session_id}/narrate")
async def narrate_encounter(
    request: Request, session_id: str, body: Optional[NarrateRequest] = None
) -> Response:
    """Synthesize the opening paragraph and return it as ``audio/wav``."""
    controller = _get_controller(request, session_id)
    if not controller.session.has_narrative:
        raise HTTPException(status_code=409, detail="Generate an encounter first")

    voice_style = body.voice_style if body else VoiceStyle.DRAMATIC
    outcome = await controller.narrate(voice_style)
    if outcome == NarrationOutcome.FAILED:
        error = controller.session.last_error
        raise HTTPException(
            status_code=502,
            detail={"kind": error.kind.value, "message": error.message},
        )
    if outcome != NarrationOutcome.PLAYING:
        raise HTTPException(status_code=409, detail=f"Narration {outcome.value}")

    clip = controller.last_clip
    return Response(
        content=clip.wav_bytes,
        media_type="audio/wav",
        headers={
            "X-Voice-Name": clip.voice_name or "",
            "X-Sample-Rate": str(clip.sample_rate),
        },
    )
