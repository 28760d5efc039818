"""Playback session routes: time ticks, manual image changes, end of narration."""

import logging

from fastapi import APIRouter, Depends

from lessonforge.core.deps import get_sessions, require_session
from lessonforge.core.playback import PlaybackEngine, PlaybackFrame
from lessonforge.core.store import SessionRegistry
from lessonforge.api.schemas.lessons import ImageSelectRequest, PlaybackFrameResponse, TickRequest


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/playback", tags=["playback"])


def _frame(frame: PlaybackFrame) -> PlaybackFrameResponse:
    return PlaybackFrameResponse(**vars(frame))


@router.get("/{session_id}", response_model=PlaybackFrameResponse)
async def get_frame(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    engine = require_session(sessions, session_id, PlaybackEngine)
    return _frame(engine.frame())


@router.post("/{session_id}/tick", response_model=PlaybackFrameResponse)
async def tick(
    session_id: str,
    request: TickRequest,
    sessions: SessionRegistry = Depends(get_sessions),
):
    """Advance or seek playback to currentTime."""
    engine = require_session(sessions, session_id, PlaybackEngine)
    return _frame(engine.tick(request.currentTime))


@router.post("/{session_id}/image", response_model=PlaybackFrameResponse)
async def select_image(
    session_id: str,
    request: ImageSelectRequest,
    sessions: SessionRegistry = Depends(get_sessions),
):
    """Manual image change; pauses automatic switching for the override window."""
    engine = require_session(sessions, session_id, PlaybackEngine)
    return _frame(engine.select_image(request.index))


@router.post("/{session_id}/ended", response_model=PlaybackFrameResponse)
async def ended(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    engine = require_session(sessions, session_id, PlaybackEngine)
    logger.info("Playback session %s finished", session_id)
    return _frame(engine.finish())
