"""Drag-and-drop sandbox routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from lessonforge.core.cache import ResponseCache
from lessonforge.core.deps import (
    get_gemini_service,
    get_lesson_store,
    get_sandbox_cache,
    get_sessions,
    require_lesson,
    require_session,
)
from lessonforge.core.sandbox import SandboxOutcome, SandboxSession
from lessonforge.core.store import LessonStore, SessionRegistry
from lessonforge.api.routes.lessons import require_section, section_key
from lessonforge.api.schemas.activities import PieceRequest, SandboxSnapshot
from lessonforge.services.gemini_service import GeminiService


logger = logging.getLogger(__name__)

router = APIRouter(tags=["sandbox"])


def _snapshot(session_id: str, sandbox: SandboxSession, outcome: SandboxOutcome = None) -> SandboxSnapshot:
    outcome = outcome or SandboxOutcome()
    return SandboxSnapshot(
        sessionId=session_id,
        definition=sandbox.definition,
        phase=sandbox.phase.value,
        inventory=sandbox.inventory,
        combineZone=sandbox.combine_zone,
        created=sandbox.created,
        message=sandbox.message,
        matched=outcome.matched,
        result=outcome.result,
        isComplete=sandbox.is_complete,
    )


@router.post(
    "/lessons/{lesson_id}/sections/{section_id}/sandbox",
    response_model=SandboxSnapshot,
    status_code=status.HTTP_201_CREATED,
)
def create_sandbox(
    lesson_id: str,
    section_id: int,
    store: LessonStore = Depends(get_lesson_store),
    sessions: SessionRegistry = Depends(get_sessions),
    gemini: GeminiService = Depends(get_gemini_service),
    cache: ResponseCache = Depends(get_sandbox_cache),
):
    """Start a sandbox for a section (definition generated once and cached)."""
    lesson = require_lesson(store, lesson_id)
    _, section = require_section(lesson, section_id)

    key = cache.make_key(section_key(lesson, section), section.transcript)
    definition = cache.get(key)
    if definition is None:
        try:
            definition = gemini.generate_sandbox(section.title, section.transcript)
        except RuntimeError as e:
            logger.error("Sandbox generation unavailable: %s", e)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Sandbox generation is not configured",
            )
        except Exception as e:
            logger.error("Sandbox generation error: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to generate sandbox",
            )
        cache.set(key, definition)

    sandbox = SandboxSession(definition)
    session_id = sessions.add(sandbox)
    return _snapshot(session_id, sandbox)


@router.get("/sandbox/{session_id}", response_model=SandboxSnapshot)
async def get_sandbox(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    sandbox = require_session(sessions, session_id, SandboxSession)
    return _snapshot(session_id, sandbox)


@router.post("/sandbox/{session_id}/place", response_model=SandboxSnapshot)
async def place(session_id: str, request: PieceRequest, sessions: SessionRegistry = Depends(get_sessions)):
    """Drop an inventory piece into the combine zone."""
    sandbox = require_session(sessions, session_id, SandboxSession)
    return _snapshot(session_id, sandbox, sandbox.place(request.pieceId))


@router.post("/sandbox/{session_id}/remove", response_model=SandboxSnapshot)
async def remove(session_id: str, request: PieceRequest, sessions: SessionRegistry = Depends(get_sessions)):
    """Drag a piece from the combine zone back to the inventory."""
    sandbox = require_session(sessions, session_id, SandboxSession)
    return _snapshot(session_id, sandbox, sandbox.remove(request.pieceId))


@router.post("/sandbox/{session_id}/deconstruct", response_model=SandboxSnapshot)
async def deconstruct(session_id: str, request: PieceRequest, sessions: SessionRegistry = Depends(get_sessions)):
    sandbox = require_session(sessions, session_id, SandboxSession)
    return _snapshot(session_id, sandbox, sandbox.deconstruct(request.pieceId))


@router.post("/sandbox/{session_id}/breakdown", response_model=SandboxSnapshot)
async def breakdown(session_id: str, request: PieceRequest, sessions: SessionRegistry = Depends(get_sessions)):
    sandbox = require_session(sessions, session_id, SandboxSession)
    return _snapshot(session_id, sandbox, sandbox.break_down(request.pieceId))


@router.post("/sandbox/{session_id}/reset", response_model=SandboxSnapshot)
async def reset(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    sandbox = require_session(sessions, session_id, SandboxSession)
    return _snapshot(session_id, sandbox, sandbox.reset())
