"""Teaching challenge ("teach it back") routes."""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from lessonforge.config import settings
from lessonforge.core.challenge import ChallengePhase, TeachingChallengeSession
from lessonforge.core.deps import (
    get_gemini_service,
    get_lesson_store,
    get_sessions,
    get_speech_service,
    require_lesson,
    require_session,
)
from lessonforge.core.store import LessonStore, SessionRegistry
from lessonforge.api.schemas.activities import (
    ChallengeSnapshot,
    ChallengeTurn,
    ExplainRequest,
    VoiceRequest,
    VoiceResponse,
)
from lessonforge.services.gemini_service import GeminiService
from lessonforge.services.speech_service import SpeechService


logger = logging.getLogger(__name__)

router = APIRouter(tags=["challenge"])


@dataclass
class LessonChallenge:
    """A teaching challenge bound to the lesson content it is about"""

    lesson_id: str
    lesson_content: str
    session: TeachingChallengeSession


def _snapshot(session_id: str, challenge: TeachingChallengeSession, error: Optional[str] = None) -> ChallengeSnapshot:
    return ChallengeSnapshot(
        sessionId=session_id,
        phase=challenge.phase.value,
        turns=[
            ChallengeTurn(speaker=t.speaker.value, text=t.text, reaction=t.reaction)
            for t in challenge.turns
        ],
        understanding=challenge.understanding,
        maxUnderstanding=challenge.max_understanding,
        isComplete=challenge.is_complete,
        error=error,
    )


@router.post(
    "/lessons/{lesson_id}/challenge",
    response_model=ChallengeSnapshot,
    status_code=status.HTTP_201_CREATED,
)
def start_challenge(
    lesson_id: str,
    store: LessonStore = Depends(get_lesson_store),
    sessions: SessionRegistry = Depends(get_sessions),
    gemini: GeminiService = Depends(get_gemini_service),
):
    """Start a challenge; the kid opens with a question about the topic."""
    lesson = require_lesson(store, lesson_id)
    lesson_content = "\n\n".join(s.transcript for s in lesson.sections)
    challenge = TeachingChallengeSession(
        topic=lesson.topic,
        max_understanding=settings.CHALLENGE_MAX_UNDERSTANDING,
        max_retries=settings.CHALLENGE_MAX_RETRIES,
        min_explanation_chars=settings.MIN_EXPLANATION_CHARS,
    )

    error = None
    question = None
    try:
        question = gemini.generate_first_question(lesson.topic, lesson_content)
    except Exception as e:
        logger.error("Failed to generate first question: %s", e)
        error = "Failed to start challenge. Please try again."
    challenge.start(question)

    session_id = sessions.add(
        LessonChallenge(lesson_id=lesson.id, lesson_content=lesson_content, session=challenge)
    )
    return _snapshot(session_id, challenge, error)


@router.get("/challenge/{session_id}", response_model=ChallengeSnapshot)
async def get_challenge(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    bound = require_session(sessions, session_id, LessonChallenge)
    return _snapshot(session_id, bound.session)


@router.post("/challenge/{session_id}/explain", response_model=ChallengeSnapshot)
async def explain(
    session_id: str,
    request: ExplainRequest,
    sessions: SessionRegistry = Depends(get_sessions),
    gemini: GeminiService = Depends(get_gemini_service),
):
    """
    Submit an explanation. Evaluator failures are reported in `error` and
    leave the session waiting for another explanation. Session state only
    changes on the event loop; the evaluator call runs in the threadpool.
    """
    bound = require_session(sessions, session_id, LessonChallenge)
    challenge = bound.session

    if challenge.is_complete:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Challenge is already complete",
        )
    if challenge.phase == ChallengePhase.EVALUATING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Previous explanation is still being evaluated",
        )
    explanation = challenge.submit_explanation(request.explanation)
    if explanation is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide a more detailed explanation",
        )

    try:
        reply = await run_in_threadpool(
            gemini.evaluate_explanation,
            challenge.topic,
            bound.lesson_content,
            challenge.conversation(),
            explanation,
        )
    except Exception as e:
        logger.error("Evaluator error: %s", e)
        challenge.record_failure()
        return _snapshot(session_id, challenge, "Failed to get response. Please try again.")

    challenge.apply_evaluation(reply)
    return _snapshot(session_id, challenge)


@router.post("/challenge/voice", response_model=VoiceResponse)
def kid_voice(request: VoiceRequest, speech: SpeechService = Depends(get_speech_service)):
    """Voice a kid line; an empty URL means no audio (the challenge works without it)."""
    return VoiceResponse(audioUrl=speech.synthesize_kid_voice(request.text))
