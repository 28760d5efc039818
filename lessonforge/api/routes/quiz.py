"""Quiz session routes."""

import logging
from dataclasses import dataclass

from fastapi import APIRouter, Depends, HTTPException, status

from lessonforge.config import settings
from lessonforge.core.cache import ResponseCache
from lessonforge.core.deps import (
    get_gemini_service,
    get_lesson_store,
    get_quiz_cache,
    get_sessions,
    require_lesson,
    require_session,
)
from lessonforge.core.quiz import QuizSession
from lessonforge.core.store import LessonStore, SessionRegistry
from lessonforge.api.routes.lessons import require_section, section_key
from lessonforge.api.schemas.activities import AnswerRequest, QuizSnapshot
from lessonforge.api.schemas.lessons import ProgressResponse
from lessonforge.services.gemini_service import GeminiService


logger = logging.getLogger(__name__)

router = APIRouter(tags=["quiz"])


@dataclass
class SectionQuiz:
    """A quiz session bound to the lesson section it tests"""

    lesson_id: str
    position: int
    session: QuizSession


def _snapshot(session_id: str, quiz: QuizSession) -> QuizSnapshot:
    return QuizSnapshot(
        sessionId=session_id,
        phase=quiz.phase.value,
        currentIndex=quiz.current_index,
        questionCount=len(quiz.questions),
        question=quiz.current_question,
        selectedAnswer=quiz.selected_answer,
        score=quiz.score,
        isComplete=quiz.is_complete,
        percentage=quiz.percentage if quiz.is_complete else None,
        passed=quiz.passed if quiz.is_complete else None,
    )


@router.post(
    "/lessons/{lesson_id}/sections/{section_id}/quiz",
    response_model=QuizSnapshot,
    status_code=status.HTTP_201_CREATED,
)
def create_quiz(
    lesson_id: str,
    section_id: int,
    store: LessonStore = Depends(get_lesson_store),
    sessions: SessionRegistry = Depends(get_sessions),
    gemini: GeminiService = Depends(get_gemini_service),
    cache: ResponseCache = Depends(get_quiz_cache),
):
    """Start a quiz for a section (questions generated once and cached)."""
    lesson = require_lesson(store, lesson_id)
    position, section = require_section(lesson, section_id)

    if len(section.transcript.strip()) < settings.MIN_QUIZ_TRANSCRIPT_CHARS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Transcript is too short to generate a quiz",
        )

    key = cache.make_key(section_key(lesson, section), section.transcript)
    questions = cache.get(key)
    if questions is None:
        try:
            questions = gemini.generate_quiz(section.title, section.transcript)
        except RuntimeError as e:
            logger.error("Quiz generation unavailable: %s", e)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Quiz generation is not configured",
            )
        except Exception as e:
            logger.error("Quiz generation error: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to generate quiz questions",
            )
        cache.set(key, questions)

    quiz = QuizSession(questions, pass_percent=settings.QUIZ_PASS_PERCENT)
    session_id = sessions.add(SectionQuiz(lesson_id=lesson.id, position=position, session=quiz))
    return _snapshot(session_id, quiz)


@router.get("/quiz/{session_id}", response_model=QuizSnapshot)
async def get_quiz(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    bound = require_session(sessions, session_id, SectionQuiz)
    return _snapshot(session_id, bound.session)


@router.post("/quiz/{session_id}/answer", response_model=QuizSnapshot)
async def answer(
    session_id: str,
    request: AnswerRequest,
    sessions: SessionRegistry = Depends(get_sessions),
):
    """Answer the current question; repeat answers are ignored."""
    bound = require_session(sessions, session_id, SectionQuiz)
    bound.session.answer(request.option)
    return _snapshot(session_id, bound.session)


@router.post("/quiz/{session_id}/next", response_model=QuizSnapshot)
async def next_question(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    bound = require_session(sessions, session_id, SectionQuiz)
    bound.session.next()
    return _snapshot(session_id, bound.session)


@router.post("/quiz/{session_id}/retry", response_model=QuizSnapshot)
async def retry(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    bound = require_session(sessions, session_id, SectionQuiz)
    bound.session.retry()
    return _snapshot(session_id, bound.session)


@router.post("/quiz/{session_id}/finish", response_model=ProgressResponse)
async def finish(
    session_id: str,
    sessions: SessionRegistry = Depends(get_sessions),
    store: LessonStore = Depends(get_lesson_store),
):
    """Close a completed quiz and record the section as done."""
    bound = require_session(sessions, session_id, SectionQuiz)
    if not bound.session.is_complete:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Quiz is not complete",
        )
    progress = store.progress(bound.lesson_id)
    progress.complete_section(bound.position)
    logger.info(
        "Lesson %s section %d completed (%d%%)",
        bound.lesson_id,
        bound.position + 1,
        bound.session.percentage,
    )
    return ProgressResponse(
        completedSections=sorted(progress.completed_sections),
        highestSection=progress.highest_section,
        lessonComplete=progress.lesson_complete,
    )
