"""FastAPI dependency providers backed by app.state"""

from fastapi import HTTPException, Request, status

from lessonforge.core.cache import ResponseCache
from lessonforge.core.models import Lesson
from lessonforge.core.store import LessonStore, SessionRegistry
from lessonforge.services.gemini_service import GeminiService
from lessonforge.services.image_service import ImageService
from lessonforge.services.lesson_service import LessonService
from lessonforge.services.speech_service import SpeechService


def get_lesson_store(request: Request) -> LessonStore:
    return request.app.state.lessons


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_audio_cache(request: Request) -> ResponseCache:
    return request.app.state.audio_cache


def get_quiz_cache(request: Request) -> ResponseCache:
    return request.app.state.quiz_cache


def get_sandbox_cache(request: Request) -> ResponseCache:
    return request.app.state.sandbox_cache


def get_gemini_service(request: Request) -> GeminiService:
    if getattr(request.app.state, "gemini", None) is None:
        request.app.state.gemini = GeminiService()
    return request.app.state.gemini


def get_speech_service(request: Request) -> SpeechService:
    if getattr(request.app.state, "speech", None) is None:
        request.app.state.speech = SpeechService()
    return request.app.state.speech


def get_image_service(request: Request) -> ImageService:
    if getattr(request.app.state, "images", None) is None:
        request.app.state.images = ImageService()
    return request.app.state.images


def get_lesson_service(request: Request) -> LessonService:
    return LessonService(get_gemini_service(request), get_image_service(request))


def require_lesson(store: LessonStore, lesson_id: str) -> Lesson:
    lesson = store.get(lesson_id)
    if lesson is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Lesson not found",
        )
    return lesson


def require_session(sessions: SessionRegistry, session_id: str, kind: type):
    session = sessions.get(session_id, kind)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    return session


def get_clock(request: Request):
    """Monotonic clock used for manual override windows."""
    return request.app.state.clock
