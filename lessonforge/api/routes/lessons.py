"""Lesson generation, narration and playback-session routes."""

import logging
from typing import Tuple

from fastapi import APIRouter, Depends, HTTPException, status

from lessonforge.config import settings
from lessonforge.core.cache import ResponseCache
from lessonforge.core.cues import resolve_image_timings
from lessonforge.core.deps import (
    get_audio_cache,
    get_clock,
    get_gemini_service,
    get_lesson_service,
    get_lesson_store,
    get_sessions,
    get_speech_service,
    require_lesson,
)
from lessonforge.core.models import Lesson, Section
from lessonforge.core.playback import PlaybackEngine, split_into_sentences
from lessonforge.core.store import LessonStore, SessionRegistry
from lessonforge.api.schemas.lessons import (
    AudioResponse,
    ChatRequest,
    ChatResponse,
    LessonRequest,
    LessonResponse,
    PlaybackFrameResponse,
    PlaybackSessionResponse,
    ProgressResponse,
    TranscriptSentence,
)
from lessonforge.services.gemini_service import GeminiService
from lessonforge.services.lesson_service import LessonService
from lessonforge.services.speech_service import SpeechService
from lessonforge.services.transcript_service import words_to_sentences


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lessons", tags=["lessons"])


def require_section(lesson: Lesson, section_id: int) -> Tuple[int, Section]:
    """Return (0-based position, section) or 404."""
    for position, section in enumerate(lesson.sections):
        if section.id == section_id:
            return position, section
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Section not found",
    )


def section_key(lesson: Lesson, section: Section) -> str:
    return f"{lesson.id}-{section.id}"


def load_section_audio(
    lesson: Lesson,
    section: Section,
    speech: SpeechService,
    cache: ResponseCache,
) -> AudioResponse:
    """Narrate a section (or reuse the cached narration) and derive its timeline."""
    key = cache.make_key(section_key(lesson, section), section.transcript)
    cached = cache.get(key)
    if cached is not None:
        return cached

    result = speech.synthesize(section.transcript)
    audio = AudioResponse(
        audioUrl=result.audio_url,
        words=result.words,
        imageTimings=resolve_image_timings(section.imageCues, result.words),
        sentences=split_into_sentences(section.transcript),
        transcriptSentences=[
            TranscriptSentence(start=s.start, end=s.end, text=s.text)
            for s in words_to_sentences(result.words)
        ],
    )
    if audio.audioUrl:
        cache.set(key, audio)
    else:
        logger.warning("No narration for section %s; serving static transcript", section_key(lesson, section))
    return audio


@router.post("", response_model=LessonResponse, status_code=status.HTTP_201_CREATED)
def create_lesson(
    request: LessonRequest,
    store: LessonStore = Depends(get_lesson_store),
    lesson_service: LessonService = Depends(get_lesson_service),
):
    """
    Generate a lesson for a topic.
    """
    topic = request.topic.strip()
    if not topic:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Topic is required",
        )
    try:
        lesson = lesson_service.build_lesson(topic)
    except RuntimeError as e:
        logger.error("Lesson generation unavailable: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Lesson generation is not configured",
        )
    except Exception as e:
        logger.error("Lesson generation error: %s", e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate lesson",
        )

    store.add(lesson)
    logger.info("Stored lesson %s", lesson.id)
    return LessonResponse(lessonId=lesson.id)


@router.get("/{lesson_id}", response_model=Lesson)
def get_lesson(lesson_id: str, store: LessonStore = Depends(get_lesson_store)):
    """Return a stored lesson."""
    return require_lesson(store, lesson_id)


@router.get("/{lesson_id}/progress", response_model=ProgressResponse)
def get_progress(lesson_id: str, store: LessonStore = Depends(get_lesson_store)):
    require_lesson(store, lesson_id)
    progress = store.progress(lesson_id)
    return ProgressResponse(
        completedSections=sorted(progress.completed_sections),
        highestSection=progress.highest_section,
        lessonComplete=progress.lesson_complete,
    )


@router.post("/{lesson_id}/chat", response_model=ChatResponse)
def chat(
    lesson_id: str,
    request: ChatRequest,
    store: LessonStore = Depends(get_lesson_store),
    gemini: GeminiService = Depends(get_gemini_service),
):
    """Answer a student question about the lesson."""
    lesson = require_lesson(store, lesson_id)
    position = min(request.currentSection, len(lesson.sections) - 1)
    try:
        reply = gemini.answer_question(lesson, position, request.message)
    except Exception as e:
        logger.error("Chat error: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process chat",
        )
    return ChatResponse(reply=reply)


@router.post("/{lesson_id}/sections/{section_id}/audio", response_model=AudioResponse)
def get_section_audio(
    lesson_id: str,
    section_id: int,
    store: LessonStore = Depends(get_lesson_store),
    speech: SpeechService = Depends(get_speech_service),
    cache: ResponseCache = Depends(get_audio_cache),
):
    """Narration with word alignment, image timings and sentence timeline."""
    lesson = require_lesson(store, lesson_id)
    _, section = require_section(lesson, section_id)
    return load_section_audio(lesson, section, speech, cache)


@router.post(
    "/{lesson_id}/sections/{section_id}/playback",
    response_model=PlaybackSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_playback_session(
    lesson_id: str,
    section_id: int,
    store: LessonStore = Depends(get_lesson_store),
    sessions: SessionRegistry = Depends(get_sessions),
    speech: SpeechService = Depends(get_speech_service),
    cache: ResponseCache = Depends(get_audio_cache),
    clock=Depends(get_clock),
):
    """Start synchronized playback of a section."""
    lesson = require_lesson(store, lesson_id)
    _, section = require_section(lesson, section_id)
    audio = load_section_audio(lesson, section, speech, cache)

    engine = PlaybackEngine(
        transcript=section.transcript,
        words=audio.words,
        image_timings=audio.imageTimings,
        image_count=len(section.imageUrls),
        override_seconds=settings.MANUAL_OVERRIDE_SECONDS,
        clock=clock,
    )
    session_id = sessions.add(engine, owner=f"playback-{section_key(lesson, section)}")
    return PlaybackSessionResponse(
        sessionId=session_id,
        audio=audio,
        frame=PlaybackFrameResponse(**vars(engine.frame())),
    )
