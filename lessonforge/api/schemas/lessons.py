"""Pydantic schemas for lesson, audio and playback requests and responses"""

from pydantic import BaseModel, Field
from typing import List, Optional

from lessonforge.core.models import WordAlignment


class LessonRequest(BaseModel):
    """Request schema for generating a lesson."""

    topic: str = Field(..., min_length=1, description="Topic to teach")


class LessonResponse(BaseModel):
    lessonId: str


class ProgressResponse(BaseModel):
    completedSections: List[int]
    highestSection: Optional[int] = None
    lessonComplete: bool


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    currentSection: int = Field(default=0, ge=0, description="0-based section position")


class ChatResponse(BaseModel):
    reply: str


class TranscriptSentence(BaseModel):
    """Schema for a timed transcript sentence"""
    start: float
    end: float
    text: str


class AudioResponse(BaseModel):
    """Narration, alignment and derived image timings for one section"""
    audioUrl: str
    words: List[WordAlignment]
    imageTimings: List[float]
    sentences: List[str]
    transcriptSentences: List[TranscriptSentence]


class PlaybackFrameResponse(BaseModel):
    currentTime: float
    activeWordIndex: Optional[int] = None
    activeSentenceIndex: Optional[int] = None
    activeImageIndex: int
    manualOverrideActive: bool
    overrideRemaining: float
    fallback: bool
    ended: bool


class PlaybackSessionResponse(BaseModel):
    sessionId: str
    audio: AudioResponse
    frame: PlaybackFrameResponse


class TickRequest(BaseModel):
    currentTime: float = Field(..., ge=0.0)


class ImageSelectRequest(BaseModel):
    index: int
