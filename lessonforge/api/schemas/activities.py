"""Pydantic schemas for quiz, sandbox and teaching challenge sessions"""

from pydantic import BaseModel, Field
from typing import List, Optional

from lessonforge.core.models import PuzzlePiece, QuizQuestion, Reaction, SandboxDefinition


class QuizSnapshot(BaseModel):
    sessionId: str
    phase: str
    currentIndex: int
    questionCount: int
    question: Optional[QuizQuestion] = None
    selectedAnswer: Optional[int] = None
    score: int
    isComplete: bool
    percentage: Optional[int] = None
    passed: Optional[bool] = None


class AnswerRequest(BaseModel):
    option: int


class SandboxSnapshot(BaseModel):
    sessionId: str
    definition: SandboxDefinition
    phase: str
    inventory: List[PuzzlePiece]
    combineZone: List[PuzzlePiece]
    created: List[PuzzlePiece]
    message: str
    matched: bool = False
    result: Optional[PuzzlePiece] = None
    isComplete: bool


class PieceRequest(BaseModel):
    pieceId: str = Field(..., min_length=1)


class ChallengeTurn(BaseModel):
    speaker: str
    text: str
    reaction: Optional[Reaction] = None


class ChallengeSnapshot(BaseModel):
    sessionId: str
    phase: str
    turns: List[ChallengeTurn]
    understanding: int
    maxUnderstanding: int
    isComplete: bool
    error: Optional[str] = None


class ExplainRequest(BaseModel):
    explanation: str


class VoiceRequest(BaseModel):
    text: str = Field(..., min_length=1)


class VoiceResponse(BaseModel):
    audioUrl: str
