"""Domain models and generator contracts.

Everything a generator (Gemini, Deepgram, SerpAPI) hands back is validated
against one of these models before the engines see it. Field names follow
the camelCase JSON the generators and the browser client speak.
"""

import enum
import logging
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

MAX_EVALUATOR_UNDERSTANDING = 10
DEFAULT_EVALUATOR_UNDERSTANDING = 5
STILL_CONFUSED_RESPONSE = "Hmm, I'm still a bit confused. Can you explain it differently?"


class SandboxMode(str, enum.Enum):
    """Sandbox variant chosen by the generator"""

    BUILD = "build"
    BREAKDOWN = "breakdown"


class Reaction(str, enum.Enum):
    """Facial reaction of the kid in the teaching challenge"""

    CONFUSED = "confused"
    SURPRISED = "surprised"
    SKEPTICAL = "skeptical"
    UNDERSTANDING = "understanding"


class Speaker(str, enum.Enum):
    KID = "kid"
    TEACHER = "teacher"


class WordAlignment(BaseModel):
    """One aligned word of synthesized narration (seconds)"""

    text: str
    start: float
    end: float


class Section(BaseModel):
    """One narrated, illustrated unit of a lesson"""

    id: int
    title: str
    transcript: str
    imageUrls: List[str]
    imageDescriptions: List[str] = Field(default_factory=list)
    imageCues: List[str] = Field(default_factory=list)
    emphasisWords: List[str] = Field(default_factory=list)


class Lesson(BaseModel):
    id: str
    topic: str
    sections: List[Section]

    def get_section(self, section_id: int) -> Optional[Section]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None


class GeneratedSection(BaseModel):
    """Section as produced by the content generator, before images are resolved"""

    title: str = Field(..., min_length=1)
    transcript: str = Field(..., min_length=1)
    imageDescriptions: List[str] = Field(default_factory=list)
    imageCues: List[str] = Field(default_factory=list)
    emphasisWords: List[str] = Field(default_factory=list)

    @field_validator("transcript")
    @classmethod
    def transcript_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("transcript is blank")
        return value


class QuizQuestion(BaseModel):
    """Multiple-choice question with exactly four options"""

    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=4, max_length=4)
    correctIndex: int = Field(..., ge=0, le=3)
    explanation: str = Field(..., min_length=1)


class PuzzlePiece(BaseModel):
    id: str = Field(..., min_length=1)
    label: str
    emoji: str = ""
    color: str = ""
    description: str = ""


class Combination(BaseModel):
    """Declarative rule: this set of piece ids yields `result`"""

    pieces: List[str]
    result: PuzzlePiece
    explanation: str = ""

    @field_validator("pieces")
    @classmethod
    def at_least_two_pieces(cls, value: List[str]) -> List[str]:
        if len(set(value)) < 2:
            raise ValueError("a combination needs at least two distinct pieces")
        return value


class SandboxDefinition(BaseModel):
    """Drag-and-drop sandbox for one section"""

    type: str
    mode: SandboxMode
    title: str = Field(..., min_length=1)
    description: str = ""
    startingPieces: List[PuzzlePiece] = Field(default_factory=list)
    combinations: List[Combination] = Field(default_factory=list)
    targetPiece: Optional[PuzzlePiece] = None
    breakdownLevels: List[List[PuzzlePiece]] = Field(default_factory=list)
    kidFriendlyExplanation: str = ""
    celebrationMessage: str = ""

    @field_validator("type")
    @classmethod
    def drag_drop_only(cls, value: str) -> str:
        if value != "drag-drop":
            raise ValueError(f"unsupported sandbox type: {value}")
        return value

    @model_validator(mode="after")
    def check_mode_requirements(self) -> "SandboxDefinition":
        if self.mode == SandboxMode.BUILD:
            if len(self.startingPieces) < 2:
                raise ValueError("build mode needs at least 2 starting pieces")
            known = {p.id for p in self.startingPieces}
            known.update(c.result.id for c in self.combinations)
            usable = [c for c in self.combinations if all(pid in known for pid in c.pieces)]
            if len(usable) != len(self.combinations):
                logger.warning(
                    "Dropped %d combinations referencing unknown pieces",
                    len(self.combinations) - len(usable),
                )
            self.combinations = usable
            if not self.combinations:
                raise ValueError("build mode needs at least 1 combination")
        else:
            self.breakdownLevels = [level for level in self.breakdownLevels if level]
            if self.targetPiece is None or not self.breakdownLevels:
                raise ValueError("breakdown mode needs a target piece and at least 1 level")
        return self


class EvaluatorReply(BaseModel):
    """Teaching evaluator verdict on one explanation, clamped and defaulted"""

    understanding: int = DEFAULT_EVALUATOR_UNDERSTANDING
    reaction: Reaction = Reaction.CONFUSED
    response: str = STILL_CONFUSED_RESPONSE

    @field_validator("understanding", mode="before")
    @classmethod
    def clamp_understanding(cls, value):
        try:
            number = int(value)
        except (TypeError, ValueError):
            return DEFAULT_EVALUATOR_UNDERSTANDING
        return min(MAX_EVALUATOR_UNDERSTANDING, max(0, number))

    @field_validator("reaction", mode="before")
    @classmethod
    def known_reaction(cls, value):
        try:
            return Reaction(str(value).strip().lower())
        except ValueError:
            return Reaction.CONFUSED

    @field_validator("response", mode="before")
    @classmethod
    def non_empty_response(cls, value):
        text = str(value or "").strip().replace('"', "")
        return text or STILL_CONFUSED_RESPONSE
