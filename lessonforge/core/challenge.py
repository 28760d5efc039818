"""Teaching challenge ("teach it back") session state machine"""

import enum
import logging
from dataclasses import dataclass
from typing import List, Optional

from lessonforge.core.models import EvaluatorReply, Reaction, Speaker

logger = logging.getLogger(__name__)

EVALUATOR_FALLBACK = "Hmm, I'm having trouble thinking right now. Can you try explaining again?"


def opening_question(topic: str) -> str:
    return f"What is {topic}? Can you explain it to me?"


class ChallengePhase(str, enum.Enum):
    AWAITING_FIRST_QUESTION = "awaiting_first_question"
    AWAITING_EXPLANATION = "awaiting_explanation"
    EVALUATING = "evaluating"
    COMPLETE = "complete"


@dataclass
class Turn:
    speaker: Speaker
    text: str
    reaction: Optional[Reaction] = None


class TeachingChallengeSession:
    """
    AwaitingFirstQuestion -> AwaitingExplanation <-> Evaluating -> Complete.

    Evaluator failures never end the session: after max_retries failures
    in a row a canned kid line is injected and the learner explains again.
    """

    def __init__(self, topic: str, max_understanding: int = 7, max_retries: int = 3, min_explanation_chars: int = 5):
        self.topic = topic
        self.max_understanding = max_understanding
        self.max_retries = max_retries
        self.min_explanation_chars = min_explanation_chars
        self.turns: List[Turn] = []
        self.understanding = 0
        self.failures = 0
        self.phase = ChallengePhase.AWAITING_FIRST_QUESTION

    @property
    def is_complete(self) -> bool:
        return self.phase == ChallengePhase.COMPLETE

    def start(self, question: Optional[str]) -> None:
        """Open with the kid's first question (or the canned one if generation failed)."""
        self.turns = [
            Turn(Speaker.KID, (question or "").strip() or opening_question(self.topic), Reaction.CONFUSED)
        ]
        self.understanding = 0
        self.failures = 0
        self.phase = ChallengePhase.AWAITING_EXPLANATION

    def submit_explanation(self, text: str) -> Optional[str]:
        """
        Accept a teacher explanation and move to Evaluating.

        Returns the accepted text, or None when the session is not waiting
        for one or the explanation is too short.
        """
        if self.phase != ChallengePhase.AWAITING_EXPLANATION:
            return None
        explanation = (text or "").strip()
        if len(explanation) < self.min_explanation_chars:
            return None
        self.turns.append(Turn(Speaker.TEACHER, explanation))
        self.phase = ChallengePhase.EVALUATING
        return explanation

    def apply_evaluation(self, reply: EvaluatorReply) -> None:
        if self.phase != ChallengePhase.EVALUATING:
            return
        self.failures = 0
        points = reply.understanding // 2
        self.understanding = min(self.understanding + points, self.max_understanding)

        if self.understanding >= self.max_understanding:
            self.turns.append(Turn(Speaker.KID, reply.response, Reaction.UNDERSTANDING))
            self.phase = ChallengePhase.COMPLETE
            logger.info("Teaching challenge on %r complete", self.topic)
            return
        self.turns.append(Turn(Speaker.KID, reply.response, reply.reaction))
        self.phase = ChallengePhase.AWAITING_EXPLANATION

    def record_failure(self) -> bool:
        """
        Absorb an evaluator failure. Returns True when the retry ceiling was
        passed and the fallback line was injected.
        """
        if self.phase != ChallengePhase.EVALUATING:
            return False
        self.phase = ChallengePhase.AWAITING_EXPLANATION
        self.failures += 1
        if self.failures <= self.max_retries:
            return False
        logger.warning("Evaluator failed %d times, injecting fallback", self.failures)
        self.turns.append(Turn(Speaker.KID, EVALUATOR_FALLBACK, Reaction.CONFUSED))
        self.failures = 0
        return True

    def conversation(self) -> List[Turn]:
        return list(self.turns)
