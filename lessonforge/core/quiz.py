"""Quiz session state machine and lesson progress"""

import enum
from dataclasses import dataclass, field
from typing import List, Optional, Set

from lessonforge.core.models import QuizQuestion


class QuizPhase(str, enum.Enum):
    LOADING = "loading"
    QUESTION = "question"
    EXPLAINING = "explaining"
    COMPLETE = "complete"


class QuizSession:
    """
    Loading -> Question(i) -> Explaining(i) -> Question(i+1) | Complete.

    Each question is answered at most once; later answers are ignored.
    """

    def __init__(self, questions: Optional[List[QuizQuestion]] = None, pass_percent: int = 75):
        self.questions: List[QuizQuestion] = []
        self.pass_percent = pass_percent
        self.current_index = 0
        self.selected_answer: Optional[int] = None
        self.score = 0
        self.phase = QuizPhase.LOADING
        if questions:
            self.load(questions)

    def load(self, questions: List[QuizQuestion]) -> None:
        if not questions:
            return
        self.questions = list(questions)
        self.retry()

    @property
    def is_complete(self) -> bool:
        return self.phase == QuizPhase.COMPLETE

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        if self.phase in (QuizPhase.QUESTION, QuizPhase.EXPLAINING):
            return self.questions[self.current_index]
        return None

    @property
    def percentage(self) -> int:
        if not self.questions:
            return 0
        return round(self.score / len(self.questions) * 100)

    @property
    def passed(self) -> bool:
        return self.is_complete and self.percentage >= self.pass_percent

    def answer(self, option: int) -> bool:
        """Record an answer; returns whether it was correct. No-op outside Question."""
        if self.phase != QuizPhase.QUESTION:
            return False
        question = self.questions[self.current_index]
        if option < 0 or option >= len(question.options):
            return False
        correct = option == question.correctIndex
        self.selected_answer = option
        if correct:
            self.score += 1
        self.phase = QuizPhase.EXPLAINING
        return correct

    def next(self) -> None:
        if self.phase != QuizPhase.EXPLAINING:
            return
        if self.current_index + 1 >= len(self.questions):
            self.phase = QuizPhase.COMPLETE
            return
        self.current_index += 1
        self.selected_answer = None
        self.phase = QuizPhase.QUESTION

    def retry(self) -> None:
        if not self.questions:
            return
        self.current_index = 0
        self.selected_answer = None
        self.score = 0
        self.phase = QuizPhase.QUESTION


@dataclass
class LessonProgress:
    """Which sections of a lesson have had their quiz finished"""

    section_count: int
    completed_sections: Set[int] = field(default_factory=set)
    highest_section: Optional[int] = None
    lesson_complete: bool = False

    def complete_section(self, position: int) -> None:
        """Mark the section at this 0-based position as done."""
        if position < 0 or position >= self.section_count:
            return
        self.completed_sections.add(position)
        if self.highest_section is None or position > self.highest_section:
            self.highest_section = position
        if position == self.section_count - 1:
            self.lesson_complete = True
