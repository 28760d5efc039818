"""Tests for the quiz state machine and lesson progress."""

import pytest

from lessonforge.core.quiz import LessonProgress, QuizPhase, QuizSession
from tests.conftest import question


@pytest.fixture
def quiz():
    return QuizSession([question(0), question(1), question(2), question(3)], pass_percent=75)


class TestQuizSession:
    def test_loading_until_questions_arrive(self):
        session = QuizSession()
        assert session.phase == QuizPhase.LOADING
        assert session.current_question is None
        session.load([question()])
        assert session.phase == QuizPhase.QUESTION

    def test_correct_answer_scores(self, quiz):
        assert quiz.answer(0) is True
        assert quiz.score == 1
        assert quiz.phase == QuizPhase.EXPLAINING

    def test_wrong_answer_does_not_score(self, quiz):
        assert quiz.answer(3) is False
        assert quiz.score == 0
        assert quiz.selected_answer == 3

    def test_each_question_answered_once(self, quiz):
        quiz.answer(0)
        quiz.answer(0)
        assert quiz.score == 1
        assert quiz.selected_answer == 0

    def test_out_of_range_option_ignored(self, quiz):
        assert quiz.answer(4) is False
        assert quiz.phase == QuizPhase.QUESTION

    def test_next_requires_an_answer(self, quiz):
        quiz.next()
        assert quiz.current_index == 0

    def test_full_run_and_pass(self, quiz):
        for correct in (0, 1, 2, 0):
            quiz.answer(correct)
            quiz.next()
        assert quiz.is_complete
        assert quiz.score == 3
        assert quiz.percentage == 75
        assert quiz.passed is True

    def test_below_threshold_fails(self, quiz):
        for _ in range(4):
            quiz.answer(1)
            quiz.next()
        assert quiz.percentage == 25
        assert quiz.passed is False

    def test_retry_resets_score(self, quiz):
        quiz.answer(0)
        quiz.next()
        quiz.retry()
        assert quiz.score == 0
        assert quiz.current_index == 0
        assert quiz.phase == QuizPhase.QUESTION


class TestLessonProgress:
    def test_completing_sections(self):
        progress = LessonProgress(section_count=3)
        progress.complete_section(1)
        assert progress.highest_section == 1
        assert not progress.lesson_complete

        progress.complete_section(0)
        assert progress.highest_section == 1
        progress.complete_section(2)
        assert progress.lesson_complete
        assert progress.completed_sections == {0, 1, 2}

    def test_out_of_range_ignored(self):
        progress = LessonProgress(section_count=2)
        progress.complete_section(5)
        assert progress.completed_sections == set()
