"""
Unit Tests for the Teaching Challenge

Understanding accumulation, completion and evaluator failure handling.
"""

import pytest

from lessonforge.core.challenge import (
    EVALUATOR_FALLBACK,
    ChallengePhase,
    TeachingChallengeSession,
    opening_question,
)
from lessonforge.core.models import EvaluatorReply, Reaction, Speaker


@pytest.fixture
def challenge():
    session = TeachingChallengeSession("photosynthesis", max_understanding=7, max_retries=3, min_explanation_chars=5)
    session.start("What is photosynthesis? Is it magic?")
    return session


def reply(understanding, reaction="surprised", response="Ohh, why?"):
    return EvaluatorReply(understanding=understanding, reaction=reaction, response=response)


class TestOpening:
    def test_starts_with_kid_question(self, challenge):
        assert challenge.phase == ChallengePhase.AWAITING_EXPLANATION
        assert challenge.turns[0].speaker == Speaker.KID
        assert challenge.understanding == 0

    def test_falls_back_to_canned_question(self):
        session = TeachingChallengeSession("gravity")
        session.start(None)
        assert session.turns[0].text == opening_question("gravity")
        assert session.turns[0].text == "What is gravity? Can you explain it to me?"


class TestExplanations:
    def test_short_explanation_rejected(self, challenge):
        assert challenge.submit_explanation("  hi  ") is None
        assert challenge.phase == ChallengePhase.AWAITING_EXPLANATION
        assert len(challenge.turns) == 1

    def test_explanation_is_stripped(self, challenge):
        assert challenge.submit_explanation("  Plants eat light.  ") == "Plants eat light."
        assert challenge.phase == ChallengePhase.EVALUATING

    def test_cannot_submit_while_evaluating(self, challenge):
        challenge.submit_explanation("Plants eat light.")
        assert challenge.submit_explanation("Another go at it.") is None


class TestUnderstanding:
    def test_points_are_half_the_score(self, challenge):
        challenge.submit_explanation("Plants use sunlight.")
        challenge.apply_evaluation(reply(5))
        assert challenge.understanding == 2
        assert challenge.turns[-1].reaction == Reaction.SURPRISED

    def test_scenario_caps_and_completes(self, challenge):
        """6 accumulated + 10 scored caps at 7 and completes with understanding."""
        for _ in range(2):
            challenge.submit_explanation("Plants use sunlight.")
            challenge.apply_evaluation(reply(6))
        assert challenge.understanding == 6

        challenge.submit_explanation("Leaves make sugar from light.")
        challenge.apply_evaluation(reply(10, reaction="skeptical"))
        assert challenge.understanding == 7
        assert challenge.is_complete
        assert challenge.turns[-1].reaction == Reaction.UNDERSTANDING

    def test_never_exceeds_max(self, challenge):
        for _ in range(5):
            if challenge.is_complete:
                break
            challenge.submit_explanation("Plants use sunlight.")
            challenge.apply_evaluation(reply(10))
        assert challenge.understanding == challenge.max_understanding


class TestEvaluatorFailures:
    def test_failure_returns_to_awaiting(self, challenge):
        challenge.submit_explanation("Plants use sunlight.")
        assert challenge.record_failure() is False
        assert challenge.phase == ChallengePhase.AWAITING_EXPLANATION
        assert challenge.understanding == 0

    def test_fallback_after_retry_ceiling(self, challenge):
        injected = []
        for _ in range(4):
            challenge.submit_explanation("Plants use sunlight.")
            injected.append(challenge.record_failure())
        assert injected == [False, False, False, True]
        assert challenge.turns[-1].text == EVALUATOR_FALLBACK
        assert challenge.failures == 0
        assert not challenge.is_complete

    def test_success_resets_failure_count(self, challenge):
        challenge.submit_explanation("Plants use sunlight.")
        challenge.record_failure()
        challenge.submit_explanation("Plants use sunlight.")
        challenge.apply_evaluation(reply(2))
        assert challenge.failures == 0
