"""
Unit Tests for Gemini Response Parsing

Generator output is untrusted: these cover fence stripping, JSON errors,
contract validation and the evaluator line format. The SDK call itself is
replaced by stubbing GeminiService._generate.
"""

import json

import pytest

from lessonforge.core.challenge import Turn
from lessonforge.core.models import Reaction, SandboxMode, Speaker, STILL_CONFUSED_RESPONSE
from lessonforge.services.gemini_service import (
    DEFAULT_CHAT_REPLY,
    GeminiService,
    clean_json_text,
    parse_evaluator_reply,
    parse_json_response,
    validate_questions,
    validate_sections,
)
from tests.conftest import NEURON_SANDBOX


def stub(service, text):
    """Make every generate call return `text`, recording the prompts."""
    prompts = []

    def _generate(prompt, **kwargs):
        prompts.append((prompt, kwargs))
        return text

    service._generate = _generate
    return prompts


@pytest.fixture
def service():
    return GeminiService(api_key="test-key", model="gemini-test")


VALID_QUESTION = {
    "question": "What do cells do?",
    "options": ["Grow", "Sing", "Fly", "Melt"],
    "correctIndex": 0,
    "explanation": "Cells grow.",
}


class TestJsonCleaning:
    def test_strips_json_fence(self):
        assert clean_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_bare_fence(self):
        assert clean_json_text('```{"a": 1}```') == '{"a": 1}'

    def test_plain_text_untouched(self):
        assert clean_json_text('  {"a": 1} ') == '{"a": 1}'

    def test_invalid_json_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_json_response("not json at all")

    def test_empty_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_json_response("```json\n```")

    def test_non_object_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_json_response("[1, 2]")


class TestContractValidation:
    def test_malformed_questions_dropped(self):
        three_options = dict(VALID_QUESTION, options=["a", "b", "c"])
        bad_index = dict(VALID_QUESTION, correctIndex=4)
        questions = validate_questions([VALID_QUESTION, three_options, bad_index])
        assert len(questions) == 1

    def test_non_list_questions(self):
        assert validate_questions({"question": "?"}) == []

    def test_blank_transcript_section_dropped(self):
        sections = validate_sections([
            {"title": "Good", "transcript": "Cells grow."},
            {"title": "Blank", "transcript": "   "},
            "not a section",
        ])
        assert [s.title for s in sections] == ["Good"]


class TestEvaluatorReply:
    """UNDERSTANDING / REACTION / RESPONSE line format."""

    def test_well_formed(self):
        reply = parse_evaluator_reply(
            "UNDERSTANDING: 8\nREACTION: Surprised\nRESPONSE: \"Ohhh! But why is it green?\""
        )
        assert reply.understanding == 8
        assert reply.reaction == Reaction.SURPRISED
        assert reply.response == "Ohhh! But why is it green?"

    def test_understanding_clamped(self):
        assert parse_evaluator_reply("UNDERSTANDING: 15").understanding == 10

    def test_unknown_reaction_is_confused(self):
        assert parse_evaluator_reply("REACTION: ecstatic").reaction == Reaction.CONFUSED

    def test_missing_fields_use_defaults(self):
        reply = parse_evaluator_reply("I don't know what to say")
        assert reply.understanding == 5
        assert reply.reaction == Reaction.CONFUSED
        assert reply.response == STILL_CONFUSED_RESPONSE


class TestGeminiService:
    def test_missing_key_raises_runtime_error(self):
        service = GeminiService(api_key="unused")
        service.api_key = None
        with pytest.raises(RuntimeError):
            _ = service.client

    def test_generate_sections_reads_milestones(self, service):
        payload = {"milestones": [{"title": "One", "transcript": "Cells grow.", "imageCues": ["cells grow"]}]}
        stub(service, json.dumps(payload))
        sections = service.generate_sections("cells", context="An overview.")
        assert len(sections) == 1
        assert sections[0].imageCues == ["cells grow"]

    def test_generate_quiz_requires_questions(self, service):
        stub(service, json.dumps({"questions": [dict(VALID_QUESTION, options=["a"])]}))
        with pytest.raises(ValueError):
            service.generate_quiz("Cells", "Cells grow.")

    def test_generate_quiz_disables_thinking(self, service):
        prompts = stub(service, json.dumps({"questions": [VALID_QUESTION]}))
        questions = service.generate_quiz("Cells", "Cells grow.")
        assert len(questions) == 1
        assert prompts[0][1]["disable_thinking"] is True

    def test_generate_sandbox(self, service):
        stub(service, "```json\n" + json.dumps(NEURON_SANDBOX) + "\n```")
        definition = service.generate_sandbox("Neurons", "Neurons send signals.")
        assert definition.mode == SandboxMode.BUILD

    def test_invalid_sandbox_raises_value_error(self, service):
        stub(service, json.dumps(dict(NEURON_SANDBOX, startingPieces=[])))
        with pytest.raises(ValueError):
            service.generate_sandbox("Neurons", "Neurons send signals.")

    def test_first_question_strips_quotes(self, service):
        stub(service, '"What is a neuron?"')
        assert service.generate_first_question("neurons", "...") == "What is a neuron?"

    def test_evaluation_prompt_includes_conversation(self, service):
        prompts = stub(service, "UNDERSTANDING: 6\nREACTION: skeptical\nRESPONSE: Really?")
        turns = [Turn(Speaker.KID, "What is a neuron?"), Turn(Speaker.TEACHER, "A cell.")]
        reply = service.evaluate_explanation("neurons", "lesson", turns, "A cell that signals.")
        assert reply.reaction == Reaction.SKEPTICAL
        assert "Kid: What is a neuron?" in prompts[0][0]
        assert "Teacher: A cell." in prompts[0][0]

    def test_empty_chat_reply_gets_default(self, service):
        from lessonforge.core.models import Lesson, Section

        lesson = Lesson(
            id="l1",
            topic="cells",
            sections=[Section(id=1, title="Cells", transcript="Cells grow.", imageUrls=[])],
        )
        stub(service, "")
        assert service.answer_question(lesson, 0, "why?") == DEFAULT_CHAT_REPLY
