"""Shared fixtures: alignment data, sandbox definitions and fake collaborators."""

import pytest

from lessonforge.core.models import (
    EvaluatorReply,
    GeneratedSection,
    QuizQuestion,
    SandboxDefinition,
    WordAlignment,
)
from lessonforge.services.speech_service import SpeechResult


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def words(*triples):
    return [WordAlignment(text=t, start=s, end=e) for t, s, e in triples]


NEURON_SANDBOX = {
    "type": "drag-drop",
    "mode": "build",
    "title": "Build Neural Components!",
    "description": "Explore how neuron parts work together!",
    "startingPieces": [
        {"id": "dendrite", "label": "Dendrites", "emoji": "🌿", "color": "#22c55e", "description": "Receives signals"},
        {"id": "soma", "label": "Cell Body", "emoji": "⭐", "color": "#3b82f6", "description": "Brain of the cell"},
        {"id": "axon", "label": "Axon", "emoji": "⚡", "color": "#f59e0b", "description": "Sends signals"},
    ],
    "combinations": [
        {
            "pieces": ["dendrite", "soma"],
            "result": {"id": "receiving", "label": "Receiving Unit", "emoji": "📥", "color": "#10b981", "description": "Input side"},
            "explanation": "Dendrites connect to the cell body to receive signals!",
        },
        {
            "pieces": ["soma", "axon"],
            "result": {"id": "sending", "label": "Sending Unit", "emoji": "📤", "color": "#f97316", "description": "Output side"},
            "explanation": "The cell body connects to the axon to send signals!",
        },
        {
            "pieces": ["receiving", "axon"],
            "result": {"id": "neuron", "label": "Complete Neuron", "emoji": "🧠", "color": "#8b5cf6", "description": "A working neuron"},
            "explanation": "You built a complete neuron!",
        },
    ],
    "kidFriendlyExplanation": "Neurons are made of parts that work together.",
    "celebrationMessage": "Great exploration!",
}

BRAIN_BREAKDOWN = {
    "type": "drag-drop",
    "mode": "breakdown",
    "title": "Explore the Brain!",
    "description": "Click to break it down!",
    "targetPiece": {"id": "brain", "label": "Brain", "emoji": "🧠", "color": "#8b5cf6", "description": "The whole system"},
    "breakdownLevels": [
        [
            {"id": "cortex", "label": "Cortex", "description": "Outer layer"},
            {"id": "stem", "label": "Brain Stem", "description": "Keeps you breathing"},
        ],
        [
            {"id": "neuron", "label": "Neuron", "description": "Signal cell"},
        ],
    ],
    "kidFriendlyExplanation": "The brain has layers.",
    "celebrationMessage": "You explored it all!",
}

TRANSCRIPT = (
    "The cell grows. It divides into two new cells! Each new cell carries a full copy of the instructions."
)


def question(correct: int = 0, text: str = "What does a cell do?") -> QuizQuestion:
    return QuizQuestion(
        question=text,
        options=["Grows", "Sings", "Flies", "Melts"],
        correctIndex=correct,
        explanation="Cells grow and divide.",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cell_words():
    return words(("the", 0.0, 0.3), ("cell", 0.3, 0.9), ("grows", 0.9, 1.5))


@pytest.fixture
def neuron_definition():
    return SandboxDefinition.model_validate(NEURON_SANDBOX)


@pytest.fixture
def brain_definition():
    return SandboxDefinition.model_validate(BRAIN_BREAKDOWN)


class FakeGemini:
    """Stands in for GeminiService; records calls, fails on demand."""

    def __init__(self):
        self.calls = []
        self.fail_evaluations = 0
        self.fail_first_question = False
        self.understanding = 10
        self.sections = [
            GeneratedSection(
                title="Cells Grow",
                transcript=TRANSCRIPT,
                imageDescriptions=["a growing cell", "a dividing cell"],
                imageCues=["the cell grows", "it divides"],
                emphasisWords=["cell"],
            ),
            GeneratedSection(
                title="Cells Copy",
                transcript="Each cell copies its instructions before it divides. That copy is called DNA replication.",
                imageDescriptions=["dna strand"],
                imageCues=["copies its instructions"],
                emphasisWords=["DNA"],
            ),
        ]

    def generate_overview(self, topic):
        self.calls.append(("overview", topic))
        return f"An overview of {topic}."

    def generate_sections(self, topic, context=""):
        self.calls.append(("sections", topic))
        return list(self.sections)

    def generate_quiz(self, title, transcript):
        self.calls.append(("quiz", title))
        return [question(0, "Q1?"), question(1, "Q2?")]

    def generate_sandbox(self, title, transcript):
        self.calls.append(("sandbox", title))
        return SandboxDefinition.model_validate(NEURON_SANDBOX)

    def generate_first_question(self, topic, lesson_content):
        self.calls.append(("first_question", topic))
        if self.fail_first_question:
            raise RuntimeError("evaluator down")
        return "What is a cell? Is it tiny?"

    def evaluate_explanation(self, topic, lesson_content, conversation, explanation):
        self.calls.append(("evaluate", explanation))
        if self.fail_evaluations > 0:
            self.fail_evaluations -= 1
            raise TimeoutError("evaluator timed out")
        return EvaluatorReply(understanding=self.understanding, reaction="surprised", response="Ohhh! Why?")

    def answer_question(self, lesson, position, message):
        self.calls.append(("chat", position, message))
        return f"About {lesson.sections[position].title}: it depends."


class FakeSpeech:
    """Deterministic narration: one word per 0.5s of transcript."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    def synthesize(self, text):
        self.calls += 1
        if self.fail:
            return SpeechResult()
        aligned = [
            WordAlignment(text=token, start=i * 0.5, end=(i + 1) * 0.5)
            for i, token in enumerate(text.split())
        ]
        return SpeechResult(audio_url="data:audio/mpeg;base64,AAAA", words=aligned)

    def synthesize_kid_voice(self, text):
        return "data:audio/mpeg;base64,BBBB"


class FakeImages:
    def resolve_many(self, descriptors):
        return [f"https://img.example/{i}.png" for i, _ in enumerate(descriptors)]
