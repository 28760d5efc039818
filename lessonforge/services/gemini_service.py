"""Service for Google Gemini API operations (google-genai SDK)."""

import logging
import json
import re
from typing import Any, Dict, List, Optional, Sequence

from google import genai
from google.genai import types
from pydantic import ValidationError

from lessonforge.config import settings
from lessonforge.core.challenge import Turn
from lessonforge.core.models import (
    EvaluatorReply,
    GeneratedSection,
    Lesson,
    QuizQuestion,
    SandboxDefinition,
    Speaker,
)

logger = logging.getLogger(__name__)

QUIZ_QUESTION_COUNT = 4
DEFAULT_CHAT_REPLY = "Sorry, I could not generate a response."


def clean_json_text(response_text: str) -> str:
    """Strip markdown code fences the model sometimes wraps JSON in."""
    text = (response_text or "").strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_json_response(response_text: str) -> Dict[str, Any]:
    text = clean_json_text(response_text)
    if not text:
        raise ValueError("Empty response from Gemini")
    try:
        result = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("Error parsing Gemini JSON response: %s", e)
        logger.error("Response text: %s", text[:500])
        raise ValueError(f"Invalid JSON response from Gemini: {e}") from e
    if not isinstance(result, dict):
        raise ValueError("Gemini response is not a JSON object")
    return result


def validate_sections(raw_sections: Any) -> List[GeneratedSection]:
    """Keep the well-formed sections, drop (and log) the rest."""
    if not isinstance(raw_sections, list):
        return []
    sections = []
    for idx, raw in enumerate(raw_sections):
        try:
            sections.append(GeneratedSection.model_validate(raw))
        except ValidationError as e:
            logger.warning("Skipping malformed section %d: %s", idx, e.errors()[:1])
    return sections


def validate_questions(raw_questions: Any) -> List[QuizQuestion]:
    if not isinstance(raw_questions, list):
        return []
    questions = []
    for idx, raw in enumerate(raw_questions):
        try:
            questions.append(QuizQuestion.model_validate(raw))
        except ValidationError as e:
            logger.warning("Skipping malformed quiz question %d: %s", idx, e.errors()[:1])
    return questions


_UNDERSTANDING = re.compile(r"UNDERSTANDING:\s*(\d+)", re.IGNORECASE)
_REACTION = re.compile(r"REACTION:\s*(\w+)", re.IGNORECASE)
_RESPONSE = re.compile(r"RESPONSE:\s*([\s\S]+)")


def parse_evaluator_reply(response_text: str) -> EvaluatorReply:
    """
    Parse the evaluator's line format:

        UNDERSTANDING: [0-10]
        REACTION: [confused/surprised/skeptical/understanding]
        RESPONSE: [the kid's next utterance]

    Missing or invalid parts fall back to EvaluatorReply defaults.
    """
    text = (response_text or "").strip()
    fields: Dict[str, Any] = {}
    understanding = _UNDERSTANDING.search(text)
    if understanding:
        fields["understanding"] = understanding.group(1)
    reaction = _REACTION.search(text)
    if reaction:
        fields["reaction"] = reaction.group(1)
    response = _RESPONSE.search(text)
    if response:
        fields["response"] = response.group(1)
    return EvaluatorReply.model_validate(fields)


class GeminiService:
    """Service for Google Gemini API (google-genai SDK)."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        if not self.api_key:
            logger.warning("GEMINI_API_KEY is not set; generation requests will fail.")
        self._client: Optional[genai.Client] = None

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("GEMINI_API_KEY is not configured in settings.")
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=settings.GENERATION_TIMEOUT_SECONDS * 1000),
            )
        return self._client

    def _generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        json_output: bool = False,
        max_output_tokens: Optional[int] = None,
        disable_thinking: bool = False,
        system_instruction: Optional[str] = None,
    ) -> str:
        config = types.GenerateContentConfig(
            temperature=temperature,
            response_mime_type="application/json" if json_output else None,
            max_output_tokens=max_output_tokens,
            thinking_config=types.ThinkingConfig(thinking_budget=0) if disable_thinking else None,
            system_instruction=system_instruction,
        )
        response = self.client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=config,
        )
        return (response.text or "").strip()

    def generate_overview(self, topic: str) -> str:
        """Write the ~600 word overview the sections are derived from."""
        prompt = f"""Write a comprehensive, engaging 600-word overview of "{topic}" that will be used to create an interactive lesson.

Focus on:
- Key concepts explained with analogies
- Why this topic matters (real-world relevance)
- Historical context or origin story
- Common misconceptions
- Interesting facts that hook attention

Write in an engaging, conversational tone. Avoid dry academic language."""
        logger.info("Calling Gemini for overview of %r", topic)
        return self._generate(prompt, temperature=0.8, max_output_tokens=1000)

    def generate_sections(self, topic: str, context: str = "") -> List[GeneratedSection]:
        """
        Generate 6-8 lesson sections.

        Returns the sections that pass validation, possibly none.
        """
        context_block = f"\nBased on this content:\n{context}\n" if context else ""
        prompt = f"""You are an engaging, personable teacher having a real conversation with a student about "{topic}". Your job is to teach clearly and make it stick.
{context_block}
Create 6-8 learning milestones.

RULES:
- Start with the clearest, most direct definition or explanation possible
- Only use analogies if they genuinely help
- Talk TO the student, like a real conversation, not a scripted lecture
- After complex explanations, add a super simple version ("In other words...", "Basically...")
- NO markdown formatting, no em-dashes
- Build concepts progressively, don't assume prior knowledge

Structure each milestone:
1. Punchy title (5-8 words)
2. 250-350 word transcript
3. 2-4 specific image descriptions for visualization
4. For each image, a SHORT text snippet copied word for word from the transcript that marks when to show it
5. 3-5 key terms to emphasize

Return ONLY valid JSON:
{{
  "milestones": [
    {{
      "title": "What Exactly Is a Neuron?",
      "transcript": "A neuron is a specialized cell that sends signals through your body. Simple as that. But here's why that matters...",
      "imageDescriptions": ["detailed scientific visualization of a neuron structure", "diagram showing signal transmission between neurons"],
      "imageCues": ["specialized cell", "why that matters"],
      "emphasisWords": ["neuron", "signals", "cell"]
    }}
  ]
}}"""
        logger.info("Calling Gemini for lesson structure of %r", topic)
        result = parse_json_response(self._generate(prompt, temperature=0.7, json_output=True))
        sections = validate_sections(result.get("milestones", []))
        logger.info("Generated %d lesson sections", len(sections))
        return sections

    def generate_quiz(self, title: str, transcript: str) -> List[QuizQuestion]:
        """Generate multiple-choice questions; raises ValueError if none are usable."""
        prompt = f"""You are a quiz generator for an educational platform. Based on the following lesson content, generate {QUIZ_QUESTION_COUNT} multiple-choice questions to test comprehension.

Lesson Title: {title}
Lesson Content: {transcript}

RULES:
1. Questions must directly test the key facts and concepts explained in the lesson
2. Ask about WHAT was taught, not HOW it was taught (no questions about analogies or the teacher)
3. Each question has exactly 4 plausible options and only ONE is correct
4. Test understanding, not word-for-word recall
5. Explanations state directly why the answer is correct, without "the lesson says"

Return ONLY valid JSON in this exact format:
{{
  "questions": [
    {{
      "question": "Clear, direct question about lesson content?",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctIndex": 0,
      "explanation": "Natural, direct explanation"
    }}
  ]
}}"""
        logger.info("Calling Gemini for quiz on %r", title)
        result = parse_json_response(
            self._generate(prompt, temperature=0.7, json_output=True, disable_thinking=True)
        )
        questions = validate_questions(result.get("questions"))
        if not questions:
            raise ValueError("No valid quiz questions generated")
        return questions

    def generate_sandbox(self, title: str, transcript: str) -> SandboxDefinition:
        """Generate a build or breakdown sandbox; raises ValueError on an invalid shape."""
        prompt = f"""You are an interactive learning designer for kids. Create a hands-on drag-and-drop LEARNING ACTIVITY (NOT a quiz) that helps students understand this concept through experimentation.

Topic: {title}
Content: {transcript}

Choose BUILD mode if the topic has clear COMPONENTS that combine (anatomy, chemistry, grammar...).
Choose BREAKDOWN mode if the topic is about UNDERSTANDING STRUCTURE (systems, hierarchies, processes).

For BUILD mode:
- 3-6 concrete, visual starting pieces
- MULTIPLE valid combinations; if two pieces logically interact, create a combination for them
- Progressive combinations: simple pairs, then larger assemblies (results may be used in later combinations)
- Result descriptions teach a fact

For BREAKDOWN mode:
- ONE complete target piece
- 2-4 levels that progressively reveal details, like zooming in

Return ONLY valid JSON.

BUILD:
{{
  "type": "drag-drop",
  "mode": "build",
  "title": "Build Neural Components!",
  "description": "Explore how neuron parts work together!",
  "startingPieces": [
    {{"id": "dendrite", "label": "Dendrites", "emoji": "🌿", "color": "#22c55e", "description": "Receives signals"}},
    {{"id": "soma", "label": "Cell Body", "emoji": "⭐", "color": "#3b82f6", "description": "Brain of the cell"}}
  ],
  "combinations": [
    {{
      "pieces": ["dendrite", "soma"],
      "result": {{"id": "receiving", "label": "Receiving Unit", "emoji": "📥", "color": "#10b981", "description": "Input side of neuron"}},
      "explanation": "Dendrites connect to the cell body to receive incoming signals!"
    }}
  ],
  "kidFriendlyExplanation": "Simple explanation of what they're learning",
  "celebrationMessage": "Great exploration!"
}}

BREAKDOWN:
{{
  "type": "drag-drop",
  "mode": "breakdown",
  "title": "Explore the Brain!",
  "description": "Click to break it down and see what's inside!",
  "targetPiece": {{"id": "whole", "label": "Brain", "emoji": "🧠", "color": "#8b5cf6", "description": "The whole system"}},
  "breakdownLevels": [
    [{{"id": "level1-1", "label": "Major Part 1", "emoji": "🎯", "color": "#3b82f6", "description": "First major component"}}],
    [{{"id": "level2-1", "label": "Detail 1", "emoji": "🔬", "color": "#f59e0b", "description": "Smaller piece"}}]
  ],
  "kidFriendlyExplanation": "Simple explanation",
  "celebrationMessage": "You explored it all!"
}}"""
        logger.info("Calling Gemini for sandbox on %r", title)
        result = parse_json_response(self._generate(prompt, temperature=0.7, json_output=True))
        try:
            return SandboxDefinition.model_validate(result)
        except ValidationError as e:
            logger.error("Invalid sandbox structure: %s", e.errors()[:3])
            raise ValueError("Invalid sandbox structure received from Gemini") from e

    def generate_first_question(self, topic: str, lesson_content: str) -> str:
        """The kid's opening "What is..." question."""
        prompt = f"""You are a curious, intelligent 5-year-old child who wants to learn about "{topic}".

The lesson content is:
{lesson_content}

Ask the very first "What is..." question about this topic. Speak like a real 5-year-old: simple words, natural speech, enthusiasm.

Examples:
- "What is a neuron? Like, what does it do?"
- "What's an action potential? Is it like electricity?"

Generate ONE question. Just the question, nothing else."""
        logger.info("Calling Gemini for first challenge question on %r", topic)
        return self._generate(prompt, temperature=0.8).replace('"', "")

    def evaluate_explanation(
        self,
        topic: str,
        lesson_content: str,
        conversation: Sequence[Turn],
        explanation: str,
    ) -> EvaluatorReply:
        """Score a teacher explanation and produce the kid's follow-up."""
        conversation_text = "\n".join(
            f"{'Kid' if turn.speaker == Speaker.KID else 'Teacher'}: {turn.text}"
            for turn in conversation
        )
        prompt = f"""You are a curious, intelligent 5-year-old child learning about "{topic}".

Lesson content (for your reference):
{lesson_content}

Conversation so far:
{conversation_text}

The teacher just explained: "{explanation}"

Your job:
1. Evaluate how well the teacher explained things (0-10 scale)
2. Find any ambiguity, gaps, or confusing parts in their explanation
3. Ask a follow-up question that probes a gap, asks "why", or asks what happens next

Speak like a real 5-year-old: simple words, genuine curiosity, emotion ("Ohhh!", "Wait, but...").

If the explanation was EXCELLENT (9-10) and you truly understand, express joy and understanding.
If it was okay but has gaps (5-8), ask a probing follow-up.
If it was confusing (0-4), express confusion and ask for a simpler explanation.

Response format:
UNDERSTANDING: [0-10]
REACTION: [confused/surprised/skeptical/understanding]
RESPONSE: [your question or statement as the kid]"""
        logger.info("Calling Gemini to evaluate explanation on %r", topic)
        return parse_evaluator_reply(self._generate(prompt, temperature=0.8))

    def answer_question(self, lesson: Lesson, position: int, message: str) -> str:
        """Short answer to a student question with the whole lesson as context."""
        milestones = "\n\n".join(
            f"{i + 1}. {s.title}\n{s.transcript}" for i, s in enumerate(lesson.sections)
        )
        current = lesson.sections[position]
        system_prompt = f"""You are a helpful teaching assistant. The student is currently learning about "{lesson.topic}".

Here are the lesson milestones:
{milestones}

The student is currently on milestone {position + 1}: {current.title}

Answer the student's question clearly and helpfully. Keep it concise (2-3 sentences max)."""
        logger.info("Calling Gemini for chat reply on lesson %s", lesson.id)
        reply = self._generate(
            message,
            temperature=0.7,
            max_output_tokens=200,
            system_instruction=system_prompt,
        )
        return reply or DEFAULT_CHAT_REPLY
