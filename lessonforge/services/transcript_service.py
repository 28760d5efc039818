"""Service for converting aligned words to a sentence timeline"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

from lessonforge.core.models import WordAlignment

logger = logging.getLogger(__name__)


@dataclass
class SentenceSpan:
    start: float
    end: float
    text: str


def words_to_sentences(words: Sequence[WordAlignment]) -> List[SentenceSpan]:
    """
    Group aligned words into timed sentences.

    Simple rule-based segmentation: a sentence ends on a word ending in
    terminal punctuation (. ! ?). Trailing words without one form a final
    sentence.
    """
    if not words:
        return []

    sentences = []
    current: List[WordAlignment] = []

    for word in words:
        current.append(word)
        text = word.text.strip()
        if text and text[-1] in ".!?":
            sentences.append(_span(current))
            current = []

    if current:
        sentences.append(_span(current))

    logger.info("Converted %d words to %d sentences", len(words), len(sentences))
    return sentences


def _span(words: List[WordAlignment]) -> SentenceSpan:
    return SentenceSpan(
        start=words[0].start,
        end=words[-1].end,
        text=" ".join(w.text.strip() for w in words),
    )
