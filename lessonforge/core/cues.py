"""Cue-to-timestamp resolution for section images"""

import logging
import re
from typing import List, Sequence

from lessonforge.core.models import WordAlignment

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_token(word: str) -> str:
    """Lowercase a word and strip its punctuation ("Cell," -> "cell")."""
    return _PUNCTUATION.sub("", word.lower()).strip()


def tokenize(text: str) -> List[str]:
    tokens = (normalize_token(part) for part in text.split())
    return [token for token in tokens if token]


def narration_duration(words: Sequence[WordAlignment]) -> float:
    return words[-1].end if words else 0.0


def find_cue_start(cue: str, words: Sequence[WordAlignment]):
    """
    Return the start time of the first occurrence of the cue's tokens in
    the alignment, or None when the cue does not appear verbatim.

    Alignment entries that normalize to nothing (a lone dash, say) are
    skipped so they do not break a match.
    """
    cue_tokens = tokenize(cue)
    if not cue_tokens:
        return None

    indexed = [(i, normalize_token(w.text)) for i, w in enumerate(words)]
    indexed = [(i, token) for i, token in indexed if token]
    tokens = [token for _, token in indexed]

    width = len(cue_tokens)
    for offset in range(len(tokens) - width + 1):
        if tokens[offset:offset + width] == cue_tokens:
            first_word = indexed[offset][0]
            return words[first_word].start
    return None


def resolve_image_timings(cues: Sequence[str], words: Sequence[WordAlignment]) -> List[float]:
    """
    Map each image cue to the playback time its image becomes active.

    A cue that matches the alignment gets the start of its first matched
    word. A cue that does not match gets the proportional slot
    (duration / number of cues) * cue index. Timings are returned in cue
    order and are not reordered; see PlaybackEngine for how out-of-order
    timings are treated.
    """
    if not cues:
        return []

    duration = narration_duration(words)
    slot = duration / len(cues)
    timings = []
    for index, cue in enumerate(cues):
        start = find_cue_start(cue, words)
        if start is None:
            start = slot * index
            logger.debug("Cue %d (%r) not found in alignment, using %.2fs", index, cue, start)
        timings.append(start)
    return timings
