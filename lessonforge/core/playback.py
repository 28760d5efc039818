"""Playback synchronization engine.

Derives the active word, sentence and image from the current narration
time. Word and image selection are pure functions of ``currentTime`` so
seeking needs no special handling; the manual image override is the only
state that depends on wall-clock time and it is read through an
injectable clock.
"""

import bisect
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from lessonforge.core.models import WordAlignment
from lessonforge.utils.timeparse import format_clock

logger = logging.getLogger(__name__)

_SENTENCE = re.compile(r"[^.!?]+[.!?]+")


def split_into_sentences(text: str) -> List[str]:
    """Split on terminal punctuation; text without any comes back whole."""
    sentences = [match.strip() for match in _SENTENCE.findall(text)]
    return sentences or [text]


def active_word_index(words: Sequence[WordAlignment], starts: Sequence[float], current_time: float) -> Optional[int]:
    """
    Index of the word whose [start, end) holds current_time.

    In a gap between words the latest word that has started stays active,
    which is the previously active word during normal playback. Before the
    first word nothing is active.
    """
    index = bisect.bisect_right(starts, current_time) - 1
    if index < 0:
        return None
    return index


def active_sentence_index(words: Sequence[WordAlignment], sentences: Sequence[str], word_index: int) -> Optional[int]:
    """
    First sentence whose cumulative character span reaches the active
    word's estimated character offset (words assumed single-space
    separated). None if the estimate runs past the last sentence.
    """
    word_char_pos = sum(len(w.text) + 1 for w in words[:word_index + 1])
    char_count = 0
    for index, sentence in enumerate(sentences):
        char_count += len(sentence)
        if word_char_pos <= char_count:
            return index
    return None


def target_image_index(timings: Sequence[float], current_time: float, image_count: int) -> int:
    """Greatest i with timings[i] <= current_time (0 if none), clamped to the image list."""
    target = 0
    for index, timing in enumerate(timings):
        if timing <= current_time:
            target = index
    return max(0, min(target, image_count - 1))


@dataclass
class PlaybackFrame:
    """What the client should present at one instant"""

    currentTime: float
    activeWordIndex: Optional[int]
    activeSentenceIndex: Optional[int]
    activeImageIndex: int
    manualOverrideActive: bool
    overrideRemaining: float
    fallback: bool
    ended: bool


class PlaybackEngine:
    """Per-section playback state; one instance per section view."""

    def __init__(
        self,
        transcript: str,
        words: Sequence[WordAlignment],
        image_timings: Sequence[float],
        image_count: int,
        override_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.transcript = transcript
        self.words = list(words)
        self.starts = [w.start for w in self.words]
        self.sentences = split_into_sentences(transcript)
        self.image_timings = list(image_timings)
        self.image_count = max(1, image_count)
        self.override_seconds = override_seconds
        self._clock = clock

        self.current_time = 0.0
        self.active_word: Optional[int] = None
        self.active_sentence: Optional[int] = None
        self.active_image = 0
        self.override_expiry: Optional[float] = None
        self.ended = False

        if any(b < a for a, b in zip(self.image_timings, self.image_timings[1:])):
            logger.warning("Image timings are not monotonic: %s", self.image_timings)

    @property
    def fallback(self) -> bool:
        """No alignment: static transcript, no highlighting, no auto image switching."""
        return not self.words

    def override_active(self) -> bool:
        if self.override_expiry is None:
            return False
        if self._clock() >= self.override_expiry:
            self.override_expiry = None
            return False
        return True

    def tick(self, current_time: float) -> PlaybackFrame:
        """Advance (or seek) to current_time and return the resulting frame."""
        self.current_time = max(0.0, float(current_time))
        self.ended = False
        if self.fallback:
            return self.frame()

        self.active_word = active_word_index(self.words, self.starts, self.current_time)
        if self.active_word is None:
            self.active_sentence = None
        else:
            sentence = active_sentence_index(self.words, self.sentences, self.active_word)
            if sentence is not None:
                self.active_sentence = sentence

        return self.frame()

    def _sync_image(self) -> None:
        """Automatic image selection, unless fallback or a manual override holds."""
        if self.fallback or self.override_active():
            return
        if not self.image_timings or self.image_count <= 1:
            return
        target = target_image_index(self.image_timings, self.current_time, self.image_count)
        if target != self.active_image:
            logger.debug(
                "Auto-switching to image %d at %s",
                target,
                format_clock(self.current_time),
            )
            self.active_image = target

    def select_image(self, index: int) -> PlaybackFrame:
        """
        Manual image change. Starts (or restarts) the override window; an
        out-of-range index or the image already shown is a no-op.
        """
        self._sync_image()
        if index < 0 or index >= self.image_count or index == self.active_image:
            return self.frame()
        self.active_image = index
        self.override_expiry = self._clock() + self.override_seconds
        return self.frame()

    def finish(self) -> PlaybackFrame:
        """Narration reached its end."""
        self.ended = True
        self.active_word = None
        return self.frame()

    def frame(self) -> PlaybackFrame:
        self._sync_image()
        active = self.override_active()
        remaining = max(0.0, self.override_expiry - self._clock()) if active else 0.0
        return PlaybackFrame(
            currentTime=self.current_time,
            activeWordIndex=None if self.fallback else self.active_word,
            activeSentenceIndex=None if self.fallback else self.active_sentence,
            activeImageIndex=self.active_image,
            manualOverrideActive=active,
            overrideRemaining=remaining,
            fallback=self.fallback,
            ended=self.ended,
        )
