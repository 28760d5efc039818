"""Deepgram speech service: Aura TTS for narration, Nova transcription for word alignment."""

import base64
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from deepgram import DeepgramClient, PrerecordedOptions, SpeakOptions

from lessonforge.config import settings
from lessonforge.core.models import WordAlignment
from lessonforge.utils.timeparse import to_seconds

logger = logging.getLogger(__name__)


@dataclass
class SpeechResult:
    """Playable narration plus its word alignment; empty on failure."""

    audio_url: str = ""
    words: List[WordAlignment] = field(default_factory=list)


def to_data_url(audio: bytes, mime_type: str = "audio/mpeg") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(audio).decode('ascii')}"



_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def chunk_text(text: str, limit: int) -> List[str]:
    """
    Split text into pieces of at most `limit` characters for the TTS
    request limit. Breaks fall on sentence boundaries where possible, then
    on spaces; nothing is dropped.
    """
    text = (text or "").strip()
    if not text:
        return []
    if len(text) <= limit:
        return [text]

    pieces: List[str] = []
    for sentence in _SENTENCE_BREAK.split(text):
        if len(sentence) <= limit:
            pieces.append(sentence)
            continue
        current = ""
        for word in sentence.split():
            while len(word) > limit:
                pieces.append(word[:limit])
                word = word[limit:]
            if current and len(current) + 1 + len(word) > limit:
                pieces.append(current)
                current = word
            else:
                current = f"{current} {word}" if current else word
        if current:
            pieces.append(current)

    chunks: List[str] = []
    for piece in pieces:
        if chunks and len(chunks[-1]) + 1 + len(piece) <= limit:
            chunks[-1] = f"{chunks[-1]} {piece}"
        else:
            chunks.append(piece)
    return chunks


def audio_duration(data: Dict[str, Any], words: Sequence[WordAlignment]) -> float:
    """Length of the transcribed audio, or the last word's end if unreported."""
    metadata = data.get("metadata") or {}
    try:
        duration = to_seconds(metadata.get("duration"))
    except ValueError:
        duration = 0.0
    return max(duration, words[-1].end if words else 0.0)


def shift_words(words: Sequence[WordAlignment], offset: float, after: float = 0.0) -> List[WordAlignment]:
    """Move a piece's alignment to start at `offset`, dropping words before `after`."""
    shifted = []
    for w in words:
        start = w.start + offset
        if start < after:
            continue
        shifted.append(WordAlignment(text=w.text, start=start, end=w.end + offset))
        after = shifted[-1].end
    return shifted


def words_from_response(data: Dict[str, Any]) -> List[WordAlignment]:
    """
    Extract aligned words from a Deepgram prerecorded response dict.

    Words without a usable interval, or that start before the previous
    word ended, are dropped so the result is ordered and non-overlapping.
    """
    results = data.get("results") or {}
    channels = results.get("channels") or []
    if not channels:
        logger.warning("Deepgram returned no channels")
        return []
    alts = channels[0].get("alternatives") or []
    if not alts:
        logger.warning("Deepgram returned no alternatives")
        return []

    words: List[WordAlignment] = []
    dropped = 0
    for w in alts[0].get("words") or []:
        text = w.get("punctuated_word") or w.get("word") or ""
        try:
            start = to_seconds(w.get("start"))
            end = to_seconds(w.get("end"))
        except ValueError:
            dropped += 1
            continue
        if not text or start >= end or (words and start < words[-1].end):
            dropped += 1
            continue
        words.append(WordAlignment(text=text, start=start, end=end))
    if dropped:
        logger.warning("Dropped %d unusable alignment words", dropped)
    return words


class SpeechService:
    """Text-to-speech with forced alignment via Deepgram."""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or settings.DEEPGRAM_API_KEY
        if not self.api_key:
            logger.warning("DEEPGRAM_API_KEY is not set; narration will fall back to static text.")
        self._client: Optional[DeepgramClient] = None

    @property
    def client(self) -> DeepgramClient:
        if self._client is None:
            self._client = DeepgramClient(self.api_key)
        return self._client

    @property
    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(float(settings.GENERATION_TIMEOUT_SECONDS), connect=10.0)

    def _speak(self, text: str, model: str) -> bytes:
        if not self.api_key:
            raise RuntimeError("DEEPGRAM_API_KEY is not configured in settings.")
        logger.info("TTS (Deepgram %s): %d chars", model, len(text))
        response = self.client.speak.rest.v("1").stream_memory(
            {"text": text},
            SpeakOptions(model=model),
            timeout=self._timeout,
        )
        return response.stream_memory.getvalue()

    def _align(self, audio: bytes) -> Tuple[List[WordAlignment], float]:
        logger.info("Alignment (Deepgram %s): %d bytes", settings.DEEPGRAM_STT_MODEL, len(audio))
        options = PrerecordedOptions(
            model=settings.DEEPGRAM_STT_MODEL,
            language="en",
            smart_format=True,
            punctuate=True,
        )
        response = self.client.listen.rest.v("1").transcribe_file(
            {"buffer": audio},
            options,
            timeout=self._timeout,
        )

        # SDK may return dict or object
        if hasattr(response, "to_dict"):
            data = response.to_dict()
        elif isinstance(response, dict):
            data = response
        else:
            data = getattr(response, "__dict__", {}) or {}
        words = words_from_response(data)
        return words, audio_duration(data, words)

    def synthesize(self, text: str) -> SpeechResult:
        """
        Narrate text and align it word by word.

        Never raises: any failure yields an empty SpeechResult, which the
        playback engine treats as the static-transcript fallback.
        """
        chunks = chunk_text(text, settings.DEEPGRAM_TTS_MAX_CHARS)
        if not chunks:
            return SpeechResult()
        if len(chunks) > 1:
            logger.info("Narration split into %d TTS requests", len(chunks))

        audio_parts: List[bytes] = []
        words: List[WordAlignment] = []
        offset = 0.0
        try:
            for chunk in chunks:
                audio = self._speak(chunk, settings.DEEPGRAM_TTS_MODEL)
                chunk_words, duration = self._align(audio)
                words.extend(shift_words(chunk_words, offset, words[-1].end if words else 0.0))
                offset += duration
                audio_parts.append(audio)
        except Exception as e:
            logger.error("Audio generation failed: %s", e)
            return SpeechResult()
        logger.info("Narration ready: %d aligned words, %.1fs", len(words), offset)
        # MP3 frames are self-delimiting, so the pieces play back to back
        return SpeechResult(audio_url=to_data_url(b"".join(audio_parts)), words=words)

    def synthesize_kid_voice(self, text: str) -> str:
        """Voice a kid utterance; empty string on failure."""
        try:
            return to_data_url(self._speak(text, settings.DEEPGRAM_KID_TTS_MODEL))
        except Exception as e:
            logger.error("Kid voice generation failed: %s", e)
            return ""
