"""Tests for lesson assembly, image resolution, sentence timelines and stores."""

import httpx
import pytest

from lessonforge.config import settings
from lessonforge.core.cache import ResponseCache
from lessonforge.core.models import GeneratedSection
from lessonforge.core.quiz import QuizSession
from lessonforge.core.store import LessonStore, SessionRegistry
from lessonforge.services.image_service import ImageService
from lessonforge.services.lesson_service import LessonService, distribute_images
from lessonforge.services.transcript_service import words_to_sentences
from tests.conftest import FakeGemini, FakeImages, words


def serpapi(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestLessonService:
    def test_builds_sections_in_order(self):
        gemini = FakeGemini()
        lesson = LessonService(gemini, FakeImages()).build_lesson("cells")

        assert lesson.topic == "cells"
        assert [s.id for s in lesson.sections] == [1, 2]
        assert lesson.sections[0].imageUrls == ["https://img.example/0.png", "https://img.example/1.png"]
        assert lesson.sections[1].imageUrls == ["https://img.example/2.png"]
        assert [c[0] for c in gemini.calls] == ["overview", "sections"]

    def test_no_sections_raises(self):
        gemini = FakeGemini()
        gemini.sections = []
        with pytest.raises(ValueError):
            LessonService(gemini, FakeImages()).build_lesson("cells")

    def test_section_without_images_gets_fallback(self):
        sections = [
            GeneratedSection(title="A", transcript="a", imageDescriptions=["x"]),
            GeneratedSection(title="B", transcript="b"),
        ]
        assert distribute_images(sections, ["u0"]) == [["u0"], [settings.FALLBACK_IMAGE_URL]]


class TestImageService:
    def test_prefers_original(self):
        def handler(request):
            assert request.url.params["engine"] == "google_images"
            return httpx.Response(200, json={"images_results": [{"original": "https://o.png", "thumbnail": "https://t.png"}]})

        service = ImageService(api_key="key", http_client=serpapi(handler))
        assert service.resolve("a cell") == "https://o.png"

    def test_error_uses_fallback(self):
        service = ImageService(api_key="key", http_client=serpapi(lambda request: httpx.Response(500)))
        assert "a%20cell" in service.resolve("a cell")

    def test_no_results_uses_fallback(self):
        service = ImageService(api_key="key", http_client=serpapi(lambda request: httpx.Response(200, json={})))
        assert service.resolve("dna").startswith("https://source.unsplash.com/")

    def test_resolve_many_preserves_order(self):
        def handler(request):
            return httpx.Response(200, json={"images_results": [{"original": f"https://{request.url.params['q']}.png"}]})

        service = ImageService(api_key="key", http_client=serpapi(handler))
        assert service.resolve_many(["a", "b", "c"]) == ["https://a.png", "https://b.png", "https://c.png"]


class TestSentenceTimeline:
    def test_groups_on_terminal_punctuation(self):
        spans = words_to_sentences(words(
            ("The", 0.0, 0.2), ("cell", 0.2, 0.5), ("grows.", 0.5, 1.0), ("It", 1.2, 1.4), ("divides", 1.4, 2.0),
        ))
        assert [s.text for s in spans] == ["The cell grows.", "It divides"]
        assert (spans[0].start, spans[0].end) == (0.0, 1.0)
        assert (spans[1].start, spans[1].end) == (1.2, 2.0)

    def test_empty(self):
        assert words_to_sentences([]) == []


class TestStores:
    def test_cache_key_uses_transcript_prefix(self):
        cache = ResponseCache("quiz", prefix_chars=5)
        key = cache.make_key("l1-1", "abcdefgh")
        assert key == "l1-1-abcde"
        cache.set(key, [1])
        assert key in cache
        assert cache.get(key) == [1]
        cache.clear()
        assert len(cache) == 0

    def test_lesson_store_tracks_progress(self):
        store = LessonStore()
        lesson = LessonService(FakeGemini(), FakeImages()).build_lesson("cells")
        store.add(lesson)
        assert store.get(lesson.id) is lesson
        assert store.progress(lesson.id).section_count == 2
        assert store.get("missing") is None

    def test_cache_evicts_least_recently_used(self):
        cache = ResponseCache("audio", max_entries=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    def test_registry_replaces_session_of_same_owner(self):
        sessions = SessionRegistry()
        first = sessions.add(QuizSession(), owner="playback-l1-1")
        second = sessions.add(QuizSession(), owner="playback-l1-1")
        other = sessions.add(QuizSession(), owner="playback-l1-2")
        assert first not in sessions
        assert second in sessions
        assert other in sessions
        assert len(sessions) == 2

    def test_registry_drops_oldest_past_limit(self):
        sessions = SessionRegistry(max_sessions=3)
        ids = [sessions.add(QuizSession()) for _ in range(5)]
        assert len(sessions) == 3
        assert [i in sessions for i in ids] == [False, False, True, True, True]

    def test_registry_checks_session_kind(self):
        sessions = SessionRegistry()
        session_id = sessions.add(QuizSession())
        assert isinstance(sessions.get(session_id, QuizSession), QuizSession)
        assert sessions.get(session_id, dict) is None
