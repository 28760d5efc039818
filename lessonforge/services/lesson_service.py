"""Lesson orchestration: overview -> sections -> images."""

import logging
import uuid
from typing import List

from lessonforge.config import settings
from lessonforge.core.models import GeneratedSection, Lesson, Section
from lessonforge.services.gemini_service import GeminiService
from lessonforge.services.image_service import ImageService

logger = logging.getLogger(__name__)


def distribute_images(sections: List[GeneratedSection], urls: List[str]) -> List[List[str]]:
    """Hand the flat list of resolved URLs back to sections in order."""
    per_section = []
    index = 0
    for section in sections:
        count = len(section.imageDescriptions)
        chunk = [url for url in urls[index:index + count] if url]
        index += count
        per_section.append(chunk or [settings.FALLBACK_IMAGE_URL])
    return per_section


class LessonService:
    """Builds a complete Lesson for a topic from the content and image collaborators."""

    def __init__(self, gemini: GeminiService, images: ImageService):
        self.gemini = gemini
        self.images = images

    def build_lesson(self, topic: str) -> Lesson:
        """
        Generate a lesson. Raises ValueError when the generator returns no
        usable sections.
        """
        lesson_id = uuid.uuid4().hex
        logger.info("Building lesson %s on %r", lesson_id, topic)

        # Step 1: overview
        context = self.gemini.generate_overview(topic)

        # Step 2: structured sections
        generated = self.gemini.generate_sections(topic, context)
        if not generated:
            raise ValueError("No lesson sections generated")

        # Step 3: images for all sections at once
        descriptors = [d for s in generated for d in s.imageDescriptions]
        urls = self.images.resolve_many(descriptors)
        images = distribute_images(generated, urls)

        sections = [
            Section(
                id=idx + 1,
                title=g.title,
                transcript=g.transcript,
                imageUrls=images[idx],
                imageDescriptions=g.imageDescriptions,
                imageCues=g.imageCues,
                emphasisWords=g.emphasisWords,
            )
            for idx, g in enumerate(generated)
        ]
        logger.info("Lesson %s ready: %d sections, %d images", lesson_id, len(sections), len(urls))
        return Lesson(id=lesson_id, topic=topic, sections=sections)
