"""Image resolution via SerpAPI Google Images, with fallback URLs."""

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence
from urllib.parse import quote

import httpx

from lessonforge.config import settings

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search.json"


def fallback_image_url(descriptor: str) -> str:
    seed = uuid.uuid4().hex[:6]
    return f"https://source.unsplash.com/800x600/?{quote(descriptor)}&sig={seed}"


class ImageService:
    """Resolve text descriptors to displayable image URLs. Never returns nothing."""

    def __init__(self, api_key: Optional[str] = None, http_client: Optional[httpx.Client] = None):
        self.api_key = api_key or settings.SERPAPI_KEY
        if not self.api_key:
            logger.warning("SERPAPI_KEY is not set; using fallback images.")
        self._http = http_client

    @property
    def http(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(timeout=float(settings.GENERATION_TIMEOUT_SECONDS))
        return self._http

    def resolve(self, descriptor: str) -> str:
        """One URL for the descriptor; a fallback URL on any failure."""
        if not self.api_key:
            return fallback_image_url(descriptor)
        try:
            response = self.http.get(
                SERPAPI_URL,
                params={
                    "engine": "google_images",
                    "q": descriptor,
                    "num": 1,
                    "api_key": self.api_key,
                },
            )
            response.raise_for_status()
            for result in response.json().get("images_results") or []:
                url = result.get("original") or result.get("thumbnail")
                if url:
                    return url
            logger.warning("No image results for %r", descriptor)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("SerpAPI image search failed for %r: %s", descriptor, e)
        return fallback_image_url(descriptor)

    def resolve_many(self, descriptors: Sequence[str]) -> List[str]:
        """Resolve descriptors in parallel, preserving order."""
        if not descriptors:
            return []
        workers = max(1, min(settings.IMAGE_RESOLVER_WORKERS, len(descriptors)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            urls = list(pool.map(self.resolve, descriptors))
        return [url or settings.FALLBACK_IMAGE_URL for url in urls]
