"""FastAPI application entry point"""

import logging
import time
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lessonforge.config import settings
from lessonforge.core.cache import ResponseCache
from lessonforge.core.store import LessonStore, SessionRegistry
from lessonforge.api.routes import challenge, lessons, playback, quiz, sandbox

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the application with fresh stores and caches."""
    app = FastAPI(
        title="LessonForge",
        description="Narrated, illustrated lessons with quizzes, a sandbox and a teach-it-back challenge",
        version="0.1.0"
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Process-lifetime state
    app.state.lessons = LessonStore()
    app.state.sessions = SessionRegistry(settings.SESSION_LIMIT)
    app.state.audio_cache = ResponseCache("audio", settings.CACHE_KEY_PREFIX_CHARS, settings.CACHE_MAX_ENTRIES)
    app.state.quiz_cache = ResponseCache("quiz", settings.CACHE_KEY_PREFIX_CHARS, settings.CACHE_MAX_ENTRIES)
    app.state.sandbox_cache = ResponseCache("sandbox", settings.CACHE_KEY_PREFIX_CHARS, settings.CACHE_MAX_ENTRIES)
    app.state.clock = time.monotonic
    app.state.gemini = None
    app.state.speech = None
    app.state.images = None

    # Include routers
    app.include_router(lessons.router)
    app.include_router(playback.router)
    app.include_router(quiz.router)
    app.include_router(sandbox.router)
    app.include_router(challenge.router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "LessonForge API",
            "version": "0.1.0",
            "docs": "/docs"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy"}

    logger.info("Application created")
    return app


app = create_app()
