"""In-memory lesson and session storage (process lifetime only)"""

import logging
import threading
import uuid
from collections import OrderedDict
from typing import Any, Dict, Optional

from lessonforge.core.models import Lesson
from lessonforge.core.quiz import LessonProgress

logger = logging.getLogger(__name__)


class LessonStore:
    """Generated lessons by id, with their quiz progress."""

    def __init__(self):
        self._lessons: Dict[str, Lesson] = {}
        self._progress: Dict[str, LessonProgress] = {}

    def add(self, lesson: Lesson) -> None:
        self._lessons[lesson.id] = lesson
        self._progress[lesson.id] = LessonProgress(section_count=len(lesson.sections))

    def get(self, lesson_id: str) -> Optional[Lesson]:
        return self._lessons.get(lesson_id)

    def progress(self, lesson_id: str) -> Optional[LessonProgress]:
        return self._progress.get(lesson_id)

    def __len__(self) -> int:
        return len(self._lessons)


class SessionRegistry:
    """
    Live playback / quiz / sandbox / challenge sessions by generated id.

    A session added under an `owner` key replaces the previous session of
    that owner. Past `max_sessions` the oldest sessions are dropped.
    """

    def __init__(self, max_sessions: int = 500):
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, Any]" = OrderedDict()
        self._owners: Dict[str, str] = {}
        self._lock = threading.Lock()

    def add(self, session: Any, owner: Optional[str] = None) -> str:
        session_id = uuid.uuid4().hex
        with self._lock:
            if owner is not None:
                previous = self._owners.pop(owner, None)
                if previous is not None and self._sessions.pop(previous, None) is not None:
                    logger.debug("Replaced session %s of %s", previous, owner)
                self._owners[owner] = session_id
            self._sessions[session_id] = session
            while len(self._sessions) > self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                self._owners = {o: sid for o, sid in self._owners.items() if sid != evicted}
                logger.debug("Evicted session %s", evicted)
        return session_id

    def get(self, session_id: str, kind: type) -> Optional[Any]:
        session = self._sessions.get(session_id)
        if isinstance(session, kind):
            return session
        return None

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
