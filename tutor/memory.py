from __future__ import annotations

from cachetools import TTLCache

from tutor.session import TutorSession


class SessionStore:
    def __init__(self, *, maxsize: int = 10_000, ttl_seconds: int = 60 * 60) -> None:
        self._cache: TTLCache[str, TutorSession] = TTLCache(maxsize=maxsize, ttl=ttl_seconds)

    def get_or_create(self, session_id: str) -> TutorSession:
        session = self._cache.get(session_id)
        if session is None:
            session = TutorSession(session_id)
        # Re-assigning refreshes the TTL on every access.
        self._cache[session_id] = session
        return session

    def drop(self, session_id: str) -> None:
        self._cache.pop(session_id, None)
