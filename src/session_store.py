import contextlib
import copy
import logging
import threading
import time
from typing import Callable, Dict, Iterator, List, Optional, Protocol

from src import config
from src.session_data import SessionData

logger = logging.getLogger(__name__)


class SessionBackend(Protocol):
    """Operations every persistence backend provides."""

    def find_one(self, conversation_id: str) -> Optional[SessionData]: ...

    def save(self, session: SessionData) -> None: ...

    def find_completed(self, event_id: str) -> List[SessionData]: ...

    def find_open_for_user(self, user_id: str) -> Optional[SessionData]: ...

    def remove_session(self, conversation_id: str) -> Optional[SessionData]: ...


class ThreadSafeSessionStore:
    """A thread-safe store for feedback conversations kept in memory.

    Used as the degraded-mode backend when MongoDB is unreachable. Semantics
    match the persistent backend except durability and cross-process
    visibility. Sessions are copied on the way in and out so callers never
    share mutable state with the table.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, SessionData] = {}
        self._lock = threading.Lock()

    def find_one(self, conversation_id: str) -> Optional[SessionData]:
        """Retrieves a session by its ID. Returns None if not found."""
        with self._lock:
            session = self._sessions.get(conversation_id)
            return copy.deepcopy(session) if session is not None else None

    def save(self, session: SessionData) -> None:
        """Insert or replace *session*."""
        with self._lock:
            self._sessions[session.session_id] = copy.deepcopy(session)

    def find_completed(self, event_id: str) -> List[SessionData]:
        with self._lock:
            return [
                copy.deepcopy(s)
                for s in self._sessions.values()
                if s.event_id == event_id and s.completed
            ]

    def find_open_for_user(self, user_id: str) -> Optional[SessionData]:
        with self._lock:
            candidates = [
                s
                for s in self._sessions.values()
                if s.user_id == user_id and not s.completed
            ]
            if not candidates:
                return None
            latest = max(candidates, key=lambda s: s.created_at)
            return copy.deepcopy(latest)

    def remove_session(self, session_id: str) -> Optional[SessionData]:
        """Removes a session by its ID. Returns the removed session or None if not found."""
        with self._lock:
            return self._sessions.pop(session_id, None)


class _CacheEntry:
    __slots__ = ("session", "last_accessed")

    def __init__(self, session: SessionData, last_accessed: float) -> None:
        self.session = session
        self.last_accessed = last_accessed


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class ConversationSessionStore:
    """Session access used by the conversation engine.

    Wraps one backend with:

    • an idle-evicting cache so active conversations skip a round trip per
      turn. Entries are written only after the backend accepted a save, so
      evicting them never drops data.
    • per-session locks serialising load → mutate → persist for concurrent
      requests with the same conversation id.
    • ``is_persistent``, the explicit flag telling which backend is in use.
    """

    def __init__(
        self,
        backend: SessionBackend,
        *,
        persistent: bool,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._persistent = persistent
        self._clock = clock
        self._cache: Dict[str, _CacheEntry] = {}
        self._cache_lock = threading.Lock()
        self._session_locks: Dict[str, _LockEntry] = {}
        self._session_locks_guard = threading.Lock()

    @classmethod
    def connect(cls, mongo_uri: Optional[str] = None) -> "ConversationSessionStore":
        """Use MongoDB when reachable, otherwise the in-memory backend."""
        from src.storage.mongo import connect_database

        return cls.for_database(connect_database(mongo_uri))

    @classmethod
    def for_database(cls, database) -> "ConversationSessionStore":
        """Back the store with *database*, or memory when it is ``None``."""
        from src.storage.feedback import MongoFeedbackRepository

        if database is None:
            return cls.in_memory()
        return cls(MongoFeedbackRepository.from_database(database), persistent=True)

    @classmethod
    def in_memory(cls) -> "ConversationSessionStore":
        return cls(ThreadSafeSessionStore(), persistent=False)

    @property
    def is_persistent(self) -> bool:
        return self._persistent

    # ------------------------------------------------------------------
    # Session access
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> Optional[SessionData]:
        """Return a private copy of the session, or ``None``."""
        with self._cache_lock:
            entry = self._cache.get(session_id)
            if entry is not None:
                entry.last_accessed = self._clock()
                return copy.deepcopy(entry.session)

        session = self._backend.find_one(session_id)
        if session is not None:
            self._remember(session)
        return session

    def create(
        self, session_id: str, event_id: str, user_id: Optional[str] = None
    ) -> SessionData:
        """Create and persist a new session."""
        session = SessionData(session_id=session_id, event_id=event_id, user_id=user_id)
        self.save(session)
        logger.info(
            "session_created", extra={"session_id": session_id, "event_id": event_id}
        )
        return session

    def save(self, session: SessionData) -> None:
        """Persist *session*; backend errors propagate to the caller."""
        self._backend.save(session)
        self._remember(session)

    def find_completed(self, event_id: str) -> List[SessionData]:
        return self._backend.find_completed(event_id)

    def find_open_for_user(self, user_id: str) -> Optional[SessionData]:
        return self._backend.find_open_for_user(user_id)

    def remove(self, session_id: str) -> bool:
        """Delete the session from the backend and the cache.

        Returns whether the backend held it.
        """
        removed = self._backend.remove_session(session_id)
        with self._cache_lock:
            self._cache.pop(session_id, None)
        if removed is not None:
            logger.info("session_removed", extra={"session_id": session_id})
        return removed is not None

    # ------------------------------------------------------------------
    # Concurrency
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def lock(self, session_id: str) -> Iterator[None]:
        """Hold the per-session lock for the duration of the block.

        Locks are reference counted and dropped once no caller holds or waits
        for them.
        """
        with self._session_locks_guard:
            entry = self._session_locks.get(session_id)
            if entry is None:
                entry = self._session_locks[session_id] = _LockEntry()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._session_locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._session_locks[session_id]

    def active_locks(self) -> int:
        with self._session_locks_guard:
            return len(self._session_locks)

    # ------------------------------------------------------------------
    # Cache maintenance
    # ------------------------------------------------------------------

    def _remember(self, session: SessionData) -> None:
        with self._cache_lock:
            self._cache[session.session_id] = _CacheEntry(
                copy.deepcopy(session), self._clock()
            )

    def cached_count(self) -> int:
        with self._cache_lock:
            return len(self._cache)

    def evict_idle(self, max_idle_seconds: Optional[float] = None) -> int:
        """Drop cache entries untouched for more than *max_idle_seconds*.

        Returns the number of evicted entries.
        """
        max_idle = (
            max_idle_seconds
            if max_idle_seconds is not None
            else config.SESSION_CACHE_IDLE_SECONDS
        )
        cutoff = self._clock() - max_idle
        with self._cache_lock:
            stale = [sid for sid, e in self._cache.items() if e.last_accessed < cutoff]
            for session_id in stale:
                del self._cache[session_id]
        if stale:
            logger.info("session_cache_evicted", extra={"evicted": len(stale)})
        return len(stale)
