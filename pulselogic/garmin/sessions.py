"""In-process registry of live Garmin sessions keyed by opaque handles.

The handle is a bearer credential for every later call, so it comes from
``secrets`` with 256 bits of entropy.  Each user holds at most one live
session: a second ``put`` for the same user id replaces the first.  State
is process-local: a multi-instance deployment would need a shared store
instead.
"""

from __future__ import annotations

import logging
import secrets
import threading
from datetime import datetime, timedelta

from pulselogic.garmin.models import Session, utc_now

logger = logging.getLogger("pulselogic.garmin.sessions")


def new_handle() -> str:
    return secrets.token_urlsafe(32)


def _user_key(user_id: str) -> str:
    return user_id.strip().lower()


class SessionRegistry:
    """Thread-safe map of session handle -> Session, indexed by user.

    Sessions are fully built before ``put`` so a reader never observes a
    partially constructed one.  Critical sections are constant time; no
    provider I/O ever runs under the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._by_user: dict[str, str] = {}
        self._reserved: set[str] = set()

    def create(self) -> str:
        """Reserve and return a fresh handle that is neither live nor reserved."""
        with self._lock:
            handle = new_handle()
            while handle in self._sessions or handle in self._reserved:
                handle = new_handle()
            self._reserved.add(handle)
            return handle

    def get(self, handle: str | None) -> Session | None:
        if not handle:
            return None
        with self._lock:
            session = self._sessions.get(handle)
            if session is not None:
                session.last_used_at = utc_now()
            return session

    def handle_for(self, user_id: str) -> str | None:
        """The live handle already bound to ``user_id``, if any."""
        with self._lock:
            return self._by_user.get(_user_key(user_id))

    def put(self, handle: str, session: Session) -> None:
        """Bind ``session`` to ``handle``, dropping any other live session of the same user."""
        key = _user_key(session.user_id)
        with self._lock:
            self._reserved.discard(handle)
            previous = self._sessions.get(handle)
            if previous is not None and self._by_user.get(_user_key(previous.user_id)) == handle:
                del self._by_user[_user_key(previous.user_id)]
            other = self._by_user.get(key)
            if other is not None and other != handle:
                self._sessions.pop(other, None)
            self._sessions[handle] = session
            self._by_user[key] = handle
        if other is not None and other != handle:
            logger.info("Replaced an existing Garmin session for the same account")

    def remove(self, handle: str | None) -> Session | None:
        if not handle:
            return None
        with self._lock:
            self._reserved.discard(handle)
            session = self._sessions.pop(handle, None)
            if session is not None:
                self._unindex(handle, session)
            return session

    def evict_idle(self, max_idle: timedelta, now: datetime | None = None) -> list[str]:
        """Drop sessions unused for longer than ``max_idle``; returns the evicted handles."""
        now = now or utc_now()
        with self._lock:
            stale = [h for h, s in self._sessions.items() if now - s.last_used_at > max_idle]
            for handle in stale:
                self._unindex(handle, self._sessions.pop(handle))
        if stale:
            logger.info("Evicted %d idle Garmin session(s)", len(stale))
        return stale

    def _unindex(self, handle: str, session: Session) -> None:
        # Caller holds the lock.
        key = _user_key(session.user_id)
        if self._by_user.get(key) == handle:
            del self._by_user[key]

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
