"""
auth/session.py -- Server-side access-token storage, one slot per session.

The browser only ever holds an opaque session id (inside the signed Starlette
session cookie). The GitHub access token stays here, in process memory, so it
is never readable from the client. State is lost on restart; users simply log
in again.

Slots expire on the same clock as the cookie: a slot untouched for longer than
ttl seconds is dropped, so a browser that discards its cookie does not leave
its token behind for the life of the process.

SessionContext is passed explicitly to every store and policy call. Nothing in
auth/ reaches into a request object to find the current session.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

_DEFAULT_TTL = 14 * 24 * 60 * 60  # matches Settings.session_max_age


@dataclass(frozen=True)
class SessionContext:
    """Identifies one browser session. Built by auth.dependencies.get_session()."""

    session_id: str


class SessionStore:
    """Holds at most one access token per session.

    Sync route handlers run in FastAPI's threadpool, so every access goes
    through a lock. Each read or write refreshes the slot's last-seen time;
    set() also sweeps slots idle for longer than ttl.

    Usage:
        store = SessionStore(ttl=settings.session_max_age)
        store.set(ctx, "gho_abc")
        store.get(ctx)    # "gho_abc"
        store.clear(ctx)
        store.purge_expired()
    """

    def __init__(self, ttl: int = _DEFAULT_TTL) -> None:
        self.ttl = ttl
        self._tokens: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, session: SessionContext) -> str | None:
        now = time.time()
        with self._lock:
            entry = self._tokens.get(session.session_id)
            if entry is None:
                return None
            token, last_seen = entry
            if now - last_seen > self.ttl:
                del self._tokens[session.session_id]
                return None
            self._tokens[session.session_id] = (token, now)
            return token

    def set(self, session: SessionContext, token: str) -> None:
        now = time.time()
        with self._lock:
            self._purge(now)
            self._tokens[session.session_id] = (token, now)

    def clear(self, session: SessionContext) -> None:
        """Drop the session's token. No-op if it holds none."""
        with self._lock:
            self._tokens.pop(session.session_id, None)

    def purge_expired(self) -> int:
        """Drop every slot idle for longer than ttl. Returns number removed."""
        with self._lock:
            return self._purge(time.time())

    def __len__(self) -> int:
        """Number of sessions currently holding a token."""
        with self._lock:
            return len(self._tokens)

    def _purge(self, now: float) -> int:
        # Caller holds the lock.
        cutoff = now - self.ttl
        stale = [sid for sid, (_, last_seen) in self._tokens.items() if last_seen < cutoff]
        for sid in stale:
            del self._tokens[sid]
        return len(stale)
