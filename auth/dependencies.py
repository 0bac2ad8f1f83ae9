"""
auth/dependencies.py -- FastAPI Depends() helpers for the browser session.

get_session() turns Starlette's cookie session into an explicit
SessionContext. The signed cookie carries only an opaque random id; the
access token itself lives in auth.session.SessionStore.

Layer rule: no imports from web/ or core/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import secrets

from fastapi import Request

from auth.session import SessionContext

SESSION_ID_KEY = "sid"


def get_session(request: Request) -> SessionContext:
    """Return the caller's SessionContext, minting a session id on first visit.

    Requires SessionMiddleware. Writing to request.session makes the
    middleware emit the cookie on this response.

    Use as a FastAPI dependency:
        @router.get("/page")
        def route(request: Request, session: SessionContext = Depends(get_session)): ...
    """
    sid = request.session.get(SESSION_ID_KEY)
    if not isinstance(sid, str) or not sid:
        sid = secrets.token_urlsafe(32)
        request.session[SESSION_ID_KEY] = sid
    return SessionContext(session_id=sid)


def current_token(request: Request, session: SessionContext) -> str | None:
    """Return the access token stored for session, if any."""
    return request.app.state.session_store.get(session)
