"""
auth/policy.py -- Revocation-aware wrapper for every GitHub call.

Every provider call made by the routes goes through RevocationPolicy.guard().
It is the only place that decides whether a failed call means "the token was
revoked, forget it" or "GitHub had a problem, keep the session as it is":

  Ok                                           -> returned unchanged
  Failure, invalidate_on_missing, status 404   -> session token cleared,
                                                  Failure(AUTH_LOST)
  any other Failure                            -> Failure(UPSTREAM)
                                                  (EXCHANGE keeps its kind)

Routes render every Failure the same way (302 to /error). The only observable
difference between the outcomes is the session mutation.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from auth.session import SessionContext, SessionStore
from core.models import Failure, FailureKind, Ok, Result

logger = logging.getLogger("oauthdash.auth.policy")

T = TypeVar("T")

_REVOKED_STATUS = 404


class RevocationPolicy:
    """Classifies provider failures and clears revoked sessions.

    Usage:
        policy = RevocationPolicy(session_store)
        result = policy.guard(ctx, client.introspect, token, invalidate_on_missing=True)
        if isinstance(result, Failure):
            return RedirectResponse("/error", status_code=302)
    """

    def __init__(self, sessions: SessionStore) -> None:
        self.sessions = sessions

    def guard(
        self,
        session: SessionContext,
        call: Callable[..., Result[T]],
        *args,
        invalidate_on_missing: bool = False,
    ) -> Result[T]:
        result = call(*args)
        if isinstance(result, Ok):
            return result

        if invalidate_on_missing and result.status_code == _REVOKED_STATUS:
            self.sessions.clear(session)
            logger.info("Access token revoked upstream; session cleared")
            return Failure(FailureKind.AUTH_LOST, status_code=result.status_code, detail=result.detail)

        logger.warning(
            "Provider call %s failed: kind=%s status=%s",
            getattr(call, "__name__", "call"),
            result.kind.value,
            result.status_code,
        )
        if result.kind is FailureKind.EXCHANGE:
            return result
        return Failure(FailureKind.UPSTREAM, status_code=result.status_code, detail=result.detail)
