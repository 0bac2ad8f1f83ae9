from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Provider call outcomes
#
# Every outbound identity-provider call returns one of these instead of
# raising. The revocation policy in auth/policy.py inspects them; route
# handlers only ever branch on isinstance(result, Failure).
# ---------------------------------------------------------------------------


class FailureKind(str, Enum):
    EXCHANGE = "exchange_failure"  # code-to-token exchange yielded no token
    UPSTREAM = "upstream_failure"  # any other provider call failed
    AUTH_LOST = "authentication_lost"  # introspection said the token is revoked


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    status_code: Optional[int] = None  # None for transport errors (DNS, timeout, ...)
    detail: str = ""


Result = Union[Ok[T], Failure]
