"""
auth/oauth.py -- GitHub OAuth app client.

Four outbound calls, each returning core.models.Ok or core.models.Failure:

  exchange_code        POST github.com/login/oauth/access_token (authlib)
  fetch_user           GET  api.github.com/user
  fetch_private_emails GET  api.github.com/user/emails
  introspect           GET  api.github.com/applications/{client_id}/tokens/{token}

No exception crosses this module's boundary. Transport errors, non-2xx
responses and malformed bodies all become a Failure carrying the HTTP status
(None when there was no response). Deciding what a failure *means* is the
job of auth/policy.py.

Provider JSON is parsed into pydantic models here so untyped dicts never
reach the routes.

Security notes:
  Access tokens and the client secret are never logged.

  The OAuth state parameter is not sent or checked on the callback. See
  DESIGN.md (open question 1).

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.requests_client import OAuth2Session, OAuthError
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from core.models import Failure, FailureKind, Ok, Result

logger = logging.getLogger("oauthdash.auth.oauth")

EMAIL_SCOPE = "user:email"

# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class GitHubProfile(BaseModel):
    """The subset of GET /user the app relies on."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    login: str
    email: str | None = None


class GitHubEmail(BaseModel):
    """One entry of GET /user/emails. Entries without an address are tolerated."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    email: str | None = None


_EMAILS = TypeAdapter(list[GitHubEmail])


@dataclass(frozen=True)
class ProviderUser:
    profile: GitHubProfile
    scopes: frozenset[str] = field(default_factory=frozenset)


def parse_scopes(header: str | None) -> frozenset[str]:
    """Parse the X-OAuth-Scopes header ("repo, user:email") into a set."""
    if not header:
        return frozenset()
    return frozenset(s.strip() for s in header.split(",") if s.strip())


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class GitHubClient:
    """Synchronous GitHub client for one OAuth app.

    A single requests.Session is shared across calls for connection pooling.
    It carries no per-user state: the user token is passed per request.

    Usage:
        client = GitHubClient("Iv1.abc", "secret")
        result = client.exchange_code(code)
        if isinstance(result, Ok):
            user = client.fetch_user(result.value)
        client.close()
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str = "https://github.com",
        api_url: str = "https://api.github.com",
        scope: str = EMAIL_SCOPE,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.api_url = api_url.rstrip("/")
        self.scope = scope
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            # Known endpoints; a long redirect chain is never legitimate here.
            session.max_redirects = 3
        self._session = session

    @property
    def authorize_url(self) -> str:
        return f"{self.base_url}/login/oauth/authorize"

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/login/oauth/access_token"

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def exchange_code(self, code: str | None) -> Result[str]:
        """Trade a temporary authorization code for an access token.

        client_id and client_secret travel in the form body
        (client_secret_post). authlib asks for a JSON response and raises
        OAuthError when GitHub answers with an error document, which GitHub
        does with a 200 status for bad or expired codes. Any other authlib
        error (an http:// token URL, for one) is an exchange failure too.
        """
        if not code:
            return Failure(FailureKind.EXCHANGE, detail="missing authorization code")

        oauth = OAuth2Session(
            self.client_id,
            self.client_secret,
            token_endpoint_auth_method="client_secret_post",
        )
        try:
            token = oauth.fetch_token(self.token_url, code=code, timeout=self.timeout)
        except OAuthError as e:
            logger.warning("GitHub rejected authorization code: %s", e.error)
            return Failure(FailureKind.EXCHANGE, detail=str(e.error))
        except AuthlibBaseError as e:
            logger.warning("Token exchange refused by authlib: %s", e.error)
            return Failure(FailureKind.EXCHANGE, detail=str(e.error))
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.warning("Token exchange failed with HTTP %s", status)
            return Failure(FailureKind.EXCHANGE, status_code=status, detail="token endpoint error")
        except (requests.RequestException, ValueError) as e:
            logger.warning("Token exchange failed: %s", type(e).__name__)
            return Failure(FailureKind.EXCHANGE, detail=type(e).__name__)
        finally:
            oauth.close()

        access_token = token.get("access_token") if token else None
        if not access_token:
            return Failure(FailureKind.EXCHANGE, detail="no access_token in response")
        return Ok(access_token)

    def fetch_user(self, token: str) -> Result[ProviderUser]:
        """Fetch the authenticated user's profile and the scopes granted to token."""
        result = self._get(f"{self.api_url}/user", token=token)
        if isinstance(result, Failure):
            return result
        resp = result.value
        try:
            profile = GitHubProfile.model_validate(resp.json())
        except (ValueError, ValidationError):
            logger.warning("Malformed /user response")
            return Failure(FailureKind.UPSTREAM, status_code=resp.status_code, detail="malformed profile")
        return Ok(ProviderUser(profile=profile, scopes=parse_scopes(resp.headers.get("X-OAuth-Scopes"))))

    def fetch_private_emails(self, token: str) -> Result[list[GitHubEmail]]:
        """List every address on the account. Needs the user:email scope."""
        result = self._get(f"{self.api_url}/user/emails", token=token)
        if isinstance(result, Failure):
            return result
        resp = result.value
        try:
            emails = _EMAILS.validate_python(resp.json())
        except (ValueError, ValidationError):
            logger.warning("Malformed /user/emails response")
            return Failure(FailureKind.UPSTREAM, status_code=resp.status_code, detail="malformed email list")
        return Ok(emails)

    def introspect(self, token: str) -> Result[bool]:
        """Ask GitHub whether token is still valid for this OAuth app.

        Authenticated as the application (basic auth with client_id and
        client_secret), not with the user token. A 404 means the user or
        GitHub revoked the token.
        """
        url = f"{self.api_url}/applications/{self.client_id}/tokens/{token}"
        result = self._get(url, auth=(self.client_id, self.client_secret))
        if isinstance(result, Failure):
            return result
        return Ok(True)

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get(self, url: str, token: str | None = None, auth: tuple[str, str] | None = None) -> Result[requests.Response]:
        headers = {"Accept": "application/json"}
        if token is not None:
            headers["Authorization"] = f"token {token}"
        try:
            resp = self._session.get(url, headers=headers, auth=auth, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("GitHub request failed: %s", type(e).__name__)
            return Failure(FailureKind.UPSTREAM, detail=type(e).__name__)
        if not 200 <= resp.status_code < 300:
            # Never log url -- introspection URLs embed the token.
            logger.info("GitHub answered HTTP %d", resp.status_code)
            return Failure(FailureKind.UPSTREAM, status_code=resp.status_code, detail=resp.reason or "")
        return Ok(resp)
