"""
web/routes.py -- Jinja2 template routes for the OAuthDash login flow.

Every route is a step of one state machine:

  Unauthenticated --GET /callback--> Authenticated --GET /dashboard--> Authenticated
        ^                                  |                 |
        |                          POST /logout        revoked / failure
        +----------------------------------+                 v
                                                          ErrorState (GET /error)

All GitHub calls go through app.state.policy (auth.policy.RevocationPolicy).
Any Failure becomes a 302 to /error; the client never sees why.

Route registration order matters: the catch-all GET /{path:path} must be the
last route registered on the app, otherwise it swallows every other GET.

Routes:
  GET  /login         -- login page, or straight to /dashboard when a token exists
  GET  /callback      -- OAuth callback: exchange code, fetch profile, upsert user
  GET  /dashboard     -- revalidate token, render the mirrored user
  POST /logout        -- forget the token, back to /login
  GET  /error         -- static error page
  GET  /{path:path}   -- fallback: /dashboard if a token exists, else /login
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import current_token, get_session
from auth.oauth import EMAIL_SCOPE, GitHubClient
from auth.policy import RevocationPolicy
from auth.session import SessionContext
from auth.store import UserStore
from core.models import Failure

logger = logging.getLogger("oauthdash.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=302)


def _error_redirect(step: str, failure: Failure) -> RedirectResponse:
    logger.warning("%s failed: %s (status=%s)", step, failure.kind.value, failure.status_code)
    return _redirect("/error")


# ---------------------------------------------------------------------------
# GET /login
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login(request: Request, session: SessionContext = Depends(get_session)) -> HTMLResponse:
    """Render the "Sign in with GitHub" page, or skip it when already signed in."""
    if current_token(request, session):
        return _redirect("/dashboard")

    provider: GitHubClient = request.app.state.provider
    return templates.TemplateResponse(
        request,
        "login.html",
        {
            "client_id": provider.client_id,
            "authorize_url": provider.authorize_url,
            "scope": provider.scope,
        },
    )


# ---------------------------------------------------------------------------
# GET /callback
# ---------------------------------------------------------------------------


@router.get("/callback")
def callback(
    request: Request,
    code: str | None = None,
    session: SessionContext = Depends(get_session),
) -> RedirectResponse:
    """Handle GitHub's redirect after the user approved the OAuth app.

    Flow:
      1. Exchange the temporary code for an access token.
      2. Fetch the profile and the granted scopes.
      3. If user:email was granted, fetch the private email list.
      4. Store the token in the session.
      5. Upsert the local user record.
      6. Redirect to /dashboard.

    Nothing is written (session or database) unless steps 1-3 all succeed.
    """
    provider: GitHubClient = request.app.state.provider
    policy: RevocationPolicy = request.app.state.policy
    user_store: UserStore = request.app.state.user_store

    # Step 1: code -> token
    token = policy.guard(session, provider.exchange_code, code)
    if isinstance(token, Failure):
        return _error_redirect("Code exchange", token)
    access_token = token.value

    # Step 2: profile + scopes
    user_info = policy.guard(session, provider.fetch_user, access_token)
    if isinstance(user_info, Failure):
        return _error_redirect("Profile fetch", user_info)
    profile = user_info.value.profile

    # Step 3: private emails, only with the user:email scope
    private_emails: list[str] = []
    if EMAIL_SCOPE in user_info.value.scopes:
        emails = policy.guard(session, provider.fetch_private_emails, access_token)
        if isinstance(emails, Failure):
            return _error_redirect("Email fetch", emails)
        private_emails = [e.email for e in emails.value if e.email]

    # Step 4: remember the token for this browser
    request.app.state.session_store.set(session, access_token)

    # Step 5: mirror the profile locally
    user = user_store.upsert(profile.login, profile.email, private_emails)
    logger.info("User %s signed in (id=%s)", user.login, user.id)

    # Step 6
    resp = _redirect("/dashboard")
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# GET /dashboard
# ---------------------------------------------------------------------------


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request, session: SessionContext = Depends(get_session)) -> HTMLResponse:
    """Revalidate the session's token with GitHub, then show the stored user.

    A 404 from the introspection call means the token was revoked: the
    policy clears it from the session before we redirect to /error. Any
    other failure leaves the session untouched.
    """
    access_token = current_token(request, session)
    if not access_token:
        return _redirect("/login")

    provider: GitHubClient = request.app.state.provider
    policy: RevocationPolicy = request.app.state.policy
    user_store: UserStore = request.app.state.user_store

    check = policy.guard(session, provider.introspect, access_token, invalidate_on_missing=True)
    if isinstance(check, Failure):
        return _error_redirect("Token check", check)

    user_info = policy.guard(session, provider.fetch_user, access_token)
    if isinstance(user_info, Failure):
        return _error_redirect("Profile fetch", user_info)

    user = user_store.get_by_login(user_info.value.profile.login)
    if user is None:
        logger.warning("Valid token for %s but no local user record", user_info.value.profile.login)
        return _redirect("/error")

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "login": user.login,
            "email": user.email,
            "private_emails": user.private_emails,
        },
    )


# ---------------------------------------------------------------------------
# POST /logout, GET /error
# ---------------------------------------------------------------------------


@router.post("/logout")
def logout(request: Request, session: SessionContext = Depends(get_session)) -> RedirectResponse:
    """Forget the session's access token and go back to the login page."""
    request.app.state.session_store.clear(session)
    return _redirect("/login")


@router.get("/error", response_class=HTMLResponse)
def error_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "error.html", {})


# ---------------------------------------------------------------------------
# Fallback -- must stay the last route in this module
# ---------------------------------------------------------------------------


@router.get("/{path:path}", include_in_schema=False)
def fallback(request: Request, path: str, session: SessionContext = Depends(get_session)) -> RedirectResponse:
    if current_token(request, session):
        return _redirect("/dashboard")
    return _redirect("/login")
