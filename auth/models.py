"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store does the
work; routes only read fields.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A GitHub identity mirrored locally, keyed by the provider login.

    email is None when the provider exposes no public email. private_emails
    is the ", "-joined list of addresses from /user/emails, present only when
    the user granted the user:email scope on their latest login.
    """

    login: str
    id: int | None = None
    email: str | None = None
    private_emails: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
