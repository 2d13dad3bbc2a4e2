"""Results returned by the account operations."""

from __future__ import annotations

from pydantic import BaseModel


class AuthResult(BaseModel):
    """Outcome of a sign-up / sign-in call.

    ``error`` carries a message meant to be shown to the user as-is.
    """

    success: bool
    error: str | None = None
    user_id: str | None = None
