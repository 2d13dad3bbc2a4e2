"""Google OAuth2 — authorization-code exchange for federated sign-in."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

import httpx
import structlog

logger = structlog.get_logger()

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Contacts are read with the same grant
SCOPES = "openid email profile https://www.googleapis.com/auth/contacts.readonly"


class GoogleOAuthError(Exception):
    """The authorization code could not be exchanged."""


@dataclass
class GoogleTokens:
    id_token: str
    access_token: str | None = None


class GoogleOAuthClient:
    """Google OAuth2 client."""

    def __init__(self, client_id: str, client_secret: str, timeout: float = 10.0) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

    def get_auth_url(self, redirect_uri: str) -> str:
        params = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": redirect_uri,
                "response_type": "code",
                "scope": SCOPES,
                "prompt": "select_account",
            }
        )
        return f"{GOOGLE_AUTH_URL}?{params}"

    async def exchange_code(self, code: str, redirect_uri: str) -> GoogleTokens:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            token_resp = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        if token_resp.status_code != 200:
            logger.warning(
                "google_token_exchange_failed",
                status=token_resp.status_code,
                body=token_resp.text,
            )
            raise GoogleOAuthError("Google authentication failed")

        tokens = token_resp.json()
        if "id_token" not in tokens:
            raise GoogleOAuthError("Google did not return an ID token")
        return GoogleTokens(
            id_token=tokens["id_token"],
            access_token=tokens.get("access_token"),
        )
