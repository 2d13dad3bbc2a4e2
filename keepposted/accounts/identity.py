"""Identity provider client — Firebase Identity Toolkit REST API."""

from __future__ import annotations

import httpx
import structlog

from keepposted.session import SignedInUser

logger = structlog.get_logger()

GOOGLE_PROVIDER_ID = "google.com"

# Provider error codes -> the messages users see
ERROR_MESSAGES: dict[str, str] = {
    "EMAIL_EXISTS": "The email address is already in use by another account.",
    "INVALID_EMAIL": "The email address is badly formatted.",
    "WEAK_PASSWORD": "The password must be 6 characters long or more.",
    "MISSING_PASSWORD": "Please enter a password.",
    "EMAIL_NOT_FOUND": (
        "There is no user record corresponding to this identifier. "
        "The user may have been deleted."
    ),
    "INVALID_PASSWORD": "The password is invalid or the user does not have a password.",
    "INVALID_LOGIN_CREDENTIALS": "The supplied auth credential is malformed or has expired.",
    "INVALID_IDP_RESPONSE": "The supplied auth credential is malformed or has expired.",
    "USER_DISABLED": "The user account has been disabled by an administrator.",
    "OPERATION_NOT_ALLOWED": "The given sign-in provider is disabled for this project.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": (
        "We have blocked all requests from this device due to unusual activity. "
        "Try again later."
    ),
}


class IdentityError(Exception):
    """An identity provider failure with a user-presentable message."""

    def __init__(self, code: str, message: str | None = None):
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, code)
        super().__init__(self.message)

    @classmethod
    def from_response(cls, resp: httpx.Response) -> IdentityError:
        try:
            raw = resp.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return cls("HTTP_ERROR", f"Identity provider returned {resp.status_code}")
        # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
        code, _, detail = raw.partition(" : ")
        code = code.strip()
        if code in ERROR_MESSAGES:
            return cls(code)
        return cls(code, detail.strip() or raw)


class IdentityClient:
    """Async client for email/password and federated sign-in."""

    def __init__(self, api_key: str, base_url: str, timeout: float = 10.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _post(self, endpoint: str, payload: dict) -> dict:
        url = f"{self.base_url}/accounts:{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, params={"key": self.api_key}, json=payload)
        except httpx.HTTPError as e:
            logger.warning("identity_request_failed", endpoint=endpoint, error=str(e))
            raise IdentityError("NETWORK_ERROR", f"Network error: {e}") from e

        if resp.status_code != 200:
            error = IdentityError.from_response(resp)
            logger.info("identity_request_rejected", endpoint=endpoint, code=error.code)
            raise error
        return resp.json()

    @staticmethod
    def _user(data: dict) -> SignedInUser:
        return SignedInUser(
            uid=data["localId"],
            email=data.get("email"),
            id_token=data.get("idToken"),
            display_name=data.get("displayName") or data.get("fullName"),
        )

    async def sign_up(self, email: str, password: str) -> SignedInUser:
        data = await self._post(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._user(data)

    async def sign_in_with_password(self, email: str, password: str) -> SignedInUser:
        data = await self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._user(data)

    async def sign_in_with_idp(
        self, id_token: str, provider_id: str = GOOGLE_PROVIDER_ID
    ) -> SignedInUser:
        """Exchange a third-party ID token for a provider session."""
        data = await self._post(
            "signInWithIdp",
            {
                "postBody": f"id_token={id_token}&providerId={provider_id}",
                "requestUri": "http://localhost",
                "returnIdpCredential": True,
                "returnSecureToken": True,
            },
        )
        return self._user(data)

    async def update_display_name(self, id_token: str, display_name: str) -> None:
        await self._post(
            "update",
            {"idToken": id_token, "displayName": display_name, "returnSecureToken": False},
        )
