"""Account operations: sign-up, sign-in, sign-out and the home location.

Each call reports success as soon as the identity provider answers.
Profile document writes, the display-name update and the profile fetch
run as background tasks afterwards, so a caller that reads the profile
straight after ``sign_up``/``sign_in`` can still see missing fields.

``save_location`` is a write-through cache: the session is updated before
anything is awaited and the profile write follows in the background.
Profile writes are applied in the order they were issued: each one waits
for the previous write, so a home saved right after sign-up lands on the
profile the sign-up created.
"""

from __future__ import annotations

import asyncio

import structlog

from keepposted.accounts.google import GoogleOAuthClient, GoogleOAuthError
from keepposted.accounts.identity import IdentityClient, IdentityError
from keepposted.accounts.profiles import ProfileStore
from keepposted.background import BackgroundTasks
from keepposted.schemas.accounts import AuthResult
from keepposted.schemas.documents import UserProfileDocument
from keepposted.schemas.geo import Coordinate
from keepposted.session import SessionState, SignedInUser

logger = structlog.get_logger()


class AccountService:
    """Auth and profile operations bound to one session."""

    def __init__(
        self,
        session: SessionState,
        identity: IdentityClient,
        profiles: ProfileStore,
        google: GoogleOAuthClient | None = None,
    ):
        self.session = session
        self.identity = identity
        self.profiles = profiles
        self.google = google
        # Kept for the contacts store after a Google sign-in
        self.google_access_token: str | None = None
        self.background = BackgroundTasks()
        # Last profile write issued; the next one waits for it
        self._profile_write: asyncio.Task | None = None
        # Set once the home was chosen locally; a late profile fetch keeps it
        self._home_set_locally = False

    def _queue_profile_write(self, coro, event: str, uid: str) -> asyncio.Task:
        """Spawn a profile write that starts after the previously issued one."""
        previous = self._profile_write
        task = self.background.spawn(self._after(previous, coro), event, user_id=uid)
        self._profile_write = task
        return task

    @staticmethod
    async def _after(previous: asyncio.Task | None, coro):
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        return await coro

    def _bind(self, user: SignedInUser) -> None:
        if user.uid != self.session.user_id:
            self._profile_write = None
            self._home_set_locally = False
        self.session.bind(user)

    # --- Sign-up / sign-in ---

    async def sign_up(self, full_name: str, email: str, password: str) -> AuthResult:
        if not full_name or not email or not password:
            return AuthResult(success=False, error="Please fill in all fields")

        try:
            user = await self.identity.sign_up(email, password)
        except IdentityError as e:
            logger.info("sign_up_failed", code=e.code)
            return AuthResult(success=False, error=e.message)

        logger.info("sign_up_succeeded", user_id=user.uid)
        self._bind(user)
        self.session.full_name = full_name

        if user.id_token:
            self.background.spawn(
                self.identity.update_display_name(user.id_token, full_name),
                "display_name_update",
                user_id=user.uid,
            )
        self._queue_profile_write(
            self.profiles.put(
                UserProfileDocument(uid=user.uid, email=email, full_name=full_name)
            ),
            "profile_create",
            user.uid,
        )
        return AuthResult(success=True, user_id=user.uid)

    async def sign_in(self, email: str, password: str) -> AuthResult:
        if not email or not password:
            return AuthResult(success=False, error="Please enter email and password.")

        try:
            user = await self.identity.sign_in_with_password(email, password)
        except IdentityError as e:
            logger.info("sign_in_failed", code=e.code)
            return AuthResult(success=False, error=e.message)

        logger.info("sign_in_succeeded", user_id=user.uid)
        self._bind(user)
        self.background.spawn(self.load_profile(), "profile_fetch", user_id=user.uid)
        return AuthResult(success=True, user_id=user.uid)

    async def sign_in_with_federated_provider(self, id_token: str) -> AuthResult:
        """Sign in with a Google ID token, provisioning the profile on first use."""
        try:
            user = await self.identity.sign_in_with_idp(id_token)
        except IdentityError as e:
            logger.info("federated_sign_in_failed", code=e.code)
            return AuthResult(success=False, error=e.message)

        logger.info("federated_sign_in_succeeded", user_id=user.uid)
        self._bind(user)
        self._queue_profile_write(
            self._provision_profile(user), "profile_provision", user.uid
        )
        return AuthResult(success=True, user_id=user.uid)

    async def sign_in_with_google_code(self, code: str, redirect_uri: str) -> AuthResult:
        if self.google is None:
            return AuthResult(success=False, error="Google sign-in is not configured.")
        try:
            tokens = await self.google.exchange_code(code, redirect_uri)
        except GoogleOAuthError as e:
            return AuthResult(success=False, error=str(e))

        self.google_access_token = tokens.access_token
        return await self.sign_in_with_federated_provider(tokens.id_token)

    async def _provision_profile(self, user: SignedInUser) -> None:
        created = await self.profiles.create_if_missing(
            UserProfileDocument(
                uid=user.uid,
                email=user.email or "",
                full_name=user.display_name,
            )
        )
        if created:
            logger.info("profile_provisioned", user_id=user.uid)
        await self.load_profile()

    # --- Profile ---

    async def load_profile(self) -> UserProfileDocument | None:
        """Fetch the signed-in user's profile into the session."""
        uid = self.session.user_id
        if uid is None:
            return None

        doc = await self.profiles.get(uid)
        if doc is None:
            logger.info("profile_missing", user_id=uid)
            return None
        # Signed out (or switched user) while the fetch was running
        if self.session.user_id != uid:
            return doc

        if doc.full_name:
            self.session.full_name = doc.full_name
        if doc.location_name and not self._home_set_locally:
            coordinate = None
            if doc.location_lat is not None and doc.location_lng is not None:
                coordinate = Coordinate(doc.location_lat, doc.location_lng)
            self.session.set_home(doc.location_name, coordinate)
        return doc

    def save_location(
        self, name: str, coordinate: Coordinate | None = None
    ) -> asyncio.Task | None:
        """Set the home location now; persist it in the background."""
        self.session.set_home(name, coordinate)

        uid = self.session.user_id
        if uid is None:
            return None
        self._home_set_locally = True
        return self._queue_profile_write(
            self.profiles.update_home(uid, name, coordinate),
            "profile_location_save",
            uid,
        )

    def sign_out(self) -> None:
        uid = self.session.user_id
        self.session.clear()
        self.google_access_token = None
        self._profile_write = None
        self._home_set_locally = False
        logger.info("signed_out", user_id=uid)

    async def drain(self) -> None:
        await self.background.drain()
