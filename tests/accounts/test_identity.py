"""Tests for the identity provider and Google OAuth clients."""

from __future__ import annotations

import httpx
import pytest

from keepposted.accounts.google import GoogleOAuthClient, GoogleOAuthError
from keepposted.accounts.identity import IdentityClient, IdentityError
from tests.conftest import make_response, patch_httpx

IDENTITY = "keepposted.accounts.identity"
GOOGLE = "keepposted.accounts.google"


@pytest.fixture
def client():
    return IdentityClient(api_key="test-key", base_url="https://identity.test/v1/")


def _error(message: str, status: int = 400):
    return make_response(status, {"error": {"code": status, "message": message}})


class TestIdentityClient:
    @pytest.mark.asyncio
    async def test_sign_up(self, client):
        data = {"localId": "uid_ada", "email": "ada@example.com", "idToken": "tok"}
        patcher, http = patch_httpx(IDENTITY, post=make_response(json_data=data))
        try:
            user = await client.sign_up("ada@example.com", "pw123456")
        finally:
            patcher.stop()

        assert user.uid == "uid_ada"
        assert user.email == "ada@example.com"
        assert user.id_token == "tok"
        url = http.post.call_args[0][0]
        assert url == "https://identity.test/v1/accounts:signUp"
        assert http.post.call_args.kwargs["params"] == {"key": "test-key"}
        assert http.post.call_args.kwargs["json"]["email"] == "ada@example.com"

    @pytest.mark.asyncio
    async def test_known_error_maps_to_message(self, client):
        patcher, _ = patch_httpx(IDENTITY, post=_error("EMAIL_EXISTS"))
        try:
            with pytest.raises(IdentityError) as exc_info:
                await client.sign_up("ada@example.com", "pw123456")
        finally:
            patcher.stop()

        assert exc_info.value.code == "EMAIL_EXISTS"
        assert exc_info.value.message == (
            "The email address is already in use by another account."
        )

    @pytest.mark.asyncio
    async def test_error_with_detail(self, client):
        patcher, _ = patch_httpx(
            IDENTITY, post=_error("WEAK_PASSWORD : Password should be at least 6 characters")
        )
        try:
            with pytest.raises(IdentityError) as exc_info:
                await client.sign_up("ada@example.com", "pw")
        finally:
            patcher.stop()

        assert exc_info.value.code == "WEAK_PASSWORD"
        assert "6 characters" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unknown_error_keeps_provider_detail(self, client):
        patcher, _ = patch_httpx(IDENTITY, post=_error("SOMETHING_NEW : Try later"))
        try:
            with pytest.raises(IdentityError) as exc_info:
                await client.sign_in_with_password("a@b.c", "pw")
        finally:
            patcher.stop()

        assert exc_info.value.code == "SOMETHING_NEW"
        assert exc_info.value.message == "Try later"

    @pytest.mark.asyncio
    async def test_non_json_error(self, client):
        resp = make_response(502)
        resp.json.side_effect = ValueError("no json")
        patcher, _ = patch_httpx(IDENTITY, post=resp)
        try:
            with pytest.raises(IdentityError) as exc_info:
                await client.sign_in_with_password("a@b.c", "pw")
        finally:
            patcher.stop()

        assert exc_info.value.code == "HTTP_ERROR"

    @pytest.mark.asyncio
    async def test_network_error(self, client):
        patcher, _ = patch_httpx(IDENTITY, post=httpx.ConnectError("unreachable"))
        try:
            with pytest.raises(IdentityError) as exc_info:
                await client.sign_in_with_password("a@b.c", "pw")
        finally:
            patcher.stop()

        assert exc_info.value.code == "NETWORK_ERROR"
        assert exc_info.value.message.startswith("Network error")

    @pytest.mark.asyncio
    async def test_sign_in_with_idp_sends_id_token(self, client):
        data = {"localId": "uid_g", "email": "g@example.com", "displayName": "Grace Hopper"}
        patcher, http = patch_httpx(IDENTITY, post=make_response(json_data=data))
        try:
            user = await client.sign_in_with_idp("google-id-token")
        finally:
            patcher.stop()

        assert user.display_name == "Grace Hopper"
        body = http.post.call_args.kwargs["json"]
        assert "id_token=google-id-token" in body["postBody"]
        assert "providerId=google.com" in body["postBody"]


class TestGoogleOAuthClient:
    @pytest.fixture
    def google(self):
        return GoogleOAuthClient("client-id", "client-secret")

    def test_auth_url_requests_contacts_scope(self, google):
        url = google.get_auth_url("https://app.test/callback")

        assert url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
        assert "client_id=client-id" in url
        assert "contacts.readonly" in url

    @pytest.mark.asyncio
    async def test_exchange_code(self, google):
        tokens = {"id_token": "idt", "access_token": "at"}
        patcher, http = patch_httpx(GOOGLE, post=make_response(json_data=tokens))
        try:
            result = await google.exchange_code("code-1", "https://app.test/callback")
        finally:
            patcher.stop()

        assert result.id_token == "idt"
        assert result.access_token == "at"
        assert http.post.call_args.kwargs["data"]["code"] == "code-1"

    @pytest.mark.asyncio
    async def test_exchange_rejected(self, google):
        patcher, _ = patch_httpx(GOOGLE, post=make_response(400, text="invalid_grant"))
        try:
            with pytest.raises(GoogleOAuthError):
                await google.exchange_code("bad", "https://app.test/callback")
        finally:
            patcher.stop()

    @pytest.mark.asyncio
    async def test_exchange_without_id_token(self, google):
        patcher, _ = patch_httpx(GOOGLE, post=make_response(json_data={"access_token": "at"}))
        try:
            with pytest.raises(GoogleOAuthError):
                await google.exchange_code("code", "https://app.test/callback")
        finally:
            patcher.stop()
