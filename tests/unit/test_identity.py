import json

import httpx
import pytest

from pickbook.utils.identity import IdentityClient, IdentityError, IdentityUser, validate_sign_up


def client_for(handler) -> IdentityClient:
    return IdentityClient(
        base_url="http://identity.test/v1",
        token_url="http://token.test/v1",
        api_key="k-123",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def rejected(message: str):
    return lambda req: httpx.Response(400, json={"error": {"code": 400, "message": message}})


async def test_sign_in_returns_user_and_sends_api_key():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "localId": "uid-1",
            "email": "juan@example.com",
            "displayName": "Juan Dela Cruz",
            "idToken": "tok",
            "refreshToken": "ref",
            "expiresIn": "3600",
        })

    user = await client_for(handler).sign_in(" juan@example.com ", "secret1")

    assert seen["url"] == "http://identity.test/v1/accounts:signInWithPassword?key=k-123"
    assert seen["body"] == {"email": "juan@example.com", "password": "secret1", "returnSecureToken": True}
    assert user.uid == "uid-1"
    assert user.display_name == "Juan Dela Cruz"
    assert not user.expired


@pytest.mark.parametrize("message, key", [
    ("EMAIL_NOT_FOUND", "auth:err_not_registered"),
    ("INVALID_PASSWORD", "auth:err_wrong_password"),
    ("INVALID_LOGIN_CREDENTIALS", "auth:err_invalid_credentials"),
    ("TOO_MANY_ATTEMPTS_TRY_LATER : Access to this account has been temporarily disabled", "auth:err_too_many"),
    ("SOMETHING_NEW", "auth:err_generic"),
])
async def test_sign_in_errors_map_to_messages(message, key):
    with pytest.raises(IdentityError) as exc:
        await client_for(rejected(message)).sign_in("juan@example.com", "secret1")

    assert exc.value.key == key


async def test_weak_password_code_is_split_from_description():
    with pytest.raises(IdentityError) as exc:
        await client_for(rejected("WEAK_PASSWORD : Password should be at least 6 characters")).sign_up("a@b.c", "123")

    assert exc.value.code == "WEAK_PASSWORD"
    assert exc.value.key == "auth:err_weak_password"


async def test_network_failure():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(IdentityError) as exc:
        await client_for(handler).sign_in("juan@example.com", "secret1")

    assert exc.value.key == "auth:err_network"


async def test_refresh_posts_form_to_token_endpoint():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = request.content.decode()
        return httpx.Response(200, json={"id_token": "new", "refresh_token": "ref2", "expires_in": "3600"})

    user = IdentityUser(uid="uid-1", id_token="old", refresh_token="ref", expires_at=0)
    assert user.expired

    refreshed = await client_for(handler).refresh(user)

    assert seen["url"].startswith("http://token.test/v1/token")
    assert "grant_type=refresh_token" in seen["body"]
    assert refreshed.id_token == "new"
    assert refreshed.refresh_token == "ref2"
    assert not refreshed.expired


def test_validate_sign_up():
    validate_sign_up("Juan", "Dela Cruz", "secret1", "secret1")

    with pytest.raises(IdentityError) as exc:
        validate_sign_up("Juan", " ", "secret1", "secret1")
    assert exc.value.key == "auth:err_names_required"

    with pytest.raises(IdentityError) as exc:
        validate_sign_up("Juan", "Dela Cruz", "secret1", "secret2")
    assert exc.value.key == "auth:err_password_mismatch"

    with pytest.raises(IdentityError) as exc:
        validate_sign_up("Juan", "Dela Cruz", "123", "123")
    assert exc.value.key == "auth:err_weak_password"
