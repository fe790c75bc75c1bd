"""
pickbook/utils/identity.py

Identity provider client (Firebase Auth compatible REST).

    accounts:signInWithPassword   e-mail + password → tokens
    accounts:signUp               create account
    accounts:update               set display name
    securetoken /token            refresh the id token

Provider error codes are mapped to i18n keys; handlers show t(err.key).
"""

import logging
import time
from typing import Optional

import httpx
from pydantic import BaseModel

from pickbook.config import get_settings

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

# provider code → i18n key
ERROR_KEYS = {
    "EMAIL_NOT_FOUND": "auth:err_not_registered",
    "INVALID_PASSWORD": "auth:err_wrong_password",
    "INVALID_LOGIN_CREDENTIALS": "auth:err_invalid_credentials",
    "INVALID_EMAIL": "auth:err_invalid_email",
    "MISSING_EMAIL": "auth:err_invalid_email",
    "USER_DISABLED": "auth:err_disabled",
    "EMAIL_EXISTS": "auth:err_email_in_use",
    "WEAK_PASSWORD": "auth:err_weak_password",
    "MISSING_PASSWORD": "auth:err_weak_password",
    "OPERATION_NOT_ALLOWED": "auth:err_not_allowed",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth:err_too_many",
    "TOKEN_EXPIRED": "auth:err_session_expired",
    "INVALID_REFRESH_TOKEN": "auth:err_session_expired",
    "USER_NOT_FOUND": "auth:err_session_expired",
    # local validation
    "NAMES_REQUIRED": "auth:err_names_required",
    "PASSWORD_MISMATCH": "auth:err_password_mismatch",
}


class IdentityError(Exception):
    def __init__(self, code: str, key: Optional[str] = None):
        super().__init__(code)
        self.code = code
        self.key = key or ERROR_KEYS.get(code, "auth:err_generic")


class IdentityUser(BaseModel):
    uid: str
    email: str = ""
    display_name: str = ""
    id_token: str = ""
    refresh_token: str = ""
    expires_at: float = 0.0

    @property
    def expired(self) -> bool:
        # one minute of slack
        return time.time() >= self.expires_at - 60


def parse_error_code(resp: httpx.Response) -> str:
    """
    {"error": {"message": "WEAK_PASSWORD : Password should be at least 6 characters"}}
    → "WEAK_PASSWORD"
    """
    try:
        body = resp.json()
    except ValueError:
        return "UNKNOWN"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        message = error.get("message") or ""
    elif isinstance(error, str):
        message = error
    else:
        message = ""
    return message.split(" : ")[0].strip() or "UNKNOWN"


def validate_sign_up(first_name: str, last_name: str, password: str, confirm: str) -> None:
    if not first_name.strip() or not last_name.strip():
        raise IdentityError("NAMES_REQUIRED")
    if password != confirm:
        raise IdentityError("PASSWORD_MISMATCH")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise IdentityError("WEAK_PASSWORD")


class IdentityClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if None in (base_url, token_url, api_key, timeout):
            settings = get_settings()
            base_url = base_url or settings.IDENTITY_URL
            token_url = token_url or settings.SECURE_TOKEN_URL
            api_key = api_key if api_key is not None else settings.IDENTITY_API_KEY
            timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def _post(self, url: str, op: str, **kwargs) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(url, params={"key": self.api_key}, **kwargs)
            except httpx.HTTPError as e:
                logger.error(f"[AUTH] {op} request failed: {e!r}")
                raise IdentityError("NETWORK_ERROR", "auth:err_network") from e

        if resp.status_code >= 400:
            code = parse_error_code(resp)
            logger.info(f"[AUTH] {op} rejected: {resp.status_code} {code}")
            raise IdentityError(code)
        return resp.json()

    @staticmethod
    def _user(data: dict) -> IdentityUser:
        return IdentityUser(
            uid=data["localId"],
            email=data.get("email") or "",
            display_name=data.get("displayName") or "",
            id_token=data.get("idToken") or "",
            refresh_token=data.get("refreshToken") or "",
            expires_at=time.time() + int(data.get("expiresIn") or 3600),
        )

    async def sign_in(self, email: str, password: str) -> IdentityUser:
        data = await self._post(
            f"{self.base_url}/accounts:signInWithPassword",
            "sign-in",
            json={"email": email.strip(), "password": password, "returnSecureToken": True},
        )
        return self._user(data)

    async def sign_up(self, email: str, password: str) -> IdentityUser:
        data = await self._post(
            f"{self.base_url}/accounts:signUp",
            "sign-up",
            json={"email": email.strip(), "password": password, "returnSecureToken": True},
        )
        return self._user(data)

    async def update_display_name(self, user: IdentityUser, display_name: str) -> IdentityUser:
        data = await self._post(
            f"{self.base_url}/accounts:update",
            "update-profile",
            json={"idToken": user.id_token, "displayName": display_name, "returnSecureToken": False},
        )
        return user.model_copy(update={"display_name": data.get("displayName") or display_name})

    async def refresh(self, user: IdentityUser) -> IdentityUser:
        data = await self._post(
            f"{self.token_url}/token",
            "refresh",
            data={"grant_type": "refresh_token", "refresh_token": user.refresh_token},
        )
        return user.model_copy(update={
            "id_token": data.get("id_token") or "",
            "refresh_token": data.get("refresh_token") or user.refresh_token,
            "expires_at": time.time() + int(data.get("expires_in") or 3600),
        })
