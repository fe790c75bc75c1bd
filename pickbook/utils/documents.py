"""
pickbook/utils/documents.py

User profile records in the document store (Firestore REST).

Document: users/{uid}
    uid, firstName, lastName, email, phone, role, createdAt, updatedAt

Firestore wraps every value in a typed envelope:
    {"stringValue": "x"}, {"integerValue": "3"}, {"timestampValue": "...Z"}, ...
encode_value() / decode_value() convert between that and plain Python.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from pickbook.booking.models import ApiModel
from pickbook.config import get_settings

logger = logging.getLogger(__name__)


class DocumentStoreError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


# ==============================================================================
# Value codec
# ==============================================================================

def encode_value(value: Any) -> dict:
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        ts = value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return {"timestampValue": ts}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise TypeError(f"Unsupported document value: {type(value).__name__}")


def decode_value(wrapped: dict) -> Any:
    if "nullValue" in wrapped:
        return None
    if "booleanValue" in wrapped:
        return bool(wrapped["booleanValue"])
    if "integerValue" in wrapped:
        return int(wrapped["integerValue"])
    if "doubleValue" in wrapped:
        return float(wrapped["doubleValue"])
    if "timestampValue" in wrapped:
        return datetime.fromisoformat(wrapped["timestampValue"].replace("Z", "+00:00"))
    if "stringValue" in wrapped:
        return wrapped["stringValue"]
    if "arrayValue" in wrapped:
        return [decode_value(v) for v in wrapped["arrayValue"].get("values") or []]
    if "mapValue" in wrapped:
        return decode_fields(wrapped["mapValue"].get("fields") or {})
    raise ValueError(f"Unsupported document value: {sorted(wrapped)}")


def encode_fields(data: dict) -> dict:
    return {k: encode_value(v) for k, v in data.items()}


def decode_fields(fields: dict) -> dict:
    return {k: decode_value(v) for k, v in fields.items()}


# ==============================================================================
# Profile
# ==============================================================================

class UserProfile(ApiModel):
    uid: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""          # stored with +63
    role: str = "user"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ProfileStore:
    COLLECTION = "users"

    def __init__(
        self,
        base_url: Optional[str] = None,
        project: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if None in (base_url, project, timeout):
            settings = get_settings()
            base_url = base_url or settings.DOCUMENT_STORE_URL
            project = project or settings.DOCUMENT_STORE_PROJECT
            timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self.base_url = base_url.rstrip("/")
        self.project = project
        self.timeout = timeout
        self._transport = transport

    def _doc_url(self, uid: str) -> str:
        return (
            f"{self.base_url}/projects/{self.project}/databases/(default)"
            f"/documents/{self.COLLECTION}/{uid}"
        )

    async def _call(self, method: str, uid: str, token: str, **kwargs) -> Optional[dict]:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.request(method, self._doc_url(uid), headers=headers, **kwargs)
            except httpx.HTTPError as e:
                logger.error(f"[PROFILE] {method} users/{uid} failed: {e!r}")
                raise DocumentStoreError(0, "network error") from e

        if method == "GET" and resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            logger.error(f"[PROFILE] {method} users/{uid} -> {resp.status_code}")
            raise DocumentStoreError(resp.status_code, resp.text[:200])
        return resp.json()

    async def get(self, uid: str, token: str) -> Optional[UserProfile]:
        doc = await self._call("GET", uid, token)
        if doc is None:
            return None
        data = decode_fields(doc.get("fields") or {})
        data.setdefault("uid", uid)
        return UserProfile.model_validate(data)

    async def create(self, profile: UserProfile, token: str) -> UserProfile:
        now = datetime.now(timezone.utc)
        profile = profile.model_copy(update={"created_at": now, "updated_at": now})
        data = profile.model_dump(by_alias=True)
        await self._call("PATCH", profile.uid, token, json={"fields": encode_fields(data)})
        logger.info(f"[PROFILE] created users/{profile.uid}")
        return profile

    async def update(self, uid: str, token: str, **fields) -> dict:
        """
        Partial update: update(uid, token, first_name="Ana", phone="+639171234567")

        Only the given fields (plus updatedAt) are written.
        """
        fields["updated_at"] = datetime.now(timezone.utc)
        aliased = {UserProfile.model_fields[k].alias or k: v for k, v in fields.items()}
        params = [("updateMask.fieldPaths", name) for name in aliased]
        await self._call("PATCH", uid, token, params=params, json={"fields": encode_fields(aliased)})
        logger.info(f"[PROFILE] updated users/{uid}: {sorted(aliased)}")
        return aliased
