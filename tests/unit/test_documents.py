import json
from datetime import datetime, timezone

import httpx
import pytest

from pickbook.utils.documents import (
    DocumentStoreError,
    ProfileStore,
    UserProfile,
    decode_fields,
    decode_value,
    encode_value,
)

DOC_PATH = "/v1/projects/pickbook/databases/(default)/documents/users/uid-1"


def store_for(handler) -> ProfileStore:
    return ProfileStore(
        base_url="http://docs.test/v1",
        project="pickbook",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def test_encode_value_types():
    assert encode_value(None) == {"nullValue": None}
    assert encode_value(True) == {"booleanValue": True}
    assert encode_value(3) == {"integerValue": "3"}
    assert encode_value(1.5) == {"doubleValue": 1.5}
    assert encode_value("x") == {"stringValue": "x"}
    assert encode_value(datetime(2024, 12, 20, 8, 30)) == {"timestampValue": "2024-12-20T08:30:00Z"}
    assert encode_value({"tags": ["a"]}) == {
        "mapValue": {"fields": {"tags": {"arrayValue": {"values": [{"stringValue": "a"}]}}}},
    }


def test_decode_value_types():
    fields = {
        "firstName": {"stringValue": "Juan"},
        "visits": {"integerValue": "4"},
        "active": {"booleanValue": True},
        "createdAt": {"timestampValue": "2024-12-20T08:30:00.123456Z"},
        "tags": {"arrayValue": {}},
    }

    data = decode_fields(fields)

    assert data["visits"] == 4
    assert data["active"] is True
    assert data["createdAt"] == datetime(2024, 12, 20, 8, 30, 0, 123456, tzinfo=timezone.utc)
    assert data["tags"] == []

    with pytest.raises(ValueError):
        decode_value({"geoPointValue": {}})


async def test_get_returns_none_for_missing_document():
    assert await store_for(lambda req: httpx.Response(404, json={})).get("uid-1", "tok") is None


async def test_get_decodes_profile():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"fields": {
            "firstName": {"stringValue": "Juan"},
            "lastName": {"stringValue": "Dela Cruz"},
            "phone": {"stringValue": "+639171234567"},
            "role": {"stringValue": "user"},
        }})

    profile = await store_for(handler).get("uid-1", "tok")

    assert seen["path"] == DOC_PATH
    assert seen["auth"] == "Bearer tok"
    assert profile.uid == "uid-1"
    assert profile.full_name == "Juan Dela Cruz"


async def test_update_writes_only_the_given_fields():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["mask"] = request.url.params.get_list("updateMask.fieldPaths")
        seen["fields"] = json.loads(request.content)["fields"]
        return httpx.Response(200, json={})

    await store_for(handler).update("uid-1", "tok", first_name="Ana", phone="+639171234567")

    assert seen["method"] == "PATCH"
    assert seen["mask"] == ["firstName", "phone", "updatedAt"]
    assert seen["fields"]["phone"] == {"stringValue": "+639171234567"}
    assert "timestampValue" in seen["fields"]["updatedAt"]


async def test_create_sets_timestamps():
    seen = {}

    def handler(request):
        seen["fields"] = json.loads(request.content)["fields"]
        return httpx.Response(200, json={})

    profile = await store_for(handler).create(UserProfile(uid="uid-1", first_name="Juan"), "tok")

    assert profile.created_at is not None
    assert seen["fields"]["role"] == {"stringValue": "user"}
    assert "timestampValue" in seen["fields"]["createdAt"]


async def test_write_failure_raises():
    with pytest.raises(DocumentStoreError) as exc:
        await store_for(lambda req: httpx.Response(403, text="denied")).update("uid-1", "tok", phone="")

    assert exc.value.status == 403
