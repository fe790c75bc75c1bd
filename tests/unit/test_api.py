import json

import httpx
import pytest

from pickbook.booking.models import BookingPayload, SlotRequest
from pickbook.utils.api import ApiClient, ApiError, parse_directions


def client_for(handler) -> ApiClient:
    return ApiClient(base_url="http://api.test", timeout=5, transport=httpx.MockTransport(handler))


async def test_list_areas_accepts_plain_list_and_wrapped():
    summary = {
        "id": "a1",
        "areaName": "Sunrise",
        "lat": 14.5,
        "lng": 121.0,
        "details": {"courtCount": 3, "minRate": 400, "maxRate": 600},
    }

    plain = await client_for(lambda req: httpx.Response(200, json=[summary])).list_areas()
    wrapped = await client_for(lambda req: httpx.Response(200, json={"areas": [summary]})).list_areas()

    assert plain == wrapped
    assert plain[0].name == "Sunrise"
    assert plain[0].details.court_count == 3


async def test_get_area_parses_booking_page(area):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        return httpx.Response(200, json=area.model_dump(by_alias=True))

    parsed = await client_for(handler).get_area("area-1")

    assert seen["path"] == "/api/booking/areas/area-1/"
    assert parsed.name == "Sunrise Pickleball"
    assert parsed.get_court("c2").rate == 0
    assert parsed.get_equipment("eq1").stock == 3


async def test_error_message_comes_from_body():
    api = client_for(lambda req: httpx.Response(409, json={"error": "Slot already booked"}))

    with pytest.raises(ApiError) as exc:
        await api.get_area("area-1")

    assert exc.value.status == 409
    assert exc.value.message == "Slot already booked"


async def test_network_failure_is_status_zero():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ApiError) as exc:
        await client_for(handler).list_areas()

    assert exc.value.status == 0


async def test_create_booking_posts_camel_case_json():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "bk-7"})

    payload = BookingPayload(
        user_id="uid-1",
        first_name="Juan",
        last_name="Dela Cruz",
        email="juan@example.com",
        gcash_number="+639171234567",
        area_id="area-1",
        court_id="c1",
        slots=[SlotRequest(date="2024-12-21", time=["08:00 AM - 09:00 AM"])],
        amount=500,
    )

    result = await client_for(handler).create_booking(payload)

    assert result == {"id": "bk-7"}
    assert seen["method"] == "POST"
    assert seen["body"]["areaId"] == "area-1"
    assert seen["body"]["rentedEquipments"] == []


async def test_membership_plans_return_area_name():
    body = {
        "areaName": "Sunrise",
        "plans": [{"id": "p1", "membershipType": "Monthly", "price": 1500, "benefits": ["Priority booking"]}],
    }

    name, plans = await client_for(lambda req: httpx.Response(200, json=body)).get_membership_plans("a1")

    assert name == "Sunrise"
    assert plans[0].membership_type == "Monthly"


async def test_dashboard_bookings_status():
    body = {"bookings": [
        {"id": "b1", "isApproved": True, "slots": [{"date": "2024-12-21", "time": ["a", "b"]}]},
        {"id": "b2", "isApproved": None},
    ]}

    bookings = await client_for(lambda req: httpx.Response(200, json=body)).get_my_bookings("uid-1")

    assert [b.status for b in bookings] == ["confirmed", "pending"]
    assert bookings[0].total_hours == 2


# ------------------------------------------------------------------
# Directions
# ------------------------------------------------------------------

def leg(points: str, meters=None, text=None, seconds=None):
    data = {"steps": [{"polyline": {"points": points}}]}
    if meters is not None:
        data["distance"] = {"value": meters, "text": text}
    if seconds is not None:
        data["duration"] = {"value": seconds, "text": f"{seconds // 60} mins"}
    return data


def test_parse_directions_concatenates_every_leg():
    data = {"routes": [{"legs": [
        leg("_p~iF~ps|U_ulLnnqC", 1000, "1.0 km", 300),
        leg("_p~iF~ps|U", 500, "0.5 km", 120),
    ]}]}

    route = parse_directions(data)

    assert route.points == [(38.5, -120.2), (40.7, -120.95), (38.5, -120.2)]
    assert route.distance_m == 1500
    assert route.duration_s == 420
    assert route.distance_text == "1.0 km + 0.5 km"


def test_parse_directions_falls_back_to_overview_and_path_length():
    data = {"routes": [{"legs": [{"steps": []}], "overview_polyline": {"points": "_p~iF~ps|U_ulLnnqC"}}]}

    route = parse_directions(data)

    assert len(route.points) == 2
    assert route.distance_m > 200_000
    assert route.duration_s is None


def test_parse_directions_without_routes():
    with pytest.raises(ApiError) as exc:
        parse_directions({"routes": [], "status": "ZERO_RESULTS"})

    assert exc.value.status == 404


async def test_area_that_does_not_fit_the_model_is_api_error(area):
    data = area.model_dump(by_alias=True)
    data["openingTime"] = "06:00"

    with pytest.raises(ApiError) as exc:
        await client_for(lambda req: httpx.Response(200, json=data)).get_area("area-1")

    assert exc.value.status == 502
    assert exc.value.message == "Unexpected server response."


@pytest.mark.parametrize("body", [
    [{"id": "a1", "areaName": "X"}],
    {"areas": "nope"},
])
async def test_malformed_area_list_is_api_error(body):
    with pytest.raises(ApiError) as exc:
        await client_for(lambda req: httpx.Response(200, json=body)).list_areas()

    assert exc.value.status == 502


async def test_malformed_dashboard_payload_is_api_error():
    api = client_for(lambda req: httpx.Response(200, json=["not", "an", "object"]))

    with pytest.raises(ApiError):
        await api.get_notifications("uid-1")


async def test_malformed_directions_is_api_error():
    api = client_for(lambda req: httpx.Response(200, json={"routes": ["x"]}))

    with pytest.raises(ApiError) as exc:
        await api.get_directions((14.5, 121.0), (14.6, 121.1))

    assert exc.value.status == 502
