"""
pickbook/utils/api.py

HTTP client of the Booking REST API.

One attempt per call, no retry. Any non-success status or transport failure
raises ApiError; the message comes from the JSON body ({"error": ...} or
{"detail": ...}) when there is one.
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ValidationError

from pickbook.booking.models import (
    Area,
    AreaSummary,
    BookingPayload,
    ConfirmationEmail,
    DashboardBooking,
    DashboardSummary,
    MembershipArea,
    MembershipPlan,
    Notification,
    Route,
)
from pickbook.config import get_settings
from pickbook.utils.geo import decode_polyline, path_length_m

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Booking API call failed. status == 0 means no HTTP response at all."""

    def __init__(self, status: int, message: str):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


def _parse(model: type[BaseModel], data, path: str):
    """Validate one payload; a body that does not fit the model is an ApiError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error(f"API unexpected payload: {path} -> {e.error_count()} errors")
        raise ApiError(502, "Unexpected server response.") from e


def _items(result, key: str, path: str) -> list:
    """List under ``key`` of a JSON object (or the list itself)."""
    if isinstance(result, dict):
        result = result.get(key)
    if result is None:
        return []
    if not isinstance(result, list):
        logger.error(f"API unexpected payload: {path} -> {key} is not a list")
        raise ApiError(502, "Unexpected server response.")
    return result


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"Request failed with status {resp.status_code}"


class ApiClient:
    """Async client of the Booking REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings() if base_url is None or timeout is None else None
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> Optional[dict | list]:
        """Base HTTP request."""
        url = f"{self.base_url}{path}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                logger.error(f"API request failed: {method} {path} -> {e!r}")
                raise ApiError(0, "Network error, please try again.") from e

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.error(f"API error: {method} {path} -> {resp.status_code} {message}")
            raise ApiError(resp.status_code, message)

        if resp.status_code == 204 or not resp.content:
            return None

        try:
            return resp.json()
        except ValueError as e:
            logger.error(f"API bad JSON: {method} {path}")
            raise ApiError(resp.status_code, "Unexpected server response.") from e

    # ------------------------------------------------------------------
    # Areas
    # ------------------------------------------------------------------

    async def list_areas(self) -> list[AreaSummary]:
        """GET /api/areas/fetch/"""
        path = "/api/areas/fetch/"
        result = await self._request("GET", path)
        return [_parse(AreaSummary, a, path) for a in _items(result, "areas", path)]

    async def get_area(self, area_id: str) -> Area:
        """GET /api/booking/areas/{id}/"""
        path = f"/api/booking/areas/{area_id}/"
        result = await self._request("GET", path)
        if not result:
            raise ApiError(404, "Area not found.")
        return _parse(Area, result, path)

    async def get_directions(
        self,
        origin: tuple[float, float],
        destination: tuple[float, float],
    ) -> Route:
        """POST /api/booking/directions/"""
        body = {
            "origin": {"lat": origin[0], "lng": origin[1]},
            "destination": {"lat": destination[0], "lng": destination[1]},
        }
        result = await self._request("POST", "/api/booking/directions/", json=body)
        try:
            return parse_directions(result or {})
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(f"API unexpected payload: /api/booking/directions/ -> {e!r}")
            raise ApiError(502, "Unexpected server response.") from e

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    async def create_booking(self, payload: BookingPayload) -> dict:
        """POST /api/booking/create/"""
        result = await self._request(
            "POST", "/api/booking/create/", json=payload.model_dump(by_alias=True),
        )
        return result if isinstance(result, dict) else {}

    async def send_confirmation_email(self, email: ConfirmationEmail) -> None:
        """POST /api/booking/send-details-to-email/"""
        await self._request(
            "POST", "/api/booking/send-details-to-email/", json=email.model_dump(by_alias=True),
        )

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    async def get_summary(self, user_id: str) -> DashboardSummary:
        """GET /api/dashboard/summary/?userId="""
        path = "/api/dashboard/summary/"
        result = await self._request("GET", path, params={"userId": user_id})
        return _parse(DashboardSummary, result or {}, path)

    async def get_recent_bookings(self, user_id: str) -> list[DashboardBooking]:
        """GET /api/dashboard/recent-bookings/?userId="""
        path = "/api/dashboard/recent-bookings/"
        result = await self._request("GET", path, params={"userId": user_id})
        return [_parse(DashboardBooking, b, path) for b in _items(result, "bookings", path)]

    async def get_my_bookings(self, user_id: str) -> list[DashboardBooking]:
        """GET /api/dashboard/my-bookings/?userId="""
        path = "/api/dashboard/my-bookings/"
        result = await self._request("GET", path, params={"userId": user_id})
        return [_parse(DashboardBooking, b, path) for b in _items(result, "bookings", path)]

    async def get_notifications(self, user_id: str) -> list[Notification]:
        """GET /api/dashboard/notifications/?userId="""
        path = "/api/dashboard/notifications/"
        result = await self._request("GET", path, params={"userId": user_id})
        return [_parse(Notification, n, path) for n in _items(result, "notifications", path)]

    async def get_membership_areas(self) -> list[MembershipArea]:
        """GET /api/dashboard/membership-areas/"""
        path = "/api/dashboard/membership-areas/"
        result = await self._request("GET", path)
        return [_parse(MembershipArea, a, path) for a in _items(result, "areas", path)]

    async def get_membership_plans(self, area_id: str) -> tuple[str, list[MembershipPlan]]:
        """GET /api/dashboard/membership-plans/{areaId}/ → (area name, plans)"""
        path = f"/api/dashboard/membership-plans/{area_id}/"
        result = await self._request("GET", path) or {}
        plans = [_parse(MembershipPlan, p, path) for p in _items(result, "plans", path)]
        name = result.get("areaName") if isinstance(result, dict) else None
        return name or "", plans


def parse_directions(data: dict) -> Route:
    """
    Google Directions JSON → Route.

    Points are every step polyline of every leg of the first route, in order.
    Distance falls back to the length of the decoded path.
    """
    routes = data.get("routes") or []
    if not routes:
        raise ApiError(404, "No route found.")

    points: list[tuple[float, float]] = []
    distance_m = 0.0
    duration_s = 0
    has_distance = has_duration = False
    distance_texts, duration_texts = [], []

    for leg in routes[0].get("legs") or []:
        for step in leg.get("steps") or []:
            encoded = (step.get("polyline") or {}).get("points")
            if encoded:
                try:
                    decoded = decode_polyline(encoded)
                except ValueError:
                    logger.warning("[DIRECTIONS] truncated step polyline skipped")
                    continue
                points.extend(decoded)

        distance = leg.get("distance") or {}
        if isinstance(distance.get("value"), (int, float)):
            distance_m += distance["value"]
            has_distance = True
        if distance.get("text"):
            distance_texts.append(distance["text"])

        duration = leg.get("duration") or {}
        if isinstance(duration.get("value"), (int, float)):
            duration_s += int(duration["value"])
            has_duration = True
        if duration.get("text"):
            duration_texts.append(duration["text"])

    if not points:
        overview = (routes[0].get("overview_polyline") or {}).get("points")
        if overview:
            points = decode_polyline(overview)

    if not has_distance:
        distance_m = path_length_m(points)

    return Route(
        points=points,
        distance_m=distance_m,
        duration_s=duration_s if has_duration else None,
        distance_text=" + ".join(distance_texts) or None,
        duration_text=" + ".join(duration_texts) or None,
    )


# Singleton
_api: Optional[ApiClient] = None


def get_api() -> ApiClient:
    global _api
    if _api is None:
        _api = ApiClient()
    return _api
