import copy
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from pickbook.booking.models import Area
from pickbook.i18n.loader import load_messages

MANILA = ZoneInfo("Asia/Manila")

AREA_DATA = {
    "id": "area-1",
    "areaName": "Sunrise Pickleball",
    "address": "12 Rizal Ave, Makati",
    "lat": 14.5547,
    "lng": 121.0244,
    "openingTime": "6:00 AM",
    "closingTime": "9:00 PM",
    "areaImageUrl": None,
    "courts": [
        {"courtId": "c1", "courtName": "Court 1", "status": "available", "rate": 500},
        {"courtId": "c2", "courtName": "Court 2", "status": "available", "rate": None},
    ],
    "equipments": [
        {"id": "eq1", "name": "Paddle", "price": 100, "quantity": 3},
        {"id": "eq2", "name": "Balls", "price": 50, "quantity": 0},
    ],
    "manager": {
        "firstName": "Ana",
        "lastName": "Cruz",
        "gcashNumber": "09171234567",
        "qrCode": "https://cdn.example.com/qr/ana.png",
    },
    "bookings": [
        {"date": "2024-12-22", "time": ["07:00 PM - 08:00 PM"]},
    ],
}


@pytest.fixture(scope="session", autouse=True)
def messages():
    load_messages()


@pytest.fixture
def make_area():
    def _make(**overrides) -> Area:
        data = copy.deepcopy(AREA_DATA)
        data.update(overrides)
        return Area.model_validate(data)
    return _make


@pytest.fixture
def area(make_area) -> Area:
    return make_area()


@pytest.fixture
def now() -> datetime:
    """Friday 2024-12-20, 10:00 in Manila."""
    return datetime(2024, 12, 20, 10, 0, tzinfo=MANILA)
