# pickbook/booking/models.py
"""
Data model of the booking front-end.

Field names follow Python conventions; aliases follow the camelCase JSON of the
Booking REST API, so ``Model.model_validate(resp.json())`` and
``model.model_dump(by_alias=True)`` speak the wire format directly.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .timeslots import parse_clock_label


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


# ──────────────────────────────────────────────────────────────────────────────
# Area detail (booking page)
# ──────────────────────────────────────────────────────────────────────────────

class Court(ApiModel):
    id: str = Field(alias="courtId")
    name: str = Field(alias="courtName")
    status: Optional[str] = None
    rate: int = 0
    image_url: Optional[str] = Field(None, alias="courtImageUrl")

    @field_validator("rate", mode="before")
    @classmethod
    def _rate_or_zero(cls, v):
        return 0 if v is None else v


class Equipment(ApiModel):
    id: str
    name: str
    price: int
    stock: int = Field(alias="quantity", ge=0)


class ManagerInfo(ApiModel):
    first_name: str = ""
    last_name: str = ""
    gcash_number: str = ""
    qr_code: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ReservedSlot(ApiModel):
    date: str
    time: list[str] = []


class Area(ApiModel):
    id: str
    name: str = Field(alias="areaName")
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    opening_time: str
    closing_time: str
    image_url: Optional[str] = Field(None, alias="areaImageUrl")
    courts: list[Court]
    equipment: list[Equipment] = Field(default_factory=list, alias="equipments")
    manager: ManagerInfo = Field(default_factory=ManagerInfo)
    bookings: list[ReservedSlot] = Field(default_factory=list)

    @field_validator("opening_time", "closing_time")
    @classmethod
    def _clock_label(cls, v: str) -> str:
        parse_clock_label(v)
        return v

    @field_validator("equipment", "bookings", mode="before")
    @classmethod
    def _null_list(cls, v):
        return [] if v is None else v

    @field_validator("manager", mode="before")
    @classmethod
    def _null_manager(cls, v):
        return {} if v is None else v

    def get_court(self, court_id: Optional[str]) -> Optional[Court]:
        return next((c for c in self.courts if c.id == court_id), None)

    def get_equipment(self, equipment_id: str) -> Optional[Equipment]:
        return next((e for e in self.equipment if e.id == equipment_id), None)


# ──────────────────────────────────────────────────────────────────────────────
# Area list (discovery page)
# ──────────────────────────────────────────────────────────────────────────────

class AreaDetails(ApiModel):
    court_count: int = 0
    min_rate: int = 0
    max_rate: int = 0
    court_images: list[str] = []


class AreaSummary(ApiModel):
    id: str
    name: str = Field(alias="areaName")
    address: str = ""
    lat: float
    lng: float
    opening_time: str = ""
    closing_time: str = ""
    image_url: Optional[str] = Field(None, alias="areaImageUrl")
    details: AreaDetails = Field(default_factory=AreaDetails)
    manager_gcash_number: str = ""


class LatLng(BaseModel):
    lat: float
    lng: float


class Route(BaseModel):
    points: list[tuple[float, float]]
    distance_m: Optional[float] = None
    duration_s: Optional[int] = None
    distance_text: Optional[str] = None
    duration_text: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────────────
# Submission
# ──────────────────────────────────────────────────────────────────────────────

class ContactDetails(ApiModel):
    """Contact fields of the booking form. ``gcash_number`` holds the 10 local digits."""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    gcash_number: str = ""

    def missing_fields(self) -> list[str]:
        missing = [
            name for name in ("first_name", "last_name", "email")
            if not getattr(self, name).strip()
        ]
        digits = self.gcash_number.strip()
        if len(digits) != 10 or not digits.isdigit():
            missing.append("gcash_number")
        return missing


class SlotRequest(ApiModel):
    date: str
    time: list[str]


class RentedEquipment(ApiModel):
    equipment_id: str
    name: str
    quantity: int
    price: int


class BookingPayload(ApiModel):
    user_id: str
    first_name: str
    last_name: str
    email: str
    gcash_number: str
    area_id: str
    court_id: str
    slots: list[SlotRequest]
    amount: int
    rented_equipments: list[RentedEquipment] = []


class ConfirmationEmail(ApiModel):
    first_name: str
    last_name: str
    email: str
    area_name: str
    court_name: str
    reservation_id: str
    total_amount: int
    date_time_slots: list[SlotRequest]
    manager_name: str
    gcash_number: str
    qr_code: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────────────
# Dashboard
# ──────────────────────────────────────────────────────────────────────────────

class DashboardBooking(ApiModel):
    id: str
    area_name: Optional[str] = None
    court_name: Optional[str] = None
    slots: list[ReservedSlot] = []
    amount: Optional[float] = None
    is_approved: Optional[bool] = None
    created_at: Optional[str] = None

    @property
    def status(self) -> str:
        """confirmed | rejected | pending"""
        if self.is_approved is True:
            return "confirmed"
        if self.is_approved is False:
            return "rejected"
        return "pending"

    @property
    def total_hours(self) -> int:
        return sum(len(s.time) for s in self.slots)


class DashboardSummary(ApiModel):
    total_bookings: int = 0
    hours_played: int = 0
    favorite_facility: Optional[str] = None
    upcoming: int = 0


class Notification(ApiModel):
    id: str
    title: str = ""
    message: str = ""
    time_ago: str = ""
    read: bool = False
    booking_id: Optional[str] = None


class MembershipArea(ApiModel):
    id: str
    name: str = Field(alias="areaName")
    price: Optional[float] = None
    image_url: Optional[str] = Field(None, alias="areaImageUrl")


class MembershipPlan(ApiModel):
    id: str
    membership_type: str
    price: float
    duration: str = ""
    benefits: list[str] = []
    popular: bool = False
