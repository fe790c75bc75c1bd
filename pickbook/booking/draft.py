# pickbook/booking/draft.py
"""
Booking draft: everything the user picked on the booking form.

The draft is immutable. Every change is an action passed to ``apply()``, which
returns a new draft:

    draft = apply(draft, ToggleDate("2024-12-20"), area, now)
    draft = apply(draft, ToggleSlot("2024-12-20", "06:00 AM - 07:00 AM"), area, now)

The reducer keeps:
  - every key of ``slots`` is one of ``dates`` and maps to a non-empty tuple
    of generator labels in chronological order;
  - every quantity in ``equipment`` is within [1, stock].
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Union

from .availability import is_slot_unavailable
from .models import Area
from .timeslots import date_key, generate_time_slots, parse_date_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingDraft:
    court_id: Optional[str] = None
    dates: frozenset = frozenset()
    active_date: Optional[str] = None
    slots: dict = field(default_factory=dict)       # date key -> tuple[str, ...]
    equipment: dict = field(default_factory=dict)   # equipment id -> quantity

    @property
    def sorted_dates(self) -> list[str]:
        return sorted(self.dates)

    def slots_for(self, day_key: str) -> tuple:
        return self.slots.get(day_key, ())

    @property
    def slot_count(self) -> int:
        return sum(len(v) for v in self.slots.values())

    def dates_without_slots(self) -> list[str]:
        return [d for d in self.sorted_dates if not self.slots.get(d)]

    @property
    def is_empty(self) -> bool:
        return not (self.court_id or self.dates or self.equipment)

    def to_dict(self) -> dict:
        return {
            "court_id": self.court_id,
            "dates": self.sorted_dates,
            "active_date": self.active_date,
            "slots": {k: list(v) for k, v in self.slots.items()},
            "equipment": dict(self.equipment),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "BookingDraft":
        if not data:
            return cls()
        return cls(
            court_id=data.get("court_id"),
            dates=frozenset(data.get("dates") or ()),
            active_date=data.get("active_date"),
            slots={k: tuple(v) for k, v in (data.get("slots") or {}).items()},
            equipment={k: int(v) for k, v in (data.get("equipment") or {}).items()},
        )


# ==============================================================================
# Actions
# ==============================================================================

@dataclass(frozen=True)
class SelectCourt:
    court_id: Optional[str]


@dataclass(frozen=True)
class ToggleDate:
    day_key: str


@dataclass(frozen=True)
class PruneDates:
    """Replace the date selection; slot choices of dates that remain are kept."""
    dates: frozenset


@dataclass(frozen=True)
class FocusDate:
    day_key: str


@dataclass(frozen=True)
class ToggleSlot:
    day_key: str
    slot: str


@dataclass(frozen=True)
class ApplyAllDates:
    source_day_key: str


@dataclass(frozen=True)
class SetEquipmentQty:
    equipment_id: str
    quantity: int


@dataclass(frozen=True)
class StepEquipment:
    equipment_id: str
    delta: int     # +1 or -1


@dataclass(frozen=True)
class ClearDraft:
    pass


Action = Union[
    SelectCourt, ToggleDate, PruneDates, FocusDate,
    ToggleSlot, ApplyAllDates, SetEquipmentQty, StepEquipment, ClearDraft,
]


# ==============================================================================
# Reducer
# ==============================================================================

def apply(draft: BookingDraft, action: Action, area: Area, now: datetime) -> BookingDraft:
    if isinstance(action, SelectCourt):
        if action.court_id is not None and area.get_court(action.court_id) is None:
            logger.debug(f"[DRAFT] unknown court {action.court_id!r} ignored")
            return draft
        return replace(draft, court_id=action.court_id)

    if isinstance(action, ToggleDate):
        return _toggle_date(draft, action.day_key, now)

    if isinstance(action, PruneDates):
        return _prune(draft, frozenset(action.dates))

    if isinstance(action, FocusDate):
        if action.day_key not in draft.dates:
            return draft
        return replace(draft, active_date=action.day_key)

    if isinstance(action, ToggleSlot):
        return _toggle_slot(draft, action.day_key, action.slot, area, now)

    if isinstance(action, ApplyAllDates):
        return _apply_all(draft, action.source_day_key, area, now)

    if isinstance(action, SetEquipmentQty):
        return _set_equipment(draft, action.equipment_id, action.quantity, area)

    if isinstance(action, StepEquipment):
        if action.delta > 0:
            return increment_equipment(draft, action.equipment_id, area)
        return decrement_equipment(draft, action.equipment_id, area)

    if isinstance(action, ClearDraft):
        return BookingDraft()

    raise TypeError(f"Unknown draft action: {action!r}")


def increment_equipment(draft: BookingDraft, equipment_id: str, area: Area) -> BookingDraft:
    qty = draft.equipment.get(equipment_id, 0)
    return _set_equipment(draft, equipment_id, qty + 1, area)


def decrement_equipment(draft: BookingDraft, equipment_id: str, area: Area) -> BookingDraft:
    qty = draft.equipment.get(equipment_id, 0)
    return _set_equipment(draft, equipment_id, qty - 1, area)


# ------------------------------------------------------------------------------

def _prune(draft: BookingDraft, dates: frozenset) -> BookingDraft:
    slots = {k: v for k, v in draft.slots.items() if k in dates}

    active = draft.active_date
    if active not in dates:
        active = _nearest(dates, active)

    return replace(draft, dates=dates, slots=slots, active_date=active)


def _nearest(dates: frozenset, removed: Optional[str]) -> Optional[str]:
    """First remaining date on or after ``removed``, else the latest one."""
    ordered = sorted(dates)
    if not ordered:
        return None
    if removed is None:
        return ordered[0]
    later = [d for d in ordered if d >= removed]
    return later[0] if later else ordered[-1]


def _toggle_date(draft: BookingDraft, day_key: str, now: datetime) -> BookingDraft:
    if day_key in draft.dates:
        return _prune(draft, draft.dates - {day_key})

    try:
        day = parse_date_key(day_key)
    except ValueError:
        logger.warning(f"[DRAFT] bad date key {day_key!r}")
        return draft

    if day < now.date():
        logger.debug(f"[DRAFT] past date {day_key} refused")
        return draft

    # date_key() normalises e.g. "2024-1-5"
    day_key = date_key(day)
    updated = _prune(draft, draft.dates | {day_key})
    return replace(updated, active_date=day_key)


def _toggle_slot(draft: BookingDraft, day_key: str, slot: str, area: Area, now: datetime) -> BookingDraft:
    if day_key not in draft.dates:
        return draft

    labels = generate_time_slots(area.opening_time, area.closing_time)
    if slot not in labels:
        logger.debug(f"[DRAFT] foreign slot label {slot!r} ignored")
        return draft

    current = set(draft.slots.get(day_key, ()))
    if slot in current:
        current.discard(slot)
    else:
        if is_slot_unavailable(area, day_key, slot, now):
            return draft
        current.add(slot)

    return _with_day_slots(draft, day_key, current, labels)


def _apply_all(draft: BookingDraft, source: str, area: Area, now: datetime) -> BookingDraft:
    picked = draft.slots.get(source)
    if source not in draft.dates or not picked:
        return draft

    labels = generate_time_slots(area.opening_time, area.closing_time)
    updated = draft
    for target in draft.sorted_dates:
        if target == source:
            continue
        merged = set(updated.slots.get(target, ()))
        for slot in picked:
            if slot in merged or is_slot_unavailable(area, target, slot, now):
                continue
            merged.add(slot)
        updated = _with_day_slots(updated, target, merged, labels)
    return updated


def _with_day_slots(draft: BookingDraft, day_key: str, chosen: set, labels: list[str]) -> BookingDraft:
    slots = dict(draft.slots)
    ordered = tuple(s for s in labels if s in chosen)
    if ordered:
        slots[day_key] = ordered
    else:
        slots.pop(day_key, None)
    return replace(draft, slots=slots)


def _set_equipment(draft: BookingDraft, equipment_id: str, quantity: int, area: Area) -> BookingDraft:
    item = area.get_equipment(equipment_id)
    if item is None:
        logger.debug(f"[DRAFT] unknown equipment {equipment_id!r} ignored")
        return draft

    qty = max(0, min(int(quantity), item.stock))
    equipment = dict(draft.equipment)
    if qty == 0:
        equipment.pop(equipment_id, None)
    else:
        equipment[equipment_id] = qty
    return replace(draft, equipment=equipment)
