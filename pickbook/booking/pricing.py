# pickbook/booking/pricing.py
"""
Booking total:

    total = Σ dates (slot count × court rate) + Σ equipment (price × quantity)

Amounts are whole pesos, so the arithmetic is exact integer arithmetic.
"""

from dataclasses import dataclass

from .draft import BookingDraft
from .models import Area


@dataclass(frozen=True)
class PriceLine:
    label: str
    quantity: int
    unit_price: int

    @property
    def subtotal(self) -> int:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class PriceBreakdown:
    court_lines: list[PriceLine]        # one per date, label = date key
    equipment_lines: list[PriceLine]    # one per rented item, label = equipment name

    @property
    def court_total(self) -> int:
        return sum(line.subtotal for line in self.court_lines)

    @property
    def equipment_total(self) -> int:
        return sum(line.subtotal for line in self.equipment_lines)

    @property
    def total(self) -> int:
        return self.court_total + self.equipment_total


def court_rate(area: Area, draft: BookingDraft) -> int:
    court = area.get_court(draft.court_id)
    return court.rate if court else 0


def price_breakdown(area: Area, draft: BookingDraft) -> PriceBreakdown:
    court = area.get_court(draft.court_id)
    if court is None:
        return PriceBreakdown(court_lines=[], equipment_lines=[])

    court_lines = [
        PriceLine(label=day, quantity=len(draft.slots_for(day)), unit_price=court.rate)
        for day in draft.sorted_dates
        if draft.slots_for(day)
    ]

    equipment_lines = []
    for equipment_id, qty in draft.equipment.items():
        item = area.get_equipment(equipment_id)
        if item is None:
            continue
        equipment_lines.append(PriceLine(label=item.name, quantity=qty, unit_price=item.price))

    return PriceBreakdown(court_lines=court_lines, equipment_lines=equipment_lines)


def compute_total(area: Area, draft: BookingDraft) -> int:
    """Zero while no court is selected."""
    return price_breakdown(area, draft).total
