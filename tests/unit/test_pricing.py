from pickbook.booking.draft import BookingDraft
from pickbook.booking.pricing import compute_total, court_rate, price_breakdown


def test_total_counts_every_slot_and_rented_item(area):
    draft = BookingDraft(
        court_id="c1",
        dates=frozenset({"2024-12-20", "2024-12-22"}),
        slots={
            "2024-12-20": ("06:00 PM - 07:00 PM", "07:00 PM - 08:00 PM"),
            "2024-12-22": ("08:00 AM - 09:00 AM", "09:00 AM - 10:00 AM", "10:00 AM - 11:00 AM"),
        },
        equipment={"eq1": 2},
    )

    breakdown = price_breakdown(area, draft)

    assert [(line.label, line.subtotal) for line in breakdown.court_lines] == [
        ("2024-12-20", 1000),
        ("2024-12-22", 1500),
    ]
    assert breakdown.equipment_total == 200
    assert compute_total(area, draft) == 2700


def test_total_is_zero_without_a_court(area):
    draft = BookingDraft(
        dates=frozenset({"2024-12-20"}),
        slots={"2024-12-20": ("06:00 PM - 07:00 PM",)},
        equipment={"eq1": 1},
    )

    assert compute_total(area, draft) == 0


def test_missing_court_rate_counts_as_zero(area):
    draft = BookingDraft(
        court_id="c2",
        dates=frozenset({"2024-12-21"}),
        slots={"2024-12-21": ("06:00 PM - 07:00 PM",)},
    )

    assert court_rate(area, draft) == 0
    assert compute_total(area, draft) == 0
