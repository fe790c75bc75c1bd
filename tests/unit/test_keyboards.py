from datetime import date

from pickbook.booking.draft import BookingDraft
from pickbook.keyboards.booking import equipment_inline, money, pending_inline, slots_inline
from pickbook.keyboards.calendar import calendar_inline, shift_month
from pickbook.utils.pagination import build_nav_row, paginate


def callbacks(markup) -> list[str]:
    return [b.callback_data for row in markup.inline_keyboard for b in row if b.callback_data]


def test_money():
    assert money(2700) == "₱2,700"
    assert money(0) == "₱0"


def test_shift_month_crosses_years():
    assert shift_month(2024, 12, 1) == (2025, 1)
    assert shift_month(2025, 1, -1) == (2024, 12)


def test_calendar_disables_past_days_and_marks_selection():
    markup = calendar_inline(2024, 12, {"2024-12-21"}, date(2024, 12, 20), "en")
    data = callbacks(markup)
    texts = [b.text for row in markup.inline_keyboard for b in row]

    assert "bk:date:2024-12-19" not in data
    assert "bk:date:2024-12-20" in data
    assert "✓21" in texts
    # current month: no way back
    assert markup.inline_keyboard[0][0].callback_data == "bk:noop"
    assert markup.inline_keyboard[0][2].callback_data == "bk:cal:2025-01"


def test_slots_keyboard_blocks_unavailable(area, now):
    draft = BookingDraft(dates=frozenset({"2024-12-22"}), active_date="2024-12-22")

    markup = slots_inline(area, draft, "2024-12-22", now, "en")
    texts = [b.text for row in markup.inline_keyboard for b in row]

    # 07:00 PM is reserved on the 22nd, index 13
    assert "🚫 07:00 PM" in texts
    assert "bk:slot:13" not in callbacks(markup)
    assert "bk:slot:12" in callbacks(markup)
    assert "bk:apply" not in callbacks(markup)


def test_equipment_keyboard_respects_stock(area):
    markup = equipment_inline(area, BookingDraft(equipment={"eq1": 3}), "en")
    data = callbacks(markup)

    assert "bk:eq:dec:0" in data
    assert "bk:eq:inc:0" not in data
    assert "bk:eq:inc:1" not in data


def test_pending_keyboard_only_links_http_qr():
    assert pending_inline("https://cdn.example.com/qr.png", "en").inline_keyboard[0][0].url
    assert len(pending_inline("data:image/png;base64,xx", "en").inline_keyboard) == 1


def test_paginate_clamps_page():
    items, page, total = paginate(list(range(12)), 9)

    assert (items, page, total) == ([10, 11], 2, 3)
    assert build_nav_row(0, 1, "p:{p}", "noop", "en") == []
    assert [b.callback_data for b in build_nav_row(1, 3, "p:{p}", "noop", "en")] == ["p:0", "noop", "p:2"]
