# pickbook/keyboards/calendar.py
"""
Multi-date month calendar.

    ◀   December 2024   ▶
    Mo Tu We Th Fr Sa Su
     ·  ·  ·  ·  ·  ·  1
     ...  ✓20 ...

Days before today are disabled. Callbacks:
    bk:cal:YYYY-MM     month paging
    bk:date:YYYY-MM-DD toggle a date
"""

import calendar
from datetime import date

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from pickbook.booking.timeslots import date_key
from pickbook.i18n.loader import t

NOOP = "bk:noop"
WEEKDAYS = ("Mo", "Tu", "We", "Th", "Fr", "Sa", "Su")


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    year, month = key.split("-")
    return int(year), int(month)


def calendar_inline(
    year: int,
    month: int,
    selected: set[str],
    today: date,
    lang: str,
) -> InlineKeyboardMarkup:
    buttons: list[list[InlineKeyboardButton]] = []

    # header
    prev_y, prev_m = shift_month(year, month, -1)
    next_y, next_m = shift_month(year, month, 1)
    can_go_back = (prev_y, prev_m) >= (today.year, today.month)

    buttons.append([
        InlineKeyboardButton(
            text="◀️" if can_go_back else " ",
            callback_data=f"bk:cal:{month_key(prev_y, prev_m)}" if can_go_back else NOOP,
        ),
        InlineKeyboardButton(text=date(year, month, 1).strftime("%B %Y"), callback_data=NOOP),
        InlineKeyboardButton(text="▶️", callback_data=f"bk:cal:{month_key(next_y, next_m)}"),
    ])
    buttons.append([InlineKeyboardButton(text=d, callback_data=NOOP) for d in WEEKDAYS])

    # grid
    for week in calendar.Calendar(firstweekday=0).monthdayscalendar(year, month):
        row = []
        for day in week:
            if day == 0:
                row.append(InlineKeyboardButton(text=" ", callback_data=NOOP))
                continue

            value = date(year, month, day)
            key = date_key(value)
            if value < today:
                row.append(InlineKeyboardButton(text="·", callback_data=NOOP))
            elif key in selected:
                row.append(InlineKeyboardButton(text=f"✓{day}", callback_data=f"bk:date:{key}"))
            else:
                row.append(InlineKeyboardButton(text=str(day), callback_data=f"bk:date:{key}"))
        buttons.append(row)

    buttons.append([InlineKeyboardButton(text=t("common:done", lang), callback_data="bk:form")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)
