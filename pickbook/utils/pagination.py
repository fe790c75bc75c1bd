"""
pickbook/utils/pagination.py

Standard list paging: slice helper + [prev | page/total | next] nav row.
"""

import math
from typing import Sequence, TypeVar

from aiogram.types import InlineKeyboardButton

from pickbook.i18n.loader import t

T = TypeVar("T")

PAGE_SIZE = 5


def paginate(items: Sequence[T], page: int, per_page: int = PAGE_SIZE) -> tuple[list[T], int, int]:
    """
    Returns (page items, clamped page, total pages). total_pages is at least 1.
    """
    total_pages = max(1, math.ceil(len(items) / per_page))
    page = max(0, min(page, total_pages - 1))
    start = page * per_page
    return list(items[start:start + per_page]), page, total_pages


def build_nav_row(
    page: int,
    total_pages: int,
    page_cb: str,
    noop_cb: str,
    lang: str,
) -> list[InlineKeyboardButton]:
    """
    Empty list when everything fits on one page.

    Args:
        page: current 0-based page index
        page_cb: callback template with ``{p}``, e.g. ``"area:page:{p}"``
        noop_cb: callback of the disabled buttons, e.g. ``"area:noop"``
    """
    if total_pages <= 1:
        return []

    row: list[InlineKeyboardButton] = []

    if page > 0:
        row.append(InlineKeyboardButton(text=t("common:prev", lang), callback_data=page_cb.format(p=page - 1)))
    else:
        row.append(InlineKeyboardButton(text=" ", callback_data=noop_cb))

    row.append(InlineKeyboardButton(text=f"{page + 1}/{total_pages}", callback_data=noop_cb))

    if page < total_pages - 1:
        row.append(InlineKeyboardButton(text=t("common:next", lang), callback_data=page_cb.format(p=page + 1)))
    else:
        row.append(InlineKeyboardButton(text=" ", callback_data=noop_cb))

    return row
