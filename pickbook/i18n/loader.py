# pickbook/i18n/loader.py
"""
Message catalogue.

One message per line:

    en:booking:title| "Book a court"

Placeholders use %-formatting: t("booking:total", lang, "₱2,700").
"""

import re
from pathlib import Path
from typing import Dict, List, Set

MESSAGES: Dict[str, Dict[str, str]] = {}
AVAILABLE_LANGS: Set[str] = set()

DEFAULT_LANG = "en"

LINE_RE = re.compile(r'^(\w+):([^|]+)\|\s*"(.*)"$')

CATALOGUE = Path(__file__).resolve().parent / "messages.txt"


def load_messages(path: str | Path = CATALOGUE):
    MESSAGES.clear()
    AVAILABLE_LANGS.clear()

    path = Path(path)
    if not path.exists():
        raise RuntimeError(f"messages file not found: {path}")

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        m = LINE_RE.match(line)
        if not m:
            continue

        lang, key, text = m.groups()
        text = text.replace("\\n", "\n").strip()

        MESSAGES.setdefault(lang, {})[key.strip()] = text
        AVAILABLE_LANGS.add(lang)


def t(key: str, lang: str | None = None, *args) -> str:
    if not lang:
        lang = DEFAULT_LANG

    text = (
        MESSAGES.get(lang, {}).get(key)
        or MESSAGES.get(DEFAULT_LANG, {}).get(key)
        or key
    )

    if args:
        try:
            return text % args
        except (TypeError, ValueError):
            return text

    return text


def t_all(key: str) -> List[str]:
    """
    Every translation of ``key``, for reply-button filters:

        @router.message(F.text.in_(t_all("menu:areas")))
    """
    translations = []
    for lang in AVAILABLE_LANGS:
        text = MESSAGES.get(lang, {}).get(key)
        if text and text not in translations:
            translations.append(text)
    return translations


def user_lang(language_code: str | None) -> str:
    """Telegram language_code → catalogue language (falls back to DEFAULT_LANG)."""
    if language_code:
        short = language_code.split("-")[0].lower()
        if short in AVAILABLE_LANGS:
            return short
    return DEFAULT_LANG
