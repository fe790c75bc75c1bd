from types import SimpleNamespace

import pytest

from pickbook.utils.phone import normalize_gcash, strip_prefix, validate_contact, with_prefix


@pytest.mark.parametrize("raw", ["9171234567", "09171234567", "+639171234567", "639171234567", "+63 917-123 (4567)"])
def test_normalize_gcash_accepts_common_forms(raw):
    assert normalize_gcash(raw) == "9171234567"


@pytest.mark.parametrize("raw", ["", "917123456", "91712345678", "+1 917 123 4567", "917abc4567"])
def test_normalize_gcash_rejects_others(raw):
    assert normalize_gcash(raw) is None


def test_prefix_helpers():
    assert with_prefix("9171234567") == "+639171234567"
    assert with_prefix("") == ""
    assert strip_prefix("+639171234567") == "9171234567"
    assert strip_prefix(None) == ""


def test_validate_contact_only_accepts_own_number():
    own = SimpleNamespace(user_id=7, phone_number="639171234567")
    other = SimpleNamespace(user_id=8, phone_number="639171234567")

    assert validate_contact(own, 7) == "9171234567"
    assert validate_contact(other, 7) is None
