import pytest

from utils.phone import normalize_phone


@pytest.mark.parametrize("raw,expected", [
    ("9876543210", "9876543210"),
    ("+91 98765-43210", "919876543210"),
    ("(0091) 98765 43210", "919876543210"),
    ("", ""),
    (None, ""),
    ("no digits here", ""),
])
def test_normalize_phone_keeps_last_twelve_digits(raw, expected):
    assert normalize_phone(raw) == expected


def test_normalize_phone_custom_length():
    assert normalize_phone("+91 98765 43210", keep_last_n=10) == "9876543210"


def test_normalize_phone_is_idempotent():
    for raw in ["+1 (555) 010-9999", "00919876543210", "12", "phone: 98 76 54"]:
        once = normalize_phone(raw)
        assert normalize_phone(once) == once
