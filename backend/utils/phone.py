"""Phone number canonicalization."""

import os
import re

# Digits kept from the end of every stored or queried phone number
PHONE_DIGITS = int(os.getenv("PHONE_DIGITS", "12"))

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str | None, keep_last_n: int = PHONE_DIGITS) -> str:
    """Strip everything but digits and keep the trailing ``keep_last_n`` of them.

    ``None`` and empty input yield ``""``.
    """
    if not raw:
        return ""
    digits = _NON_DIGITS.sub("", str(raw))
    return digits[-keep_last_n:] if keep_last_n > 0 else ""
