"""
Phone number normalization.

Every write stores the digits-only form. Reads also try the raw input and
its `+`-prefixed form so rows written before normalization are still found.
When none of those match, a number stored with or without its country code
is matched on its trailing digits.
"""

import re

_NON_DIGITS = re.compile(r"\D")

MIN_MATCH_DIGITS = 10


def normalize_phone(phone: str) -> str:
    """Strip everything but digits ("+1 (234) 567-890" -> "1234567890")."""
    return _NON_DIGITS.sub("", phone or "")


def phone_variants(phone: str) -> list[str]:
    """
    Forms a stored phone may take: exact, `+` stripped, `+` added.

    The digits-only form is always included. Order is stable and duplicates
    are removed.
    """
    raw = (phone or "").strip()
    digits = normalize_phone(raw)

    candidates = [raw]
    if raw.startswith("+"):
        candidates.append(raw[1:])
    else:
        candidates.append(f"+{raw}")
    candidates.extend([digits, f"+{digits}"])

    variants: list[str] = []
    for candidate in candidates:
        if candidate and candidate != "+" and candidate not in variants:
            variants.append(candidate)
    return variants


def national_key(phone: str) -> str | None:
    """Last MIN_MATCH_DIGITS digits, or None for numbers too short to suffix-match."""
    digits = normalize_phone(phone)
    if len(digits) < MIN_MATCH_DIGITS:
        return None
    return digits[-MIN_MATCH_DIGITS:]


def is_same_phone(a: str, b: str) -> bool:
    """
    True when two phones name the same number.

    Digits must be equal, or one must end with the other when both have at
    least MIN_MATCH_DIGITS digits ("+919999999999" and "9999999999").
    """
    digits_a = normalize_phone(a)
    digits_b = normalize_phone(b)
    if not digits_a or not digits_b:
        return False
    if digits_a == digits_b:
        return True
    if min(len(digits_a), len(digits_b)) < MIN_MATCH_DIGITS:
        return False
    return digits_a.endswith(digits_b) or digits_b.endswith(digits_a)
