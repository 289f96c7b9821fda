from __future__ import annotations

import calendar
import re
from datetime import UTC, date, datetime
from typing import Optional

from ..core.errors import InvalidCardError
from ..models import CardNetwork

_NON_DIGITS = re.compile(r"\D")

MADA_PREFIXES = (
    "4464", "4968", "4486", "4913", "4917", "4918",
    "5297", "5598", "5312", "5371", "5404", "5018",
)
MAX_YEARS_AHEAD = 10


def clean_card_number(card_number: str) -> str:
    return _NON_DIGITS.sub("", card_number)


def luhn_check(digits: str) -> bool:
    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_card_number(card_number: str) -> bool:
    digits = clean_card_number(card_number)
    if not 13 <= len(digits) <= 19:
        return False
    return luhn_check(digits)


def detect_card_network(card_number: str) -> Optional[CardNetwork]:
    digits = clean_card_number(card_number)
    if digits.startswith("4") and len(digits) in (13, 16, 19):
        return CardNetwork.VISA
    if re.match(r"^(5[1-5]|2[2-7])", digits) and len(digits) == 16:
        return CardNetwork.MASTERCARD
    if re.match(r"^3[47]", digits) and len(digits) == 15:
        return CardNetwork.AMEX
    if digits.startswith("6") and len(digits) == 16:
        return CardNetwork.DISCOVER
    if digits.startswith(MADA_PREFIXES):
        return CardNetwork.MADA
    return None


def validate_cvv(cvv: str, network: Optional[CardNetwork]) -> bool:
    digits = clean_card_number(cvv)
    if digits != cvv.strip():
        return False
    if network is CardNetwork.AMEX:
        return len(digits) == 4
    return len(digits) == 3


def parse_expiry(value: str) -> date:
    """Parse ``MM/YY``, ``MM/YYYY`` or ``YYYY-MM-DD``.

    Month-only forms resolve to the last day of that month.
    """
    value = value.strip()
    try:
        if "/" in value:
            month_part, year_part = value.split("/", 1)
            month, year = int(month_part), int(year_part)
            if year < 100:
                year += 2000 if year < 50 else 1900
            if not 1 <= month <= 12:
                raise InvalidCardError("Invalid expiry month")
            return date(year, month, calendar.monthrange(year, month)[1])
        if "-" in value:
            return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidCardError("Invalid expiry date") from exc
    raise InvalidCardError("Invalid expiry date")


def validate_expiry(expiry: date, today: Optional[date] = None) -> bool:
    today = today or datetime.now(UTC).date()
    if (expiry.year, expiry.month) < (today.year, today.month):
        return False
    return expiry.year <= today.year + MAX_YEARS_AHEAD


def mask_card_number(card_number: str) -> str:
    digits = clean_card_number(card_number)
    if len(digits) < 4:
        return card_number
    if len(digits) < 8:
        return "*" * (len(digits) - 4) + digits[-4:]
    return f"{digits[:4]}{'*' * (len(digits) - 8)}{digits[-4:]}"
