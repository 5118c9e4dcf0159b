import secrets
import string
from datetime import datetime, timezone

TRACKING_PREFIX = "EX"
SHIPMENT_PREFIX = "EXS"
DEFAULT_COUNTRY = "XX"


def country_alpha2(code: str | None) -> str:
    cleaned = (code or "").strip().upper()[:2]
    if not cleaned.isalpha():
        return DEFAULT_COUNTRY
    return cleaned.ljust(2, "X")


def new_tracking_number(
    origin_country_code: str | None, now: datetime | None = None
) -> str:
    """EX + YY + country + 7 random digits + 1 random letter.

    The value doubles as a lookup token, so both random parts come from
    ``secrets``.
    """
    now = now or datetime.now(timezone.utc)
    digits = f"{secrets.randbelow(10_000_000):07d}"
    letter = secrets.choice(string.ascii_uppercase)
    return f"{TRACKING_PREFIX}{now:%y}{country_alpha2(origin_country_code)}{digits}{letter}"


def new_shipment_id(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{SHIPMENT_PREFIX}-{now:%y%m%d}-{secrets.token_hex(3).upper()}"
