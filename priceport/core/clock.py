from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from priceport.core.config import settings


def pricing_zone() -> tzinfo:
    """Zone that defines the business day; UTC when the name is unknown."""
    try:
        return ZoneInfo(settings.PRICING_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def business_today() -> date:
    """Current calendar day in the pricing timezone."""
    return datetime.now(pricing_zone()).date()
