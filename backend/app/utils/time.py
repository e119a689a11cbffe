import re
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

CLINIC_TZ = ZoneInfo("Asia/Manila")

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_naive_to_clinic(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(CLINIC_TZ)


def parse_iso_date(value: str) -> date:
    """Parse a strict `YYYY-MM-DD` calendar date."""
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise ValueError("date must be formatted as YYYY-MM-DD")
    return date.fromisoformat(value)
