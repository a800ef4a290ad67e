import re
from datetime import date, datetime
from typing import Optional, Tuple

from review_scraper.core import config

DATE_PLACEHOLDERS = {"", "unknown", "no date", "unknown date"}

# Day-first before month-first for slashed dates; the first match wins.
DATE_FORMATS = (
    "%Y-%m-%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d %Y",
    "%B %d %Y",
)


def parse_review_date(date_str: Optional[str]) -> Optional[date]:
    if date_str is None:
        return None
    cleaned = re.sub(r"\s+", " ", date_str).strip()
    if cleaned.lower() in DATE_PLACEHOLDERS:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    # ISO timestamps such as TrustPilot's <time datetime="2024-01-05T10:11:12.000Z">
    iso_candidate = cleaned.replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(iso_candidate).date()
    except ValueError:
        pass
    iso_match = re.match(r"^(\d{4}-\d{2}-\d{2})[T ]", cleaned)
    if iso_match:
        try:
            return datetime.strptime(iso_match.group(1), "%Y-%m-%d").date()
        except ValueError:
            return None
    return None


def format_review_date(value: date) -> str:
    return value.strftime(config.DATE_DISPLAY_FORMAT)


def parse_review_datetime_for_output(date_str: Optional[str]) -> Tuple[Optional[str], Optional[date]]:
    """Returns (display string, parsed date). The raw string is kept for display when it does not parse."""
    if not date_str or not date_str.strip():
        return None, None
    parsed = parse_review_date(date_str)
    if parsed:
        return format_review_date(parsed), parsed
    return date_str.strip(), None
