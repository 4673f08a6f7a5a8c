from datetime import date, datetime
from typing import Any

# Day-first for ambiguous numeric dates; four-digit years are tried before two-digit ones.
DATE_FORMATS_TO_TRY = (
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%d/%m/%y",
    "%d.%m.%y",
    "%d-%m-%y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%d %b %y",
)


def parse_date(value: Any) -> date | None:
    """Parse a calendar date as written. Returns None when the value is not a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    for fmt in DATE_FORMATS_TO_TRY:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None
