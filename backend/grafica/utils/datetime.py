import re
from datetime import date, datetime, timezone
from typing import Any, Optional

LOCALE_FALLBACK = "pt-BR"

_DATE_FORMATS = {"pt-BR": "%d/%m/%Y", "en-US": "%m/%d/%Y"}
_DATETIME_FORMATS = {"pt-BR": "%d/%m/%Y %H:%M", "en-US": "%m/%d/%Y %I:%M %p"}
_BR_DATE_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")


def map_locale(locale: Optional[str] = None) -> str:
    """Collapse any language tag to one of the two supported locales."""
    if not locale:
        return LOCALE_FALLBACK
    return "pt-BR" if locale.strip().lower().startswith("pt") else "en-US"


def _as_utc(d: datetime) -> datetime:
    if d.tzinfo is None:
        return d.replace(tzinfo=timezone.utc)
    return d.astimezone(timezone.utc)


def parse_date_input(value: Any) -> Optional[datetime]:
    """Parse user or backend input into an aware UTC datetime (naive input is taken as UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # epoch milliseconds
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        try:
            return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            pass
        m = _BR_DATE_RE.match(text)
        if m:
            dd, mm, yyyy = (int(g) for g in m.groups())
            try:
                return datetime(yyyy, mm, dd, tzinfo=timezone.utc)
            except ValueError:
                return None
    return None


def format_date(value: Any, locale: Optional[str] = None, fmt: Optional[str] = None) -> str:
    d = parse_date_input(value)
    if d is None:
        return "-"
    return d.strftime(fmt or _DATE_FORMATS[map_locale(locale)])


def format_datetime(value: Any, locale: Optional[str] = None, fmt: Optional[str] = None) -> str:
    d = parse_date_input(value)
    if d is None:
        return "-"
    return d.strftime(fmt or _DATETIME_FORMATS[map_locale(locale)])
