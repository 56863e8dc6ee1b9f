"""
Lenient wire-level coercions shared by the remote catalog schemas.

The catalog API is not strict about types: booleans arrive as `true`, `1`
or `"1"`, identifiers as numbers or strings, and dates as full ISO-8601
timestamps, bare `YYYY-MM-DD` strings, blanks or the literal
"To be announced".
"""

from datetime import date, datetime, time, timezone
from typing import Annotated, Any, Optional

from pydantic import BeforeValidator

from eventsync.core.logging import get_logger

logger = get_logger(__name__)

TBA_MARKERS = {"", "to be announced", "tba", "tbd"}


def coerce_bool(value: Any) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("1", "true", "yes"):
            return True
        if normalized in ("0", "false", "no", ""):
            return False
    raise ValueError(f"cannot interpret {value!r} as a boolean")


def coerce_identifier(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    return value


def parse_wire_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a wire timestamp into an aware UTC datetime.

    Returns None for blanks, TBA markers and strings that match neither the
    full ISO-8601 form nor the date-only form.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if text.lower() in TBA_MARKERS:
            return None
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = datetime.combine(date.fromisoformat(text[:10]), time.min)
            except ValueError:
                logger.warning("unparseable_wire_date", value=value)
                return None
    else:
        raise ValueError(f"cannot interpret {value!r} as a datetime")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


WireBool = Annotated[Optional[bool], BeforeValidator(coerce_bool)]
WireId = Annotated[str, BeforeValidator(coerce_identifier)]
WireDateTime = Annotated[Optional[datetime], BeforeValidator(parse_wire_datetime)]
