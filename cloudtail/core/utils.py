from datetime import datetime, timedelta
import re
from typing import List, Optional

from dateutil import parser
from tzlocal import get_localzone


RELATIVE_TIME_RE = re.compile(r'^(\d+)\s*(s|sec|seconds?|m|min|minutes?|h|hours?|d|days?)\s*(ago)?$', re.IGNORECASE)

UNITS = {
    's': 'seconds',
    'm': 'minutes',
    'h': 'hours',
    'd': 'days',
}


def parse_time(value: str, now: datetime = None) -> datetime:
    """
    Parse ``value`` as either a relative time ("5m ago", "2h", "1 day ago") or an
    ISO 8601 timestamp.  Timestamps without a timezone are taken to be in our
    local timezone.

    Raises:
        ValueError: ``value`` is neither
    """
    value = value.strip()
    now = now if now else datetime.now(get_localzone())
    if value.lower() == 'now':
        return now
    match = RELATIVE_TIME_RE.match(value)
    if match:
        amount = int(match.group(1))
        unit = UNITS[match.group(2)[0].lower()]
        return now - timedelta(**{unit: amount})
    try:
        when = parser.isoparse(value)
    except ValueError as e:
        raise ValueError(
            f"Invalid time format: {value}. Use relative (e.g. '5m ago') or ISO 8601 format."
        ) from e
    if when.tzinfo is None:
        when = when.replace(tzinfo=get_localzone())
    return when


def split_names(value: Optional[str]) -> List[str]:
    """
    Split a comma separated list of names, dropping empty entries.
    """
    if not value:
        return []
    return [name.strip() for name in value.split(',') if name.strip()]
