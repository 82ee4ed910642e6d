"""Normalisation of feed publish dates."""

import datetime
import re
import time
from datetime import timezone
from typing import Optional, Union

from dateutil import parser

# Timezone abbreviations dateutil does not resolve on its own.
_TIMEZONE_OFFSETS = {
    "PDT": -7 * 3600,
    "PST": -8 * 3600,
    "EDT": -4 * 3600,
    "EST": -5 * 3600,
    "CEST": 2 * 3600,
    "CET": 1 * 3600,
    "AEST": 10 * 3600,
    "AEDT": 11 * 3600,
}

DateInput = Union[str, time.struct_time, datetime.datetime, None]


def parse_date(value: DateInput) -> Optional[datetime.datetime]:
    """Parse a feed date into a timezone-aware UTC datetime.

    Accepts the raw string of a feed, the ``*_parsed`` struct of feedparser
    or a datetime. Naive values are assumed to be UTC. Returns None if the
    value cannot be parsed.
    """
    if value is None or value == "":
        return None

    parsed: Optional[datetime.datetime] = None
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, time.struct_time):
        parsed = datetime.datetime(*value[:6])
    else:
        for kwargs in ({"tzinfos": _TIMEZONE_OFFSETS}, {"ignoretz": True}, {"fuzzy": True}):
            try:
                parsed = parser.parse(value, **kwargs)
                break
            except (ValueError, OverflowError, parser.ParserError):
                continue

        if parsed is None:
            match = re.search(r"(\d{4}-\d{2}-\d{2})[ T](\d{2}:\d{2}:\d{2})", value)
            if match:
                parsed = parser.parse(" ".join(match.groups()))

    if parsed is None:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(value: DateInput) -> Optional[str]:
    """Parse ``value`` and format it as UTC ISO-8601, None if unparseable."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None
