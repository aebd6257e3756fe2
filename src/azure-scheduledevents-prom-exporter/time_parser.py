"""
Timestamp Parsing Module

Parses the NotBefore field of Azure Scheduled Events. The metadata service has
emitted this field in more than one layout across API versions, so parsing
tries a fixed, ordered list of layouts and returns the first match.

Supported Layouts (in order):
    - RFC3339:  2024-01-01T00:00:00Z, 2024-01-01T00:00:00.1234567+02:00
    - RFC1123:  Mon, 01 Jan 2024 00:00:00 GMT
    - RFC822Z:  01 Jan 24 00:00 +0000
    - RFC850:   Monday, 01-Jan-24 00:00:00 GMT

Fractional seconds beyond microseconds are truncated. Layouts ending in a zone
abbreviation (RFC1123, RFC850) accept any abbreviation and are read as UTC.
"""
import re
from datetime import datetime, timezone

from exporter_errors import TimestampParseError

# (name, strptime format, ends with a zone abbreviation)
TIME_FORMATS = (
    ('RFC3339', '%Y-%m-%dT%H:%M:%S%z', False),
    ('RFC3339', '%Y-%m-%dT%H:%M:%S.%f%z', False),
    ('RFC1123', '%a, %d %b %Y %H:%M:%S', True),
    ('RFC822Z', '%d %b %y %H:%M %z', False),
    ('RFC850', '%A, %d-%b-%y %H:%M:%S', True),
)

# strptime's %f stops at six digits
EXCESS_FRACTION = re.compile(r'(\.\d{6})\d+')
ZONE_ABBREVIATION = re.compile(r'^(.*\S) [A-Za-z]+$')


def parse_time(value: str) -> datetime:
    """
    Parse a timestamp string using the first matching known layout.

    Args:
        value: Raw timestamp string

    Returns:
        Timezone-aware datetime

    Raises:
        TimestampParseError: If no layout matches
    """
    truncated = EXCESS_FRACTION.sub(r'\1', value, count=1)
    zone_match = ZONE_ABBREVIATION.match(value)

    for _, time_format, has_zone_name in TIME_FORMATS:
        if has_zone_name:
            if zone_match is None:
                continue
            candidate = zone_match.group(1)
        else:
            candidate = truncated
        try:
            parsed = datetime.strptime(candidate, time_format)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    raise TimestampParseError(value)


def to_unix_seconds(value: str) -> int:
    """Parse a timestamp and return whole Unix epoch seconds."""
    return int(parse_time(value).timestamp())
