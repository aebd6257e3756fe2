"""
Scheduled Events Fetching Module

This module reads the Azure Instance Metadata Service (IMDS) Scheduled Events
document and decodes it into a Snapshot.

Endpoint:
    GET http://169.254.169.254/metadata/scheduledevents?api-version=...
    The metadata service rejects requests without the "Metadata: true" header.

Document Format:
    {
        "DocumentIncarnation": 2,
        "Events": [
            {
                "EventId": "C7061BAC-AFDC-4513-B24B-AA5F13A16123",
                "EventType": "Reboot",
                "ResourceType": "VirtualMachine",
                "Resources": ["myvm"],
                "EventStatus": "Scheduled",
                "NotBefore": "Mon, 19 Sep 2016 18:29:47 GMT"
            }
        ]
    }

Decoding is best-effort: missing keys fall back to empty values, but a value of
the wrong type fails the whole document.

Error Handling:
    - Connection failures, timeouts and HTTP error statuses raise TransportError
    - Non-JSON bodies and unexpected shapes raise DecodeError
    - No retries; the caller's failure governor decides what a failure means
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests

from exporter_errors import DecodeError, TransportError

logger = logging.getLogger(__name__)

METADATA_HEADERS = {
    'Metadata': 'true',
    'User-Agent': 'AzureScheduledEventsExporter/1.0',
}


@dataclass(frozen=True)
class Event:
    event_id: str
    event_type: str
    resource_type: str
    resources: Tuple[str, ...]
    event_status: str
    not_before: str


@dataclass(frozen=True)
class Snapshot:
    document_incarnation: int
    events: Tuple[Event, ...]


@dataclass(frozen=True)
class FetchResult:
    snapshot: Snapshot
    response_time: float


def _string_field(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise DecodeError(f"Field '{key}' must be a string, got {type(value).__name__}")
    return value


def decode_event(data: Any) -> Event:
    """
    Decode a single entry of the Events array.

    Raises:
        DecodeError: If the entry is not an object or a field has the wrong type
    """
    if not isinstance(data, dict):
        raise DecodeError(f"Event must be an object, got {type(data).__name__}")

    resources = data.get('Resources')
    if resources is None:
        resources = []
    if not isinstance(resources, list) or not all(isinstance(r, str) for r in resources):
        raise DecodeError("Field 'Resources' must be a list of strings")

    return Event(
        event_id=_string_field(data, 'EventId'),
        event_type=_string_field(data, 'EventType'),
        resource_type=_string_field(data, 'ResourceType'),
        resources=tuple(resources),
        event_status=_string_field(data, 'EventStatus'),
        not_before=_string_field(data, 'NotBefore'),
    )


def decode_snapshot(data: Any) -> Snapshot:
    """
    Decode a parsed Scheduled Events document.

    Args:
        data: Result of JSON-decoding the response body

    Returns:
        Snapshot with the document incarnation and events in document order

    Raises:
        DecodeError: If the document does not match the expected shape
    """
    if not isinstance(data, dict):
        raise DecodeError(f"Document must be an object, got {type(data).__name__}")

    incarnation = data.get('DocumentIncarnation')
    if incarnation is None:
        incarnation = 0
    # bool is an int subclass but never a valid incarnation
    if isinstance(incarnation, bool) or not isinstance(incarnation, int):
        raise DecodeError("Field 'DocumentIncarnation' must be an integer")

    events = data.get('Events')
    if events is None:
        events = []
    if not isinstance(events, list):
        raise DecodeError("Field 'Events' must be a list")

    return Snapshot(
        document_incarnation=incarnation,
        events=tuple(decode_event(event) for event in events),
    )


def fetch_scheduled_events(api_url: str, timeout: float,
                           session: Optional[requests.Session] = None) -> FetchResult:
    """
    Fetch and decode the Scheduled Events document.

    Args:
        api_url: Scheduled Events endpoint URL
        timeout: Request timeout in seconds
        session: Optional requests session (a new one is used per call otherwise)

    Returns:
        FetchResult with the decoded snapshot and the API response time

    Raises:
        TransportError: On connection errors, timeouts and HTTP error statuses
        DecodeError: On invalid JSON or an unexpected document shape
    """
    logger.debug(f"Fetching scheduled events from {api_url}")

    http = session if session is not None else requests.Session()
    try:
        start_time = time.time()
        try:
            response = http.get(api_url, timeout=timeout, headers=METADATA_HEADERS)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Request timeout after {timeout}s: {e}") from e
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else 0
            raise TransportError(f"HTTP {status_code}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request failed: {e}") from e
        response_time = time.time() - start_time

        try:
            data = response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON response: {e}") from e
    finally:
        if session is None:
            http.close()

    snapshot = decode_snapshot(data)
    logger.debug(f"Scheduled events API responded in {response_time:.2f}s "
                 f"(incarnation {snapshot.document_incarnation}, {len(snapshot.events)} event(s))")
    return FetchResult(snapshot=snapshot, response_time=response_time)
