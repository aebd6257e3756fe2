import json

import pytest
import requests

from exporter_errors import DecodeError, TransportError
from scheduledevents_checker import Event, decode_snapshot, fetch_scheduled_events

API_URL = 'http://169.254.169.254/metadata/scheduledevents?api-version=2017-11-01'

DOCUMENT = {
    'DocumentIncarnation': 3,
    'Events': [
        {
            'EventId': 'E1',
            'EventType': 'Reboot',
            'ResourceType': 'VirtualMachine',
            'Resources': ['vm1', 'vm2'],
            'EventStatus': 'Scheduled',
            'NotBefore': 'Mon, 19 Sep 2016 18:29:47 GMT',
        }
    ],
}


class FakeResponse:
    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        return json.loads(self.body)


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, timeout=None, headers=None):
        self.calls.append({'url': url, 'timeout': timeout, 'headers': headers})
        if self.error is not None:
            raise self.error
        return self.response


def test_fetch_sends_metadata_header_and_timeout():
    session = FakeSession(FakeResponse(json.dumps(DOCUMENT)))

    result = fetch_scheduled_events(API_URL, 5, session=session)

    assert session.calls[0]['url'] == API_URL
    assert session.calls[0]['timeout'] == 5
    assert session.calls[0]['headers']['Metadata'] == 'true'
    assert result.snapshot.document_incarnation == 3
    assert result.snapshot.events == (
        Event('E1', 'Reboot', 'VirtualMachine', ('vm1', 'vm2'), 'Scheduled', 'Mon, 19 Sep 2016 18:29:47 GMT'),
    )
    assert result.response_time >= 0


@pytest.mark.parametrize('error', [
    requests.exceptions.ConnectTimeout('timed out'),
    requests.exceptions.ConnectionError('refused'),
])
def test_network_failures_raise_transport_error(error):
    with pytest.raises(TransportError):
        fetch_scheduled_events(API_URL, 5, session=FakeSession(error=error))


def test_http_error_status_raises_transport_error():
    session = FakeSession(FakeResponse('{"error": "bad request"}', status_code=400))
    with pytest.raises(TransportError, match='HTTP 400'):
        fetch_scheduled_events(API_URL, 5, session=session)


def test_invalid_json_raises_decode_error():
    session = FakeSession(FakeResponse('<html>not json</html>'))
    with pytest.raises(DecodeError):
        fetch_scheduled_events(API_URL, 5, session=session)


def test_transport_and_decode_errors_report_their_type():
    assert TransportError('x').error_type == 'transport'
    assert DecodeError('x').error_type == 'decode'


def test_decode_missing_fields_use_empty_values():
    snapshot = decode_snapshot({'Events': [{'EventId': 'E2', 'Resources': None}]})

    assert snapshot.document_incarnation == 0
    assert snapshot.events == (Event('E2', '', '', (), '', ''),)


def test_decode_null_events_is_empty():
    assert decode_snapshot({'DocumentIncarnation': 1, 'Events': None}).events == ()


@pytest.mark.parametrize('document', [
    [],
    {'DocumentIncarnation': '1', 'Events': []},
    {'DocumentIncarnation': True, 'Events': []},
    {'DocumentIncarnation': 1, 'Events': {}},
    {'DocumentIncarnation': 1, 'Events': ['E1']},
    {'DocumentIncarnation': 1, 'Events': [{'EventId': 7}]},
    {'DocumentIncarnation': 1, 'Events': [{'EventId': 'E1', 'Resources': 'vm1'}]},
])
def test_decode_wrong_shape_raises_decode_error(document):
    with pytest.raises(DecodeError):
        decode_snapshot(document)
