"""
Prometheus Metrics Definitions Module - Azure Scheduled Events Exporter

This module defines the Prometheus metrics exposed by the Azure Scheduled
Events exporter.

Metrics:
    - scheduledevent_event: One sample per (event, resource) pair
        Labels: eventID, eventType, resourceType, resource, eventStatus, notBefore
        Values: NotBefore as Unix epoch seconds,
                1 (event has no NotBefore),
                0 (NotBefore could not be parsed)

    - scheduledevent_document_incarnation: Incarnation of the last published document
        Labels: none

    - scheduledevent_api_response_time_seconds: Response time of the last successful fetch
        Labels: none

    - scheduledevent_api_failures_total: Failed fetches
        Labels: error_type (transport, decode)

    - scheduledevent_api_consecutive_failures: Failed fetches since the last success
        Labels: none

The event and incarnation metrics are served by ScheduledEventCollector, which
swaps its whole state in one step so a scrape never sees a partially rebuilt
event list. The exporter health metrics are plain prometheus_client metrics.
"""
import threading
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

from prometheus_client import Counter, Gauge
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

EVENT_METRIC_NAME = 'scheduledevent_event'
DOCUMENT_INCARNATION_METRIC_NAME = 'scheduledevent_document_incarnation'

EVENT_LABELS = ('eventID', 'eventType', 'resourceType', 'resource', 'eventStatus', 'notBefore')

EventLabels = Tuple[str, str, str, str, str, str]

# Response time gauge
scheduledevent_response_time_gauge = Gauge(
    'scheduledevent_api_response_time_seconds',
    'Response time of the last successful Scheduled Events API call'
)

# Counter for tracking failed fetches
scheduledevent_api_failures_counter = Counter(
    'scheduledevent_api_failures_total',
    'Total number of failed Scheduled Events API calls (request failures, timeouts, decode errors)',
    ['error_type']
)

# Consecutive failures since the last successful fetch
scheduledevent_consecutive_failures_gauge = Gauge(
    'scheduledevent_api_consecutive_failures',
    'Number of consecutive failed Scheduled Events API calls since the last success'
)


class ScheduledEventCollector(Collector):
    """
    Serves the event and document incarnation gauges from the latest snapshot.

    Nothing is exported until the first replace(), so a scrape before the
    first successful poll carries no scheduled event series.
    """

    def __init__(self, registry=None):
        self._lock = threading.Lock()
        self._samples: Mapping[EventLabels, float] = MappingProxyType({})
        self._document_incarnation: Optional[int] = None
        if registry is not None:
            registry.register(self)

    def replace(self, samples: Dict[EventLabels, float], document_incarnation: int) -> None:
        """
        Replace all published samples and the document incarnation.

        Args:
            samples: Mapping of event label tuple to gauge value
            document_incarnation: Incarnation of the snapshot the samples came from
        """
        frozen = MappingProxyType(dict(samples))
        with self._lock:
            self._samples = frozen
            self._document_incarnation = document_incarnation

    def samples(self) -> Mapping[EventLabels, float]:
        with self._lock:
            return self._samples

    @property
    def document_incarnation(self) -> Optional[int]:
        with self._lock:
            return self._document_incarnation

    def describe(self) -> Iterable[GaugeMetricFamily]:
        yield GaugeMetricFamily(EVENT_METRIC_NAME, 'Azure ScheduledEvent', labels=EVENT_LABELS)
        yield GaugeMetricFamily(DOCUMENT_INCARNATION_METRIC_NAME,
                                'Azure ScheduledEvent document incarnation')

    def collect(self) -> Iterable[GaugeMetricFamily]:
        with self._lock:
            samples = self._samples
            document_incarnation = self._document_incarnation

        event_family = GaugeMetricFamily(EVENT_METRIC_NAME, 'Azure ScheduledEvent', labels=EVENT_LABELS)
        for labels, value in samples.items():
            event_family.add_metric(list(labels), value)
        yield event_family

        if document_incarnation is not None:
            yield GaugeMetricFamily(DOCUMENT_INCARNATION_METRIC_NAME,
                                    'Azure ScheduledEvent document incarnation',
                                    value=document_incarnation)
