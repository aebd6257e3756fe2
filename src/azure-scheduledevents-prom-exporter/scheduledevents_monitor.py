"""
Scheduled Events Monitoring Orchestration Module

This module runs one poll cycle of the exporter: fetch the Scheduled Events
document, then either publish it as Prometheus samples or hand the failure to
the failure governor.

Classes:
    - ScheduledEventsMonitor: Owns the consecutive failure counter and the
      collector the samples are published to

Functions:
    - event_value: Gauge value of a single event
    - build_event_samples: Fan a snapshot out into one sample per (event, resource)

Process Flow:
    1. Fetch the Scheduled Events document
    2. On failure: increment the consecutive failure counter, then either
       tolerate (log, keep the previous samples) or escalate by raising
       ApiErrorThresholdExceeded once the counter passes API_ERROR_THRESHOLD
    3. On success: reset the counter, build the full sample set and swap it
       into the collector together with the document incarnation

Event Values:
    - NotBefore empty: 1
    - NotBefore parsable: Unix epoch seconds
    - NotBefore unparsable: 0 (and an error log line with the event id)

Events without resources still produce one sample, with resource="".
"""
import logging
import threading
from typing import Callable, Dict

from exporter_errors import ApiErrorThresholdExceeded, FetchError, TimestampParseError
from scheduledevents_checker import Event, FetchResult, Snapshot
from scheduledevents_gauges import (EventLabels, ScheduledEventCollector,
                                    scheduledevent_api_failures_counter,
                                    scheduledevent_consecutive_failures_gauge,
                                    scheduledevent_response_time_gauge)
from time_parser import to_unix_seconds

logger = logging.getLogger(__name__)


def event_value(event: Event) -> float:
    """
    Compute the gauge value of an event from its NotBefore field.

    Args:
        event: Scheduled event

    Returns:
        1 when NotBefore is empty, its Unix epoch seconds when it parses,
        0 when it does not
    """
    if not event.not_before:
        return 1.0

    try:
        return float(to_unix_seconds(event.not_before))
    except TimestampParseError as e:
        logger.error(f"Unable to parse time \"{event.not_before}\" of eventid \"{event.event_id}\": {e}")
        return 0.0


def build_event_samples(snapshot: Snapshot) -> Dict[EventLabels, float]:
    """
    Build the complete scheduledevent_event sample set for a snapshot.

    Args:
        snapshot: Decoded Scheduled Events document

    Returns:
        Mapping of label tuple (eventID, eventType, resourceType, resource,
        eventStatus, notBefore) to gauge value
    """
    samples = {}
    for event in snapshot.events:
        value = event_value(event)
        resources = event.resources or ('',)
        for resource in resources:
            labels = (
                event.event_id,
                event.event_type,
                event.resource_type,
                resource,
                event.event_status,
                event.not_before,
            )
            samples[labels] = value
    return samples


class ScheduledEventsMonitor:
    """
    Runs poll cycles and applies the failure escalation policy.

    Args:
        fetch: Callable returning a FetchResult or raising FetchError
        collector: Collector the samples are published to
        error_threshold: Consecutive failures tolerated; <= 0 tolerates any number
    """

    def __init__(self, fetch: Callable[[], FetchResult], collector: ScheduledEventCollector,
                 error_threshold: int = 0):
        self.fetch = fetch
        self.collector = collector
        self.error_threshold = error_threshold
        self._error_count = 0
        self._error_lock = threading.Lock()
        self._publish_lock = threading.Lock()

    @property
    def error_count(self) -> int:
        with self._error_lock:
            return self._error_count

    def record_success(self) -> None:
        with self._error_lock:
            self._error_count = 0
        scheduledevent_consecutive_failures_gauge.set(0)

    def record_failure(self, error: FetchError) -> None:
        """
        Count a failed fetch and decide whether to tolerate it.

        Args:
            error: The fetch failure

        Raises:
            ApiErrorThresholdExceeded: If the threshold is positive and the
                consecutive failure count now exceeds it
        """
        with self._error_lock:
            self._error_count += 1
            error_count = self._error_count

        scheduledevent_api_failures_counter.labels(error_type=error.error_type).inc()
        scheduledevent_consecutive_failures_gauge.set(error_count)

        if self.error_threshold <= 0 or error_count <= self.error_threshold:
            logger.error(f"Failed API call ({error_count} consecutive): {error}")
            return

        logger.critical(f"Failed API call ({error_count} consecutive, threshold {self.error_threshold}): {error}")
        raise ApiErrorThresholdExceeded(error_count, self.error_threshold, error) from error

    def publish(self, snapshot: Snapshot) -> None:
        """
        Replace all published event samples with those of the snapshot.

        Args:
            snapshot: Decoded Scheduled Events document
        """
        with self._publish_lock:
            samples = build_event_samples(snapshot)
            self.collector.replace(samples, snapshot.document_incarnation)

        logger.debug(f"Published {len(samples)} scheduledevent_event sample(s), "
                     f"document incarnation {snapshot.document_incarnation}")

    def probe_collect(self) -> None:
        """
        Run one poll cycle.

        Raises:
            ApiErrorThresholdExceeded: When the failure governor escalates
        """
        try:
            result = self.fetch()
        except FetchError as e:
            self.record_failure(e)
            return

        self.record_success()
        scheduledevent_response_time_gauge.set(result.response_time)
        self.publish(result.snapshot)

        logger.info(f"Fetched {len(result.snapshot.events)} Azure ScheduledEvents "
                    f"(response time: {result.response_time:.2f}s)")
