"""
Exporter Error Types

Exceptions raised by the Azure Scheduled Events exporter.

Hierarchy:
    ExporterError
      - FetchError: a poll of the metadata endpoint produced no snapshot
          - TransportError: network failure, timeout or HTTP error status
          - DecodeError: body is not JSON or does not match the document shape
      - TimestampParseError: a NotBefore value matched none of the known layouts
      - ApiErrorThresholdExceeded: consecutive fetch failures passed the threshold
      - ConfigurationError: an environment variable holds an invalid value

Fetch errors are only ever handled by the failure governor in
scheduledevents_monitor. TimestampParseError never leaves the metric publisher.
"""


class ExporterError(Exception):
    """Base class for all exporter errors."""


class FetchError(ExporterError):
    """Base class for errors that make a poll cycle fail."""

    error_type = 'unknown'


class TransportError(FetchError):
    error_type = 'transport'


class DecodeError(FetchError):
    error_type = 'decode'


class TimestampParseError(ExporterError, ValueError):
    def __init__(self, value):
        super().__init__(f"Unable to parse time \"{value}\"")
        self.value = value


class ApiErrorThresholdExceeded(ExporterError):
    """
    Raised when consecutive fetch failures exceed API_ERROR_THRESHOLD.

    Args:
        error_count: Consecutive failures counted when the threshold was passed
        threshold: Configured threshold
        cause: The fetch error that triggered escalation
    """

    def __init__(self, error_count, threshold, cause):
        super().__init__(
            f"API error threshold exceeded ({error_count} consecutive failures, "
            f"threshold {threshold}): {cause}"
        )
        self.error_count = error_count
        self.threshold = threshold
        self.cause = cause


class ConfigurationError(ExporterError):
    pass
