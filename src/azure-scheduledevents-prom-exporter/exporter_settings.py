"""
Exporter Settings Module

Reads the exporter configuration from environment variables.

Environment Variables:
    - API_URL: Scheduled Events endpoint
      (default: http://169.254.169.254/metadata/scheduledevents?api-version=2017-11-01)
    - API_TIMEOUT_SECONDS: Request timeout in seconds (default: 30)
    - API_ERROR_THRESHOLD: Consecutive failed API calls tolerated before the
      exporter exits; 0 or less never exits (default: 0)
    - SCRAPE_INTERVAL_SECONDS: Interval in seconds between API calls (default: 60)
    - METRICS_PORT: Prometheus metrics server port (default: 8080)
    - METRICS_ADDR: Prometheus metrics server bind address (default: 0.0.0.0)
    - DEBUG: Enable debug logging (set to 'true' to enable, default: false/INFO level)
"""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from exporter_errors import ConfigurationError

DEFAULT_API_URL = 'http://169.254.169.254/metadata/scheduledevents?api-version=2017-11-01'

TRUE_VALUES = ('true', '1', 'yes', 'on')


@dataclass(frozen=True)
class ExporterSettings:
    api_url: str = DEFAULT_API_URL
    api_timeout: float = 30.0
    api_error_threshold: int = 0
    scrape_interval: int = 60
    metrics_port: int = 8080
    metrics_addr: str = '0.0.0.0'
    debug: bool = False


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _get_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> ExporterSettings:
    """
    Build ExporterSettings from environment variables.

    Args:
        environ: Mapping to read instead of os.environ

    Returns:
        ExporterSettings

    Raises:
        ConfigurationError: If a variable holds an invalid value
    """
    if environ is None:
        environ = os.environ

    settings = ExporterSettings(
        api_url=environ.get('API_URL') or DEFAULT_API_URL,
        api_timeout=_get_float(environ, 'API_TIMEOUT_SECONDS', 30.0),
        api_error_threshold=_get_int(environ, 'API_ERROR_THRESHOLD', 0),
        scrape_interval=_get_int(environ, 'SCRAPE_INTERVAL_SECONDS', 60),
        metrics_port=_get_int(environ, 'METRICS_PORT', 8080),
        metrics_addr=environ.get('METRICS_ADDR') or '0.0.0.0',
        debug=environ.get('DEBUG', 'false').lower() in TRUE_VALUES,
    )

    if settings.api_timeout <= 0:
        raise ConfigurationError(f"API_TIMEOUT_SECONDS must be positive, got {settings.api_timeout}")
    if settings.scrape_interval <= 0:
        raise ConfigurationError(f"SCRAPE_INTERVAL_SECONDS must be positive, got {settings.scrape_interval}")
    if not 0 < settings.metrics_port < 65536:
        raise ConfigurationError(f"METRICS_PORT must be between 1 and 65535, got {settings.metrics_port}")

    return settings
