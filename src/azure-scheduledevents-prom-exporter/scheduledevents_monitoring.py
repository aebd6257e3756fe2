"""
Azure Scheduled Events Prometheus Exporter - Main Entry Point

This exporter polls the Azure Instance Metadata Service Scheduled Events
endpoint and exposes pending maintenance events (reboots, redeploys, freezes,
preemptions) as Prometheus metrics.

Key Features:
    - One scheduledevent_event sample per affected resource of every event
    - Document incarnation, API response time and failure metrics
    - Stale events disappear as soon as a newer document no longer lists them
    - Exits once consecutive API failures pass API_ERROR_THRESHOLD, so the
      container orchestrator restarts it instead of serving stale data forever

Monitoring Schedule:
    - Initial poll executes on service startup
    - Subsequent polls run every SCRAPE_INTERVAL_SECONDS (default: 60)
    - Uses APScheduler; a poll still running when the next one is due causes
      that tick to be skipped

The exporter exposes metrics via Prometheus on port 8080 (configurable via
METRICS_PORT). See exporter_settings for all environment variables.

Functions:
    - configure_logging: Sets up root logging
    - schedule_tasks: Configures APScheduler jobs
    - main: Entry point that starts metrics server and scheduler
"""
import logging

import requests
from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger
from prometheus_client import REGISTRY, start_http_server

from exporter_errors import ApiErrorThresholdExceeded
from exporter_settings import load_settings
from scheduledevents_checker import fetch_scheduled_events
from scheduledevents_gauges import ScheduledEventCollector
from scheduledevents_monitor import ScheduledEventsMonitor

logger = logging.getLogger(__name__)


def configure_logging(debug=False):
    """
    Configure root logging.

    Args:
        debug: Log at DEBUG level instead of INFO
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


class EscalationWatcher:
    """
    Stops the scheduler when a poll job escalates.

    APScheduler runs jobs on worker threads and only logs their exceptions,
    so escalation has to be carried back to the main thread explicitly.
    """

    def __init__(self, scheduler):
        self.scheduler = scheduler
        self.error = None
        scheduler.add_listener(self.on_job_error, EVENT_JOB_ERROR)

    def on_job_error(self, event):
        if not isinstance(event.exception, ApiErrorThresholdExceeded):
            return
        if self.error is None:
            self.error = event.exception
            logger.critical(f"Stopping scheduler: {event.exception}")
            self.scheduler.shutdown(wait=False)


def schedule_tasks(scheduler, monitor, interval_seconds=60):
    """
    Schedule monitoring tasks using APScheduler.

    Args:
        scheduler: APScheduler scheduler instance
        monitor: ScheduledEventsMonitor whose poll cycle is scheduled
        interval_seconds: Interval in seconds between polls (default: 60)
    """
    scheduler.add_job(
        monitor.probe_collect,
        IntervalTrigger(seconds=interval_seconds),
        id='probe_collect',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    logger.info("Scheduled tasks:")
    logger.info(f"  - Scheduled events polling: Every {interval_seconds} seconds")


def main():
    """
    Main entry point for the exporter.
    """
    settings = load_settings()
    configure_logging(settings.debug)

    logger.info("Starting Azure Scheduled Events Prometheus Exporter...")
    logger.info(f"Logging level: {'DEBUG' if settings.debug else 'INFO'}")
    logger.info(f"API URL: {settings.api_url} (timeout: {settings.api_timeout}s)")
    logger.info(f"API error threshold: {settings.api_error_threshold or 'unlimited'}")

    collector = ScheduledEventCollector(REGISTRY)

    # Start Prometheus metrics server
    start_http_server(settings.metrics_port, addr=settings.metrics_addr)
    logger.info(f"Prometheus metrics server started on {settings.metrics_addr}:{settings.metrics_port}")

    session = requests.Session()
    monitor = ScheduledEventsMonitor(
        fetch=lambda: fetch_scheduled_events(settings.api_url, settings.api_timeout, session=session),
        collector=collector,
        error_threshold=settings.api_error_threshold
    )

    scheduler = BlockingScheduler()
    schedule_tasks(scheduler, monitor, settings.scrape_interval)
    watcher = EscalationWatcher(scheduler)

    logger.info("Executing initial poll...")
    monitor.probe_collect()

    logger.info("Starting scheduler...")
    try:
        scheduler.start()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        scheduler.shutdown()
        logger.info("Scheduler stopped")
    finally:
        session.close()

    if watcher.error is not None:
        raise watcher.error


if __name__ == "__main__":
    main()
