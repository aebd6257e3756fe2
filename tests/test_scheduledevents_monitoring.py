from types import SimpleNamespace

import pytest
from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.background import BackgroundScheduler
from prometheus_client import CollectorRegistry

import scheduledevents_monitoring
from exporter_errors import ApiErrorThresholdExceeded, TransportError
from exporter_settings import ExporterSettings
from scheduledevents_monitoring import EscalationWatcher, schedule_tasks


class FakeScheduler:
    def __init__(self):
        self.listeners = []
        self.shutdown_calls = []

    def add_listener(self, callback, mask):
        self.listeners.append((callback, mask))

    def shutdown(self, wait=True):
        self.shutdown_calls.append(wait)


def test_schedule_tasks_adds_single_instance_interval_job():
    scheduler = BackgroundScheduler()
    monitor = SimpleNamespace(probe_collect=lambda: None)

    schedule_tasks(scheduler, monitor, interval_seconds=15)

    job = scheduler.get_job('probe_collect')
    assert job.max_instances == 1
    assert job.coalesce is True
    assert job.trigger.interval.total_seconds() == 15


def test_watcher_stops_scheduler_on_escalation():
    scheduler = FakeScheduler()
    watcher = EscalationWatcher(scheduler)
    error = ApiErrorThresholdExceeded(3, 2, TransportError('down'))

    callback, mask = scheduler.listeners[0]
    assert mask == EVENT_JOB_ERROR
    callback(SimpleNamespace(exception=error))
    callback(SimpleNamespace(exception=error))

    assert watcher.error is error
    assert scheduler.shutdown_calls == [False]


def test_watcher_ignores_other_job_errors():
    scheduler = FakeScheduler()
    watcher = EscalationWatcher(scheduler)

    scheduler.listeners[0][0](SimpleNamespace(exception=RuntimeError('boom')))

    assert watcher.error is None
    assert scheduler.shutdown_calls == []


def test_main_exits_when_scheduled_poll_escalates(monkeypatch):
    calls = []

    def failing_fetch(api_url, timeout, session=None):
        calls.append(api_url)
        raise TransportError('metadata service unreachable')

    settings = ExporterSettings(api_error_threshold=1, scrape_interval=1)
    monkeypatch.setattr(scheduledevents_monitoring, 'load_settings', lambda: settings)
    monkeypatch.setattr(scheduledevents_monitoring, 'start_http_server', lambda *args, **kwargs: None)
    monkeypatch.setattr(scheduledevents_monitoring, 'fetch_scheduled_events', failing_fetch)
    monkeypatch.setattr(scheduledevents_monitoring, 'REGISTRY', CollectorRegistry())

    with pytest.raises(ApiErrorThresholdExceeded) as excinfo:
        scheduledevents_monitoring.main()

    # initial poll is tolerated, the first scheduled poll escalates
    assert len(calls) == 2
    assert excinfo.value.error_count == 2
    assert 'metadata service unreachable' in str(excinfo.value)
