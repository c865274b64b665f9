"""
Unit tests for alert dispatch: filtering, rate limiting, dedup and delivery.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from pydantic import ValidationError

from adsentinel.anomaly.schema import AnomalySeverity, MetricName
from adsentinel.core.config import AlertConfig
from backend.alerts import AlertDispatcher, EmailPort, InMemoryAlertHistory, SendResult

SIX_METRICS = [
    MetricName.CPA,
    MetricName.ROAS,
    MetricName.CONVERSIONS,
    MetricName.SPEND,
    MetricName.CPC,
    MetricName.CTR,
]


@pytest.fixture
def history():
    return InMemoryAlertHistory()


@pytest.fixture
def dispatcher(email_port, history, clock):
    with AlertDispatcher(email_port, config=AlertConfig(), history=history, clock=clock) as d:
        yield d


def test_sends_alert_and_records_history(dispatcher, email_port, history, make_anomaly):
    anomaly = make_anomaly()
    result = dispatcher.send_alerts("user-1", "owner@example.com", [anomaly], user_name="Dana")

    assert result.sent == [anomaly]
    assert result.skipped == []
    assert result.errors == []
    assert len(email_port.messages) == 1
    assert email_port.messages[0].to == "owner@example.com"
    assert "Hello Dana," in email_port.messages[0].html
    assert [r.metric for r in history.records("camp-1")] == [MetricName.CPA]


def test_duplicate_metric_is_skipped(dispatcher, email_port, make_anomaly):
    first = make_anomaly(metric=MetricName.CPA)
    repeat = make_anomaly(metric=MetricName.CPA, anomaly_id="anomaly_camp-1_cpa_zscore_2")

    result = dispatcher.send_alerts("user-1", "owner@example.com", [first, repeat])

    assert len(result.sent) == 1
    assert len(result.skipped) == 1
    assert len(email_port.messages) == 1


def test_dedup_spans_runs_until_window_expires(dispatcher, clock, make_anomaly):
    assert len(dispatcher.send_alerts("user-1", "owner@example.com", [make_anomaly()]).sent) == 1

    clock.advance(hours=23)
    assert dispatcher.send_alerts("user-1", "owner@example.com", [make_anomaly()]).sent == []

    clock.advance(hours=2)
    assert len(dispatcher.send_alerts("user-1", "owner@example.com", [make_anomaly()]).sent) == 1


def test_rate_limit_per_campaign(dispatcher, email_port, make_anomaly):
    anomalies = [make_anomaly(metric=m, severity=AnomalySeverity.CRITICAL) for m in SIX_METRICS]
    result = dispatcher.send_alerts("user-1", "owner@example.com", anomalies)

    assert len(result.sent) == 5
    assert result.skipped == [anomalies[-1]]
    assert len(email_port.messages) == 5


def test_rate_limit_is_per_campaign(dispatcher, make_anomaly):
    anomalies = [make_anomaly(metric=m) for m in SIX_METRICS]
    anomalies.append(make_anomaly(metric=MetricName.CPA, campaign_id="camp-2"))

    result = dispatcher.send_alerts("user-1", "owner@example.com", anomalies)

    assert len(result.sent) == 6
    assert result.sent[-1].campaign_id == "camp-2"


def test_severity_filter(email_port, clock, make_anomaly):
    info = make_anomaly(metric=MetricName.ROAS, severity=AnomalySeverity.INFO)
    warning = make_anomaly(metric=MetricName.CTR, severity=AnomalySeverity.WARNING)
    critical = make_anomaly(metric=MetricName.CPA, severity=AnomalySeverity.CRITICAL)

    with AlertDispatcher(email_port, config=AlertConfig(), clock=clock) as default:
        result = default.send_alerts("user-1", "owner@example.com", [info, warning, critical])
    assert result.sent == [warning, critical]
    assert result.skipped == [info]

    with AlertDispatcher(email_port, config=AlertConfig(minimum_severity="critical"), clock=clock) as strict:
        result = strict.send_alerts("user-1", "owner@example.com", [info, warning, critical])
    assert result.sent == [critical]


def test_disabled_email_skips_without_recording(email_port, history, clock, make_anomaly):
    config = AlertConfig(enable_email_alerts=False)
    with AlertDispatcher(email_port, config=config, history=history, clock=clock) as dispatcher:
        result = dispatcher.send_alerts("user-1", "owner@example.com", [make_anomaly()])

    assert result.sent == []
    assert len(result.skipped) == 1
    assert email_port.messages == []
    assert history.records("camp-1") == []


def test_failed_send_is_reported_and_retried_later(dispatcher, email_port, history, make_anomaly):
    anomaly = make_anomaly()
    email_port.fail_with = "SMTP down"

    result = dispatcher.send_alerts("user-1", "owner@example.com", [anomaly])
    assert result.sent == []
    assert result.skipped == [anomaly]
    assert result.errors == [f"Failed to send alert for {anomaly.id}: SMTP down"]
    assert history.records("camp-1") == []

    email_port.fail_with = None
    assert dispatcher.send_alerts("user-1", "owner@example.com", [anomaly]).sent == [anomaly]


def test_raising_port_does_not_abort_batch(dispatcher, email_port, make_anomaly):
    email_port.raise_with = RuntimeError("connection reset")
    anomalies = [make_anomaly(metric=MetricName.CPA), make_anomaly(metric=MetricName.ROAS)]

    result = dispatcher.send_alerts("user-1", "owner@example.com", anomalies)

    assert result.sent == []
    assert len(result.errors) == 2
    assert "connection reset" in result.errors[0]


@pytest.mark.slow
def test_send_timeout(email_port, clock, make_anomaly):
    email_port.delay = 0.5
    anomaly = make_anomaly()
    with AlertDispatcher(email_port, config=AlertConfig(send_timeout_seconds=0.05), clock=clock) as dispatcher:
        result = dispatcher.send_alerts("user-1", "owner@example.com", [anomaly])

    assert result.sent == []
    assert result.errors == [f"Failed to send alert for {anomaly.id}: send timed out after 0.05s"]


def test_cancelled_dispatch_sends_nothing(dispatcher, email_port, make_anomaly):
    cancel = threading.Event()
    cancel.set()
    anomalies = [make_anomaly(metric=MetricName.CPA), make_anomaly(metric=MetricName.ROAS)]

    result = dispatcher.send_alerts("user-1", "owner@example.com", anomalies, cancel_event=cancel)

    assert result.cancelled
    assert result.sent == []
    assert result.skipped == anomalies
    assert email_port.messages == []


def test_invalid_request_rejected(dispatcher, make_anomaly):
    with pytest.raises(ValidationError):
        dispatcher.send_alerts("user-1", "not-an-email", [make_anomaly()])
    with pytest.raises(ValidationError):
        dispatcher.send_alerts("", "owner@example.com", [make_anomaly()])


def test_concurrent_runs_send_once(dispatcher, email_port, make_anomaly):
    anomaly = make_anomaly()

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(
            pool.map(lambda _: dispatcher.send_alerts("user-1", "owner@example.com", [anomaly]), range(4))
        )

    assert sum(len(r.sent) for r in results) == 1
    assert len(email_port.messages) == 1


def test_campaign_locks_are_released_after_dispatch(dispatcher, history, email_port, make_anomaly):
    email_port.delay = 0.01
    anomalies = [make_anomaly(campaign_id=f"camp-{i}") for i in range(10)]

    with ThreadPoolExecutor(max_workers=4) as pool:
        list(pool.map(lambda a: dispatcher.send_alerts("user-1", "owner@example.com", [a]), anomalies * 2))

    assert len(email_port.messages) == 10
    assert history._campaign_locks == {}


def test_campaign_lock_blocks_other_threads_until_released(history):
    entered = threading.Event()
    attempting = threading.Event()
    release = threading.Event()
    order = []

    def holder():
        with history.campaign_lock("camp-1"):
            entered.set()
            release.wait(1.0)
            order.append("holder")

    def waiter():
        entered.wait(1.0)
        attempting.set()
        with history.campaign_lock("camp-1"):
            order.append("waiter")

    threads = [threading.Thread(target=holder), threading.Thread(target=waiter)]
    for t in threads:
        t.start()
    attempting.wait(1.0)
    time.sleep(0.05)
    assert order == []
    release.set()
    for t in threads:
        t.join(2.0)

    assert order == ["holder", "waiter"]
    assert history._campaign_locks == {}


def test_clear_history(dispatcher, history, make_anomaly):
    dispatcher.send_alerts("user-1", "owner@example.com", [make_anomaly()])
    dispatcher.clear_history()

    assert history.records("camp-1") == []
    assert len(dispatcher.send_alerts("user-1", "owner@example.com", [make_anomaly()]).sent) == 1


def test_cancel_mid_dispatch_keeps_sent_alerts(history, clock, make_anomaly):
    cancel = threading.Event()

    class CancelAfterFirstSend(EmailPort):
        def __init__(self):
            self.sent = []

        def send(self, message):
            self.sent.append(message)
            cancel.set()
            return SendResult(success=True)

    port = CancelAfterFirstSend()
    anomalies = [make_anomaly(metric=m) for m in SIX_METRICS[:3]]
    with AlertDispatcher(port, config=AlertConfig(), history=history, clock=clock) as dispatcher:
        result = dispatcher.send_alerts("user-1", "owner@example.com", anomalies, cancel_event=cancel)

    assert result.cancelled
    assert result.sent == anomalies[:1]
    assert result.skipped == anomalies[1:]
    assert len(port.sent) == 1
    assert len(history.records("camp-1")) == 1
