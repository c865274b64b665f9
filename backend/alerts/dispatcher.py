"""
Alert dispatcher.

Decides which anomalies of one user deserve a notification and delivers them:

    severity filter -> rate limit -> dedup -> render -> send (bounded) -> record

Delivery failures never abort the batch; they are reported per anomaly in
DispatchResult.errors.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple

from adsentinel.anomaly.schema import Anomaly, AnomalySeverity, severity_rank
from adsentinel.core.config import AlertConfig, config
from adsentinel.core.exceptions import AlertDeliveryError

from .history import AlertHistoryStore, InMemoryAlertHistory
from .mailer import EmailPort
from .schema import AlertRecord, AlertRequest, DispatchResult, EmailMessage, SendResult
from .templates import AlertTemplateRenderer, AlertView

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW = timedelta(hours=24)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AlertDispatcher:
    """
    Rate-limited, deduplicated alert delivery.

    Rules:
    - Only anomalies at or above minimum_severity are alertable.
    - A campaign gets at most max_alerts_per_campaign_per_day alerts in any
      trailing 24 hours.
    - A (campaign, metric) pair alerts at most once per deduplication window;
      skipped repeats do not extend the window.
    """

    def __init__(
        self,
        email_port: EmailPort,
        config: Optional[AlertConfig] = None,
        history: Optional[AlertHistoryStore] = None,
        renderer: Optional[AlertTemplateRenderer] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_send_workers: int = 4,
    ) -> None:
        self.email_port = email_port
        self.config = config or _default_config()
        self.history = history or InMemoryAlertHistory()
        self.renderer = renderer or AlertTemplateRenderer(
            brand_name=self.config.brand_name,
            dashboard_url=self.config.dashboard_url,
        )
        self.clock = clock or _utc_now
        self._executor = ThreadPoolExecutor(max_workers=max_send_workers, thread_name_prefix="alert-send")

    def send_alerts(
        self,
        user_id: str,
        user_email: str,
        anomalies: Iterable[Anomaly],
        user_name: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> DispatchResult:
        """
        Dispatch alerts for one user's anomalies.

        Args:
            user_id: Owner of the campaigns.
            user_email: Recipient address.
            anomalies: Anomalies to consider, in priority order.
            user_name: Optional greeting name.
            cancel_event: When set, remaining anomalies are skipped unsent.

        Returns:
            DispatchResult with sent, skipped and errors.

        Raises:
            pydantic.ValidationError: if the request is malformed.
        """
        request = AlertRequest(
            user_id=user_id,
            user_email=user_email,
            user_name=user_name,
            anomalies=list(anomalies),
        )
        result = DispatchResult()

        alertable, filtered = self._filter_by_severity(request.anomalies)
        result.skipped.extend(filtered)

        for index, anomaly in enumerate(alertable):
            if cancel_event is not None and cancel_event.is_set():
                remaining = alertable[index:]
                result.skipped.extend(remaining)
                result.cancelled = True
                logger.info("Dispatch for user %s cancelled; %d alerts not sent", request.user_id, len(remaining))
                break
            self._dispatch_one(request, anomaly, result)

        logger.info(
            "Dispatch for user %s: %d sent, %d skipped, %d errors",
            request.user_id,
            len(result.sent),
            len(result.skipped),
            len(result.errors),
        )
        return result

    def clear_history(self) -> None:
        self.history.clear()

    def close(self) -> None:
        """Release the send workers. In-flight sends are allowed to finish."""
        self._executor.shutdown(wait=False)

    def __enter__(self) -> "AlertDispatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _filter_by_severity(self, anomalies: List[Anomaly]) -> Tuple[List[Anomaly], List[Anomaly]]:
        threshold = severity_rank(AnomalySeverity(self.config.minimum_severity))
        alertable = [a for a in anomalies if severity_rank(a.severity) <= threshold]
        filtered = [a for a in anomalies if severity_rank(a.severity) > threshold]
        return alertable, filtered

    def _dispatch_one(self, request: AlertRequest, anomaly: Anomaly, result: DispatchResult) -> None:
        with self.history.campaign_lock(anomaly.campaign_id):
            reason = self._skip_reason(anomaly)
            if reason is not None:
                logger.debug("Skipping alert %s: %s", anomaly.id, reason)
                result.skipped.append(anomaly)
                return

            if not self.config.enable_email_alerts:
                logger.debug("Email alerts disabled; skipping %s", anomaly.id)
                result.skipped.append(anomaly)
                return

            try:
                self._deliver(request, anomaly)
            except AlertDeliveryError as exc:
                logger.warning("Alert delivery failed for %s: %s", anomaly.id, exc)
                result.errors.append(f"Failed to send alert for {anomaly.id}: {exc}")
                result.skipped.append(anomaly)
                return

            result.sent.append(anomaly)
            self.history.add(
                AlertRecord(
                    campaign_id=anomaly.campaign_id,
                    metric=anomaly.metric,
                    severity=anomaly.severity,
                    timestamp=self.clock(),
                )
            )

    def _skip_reason(self, anomaly: Anomaly) -> Optional[str]:
        now = self.clock()
        window = timedelta(hours=self.config.deduplication_window_hours)
        records = self.history.prune(anomaly.campaign_id, now - window)

        last_day = [r for r in records if r.timestamp > now - RATE_LIMIT_WINDOW]
        if len(last_day) >= self.config.max_alerts_per_campaign_per_day:
            return "rate limit reached"

        if any(r.metric == anomaly.metric for r in records):
            return "duplicate within deduplication window"
        return None

    def _deliver(self, request: AlertRequest, anomaly: Anomaly) -> None:
        view = AlertView.from_anomaly(anomaly, request.user_name)
        message = EmailMessage(
            to=request.user_email,
            subject=self.renderer.subject(view),
            html=self.renderer.html(view),
        )

        future = self._executor.submit(self.email_port.send, message)
        timeout = self.config.send_timeout_seconds
        try:
            outcome = future.result(timeout=timeout)
        except FutureTimeoutError:
            future.add_done_callback(lambda f: self._log_late_send(anomaly.id, f))
            raise AlertDeliveryError(f"send timed out after {timeout:g}s") from None
        except Exception as exc:
            raise AlertDeliveryError(str(exc) or type(exc).__name__) from exc

        if not isinstance(outcome, SendResult) or not outcome.success:
            error = getattr(outcome, "error", None)
            raise AlertDeliveryError(error or "Failed to send email")

    @staticmethod
    def _log_late_send(anomaly_id: str, future: Future) -> None:
        if future.cancelled():
            logger.warning("Timed-out send for %s was cancelled", anomaly_id)
            return
        error = future.exception()
        if error is not None:
            logger.warning("Timed-out send for %s finished with error: %s", anomaly_id, error)
            return
        logger.info("Timed-out send for %s finished late: %s", anomaly_id, future.result())


def _default_config() -> AlertConfig:
    return config.alerts
