"""
Per-user campaign evaluation.

Ties detection, root-cause analysis and alert dispatch together:

    active campaigns -> AnomalyDetector -> RootCauseAnalyzer -> AlertDispatcher

Each user is evaluated independently; evaluate_users runs users in parallel.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from pydantic import BaseModel, Field

from adsentinel.anomaly import Anomaly, AnomalyDetector, sort_by_severity
from adsentinel.core.config import Config, config
from adsentinel.core.exceptions import EvaluationCancelled
from adsentinel.data.ports import CampaignLister, KPIReader
from adsentinel.market import MarketCalendar
from backend.alerts import AlertDispatcher, DispatchResult, EmailPort
from backend.rootcause import AnalysisContext, RootCauseAnalysis, RootCauseAnalyzer

logger = logging.getLogger(__name__)


class UserEvaluationRequest(BaseModel):
    """
    One user's evaluation job.

    Fields:
    - user_id / user_email / user_name: recipient identity
    - industry: industry key for market event weighting
    - context: root-cause context; defaults to the run time and industry
    - dispatch_alerts: False to detect and analyze without notifying
    """

    user_id: str = Field(..., min_length=1)
    user_email: str = Field(..., min_length=3)
    user_name: Optional[str] = None
    industry: Optional[str] = None
    context: Optional[AnalysisContext] = None
    dispatch_alerts: bool = True


class EvaluationReport(BaseModel):
    """Everything produced for one user, including partial results."""

    user_id: str
    anomalies: List[Anomaly] = Field(default_factory=list)
    analyses: List[RootCauseAnalysis] = Field(default_factory=list)
    dispatch: Optional[DispatchResult] = None
    cancelled: bool = False
    error: Optional[str] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CampaignMonitor:
    """
    Facade over the detection, analysis and alerting components.

    Components default to ones built from the global configuration; pass
    explicit instances to share alert history or override settings.
    """

    def __init__(
        self,
        kpi_reader: KPIReader,
        campaign_lister: CampaignLister,
        email_port: EmailPort,
        settings: Optional[Config] = None,
        detector: Optional[AnomalyDetector] = None,
        analyzer: Optional[RootCauseAnalyzer] = None,
        dispatcher: Optional[AlertDispatcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings or config
        self.clock = clock or _utc_now
        self.campaign_lister = campaign_lister
        self.detector = detector or AnomalyDetector(
            kpi_reader=kpi_reader,
            campaign_lister=campaign_lister,
            detection_config=self.settings.detection,
            trend_config=self.settings.trend,
            clock=self.clock,
        )
        self.analyzer = analyzer or RootCauseAnalyzer(self.settings.rootcause, clock=self.clock)
        self.dispatcher = dispatcher or AlertDispatcher(
            email_port,
            config=self.settings.alerts,
            clock=self.clock,
        )

    def detect_anomalies(self, user_id: str, industry: Optional[str] = None) -> List[Anomaly]:
        return self.detector.detect_anomalies(user_id, industry=industry)

    def detect_campaign_anomalies(
        self,
        campaign_id: str,
        campaign_name: Optional[str] = None,
        industry: Optional[str] = None,
    ) -> List[Anomaly]:
        return self.detector.detect_campaign_anomalies(campaign_id, campaign_name, industry=industry)

    def analyze_root_cause(self, anomaly: Anomaly, context=None) -> RootCauseAnalysis:
        return self.analyzer.analyze_root_cause(anomaly, context)

    def send_alerts(
        self,
        user_id: str,
        user_email: str,
        anomalies: Iterable[Anomaly],
        user_name: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> DispatchResult:
        return self.dispatcher.send_alerts(
            user_id, user_email, anomalies, user_name=user_name, cancel_event=cancel_event
        )

    def evaluate_user(
        self, request: UserEvaluationRequest, cancel_event: Optional[threading.Event] = None
    ) -> EvaluationReport:
        """
        Detect, analyze and dispatch for one user.

        On cancellation the report keeps everything computed so far and
        cancelled is True.
        """
        report = EvaluationReport(user_id=request.user_id)
        now = self.clock()
        calendar = MarketCalendar.for_date(now)
        context = request.context or AnalysisContext(current_date=now, industry=request.industry)

        try:
            self._detect(request, calendar, report, cancel_event)
            self._analyze(context, report, cancel_event)
            if request.dispatch_alerts:
                _raise_if_cancelled(cancel_event)
                report.dispatch = self.dispatcher.send_alerts(
                    request.user_id,
                    request.user_email,
                    report.anomalies,
                    user_name=request.user_name,
                    cancel_event=cancel_event,
                )
                report.cancelled = report.dispatch.cancelled
        except EvaluationCancelled:
            logger.info("Evaluation for user %s cancelled", request.user_id)
            report.cancelled = True

        logger.info(
            "Evaluated user %s: %d anomalies, %d analyses%s",
            request.user_id,
            len(report.anomalies),
            len(report.analyses),
            " (cancelled)" if report.cancelled else "",
        )
        return report

    def evaluate_users(
        self,
        requests: Iterable[UserEvaluationRequest],
        max_workers: int = 4,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[EvaluationReport]:
        """
        Evaluate several users in parallel.

        Reports are returned in request order. A failing user is reported with
        its error and does not affect the others.
        """
        requests = list(requests)
        if not requests:
            return []

        reports: List[EvaluationReport] = []
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="evaluate") as executor:
            futures = [executor.submit(self.evaluate_user, r, cancel_event) for r in requests]
            for request, future in zip(requests, futures):
                try:
                    reports.append(future.result())
                except Exception as exc:
                    logger.exception("Evaluation for user %s failed", request.user_id)
                    reports.append(EvaluationReport(user_id=request.user_id, error=str(exc)))
        return reports

    def _detect(
        self,
        request: UserEvaluationRequest,
        calendar: MarketCalendar,
        report: EvaluationReport,
        cancel_event: Optional[threading.Event],
    ) -> None:
        found: List[Anomaly] = []
        try:
            for campaign in self.campaign_lister.active_campaigns(request.user_id):
                _raise_if_cancelled(cancel_event)
                found.extend(
                    self.detector.detect_campaign_anomalies(
                        campaign.id,
                        campaign_name=campaign.name,
                        industry=request.industry,
                        calendar=calendar,
                    )
                )
        finally:
            report.anomalies = sort_by_severity(found)

    def _analyze(
        self,
        context: AnalysisContext,
        report: EvaluationReport,
        cancel_event: Optional[threading.Event],
    ) -> None:
        for anomaly in report.anomalies:
            _raise_if_cancelled(cancel_event)
            report.analyses.append(self.analyzer.analyze_root_cause(anomaly, context))


def _raise_if_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise EvaluationCancelled("evaluation cancelled")
