"""
Alert dispatch for campaign anomalies.
"""

from .dispatcher import AlertDispatcher
from .history import AlertHistoryStore, InMemoryAlertHistory
from .mailer import EmailPort, SMTPEmailPort
from .schema import AlertRecord, AlertRequest, DispatchResult, EmailMessage, SendResult
from .templates import AlertTemplateRenderer, AlertView, format_metric_value

__all__ = [
    "AlertDispatcher",
    "AlertHistoryStore",
    "InMemoryAlertHistory",
    "EmailPort",
    "SMTPEmailPort",
    "AlertRecord",
    "AlertRequest",
    "DispatchResult",
    "EmailMessage",
    "SendResult",
    "AlertTemplateRenderer",
    "AlertView",
    "format_metric_value",
]
