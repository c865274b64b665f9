"""
Core module: Configuration, logging, and exception handling.
"""

from .config import AlertConfig, Config, DetectionConfig, RootCauseConfig, TrendConfig, config
from .exceptions import (
    AlertDeliveryError,
    AnomalyDetectionError,
    ConfigurationError,
    DataValidationError,
    EvaluationCancelled,
    SentinelError,
)
from .logging_config import setup_logging

__all__ = [
    "Config",
    "config",
    "TrendConfig",
    "DetectionConfig",
    "RootCauseConfig",
    "AlertConfig",
    "setup_logging",
    "SentinelError",
    "AnomalyDetectionError",
    "DataValidationError",
    "ConfigurationError",
    "AlertDeliveryError",
    "EvaluationCancelled",
]
