"""
Custom exceptions for the campaign anomaly sentinel.

These exceptions provide clear error semantics across the system.
Insufficient data and degenerate statistics are not errors: detectors return
empty results and the statistics toolkit returns zeros. Exceptions are reserved
for malformed inputs, bad configuration and delivery failures.
"""


class SentinelError(Exception):
    """Base exception for all sentinel failures."""
    pass


class AnomalyDetectionError(SentinelError):
    """Raised when anomaly detection cannot run (e.g., a reader failure)."""
    pass


class DataValidationError(SentinelError):
    """Raised when input data fails validation at the boundary."""
    pass


class ConfigurationError(SentinelError):
    """Raised when configuration is invalid or missing."""
    pass


class AlertDeliveryError(SentinelError):
    """Raised when an alert email cannot be delivered."""
    pass


class EvaluationCancelled(SentinelError):
    """Raised when a user evaluation is cancelled before detection finished."""
    pass
