from typing import Optional


class HealthSyncError(Exception):
    """Base class for errors raised by healthsync."""


class PayloadValidationError(HealthSyncError):
    """Raised when an ingestion payload is rejected before anything is written."""


class PersistenceError(HealthSyncError):
    """Raised when a store call fails."""

    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(message)
        self.collection = collection


class UnknownMetricKind(HealthSyncError):
    """Raised when a query names a metric kind that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Invalid metric name: {name}")
        self.name = name


class UnknownPeriod(HealthSyncError):
    """Raised when a period class name is not recognised."""

    def __init__(self, name: str):
        super().__init__(f"Invalid period: {name}")
        self.name = name


class InvalidWindow(HealthSyncError, ValueError):
    """Raised when a custom query window is missing its start or ends before it starts."""
