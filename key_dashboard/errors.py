class KeyDashboardError(Exception):
    """Base error for the key dashboard."""


class ValidationError(KeyDashboardError):
    """Request payload rejected before touching the backend."""


class ConfigurationError(KeyDashboardError):
    """Backend credentials are missing."""


class BackendError(KeyDashboardError):
    """The persistence backend failed or returned an unusable row."""


class RecordNotFoundError(BackendError):
    """No row matched the requested id."""


class ApiRequestError(KeyDashboardError):
    """The key service answered with a failure or an unreadable body."""
