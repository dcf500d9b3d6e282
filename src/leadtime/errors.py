"""Custom exception types for the branch life time metrics collector."""


class LeadTimeError(Exception):
    """Base exception for all recoverable collector errors."""


class ConfigurationError(LeadTimeError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(LeadTimeError):
    """Raised when the GitHub API token is unavailable."""


class UpstreamError(LeadTimeError):
    """Raised when the pull request or rate limit API returns a non-success response."""


class DetailFetchError(LeadTimeError):
    """Raised when the commit list of a single pull request cannot be fetched."""


class MalformedDataError(LeadTimeError):
    """Raised when an upstream payload does not have the expected shape."""


class PersistenceError(LeadTimeError):
    """Raised when the checkpoint file cannot be written."""


class MetricsSinkError(LeadTimeError):
    """Raised when metric points cannot be delivered to the Graphite endpoint."""
