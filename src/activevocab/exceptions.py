"""Application-specific exception classes."""
from typing import Optional


class ActiveVocabError(Exception):
    """Base exception class for ActiveVocab errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class ConfigurationError(ActiveVocabError):
    """Raised when a required setting or credential is missing. Never retried."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)
        self.config_key = config_key


class RemoteServiceError(ActiveVocabError):
    """Raised when a remote generation or speech call fails."""

    def __init__(
        self,
        message: str,
        service_name: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="REMOTE_SERVICE_ERROR", **kwargs)
        self.service_name = service_name
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """Transport failures, rate limits and server errors are worth retrying."""
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class ValidationError(ActiveVocabError):
    """Raised when input or a remote response fails validation."""

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[object] = None, **kwargs):
        super().__init__(message, error_code="VALIDATION_ERROR", **kwargs)
        self.field = field
        self.value = value


class SyncError(ActiveVocabError):
    """Raised when a sync operation against the remote store fails."""

    def __init__(self, message: str, table: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "SYNC_ERROR")
        super().__init__(message, **kwargs)
        self.table = table


class NotAuthenticatedError(SyncError):
    """Raised when a sync operation runs without a signed-in user."""

    def __init__(self, message: str = "Not authenticated", **kwargs):
        super().__init__(message, error_code="NOT_AUTHENTICATED", **kwargs)


class CacheError(ActiveVocabError):
    """Raised when local cache operations fail."""

    def __init__(self, message: str, cache_key: Optional[str] = None, operation: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="CACHE_ERROR", **kwargs)
        self.cache_key = cache_key
        self.operation = operation
