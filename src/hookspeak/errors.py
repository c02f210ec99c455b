"""Custom hookspeak exceptions."""


class HookspeakError(Exception):
    """Base exception for hookspeak errors."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class ConfigurationError(HookspeakError):
    """Exception raised when a provider is constructed with incomplete config.

    Raised at construction time, never at call time, so a misconfigured
    backend is rejected before it can be selected.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.field = field


class ProviderError(HookspeakError):
    """Base exception for failures reported by a synthesis backend."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.provider = provider
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Exception raised for failures that may succeed on retry.

    This typically occurs when:
    - The request timed out
    - Rate limits are exceeded (429 error)
    - API server is unavailable (5xx errors)
    - Network connectivity issues
    """

    pass


class FatalProviderError(ProviderError):
    """Exception raised for failures that cannot succeed on retry.

    This typically occurs when:
    - API key is invalid or lacks permissions (401/403)
    - Request format is invalid (4xx errors other than 429)
    - The local speech command is not installed
    """

    pass


class CacheCorruptionError(HookspeakError):
    """Exception raised for an unreadable or partial cache entry.

    Only used inside the cache store; callers see a cache miss.
    """

    pass


class AllProvidersFailedError(HookspeakError):
    """Exception raised when every candidate provider failed.

    Attributes:
        errors: Terminal error of each attempted provider, keyed by name
    """

    def __init__(self, errors: dict[str, Exception]) -> None:
        if errors:
            details = "; ".join(f"{name}: {error}" for name, error in errors.items())
            message = f"All TTS providers failed ({details})"
        else:
            message = "No TTS provider available"
        super().__init__(message)
        self.errors = errors
