"""Abstract base class for text-to-speech providers.

This module defines the interface that all TTS providers must implement,
ensuring consistent behavior across different TTS backends.
"""

from abc import ABC, abstractmethod
from typing import ClassVar

from ..config import ProviderConfig
from ..errors import (
    ConfigurationError,
    FatalProviderError,
    ProviderError,
    TransientProviderError,
)
from ..models import ProviderDescriptor, SpeakRequest


def error_for_status(
    provider: str,
    status_code: int | None,
    detail: str,
    original_error: Exception | None = None,
) -> ProviderError:
    """Map an HTTP status from a synthesis API to a typed provider error.

    429 and 5xx are transient; 401/403 and every other 4xx are fatal.
    Unknown status (None) is treated as transient, since it usually means the
    request never got a response.
    """
    if status_code in (401, 403):
        return FatalProviderError(
            f"Authentication failed: {detail}", provider, status_code, original_error
        )
    if status_code == 429:
        return TransientProviderError(
            f"Rate limit exceeded: {detail}", provider, status_code, original_error
        )
    if status_code is None or status_code >= 500:
        return TransientProviderError(
            f"Server error: {detail}", provider, status_code, original_error
        )
    return FatalProviderError(
        f"Request rejected: {detail}", provider, status_code, original_error
    )


class TTSProvider(ABC):
    """Abstract base class for text-to-speech providers.

    All TTS providers must inherit from this class, declare a ``name`` and
    ``priority``, and implement the required methods for synthesizing speech
    and listing voices.

    The constructor validates the provider's config against the config
    class' ``REQUIRED_FIELDS``. A provider instance that exists is therefore
    fully configured; a missing credential never surfaces mid-request.

    Voice Dictionary Structure:
        Each voice returned by list_voices() should follow this structure:
        {
            "id": str,       # Unique identifier for the voice
            "name": str,     # Human-readable name for the voice
            "provider": str  # Name of the provider (e.g., "openai", "system")
        }
    """

    name: ClassVar[str]
    priority: ClassVar[int]

    def __init__(self, config: ProviderConfig) -> None:
        """Validate and store provider configuration.

        Args:
            config: Provider-specific configuration dataclass

        Raises:
            ConfigurationError: If a required field is missing or empty
        """
        for field_name in config.REQUIRED_FIELDS:
            value = getattr(config, field_name, None)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ConfigurationError(
                    f"{self.name} provider requires '{field_name}' to be set",
                    field=field_name,
                )
        self.config = config

    @abstractmethod
    async def synthesize(self, request: SpeakRequest) -> bytes:
        """Convert a speech request to audio bytes.

        Args:
            request: Text and voice parameters; empty voice/model fields
                fall back to this provider's configured defaults

        Returns:
            Audio data as bytes in output_format(request)

        Raises:
            TransientProviderError: If the failure may succeed on retry
            FatalProviderError: If the failure cannot succeed on retry
        """
        pass

    @abstractmethod
    async def list_voices(self) -> list[dict]:
        """Return available voices for this provider.

        Returns:
            List of voice dictionaries, each containing:
            - id: Unique voice identifier
            - name: Human-readable voice name
            - provider: Provider name

        Raises:
            ProviderError: If voice listing fails
        """
        pass

    @property
    def default_voice(self) -> str:
        return ""

    @property
    def default_model(self) -> str:
        return ""

    def voice_for(self, request: SpeakRequest) -> str:
        return request.voice or self.default_voice

    def model_for(self, request: SpeakRequest) -> str:
        return request.model or self.default_model

    def is_available(self) -> bool:
        """Whether this provider can be used in the current environment."""
        return True

    def output_format(self, request: SpeakRequest) -> str:
        """Format of the audio this provider produces for the request."""
        return request.format

    def describe(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            name=self.name,
            priority=self.priority,
            required_fields=tuple(self.config.REQUIRED_FIELDS),
            available=self.is_available(),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"
