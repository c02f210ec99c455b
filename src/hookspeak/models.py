"""Speech request/result data models with validation."""

from dataclasses import dataclass

MIN_SPEED = 0.25
MAX_SPEED = 4.0


@dataclass(frozen=True)
class SpeakRequest:
    """Immutable input to a synthesis attempt.

    Args:
        text: Text to convert to speech
        voice: Voice identifier; empty means the provider's configured voice
        model: Model identifier; empty means the provider's configured model
        speed: Speaking rate multiplier (0.25-4.0)
        format: Requested output format (e.g. "mp3", "opus_48000_128", "pcm_16000")
    """

    text: str
    voice: str = ""
    model: str = ""
    speed: float = 1.0
    format: str = "mp3"

    def __post_init__(self) -> None:
        """Validate request fields."""
        if not self.text or not self.text.strip():
            raise ValueError("Text cannot be empty")
        if not MIN_SPEED <= self.speed <= MAX_SPEED:
            raise ValueError(f"speed must be between {MIN_SPEED} and {MAX_SPEED}")
        if not self.format:
            raise ValueError("format cannot be empty")


@dataclass(frozen=True)
class SpeakResult:
    """Uniform result returned to callers of the orchestrator.

    Args:
        audio_bytes: Synthesized or cached audio payload
        cached: True when the audio came from the cache
        provider_used: Name of the provider that produced the audio
        format: Format of the audio payload
        duration_ms_approx: Wall-clock synthesis time; None for cache hits
    """

    audio_bytes: bytes
    cached: bool
    provider_used: str
    format: str = "mp3"
    duration_ms_approx: float | None = None


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of a provider adapter."""

    name: str
    priority: int
    required_fields: tuple[str, ...]
    available: bool
