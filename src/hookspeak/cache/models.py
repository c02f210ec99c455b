"""Data models for cache storage."""

from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

# Format family prefix -> payload file extension
EXTENSION_FAMILIES = {
    "mp3": ".mp3",
    "opus": ".opus",
    "pcm": ".wav",
    "ulaw": ".wav",
    "alaw": ".wav",
    "wav": ".wav",
}
DEFAULT_EXTENSION = ".mp3"
PAYLOAD_EXTENSIONS = frozenset(EXTENSION_FAMILIES.values())

DEFAULT_MAX_SIZE_BYTES = 100 * 1024 * 1024
DEFAULT_MAX_AGE_MS = 7 * 24 * 60 * 60 * 1000
DEFAULT_MAX_ENTRIES = 1000


def extension_for_format(audio_format: str) -> str:
    """Map an output format to the payload file extension.

    Formats are matched by family prefix, so ``mp3_44100_128`` maps to
    ``.mp3`` and ``pcm_16000`` to ``.wav``. Unknown formats map to ``.mp3``.
    """
    family = audio_format.lower().split("_", 1)[0]
    return EXTENSION_FAMILIES.get(family, DEFAULT_EXTENSION)


@dataclass(frozen=True)
class EvictionPolicy:
    """Bounds enforced by an eviction pass."""

    max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES
    max_age_ms: int = DEFAULT_MAX_AGE_MS
    max_entries: int = DEFAULT_MAX_ENTRIES

    def __post_init__(self) -> None:
        """Validate bounds."""
        if self.max_size_bytes <= 0:
            raise ValueError("max_size_bytes must be positive")
        if self.max_age_ms <= 0:
            raise ValueError("max_age_ms must be positive")
        if self.max_entries <= 0:
            raise ValueError("max_entries must be positive")


@dataclass(frozen=True)
class CacheMetadata:
    """Descriptor stored next to each cached payload.

    Attributes:
        provider: Provider that synthesized the audio
        voice: Voice identifier used for synthesis
        model: Model identifier used for synthesis
        speed: Speaking rate multiplier
        format: Audio format of the payload
        extension: Payload file extension, recorded at write time
        created_at: Creation time in epoch seconds
        size_bytes: Payload size in bytes
    """

    provider: str
    voice: str
    model: str
    speed: float
    format: str
    extension: str
    created_at: float
    size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheMetadata":
        """Build metadata from a parsed descriptor.

        Raises:
            ValueError: If a field is missing or has the wrong type
        """
        try:
            metadata = cls(
                provider=str(data["provider"]),
                voice=str(data["voice"]),
                model=str(data["model"]),
                speed=float(data["speed"]),
                format=str(data["format"]),
                extension=str(data["extension"]),
                created_at=float(data["created_at"]),
                size_bytes=int(data["size_bytes"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid cache descriptor: {e}") from e

        # The extension becomes part of a path that eviction unlinks.
        if metadata.extension not in PAYLOAD_EXTENSIONS:
            raise ValueError(f"Invalid extension in descriptor: {metadata.extension!r}")
        if metadata.size_bytes < 0:
            raise ValueError("Descriptor size_bytes cannot be negative")
        return metadata

    @property
    def created_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.created_at)


@dataclass(frozen=True)
class CacheEntry:
    """Cache entry linking a key to its payload file and descriptor."""

    key: str
    audio_path: Path
    metadata: CacheMetadata


@dataclass(frozen=True)
class CacheStats:
    """Cache statistics derived from on-disk state."""

    entry_count: int
    total_size_bytes: int
    hit_count: int
    miss_count: int
    oldest_entry_at: datetime | None
    newest_entry_at: datetime | None

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups that were hits; 0.0 before any lookup."""
        total = self.hit_count + self.miss_count
        if total == 0:
            return 0.0
        return self.hit_count / total
