"""High-level API for hookspeak library usage."""

import logging
from pathlib import Path

from .cache import AudioCacheStore, EvictionPolicy
from .config import HookspeakConfig, load_config
from .errors import AllProvidersFailedError
from .models import SpeakRequest, SpeakResult
from .orchestrator import FallbackOrchestrator
from .providers import build_registry
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


def build_orchestrator(
    config: HookspeakConfig,
    provider: str | None = None,
    cache: bool = True,
) -> FallbackOrchestrator:
    """Wire a cache store, provider registry and retry policy from config.

    Args:
        config: Loaded configuration
        provider: Overrides config.tts.provider ("auto" or a provider name)
        cache: When False the cache store is disabled for this orchestrator

    Raises:
        ConfigurationError: If an explicitly selected provider is misconfigured
    """
    store = AudioCacheStore(
        config.cache.directory,
        policy=EvictionPolicy(
            max_size_bytes=config.cache.max_size_bytes,
            max_age_ms=config.cache.max_age_ms,
            max_entries=config.cache.max_entries,
        ),
        enabled=cache and config.cache.enabled,
    )
    registry = build_registry(config, provider=provider)
    return FallbackOrchestrator(store, registry, RetryPolicy.from_config(config.retry))


async def speak(
    text: str,
    provider: str | None = None,
    voice: str = "",
    model: str = "",
    speed: float | None = None,
    format: str | None = None,
    cache: bool = True,
    config: HookspeakConfig | None = None,
    config_path: str | Path | None = None,
) -> SpeakResult | None:
    """Synthesize speech from text, serving repeats from the audio cache.

    A total synthesis failure is not raised: it is logged and None is
    returned, so a hook calling this never breaks its host tool.

    Args:
        text: Text to speak
        provider: "auto" or a provider name (from config if omitted)
        voice: Voice ID/name (provider default if empty)
        model: Model ID (provider default if empty)
        speed: Speaking rate multiplier (from config if omitted)
        format: Output format (from config if omitted)
        cache: Whether to use the audio cache
        config: Preloaded configuration (loaded from disk if omitted)
        config_path: Config file to load when config is omitted

    Returns:
        SpeakResult, or None if every provider failed

    Raises:
        ValueError: If text is empty or speed is out of range
        ConfigurationError: If configuration is invalid
    """
    if config is None:
        config = load_config(Path(config_path) if config_path else None)

    request = SpeakRequest(
        text=text,
        voice=voice,
        model=model,
        speed=config.tts.speed if speed is None else speed,
        format=format or config.tts.format,
    )
    orchestrator = build_orchestrator(config, provider=provider, cache=cache)

    try:
        return await orchestrator.speak(request)
    except AllProvidersFailedError as e:
        logger.error(f"Speech synthesis failed: {e}")
        return None
