"""Provider abstraction for text-to-speech services.

This module provides a registry pattern for managing TTS providers,
allowing runtime selection of different TTS backends with ordered fallback.
"""

from .base import TTSProvider
from .elevenlabs import ElevenLabsProvider
from .openai import OpenAIProvider
from .registry import ProviderRegistry, build_registry, create_provider
from .system import SystemTTSProvider

__all__ = [
    "ElevenLabsProvider",
    "OpenAIProvider",
    "ProviderRegistry",
    "SystemTTSProvider",
    "TTSProvider",
    "build_registry",
    "create_provider",
]


# Register providers
ProviderRegistry.register("openai", OpenAIProvider)
ProviderRegistry.register("elevenlabs", ElevenLabsProvider)
ProviderRegistry.register("system", SystemTTSProvider)
