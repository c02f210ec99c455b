"""Provider registry and fallback ordering."""

import logging
from collections.abc import Iterable
from typing import ClassVar

from ..config import PROVIDER_NAMES, HookspeakConfig
from ..errors import ConfigurationError
from ..models import ProviderDescriptor
from .base import TTSProvider

logger = logging.getLogger(__name__)

MODES = ("auto", "explicit")


class ProviderRegistry:
    """Registry for managing TTS providers.

    Provider classes are registered by name at class level. An instance
    holds constructed adapters and decides the order in which they are
    tried:

    - "auto": every available adapter, cloud-primary, cloud-secondary, then
      local, in that fixed priority order
    - "explicit": the named provider, then an optional single fallback
    """

    _providers: ClassVar[dict[str, type[TTSProvider]]] = {}

    @classmethod
    def register(cls, name: str, provider_class: type[TTSProvider]) -> None:
        """Register a TTS provider class.

        Args:
            name: Name to register the provider under
            provider_class: Provider class that implements TTSProvider
        """
        cls._providers[name] = provider_class

    @classmethod
    def get(cls, name: str) -> type[TTSProvider]:
        """Get a provider class by name.

        Args:
            name: Name of the provider to retrieve

        Returns:
            Provider class

        Raises:
            ConfigurationError: If provider name not found
        """
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys()) if cls._providers else "none"
            raise ConfigurationError(
                f"Provider '{name}' not found. Available providers: {available}",
                field="provider",
            )
        return cls._providers[name]

    def __init__(
        self,
        providers: Iterable[TTSProvider],
        mode: str = "auto",
        provider: str | None = None,
        fallback: str | None = None,
    ) -> None:
        """Create a registry over constructed adapters.

        Args:
            providers: Constructed provider adapters
            mode: "auto" or "explicit"
            provider: Primary provider name (explicit mode)
            fallback: Optional fallback provider name (explicit mode)

        Raises:
            ConfigurationError: If the mode is unknown or a named provider
                is not among the adapters
        """
        if mode not in MODES:
            raise ConfigurationError(
                f"mode must be one of {', '.join(MODES)}, got {mode!r}", field="mode"
            )

        self._instances = {adapter.name: adapter for adapter in providers}
        self.mode = mode
        self.provider = provider
        self.fallback = fallback

        if mode == "explicit":
            if provider is None:
                raise ConfigurationError("explicit mode requires a provider name", "provider")
            for name in (provider, fallback):
                if name is not None and name not in self._instances:
                    raise ConfigurationError(
                        f"Provider '{name}' was not constructed", field="provider"
                    )

    def instances(self) -> list[TTSProvider]:
        """All constructed adapters ordered by priority."""
        return sorted(self._instances.values(), key=lambda adapter: adapter.priority)

    def get_instance(self, name: str) -> TTSProvider:
        if name not in self._instances:
            raise ConfigurationError(f"Provider '{name}' was not constructed", "provider")
        return self._instances[name]

    def candidates(self) -> list[TTSProvider]:
        """Ordered list of adapters to try for one request."""
        if self.mode == "explicit":
            names = [self.provider]
            if self.fallback and self.fallback != self.provider:
                names.append(self.fallback)
            return [self._instances[name] for name in names]

        candidates = []
        for adapter in self.instances():
            if adapter.is_available():
                candidates.append(adapter)
            else:
                logger.debug(f"Provider {adapter.name} unavailable, skipping")
        return candidates

    def describe(self) -> list[ProviderDescriptor]:
        return [adapter.describe() for adapter in self.instances()]


def create_provider(name: str, config: HookspeakConfig) -> TTSProvider:
    """Construct a registered provider from its config section.

    Raises:
        ConfigurationError: If the provider is unknown or its config is incomplete
    """
    provider_class = ProviderRegistry.get(name)
    return provider_class(getattr(config, name))


def build_registry(
    config: HookspeakConfig, provider: str | None = None, fallback: str | None = None
) -> ProviderRegistry:
    """Build a registry from configuration.

    In auto mode, providers whose configuration is incomplete (for example a
    cloud provider without an API key) are left out. In explicit mode the
    ConfigurationError of the named provider or fallback propagates.

    Args:
        config: Loaded configuration
        provider: Overrides config.tts.provider ("auto" or a provider name)
        fallback: Overrides config.tts.fallback (explicit mode only)

    Returns:
        Registry ready for FallbackOrchestrator
    """
    selected = provider or config.tts.provider

    if selected == "auto":
        adapters = []
        for name in PROVIDER_NAMES:
            try:
                adapters.append(create_provider(name, config))
            except ConfigurationError as e:
                logger.info(f"Skipping {name} provider: {e}")
        return ProviderRegistry(adapters, mode="auto")

    fallback = fallback if fallback is not None else config.tts.fallback
    adapters = [create_provider(selected, config)]
    if fallback and fallback != selected:
        adapters.append(create_provider(fallback, config))
    else:
        fallback = None
    return ProviderRegistry(adapters, mode="explicit", provider=selected, fallback=fallback)
