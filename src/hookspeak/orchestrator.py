"""Cache-then-synthesize flow with provider fallback.

The orchestrator is the single place where a speech request is turned
into audio: it consults the audio cache, and on a miss walks the provider
chain, retrying transient failures per provider before moving on.
"""

import logging
import time

from .cache import AudioCacheStore, CacheStats, generate_key
from .errors import AllProvidersFailedError
from .models import SpeakRequest, SpeakResult
from .providers.base import TTSProvider
from .providers.registry import ProviderRegistry
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class FallbackOrchestrator:
    """Resolve speech requests through the cache and the provider chain.

    Flow:
    1. Compute the cache key for (text, model, voice, speed), with empty
       voice and model resolved to the first candidate's defaults
    2. On a cache hit, return the stored audio without calling any provider
    3. On a miss, try each candidate provider in order under the retry policy
    4. Cache the first successful result and return it
    5. If every candidate fails, raise AllProvidersFailedError

    Cache problems never fail a request: lookup and write errors are logged
    and the flow continues as if the cache were empty.

    Examples:
        >>> orchestrator = FallbackOrchestrator(store, registry)
        >>> result = await orchestrator.speak(SpeakRequest("Tests passed"))
        >>> result.cached, result.provider_used
        (False, 'openai')
    """

    def __init__(
        self,
        cache: AudioCacheStore,
        registry: ProviderRegistry,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.cache = cache
        self.registry = registry
        self.retry_policy = retry_policy or RetryPolicy()

    async def speak(self, request: SpeakRequest) -> SpeakResult:
        """Produce audio for a request.

        Args:
            request: Text and voice parameters

        Returns:
            SpeakResult with the audio bytes and where they came from

        Raises:
            AllProvidersFailedError: If the cache missed and no provider
                produced audio; carries each provider's last error
        """
        candidates = self.registry.candidates()
        key = self._key_for(request, candidates)

        # === CACHE LOOKUP PHASE ===
        cached = self._lookup(key)
        if cached is not None:
            return cached

        # === SYNTHESIS PHASE ===
        errors: dict[str, Exception] = {}
        for provider in candidates:
            logger.debug(f"Trying provider {provider.name}")
            started = time.perf_counter()
            try:
                audio_bytes = await self.retry_policy.execute(provider, request)
            except Exception as e:
                logger.warning(f"Provider {provider.name} failed: {e}")
                errors[provider.name] = e
                continue
            duration_ms = int((time.perf_counter() - started) * 1000)

            audio_format = provider.output_format(request)
            logger.info(
                f"Synthesized {len(audio_bytes)} bytes with {provider.name} "
                f"in {duration_ms}ms"
            )

            # === CACHE STORAGE PHASE ===
            try:
                self.cache.set(
                    key,
                    audio_bytes,
                    provider.name,
                    provider.voice_for(request),
                    provider.model_for(request),
                    request.speed,
                    audio_format,
                )
            except OSError as e:
                logger.warning(f"Failed to cache audio: {e}")

            return SpeakResult(
                audio_bytes=audio_bytes,
                cached=False,
                provider_used=provider.name,
                format=audio_format,
                duration_ms_approx=duration_ms,
            )

        raise AllProvidersFailedError(errors)

    def key_for(self, request: SpeakRequest) -> str:
        """Cache key for a request, with empty voice/model resolved.

        Empty voice and model fields mean "provider default", so they are
        filled in from the first candidate provider before hashing. Changing
        the configured default voice therefore changes the key.
        """
        return self._key_for(request, self.registry.candidates())

    def _key_for(self, request: SpeakRequest, candidates: list[TTSProvider]) -> str:
        voice, model = request.voice, request.model
        if candidates:
            voice = candidates[0].voice_for(request)
            model = candidates[0].model_for(request)
        return self.generate_key(request.text, model, voice, request.speed)

    def _lookup(self, key: str) -> SpeakResult | None:
        try:
            found = self.cache.load(key)
        except OSError as e:
            logger.warning(f"Cache lookup failed, continuing without cache: {e}")
            return None

        if found is None:
            return None

        entry, audio_bytes = found
        logger.info(f"Cache hit for {key[:16]} ({entry.metadata.provider})")
        return SpeakResult(
            audio_bytes=audio_bytes,
            cached=True,
            provider_used=entry.metadata.provider,
            format=entry.metadata.format,
        )

    def get_stats(self) -> CacheStats:
        return self.cache.get_stats()

    def clear(self) -> int:
        """Remove every cache entry; returns the number removed."""
        return self.cache.clear()

    @staticmethod
    def generate_key(text: str, model: str, voice: str, speed: float) -> str:
        return generate_key(text, model, voice, speed)
