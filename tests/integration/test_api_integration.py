"""Integration tests for the high-level speak() API with a real cache directory."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from hookspeak import speak
from hookspeak.config import (
    CacheConfig,
    HookspeakConfig,
    OpenAIConfig,
    RetryConfig,
    TTSConfig,
)
from hookspeak.errors import ConfigurationError, FatalProviderError, TransientProviderError
from hookspeak.providers.openai import OpenAIProvider
from hookspeak.providers.system import SystemTTSProvider


def _config(cache_dir: Path, **tts) -> HookspeakConfig:
    return HookspeakConfig(
        tts=TTSConfig(**tts),
        openai=OpenAIConfig(api_key="sk-test"),
        cache=CacheConfig(directory=cache_dir),
        retry=RetryConfig(max_retries=1, base_delay=0.0, max_delay=0.0),
    )


class TestSpeakFunctionIntegration:
    """Test speak() wiring from config to cache and providers."""

    @pytest.mark.asyncio
    async def test_synthesize_then_cache_hit(self, cache_dir) -> None:
        config = _config(cache_dir, provider="openai")
        synthesize = AsyncMock(return_value=b"mp3-audio")

        with patch.object(OpenAIProvider, "synthesize", synthesize):
            first = await speak("Deploy complete", config=config)
            second = await speak("deploy   complete", config=config)

        assert first.cached is False
        assert first.provider_used == "openai"
        assert second.cached is True
        assert second.audio_bytes == b"mp3-audio"
        assert synthesize.await_count == 1

        descriptors = list((cache_dir / "entries").glob("*.json"))
        payloads = list((cache_dir / "audio").glob("*.mp3"))
        assert len(descriptors) == 1
        assert len(payloads) == 1

    @pytest.mark.asyncio
    async def test_cache_disabled_per_call(self, cache_dir) -> None:
        config = _config(cache_dir, provider="openai")
        synthesize = AsyncMock(return_value=b"mp3-audio")

        with patch.object(OpenAIProvider, "synthesize", synthesize):
            await speak("Deploy complete", config=config, cache=False)
            result = await speak("Deploy complete", config=config, cache=False)

        assert result.cached is False
        assert synthesize.await_count == 2

    @pytest.mark.asyncio
    async def test_falls_back_to_configured_fallback(self, cache_dir) -> None:
        config = _config(cache_dir, provider="openai", fallback="system")

        with (
            patch.object(
                OpenAIProvider,
                "synthesize",
                AsyncMock(side_effect=FatalProviderError("bad key", "openai", 401)),
            ),
            patch.object(SystemTTSProvider, "synthesize", AsyncMock(return_value=b"RIFFwav")),
        ):
            result = await speak("Tests failed", config=config)

        assert result.provider_used == "system"
        assert result.format == "wav"
        assert list((cache_dir / "audio").glob("*.wav"))

    @pytest.mark.asyncio
    async def test_total_failure_returns_none(self, cache_dir) -> None:
        config = _config(cache_dir, provider="openai")
        synthesize = AsyncMock(side_effect=TransientProviderError("503", "openai", 503))

        with patch.object(OpenAIProvider, "synthesize", synthesize):
            result = await speak("Tests failed", config=config)

        assert result is None
        assert synthesize.await_count == 2

    @pytest.mark.asyncio
    async def test_request_defaults_come_from_config(self, cache_dir) -> None:
        config = _config(cache_dir, provider="openai", speed=1.25, format="opus")
        synthesize = AsyncMock(return_value=b"opus-audio")

        with patch.object(OpenAIProvider, "synthesize", synthesize):
            result = await speak("Hello", config=config)

        request = synthesize.await_args.args[0]
        assert request.speed == 1.25
        assert request.format == "opus"
        assert result.format == "opus"

    @pytest.mark.asyncio
    async def test_loads_config_file(self, tmp_path, cache_dir, monkeypatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config_path = tmp_path / "config.toml"
        config_path.write_text(
            f'[tts]\nprovider = "openai"\n[cache]\ndirectory = "{cache_dir.as_posix()}"\n'
        )

        with patch.object(OpenAIProvider, "synthesize", AsyncMock(return_value=b"audio")):
            result = await speak("Hello", config_path=config_path)

        assert result.provider_used == "openai"
        assert (cache_dir / "entries").is_dir()

    @pytest.mark.asyncio
    async def test_empty_text_raises(self, cache_dir) -> None:
        with pytest.raises(ValueError, match="Text cannot be empty"):
            await speak("   ", config=_config(cache_dir))

    @pytest.mark.asyncio
    async def test_explicit_misconfigured_provider_raises(self, cache_dir) -> None:
        with pytest.raises(ConfigurationError):
            await speak("Hello", provider="elevenlabs", config=_config(cache_dir))

    @pytest.mark.asyncio
    async def test_configured_voice_change_resynthesizes(self, cache_dir) -> None:
        """Test that changing the configured voice never replays the old voice."""
        alloy = _config(cache_dir, provider="openai")
        nova = HookspeakConfig(
            tts=alloy.tts,
            openai=OpenAIConfig(api_key="sk-test", voice="nova"),
            cache=alloy.cache,
            retry=alloy.retry,
        )
        synthesize = AsyncMock(side_effect=[b"alloy-audio", b"nova-audio"])

        with patch.object(OpenAIProvider, "synthesize", synthesize):
            await speak("Build finished", config=alloy)
            result = await speak("Build finished", config=nova)

        assert result.cached is False
        assert result.audio_bytes == b"nova-audio"
        assert synthesize.await_count == 2

    @pytest.mark.asyncio
    async def test_unusable_cache_directory_still_speaks(self, tmp_path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("regular file")
        config = _config(blocker / "cache", provider="system")

        with patch.object(SystemTTSProvider, "synthesize", AsyncMock(return_value=b"RIFFwav")):
            result = await speak("Build finished", config=config)

        assert result is not None
        assert result.audio_bytes == b"RIFFwav"
        assert result.cached is False
