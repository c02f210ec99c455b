"""ElevenLabs text-to-speech provider implementation."""

import asyncio
import logging

import httpx
from elevenlabs import VoiceSettings
from elevenlabs.client import ElevenLabs
from elevenlabs.core.api_error import ApiError

from ..config import ElevenLabsConfig
from ..errors import (
    ConfigurationError,
    FatalProviderError,
    ProviderError,
    TransientProviderError,
)
from ..models import SpeakRequest
from .base import TTSProvider, error_for_status

logger = logging.getLogger(__name__)

# Format family -> default ElevenLabs output format
OUTPUT_FORMATS = {
    "mp3": "mp3_44100_128",
    "opus": "opus_48000_128",
    "pcm": "pcm_24000",
    "ulaw": "ulaw_8000",
    "alaw": "alaw_8000",
}

# ElevenLabs accepts a narrower speed range than the request model
MIN_SPEED = 0.7
MAX_SPEED = 1.2


class ElevenLabsProvider(TTSProvider):
    """ElevenLabs TTS provider implementation.

    Provides methods to synthesize speech from text and manage voices
    using the ElevenLabs API.
    """

    config: ElevenLabsConfig
    name = "elevenlabs"
    priority = 2

    def __init__(self, config: ElevenLabsConfig | None = None) -> None:
        """Initialize ElevenLabs provider.

        Args:
            config: Provider configuration; api_key and voice_id are required

        Raises:
            ConfigurationError: If api_key or voice_id is missing, or the
                client cannot be created
        """
        super().__init__(config or ElevenLabsConfig())

        try:
            self._client = ElevenLabs(
                api_key=self.config.api_key, timeout=self.config.timeout
            )
        except Exception as e:
            raise ConfigurationError(
                f"Failed to initialize ElevenLabs client: {e}", "api_key", e
            ) from e

        # Cache for voices to avoid repeated API calls
        self._voices_cache: list[dict] | None = None

    @property
    def default_voice(self) -> str:
        return self.config.voice_id or ""

    @property
    def default_model(self) -> str:
        return self.config.model_id

    def output_format(self, request: SpeakRequest) -> str:
        requested = request.format.lower()
        family = requested.split("_", 1)[0]
        if family not in OUTPUT_FORMATS:
            return OUTPUT_FORMATS["mp3"]
        if "_" in requested:
            return requested
        return OUTPUT_FORMATS[family]

    async def synthesize(self, request: SpeakRequest) -> bytes:
        """Convert text to speech audio bytes.

        Args:
            request: Speech request

        Returns:
            Audio data as bytes in output_format(request)

        Raises:
            TransientProviderError: On timeout, network error, 429 or 5xx
            FatalProviderError: On authentication failure or another 4xx
        """
        voice_id = self.voice_for(request)
        model_id = self.model_for(request)
        output_format = self.output_format(request)

        # v3 models require stability to be one of 0.0, 0.5 or 1.0
        is_v3 = model_id.startswith("eleven_v3")
        voice_settings = VoiceSettings(
            stability=0.5 if is_v3 else 0.65,
            similarity_boost=0.75,
            style=0.4,
            use_speaker_boost=True,
            speed=max(MIN_SPEED, min(MAX_SPEED, request.speed)),
        )

        # Run synchronous ElevenLabs client in thread to avoid blocking event loop
        def _sync_convert() -> bytes:
            audio_generator = self._client.text_to_speech.convert(
                voice_id=voice_id,
                text=request.text.strip(),
                model_id=model_id,
                output_format=output_format,
                voice_settings=voice_settings,
            )
            # Collect all audio chunks
            return b"".join(audio_generator)

        logger.debug(
            f"ElevenLabs request: voice={voice_id} model={model_id} format={output_format}"
        )

        try:
            audio_bytes = await asyncio.to_thread(_sync_convert)
        except Exception as e:
            raise self._map_error(e, "API call failed") from e

        if not audio_bytes:
            raise TransientProviderError("No audio data received from API", self.name)

        return audio_bytes

    def _map_error(self, error: Exception, action: str) -> ProviderError:
        """Translate SDK/transport exceptions into typed provider errors."""
        if isinstance(error, ApiError):
            return error_for_status(self.name, error.status_code, str(error.body), error)
        if isinstance(error, httpx.TimeoutException):
            return TransientProviderError(
                f"Request timed out: {error}", self.name, None, error
            )
        if isinstance(error, httpx.TransportError):
            return TransientProviderError(
                f"Network error: {error}", self.name, None, error
            )

        message = str(error)
        if "unauthorized" in message.lower() or "401" in message:
            return error_for_status(self.name, 401, message, error)
        if "429" in message:
            return error_for_status(self.name, 429, message, error)
        return FatalProviderError(f"{action}: {error}", self.name, None, error)

    async def list_voices(self) -> list[dict]:
        """Get list of available voices.

        Results are cached after first call to avoid repeated API requests.

        Returns:
            List of voice dictionaries with id, name, and provider fields

        Raises:
            ProviderError: If the API call fails
        """
        if self._voices_cache is not None:
            return self._voices_cache

        # Run synchronous voice listing in thread
        def _sync_get_voices() -> list[dict]:
            response = self._client.voices.get_all()
            return [
                {"id": voice.voice_id, "name": voice.name, "provider": self.name}
                for voice in response.voices
            ]

        try:
            voices = await asyncio.to_thread(_sync_get_voices)
        except Exception as e:
            raise self._map_error(e, "Failed to list voices") from e

        self._voices_cache = voices
        return voices
