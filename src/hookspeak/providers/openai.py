"""OpenAI text-to-speech provider implementation."""

import logging

import httpx

from ..config import OpenAIConfig
from ..errors import TransientProviderError
from ..models import MAX_SPEED, MIN_SPEED, SpeakRequest
from .base import TTSProvider, error_for_status

logger = logging.getLogger(__name__)

# API input limit in characters
MAX_INPUT_CHARS = 4096

SUPPORTED_FORMATS = ("mp3", "opus", "aac", "flac", "wav", "pcm")

OPENAI_VOICES = ["alloy", "echo", "fable", "onyx", "nova", "shimmer"]


class OpenAIProvider(TTSProvider):
    """OpenAI speech provider.

    Calls the ``/audio/speech`` REST endpoint directly with httpx so that
    HTTP status codes can be classified into transient and fatal failures.
    """

    config: OpenAIConfig
    name = "openai"
    priority = 1

    def __init__(
        self,
        config: OpenAIConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize OpenAI provider.

        Args:
            config: Provider configuration; api_key and voice are required
            transport: Optional httpx transport (used by tests)

        Raises:
            ConfigurationError: If api_key or voice is missing
        """
        super().__init__(config or OpenAIConfig())
        self._transport = transport

    @property
    def default_voice(self) -> str:
        return self.config.voice or ""

    @property
    def default_model(self) -> str:
        return self.config.model

    def output_format(self, request: SpeakRequest) -> str:
        family = request.format.lower().split("_", 1)[0]
        return family if family in SUPPORTED_FORMATS else "mp3"

    async def synthesize(self, request: SpeakRequest) -> bytes:
        """Convert text to speech audio bytes.

        Args:
            request: Speech request

        Returns:
            Audio data as bytes in output_format(request)

        Raises:
            TransientProviderError: On timeout, network error, 429 or 5xx
            FatalProviderError: On 401/403 or another 4xx
        """
        text = request.text.strip()
        if len(text) > MAX_INPUT_CHARS:
            text = f"{text[: MAX_INPUT_CHARS - 3]}..."

        payload = {
            "model": self.model_for(request),
            "input": text,
            "voice": self.voice_for(request),
            "speed": max(MIN_SPEED, min(MAX_SPEED, request.speed)),
            "response_format": self.output_format(request),
        }
        headers = {"Authorization": f"Bearer {self.config.api_key}"}

        logger.debug(
            f"OpenAI speech request: model={payload['model']} voice={payload['voice']} "
            f"format={payload['response_format']} chars={len(text)}"
        )

        try:
            async with httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/audio/speech", json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise TransientProviderError(
                f"Request timed out: {e}", self.name, None, e
            ) from e
        except httpx.TransportError as e:
            raise TransientProviderError(
                f"Network error: {e}", self.name, None, e
            ) from e

        if response.status_code >= 400:
            raise error_for_status(
                self.name, response.status_code, self._error_detail(response)
            )

        audio_bytes = response.content
        if not audio_bytes:
            raise TransientProviderError("No audio data received from API", self.name)

        return audio_bytes

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            return str(response.json()["error"]["message"])
        except (ValueError, KeyError, TypeError):
            return f"HTTP {response.status_code}: {response.text[:200]}"

    async def list_voices(self) -> list[dict]:
        """List the built-in OpenAI voices."""
        return [{"id": v, "name": v.title(), "provider": "openai"} for v in OPENAI_VOICES]
