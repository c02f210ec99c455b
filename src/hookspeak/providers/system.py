"""System TTS provider using native OS text-to-speech commands.

This module provides text-to-speech functionality using the built-in
TTS capabilities of the operating system (say on macOS, espeak on Linux,
SAPI on Windows). It needs no credentials and works offline, which makes
it the last link of the fallback chain.
"""

import asyncio
import logging
import platform
import shutil
import tempfile
from pathlib import Path

from ..config import SystemConfig
from ..errors import FatalProviderError, TransientProviderError
from ..models import SpeakRequest
from .base import TTSProvider

logger = logging.getLogger(__name__)

# Command that must be on PATH for each supported platform
PLATFORM_COMMANDS = {
    "Darwin": "say",
    "Linux": "espeak",
    "Windows": "powershell",
}


class SystemTTSProvider(TTSProvider):
    """System TTS provider using native OS commands.

    Note: Audio quality will be robotic compared to AI-powered voices.
    Output is always WAV regardless of the requested format.
    """

    config: SystemConfig
    name = "system"
    priority = 3

    def __init__(self, config: SystemConfig | None = None) -> None:
        """Initialize system TTS provider and detect platform."""
        super().__init__(config or SystemConfig())
        self.platform = platform.system()

    @property
    def default_voice(self) -> str:
        return self.config.voice or ""

    @property
    def default_model(self) -> str:
        return self.platform.lower()

    def is_available(self) -> bool:
        command = PLATFORM_COMMANDS.get(self.platform)
        return command is not None and shutil.which(command) is not None

    def output_format(self, request: SpeakRequest) -> str:
        return "wav"

    async def synthesize(self, request: SpeakRequest) -> bytes:
        """Convert text to speech using native OS commands.

        Args:
            request: Speech request; speed scales the configured word rate

        Returns:
            Audio data as bytes in WAV format

        Raises:
            FatalProviderError: If the platform or its TTS command is missing,
                or the command fails
            TransientProviderError: If the command exceeds the timeout
        """
        if not self.is_available():
            raise FatalProviderError(
                f"System TTS not available on {self.platform} "
                f"(needs '{PLATFORM_COMMANDS.get(self.platform, 'unsupported')}')",
                self.name,
            )

        voice = self.voice_for(request)
        rate = max(1, int(self.config.rate * request.speed))
        text = request.text.strip()

        with tempfile.TemporaryDirectory(prefix="hookspeak-") as tmp:
            output_path = Path(tmp) / "speech.wav"

            if self.platform == "Darwin":
                # say writes AIFF; afconvert turns it into WAV for compatibility
                aiff_path = Path(tmp) / "speech.aiff"
                cmd = ["say", "-o", str(aiff_path), "-r", str(rate)]
                if voice:
                    cmd.extend(["-v", voice])
                cmd.append(text)
                await self._run(cmd)
                await self._run(
                    ["afconvert", "-f", "WAVE", "-d", "LEI16", str(aiff_path), str(output_path)]
                )

            elif self.platform == "Linux":
                cmd = ["espeak", "-w", str(output_path), "-s", str(rate)]
                if voice:
                    cmd.extend(["-v", voice])
                cmd.append(text)
                await self._run(cmd)

            else:  # Windows
                # SAPI rate runs from -10 to 10 with 0 as normal speed
                sapi_rate = max(-10, min(10, round((request.speed - 1.0) * 10)))
                ps_script = (
                    "Add-Type -AssemblyName System.Speech\n"
                    "$speak = New-Object System.Speech.Synthesis.SpeechSynthesizer\n"
                    f"$speak.SetOutputToWaveFile({_ps_quote(str(output_path))})\n"
                    f"$speak.Rate = {sapi_rate}\n"
                )
                if voice:
                    ps_script += f"$speak.SelectVoice({_ps_quote(voice)})\n"
                ps_script += f"$speak.Speak({_ps_quote(text)})\n$speak.Dispose()"
                await self._run(["powershell", "-NoProfile", "-Command", ps_script])

            try:
                audio_data = output_path.read_bytes()
            except FileNotFoundError as e:
                raise FatalProviderError(
                    "System TTS produced no audio file", self.name, None, e
                ) from e

        if not audio_data:
            raise FatalProviderError("System TTS produced empty audio", self.name)
        return audio_data

    async def _run(self, cmd: list[str]) -> bytes:
        """Run a command, mapping failures to provider errors."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
        except FileNotFoundError as e:
            raise FatalProviderError(
                f"Command not found: {cmd[0]}", self.name, None, e
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.config.timeout
            )
        except TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise TransientProviderError(
                f"{cmd[0]} timed out after {self.config.timeout}s", self.name, None, e
            ) from e

        if proc.returncode != 0:
            raise FatalProviderError(
                f"System TTS failed with code {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()}",
                self.name,
            )
        return stdout

    async def list_voices(self) -> list[dict]:
        """List available system voices.

        Returns:
            List of voice dictionaries with id, name, and provider fields
        """
        voices = []

        if self.platform == "Darwin" and self.is_available():
            # Format: "Voice Name     Language  # Description"
            output = await self._run(["say", "-v", "?"])
            for line in output.decode(errors="replace").splitlines():
                parts = line.split()
                if parts and not line.startswith("#"):
                    voices.append({"id": parts[0], "name": parts[0], "provider": self.name})

        elif self.platform == "Linux" and self.is_available():
            output = await self._run(["espeak", "--voices"])
            # Skip the header line; voice ID is in the second column
            for line in output.decode(errors="replace").splitlines()[1:]:
                parts = line.split()
                if len(parts) >= 2:
                    voices.append({"id": parts[1], "name": parts[1], "provider": self.name})

        elif self.platform == "Windows" and self.is_available():
            ps_script = (
                "Add-Type -AssemblyName System.Speech\n"
                "$speak = New-Object System.Speech.Synthesis.SpeechSynthesizer\n"
                "$speak.GetInstalledVoices() | ForEach-Object { $_.VoiceInfo.Name }"
            )
            output = await self._run(["powershell", "-NoProfile", "-Command", ps_script])
            for line in output.decode(errors="replace").splitlines():
                if line.strip():
                    voices.append({"id": line.strip(), "name": line.strip(), "provider": self.name})

        # If no voices found, add a default
        if not voices:
            voices.append(
                {"id": "default", "name": "Default System Voice", "provider": self.name}
            )

        return voices


def _ps_quote(value: str) -> str:
    """Quote a string as a PowerShell single-quoted literal."""
    return "'" + value.replace("'", "''") + "'"
