"""Unit tests for SystemTTSProvider command handling with mocked subprocesses."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from hookspeak.config import SystemConfig
from hookspeak.errors import FatalProviderError, TransientProviderError
from hookspeak.models import SpeakRequest
from hookspeak.providers.system import SystemTTSProvider

WAV = b"RIFF\x24\x00\x00\x00WAVEfmt "


def _process(returncode: int = 0, stdout: bytes = b"", stderr: bytes = b"") -> MagicMock:
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock(return_value=returncode)
    return proc


def _linux_provider(**config) -> SystemTTSProvider:
    provider = SystemTTSProvider(SystemConfig(**config))
    provider.platform = "Linux"
    return provider


class TestSystemProviderAvailability:
    """Test platform detection."""

    def test_available_when_command_on_path(self) -> None:
        provider = _linux_provider()
        with patch("hookspeak.providers.system.shutil.which", return_value="/usr/bin/espeak"):
            assert provider.is_available()

    def test_unavailable_without_command(self) -> None:
        provider = _linux_provider()
        with patch("hookspeak.providers.system.shutil.which", return_value=None):
            assert not provider.is_available()

    def test_unsupported_platform(self) -> None:
        provider = SystemTTSProvider()
        provider.platform = "Plan9"
        assert not provider.is_available()

    def test_output_is_always_wav(self) -> None:
        provider = SystemTTSProvider()
        assert provider.output_format(SpeakRequest("hi", format="opus")) == "wav"

    @pytest.mark.asyncio
    async def test_synthesize_when_unavailable_is_fatal(self) -> None:
        provider = _linux_provider()
        with patch("hookspeak.providers.system.shutil.which", return_value=None):
            with pytest.raises(FatalProviderError, match="not available"):
                await provider.synthesize(SpeakRequest("hi"))


class TestSystemProviderSynthesize:
    """Test espeak invocation on Linux."""

    @pytest.mark.asyncio
    async def test_espeak_command_and_output(self) -> None:
        commands: list[tuple] = []

        async def fake_exec(*cmd, **kwargs):
            commands.append(cmd)
            Path(cmd[cmd.index("-w") + 1]).write_bytes(WAV)
            return _process()

        provider = _linux_provider(voice="en-us", rate=200)
        with (
            patch("hookspeak.providers.system.shutil.which", return_value="/usr/bin/espeak"),
            patch(
                "hookspeak.providers.system.asyncio.create_subprocess_exec",
                side_effect=fake_exec,
            ),
        ):
            audio = await provider.synthesize(SpeakRequest("  Build done  ", speed=1.5))

        assert audio == WAV
        (cmd,) = commands
        assert cmd[0] == "espeak"
        assert cmd[cmd.index("-s") + 1] == "300"
        assert cmd[cmd.index("-v") + 1] == "en-us"
        assert cmd[-1] == "Build done"

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_fatal(self) -> None:
        provider = _linux_provider()
        with (
            patch("hookspeak.providers.system.shutil.which", return_value="/usr/bin/espeak"),
            patch(
                "hookspeak.providers.system.asyncio.create_subprocess_exec",
                AsyncMock(return_value=_process(returncode=1, stderr=b"bad voice")),
            ),
        ):
            with pytest.raises(FatalProviderError, match="bad voice"):
                await provider.synthesize(SpeakRequest("hi"))

    @pytest.mark.asyncio
    async def test_missing_binary_is_fatal(self) -> None:
        provider = _linux_provider()
        with (
            patch("hookspeak.providers.system.shutil.which", return_value="/usr/bin/espeak"),
            patch(
                "hookspeak.providers.system.asyncio.create_subprocess_exec",
                AsyncMock(side_effect=FileNotFoundError("espeak")),
            ),
        ):
            with pytest.raises(FatalProviderError, match="Command not found"):
                await provider.synthesize(SpeakRequest("hi"))

    @pytest.mark.asyncio
    async def test_no_output_file_is_fatal(self) -> None:
        provider = _linux_provider()
        with (
            patch("hookspeak.providers.system.shutil.which", return_value="/usr/bin/espeak"),
            patch(
                "hookspeak.providers.system.asyncio.create_subprocess_exec",
                AsyncMock(return_value=_process()),
            ),
        ):
            with pytest.raises(FatalProviderError, match="no audio file"):
                await provider.synthesize(SpeakRequest("hi"))

    @pytest.mark.asyncio
    async def test_timeout_is_transient_and_kills_process(self) -> None:
        proc = _process()
        proc.communicate = AsyncMock(side_effect=TimeoutError())
        provider = _linux_provider(timeout=0.01)
        with (
            patch("hookspeak.providers.system.shutil.which", return_value="/usr/bin/espeak"),
            patch(
                "hookspeak.providers.system.asyncio.create_subprocess_exec",
                AsyncMock(return_value=proc),
            ),
        ):
            with pytest.raises(TransientProviderError, match="timed out"):
                await provider.synthesize(SpeakRequest("hi"))

        proc.kill.assert_called_once()


class TestSystemProviderVoices:
    """Test voice listing."""

    @pytest.mark.asyncio
    async def test_espeak_voices_parsed(self) -> None:
        listing = (
            b"Pty Language Age/Gender VoiceName          File          Other Languages\n"
            b" 5  af             M  afrikaans            other/af\n"
            b" 5  en-us          M  english-us           en-us\n"
        )
        provider = _linux_provider()
        with (
            patch("hookspeak.providers.system.shutil.which", return_value="/usr/bin/espeak"),
            patch(
                "hookspeak.providers.system.asyncio.create_subprocess_exec",
                AsyncMock(return_value=_process(stdout=listing)),
            ),
        ):
            voices = await provider.list_voices()

        assert [v["id"] for v in voices] == ["af", "en-us"]
        assert all(v["provider"] == "system" for v in voices)

    @pytest.mark.asyncio
    async def test_default_voice_when_unavailable(self) -> None:
        provider = _linux_provider()
        with patch("hookspeak.providers.system.shutil.which", return_value=None):
            voices = await provider.list_voices()
        assert voices == [
            {"id": "default", "name": "Default System Voice", "provider": "system"}
        ]
