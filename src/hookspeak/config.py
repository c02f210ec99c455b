"""Configuration management for hookspeak.

Loads configuration from $XDG_CONFIG_HOME/hookspeak/config.toml
(default ~/.config/hookspeak/config.toml).
Priority chain: CLI flags > env vars > config file > defaults.

API keys are never read from the config file; they come from
OPENAI_API_KEY and ELEVENLABS_API_KEY.
"""

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar

from .cache import default_cache_dir
from .cache.models import DEFAULT_MAX_AGE_MS, DEFAULT_MAX_ENTRIES, DEFAULT_MAX_SIZE_BYTES
from .errors import ConfigurationError

PROVIDER_NAMES = ("openai", "elevenlabs", "system")
PROVIDER_MODES = ("auto", *PROVIDER_NAMES)

DEFAULT_CONFIG = """\
# hookspeak configuration

[tts]
# Provider: "auto" (openai -> elevenlabs -> system), "openai", "elevenlabs", "system"
provider = "auto"

# Single fallback used when provider is not "auto" (none by default)
# fallback = "system"

# Speaking rate multiplier (0.25-4.0) and output format
speed = 1.0
format = "mp3"

[openai]
voice = "alloy"
model = "tts-1"
timeout = 30.0

[elevenlabs]
# Voice ID from `hookspeak voices --provider elevenlabs`
# voice_id = ""
model_id = "eleven_multilingual_v2"
timeout = 30.0

[system]
# voice = "Samantha"
rate = 200

[cache]
enabled = true
# directory = "~/.cache/hookspeak"
max_size_bytes = 104857600   # 100MB
max_age_ms = 604800000       # 7 days
max_entries = 1000

[retry]
max_retries = 3
base_delay = 1.0
max_delay = 8.0

# API keys are read from environment variables, not this file:
#   OPENAI_API_KEY      - OpenAI provider
#   ELEVENLABS_API_KEY  - ElevenLabs provider
"""


@dataclass(frozen=True)
class OpenAIConfig:
    """OpenAI speech provider configuration."""

    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("api_key", "voice")

    api_key: str | None = None
    voice: str | None = "alloy"
    model: str = "tts-1"
    timeout: float = 30.0
    base_url: str = "https://api.openai.com/v1"


@dataclass(frozen=True)
class ElevenLabsConfig:
    """ElevenLabs provider configuration."""

    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("api_key", "voice_id")

    api_key: str | None = None
    voice_id: str | None = None
    model_id: str = "eleven_multilingual_v2"
    timeout: float = 30.0


@dataclass(frozen=True)
class SystemConfig:
    """OS speech command configuration."""

    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ()

    voice: str | None = None
    rate: int = 200
    timeout: float = 30.0


ProviderConfig = OpenAIConfig | ElevenLabsConfig | SystemConfig


@dataclass(frozen=True)
class TTSConfig:
    """Provider selection and request defaults."""

    provider: str = "auto"
    fallback: str | None = None
    speed: float = 1.0
    format: str = "mp3"


@dataclass(frozen=True)
class CacheConfig:
    """Audio cache configuration."""

    enabled: bool = True
    directory: Path = field(default_factory=default_cache_dir)
    max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES
    max_age_ms: int = DEFAULT_MAX_AGE_MS
    max_entries: int = DEFAULT_MAX_ENTRIES


@dataclass(frozen=True)
class RetryConfig:
    """Retry/backoff configuration."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0


@dataclass(frozen=True)
class HookspeakConfig:
    """Top-level hookspeak configuration."""

    tts: TTSConfig = field(default_factory=TTSConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    elevenlabs: ElevenLabsConfig = field(default_factory=ElevenLabsConfig)
    system: SystemConfig = field(default_factory=SystemConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)


def get_config_path() -> Path:
    """Get the XDG-compliant config file path.

    Priority:
    1. $XDG_CONFIG_HOME/hookspeak/config.toml
    2. ~/.config/hookspeak/config.toml
    """
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "hookspeak" / "config.toml"
    return Path.home() / ".config" / "hookspeak" / "config.toml"


def generate_config(path: Path | None = None) -> Path:
    """Write the default config file.

    Args:
        path: Destination (defaults to get_config_path())

    Returns:
        Path of the written file
    """
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG)
    return path


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}", field=name)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"[{name}] must be a table", field=name)
    return section


def _check_provider_name(name: str, value: str | None, allowed: tuple[str, ...]) -> None:
    if value is not None and value not in allowed:
        raise ConfigurationError(
            f"{name} must be one of {', '.join(allowed)}, got {value!r}", field=name
        )


def load_config(
    path: Path | None = None, env: Mapping[str, str] | None = None
) -> HookspeakConfig:
    """Load configuration from the config file with env var overrides.

    A missing config file yields the defaults. Nothing is memoized; every
    call reads the file again.

    Args:
        path: Config file path (defaults to get_config_path())
        env: Environment mapping (defaults to os.environ)

    Returns:
        Loaded and validated HookspeakConfig

    Raises:
        ConfigurationError: If the file is malformed or a value is invalid
    """
    env = os.environ if env is None else env
    path = path or get_config_path()

    data: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid config file {path}: {e}", None, e) from e

    tts = _section(data, "tts")
    openai_cfg = _section(data, "openai")
    eleven_cfg = _section(data, "elevenlabs")
    system_cfg = _section(data, "system")
    cache = _section(data, "cache")
    retry = _section(data, "retry")

    provider = env.get("HOOKSPEAK_PROVIDER", tts.get("provider", "auto"))
    fallback = env.get("HOOKSPEAK_FALLBACK", tts.get("fallback")) or None
    _check_provider_name("tts.provider", provider, PROVIDER_MODES)
    _check_provider_name("tts.fallback", fallback, PROVIDER_NAMES)

    cache_enabled = cache.get("enabled", True)
    if "HOOKSPEAK_CACHE_ENABLED" in env:
        cache_enabled = _parse_bool(
            "HOOKSPEAK_CACHE_ENABLED", env["HOOKSPEAK_CACHE_ENABLED"]
        )
    cache_dir = env.get("HOOKSPEAK_CACHE_DIR") or cache.get("directory")

    try:
        return HookspeakConfig(
            tts=TTSConfig(
                provider=provider,
                fallback=fallback,
                speed=float(tts.get("speed", 1.0)),
                format=str(tts.get("format", "mp3")),
            ),
            openai=OpenAIConfig(
                api_key=env.get("OPENAI_API_KEY") or None,
                voice=env.get("OPENAI_TTS_VOICE", openai_cfg.get("voice", "alloy")),
                model=str(openai_cfg.get("model", "tts-1")),
                timeout=float(openai_cfg.get("timeout", 30.0)),
                base_url=str(openai_cfg.get("base_url", "https://api.openai.com/v1")),
            ),
            elevenlabs=ElevenLabsConfig(
                api_key=env.get("ELEVENLABS_API_KEY") or None,
                voice_id=env.get("ELEVENLABS_VOICE_ID", eleven_cfg.get("voice_id"))
                or None,
                model_id=str(eleven_cfg.get("model_id", "eleven_multilingual_v2")),
                timeout=float(eleven_cfg.get("timeout", 30.0)),
            ),
            system=SystemConfig(
                voice=system_cfg.get("voice") or None,
                rate=int(system_cfg.get("rate", 200)),
                timeout=float(system_cfg.get("timeout", 30.0)),
            ),
            cache=CacheConfig(
                enabled=bool(cache_enabled),
                directory=Path(cache_dir).expanduser()
                if cache_dir
                else default_cache_dir(),
                max_size_bytes=int(cache.get("max_size_bytes", DEFAULT_MAX_SIZE_BYTES)),
                max_age_ms=int(cache.get("max_age_ms", DEFAULT_MAX_AGE_MS)),
                max_entries=int(cache.get("max_entries", DEFAULT_MAX_ENTRIES)),
            ),
            retry=RetryConfig(
                max_retries=int(retry.get("max_retries", 3)),
                base_delay=float(retry.get("base_delay", 1.0)),
                max_delay=float(retry.get("max_delay", 8.0)),
            ),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value in {path}: {e}", None, e) from e
