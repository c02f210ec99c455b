"""Typer CLI definition for hookspeak."""

import asyncio
import logging
import sys
from pathlib import Path

import typer

from .api import build_orchestrator
from .cache import AudioCacheStore, EvictionPolicy
from .config import HookspeakConfig, generate_config, get_config_path, load_config
from .errors import AllProvidersFailedError, ConfigurationError, ProviderError
from .models import SpeakRequest
from .providers import build_registry

app = typer.Typer(help="Speak short notices with cached AI voices")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(debug: bool) -> None:
    """Set up stderr logging; DEBUG with --debug, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def _load_config_or_exit() -> HookspeakConfig:
    try:
        return load_config()
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None


def _open_store(config: HookspeakConfig) -> AudioCacheStore:
    return AudioCacheStore(
        config.cache.directory,
        policy=EvictionPolicy(
            max_size_bytes=config.cache.max_size_bytes,
            max_age_ms=config.cache.max_age_ms,
            max_entries=config.cache.max_entries,
        ),
        enabled=config.cache.enabled,
    )


def format_size(size_bytes: int) -> str:
    """Render a byte count for humans (e.g. 1.5 MB)."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def process_text_input(text: str | None) -> str:
    """Validate text input from the argument, file or stdin.

    Raises:
        ValueError: If no text is provided
    """
    if text is None or not text.strip():
        raise ValueError("No text provided")
    return text


@app.callback()
def main_callback(
    debug: bool = typer.Option(
        False, "--debug", help="Show verbose logs, cache activity and retries"
    ),
) -> None:
    configure_logging(debug)


@app.command()
def speak(
    text: str | None = typer.Argument(None, help="Text to convert to speech"),
    file: Path | None = typer.Option(None, "-f", "--file", help="Read text from file"),
    output: Path | None = typer.Option(
        None, "-o", "--output", help="Save audio to file"
    ),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="auto, openai, elevenlabs or system"
    ),
    voice: str = typer.Option("", "-v", "--voice", help="Voice ID (provider default if omitted)"),
    model: str = typer.Option("", "-m", "--model", help="Model ID (provider default if omitted)"),
    speed: float | None = typer.Option(None, "--speed", help="Speaking rate (0.25-4.0)"),
    audio_format: str | None = typer.Option(
        None, "--format", help="Output format, e.g. mp3 or opus_48000_128"
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the audio cache"),
) -> None:
    """Synthesize speech, serving repeated text from the cache."""
    if text is None:
        if file:
            try:
                text = file.read_text()
            except (OSError, UnicodeDecodeError) as e:
                typer.echo(f"Error: Unable to read {file}: {e}", err=True)
                raise typer.Exit(1) from None
        elif not sys.stdin.isatty():
            text = sys.stdin.read().strip()

    config = _load_config_or_exit()

    try:
        request = SpeakRequest(
            text=process_text_input(text),
            voice=voice,
            model=model,
            speed=config.tts.speed if speed is None else speed,
            format=audio_format or config.tts.format,
        )
        orchestrator = build_orchestrator(config, provider=provider, cache=not no_cache)
    except (ValueError, ConfigurationError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    try:
        result = asyncio.run(orchestrator.speak(request))
    except AllProvidersFailedError as e:
        # Speech is best-effort: a synthesis failure never fails the calling hook
        typer.echo(f"Notice: speech unavailable ({e})", err=True)
        raise typer.Exit(0) from None

    source = "cache" if result.cached else f"{result.duration_ms_approx}ms"
    if output:
        try:
            output.write_bytes(result.audio_bytes)
        except OSError as e:
            typer.echo(f"Error: Failed to save audio file: {e}", err=True)
            raise typer.Exit(1) from None
        typer.echo(f"Audio saved to {output} ({result.provider_used}, {source})")
    else:
        typer.echo(
            f"Synthesized {format_size(len(result.audio_bytes))} {result.format} "
            f"with {result.provider_used} ({source})"
        )


@app.command("cache-stats")
def cache_stats() -> None:
    """Show audio cache statistics."""
    config = _load_config_or_exit()
    stats = _open_store(config).get_stats()

    typer.echo("=== Cache Statistics ===")
    typer.echo(f"Directory: {config.cache.directory}")
    typer.echo(f"Enabled: {'yes' if config.cache.enabled else 'no'}")
    typer.echo(f"Entries: {stats.entry_count}")
    typer.echo(f"Total size: {format_size(stats.total_size_bytes)}")
    typer.echo(f"Hits: {stats.hit_count}  Misses: {stats.miss_count}")
    typer.echo(f"Hit rate: {stats.hit_rate:.1%}")
    if stats.oldest_entry_at is not None:
        typer.echo(f"Oldest entry: {stats.oldest_entry_at:%Y-%m-%d %H:%M:%S}")
        typer.echo(f"Newest entry: {stats.newest_entry_at:%Y-%m-%d %H:%M:%S}")


@app.command("cache-list")
def cache_list(
    limit: int = typer.Option(20, "-n", "--limit", help="Maximum entries to show"),
) -> None:
    """List cached entries, newest first."""
    config = _load_config_or_exit()
    entries = _open_store(config).entries()

    if not entries:
        typer.echo("Cache is empty")
        return

    for entry in entries[:limit]:
        meta = entry.metadata
        typer.echo(
            f"{entry.key[:16]}  {meta.created_datetime:%Y-%m-%d %H:%M}  "
            f"{meta.provider}/{meta.voice or 'default'}  {meta.format}  "
            f"{format_size(meta.size_bytes)}"
        )
    if len(entries) > limit:
        typer.echo(f"... and {len(entries) - limit} more")


@app.command("cache-key")
def cache_key(
    text: str = typer.Argument(..., help="Text to compute the key for"),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="auto, openai, elevenlabs or system"
    ),
    voice: str = typer.Option("", "-v", "--voice", help="Voice ID (provider default if omitted)"),
    model: str = typer.Option("", "-m", "--model", help="Model ID (provider default if omitted)"),
    speed: float | None = typer.Option(None, "--speed", help="Speaking rate"),
) -> None:
    """Print the cache key `speak` would use for text and voice parameters."""
    config = _load_config_or_exit()

    try:
        request = SpeakRequest(
            text=text,
            voice=voice,
            model=model,
            speed=config.tts.speed if speed is None else speed,
            format=config.tts.format,
        )
        orchestrator = build_orchestrator(config, provider=provider, cache=False)
    except (ValueError, ConfigurationError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    typer.echo(orchestrator.key_for(request))


@app.command("cache-clear")
def cache_clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete every cached entry and reset the counters."""
    config = _load_config_or_exit()
    if not yes:
        typer.confirm(f"Remove all cached audio in {config.cache.directory}?", abort=True)

    removed = _open_store(config).clear()
    typer.echo(f"Removed {removed} cache entries")


@app.command("cache-evict")
def cache_evict() -> None:
    """Apply the size, age and count limits now."""
    config = _load_config_or_exit()
    removed = _open_store(config).evict()
    typer.echo(f"Evicted {removed} cache entries")


@app.command()
def voices(
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="Only list voices of this provider"
    ),
) -> None:
    """List voices of the configured providers."""
    config = _load_config_or_exit()

    try:
        registry = build_registry(config, provider=provider)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if provider in (None, "auto"):
        adapters = registry.instances()
    else:
        adapters = [registry.get_instance(provider)]
    if not adapters:
        typer.echo("No providers configured")
        return

    for adapter in adapters:
        try:
            found = asyncio.run(adapter.list_voices())
        except ProviderError as e:
            typer.echo(f"Error: Failed to list {adapter.name} voices: {e}", err=True)
            continue

        typer.echo(f"Available voices ({adapter.name}):")
        typer.echo("-" * 40)
        for voice in found:
            typer.echo(f"{voice['name']:<25} {voice['id']}")
        typer.echo()


@app.command("init-config")
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write the default config file."""
    path = get_config_path()
    if path.exists() and not force:
        typer.echo(f"Config already exists at {path} (use --force to overwrite)")
        raise typer.Exit(1)

    generate_config(path)
    typer.echo(f"Wrote default config to {path}")
