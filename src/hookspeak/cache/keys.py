"""Deterministic cache key derivation for synthesis requests."""

import hashlib
import json


def normalize_text(text: str) -> str:
    """Normalize text so near-duplicate phrases share a cache key.

    Trims, collapses internal whitespace runs to a single space and
    case-folds.
    """
    return " ".join(text.split()).casefold()


def generate_key(text: str, model: str, voice: str, speed: float) -> str:
    """Generate the cache key for a synthesis request.

    The key depends only on the normalized request fields, never on time or
    process identity. Speed is rendered with two decimals so ``1.0`` and
    ``1.00`` collide. Fields are joined as a JSON array, which cannot be
    confused by delimiter characters inside a field.

    Args:
        text: Text to be spoken
        model: Model identifier
        voice: Voice identifier
        speed: Speaking rate multiplier

    Returns:
        64-character SHA-256 hex digest

    Raises:
        ValueError: If any parameter is None
    """
    if text is None or model is None or voice is None or speed is None:
        raise ValueError("All parameters (text, model, voice, speed) must be non-None")

    payload = json.dumps(
        [normalize_text(text), model, voice, f"{float(speed):.2f}"],
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
