"""Unit tests for cache key derivation."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from hookspeak.cache.keys import generate_key, normalize_text


class TestNormalizeText:
    """Test text normalization rules."""

    def test_trims_and_collapses_whitespace(self) -> None:
        assert normalize_text("  Build \t finished\n\nnow  ") == "build finished now"

    def test_case_folds(self) -> None:
        assert normalize_text("STRASSE") == normalize_text("straße")


class TestGenerateKey:
    """Test generate_key determinism and sensitivity."""

    def test_same_inputs_same_key(self) -> None:
        """Test that the key does not depend on time or call order."""
        first = generate_key("Tests passed", "tts-1", "alloy", 1.0)
        second = generate_key("Tests passed", "tts-1", "alloy", 1.0)

        assert first == second
        assert len(first) == 64
        assert all(c in "0123456789abcdef" for c in first)

    def test_known_digest(self) -> None:
        """Test that the digest format is stable across releases."""
        import hashlib

        expected = hashlib.sha256(
            '["hello world", "tts-1", "alloy", "1.00"]'.encode("utf-8")
        ).hexdigest()
        assert generate_key("Hello   World", "tts-1", "alloy", 1) == expected

    def test_normalized_text_variants_collide(self) -> None:
        a = generate_key("  Hello   World ", "m", "v", 1.0)
        b = generate_key("hello world", "m", "v", 1.0)
        assert a == b

    def test_speed_rendered_with_two_decimals(self) -> None:
        assert generate_key("x", "m", "v", 1.0) == generate_key("x", "m", "v", 1.001)
        assert generate_key("x", "m", "v", 1.0) != generate_key("x", "m", "v", 1.25)

    @pytest.mark.parametrize(
        "other",
        [
            ("other text", "tts-1", "alloy", 1.0),
            ("text", "tts-1-hd", "alloy", 1.0),
            ("text", "tts-1", "nova", 1.0),
            ("text", "tts-1", "alloy", 1.5),
        ],
    )
    def test_any_field_change_changes_key(self, other) -> None:
        assert generate_key("text", "tts-1", "alloy", 1.0) != generate_key(*other)

    def test_delimiters_inside_fields_do_not_collide(self) -> None:
        """Test that field boundaries cannot be shifted by delimiter characters."""
        a = generate_key("a|b", "c", "d", 1.0)
        b = generate_key("a", "b|c", "d", 1.0)
        assert a != b

    def test_unicode_text(self) -> None:
        key = generate_key("こんにちは 世界", "tts-1", "alloy", 1.0)
        assert len(key) == 64

    @pytest.mark.parametrize(
        "args",
        [
            (None, "m", "v", 1.0),
            ("t", None, "v", 1.0),
            ("t", "m", None, 1.0),
            ("t", "m", "v", None),
        ],
    )
    def test_none_parameter_raises(self, args) -> None:
        with pytest.raises(ValueError, match="must be non-None"):
            generate_key(*args)
