"""Test package structure and imports."""

import sys
from pathlib import Path

import pytest

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))


def test_package_imports() -> None:
    """Test that hookspeak package can be imported."""
    import hookspeak

    assert hookspeak.__version__ == "0.1.0"


def test_lazy_speak_attribute() -> None:
    """Test that the top-level speak is the API coroutine function."""
    import hookspeak
    from hookspeak.api import speak

    assert hookspeak.speak is speak


def test_unknown_attribute() -> None:
    import hookspeak

    with pytest.raises(AttributeError, match="no attribute 'nope'"):
        hookspeak.nope  # noqa: B018


def test_main_module_imports() -> None:
    """Test that main module can be imported without error."""
    from hookspeak.__main__ import main

    assert callable(main)
