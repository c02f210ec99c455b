"""Entry point for running hookspeak as a module."""

from .cli import app


def main() -> None:
    """Main entry point for the hookspeak CLI application."""
    app()


if __name__ == "__main__":
    main()
