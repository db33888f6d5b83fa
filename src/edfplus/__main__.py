"""Entry point for ``python -m edfplus``."""

from edfplus.cli import cli

if __name__ == "__main__":
    cli()
