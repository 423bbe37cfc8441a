"""Entry point for running CandleVault as a module.

This allows the CLI to be invoked with ``python -m candlevault``.
"""

from .cli import cli

if __name__ == "__main__":  # pragma: no cover
    cli()
