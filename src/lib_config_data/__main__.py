"""``python -m lib_config_data`` runs the configuration-data CLI."""

from __future__ import annotations

import sys

from .cli import main


def run() -> int:
    """Run the CLI with the process arguments and return its exit code."""

    return main(sys.argv[1:])


if __name__ == "__main__":  # pragma: no cover - exercised via python -m
    raise SystemExit(run())
