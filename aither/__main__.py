"""Entry point for running Aither as a module (python -m aither)."""

from __future__ import annotations


def main() -> None:
    from aither.cli.main import main as cli_main

    cli_main()


if __name__ == "__main__":
    main()
