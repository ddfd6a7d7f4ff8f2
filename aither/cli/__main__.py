#!/usr/bin/env python3
"""Entry point for the Aither CLI when run as python -m aither.cli."""

if __name__ == "__main__":
    from aither.cli.main import main

    main()
