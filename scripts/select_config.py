#!/usr/bin/env python3
"""CLI wrapper to trial ByeDPI settings and install the chosen one."""
import sys

from byedpi_setup.cli import main as _main

if __name__ == "__main__":
    try:
        raise SystemExit(_main())
    except SystemExit:
        raise
    except Exception as exc:
        print(f"Error selecting ByeDPI configuration: {exc}", file=sys.stderr)
        sys.exit(1)
