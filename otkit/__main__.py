"""
otkit.__main__ - Entry point for ``python -m otkit``.

Usage:
    python -m otkit decode payload.bin
    python -m otkit search -b captured.b64 'span.kind == server'
"""

import sys

from otkit.cli import main

if __name__ == "__main__":
    sys.exit(main())
