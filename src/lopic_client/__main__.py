"""
Entry point for running lopic_client as a module.

This file enables:
- `python -m lopic_client`
- `uv run python -m lopic_client`
"""

from __future__ import annotations

import sys

from lopic_client import main

if __name__ == "__main__":
    sys.exit(main())
