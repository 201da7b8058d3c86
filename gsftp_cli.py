#!/usr/bin/env python3
"""Script wrapper for running gsftp from a source checkout."""

from __future__ import annotations

import sys

from gsftp.main import main


if __name__ == "__main__":
    sys.exit(main())
