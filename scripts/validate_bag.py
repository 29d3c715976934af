#!/usr/bin/env python
"""Validate a bag from the command line.

Usage:
    python scripts/validate_bag.py path/to/bag [--type deposit|migration] [--json]
    python scripts/validate_bag.py --check-profile [--profile profiles/x.yaml]

See `dansbag.cli` for all options.
"""

import sys

from dansbag.cli import main

if __name__ == "__main__":
    sys.exit(main())
