#!/usr/bin/env python3
"""
SubStudio Entry Point Script

Runs the CLI: `python main.py serve` or `python main.py generate -i FILE -o DIR`.
"""

import sys
from substudio.cli import CLIHandler

if __name__ == "__main__":
    if sys.version_info < (3, 9):
        sys.stderr.write("SubStudio requires Python 3.9 or later.\n")
        sys.exit(1)

    sys.exit(CLIHandler().run())
