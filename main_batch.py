#!/usr/bin/env python3
"""
SubStudio Batch Processing Entry Point

Processes all supported media files in a directory, ordered by size.
"""

import sys
from substudio.batch import run_batch_processing

if __name__ == "__main__":
    if sys.version_info < (3, 9):
        sys.stderr.write("SubStudio requires Python 3.9 or later.\n")
        sys.exit(1)

    sys.exit(run_batch_processing())
