#!/usr/bin/env python3
"""Standalone script for running a recoverability posture assessment.

Equivalent to the ``posture-assess`` console script, for use from a
checkout without installing the package. See ``--help`` for options.

Usage:
    python scripts/run_assessment.py --results-dir ./results --fail-on-high
"""

import sys

# Add the parent directory to the path for imports
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from recoverability.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
