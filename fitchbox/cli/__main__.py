"""
Fitchbox CLI entry point.

Usage:
    python -m fitchbox.cli check proof.json
    python -m fitchbox.cli parse "[](P -> Q)"
    python -m fitchbox.cli rules --system S5
    python -m fitchbox.cli demo
"""

import sys
from .main import main

if __name__ == "__main__":
    sys.exit(main())
