"""Allow running as ``python -m apcacli``."""

import sys

from apcacli.cli import main

if __name__ == "__main__":
    sys.exit(main())
