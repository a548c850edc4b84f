"""Allow running as ``python -m ddcli``."""

import sys

from ddcli.cli.app import main

if __name__ == "__main__":
    sys.exit(main())
