"""Run the dungym command line interface."""

import sys

from dungym.cli import main

if __name__ == "__main__":
    sys.exit(main())
