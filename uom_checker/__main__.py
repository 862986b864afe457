"""Entrypoint that runs against any filenames provided on the command line."""

import sys

from . import run

if __name__ == "__main__":
    sys.exit(run())
