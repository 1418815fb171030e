"""CLI entrypoint for the crossfade transition builder."""

import sys

from crossfade.cli import main

if __name__ == "__main__":
    sys.exit(main())
