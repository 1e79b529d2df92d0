"""Entry point for ``python -m transrpc``."""
import sys

from transrpc.cli import main

if __name__ == "__main__":
    sys.exit(main())
