"""Main entry point for the cogboard command-line tools."""

import sys

from cogboard.diagnostics.cli import main as cli_main


def main() -> int:
    """Run the cogboard CLI."""
    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
