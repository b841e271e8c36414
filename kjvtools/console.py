"""Console output helpers shared by the CLI tools."""

import sys


def abort(msg):
    """Print error and exit."""
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)


def warn(msg):
    """Print warning to stderr."""
    print(f"WARNING: {msg}", file=sys.stderr)


def info(msg):
    print(msg)


def rule(width: int = 40) -> str:
    return "=" * width
