"""
Main entry point for running metaclean as a module.

Usage:
    python -m metaclean [options] <path>
"""

from .cli import main
import sys

if __name__ == "__main__":
    sys.exit(main())
