"""
Entry point for running pc_optimizer as a module.

Usage:
    python -m pc_optimizer status
"""

from .cli import main

if __name__ == "__main__":
    main()
