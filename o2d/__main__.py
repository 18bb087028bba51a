"""Main entry point for running o2d as a module."""

from .cli import main

if __name__ == "__main__":
    main()
