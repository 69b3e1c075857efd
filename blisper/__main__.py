"""Package entry point for ``python -m blisper``."""

from blisper.cli import main

if __name__ == "__main__":
    main()
