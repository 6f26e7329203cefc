"""Allow running as ``python -m gorerun``."""

from gorerun.cli import main

if __name__ == "__main__":
    main()
