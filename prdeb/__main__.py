"""Entry point for `python -m prdeb`."""
from prdeb.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
