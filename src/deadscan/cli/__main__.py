"""Allow ``python -m deadscan.cli``."""

from deadscan.cli import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
