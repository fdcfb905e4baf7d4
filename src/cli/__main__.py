"""Allow ``python -m cli`` as an alias of the ``census`` command."""

from __future__ import annotations

from cli.main import main

if __name__ == "__main__":
    raise SystemExit(main())
