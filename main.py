"""Compatibility bootstrap that forwards to the API server entry point."""

from __future__ import annotations

import sys
from typing import Sequence

from toonana.webapi.__main__ import main as serve


def main(argv: Sequence[str] | None = None) -> int:
    """Run the API server with the supplied ``argv`` sequence."""

    serve(argv)
    return 0


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
