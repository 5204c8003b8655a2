"""Runs the export check CLI with repository-relative imports."""

from __future__ import annotations

import sys
from pathlib import Path


def main() -> int:
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))

    # Lazy import after adjusting sys.path
    from exportguard.cli import main as run_cli  # type: ignore

    return run_cli()


if __name__ == "__main__":
    raise SystemExit(main())
