"""Entry point for the release-deployer CLI."""

from __future__ import annotations

import sys

from .cli import run_cli


def app_main() -> None:
    try:
        exit_code = run_cli()
    except (FileNotFoundError, ValueError) as exc:
        # configuration problems: nothing was touched yet
        print(f"❌ {exc}", file=sys.stderr)
        exit_code = 2
    except KeyboardInterrupt:
        print("\n⛔ Interrupted", file=sys.stderr)
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    app_main()
