"""Entry point for ``python -m calhub`` and the ``calhub`` console script."""

import asyncio
import sys

from calhub.cli import main_entry


def main() -> None:
    try:
        exit_code = asyncio.run(main_entry())
    except KeyboardInterrupt:
        print("Operation cancelled by user")
        sys.exit(130)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
