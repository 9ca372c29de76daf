# File: queryfields/__main__.py
"""
queryfields — Module entry point.

Allows running the generator directly via::

    python -m queryfields --source src/app --output src
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from queryfields.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
