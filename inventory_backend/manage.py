#!/usr/bin/env python
"""
PATH: manage.py

Management entrypoint for the stock ledger.

DJANGO_SETTINGS_MODULE resolution:
- explicit concrete module (e.g. backend.settings.prod): used as is
- unset, or the bare package "backend.settings": `test` gets
  backend.settings.test, every other command backend.settings.dev
"""

from __future__ import annotations

import os
import sys


def _ensure_settings_module(argv: list[str]) -> None:
    current = (os.environ.get("DJANGO_SETTINGS_MODULE") or "").strip()
    if current and current != "backend.settings":
        return

    command = argv[1] if len(argv) > 1 else ""
    os.environ["DJANGO_SETTINGS_MODULE"] = (
        "backend.settings.test" if command == "test" else "backend.settings.dev"
    )


def main() -> None:
    _ensure_settings_module(sys.argv)

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Django is not importable. Install the project (pip install -e .) "
            "inside the active virtual environment."
        ) from exc

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
