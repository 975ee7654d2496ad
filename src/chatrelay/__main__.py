"""chatrelay CLI bootstrap."""

from __future__ import annotations

from chatrelay.cli import create_cli_app

app = create_cli_app()

if __name__ == "__main__":
    app()
