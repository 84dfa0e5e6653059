"""Entry point for ``python -m plan_fixtures``."""

from plan_fixtures.cli import app

if __name__ == "__main__":
    app()
