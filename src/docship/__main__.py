"""Allow ``python -m docship``."""

from docship.cli import app

if __name__ == "__main__":
    app()
