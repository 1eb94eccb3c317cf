"""docship command-line interface.

Usage::

    docship --help
    docship -c docship.yaml build --skip-publish
    docship --version 5.4.0 --replace-current publish-docs
"""

from docship.cli.app import app

__all__ = ["app"]
