"""Command-line interface for Docstore Server."""

from docstore_server import __version__
