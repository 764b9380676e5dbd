"""
Command line interface for nutview.
"""

from nutview.cli.main import app

__all__ = ["app"]
