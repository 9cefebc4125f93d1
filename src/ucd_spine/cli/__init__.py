"""ucd-spine command line interface."""

from ucd_spine.cli.app import app

__all__ = ["app"]
