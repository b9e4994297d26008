"""DEADSWITCH CLI"""

from deadswitch.cli.main import app

__all__ = ["app"]
