"""HTTP surface."""

from koro.api.server import create_app

__all__ = ["create_app"]
