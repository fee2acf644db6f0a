"""HTTP surface for geogate."""

from geogate.api.app import create_app

__all__ = ["create_app"]
