"""Downstream geolocation lookups invoked after admission."""

from geogate.config import Settings
from geogate.lookup.base import GeoLookup
from geogate.lookup.http import HttpLookup
from geogate.lookup.mmdbinspect import MmdbInspectLookup


def create_lookup(settings: Settings) -> GeoLookup:
    """Build the lookup backend selected by ``settings.lookup_backend``."""
    backend = settings.lookup_backend.lower()
    if backend == "mmdbinspect":
        return MmdbInspectLookup(
            database_path=settings.mmdb_path,
            binary=settings.mmdbinspect_bin,
            timeout=settings.lookup_timeout,
        )
    if backend == "http":
        if not settings.lookup_url:
            raise ValueError("GEOGATE_LOOKUP_URL is required for the http lookup backend")
        return HttpLookup(settings.lookup_url, timeout=settings.lookup_timeout)
    raise ValueError(f"Unknown lookup backend: {backend!r}. Valid options: mmdbinspect, http")


__all__ = ["GeoLookup", "HttpLookup", "MmdbInspectLookup", "create_lookup"]
