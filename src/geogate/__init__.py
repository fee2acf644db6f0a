"""geogate: GeoIP lookups behind per-key, fixed-window request quotas."""

__version__ = "0.1.0"
