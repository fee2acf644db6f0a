"""Abstract base class for downstream geolocation lookups."""

from abc import ABC, abstractmethod
from typing import Any


class GeoLookup(ABC):
    """
    Lookup invoked after a request has been admitted.

    Implementations return the structured record for an address, None
    when the dataset has nothing for it, and raise ``UpstreamError`` on
    any failure.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Short identifier used in logs (e.g. 'mmdbinspect')."""
        ...

    @abstractmethod
    def lookup(self, ip: str) -> Any | None:
        """
        Look up a normalized IP address.

        Returns:
            Parsed lookup data, or None if there is no data for ``ip``

        Raises:
            UpstreamError: On execution or parse failure
        """
        ...

    def close(self) -> None:
        """Release any held resources."""
        return None
