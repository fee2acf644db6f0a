"""Lookup backed by the ``mmdbinspect`` command-line tool."""

import json
import logging
import subprocess
from typing import Any

from geogate.errors import UpstreamError
from geogate.lookup.base import GeoLookup

logger = logging.getLogger(__name__)


class MmdbInspectLookup(GeoLookup):
    """
    Runs ``mmdbinspect -db <database> <ip>`` and parses its JSON output.

    mmdbinspect prints a list with one entry per database, each holding
    the matching ``Records``; an address with no records has no data.
    """

    def __init__(
        self,
        database_path: str,
        binary: str = "mmdbinspect",
        timeout: float = 10.0,
    ) -> None:
        self._database_path = database_path
        self._binary = binary
        self._timeout = timeout

    @property
    def backend_name(self) -> str:
        return "mmdbinspect"

    def lookup(self, ip: str) -> Any | None:
        command = [self._binary, "-db", self._database_path, ip]
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"Error executing mmdbinspect: {e}")
            raise UpstreamError("Error processing GeoIP lookup") from e

        if completed.returncode != 0:
            logger.error(
                f"mmdbinspect exited with {completed.returncode}: {completed.stderr.strip()}"
            )
            raise UpstreamError("Error processing GeoIP lookup")

        try:
            data = json.loads(completed.stdout)
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing mmdbinspect output: {e}")
            raise UpstreamError("Error processing GeoIP data") from e

        if not _has_records(data):
            return None
        return data


def _has_records(data: Any) -> bool:
    if not data:
        return False
    if isinstance(data, list):
        return any(
            not isinstance(entry, dict) or entry.get("Records")
            for entry in data
        )
    return True
