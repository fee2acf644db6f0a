"""Tests for the downstream lookup backends."""

import json
import subprocess

import httpx
import pytest

from geogate.config import Settings
from geogate.errors import UpstreamError
from geogate.lookup import HttpLookup, MmdbInspectLookup, create_lookup

SAMPLE_OUTPUT = [
    {
        "Database": "location_sample.mmdb",
        "Records": [
            {
                "Network": "8.8.8.0/24",
                "Record": {"country": {"iso_code": "US"}},
            }
        ],
        "Lookup": "8.8.8.8",
    }
]


def _completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestMmdbInspectLookup:
    """Tests for MmdbInspectLookup."""

    @pytest.fixture
    def lookup(self) -> MmdbInspectLookup:
        return MmdbInspectLookup("location_sample.mmdb", binary="mmdbinspect", timeout=2)

    def test_parses_output(self, lookup: MmdbInspectLookup, monkeypatch) -> None:
        seen = {}

        def fake_run(command, **kwargs):
            seen["command"] = command
            return _completed(json.dumps(SAMPLE_OUTPUT))

        monkeypatch.setattr(subprocess, "run", fake_run)
        data = lookup.lookup("8.8.8.8")

        assert data == SAMPLE_OUTPUT
        assert seen["command"] == ["mmdbinspect", "-db", "location_sample.mmdb", "8.8.8.8"]

    def test_no_records_means_no_data(self, lookup: MmdbInspectLookup, monkeypatch) -> None:
        empty = [{"Database": "location_sample.mmdb", "Records": None, "Lookup": "10.0.0.1"}]
        monkeypatch.setattr(subprocess, "run", lambda command, **kwargs: _completed(json.dumps(empty)))

        assert lookup.lookup("10.0.0.1") is None

    def test_nonzero_exit(self, lookup: MmdbInspectLookup, monkeypatch) -> None:
        monkeypatch.setattr(
            subprocess, "run", lambda command, **kwargs: _completed(returncode=1, stderr="bad db")
        )
        with pytest.raises(UpstreamError, match="lookup"):
            lookup.lookup("8.8.8.8")

    def test_unparseable_output(self, lookup: MmdbInspectLookup, monkeypatch) -> None:
        monkeypatch.setattr(subprocess, "run", lambda command, **kwargs: _completed("not json"))
        with pytest.raises(UpstreamError, match="data"):
            lookup.lookup("8.8.8.8")

    def test_missing_binary(self, monkeypatch) -> None:
        lookup = MmdbInspectLookup("x.mmdb", binary="/nonexistent/mmdbinspect")
        with pytest.raises(UpstreamError):
            lookup.lookup("8.8.8.8")

    def test_timeout(self, lookup: MmdbInspectLookup, monkeypatch) -> None:
        def slow(command, **kwargs):
            raise subprocess.TimeoutExpired(command, kwargs.get("timeout"))

        monkeypatch.setattr(subprocess, "run", slow)
        with pytest.raises(UpstreamError):
            lookup.lookup("8.8.8.8")


class TestHttpLookup:
    """Tests for HttpLookup."""

    def _lookup(self, handler) -> HttpLookup:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return HttpLookup("http://geo.test/lookup/{ip}", client=client)

    def test_returns_json(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/lookup/1.2.3.4"
            return httpx.Response(200, json={"country": "AU"})

        assert self._lookup(handler).lookup("1.2.3.4") == {"country": "AU"}

    def test_404_means_no_data(self) -> None:
        lookup = self._lookup(lambda request: httpx.Response(404))
        assert lookup.lookup("1.2.3.4") is None

    def test_server_error(self) -> None:
        lookup = self._lookup(lambda request: httpx.Response(503))
        with pytest.raises(UpstreamError):
            lookup.lookup("1.2.3.4")

    def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(UpstreamError):
            self._lookup(handler).lookup("1.2.3.4")

    def test_requires_placeholder(self) -> None:
        with pytest.raises(ValueError):
            HttpLookup("http://geo.test/lookup")


class TestCreateLookup:
    def test_mmdbinspect_backend(self) -> None:
        settings = Settings(lookup_backend="mmdbinspect", mmdb_path="db.mmdb")
        assert isinstance(create_lookup(settings), MmdbInspectLookup)

    def test_http_backend(self) -> None:
        settings = Settings(lookup_backend="http", lookup_url="http://geo.test/{ip}")
        lookup = create_lookup(settings)
        assert isinstance(lookup, HttpLookup)
        lookup.close()

    def test_http_backend_requires_url(self) -> None:
        with pytest.raises(ValueError):
            create_lookup(Settings(lookup_backend="http", lookup_url=None))

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unknown lookup backend"):
            create_lookup(Settings(lookup_backend="carrier-pigeon"))
