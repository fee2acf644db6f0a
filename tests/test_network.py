"""Tests for client address extraction and normalization."""

import pytest

from geogate.errors import MalformedInputError, OriginUnavailableError
from geogate.network import client_ip, normalize_ip, strip_port


class TestNormalizeIp:
    """Tests for normalize_ip."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("8.8.8.8", "8.8.8.8"),
            (" 8.8.4.4 ", "8.8.4.4"),
            ("::ffff:1.2.3.4", "1.2.3.4"),
            ("::FFFF:10.0.0.1", "10.0.0.1"),
            ("::1", "127.0.0.1"),
            ("2001:0db8:0000:0000:0000:0000:0000:0001", "2001:db8::1"),
            ("[2001:db8::2]", "2001:db8::2"),
            ("fe80::1%eth0", "fe80::1"),
        ],
    )
    def test_canonical_forms(self, raw: str, expected: str) -> None:
        assert normalize_ip(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "not-an-ip", "999.1.1.1", "1.2.3", "example.com"])
    def test_malformed(self, raw: str) -> None:
        with pytest.raises(MalformedInputError):
            normalize_ip(raw)


class TestClientIp:
    """Tests for client_ip."""

    def test_prefers_first_forwarded_entry(self) -> None:
        assert client_ip("203.0.113.7, 10.0.0.1", "127.0.0.1") == "203.0.113.7"

    def test_falls_back_to_peer(self) -> None:
        assert client_ip(None, "::ffff:198.51.100.4") == "198.51.100.4"

    def test_untrusted_forwarded_for_is_ignored(self) -> None:
        assert client_ip("203.0.113.7", "192.0.2.1", trust_forwarded_for=False) == "192.0.2.1"

    @pytest.mark.parametrize(
        "forwarded,expected",
        [
            ("1.2.3.4:5678", "1.2.3.4"),
            ("[2001:db8::1]:443, 10.0.0.1", "2001:db8::1"),
            ("2001:db8::5", "2001:db8::5"),
        ],
    )
    def test_forwarded_entry_with_port(self, forwarded: str, expected: str) -> None:
        assert client_ip(forwarded, "192.0.2.1") == expected

    def test_unparsable_forwarded_entry_falls_back_to_peer(self) -> None:
        assert client_ip("unknown, 10.0.0.1", "192.0.2.1") == "192.0.2.1"

    @pytest.mark.parametrize("peer", [None, "", "testclient"])
    def test_no_origin(self, peer) -> None:
        with pytest.raises(OriginUnavailableError):
            client_ip(None, peer)

    def test_no_origin_is_not_malformed_input(self) -> None:
        with pytest.raises(OriginUnavailableError) as exc_info:
            client_ip("garbage", None)
        assert not isinstance(exc_info.value, MalformedInputError)


class TestStripPort:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1.2.3.4:80", "1.2.3.4"),
            ("1.2.3.4", "1.2.3.4"),
            ("[::1]:8080", "::1"),
            ("[fe80::1%eth0]", "fe80::1%eth0"),
            ("2001:db8::1", "2001:db8::1"),
        ],
    )
    def test_strip_port(self, raw: str, expected: str) -> None:
        assert strip_port(raw) == expected
