"""Client address extraction and normalization."""

import ipaddress
import logging

from geogate.errors import MalformedInputError, OriginUnavailableError

logger = logging.getLogger(__name__)

IPV4_LOOPBACK = ipaddress.IPv4Address("127.0.0.1")


def normalize_ip(value: str) -> str:
    """
    Parse an address and return its canonical text form.

    IPv6-mapped IPv4 addresses (``::ffff:1.2.3.4``) collapse to the IPv4
    address, the IPv6 loopback ``::1`` becomes ``127.0.0.1``, and other
    IPv6 addresses are rendered in compressed form.

    Raises:
        MalformedInputError: If the value is not an IP address
    """
    text = (value or "").strip()
    # Zone ids and bracketed forms show up in some proxy headers
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    text = text.split("%", 1)[0]
    if not text:
        raise MalformedInputError("Empty IP address")

    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        raise MalformedInputError(f"Invalid IP address: {value!r}") from None

    if isinstance(address, ipaddress.IPv6Address):
        if address.ipv4_mapped is not None:
            address = address.ipv4_mapped
        elif address.is_loopback:
            address = IPV4_LOOPBACK
    return str(address)


def strip_port(entry: str) -> str:
    """Drop a trailing port from ``1.2.3.4:5678`` or ``[2001:db8::1]:443``."""
    text = entry.strip()
    if text.startswith("["):
        end = text.find("]")
        if end != -1:
            return text[1:end]
    elif text.count(":") == 1:
        return text.split(":", 1)[0]
    return text


def client_ip(
    forwarded_for: str | None,
    peer_host: str | None,
    trust_forwarded_for: bool = True,
) -> str:
    """
    Determine the caller's network origin.

    Uses the first ``X-Forwarded-For`` entry when proxies are trusted and
    it parses, otherwise the socket peer address.

    Raises:
        OriginUnavailableError: If neither source yields an address
    """
    if trust_forwarded_for and forwarded_for:
        entry = forwarded_for.split(",")[0].strip()
        if entry:
            try:
                return normalize_ip(strip_port(entry))
            except MalformedInputError:
                logger.warning(f"Ignoring unparsable X-Forwarded-For entry: {entry!r}")

    try:
        return normalize_ip(peer_host or "")
    except MalformedInputError:
        raise OriginUnavailableError() from None
