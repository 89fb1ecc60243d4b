"""
Network allow-list matching for admin grants.

An allow-list entry is either a literal IPv4/IPv6 address or a CIDR block.
IPv4-mapped IPv6 addresses (``::ffff:a.b.c.d``) are normalized to IPv4 on
both sides before comparing, so ``::ffff:10.0.0.5`` matches ``10.0.0.0/24``.

Only IPv6 entries that lie inside ``::ffff:0:0/96`` are rewritten as IPv4.
Wider IPv6 blocks such as ``::/0`` stay IPv6 and match IPv6 clients only;
an IPv4 client, mapped or not, needs an IPv4 entry (``0.0.0.0/0`` for any).
"""
from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterable, Sequence
from functools import lru_cache

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network

logger = logging.getLogger("photo_rbac.network")

_IPV4_MAPPED = ipaddress.IPv6Network("::ffff:0:0/96")


def _normalize_address(address: IPAddress) -> IPAddress:
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def _normalize_network(network: IPNetwork) -> IPNetwork:
    if (
        isinstance(network, ipaddress.IPv6Network)
        and network.prefixlen >= _IPV4_MAPPED.prefixlen
        and network.subnet_of(_IPV4_MAPPED)
    ):
        mapped = network.network_address.ipv4_mapped
        return ipaddress.IPv4Network(
            (mapped, network.prefixlen - _IPV4_MAPPED.prefixlen)
        )
    return network


def _strip(value: str) -> str:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    return value


def parse_address(value: str) -> IPAddress:
    """Parse a client address.

    Raises:
        ValueError: If ``value`` is not an IPv4 or IPv6 address
    """
    return _normalize_address(ipaddress.ip_address(_strip(value)))


@lru_cache(maxsize=1024)
def parse_network_spec(value: str) -> IPNetwork:
    """Parse an allow-list entry into a network.

    A literal address becomes a single-host network. Host bits set in a CIDR
    block are ignored (``10.0.0.5/24`` is ``10.0.0.0/24``).

    Raises:
        ValueError: If ``value`` is neither an address nor a CIDR block
    """
    text = _strip(value)
    if not text:
        raise ValueError("Empty network specification")
    if "/" in text:
        network = ipaddress.ip_network(text, strict=False)
    else:
        network = ipaddress.ip_network(ipaddress.ip_address(text))
    return _normalize_network(network)


def validate_allow_list(entries: Iterable[str]) -> list[str]:
    """Check every entry parses and return them stripped, in order.

    Raises:
        ValueError: Naming every entry that failed to parse
    """
    cleaned: list[str] = []
    invalid: list[str] = []
    for entry in entries:
        if not isinstance(entry, str):
            invalid.append(repr(entry))
            continue
        text = entry.strip()
        try:
            parse_network_spec(text)
        except ValueError:
            invalid.append(entry)
            continue
        cleaned.append(text)
    if invalid:
        raise ValueError(
            "Invalid IP address or CIDR range in allowed IPs: " + ", ".join(invalid)
        )
    return cleaned


def matches(client_address: str | None, allow_list: Sequence[str]) -> bool:
    """Return True if ``client_address`` is allowed by ``allow_list``.

    An empty list means no restriction. Entries are OR'ed. A malformed client
    address never matches a non-empty list, and a malformed entry only fails
    itself. Never raises.
    """
    if not allow_list:
        return True

    if not client_address:
        logger.warning("Missing client address checked against allow-list")
        return False
    try:
        address = parse_address(client_address)
    except ValueError:
        logger.warning("Malformed client address %r checked against allow-list", client_address)
        return False

    for entry in allow_list:
        if not isinstance(entry, str):
            logger.warning("Skipping non-string allow-list entry %r", entry)
            continue
        try:
            network = parse_network_spec(entry)
        except ValueError:
            logger.warning("Skipping unparseable allow-list entry %r", entry)
            continue
        if network.version == address.version and address in network:
            return True
    return False
