from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Any

import dns.exception
import dns.flags
import dns.inet
import dns.message
import dns.name
import dns.query
import dns.rcode
import dns.rdatatype

DEFAULT_PORT = 53

RECORD_TYPES: dict[str, int] = {
    "A": 1,
    "AAAA": 28,
    "MX": 15,
    "NS": 2,
    "CNAME": 5,
    "TXT": 16,
    "PTR": 12,
    "SRV": 33,
    "SOA": 6,
    "CAA": 257,
    "DNSKEY": 48,
    "DS": 43,
    "RRSIG": 46,
    "NSEC": 47,
}

POPULAR_DNS_SERVERS: dict[str, str] = {
    "8.8.8.8": "Google DNS",
    "8.8.4.4": "Google DNS",
    "1.1.1.1": "Cloudflare DNS",
    "1.0.0.1": "Cloudflare DNS",
    "9.9.9.9": "Quad9 DNS",
    "149.112.112.112": "Quad9 DNS",
    "208.67.222.222": "OpenDNS",
    "208.67.220.220": "OpenDNS",
    "76.76.19.19": "Alternate DNS",
    "76.223.100.101": "Alternate DNS",
    "94.140.14.14": "AdGuard DNS",
    "94.140.15.15": "AdGuard DNS",
    "77.88.8.8": "Yandex DNS",
    "77.88.8.1": "Yandex DNS",
}


class DNSClientError(Exception):
    """Base class for failures of a single query/response exchange."""


class ExchangeError(DNSClientError):
    """The request never produced a usable response (timeout, socket error, bad packet)."""


class ResponseCodeError(DNSClientError):
    """The nameserver answered, but with a non-NOERROR response code."""

    def __init__(self, rcode: int) -> None:
        self.rcode = rcode
        self.rcode_name = dns.rcode.to_text(rcode)
        super().__init__(f"DNS error: {self.rcode_name}")


@dataclass(frozen=True)
class RawRecord:
    """One answer-section entry: the owner name and TTL of its RRset plus the rdata."""

    name: str
    ttl: int
    rdtype: int
    rdata: Any

    @property
    def type_name(self) -> str:
        return dns.rdatatype.to_text(self.rdtype)

    def to_text(self) -> str:
        return f"{self.name}\t{self.ttl}\tIN\t{self.type_name}\t{self.rdata.to_text()}"


def fqdn(domain: str) -> str:
    domain = domain.strip()
    return domain if domain.endswith(".") else domain + "."


def split_host_port(value: str) -> tuple[str, str]:
    """
    Split "host:port" or "[v6]:port". Raises ValueError on anything else,
    including a missing port or a bare IPv6 literal.
    """
    if value.startswith("["):
        end = value.find("]")
        if end == -1 or value[end + 1 : end + 2] != ":":
            raise ValueError(f"missing port in address {value!r}")
        host, port = value[1:end], value[end + 2 :]
    else:
        if value.count(":") != 1:
            raise ValueError(f"invalid host:port {value!r}")
        host, port = value.split(":", 1)
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"invalid port in address {value!r}")
    return host, port


def join_host_port(host: str, port: str | int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def resolve_address(host: str, port: str | int) -> str:
    """Return host itself when it is an IP literal, else its first resolved address."""
    if dns.inet.is_address(host):
        return host
    try:
        infos = socket.getaddrinfo(host, int(port), type=socket.SOCK_DGRAM)
    except OSError as e:
        raise ExchangeError(f"exchange failed: cannot resolve {host}: {e}") from e
    if not infos:
        raise ExchangeError(f"exchange failed: cannot resolve {host}")
    return infos[0][4][0]


def exchange(domain: str, rdtype: int, nameserver: str, timeout: float) -> list[RawRecord]:
    """
    Send one recursive query for (domain, rdtype) to nameserver ("host:port")
    and return the answer section flattened to RawRecord entries.

    A hostname nameserver is resolved on every call. Truncated UDP answers
    are repeated once over TCP.
    """
    try:
        host, port = split_host_port(nameserver)
    except ValueError:
        host, port = nameserver, str(DEFAULT_PORT)

    address = resolve_address(host, port)
    try:
        query = dns.message.make_query(dns.name.from_text(fqdn(domain)), rdtype)
        response = dns.query.udp(query, address, timeout=timeout, port=int(port))
        if response.flags & dns.flags.TC:
            response = dns.query.tcp(query, address, timeout=timeout, port=int(port))
    except (dns.exception.DNSException, OSError, ValueError) as e:
        raise ExchangeError(f"exchange failed: {str(e) or type(e).__name__}") from e

    if response.rcode() != dns.rcode.NOERROR:
        raise ResponseCodeError(response.rcode())

    return [
        RawRecord(name=rrset.name.to_text(), ttl=rrset.ttl, rdtype=rrset.rdtype, rdata=rdata)
        for rrset in response.answer
        for rdata in rrset
    ]
