from __future__ import annotations

import threading
from dataclasses import dataclass, field

import dns.rcode
import dns.rdata
import dns.rdataclass
import dns.rdatatype
import pytest

import cdns.plugins.dns as dns_client
import cdns.services.query_service as query_service
from cdns.plugins.dns import ExchangeError, RawRecord, ResponseCodeError


def rr(name: str, rdtype: str, text: str, ttl: int = 300) -> RawRecord:
    code = dns.rdatatype.from_text(rdtype)
    return RawRecord(
        name=name,
        ttl=ttl,
        rdtype=code,
        rdata=dns.rdata.from_text(dns.rdataclass.IN, code, text),
    )


ANSWERS: dict[str, list[RawRecord]] = {
    "A": [rr("example.com.", "A", "93.184.216.34")],
    "AAAA": [rr("example.com.", "AAAA", "2606:2800:220:1:248:1893:25c8:1946")],
    "MX": [
        rr("example.com.", "MX", "10 mail.example.com."),
        rr("example.com.", "MX", "20 backup.example.com."),
    ],
    "NS": [rr("example.com.", "NS", "a.iana-servers.net.", ttl=86400)],
    "TXT": [rr("example.com.", "TXT", '"v=spf1 -all"')],
}


@dataclass
class FakeDNS:
    """Deterministic stand-in for the network exchange."""

    answers: dict[str, list[RawRecord]] = field(default_factory=lambda: dict(ANSWERS))
    failing: set[str] = field(default_factory=set)
    nxdomain: set[str] = field(default_factory=set)
    calls: list[tuple[str, str, str, float]] = field(default_factory=list)
    gate: threading.Event | None = None

    def exchange(self, domain: str, rdtype: int, nameserver: str, timeout: float) -> list[RawRecord]:
        if self.gate is not None:
            self.gate.wait(timeout=5)
        name = dns.rdatatype.to_text(rdtype)
        self.calls.append((domain, name, nameserver, timeout))
        if name in self.failing:
            raise ExchangeError("exchange failed: timed out")
        if name in self.nxdomain:
            raise ResponseCodeError(dns.rcode.NXDOMAIN)
        return list(self.answers.get(name, []))

    def queried_types(self) -> list[str]:
        return [c[1] for c in self.calls]


@pytest.fixture()
def fake_dns(monkeypatch: pytest.MonkeyPatch) -> FakeDNS:
    fake = FakeDNS()
    monkeypatch.setattr(dns_client, "exchange", fake.exchange)
    return fake


@pytest.fixture()
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr(query_service, "sleep", recorded.append)
    return recorded


@pytest.fixture()
def make_rr():
    return rr
