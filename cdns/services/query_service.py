from __future__ import annotations

import ipaddress
import logging
import socket
from dataclasses import dataclass
from datetime import datetime, timezone
from time import perf_counter, sleep
from typing import Callable, Iterable

from ..config import DEFAULT_RETRIES, DEFAULT_TIMEOUT_SECONDS
from ..models import Result
from ..plugins import dns as dns_client
from ..plugins.dns import DEFAULT_PORT, RECORD_TYPES, RawRecord, fqdn, join_host_port, split_host_port
from ..plugins.records import parse_record

log = logging.getLogger(__name__)


class QueryValidationError(ValueError):
    """Bad caller input: never retried, reported as-is."""


class QueryFailedError(Exception):
    def __init__(self, attempts: int, last_error: Exception | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"failed after {attempts} attempts: {last_error}")


@dataclass(frozen=True)
class QueryConfig:
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    record_filter: tuple[str, ...] = ()


def build_query_config(
    timeout: float | None = 0,
    retries: int | None = 0,
    record_filter: Iterable[str] | None = None,
) -> QueryConfig:
    """Single place where 0/None timeout and retries fall back to the defaults."""
    names: list[str] = []
    for item in record_filter or []:
        names.extend(p.strip().upper() for p in str(item).split(",") if p.strip())
    return QueryConfig(
        timeout=float(timeout) if timeout and timeout > 0 else DEFAULT_TIMEOUT_SECONDS,
        retries=int(retries) if retries and retries > 0 else DEFAULT_RETRIES,
        record_filter=tuple(dict.fromkeys(names)),
    )


def is_valid_domain(domain: str) -> bool:
    d = domain[:-1] if domain.endswith(".") else domain
    if not d or len(d) > 253:
        return False
    labels = d.split(".")
    if len(labels) < 2:
        return False
    return all(0 < len(label) <= 63 for label in labels)


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _with_default_port(ns: str) -> str:
    if _is_ip(ns):
        return join_host_port(ns, DEFAULT_PORT)
    if ns.startswith("[") and ns.endswith("]"):
        return f"{ns}:{DEFAULT_PORT}"
    if ":" not in ns:
        return f"{ns}:{DEFAULT_PORT}"
    return ns


def prepare_nameservers(nameservers: Iterable[str]) -> list[str]:
    """
    Normalize candidate nameservers to "host:port".

    Entries starting with "-" are dropped silently; malformed or unresolvable
    entries are dropped with a warning. Order and duplicates are kept.
    """
    prepared: list[str] = []
    for raw in nameservers:
        ns = raw.strip()
        if ns.startswith("-"):
            continue
        ns = _with_default_port(ns)
        try:
            host, port = split_host_port(ns)
        except ValueError:
            log.warning("Invalid nameserver format: %s", ns)
            continue
        if not host:
            log.warning("Invalid nameserver format: %s", ns)
            continue
        if not _is_ip(host):
            try:
                socket.getaddrinfo(host, None)
            except OSError:
                log.warning("Cannot resolve nameserver: %s", host)
                continue
        prepared.append(join_host_port(host, port))
    return prepared


def query_with_retry(domain: str, nameserver: str, rdtype: int, config: QueryConfig) -> list[RawRecord]:
    """
    Up to config.retries attempts (at least one), sleeping attempt+1 seconds
    between them. Every client error is retried the same way.
    """
    attempts = max(1, config.retries)
    last_error: Exception | None = None
    for attempt in range(attempts):
        try:
            return dns_client.exchange(domain, rdtype, nameserver, config.timeout)
        except dns_client.DNSClientError as e:
            last_error = e
        if attempt < attempts - 1:
            sleep(attempt + 1)
    raise QueryFailedError(attempts, last_error)


def selected_record_types(record_filter: Iterable[str] = ()) -> list[str]:
    wanted = {name.upper() for name in record_filter}
    if wanted:
        names = [name for name in RECORD_TYPES if name in wanted]
    else:
        names = list(RECORD_TYPES)
    return sorted(names)


def _nameserver_host(nameserver: str) -> str:
    try:
        return split_host_port(nameserver)[0]
    except ValueError:
        return nameserver.split(":")[0]


def query_nameserver(domain: str, nameserver: str, config: QueryConfig) -> Result:
    result = Result(
        nameserver=_nameserver_host(nameserver),
        domain=domain,
        query_time=datetime.now(timezone.utc),
    )
    stats = result.statistics

    for name in selected_record_types(config.record_filter):
        stats.total_queries += 1
        started = perf_counter()
        try:
            answers = query_with_retry(domain, nameserver, RECORD_TYPES[name], config)
        except QueryFailedError as e:
            stats.total_response_time += perf_counter() - started
            log.debug("DNS query failed: type=%s nameserver=%s error=%s", name, nameserver, e)
            result.errors[name] = str(e)
            stats.failed_queries += 1
            continue
        stats.total_response_time += perf_counter() - started
        stats.successful_queries += 1
        if answers:
            result.records[name] = [parse_record(ans, name) for ans in answers]

    if stats.total_queries > 0:
        stats.average_response_time = stats.total_response_time / stats.total_queries
    return result


def run_query(
    domain: str,
    nameservers: Iterable[str],
    config: QueryConfig,
    progress_cb: Callable[[Result], None] | None = None,
) -> list[Result]:
    """Validate, prepare and query every nameserver in turn; raises QueryValidationError."""
    domain = fqdn(domain)
    if not is_valid_domain(domain):
        raise QueryValidationError("Invalid domain")
    prepared = prepare_nameservers(nameservers)
    if not prepared:
        raise QueryValidationError("No valid nameservers provided")

    log.info("Starting DNS query: domain=%s nameservers=%s", domain, prepared)
    results: list[Result] = []
    for ns in prepared:
        result = query_nameserver(domain, ns, config)
        results.append(result)
        if progress_cb:
            progress_cb(result)
    log.info("DNS query completed: total_nameservers=%d", len(prepared))
    return results
