from __future__ import annotations

from typing import Any, Callable

from ..models import ParsedRecord
from .dns import RawRecord


def _address(rd: Any) -> dict[str, Any]:
    return {"address": rd.address}


def _cname(rd: Any) -> dict[str, Any]:
    return {"address": rd.target.to_text()}


def _host(rd: Any) -> dict[str, Any]:
    return {"host": rd.target.to_text()}


def _mx(rd: Any) -> dict[str, Any]:
    return {"host": rd.exchange.to_text(), "pref": rd.preference}


def _txt(rd: Any) -> dict[str, Any]:
    return {"text": " ".join(s.decode("utf-8", errors="replace") for s in rd.strings)}


def _srv(rd: Any) -> dict[str, Any]:
    return {
        "target": rd.target.to_text(),
        "port": rd.port,
        "priority": rd.priority,
        "weight": rd.weight,
    }


def _soa(rd: Any) -> dict[str, Any]:
    return {
        "mname": rd.mname.to_text(),
        "rname": rd.rname.to_text(),
        "serial": rd.serial,
        "refresh": rd.refresh,
        "retry": rd.retry,
        "expire": rd.expire,
        "minimum": rd.minimum,
    }


def _caa(rd: Any) -> dict[str, Any]:
    return {
        "flags": rd.flags,
        "tag": rd.tag.decode("ascii", errors="replace"),
        "value": rd.value.decode("utf-8", errors="replace"),
    }


# Keyed by the rdtype of the answer itself, which can differ from the queried
# type (a CNAME in the answer to an A query).
_EXTRACTORS: dict[str, Callable[[Any], dict[str, Any]]] = {
    "A": _address,
    "AAAA": _address,
    "CNAME": _cname,
    "NS": _host,
    "PTR": _host,
    "MX": _mx,
    "TXT": _txt,
    "SRV": _srv,
    "SOA": _soa,
    "CAA": _caa,
}


def parse_record(raw: RawRecord, record_type: str) -> ParsedRecord:
    """
    Map one answer record to a ParsedRecord labelled with record_type.

    Record shapes without an extractor keep their zone-file text in raw_data.
    """
    extract = _EXTRACTORS.get(raw.type_name)
    fields = extract(raw.rdata) if extract else {"raw_data": raw.to_text()}
    return ParsedRecord(ttl=raw.ttl, type=record_type, **fields)
