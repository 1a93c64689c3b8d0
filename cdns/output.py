from __future__ import annotations

import ipaddress
import json
import sys
from pathlib import Path

from rich import print
from rich.markup import escape

from .models import ParsedRecord, Result, dump_results


def results_json(results: list[Result]) -> str:
    return json.dumps(dump_results(results), indent=2, ensure_ascii=False)


def write_json(results: list[Result], out_file: str | None = None) -> None:
    blob = results_json(results)
    if out_file:
        Path(out_file).write_text(blob, encoding="utf-8")
        print(f"[green]Results written to:[/green] {escape(out_file)}")
    else:
        # plain stdout, so the output stays machine-readable
        sys.stdout.write(blob + "\n")


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def format_record(rec: ParsedRecord) -> str:
    # Layout follows the fields that are set: a CNAME in the answer to an MX
    # query is labelled MX but carries only an address.
    parts = [f"TTL: {rec.ttl}"]
    if rec.raw_data is not None:
        parts.append(f"Data: {rec.raw_data}")
    elif rec.mname is not None:
        parts.append(f"Master: {rec.mname} | Email: {rec.rname} | Serial: {rec.serial}")
    elif rec.tag is not None:
        parts.append(f"Flags: {rec.flags} | Tag: {rec.tag} | Value: {rec.value}")
    elif rec.port is not None:
        parts.append(
            f"Target: {rec.target} | Port: {rec.port} | Priority: {rec.priority} | Weight: {rec.weight}"
        )
    elif rec.pref is not None:
        parts.append(f"Host: {rec.host} | Priority: {rec.pref}")
    elif rec.text is not None:
        parts.append(f"Text: {rec.text}")
    elif rec.host is not None:
        label = "Pointer" if rec.type == "PTR" else "Nameserver"
        parts.append(f"{label}: {rec.host}")
    elif rec.address is not None:
        label = "Address" if _is_ip(rec.address) else "Target"
        parts.append(f"{label}: {rec.address}")
    return " | ".join(parts)


def print_result(result: Result) -> None:
    print(f"\n[bold]Results for {escape(result.domain)} via {escape(result.nameserver)}:[/bold]")
    print(f"Query time: {result.query_time.isoformat()}")
    if not result.records:
        print("[red]No records found[/red]")
    for record_type in sorted(result.records):
        records = result.records[record_type]
        print(f"\n[cyan]{record_type} Records ({len(records)} found):[/cyan]")
        for i, rec in enumerate(records, start=1):
            print(f"  {i}. {escape(format_record(rec))}")

    if result.errors:
        print("\n[red]Errors:[/red]")
        for record_type in sorted(result.errors):
            print(f"  {record_type}: {escape(result.errors[record_type])}")

    stats = result.statistics
    print("\n[bold]Statistics:[/bold]")
    print(f"  Total queries: {stats.total_queries}")
    print(f"  Successful: {stats.successful_queries}")
    print(f"  Failed: {stats.failed_queries}")
    print(f"  Average response time: {stats.average_response_time * 1000:.1f}ms")


def print_summary(results: list[Result]) -> None:
    total = sum(r.statistics.total_queries for r in results)
    ok = sum(r.statistics.successful_queries for r in results)
    failed = sum(r.statistics.failed_queries for r in results)

    def pct(n: int) -> float:
        return n / total * 100 if total else 0.0

    print("\n[bold]Summary:[/bold]")
    print(f"  Nameservers queried: {len(results)}")
    print(f"  Total queries: {total}")
    print(f"  Successful: {ok} ({pct(ok):.1f}%)")
    print(f"  Failed: {failed} ({pct(failed):.1f}%)")
