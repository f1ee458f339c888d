"""List action: show every managed certificate and its status.

Output is an aligned table by default, or CSV / JSON.  ``deployed``
is only computed when it is printed or filtered on, since it needs a
``docker exec`` per container and artifact.
"""

from __future__ import annotations

import argparse
import csv
import io
import json
import sys
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from certmanager.config.settings import Settings
    from certmanager.services.engine import ReconciliationEngine, Snapshot

FIELDS = (
    "domain",
    "status",
    "primary",
    "deployed",
    "issued",
    "renew_after",
    "expires",
    "sans",
    "containers",
)
DEFAULT_FIELDS = ("domain", "status", "primary", "deployed", "renew_after", "containers")
STATUS_FILTERS = ("missing", "valid", "expired", "unused", "deployed")


def _split(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


def parse_fields(value: str) -> tuple[str, ...]:
    """argparse type for ``--fields``."""
    fields = _split(value)
    unknown = [f for f in fields if f not in FIELDS]
    if unknown or not fields:
        msg = f"unknown field(s) {', '.join(unknown) or value!r}; choose from {', '.join(FIELDS)}"
        raise argparse.ArgumentTypeError(msg)
    return tuple(fields)


def parse_status_filter(value: str) -> frozenset[str]:
    """argparse type for ``--status``."""
    statuses = _split(value)
    unknown = [s for s in statuses if s not in STATUS_FILTERS]
    if unknown or not statuses:
        msg = (
            f"unknown status(es) {', '.join(unknown) or value!r}; "
            f"choose from {', '.join(STATUS_FILTERS)}"
        )
        raise argparse.ArgumentTypeError(msg)
    return frozenset(statuses)


def _timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def build_rows(
    engine: ReconciliationEngine,
    snapshot: Snapshot,
    *,
    with_deployed: bool,
) -> list[dict[str, Any]]:
    """Return one row per managed domain, values in JSON form."""
    by_id = {c.id: c for c in snapshot.containers}
    rows = []
    for domain in snapshot.domains:
        record = snapshot.inventory.get(domain.name)
        targets = [by_id[cid] for cid in sorted(domain.required_by) if cid in by_id]
        row: dict[str, Any] = {
            "domain": domain.name,
            "status": snapshot.statuses[domain.name].value,
            "primary": domain.is_primary,
            "deployed": None,
            "issued": _timestamp(record.issued_at) if record else None,
            "renew_after": _timestamp(record.renew_after) if record else None,
            "expires": _timestamp(record.expires_at) if record else None,
            "sans": list(record.sans) if record else [],
            "containers": [c.display_name for c in targets],
        }
        if with_deployed:
            row["deployed"] = bool(targets) and all(
                engine.is_deployed(domain.name, c, record) for c in targets
            )
        rows.append(row)
    return rows


def _matches(row: dict[str, Any], statuses: frozenset[str]) -> bool:
    if row["status"] in statuses:
        return True
    return "deployed" in statuses and bool(row["deployed"])


def _text(value: Any) -> str:  # noqa: ANN401
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, list):
        return ",".join(value)
    return str(value)


def render(
    rows: list[dict[str, Any]],
    fields: tuple[str, ...],
    *,
    fmt: str = "table",
    header: bool = True,
) -> str:
    """Render *rows* restricted to *fields* as ``table``, ``csv`` or ``json``."""
    if fmt == "json":
        return json.dumps([{f: row[f] for f in fields} for row in rows], indent=2)

    lines = [[_text(row[f]) for f in fields] for row in rows]
    if fmt == "csv":
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        if header:
            writer.writerow(fields)
        writer.writerows(lines)
        return buf.getvalue().rstrip("\n")

    if header:
        lines.insert(0, [f.upper() for f in fields])
    if not lines:
        return ""
    widths = [max(len(line[i]) for line in lines) for i in range(len(fields))]
    return "\n".join(
        "  ".join(cell.ljust(w) for cell, w in zip(line, widths, strict=True)).rstrip()
        for line in lines
    )


def run_list(settings: Settings, args: argparse.Namespace) -> int:
    from certmanager.factory import create_engine  # noqa: PLC0415

    fields = args.fields or DEFAULT_FIELDS
    statuses = args.status
    if args.json and args.csv:
        print("--json and --csv are mutually exclusive", file=sys.stderr)  # noqa: T201
        return 1

    engine = create_engine(settings)
    snapshot = engine.snapshot()
    with_deployed = "deployed" in fields or (statuses is not None and "deployed" in statuses)
    rows = build_rows(engine, snapshot, with_deployed=with_deployed)
    if statuses is not None:
        rows = [row for row in rows if _matches(row, statuses)]

    fmt = "json" if args.json else "csv" if args.csv else "table"
    output = render(rows, fields, fmt=fmt, header=not args.no_header)
    if output:
        print(output)  # noqa: T201
    return 0
