"""History views and flat-file export of distribution events.

Works on anything shaped like a distribution event: persisted rows from the
ledger store or drafts still buffered locally before a reconciliation read.
"""

import csv
import io
from datetime import tzinfo
from typing import Iterable, Optional, Sequence

from tokendrop_api.ledger.timewindow import DateBound, as_utc, day_window, format_local_timestamp

MISSING = "-"
EXPORT_BASENAME = "nft_history"

# (column key, header) in export order
EXPORT_COLUMNS = [
    ("timestamp", "Timestamp"),
    ("type", "Type"),
    ("name", "Name"),
    ("id_no", "ID NO"),
    ("email", "Email"),
    ("address", "Wallet Address"),
    ("amount", "Amount"),
    ("item_ids", "Token IDs"),
    ("commit_id", "Tx Hash"),
]


def filter_and_order(events: Iterable, start: DateBound, end: DateBound, local_tz: tzinfo) -> list:
    """Keep events inside the local ``[start, end]`` days, newest first.

    Raises:
        InvalidRange: if a bound is not a valid date
    """
    window = day_window(start, end, local_tz)
    kept = [event for event in events if window.contains(event.created_at)]
    return sorted(kept, key=lambda event: as_utc(event.created_at), reverse=True)


def history_row(event, local_tz: tzinfo) -> dict:
    """Display mapping of one event; absent optional fields become ``"-"``."""
    return {
        "timestamp": format_local_timestamp(event.created_at, local_tz),
        "type": event.kind,
        "name": event.counterparty_name or MISSING,
        "id_no": event.counterparty_id_number or MISSING,
        "email": event.counterparty_email or MISSING,
        "address": event.recipient_address or MISSING,
        "amount": int(event.quantity or 0),
        "item_ids": event.item_ids or "",
        "commit_id": event.external_commit_id or "",
    }


def to_flat_records(
    events: Iterable,
    local_tz: tzinfo,
    columns: Optional[Sequence[str]] = None,
) -> list[list]:
    """One row per event, fields in column order."""
    keys = list(columns) if columns else [key for key, _ in EXPORT_COLUMNS]
    unknown = set(keys) - {key for key, _ in EXPORT_COLUMNS}
    if unknown:
        raise ValueError(f"Unknown export columns: {sorted(unknown)}")
    rows = []
    for event in events:
        row = history_row(event, local_tz)
        rows.append([row[key] for key in keys])
    return rows


def render_csv(events: Iterable, local_tz: tzinfo) -> str:
    """CSV text with a header row; string fields are always quoted."""
    headers = [header for _, header in EXPORT_COLUMNS]
    out = io.StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(to_flat_records(events, local_tz))
    return out.getvalue()


def export_filename(start: DateBound = None, end: DateBound = None) -> str:
    """Export file name encoding the active date range."""
    start = str(start) if start else ""
    end = str(end) if end else ""
    if start or end:
        return f"{EXPORT_BASENAME}_{start or 'start'}_to_{end or 'now'}.csv"
    return f"{EXPORT_BASENAME}.csv"
