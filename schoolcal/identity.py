"""
Stable ids and reconciliation signatures.

- stable id: hash of the exact extracted fields. Re-importing the same
  source text always reproduces the same id, so id-keyed importers are
  idempotent.
- signature: pipe-joined *normalized* fields. Used as the matching key by
  importers whose extracted text drifts between runs (merged cells,
  formatting), so "Trip!" and "Trip" land on the same record.

Signatures are never stored in the dataset; callers keep them in a
side-table {record id: signature}.
"""

from __future__ import annotations

import hashlib
from typing import Dict, Iterable, List

from schoolcal.model import Record
from schoolcal.text import normalize_key


ID_HASH_LEN = 20


def _s(value: object) -> str:
    return "" if value is None else str(value).strip()


def stable_id(prefix: str, parts: Iterable[object]) -> str:
    joined = "|".join(_s(p) for p in parts)
    digest = hashlib.sha256(joined.encode("utf-8")).hexdigest()[:ID_HASH_LEN]
    return f"{prefix}-{digest}"


def id_parts(record: Record) -> List[str]:
    kind = _s(record.get("kind"))
    date = _s(record.get("date"))
    title = _s(record.get("title"))
    start = _s(record.get("startTime"))
    end = _s(record.get("endTime"))

    if kind == "schedule":
        return [kind, _s(record.get("type")), date, start, end, title]
    if kind == "exam":
        return [kind, date, start, end, _s(record.get("subject")), title]
    if kind == "holiday":
        return [kind, date, _s(record.get("reason")), title]
    raise ValueError(f"Unknown record kind: {kind!r}")


def record_id(prefix: str, record: Record) -> str:
    return stable_id(prefix, id_parts(record))


def signature(record: Record) -> str:
    kind = _s(record.get("kind"))
    date = _s(record.get("date"))
    title = normalize_key(record.get("title"))
    start = _s(record.get("startTime"))
    end = _s(record.get("endTime"))

    if kind == "schedule":
        parts = [kind, date, title, start, end, _s(record.get("type"))]
    elif kind == "exam":
        parts = [kind, date, title, start, end, normalize_key(record.get("subject"))]
    elif kind == "holiday":
        parts = [kind, date, title, normalize_key(record.get("reason"))]
    else:
        raise ValueError(f"Unknown record kind: {kind!r}")
    return "|".join(parts)


def signature_table(records: Iterable[Record]) -> Dict[str, str]:
    """
    Side-table of signatures for records already in a collection.
    Records whose kind is unknown are left out.
    """
    out: Dict[str, str] = {}
    for rec in records:
        rid = _s(rec.get("id"))
        if not rid:
            continue
        try:
            out[rid] = signature(rec)
        except ValueError:
            continue
    return out
