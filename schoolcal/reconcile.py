"""
Reconciliation (upsert) of import candidates into a dataset.

Rules:
- a candidate is only compared against the collection of its own kind
- key "id": match on the stable id
- key "signature": match on id first, then on the signature side-table
- no match -> append; match -> candidate fields overlay the existing
  record, the existing id is kept and notes are union-merged
- candidates dated before `today` are skipped; the dataset already holds
  the authoritative past

The run's counters and audit log live in an ImportTally that is threaded
through reconcile() and returned with the new dataset.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from schoolcal.dates import is_iso_date
from schoolcal.identity import signature, signature_table
from schoolcal.model import COLLECTIONS, Candidate, Dataset, Extraction, empty_counts


UNCERTAIN_SAMPLE_LIMIT = 100
MATCH_KEYS = ("id", "signature")

SignatureTable = Dict[str, str]


def merge_notes(*values: Any) -> Optional[str]:
    """
    Union of all distinct non-empty lines, in order of first appearance.
    Returns None if nothing is left.
    """
    lines: List[str] = []
    for value in values:
        if not value:
            continue
        for line in str(value).split("\n"):
            v = line.strip()
            if v and v not in lines:
                lines.append(v)
    return "\n".join(lines) if lines else None


@dataclass
class ImportTally:
    """
    Counters and bounded audit sample for one import run.
    """

    source: str
    today: str
    input: str = ""
    added: Dict[str, int] = field(default_factory=empty_counts)
    merged: Dict[str, int] = field(default_factory=empty_counts)
    uncertain_count: int = 0
    uncertain: List[Dict[str, str]] = field(default_factory=list)
    sample_limit: int = UNCERTAIN_SAMPLE_LIMIT

    def copy(self) -> "ImportTally":
        return copy.deepcopy(self)

    def count(self, collection: str, merged: bool) -> None:
        if merged:
            self.merged[collection] += 1
        else:
            self.added[collection] += 1

    def record_issue(self, reason: str, text: str, date: str = "", sheet: Optional[str] = None) -> None:
        # overflow still counts, it just is not kept in the sample
        self.uncertain_count += 1
        if len(self.uncertain) >= self.sample_limit:
            return
        entry = {"source": self.source, "reason": reason, "text": text}
        if date:
            entry["date"] = date
        if sheet:
            entry["sheet"] = sheet
        self.uncertain.append(entry)

    def to_summary(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"source": self.source}
        if self.input:
            out["input"] = self.input
        out.update(
            {
                "today": self.today,
                "added": dict(self.added),
                "merged": dict(self.merged),
                "uncertainCount": self.uncertain_count,
                "uncertain": list(self.uncertain),
            }
        )
        return out


def _find_match(
    items: List[Dict[str, Any]], candidate: Candidate, key: str, signatures: Optional[SignatureTable]
) -> Optional[int]:
    rid = candidate.record.get("id")
    for i, existing in enumerate(items):
        if existing.get("id") == rid:
            return i

    if key == "signature" and signatures is not None:
        sig = candidate.signature or signature(candidate.record)
        for i, existing in enumerate(items):
            if signatures.get(existing.get("id", "")) == sig:
                return i
    return None


def upsert(
    dataset: Dataset, candidate: Candidate, key: str = "id", signatures: Optional[SignatureTable] = None
) -> bool:
    """
    Insert or merge one candidate in place. Returns True if it was merged
    into an existing record.

    `signatures` is the side-table of the candidate's collection; it is
    required for key="signature" and kept up to date when given.
    """
    if key not in MATCH_KEYS:
        raise ValueError(f"Unknown match key: {key!r}")
    if key == "signature" and signatures is None:
        raise ValueError("Signature matching needs a signature table")

    items = dataset.setdefault(candidate.collection, [])
    record = candidate.record
    idx = _find_match(items, candidate, key, signatures)

    if idx is None:
        items.append(dict(record))
        if signatures is not None:
            signatures[record["id"]] = candidate.signature or signature(record)
        return False

    existing = items[idx]
    merged = {**existing, **record, "id": existing["id"]}
    notes = merge_notes(existing.get("notes"), record.get("notes"))
    if notes:
        merged["notes"] = notes
    else:
        merged.pop("notes", None)
    items[idx] = merged

    if signatures is not None:
        signatures[merged["id"]] = signature(merged)
    return True


def _iso(today: Union[date, str]) -> str:
    return today if isinstance(today, str) else today.isoformat()


def reconcile(
    dataset: Dataset,
    candidates: Iterable[Candidate],
    *,
    key: str,
    today: Union[date, str],
    tally: ImportTally,
) -> Tuple[Dataset, ImportTally]:
    """
    Fold candidates into a copy of `dataset`. Neither argument is modified.
    """
    work = copy.deepcopy(dataset)
    tally = tally.copy()
    today_s = _iso(today)
    for name in COLLECTIONS:
        work.setdefault(name, [])

    tables: Dict[str, SignatureTable] = {}
    if key == "signature":
        tables = {name: signature_table(work[name]) for name in COLLECTIONS}

    for cand in candidates:
        text = cand.text or str(cand.record.get("title", ""))
        if not is_iso_date(cand.date):
            tally.record_issue("invalid-date", text, sheet=cand.sheet)
            continue
        if cand.date < today_s:
            continue

        merged = upsert(work, cand, key, tables.get(cand.collection) if tables else None)
        tally.count(cand.collection, merged)

        for reason in cand.uncertain:
            tally.record_issue(reason, text, date=cand.date, sheet=cand.sheet)

    return work, tally


def run_import(
    dataset: Dataset,
    extraction: Extraction,
    *,
    source: str,
    key: str,
    today: Union[date, str],
    input_path: str = "",
    sample_limit: int = UNCERTAIN_SAMPLE_LIMIT,
) -> Tuple[Dataset, ImportTally]:
    """
    Start a tally for `source`, log the extraction's skipped rows, then
    reconcile its candidates.
    """
    tally = ImportTally(source=source, today=_iso(today), input=input_path, sample_limit=sample_limit)
    for issue in extraction.issues:
        tally.record_issue(**issue)
    return reconcile(dataset, extraction.candidates, key=key, today=today, tally=tally)
