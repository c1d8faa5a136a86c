"""
Text normalization shared by every importer.

Two flavours:
- normalize_whitespace(): display-facing, keeps case and punctuation
- normalize_key(): comparison/grouping form, lowercased and stripped of
  quote marks and punctuation (Hebrew geresh/gershayim included)

Both are idempotent.
"""

from __future__ import annotations

import re
from typing import Any, List


_NBSP = "\u00a0"
_SPACES_RE = re.compile(r"[ \t]+")
_ANY_SPACE_RE = re.compile(r"\s+")
_QUOTES_RE = re.compile("[\"'׳״]")
_PUNCT_RE = re.compile(r"[–—:.,!()?\[\]{}-]")


def normalize_whitespace(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).replace(_NBSP, " ")
    return _SPACES_RE.sub(" ", text).strip()


def normalize_key(value: Any) -> str:
    text = normalize_whitespace(value).lower()
    text = _QUOTES_RE.sub("", text)
    text = _PUNCT_RE.sub(" ", text)
    return _ANY_SPACE_RE.sub(" ", text).strip()


def split_lines(value: Any) -> List[str]:
    """
    Split multi-line text into normalized, non-empty lines.
    """
    if value is None:
        return []
    lines = str(value).replace("\r", "").split("\n")
    return [line for line in (normalize_whitespace(x) for x in lines) if line]
