"""
Centralized input parsing helpers shared by the flow, navigator and selector.
"""

from __future__ import annotations

import re
from typing import List, Optional

# ---------------------------
# Regex patterns
# ---------------------------

# comma, fullwidth comma, semicolon, fullwidth semicolon, ideographic comma, whitespace
_INDEX_SPLIT_RX = re.compile(r"[,，;；、\s]+")

# free-text lists: same delimiters except whitespace (items may contain spaces)
_LIST_SPLIT_RX = re.compile(r"[,，;；、\n]+")

# menu numbers and years only; longer digit runs are not a usable answer
_INT_RX = re.compile(r"^[+-]?\d{1,9}$")

_NONE_RX = re.compile(r"^(?:none|no|nil|nothing|n/a|na|0|-)\.?$", re.IGNORECASE)

_WHATSAPP_PREFIX_RX = re.compile(r"^whatsapp:", re.IGNORECASE)

# ---------------------------
# Public helpers
# ---------------------------


def normalize_key(sender: Optional[str]) -> str:
    """Turn a transport sender id into a stable conversation key."""
    key = _WHATSAPP_PREFIX_RX.sub("", (sender or "").strip()).strip()
    return key or "DEFAULT"


def parse_int(text: str) -> Optional[int]:
    """Parse a whole message as an integer, or return None."""
    s = (text or "").strip()
    if not _INT_RX.match(s):
        return None
    return int(s)


def parse_indices(text: str) -> List[int]:
    """Split a message into integer tokens, dropping junk and duplicates.

    Order of first appearance is kept: ``"3, 1 3"`` -> ``[3, 1]``.
    """
    out: List[int] = []
    for tok in _INDEX_SPLIT_RX.split((text or "").strip()):
        n = parse_int(tok)
        if n is None or n in out:
            continue
        out.append(n)
    return out


def split_list(text: str) -> List[str]:
    """Split a delimited free-text answer into trimmed, de-duplicated items."""
    out: List[str] = []
    for part in _LIST_SPLIT_RX.split(text or ""):
        item = part.strip()
        if item and item not in out:
            out.append(item)
    return out


def is_none_answer(text: str) -> bool:
    return bool(_NONE_RX.match((text or "").strip()))


def matches_command(text: str, keyword: str) -> bool:
    """Whole-message, case-insensitive match against a reserved keyword."""
    return bool(keyword) and (text or "").strip().lower() == keyword
