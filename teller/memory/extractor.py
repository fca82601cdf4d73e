"""Heuristic fact capture from user turns."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

from teller.memory.service import wallet_key

_NAME_RE = re.compile(
    r"(?:\bmy name is|\bcall me|انا اسمي|اسمي)\s+(\w+)",
    re.IGNORECASE,
)
_WALLET_RE = re.compile(
    r"(@\w+)(?:'s)?\s+(?:wallet|address|محفظته|محفظة)\s*(?:is|هي|=|:)?\s*(0x[a-fA-F0-9]{40})(?![a-fA-F0-9])",
    re.IGNORECASE,
)
_REMEMBER_RE = re.compile(r"^(?:remember that|remember|سجل|احفظ|عارف ان)\s+(.+)$", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True, slots=True)
class ExtractedFact:
    key: str
    value: str
    confidence: float


def extract_facts(text: str) -> list[ExtractedFact]:
    """Return facts worth persisting from one user message."""
    raw = (text or "").strip()
    if not raw:
        return []

    out: list[ExtractedFact] = []
    name = _NAME_RE.search(raw)
    if name:
        out.append(ExtractedFact(key="name", value=name.group(1).strip(), confidence=0.9))

    for handle, address in _WALLET_RE.findall(raw):
        out.append(ExtractedFact(key=wallet_key(handle), value=address, confidence=0.95))

    note = _REMEMBER_RE.match(raw)
    if note and not out:
        body = note.group(1).strip()
        if len(body) >= 3:
            digest = hashlib.sha256(body.lower().encode("utf-8")).hexdigest()[:10]
            out.append(ExtractedFact(key=f"note_{digest}", value=body, confidence=0.7))
    return out
