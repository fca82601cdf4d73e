"""Deterministic intent classification and entity extraction."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum

from teller.brain.normalize import contains_phrase, normalize_text


class IntentTag(StrEnum):
    GREET = "GREET"
    HELP = "HELP"
    WHOAMI = "WHOAMI"
    CONNECT = "CONNECT"
    STATUS = "STATUS"
    TRANSFER_INTENT = "TRANSFER_INTENT"
    TX_CONFIRM = "TX_CONFIRM"
    TX_CANCEL = "TX_CANCEL"
    KB_SEARCH = "KB_SEARCH"
    DEEP_RESEARCH = "DEEP_RESEARCH"
    DISTRIBUTE = "DISTRIBUTE"
    KB_ADD = "KB_ADD"
    KB_LIST = "KB_LIST"
    TROUBLESHOOT = "TROUBLESHOOT"
    EXPLAIN = "EXPLAIN"
    SUMMARIZE = "SUMMARIZE"
    UNKNOWN = "UNKNOWN"


# Evaluation order is the priority: the first group with a contained phrase wins.
INTENT_PRIORITY: tuple[tuple[IntentTag, tuple[str, ...]], ...] = (
    (IntentTag.GREET, ("ازيك", "يا هلا", "صباح", "مساء", "سلام", "hi", "hello")),
    (IntentTag.HELP, ("ساعدني", "مساعدة", "help", "الأوامر")),
    (IntentTag.WHOAMI, ("انا مين", "تعرف ايه عني", "اسمي", "مين انا", "who am i")),
    (IntentTag.CONNECT, ("اربط", "وصل", "لينك", "connect")),
    (IntentTag.STATUS, ("الحالة", "جاهز", "status")),
    (IntentTag.TRANSFER_INTENT, ("ابعت", "حول", "ارسل", "هات", "send", "transfer", "pay")),
    (IntentTag.TX_CONFIRM, ("اكد", "نفذ", "تمام", "ماشي", "confirm", "execute")),
    (IntentTag.TX_CANCEL, ("إلغاء", "كنسل", "لا خلاص", "cancel")),
    (IntentTag.KB_SEARCH, ("ابحث", "دور", "search", "معلومات عن")),
    (IntentTag.DEEP_RESEARCH, ("بحث عميق", "دور اوي", "البحث العميق", "deep research")),
    (IntentTag.DISTRIBUTE, ("وزع", "ايردروب", "اير دروب", "distribute", "airdrop")),
    (IntentTag.KB_ADD, ("ضيف معلومة", "سجل معلومة", "kb_add")),
    (IntentTag.KB_LIST, ("كل المعلومات", "قائمة", "kb_list")),
    (IntentTag.TROUBLESHOOT, ("مشكلة", "مش شغال", "عطل", "troubleshoot")),
    (IntentTag.EXPLAIN, ("اشرح", "يعني ايه", "explain")),
    (IntentTag.SUMMARIZE, ("لخص", "خلاصة", "ملخص", "summarize")),
)

_TX_HASH_RE = re.compile(r"0x[a-fA-F0-9]{64}(?![a-fA-F0-9])")
_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}(?![a-fA-F0-9])")
_HEX_BLOB_RE = re.compile(r"0x[a-fA-F0-9]+")
_AMOUNT_RE = re.compile(r"(\d+(?:\.\d+)?)")
_TOKEN_RE = re.compile(r"(USDC|ETH|USDT|GEM|ايثيريوم)", re.IGNORECASE)
_MENTION_RE = re.compile(r"(@\w+)")
_CHAIN_WORDS = ("base", "بيز")


@dataclass(frozen=True, slots=True, kw_only=True)
class Entities:
    amount: str | None = None
    token: str | None = None
    address: str | None = None
    username: str | None = None
    chain: str | None = None
    tx_hash: str | None = None

    def as_dict(self) -> dict[str, str]:
        return {k: v for k, v in (
            ("amount", self.amount),
            ("token", self.token),
            ("address", self.address),
            ("username", self.username),
            ("chain", self.chain),
            ("tx_hash", self.tx_hash),
        ) if v}


@dataclass(frozen=True, slots=True, kw_only=True)
class ParsedIntent:
    intent: IntentTag
    entities: Entities = field(default_factory=Entities)
    confidence: float = 0.5


class IntentParser:
    """Rule-based parser; pure and synchronous."""

    def __init__(self, *, default_token: str = "USDC") -> None:
        self._default_token = default_token.upper()

    def parse(self, text: str) -> ParsedIntent:
        normalized = normalize_text(text)
        intent = self.classify(normalized)
        entities = self.extract_entities(text, normalized)

        confidence = 0.5
        if intent is not IntentTag.UNKNOWN:
            confidence = 0.9
        if intent is IntentTag.TRANSFER_INTENT and (
            entities.amount or entities.username or entities.address
        ):
            confidence = 1.0
        return ParsedIntent(intent=intent, entities=entities, confidence=confidence)

    @staticmethod
    def classify(normalized: str) -> IntentTag:
        for tag, phrases in INTENT_PRIORITY:
            if any(contains_phrase(normalized, phrase) for phrase in phrases):
                return tag
        return IntentTag.UNKNOWN

    def extract_entities(self, text: str, normalized: str | None = None) -> Entities:
        raw = text or ""
        normalized = normalized if normalized is not None else normalize_text(raw)

        tx_match = _TX_HASH_RE.search(raw)
        addr_match = _ADDRESS_RE.search(raw)
        # Digits inside hex blobs are not amounts.
        amount_match = _AMOUNT_RE.search(_HEX_BLOB_RE.sub(" ", raw))
        amount = amount_match.group(1) if amount_match else None

        token: str | None = None
        token_match = _TOKEN_RE.search(raw)
        if token_match:
            symbol = token_match.group(1).upper()
            token = "ETH" if symbol == "ايثيريوم" else symbol
        elif amount:
            token = self._default_token

        mention_match = _MENTION_RE.search(raw)
        words = set(normalized.split(" "))
        chain = "Base" if any(w in words for w in _CHAIN_WORDS) else None

        return Entities(
            amount=amount,
            token=token,
            address=addr_match.group(0) if addr_match else None,
            username=mention_match.group(1) if mention_match else None,
            chain=chain,
            tx_hash=tx_match.group(0) if tx_match else None,
        )
