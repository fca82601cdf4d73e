"""Canned reply variants for the offline path and plan summaries."""

from __future__ import annotations

import random

TEMPLATES: dict[str, tuple[str, ...]] = {
    "GREET": (
        "Hello {name}! Good to see you. What can I do for you today?",
        "Hi {name}, I'm here. Need a transfer, a lookup, or just a chat?",
    ),
    "HELP": (
        "I can draft transfers ('send 5 USDC to @sam'), search what I know, ingest links, "
        "and remember facts about you. Every transfer waits for /confirm.",
    ),
    "WHOAMI": (
        "You're {name}. I mostly help you with {preferences}.",
        "As far as I know you're {name}, and we work on {preferences} together.",
    ),
    "CONNECT": (
        "To link your wallet, send /authorize and sign the message I give you.",
    ),
    "STATUS": (
        "All systems up. Transfers need a signed session and your explicit /confirm.",
    ),
    "TRANSFER_INTENT": (
        "Got it {name}: {amount} {token} to {recipient}.",
        "Okay {name}, preparing {amount} {token} for {recipient}.",
    ),
    "TX_CONFIRM": ("There is nothing waiting for confirmation right now.",),
    "TX_CANCEL": ("Nothing to cancel.",),
    "KB_SEARCH": ("I couldn't find anything on that yet. Send me a link and I'll read it.",),
    "DEEP_RESEARCH": ("Tell me the topic you want me to research.",),
    "DISTRIBUTE": ("Bulk distributions aren't supported yet; send transfers one by one.",),
    "KB_ADD": ("Start the message with 'remember that' and I'll keep it.",),
    "KB_LIST": ("Use 'teller kb list' to see everything I've indexed.",),
    "TROUBLESHOOT": (
        "Sorry about that. Tell me what you tried and what you saw, and we'll fix it.",
    ),
    "EXPLAIN": ("Happy to explain. Which part is unclear?",),
    "SUMMARIZE": ("Send me the text or link you'd like summarized.",),
    "UNKNOWN": (
        "I'm not sure I follow. Could you rephrase that?",
        "Not sure what you mean yet. Try 'help' to see what I can do.",
    ),
}

SKILL_TEMPLATE = "Here's how we handle this, {name}:"


def get_variant(
    intent: str,
    *,
    rng: random.Random | None = None,
    **values: str,
) -> str:
    """Pick one template for *intent* and fill known placeholders."""
    if intent.startswith("SKILL_"):
        bank: tuple[str, ...] = (SKILL_TEMPLATE,)
    else:
        bank = TEMPLATES.get(intent) or TEMPLATES["UNKNOWN"]
    chooser = rng or random
    text = chooser.choice(bank)
    for key, value in values.items():
        text = text.replace("{" + key + "}", value)
    return text
