"""Side-effect intents collected while a message moves through the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, TypeAlias

from teller.core.models import Reply


@dataclass(frozen=True, slots=True, kw_only=True)
class SendReplyIntent:
    """Deliver one reply to the transport."""

    chat_id: str
    reply: Reply


@dataclass(frozen=True, slots=True, kw_only=True)
class RecordMetricIntent:
    """Emit one structured counter metric."""

    name: str
    value: int = 1
    labels: tuple[tuple[str, str], ...] = ()


PipelineIntent: TypeAlias = SendReplyIntent | RecordMetricIntent
IntentKind: TypeAlias = Literal["send_reply", "record_metric"]
