"""
inputgate — intrusion audit events.

Purpose
- Describe each detected manipulation attempt in a form safe to persist.

Functional requirements
- Events carry context, reason and encoding evidence, never the raw input.
- A failing sink is logged and never hides the intrusion from the caller.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TypeAlias

import structlog

_logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class IntrusionEvent:
    context: str
    reason: str
    timestamp: datetime = field(default_factory=_utc_now)
    encoding_pattern: str | None = None
    codecs_applied: tuple[str, ...] = ()
    rule_kind: str | None = None
    rule_name: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "context": self.context,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(timespec="milliseconds").replace(
                "+00:00", "Z"
            ),
            "encoding_pattern": self.encoding_pattern,
            "codecs_applied": list(self.codecs_applied),
            "rule_kind": self.rule_kind,
            "rule_name": self.rule_name,
        }


AuditSink: TypeAlias = Callable[[IntrusionEvent], object]


def log_intrusion_event(event: IntrusionEvent) -> None:
    """Default sink: one structured warning per intrusion."""

    _logger.warning(
        "input_intrusion_detected",
        context=event.context,
        reason=event.reason,
        encoding_pattern=event.encoding_pattern,
        codecs_applied=list(event.codecs_applied),
        rule_kind=event.rule_kind,
        rule_name=event.rule_name,
        detected_at=event.to_dict()["timestamp"],
    )


class MemoryAuditSink:
    """Keeps events in arrival order."""

    __slots__ = ("_events", "_lock")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[IntrusionEvent] = []

    def __call__(self, event: IntrusionEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> tuple[IntrusionEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


def emit_audit_event(sink: AuditSink, event: IntrusionEvent) -> None:
    try:
        sink(event)
    except Exception as exc:  # noqa: BLE001
        _logger.error(
            "audit_sink_failed",
            context=event.context,
            error_type=type(exc).__name__,
        )


__all__ = [
    "AuditSink",
    "IntrusionEvent",
    "MemoryAuditSink",
    "emit_audit_event",
    "log_intrusion_event",
]
