"""
Structured JSON event emission (shared).

Every state transition in the extraction loop is published as one event
envelope: written to stdout as a JSON line and kept in the in-memory
event store so the API can replay a user's history.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .event_store import event_store


class Component(str, Enum):
    """Event-producing components."""

    LIFEPLAN_API = "lifeplan_api"
    STATE_STORE = "state_store"
    EXTRACTION = "extraction"


class Severity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


DEFAULT_PII = {"contains_pii": False, "fields": [], "handling": "none"}


class EventEmitter:
    """Emits structured JSON events tagged with a component."""

    def __init__(self, component: Component):
        self.component = component

    def emit(
        self,
        event_type: str,
        user_id: str,
        severity: Severity = Severity.INFO,
        correlation_id: Optional[str] = None,
        pii: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        """
        Emit one event.

        Args:
            event_type: Stable event type string (e.g. "answer.applied")
            user_id: User the event belongs to
            severity: Event severity level
            correlation_id: Optional id tying events of one request together
            pii: PII metadata dict with contains_pii, fields, handling
            **kwargs: Event-specific fields
        """
        event = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "user_id": user_id,
            "component": self.component.value,
            "event_type": event_type,
            "severity": severity.value,
            "correlation_id": correlation_id or user_id,
            "pii": pii or DEFAULT_PII,
        }
        event.update(kwargs)

        sys.stdout.write(json.dumps(event, ensure_ascii=False, default=str))
        sys.stdout.write("\n")
        sys.stdout.flush()

        event_store.store(event)

    def answer_applied(
        self,
        user_id: str,
        question_id: str,
        status: str,
        confidence: float,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.emit(
            "answer.applied",
            user_id,
            correlation_id=correlation_id,
            question_id=question_id,
            status=status,
            confidence=confidence,
        )

    def answer_ignored(
        self,
        user_id: str,
        question_id: str,
        reason: str,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.emit(
            "answer.ignored",
            user_id,
            correlation_id=correlation_id,
            question_id=question_id,
            reason=reason,
        )

    def extraction_failed(
        self,
        user_id: str,
        error: str,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.emit(
            "extraction.failed",
            user_id,
            severity=Severity.WARN,
            correlation_id=correlation_id,
            error=error,
        )
