"""
Per-user LifePlan state.

One State per user holds the transcript, one Answer per catalog question,
free-form notes and the set of insights already spoken. Progress is derived
and never persisted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from .questions import Catalog, Question


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class AnswerStatus(str, Enum):
    UNANSWERED = "unanswered"
    PARTIAL = "partial"
    COMPLETE = "complete"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Answer:
    """Current answer to one catalog question, in the user's own voice."""

    question_id: str
    status: AnswerStatus = AnswerStatus.UNANSWERED
    answer_text: str = ""
    updated_at: Optional[datetime] = None
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "status": self.status.value,
            "answerText": self.answer_text,
            "updatedAt": _iso(self.updated_at),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Answer":
        confidence = data.get("confidence")
        return cls(
            question_id=data["questionId"],
            status=AnswerStatus(data.get("status", AnswerStatus.UNANSWERED.value)),
            answer_text=data.get("answerText", ""),
            updated_at=_parse_ts(data.get("updatedAt")),
            confidence=float(confidence) if confidence is not None else None,
        )


@dataclass
class TranscriptEntry:
    at: datetime
    text: str
    role: Role = Role.USER
    item_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "at": _iso(self.at),
            "role": self.role.value,
            "text": self.text,
            "itemId": self.item_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptEntry":
        return cls(
            at=_parse_ts(data.get("at")) or utc_now(),
            text=data.get("text", ""),
            role=Role(data.get("role", Role.USER.value)),
            item_id=data.get("itemId"),
        )


@dataclass
class LifePlanState:
    """Durable per-user record."""

    user_id: str
    created_at: datetime
    updated_at: datetime
    transcript: List[TranscriptEntry] = field(default_factory=list)
    answers: Dict[str, Answer] = field(default_factory=dict)
    notes: List[str] = field(default_factory=list)
    insights_used: Set[str] = field(default_factory=set)

    @classmethod
    def fresh(cls, user_id: str, catalog: Catalog) -> "LifePlanState":
        now = utc_now()
        state = cls(user_id=user_id, created_at=now, updated_at=now)
        state.backfill_answers(catalog)
        return state

    def backfill_answers(self, catalog: Catalog) -> int:
        """Add an unanswered entry for every catalog question missing one. Returns count added."""
        added = 0
        for q in catalog:
            if q.id not in self.answers:
                self.answers[q.id] = Answer(question_id=q.id)
                added += 1
        return added

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "transcript": [t.to_dict() for t in self.transcript],
            "answers": {qid: a.to_dict() for qid, a in self.answers.items()},
            "notes": list(self.notes),
            "insightsUsed": sorted(self.insights_used),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LifePlanState":
        now = utc_now()
        answers = {
            qid: Answer.from_dict({"questionId": qid, **raw})
            for qid, raw in (data.get("answers") or {}).items()
        }
        return cls(
            user_id=data["userId"],
            created_at=_parse_ts(data.get("createdAt")) or now,
            updated_at=_parse_ts(data.get("updatedAt")) or now,
            transcript=[TranscriptEntry.from_dict(t) for t in data.get("transcript") or []],
            answers=answers,
            notes=[str(n) for n in data.get("notes") or []],
            insights_used=set(data.get("insightsUsed") or []),
        )


@dataclass(frozen=True)
class Progress:
    """Derived completion signal. Recomputed on every read."""

    current_question: Optional[Question]
    done: bool
    required_complete_count: int
    required_total_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentQuestion": self.current_question.to_dict() if self.current_question else None,
            "done": self.done,
            "requiredCompleteCount": self.required_complete_count,
            "requiredTotalCount": self.required_total_count,
        }
