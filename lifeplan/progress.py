"""
Progress and insight selection.

Both are pure reads over a LifePlanState and the catalog. Answers change out
of band (every extraction merge), so nothing here is cached.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .models import AnswerStatus, LifePlanState, Progress
from .questions import Catalog

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class PickedInsight:
    question_id: str
    insight: str


def compute_progress(state: LifePlanState, catalog: Catalog) -> Progress:
    """
    Count completed required questions and find the next question to ask.

    The next question is the lowest-order catalog question (required or not)
    whose answer is not complete. Once every required question is complete
    the plan is done and there is no current question, even if an optional
    one is still open.
    """
    required = catalog.required()
    required_complete = sum(
        1 for q in required
        if _status(state, q.id) == AnswerStatus.COMPLETE
    )
    done = required_complete >= len(required)

    current = None
    if not done:
        current = next(
            (q for q in catalog if _status(state, q.id) != AnswerStatus.COMPLETE),
            None,
        )

    return Progress(
        current_question=current,
        done=done,
        required_complete_count=required_complete,
        required_total_count=len(required),
    )


def pick_insight(state: LifePlanState, catalog: Catalog) -> Optional[PickedInsight]:
    """
    Most recently completed answer whose question carries an unspoken insight.

    Caller must mark_insight_used() on the result before the next read so
    each insight is spoken at most once per user.
    """
    complete = sorted(
        (a for a in state.answers.values() if a.status == AnswerStatus.COMPLETE),
        key=lambda a: a.updated_at or _EPOCH,
        reverse=True,
    )
    for answer in complete:
        question = catalog.get(answer.question_id)
        insight = (question.insight or "").strip() if question else ""
        if not insight:
            continue
        if answer.question_id in state.insights_used:
            continue
        return PickedInsight(question_id=answer.question_id, insight=insight)
    return None


def mark_insight_used(state: LifePlanState, question_id: str) -> bool:
    """Record an insight as spoken. Returns False if it already was."""
    if question_id in state.insights_used:
        return False
    state.insights_used.add(question_id)
    return True


def _status(state: LifePlanState, question_id: str) -> AnswerStatus:
    answer = state.answers.get(question_id)
    return answer.status if answer else AnswerStatus.UNANSWERED
