"""
Extraction engine.

Turns one transcript fragment into answer updates:
1) snapshot the catalog and current answers for the classifier
2) validate the classifier's output against an explicit schema
3) apply guardrails per update (unknown question, low confidence, empty answer)
4) merge accepted updates and side notes into the state and persist it

The classifier is probabilistic and may be down. Its failures never abort the
caller: the outcome just carries no updates plus the error and raw text.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field, ValidationError as SchemaError

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter

from .errors import ExtractionFailure, GuardrailReason
from .models import AnswerStatus, LifePlanState
from .questions import Catalog
from .store import StateStore, append_note, set_answer

logger = get_logger(LogComponent.EXTRACTION)
emitter = EventEmitter(ObsComponent.EXTRACTION)

# Policy constant: updates below this confidence are noise.
MIN_CONFIDENCE = 0.35


class ExtractionUpdate(BaseModel):
    question_id: str
    status: AnswerStatus
    answer_text: str
    confidence: float = Field(ge=0.0, le=1.0)


class ExtractionResult(BaseModel):
    updates: List[ExtractionUpdate] = Field(default_factory=list)
    side_notes: List[str] = Field(default_factory=list)


class Classifier(Protocol):
    async def classify(
        self,
        question_table: List[Dict[str, Any]],
        current_answers: List[Dict[str, Any]],
        fragment: str,
        user_id: Optional[str] = None,
    ) -> str:
        ...


@dataclass
class ExtractionOutcome:
    applied: List[Dict[str, Any]] = field(default_factory=list)
    ignored: List[Dict[str, Any]] = field(default_factory=list)
    notes_added: int = 0
    raw_text: Optional[str] = None
    error: Optional[str] = None


def parse_extraction(text: str) -> ExtractionResult:
    """Parse raw classifier text. Anything off-schema is an ExtractionFailure."""
    try:
        return ExtractionResult.model_validate(json.loads(text))
    except json.JSONDecodeError as e:
        raise ExtractionFailure(f"Output is not JSON: {e.msg}", raw_text=text) from e
    except SchemaError as e:
        raise ExtractionFailure(
            f"Output does not match schema ({e.error_count()} errors)", raw_text=text
        ) from e


def question_table(catalog: Catalog) -> List[Dict[str, Any]]:
    return [
        {"id": q.id, "module": q.module_title, "required": q.required, "prompt": q.prompt}
        for q in catalog
    ]


def current_answers(state: LifePlanState, catalog: Catalog) -> List[Dict[str, Any]]:
    snapshot = []
    for q in catalog:
        answer = state.answers.get(q.id)
        snapshot.append({
            "id": q.id,
            "status": answer.status.value if answer else AnswerStatus.UNANSWERED.value,
            "answer_text": answer.answer_text if answer else "",
        })
    return snapshot


def check_guardrails(update: ExtractionUpdate, catalog: Catalog) -> Optional[str]:
    """Return the rejection reason for an update, or None if it may be applied."""
    if update.question_id not in catalog:
        return GuardrailReason.UNKNOWN_QUESTION
    if update.confidence < MIN_CONFIDENCE:
        return GuardrailReason.LOW_CONFIDENCE
    if not update.answer_text.strip():
        return GuardrailReason.EMPTY_ANSWER
    return None


def merge_result(
    state: LifePlanState,
    result: ExtractionResult,
    catalog: Catalog,
    correlation_id: Optional[str] = None,
) -> ExtractionOutcome:
    """Apply guarded updates and side notes to the state, in the order received."""
    outcome = ExtractionOutcome()

    for update in result.updates:
        reason = check_guardrails(update, catalog)
        if reason:
            outcome.ignored.append({"questionId": update.question_id, "reason": reason})
            emitter.answer_ignored(state.user_id, update.question_id, reason, correlation_id)
            continue

        set_answer(
            state,
            update.question_id,
            update.status,
            update.answer_text.strip(),
            confidence=update.confidence,
        )
        outcome.applied.append({
            "questionId": update.question_id,
            "status": update.status.value,
            "confidence": update.confidence,
        })
        emitter.answer_applied(
            state.user_id, update.question_id, update.status.value, update.confidence, correlation_id
        )

    for note in result.side_notes:
        if append_note(state, note):
            outcome.notes_added += 1

    return outcome


class ExtractionEngine:
    """Runs the classifier for a fragment and merges its output into state."""

    def __init__(self, store: StateStore, catalog: Catalog, classifier: Classifier):
        self.store = store
        self.catalog = catalog
        self.classifier = classifier

    async def extract(
        self,
        state: LifePlanState,
        fragment: str,
        correlation_id: Optional[str] = None,
    ) -> ExtractionOutcome:
        """
        Extract, merge and persist.

        The state is saved whether or not extraction succeeded, so a transcript
        append made before this call is never lost.
        """
        log = logger.with_user(state.user_id)
        log.debug_pii("Extracting from fragment", fragment=fragment)

        raw_text: Optional[str] = None
        try:
            raw_text = await self.classifier.classify(
                question_table(self.catalog),
                current_answers(state, self.catalog),
                fragment,
                user_id=state.user_id,
            )
            result = parse_extraction(raw_text)
        except ExtractionFailure as e:
            outcome = ExtractionOutcome(raw_text=e.raw_text if e.raw_text is not None else raw_text, error=str(e))
        except Exception as e:
            # Best-effort: a broken classifier must not lose the transcript.
            log.exception("Classifier raised unexpectedly", error_type=type(e).__name__)
            outcome = ExtractionOutcome(raw_text=raw_text, error=f"{type(e).__name__}: {e}")
        else:
            outcome = merge_result(state, result, self.catalog, correlation_id)
            outcome.raw_text = raw_text

        if outcome.error:
            log.warning("Extraction failed", error=outcome.error)
            emitter.extraction_failed(state.user_id, outcome.error, correlation_id)
        else:
            log.info(
                "Extraction merged",
                applied=len(outcome.applied),
                ignored=len(outcome.ignored),
                notes_added=outcome.notes_added,
            )

        await asyncio.to_thread(self.store.save, state)
        return outcome
