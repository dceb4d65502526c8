"""
LifePlan service: the operations the HTTP layer exposes.

- ingest_fragment: append transcript, extract, persist, report progress
- get_status: compute progress, pick one insight, build instructions
- reset_user: drop the user's state

Each operation runs its load-mutate-save cycle under a per-user lock, so two
overlapping requests for the same user cannot overwrite each other's updates.
Requests for different users never wait on each other. Store file I/O runs
in a worker thread, so one user's disk write never stalls the event loop.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter

from .config import LifePlanConfig
from .errors import ValidationError
from .extraction import Classifier, ExtractionEngine
from .instructions import build_instructions
from .models import LifePlanState, Progress, Role
from .openai_client import OpenAIExtractionClient
from .progress import compute_progress, mark_insight_used, pick_insight
from .questions import Catalog, load_catalog
from .store import JsonFileBackend, StateStore, append_transcript, validate_user_id

logger = get_logger(LogComponent.LIFEPLAN_API)
emitter = EventEmitter(ObsComponent.LIFEPLAN_API)


class UserLocks:
    """
    One asyncio.Lock per user id, created on demand.

    A lock is dropped once its last holder or waiter leaves, so the registry
    only holds users with a request in flight.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self.get(user_id)
        self._users[user_id] = self._users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[user_id] -= 1
            if not self._users[user_id]:
                del self._users[user_id]
                self._locks.pop(user_id, None)


@dataclass
class IngestResult:
    applied: List[Dict[str, Any]]
    ignored: List[Dict[str, Any]]
    notes_added: int
    progress: Progress
    state: LifePlanState
    raw_model_text: Optional[str] = None
    extraction_error: Optional[str] = None


@dataclass
class StatusResult:
    state: LifePlanState
    progress: Progress
    instructions: str
    insight_question_id: Optional[str] = None


class LifePlanService:
    def __init__(self, store: StateStore, catalog: Catalog, classifier: Classifier):
        self.store = store
        self.catalog = catalog
        self.engine = ExtractionEngine(store, catalog, classifier)
        self.locks = UserLocks()

    @classmethod
    def from_config(cls, config: LifePlanConfig) -> "LifePlanService":
        catalog = load_catalog(config.catalog_name)
        store = StateStore(JsonFileBackend(config.data_dir), catalog)
        return cls(store, catalog, OpenAIExtractionClient(config))

    async def ingest_fragment(
        self,
        user_id: str,
        fragment: str,
        item_id: Optional[str] = None,
        role: Role = Role.USER,
    ) -> IngestResult:
        """
        Record a transcript fragment and, for user speech, extract answers from it.

        Raises ValidationError before touching state; StorageError propagates.
        Extraction problems are reported in the result, never raised.
        """
        user_id = validate_user_id(user_id)
        if not isinstance(fragment, str) or not fragment.strip():
            raise ValidationError("Missing transcript")

        correlation_id = f"ingest_{uuid.uuid4().hex[:12]}"
        async with self.locks.hold(user_id):
            state = await asyncio.to_thread(self.store.load_or_create, user_id)
            append_transcript(state, fragment, item_id=item_id, role=role)
            emitter.emit(
                "transcript.appended",
                user_id,
                correlation_id=correlation_id,
                role=role.value,
                item_id=item_id,
                chars=len(fragment),
            )

            if role == Role.USER:
                outcome = await self.engine.extract(state, fragment, correlation_id=correlation_id)
            else:
                # Assistant turns are context for the guide, not answers.
                await asyncio.to_thread(self.store.save, state)
                outcome = None

            progress = compute_progress(state, self.catalog)

        if progress.done and outcome and outcome.applied:
            emitter.emit("progress.completed", user_id, correlation_id=correlation_id)

        return IngestResult(
            applied=outcome.applied if outcome else [],
            ignored=outcome.ignored if outcome else [],
            notes_added=outcome.notes_added if outcome else 0,
            progress=progress,
            state=state,
            raw_model_text=outcome.raw_text if outcome else None,
            extraction_error=outcome.error if outcome else None,
        )

    async def get_status(self, user_id: str) -> StatusResult:
        """
        Current progress plus the instruction text for the next turn.

        At most one insight is selected per call, and it is marked used and
        persisted before the instructions are returned.
        """
        user_id = validate_user_id(user_id)
        async with self.locks.hold(user_id):
            state = await asyncio.to_thread(self.store.load_or_create, user_id)
            progress = compute_progress(state, self.catalog)

            picked = pick_insight(state, self.catalog)
            if picked:
                mark_insight_used(state, picked.question_id)
                await asyncio.to_thread(self.store.save, state)
                emitter.emit("insight.selected", user_id, question_id=picked.question_id)

        instructions = build_instructions(
            state,
            progress,
            self.catalog,
            insight=picked.insight if picked else None,
        )
        logger.with_user(user_id).debug(
            "Instructions built",
            done=progress.done,
            current_question=progress.current_question.id if progress.current_question else None,
            with_insight=picked is not None,
        )
        return StatusResult(
            state=state,
            progress=progress,
            instructions=instructions,
            insight_question_id=picked.question_id if picked else None,
        )

    async def reset_user(self, user_id: str) -> None:
        user_id = validate_user_id(user_id)
        async with self.locks.hold(user_id):
            await asyncio.to_thread(self.store.reset, user_id)
