"""
Per-user state store.

One JSON record per user under the data directory. The store owns the
load/create/save/reset lifecycle; callers get a LifePlanState for the
duration of one request and hand it back through save().

Writes go to a temp file in the same directory and are swapped in with
os.replace, so a reader never sees a half-written record.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter

from .errors import StorageError, ValidationError
from .models import Answer, AnswerStatus, LifePlanState, Role, TranscriptEntry, utc_now
from .questions import Catalog

logger = get_logger(LogComponent.STATE_STORE)
emitter = EventEmitter(ObsComponent.STATE_STORE)

_USER_ID_RE = re.compile(r"^[A-Za-z0-9_\-][A-Za-z0-9_.\-]{0,127}$")


def validate_user_id(user_id: Optional[str]) -> str:
    """
    Return the stripped user id, or raise ValidationError.

    User ids double as file names, so only [A-Za-z0-9_.-] is accepted and a
    leading dot is refused.
    """
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("Missing userId")
    user_id = user_id.strip()
    if not _USER_ID_RE.match(user_id):
        raise ValidationError(f"Invalid userId: {user_id!r}")
    return user_id


class JsonFileBackend:
    """
    Key-value storage of opaque blobs, one file per key.

    get() returns None when the key does not exist; any other OS failure is a
    StorageError.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _ensure_dir(self) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data dir {self.data_dir}: {e}") from e

    def path_for(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        try:
            return self.path_for(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot read record {key!r}: {e}") from e

    def put(self, key: str, blob: str) -> None:
        self._ensure_dir()
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.data_dir,
                prefix=f".{key}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = f.name
                f.write(blob)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path_for(key))
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError(f"Cannot write record {key!r}: {e}") from e

    def delete(self, key: str) -> bool:
        """Delete a record. Returns False if it did not exist."""
        try:
            self.path_for(key).unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Cannot delete record {key!r}: {e}") from e


class StateStore:
    """Durable per-user LifePlan state."""

    def __init__(self, backend: JsonFileBackend, catalog: Catalog):
        self.backend = backend
        self.catalog = catalog

    def load_or_create(self, user_id: str) -> LifePlanState:
        """
        Load the user's state, creating and persisting a fresh one on first access.

        Older records are backfilled with an unanswered entry for every catalog
        question they are missing; existing answers are left untouched.
        """
        user_id = validate_user_id(user_id)
        log = logger.with_user(user_id)

        raw = self.backend.get(user_id)
        if raw is None:
            state = LifePlanState.fresh(user_id, self.catalog)
            self.save(state)
            log.info("State created", questions=len(state.answers))
            emitter.emit("state.created", user_id, questions=len(state.answers))
            return state

        try:
            state = LifePlanState.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            # Refuse to overwrite a record we cannot read.
            log.error("State record unreadable", error=str(e), error_type=type(e).__name__)
            raise StorageError(f"Corrupt state record for {user_id!r}") from e

        added = state.backfill_answers(self.catalog)
        if added:
            log.info("Backfilled answers for new catalog questions", added=added)
        return state

    def save(self, state: LifePlanState) -> None:
        """Stamp updated_at and replace the persisted record."""
        state.updated_at = utc_now()
        self.backend.put(state.user_id, json.dumps(state.to_dict(), ensure_ascii=False, indent=2))
        logger.debug(
            "State saved",
            user_id=state.user_id,
            transcript_len=len(state.transcript),
            notes=len(state.notes),
        )

    def reset(self, user_id: str) -> None:
        """Delete the user's record. A missing record is not an error."""
        user_id = validate_user_id(user_id)
        existed = self.backend.delete(user_id)
        logger.with_user(user_id).info("State reset", existed=existed)
        emitter.emit("state.reset", user_id, existed=existed)


def append_transcript(
    state: LifePlanState,
    text: str,
    item_id: Optional[str] = None,
    role: Role = Role.USER,
) -> TranscriptEntry:
    """Append one transcript entry stamped now. In-memory only; caller saves."""
    entry = TranscriptEntry(at=utc_now(), text=text, role=role, item_id=item_id)
    state.transcript.append(entry)
    return entry


def append_note(state: LifePlanState, text: str) -> bool:
    """Append a trimmed side note. Returns False (and does nothing) if it trims to empty."""
    cleaned = (text or "").strip()
    if not cleaned:
        return False
    state.notes.append(cleaned)
    return True


def set_answer(
    state: LifePlanState,
    question_id: str,
    status: AnswerStatus,
    answer_text: str,
    confidence: Optional[float] = None,
) -> None:
    """Overwrite one answer wholesale and stamp it."""
    answer = state.answers.setdefault(question_id, Answer(question_id=question_id))
    answer.status = status
    answer.answer_text = answer_text
    answer.confidence = confidence
    answer.updated_at = utc_now()