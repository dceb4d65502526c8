"""
Shared fixtures: a small three-question catalog, a tmp_path-backed store and
a scripted classifier standing in for the model.
"""
import json
from typing import Any, Dict, List, Optional, Union

import pytest

from lifeplan.questions import Catalog, Question
from lifeplan.service import LifePlanService
from lifeplan.store import JsonFileBackend, StateStore
from observability.event_store import event_store


def update(question_id: str, status: str = "complete", text: str = "Some answer", confidence: float = 0.9) -> dict:
    return {"question_id": question_id, "status": status, "answer_text": text, "confidence": confidence}


def model_output(updates: Optional[List[dict]] = None, side_notes: Optional[List[str]] = None) -> str:
    return json.dumps({"updates": updates or [], "side_notes": side_notes or []})


class FakeClassifier:
    """Returns scripted outputs in order; an Exception in the script is raised."""

    def __init__(self, *outputs: Union[str, Exception]):
        self.outputs = list(outputs)
        self.calls: List[Dict[str, Any]] = []

    def push(self, output: Union[str, Exception]) -> None:
        self.outputs.append(output)

    async def classify(self, question_table, current_answers, fragment, user_id=None) -> str:
        self.calls.append({
            "question_table": question_table,
            "current_answers": current_answers,
            "fragment": fragment,
            "user_id": user_id,
        })
        output = self.outputs.pop(0) if self.outputs else model_output()
        if isinstance(output, Exception):
            raise output
        return output


@pytest.fixture
def catalog() -> Catalog:
    return Catalog([
        Question(
            id="Q2",
            module_id="foundation",
            module_title="Foundation",
            order=2,
            prompt="What would be different in six months?",
            required=True,
            insight="Progress is easier to notice when it is concrete.",
        ),
        Question(
            id="Q1",
            module_id="foundation",
            module_title="Foundation",
            order=1,
            prompt="What would you like this plan to help you with?",
            required=True,
            insight="Clarity comes from naming what matters.",
            hints=("What feels most urgent?", "What changed recently?"),
        ),
        Question(
            id="Q3",
            module_id="closing",
            module_title="Closing",
            order=3,
            prompt="Anything important we missed?",
            required=False,
        ),
    ], name="test")


@pytest.fixture
def store(tmp_path, catalog) -> StateStore:
    return StateStore(JsonFileBackend(tmp_path / "data"), catalog)


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def service(store, catalog, classifier) -> LifePlanService:
    return LifePlanService(store, catalog, classifier)


@pytest.fixture(autouse=True)
def clear_events():
    yield
    event_store.clear()
