"""
Question catalog.

The questionnaire is static configuration, loaded once at process start:
- Catalogs are stored as YAML (preferred) or JSON under lifeplan/catalog/
- PyYAML's safe_load parses both, so there is a single code path
- Catalog selection via explicit name or LIFEPLAN_CATALOG env var, falling back to "default"

Questions are immutable; `order` defines the canonical sequence used for
"next question" selection.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml

from logging_setup import get_logger, Component as LogComponent

logger = get_logger(LogComponent.CATALOG)


@dataclass(frozen=True)
class Question:
    """One fixed item in the questionnaire."""

    id: str
    module_id: str
    module_title: str
    order: int
    prompt: str
    required: bool = True
    # Short one-time remark the guide may drop after the user answers.
    insight: Optional[str] = None
    # Follow-up hints if the answer is thin.
    hints: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        if not data.get("id") or not data.get("prompt"):
            raise ValueError(f"Catalog question requires 'id' and 'prompt': {data!r}")
        insight = data.get("insight") or data.get("wisdom")
        hints = data.get("hints") or data.get("coverage_hints") or []
        return cls(
            id=str(data["id"]),
            module_id=str(data.get("module_id", "")),
            module_title=str(data.get("module_title", "")),
            order=int(data.get("order", 0)),
            prompt=str(data["prompt"]).strip(),
            required=bool(data.get("required", True)),
            insight=str(insight).strip() if insight else None,
            hints=tuple(str(h) for h in hints),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "moduleId": self.module_id,
            "moduleTitle": self.module_title,
            "order": self.order,
            "prompt": self.prompt,
            "required": self.required,
            "insight": self.insight,
            "hints": list(self.hints),
        }


class Catalog:
    """Ordered, read-only collection of questions."""

    def __init__(self, questions: List[Question], name: str = "default"):
        seen = set()
        for q in questions:
            if q.id in seen:
                raise ValueError(f"Duplicate question id in catalog {name!r}: {q.id}")
            seen.add(q.id)
        self.name = name
        self._questions: Tuple[Question, ...] = tuple(sorted(questions, key=lambda q: q.order))
        self._by_id: Dict[str, Question] = {q.id: q for q in self._questions}

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __len__(self) -> int:
        return len(self._questions)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._by_id

    def get(self, question_id: str) -> Optional[Question]:
        return self._by_id.get(question_id)

    def required(self) -> List[Question]:
        return [q for q in self._questions if q.required]

    def modules(self) -> List[Dict[str, str]]:
        """Unique modules in catalog order."""
        modules: Dict[str, str] = {}
        for q in self._questions:
            modules.setdefault(q.module_id, q.module_title)
        return [{"moduleId": mid, "moduleTitle": title} for mid, title in modules.items()]


def _get_catalog_dir() -> Path:
    return Path(__file__).parent / "catalog"


def _load_file(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Catalog file {path} must contain a mapping at top-level")
        return data


def _build_catalog(data: Dict[str, Any], fallback_name: str) -> Catalog:
    raw_questions = data.get("questions") or []
    if not isinstance(raw_questions, list):
        raise ValueError(f"Catalog {fallback_name!r}: 'questions' must be a list")
    return Catalog(
        [Question.from_dict(q) for q in raw_questions],
        name=str(data.get("name", fallback_name)),
    )


def load_catalog(catalog_name: Optional[str] = None) -> Catalog:
    """
    Load a question catalog.

    Resolution order:
    1) <name>.yaml
    2) <name>.yml
    3) <name>.json
    4) default.yaml / default.yml / default.json
    """
    catalog_name = catalog_name or os.getenv("LIFEPLAN_CATALOG", "default")
    catalog_dir = _get_catalog_dir()

    for stem in (catalog_name, "default"):
        for suffix in (".yaml", ".yml", ".json"):
            candidate = catalog_dir / f"{stem}{suffix}"
            if candidate.exists():
                catalog = _build_catalog(_load_file(candidate), stem)
                logger.info("Catalog loaded", catalog=catalog.name, path=str(candidate), questions=len(catalog))
                return catalog

    raise FileNotFoundError(f"No catalog named {catalog_name!r} or 'default' in {catalog_dir}")
