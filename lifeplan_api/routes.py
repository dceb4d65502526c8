"""
LifePlan API routes.

This module exposes:
- GET  /api/state               progress + instructions for the next turn
- POST /api/extract             push one transcript fragment
- POST /api/state/reset         forget a user
- GET  /api/catalog             the question catalog
- GET  /api/users/{id}/events   structured events recorded for a user

Input errors map to 400 and storage errors to 500 (see server.py handlers).
Extraction problems are not errors: they ride along in a 200 response.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from lifeplan.config import get_config
from lifeplan.errors import ValidationError
from lifeplan.models import Role
from lifeplan.service import LifePlanService
from lifeplan.store import validate_user_id
from logging_setup import get_logger, Component as LogComponent
from observability.event_store import event_store

router = APIRouter(prefix="/api", tags=["lifeplan"])
logger = get_logger(LogComponent.LIFEPLAN_API)

_service: Optional[LifePlanService] = None


def get_service() -> LifePlanService:
    """Get or create the process-wide service."""
    global _service
    if _service is None:
        _service = LifePlanService.from_config(get_config())
    return _service


class ExtractRequest(BaseModel):
    # Optional at the schema level so a missing field is a 400, not a 422.
    userId: Optional[str] = None
    transcript: Optional[str] = None
    itemId: Optional[str] = None
    role: Optional[str] = Field(None, description="user (default) or assistant")


class ResetRequest(BaseModel):
    userId: Optional[str] = None


class ExtractResponse(BaseModel):
    ok: bool
    applied: List[Dict[str, Any]]
    ignored: List[Dict[str, Any]]
    sideNotesAdded: int
    progress: Dict[str, Any]
    state: Dict[str, Any]
    rawModelText: Optional[str] = None
    extractionError: Optional[str] = None


class StateResponse(BaseModel):
    userId: str
    state: Dict[str, Any]
    progress: Dict[str, Any]
    instructions: str


def _parse_role(role: Optional[str]) -> Role:
    if not role:
        return Role.USER
    try:
        return Role(role.lower())
    except ValueError:
        raise ValidationError(f"Invalid role: {role}")


def _parse_ts(value: Optional[str], name: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        # A "+" in a query string may arrive as a space.
        dt = datetime.fromisoformat(value.replace(" ", "+").replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name} timestamp: {value}")
    # Event timestamps are UTC; a bare timestamp is read as UTC too.
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@router.get("/state", response_model=StateResponse)
async def get_state(
    userId: Optional[str] = Query(None),
    service: LifePlanService = Depends(get_service),
) -> StateResponse:
    """Load (or create) the user's state and build the next instructions."""
    result = await service.get_status(userId)
    return StateResponse(
        userId=result.state.user_id,
        state=result.state.to_dict(),
        progress=result.progress.to_dict(),
        instructions=result.instructions,
    )


@router.post("/extract", response_model=ExtractResponse)
async def extract(
    req: ExtractRequest,
    service: LifePlanService = Depends(get_service),
) -> ExtractResponse:
    """Append a transcript fragment and merge whatever answers it contains."""
    result = await service.ingest_fragment(
        req.userId,
        req.transcript,
        item_id=req.itemId,
        role=_parse_role(req.role),
    )
    return ExtractResponse(
        ok=True,
        applied=result.applied,
        ignored=result.ignored,
        sideNotesAdded=result.notes_added,
        progress=result.progress.to_dict(),
        state=result.state.to_dict(),
        rawModelText=result.raw_model_text,
        extractionError=result.extraction_error,
    )


@router.post("/state/reset")
async def reset_state(
    req: ResetRequest,
    service: LifePlanService = Depends(get_service),
) -> dict:
    await service.reset_user(req.userId)
    return {"ok": True}


@router.get("/catalog")
async def get_catalog(service: LifePlanService = Depends(get_service)) -> dict:
    catalog = service.catalog
    return {
        "name": catalog.name,
        "modules": catalog.modules(),
        "questions": [q.to_dict() for q in catalog],
    }


@router.get("/users/{user_id}/events")
async def get_user_events(
    user_id: str,
    event_type: Optional[str] = Query(None, description="Filter by event_type"),
    component: Optional[str] = Query(None, description="Filter by component"),
    since: Optional[str] = Query(None, description="ISO timestamp (inclusive)"),
    until: Optional[str] = Query(None, description="ISO timestamp (inclusive)"),
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Max events to return"),
) -> dict:
    """Structured events recorded for a user since process start."""
    user_id = validate_user_id(user_id)
    events = event_store.query(
        user_id=user_id,
        event_type=event_type,
        component=component,
        since=_parse_ts(since, "since"),
        until=_parse_ts(until, "until"),
        limit=limit,
    )
    return {"userId": user_id, "events": events, "count": len(events)}
