# =============================================================================
# File: eventcore/api/routers/user_account_router.py
# Description: User account endpoints - each mutation is one applied event
# =============================================================================

from __future__ import annotations

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status

from eventcore.api.models.user_account_api_models import (
    AppliedEventResponse,
    CreateUserRequest,
    EventHistoryResponse,
    RenameUserRequest,
)
from eventcore.common.exceptions.exceptions import AggregateNotFound
from eventcore.infra.event_store.apply_engine import ApplyEngine
from eventcore.user_account.aggregate import User
from eventcore.user_account.events import UserCreated, UserDeleted, UserRenamed

log = logging.getLogger("eventcore.api.user_account_router")
router = APIRouter()


# =============================================================================
# Dependency Injection
# =============================================================================

async def get_apply_engine(request: Request) -> ApplyEngine:
    """Get the apply engine from application state"""
    engine = getattr(request.app.state, "apply_engine", None)
    if engine is None:
        raise RuntimeError("Apply engine not configured")
    return engine


Engine = Annotated[ApplyEngine, Depends(get_apply_engine)]


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/create", status_code=status.HTTP_201_CREATED, response_model=AppliedEventResponse)
async def create_user(payload: CreateUserRequest, engine: Engine) -> AppliedEventResponse:
    """Create a user by applying a UserCreated event."""
    event = UserCreated()
    event.name = payload.name
    event.email = payload.email

    result = await engine.apply(event)
    log.info(f"User {result.aggregate.id} created (event #{result.event.id})")
    return AppliedEventResponse.from_result(result)


@router.post("/rename", response_model=AppliedEventResponse)
async def rename_user(payload: RenameUserRequest, engine: Engine) -> AppliedEventResponse:
    event = UserRenamed(user_id=payload.user_id)
    event.name = payload.name

    result = await engine.apply(event)
    return AppliedEventResponse.from_result(result)


@router.delete("/destroy", response_model=AppliedEventResponse)
async def destroy_user(
        engine: Engine,
        user_id: int = Query(gt=0),
        reason: Optional[str] = Query(default=None, max_length=500),
) -> AppliedEventResponse:
    """Soft-delete a user by applying a UserDeleted event."""
    event = UserDeleted(user_id=user_id)
    event.reason = reason

    result = await engine.apply(event)
    log.info(f"User {user_id} deleted (event #{result.event.id})")
    return AppliedEventResponse.from_result(result)


@router.get("/{user_id}/events", response_model=EventHistoryResponse)
async def user_events(engine: Engine, user_id: int = Path(gt=0)) -> EventHistoryResponse:
    """Persisted events of one user, oldest first."""
    events = await engine.history(User, user_id)
    if not events:
        raise AggregateNotFound(f"User {user_id} has no events", aggregate_ref=user_id)
    return EventHistoryResponse.from_events(user_id, events)
