# =============================================================================
#  File: eventcore/api/models/user_account_api_models.py
#  API Models - User Account
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from eventcore.common.base.base_event import BaseEvent
from eventcore.infra.event_store.apply_engine import ApplyResult

# ──────────────────────────────────────────────────────────────────────────────
#  TYPE ALIASES (Pydantic v2 style)
# ──────────────────────────────────────────────────────────────────────────────

UserName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
UserEmail = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=320)]


# ──────────────────────────────────────────────────────────────────────────────
#  REQUESTS
# ──────────────────────────────────────────────────────────────────────────────
class CreateUserRequest(BaseModel):
    """Payload of a UserCreated event."""
    name: UserName
    email: UserEmail


class RenameUserRequest(BaseModel):
    """Payload of a UserRenamed event."""
    user_id: int = Field(gt=0)
    name: UserName


# ──────────────────────────────────────────────────────────────────────────────
#  RESPONSES
# ──────────────────────────────────────────────────────────────────────────────
class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    aggregate_ref: Optional[int] = None
    created_at: Optional[datetime] = None


class AppliedEventResponse(BaseModel):
    """An event and the user state it produced."""
    event: EventResponse
    user: UserResponse

    @classmethod
    def from_result(cls, result: ApplyResult) -> "AppliedEventResponse":
        return cls(
            event=EventResponse.model_validate(result.event),
            user=UserResponse.model_validate(result.aggregate),
        )


class EventHistoryResponse(BaseModel):
    user_id: int
    events: List[EventResponse]

    @classmethod
    def from_events(cls, user_id: int, events: List[BaseEvent]) -> "EventHistoryResponse":
        return cls(user_id=user_id, events=[EventResponse.model_validate(e) for e in events])
