# =============================================================================
# File: eventcore/common/base/base_aggregate.py
# Description: Base Pydantic model for all event-sourced aggregates
# =============================================================================

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class Aggregate(BaseModel):
    """
    Base model for aggregates mutated through event application.

    Subclasses declare their attributes as regular fields and name the
    record table they live in. State only ever changes inside an event's
    apply function; the engine persists it afterwards.
    """

    # Record table for this aggregate type (default: snake_case plural of class name)
    table_name: ClassVar[str] = ""

    model_config = ConfigDict(
        validate_assignment=True,
        from_attributes=True,
    )

    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Columns managed by the record store, never written from aggregate state
    STORE_MANAGED: ClassVar[frozenset] = frozenset({"id", "created_at", "updated_at"})

    @classmethod
    def aggregate_name(cls) -> str:
        """Snake-case name of the aggregate type (``User`` -> ``user``)."""
        return _CAMEL_BOUNDARY.sub("_", cls.__name__).lower()

    @classmethod
    def record_table(cls) -> str:
        return cls.table_name or f"{cls.aggregate_name()}s"

    @property
    def is_persisted(self) -> bool:
        """True once the record store has assigned an identity."""
        return self.id is not None

    def check_invariants(self) -> None:
        """
        Validate that the current state may be persisted.

        Override to enforce persistence rules; raise
        AggregateValidationError with per-attribute errors to reject.
        """
        return None

    def to_record(self) -> Dict[str, Any]:
        """Attribute values written to the record table."""
        return self.model_dump(exclude=set(self.STORE_MANAGED))

    def refresh_from(self, other: "Aggregate") -> None:
        """Overwrite this instance's attributes with another instance's values."""
        for field_name in type(self).model_fields:
            setattr(self, field_name, getattr(other, field_name))
