# =============================================================================
# File: eventcore/user_account/aggregate.py
# Description: User aggregate - the record evolved by user account events
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from eventcore.common.base.base_aggregate import Aggregate
from eventcore.common.exceptions.exceptions import AggregateValidationError


class User(Aggregate):
    """
    User account state, stored in the ``users`` table.

    Only user account events change it; see eventcore.user_account.events.
    """

    table_name: ClassVar[str] = "users"

    name: Optional[str] = None
    email: Optional[str] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def check_invariants(self) -> None:
        errors = {}
        if not self.name or not self.name.strip():
            errors["name"] = "can't be blank"
        if not self.email or "@" not in self.email:
            errors["email"] = "is invalid"
        if errors:
            raise AggregateValidationError("User is invalid", errors=errors)


# =============================================================================
# EOF
# =============================================================================
