# =============================================================================
# File: eventcore/user_account/events.py
# Description: User account events and their apply functions
# =============================================================================

from __future__ import annotations

from datetime import datetime, timezone

from eventcore.common.base.base_event import BaseEvent
from eventcore.infra.event_store.aggregate_binding import aggregate_event
from eventcore.infra.event_store.payload_attributes import PayloadAttribute
from eventcore.user_account.aggregate import User
from eventcore.user_account.exceptions import UserDeletedError


class UserEvent(BaseEvent):
    """Common base of user account events, never persisted itself."""

    abstract_event = True

    def _ensure_active(self, user: User) -> None:
        if user.is_deleted:
            raise UserDeletedError(
                f"User {user.id} is deleted",
                event_type=self.event_type,
                aggregate_ref=user.id,
            )


# =============================================================================
# SECTION: User Lifecycle Events
# =============================================================================

@aggregate_event(User)
class UserCreated(UserEvent):
    name = PayloadAttribute(str)
    email = PayloadAttribute(str)

    def apply(self, user: User) -> User:
        user.name = self.name
        user.email = self.email.strip().lower() if self.email else self.email
        return user


@aggregate_event(User)
class UserRenamed(UserEvent):
    name = PayloadAttribute(str)

    def apply(self, user: User) -> User:
        self._ensure_active(user)
        user.name = self.name
        return user


@aggregate_event(User)
class UserDeleted(UserEvent):
    reason = PayloadAttribute(str)

    def apply(self, user: User) -> User:
        self._ensure_active(user)
        user.deleted_at = datetime.now(timezone.utc)
        return user


# =============================================================================
# EOF
# =============================================================================
