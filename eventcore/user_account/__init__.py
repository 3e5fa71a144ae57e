# =============================================================================
# File: eventcore/user_account/__init__.py
# Description: User account domain built on the apply engine
# =============================================================================

from eventcore.user_account.aggregate import User
from eventcore.user_account.events import UserCreated, UserDeleted, UserRenamed

__all__ = ["User", "UserCreated", "UserRenamed", "UserDeleted"]
