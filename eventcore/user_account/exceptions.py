# =============================================================================
# File: eventcore/user_account/exceptions.py
# Description: Domain-specific exceptions for UserAccount domain
# =============================================================================

from eventcore.common.exceptions.exceptions import DomainError


class UserAccountError(DomainError):
    """Base exception for UserAccount domain"""
    pass


class UserDeletedError(UserAccountError):
    """Raised when attempting an operation on a deleted user"""
    pass


# =============================================================================
# EOF
# =============================================================================
