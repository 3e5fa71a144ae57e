# eventcore/common/exceptions/exceptions.py
# =============================================================================
# Exception taxonomy for the event application engine
# =============================================================================

from __future__ import annotations

from typing import Any, Dict, Optional


class EventCoreError(Exception):
    """Base exception for eventcore.

    Carries the event type and aggregate reference of the offending event
    whenever they are known, so callers can identify what failed.
    """

    def __init__(
            self,
            message: str,
            *,
            event_type: Optional[str] = None,
            aggregate_ref: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.event_type = event_type
        self.aggregate_ref = aggregate_ref

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "detail": self.message,
            "event_type": self.event_type,
            "aggregate_ref": self.aggregate_ref,
        }


class ConfigurationError(EventCoreError):
    """Raised for configuration/contract defects"""
    pass


class DomainError(EventCoreError):
    """Raised for domain-level failures surfaced to callers"""
    pass


class InfrastructureError(EventCoreError):
    """Raised for storage/infrastructure failures"""
    pass


# =============================================================================
# SECTION: Engine Errors
# =============================================================================

class MissingAggregateBinding(ConfigurationError):
    """Raised when a concrete event type has no registered aggregate binding"""
    pass


class ApplyNotImplemented(ConfigurationError, NotImplementedError):
    """Raised when the abstract apply contract is invoked directly"""
    pass


class AggregateNotFound(DomainError):
    """Raised when an event references an aggregate that does not exist"""
    pass


class AggregatePersistenceFailure(DomainError):
    """Raised when saving the applied aggregate state is rejected.

    ``errors`` holds the underlying validation/constraint detail.
    """

    def __init__(self, message: str, *, errors: Optional[Any] = None, **context: Any):
        super().__init__(message, **context)
        self.errors = errors

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class EventImmutable(DomainError):
    """Raised when a persisted event's payload or reference is mutated"""
    pass


class LockTimeout(InfrastructureError):
    """Raised when the aggregate row lock is not acquired within the wait window"""
    pass


# =============================================================================
# SECTION: Collaborator Errors (converted by the engine)
# =============================================================================

class AggregateValidationError(EventCoreError):
    """Raised by Aggregate.check_invariants when state may not be persisted"""

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}


class RecordConstraintViolation(InfrastructureError):
    """Raised by record stores when a write violates a storage constraint"""

    def __init__(self, message: str, *, constraint: Optional[str] = None):
        super().__init__(message)
        self.constraint = constraint
