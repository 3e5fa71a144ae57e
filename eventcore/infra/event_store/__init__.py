# =============================================================================
# File: eventcore/infra/event_store/__init__.py
# Description: Event application machinery
# =============================================================================

from eventcore.infra.event_store.aggregate_binding import (
    AggregateBinding,
    aggregate_event,
    binding_of,
    event_class_for,
    validate_bindings,
)
from eventcore.infra.event_store.apply_engine import ApplyAttempt, ApplyEngine, ApplyResult, ApplyState
from eventcore.infra.event_store.payload_attributes import PayloadAttribute, payload_attributes
from eventcore.infra.event_store.record_store import RecordStore, RecordTransaction

__all__ = [
    "AggregateBinding",
    "aggregate_event",
    "binding_of",
    "event_class_for",
    "validate_bindings",
    "ApplyAttempt",
    "ApplyEngine",
    "ApplyResult",
    "ApplyState",
    "PayloadAttribute",
    "payload_attributes",
    "RecordStore",
    "RecordTransaction",
]
