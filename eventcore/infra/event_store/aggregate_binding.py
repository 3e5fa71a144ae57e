# =============================================================================
# File: eventcore/infra/event_store/aggregate_binding.py
# Description: Static registration of event type -> aggregate type bindings
#              Bindings are declared with the @aggregate_event decorator at
#              class-definition time and queried by exact event type
# =============================================================================

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Type, Union

from eventcore.common.base.base_aggregate import Aggregate
from eventcore.common.base.base_event import BaseEvent
from eventcore.common.exceptions.exceptions import MissingAggregateBinding

log = logging.getLogger("eventcore.event_store.aggregate_binding")

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

# Thread-safe lock for registry access
_REGISTRY_LOCK = threading.Lock()

# Event class -> binding
_BINDINGS: Dict[type, "AggregateBinding"] = {}

# Persisted event_type string -> event class
_EVENT_TYPES: Dict[str, Type[BaseEvent]] = {}

EventTypeRef = Union[str, Type[BaseEvent], BaseEvent]


@dataclass(frozen=True)
class AggregateBinding:
    """Where events of one type point and where they are stored."""
    event_class: Type[BaseEvent]
    aggregate_type: Type[Aggregate]
    reference_field: str
    event_table: str

    @property
    def event_type(self) -> str:
        return self.event_class.default_event_type()


def _check_identifier(value: str, what: str, event_class: type) -> str:
    if not _IDENTIFIER.match(value):
        raise ValueError(f"{event_class.__name__}: invalid {what} '{value}'")
    return value


def aggregate_event(
        aggregate_type: Type[Aggregate],
        *,
        reference_field: Optional[str] = None,
        event_table: Optional[str] = None,
):
    """
    Decorator binding a concrete event type to the aggregate it mutates.

    Usage:
        @aggregate_event(User)
        class UserCreated(BaseEvent):
            ...

        @aggregate_event(User, reference_field="owner_id", event_table="user_audit_events")
        class UserImported(BaseEvent):
            ...

    Args:
        aggregate_type: Aggregate class the event applies to
        reference_field: Event record column referencing the aggregate
                         (default: ``<aggregate>_id``)
        event_table: Table the event records are stored in
                     (default: ``<aggregate>_events``)
    """
    if not (isinstance(aggregate_type, type) and issubclass(aggregate_type, Aggregate)):
        raise TypeError(f"@aggregate_event expects an Aggregate subclass, got {aggregate_type!r}")

    def decorator(event_class: Type[BaseEvent]) -> Type[BaseEvent]:
        if not (isinstance(event_class, type) and issubclass(event_class, BaseEvent)):
            raise TypeError(
                f"@aggregate_event can only be applied to BaseEvent subclasses. "
                f"{getattr(event_class, '__name__', event_class)!r} is not one."
            )

        name = aggregate_type.aggregate_name()
        binding = AggregateBinding(
            event_class=event_class,
            aggregate_type=aggregate_type,
            reference_field=_check_identifier(reference_field or f"{name}_id", "reference field", event_class),
            event_table=_check_identifier(event_table or f"{name}_events", "event table", event_class),
        )
        event_type = binding.event_type

        with _REGISTRY_LOCK:
            existing_class = _EVENT_TYPES.get(event_type)
            if existing_class is not None and existing_class is not event_class:
                log.warning(
                    f"Event type '{event_type}' collision: "
                    f"already registered by {existing_class.__module__}.{existing_class.__name__}, "
                    f"now registering {event_class.__module__}.{event_class.__name__}"
                )
                _BINDINGS.pop(existing_class, None)

            _EVENT_TYPES[event_type] = event_class
            _BINDINGS[event_class] = binding

        log.debug(
            f"Bound event {event_type} -> {aggregate_type.__name__} "
            f"(ref={binding.reference_field}, table={binding.event_table})"
        )
        return event_class

    return decorator


# =============================================================================
# SECTION: Lookups
# =============================================================================

def _event_class(event: EventTypeRef) -> Type[BaseEvent]:
    if isinstance(event, str):
        return event_class_for(event)
    if isinstance(event, BaseEvent):
        return type(event)
    return event


def find_event_class(event_type: str) -> Optional[Type[BaseEvent]]:
    """Registered class for an event_type string, or None."""
    with _REGISTRY_LOCK:
        return _EVENT_TYPES.get(event_type)


def find_binding(event: EventTypeRef) -> Optional[AggregateBinding]:
    """Binding for an event class/instance, or None if it is not bound."""
    if isinstance(event, str):
        event_class = find_event_class(event)
        if event_class is None:
            return None
        event = event_class
    with _REGISTRY_LOCK:
        return _BINDINGS.get(_event_class(event))


def binding_of(event: EventTypeRef) -> AggregateBinding:
    """
    Binding for an event class, instance or registered event_type string.

    Raises:
        MissingAggregateBinding: The event type has no registered aggregate
    """
    event_class = _event_class(event)
    with _REGISTRY_LOCK:
        binding = _BINDINGS.get(event_class)
    if binding is None:
        raise MissingAggregateBinding(
            f"Event type {event_class.__name__} has no aggregate binding; "
            f"decorate it with @aggregate_event(<Aggregate>)",
            event_type=event_class.default_event_type(),
        )
    return binding


def aggregate_type_of(event: EventTypeRef) -> Type[Aggregate]:
    return binding_of(event).aggregate_type


def reference_field_of(event: EventTypeRef) -> str:
    return binding_of(event).reference_field


def event_class_for(event_type: str) -> Type[BaseEvent]:
    """Resolve a persisted event_type string to its registered event class."""
    with _REGISTRY_LOCK:
        event_class = _EVENT_TYPES.get(event_type)
    if event_class is None:
        raise MissingAggregateBinding(f"Unknown event type '{event_type}'", event_type=event_type)
    return event_class


def bindings_for_aggregate(aggregate_type: Type[Aggregate]) -> List[AggregateBinding]:
    """All bindings targeting an aggregate type."""
    with _REGISTRY_LOCK:
        return [b for b in _BINDINGS.values() if b.aggregate_type is aggregate_type]


def registered_bindings() -> List[AggregateBinding]:
    with _REGISTRY_LOCK:
        return list(_BINDINGS.values())


def _concrete_event_classes(root: type = BaseEvent) -> List[Type[BaseEvent]]:
    found = []
    for subclass in root.__subclasses__():
        if not subclass.is_abstract_event():
            found.append(subclass)
        found.extend(_concrete_event_classes(subclass))
    return list(dict.fromkeys(found))


def validate_bindings(package: Optional[str] = None) -> List[AggregateBinding]:
    """
    Check that every concrete (imported) event class is bound.

    Called at startup so a missing binding fails fast instead of on the
    first request that uses the event type.

    Args:
        package: Only check event classes defined in this package/module

    Raises:
        MissingAggregateBinding: For the first unbound event class found
    """
    bindings = []
    for event_class in _concrete_event_classes():
        module = event_class.__module__
        if package and not (module == package or module.startswith(f"{package}.")):
            continue
        bindings.append(binding_of(event_class))
    log.info(f"Validated {len(bindings)} event bindings" + (f" in {package}" if package else ""))
    return bindings


def unregister(event_class: Type[BaseEvent]) -> None:
    """Remove an event class from the registry (for testing)."""
    with _REGISTRY_LOCK:
        binding = _BINDINGS.pop(event_class, None)
        if binding is not None and _EVENT_TYPES.get(binding.event_type) is event_class:
            del _EVENT_TYPES[binding.event_type]
