# =============================================================================
# File: eventcore/infra/event_store/payload_attributes.py
# Description: Declarative payload accessors for event types
#              Each declared attribute reads/writes one key of the event's
#              payload map, validated against the declared type
# =============================================================================

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from pydantic import TypeAdapter

from eventcore.common.exceptions.exceptions import EventImmutable

log = logging.getLogger("eventcore.event_store.payload_attributes")

# Thread-safe lock for registry access
_REGISTRY_LOCK = threading.Lock()

# Declared payload attribute names, per event class (own declarations only)
_PAYLOAD_ATTRIBUTES: Dict[type, List[str]] = {}

# Event record columns that a payload attribute may not shadow
RESERVED_NAMES = frozenset({"id", "event_type", "payload", "aggregate_ref", "created_at", "aggregate"})


def register_payload_attribute(owner: type, name: str) -> List[str]:
    """
    Register ``name`` as a payload attribute of ``owner``.

    Idempotent: registering the same name twice keeps a single entry.

    Returns:
        The owner's own declared attribute names, in declaration order.
    """
    if name in RESERVED_NAMES:
        raise TypeError(f"{owner.__name__}: payload attribute '{name}' shadows an event record field")

    with _REGISTRY_LOCK:
        names = _PAYLOAD_ATTRIBUTES.setdefault(owner, [])
        if name not in names:
            names.append(name)
            log.debug(f"Declared payload attribute {owner.__name__}.{name}")
        return list(names)


def payload_attributes(event_class: type) -> Tuple[str, ...]:
    """All payload attribute names declared for an event class, including inherited ones."""
    seen: List[str] = []
    with _REGISTRY_LOCK:
        for klass in reversed(event_class.__mro__):
            for name in _PAYLOAD_ATTRIBUTES.get(klass, ()):
                if name not in seen:
                    seen.append(name)
    return tuple(seen)


def _ensure_payload(instance: Any) -> Dict[str, Any]:
    if instance.payload is None:
        instance.payload = {}
    return instance.payload


class PayloadAttribute(property):
    """
    Typed accessor for one payload field of an event.

    Usage:
        @aggregate_event(User)
        class UserCreated(BaseEvent):
            name = PayloadAttribute(str)
            email = PayloadAttribute(str)

        event = UserCreated()
        event.name = "Alice"          # stored as payload["name"]
        event.payload                 # {"name": "Alice"}

    Values are validated against ``field_type`` on write and stored in their
    JSON-compatible form, so the payload always serializes; reads validate
    the stored value back into ``field_type``. ``None`` is stored as-is.
    """

    def __init__(self, field_type: Any = Any, *, key: Optional[str] = None, doc: Optional[str] = None):
        self.field_type = field_type
        self.key = key
        self._adapter = TypeAdapter(field_type)
        super().__init__(self._read, self._write, None, doc)

    def __set_name__(self, owner: type, name: str) -> None:
        if self.key is None:
            self.key = name
        register_payload_attribute(owner, self.key)

    def _read(self, instance: Any) -> Any:
        raw = _ensure_payload(instance).get(self.key)
        if raw is None:
            return None
        return self._adapter.validate_python(raw)

    def _write(self, instance: Any, value: Any) -> None:
        if instance.is_persisted:
            raise EventImmutable(
                f"Cannot set payload attribute '{self.key}' on a persisted event",
                event_type=instance.event_type,
                aggregate_ref=instance.aggregate_ref,
            )
        payload = _ensure_payload(instance)
        if value is None:
            payload[self.key] = None
            return
        validated = self._adapter.validate_python(value)
        payload[self.key] = self._adapter.dump_python(validated, mode="json")

    def __repr__(self) -> str:
        type_name = getattr(self.field_type, "__name__", repr(self.field_type))
        return f"PayloadAttribute({type_name}, key={self.key!r})"
