# =============================================================================
# File: eventcore/common/base/base_event.py
# Description: Base Pydantic model for all persisted domain events
# =============================================================================

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, ClassVar, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from eventcore.common.base.base_aggregate import Aggregate
from eventcore.common.exceptions.exceptions import ApplyNotImplemented, EventImmutable

# Fields frozen once the event record exists
_IMMUTABLE_AFTER_PERSIST = frozenset({"event_type", "payload", "aggregate_ref"})


class FrozenPayload(dict):
    """Payload map of a persisted event; every in-place write raises EventImmutable."""

    def __init__(self, payload: Optional[Mapping[str, Any]] = None):
        super().__init__((key, _freeze_value(value)) for key, value in dict(payload or {}).items())

    def _reject(self, *args: Any, **kwargs: Any) -> None:
        raise EventImmutable("Cannot change the payload of a persisted event")

    __setitem__ = _reject
    __delitem__ = _reject
    __ior__ = _reject
    clear = _reject
    pop = _reject
    popitem = _reject
    setdefault = _reject
    update = _reject

    def __reduce__(self):
        return FrozenPayload, (dict(self),)

    def __deepcopy__(self, memo: Dict[int, Any]) -> "FrozenPayload":
        return FrozenPayload(copy.deepcopy(dict(self), memo))


def _freeze_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return FrozenPayload(value)
    if isinstance(value, (list, tuple)):
        return tuple(_freeze_value(item) for item in value)
    return value


def _thaw_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_thaw_value(item) for item in value]
    return value


class BaseEvent(BaseModel):
    """
    Base model for all domain events.

    An event is one fact about a change to exactly one aggregate. Concrete
    event types declare their payload fields with PayloadAttribute, bind to
    their aggregate type with @aggregate_event, and override apply().

    Events are append-only: once the record store assigns an ``id`` the
    payload and aggregate reference can no longer change.
    """

    # Intermediate base classes set this so startup validation skips them
    abstract_event: ClassVar[bool] = True

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )

    id: Optional[int] = None
    event_type: str = ""
    payload: Dict[str, Any] = Field(default_factory=dict)
    aggregate_ref: Optional[int] = None
    created_at: Optional[datetime] = None

    _aggregate: Optional[Aggregate] = PrivateAttr(default=None)

    @classmethod
    def default_event_type(cls) -> str:
        return cls.__name__

    @classmethod
    def is_abstract_event(cls) -> bool:
        return cls.__dict__.get("abstract_event", False)

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)

        if not data.get("event_type"):
            data["event_type"] = cls.default_event_type()
        if data.get("payload") is None:
            data["payload"] = {}

        # Accept the binding's reference column (e.g. user_id=...) as an alias
        from eventcore.infra.event_store.aggregate_binding import find_binding

        binding = find_binding(cls)
        if binding is not None and binding.reference_field in data:
            reference = data.pop(binding.reference_field)
            if data.get("aggregate_ref") is None:
                data["aggregate_ref"] = reference
        return data

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _IMMUTABLE_AFTER_PERSIST and self.is_persisted:
            raise EventImmutable(
                f"Cannot change '{name}' of a persisted event",
                event_type=self.event_type,
                aggregate_ref=self.aggregate_ref,
            )
        super().__setattr__(name, value)
        if name == "id":
            self._freeze_payload(value is not None)

    def model_post_init(self, __context: Any) -> None:
        if self.is_persisted:
            self._freeze_payload(True)

    def _freeze_payload(self, frozen: bool) -> None:
        payload = self.payload if self.payload is not None else {}
        super().__setattr__("payload", FrozenPayload(payload) if frozen else _thaw_value(payload))

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    @property
    def aggregate(self) -> Optional[Aggregate]:
        """The aggregate this event is being applied to (set by the resolver)."""
        return self._aggregate

    def attach_aggregate(self, aggregate: Optional[Aggregate]) -> None:
        self._aggregate = aggregate

    def apply(self, aggregate: Aggregate) -> Aggregate:
        """
        Apply this event to the aggregate and return the new aggregate state.

        Every concrete event type must override this; it is the only place
        business rules live.
        """
        raise ApplyNotImplemented(
            f"{type(self).__name__} does not implement apply()",
            event_type=self.event_type,
            aggregate_ref=self.aggregate_ref,
        )

    def to_record(self) -> Dict[str, Any]:
        """Column values for the event record (identity and timestamp are store-assigned)."""
        return {
            "event_type": self.event_type,
            "payload": _thaw_value(self.payload or {}),
            "aggregate_ref": self.aggregate_ref,
        }
