# =============================================================================
# File: eventcore/infra/event_store/record_store.py
# Description: Record store port consumed by the apply engine
#              Pattern: Ports & Adapters - the engine depends on these
#              protocols, PostgresRecordStore and test fakes implement them
# =============================================================================

from __future__ import annotations

from typing import Any, AsyncContextManager, List, Mapping, Optional, Protocol, Type, TypeVar, runtime_checkable

from eventcore.common.base.base_aggregate import Aggregate
from eventcore.common.base.base_event import BaseEvent

A = TypeVar("A", bound=Aggregate)


@runtime_checkable
class RecordTransaction(Protocol):
    """
    Operations available inside one store transaction.

    Everything written through a transaction becomes visible on commit, or
    not at all. Row locks taken with lock_aggregate are held until the
    transaction ends.
    """

    async def fetch_aggregate(self, aggregate_type: Type[A], aggregate_id: int) -> Optional[A]:
        """Load an aggregate by identity, None if there is no such record."""
        ...

    async def lock_aggregate(self, aggregate: Aggregate, timeout: float) -> None:
        """
        Take an exclusive row lock on a persisted aggregate and refresh its
        attributes from the locked row.

        Raises:
            LockTimeout: Lock not acquired within ``timeout`` seconds
            AggregateNotFound: The row disappeared before it could be locked
        """
        ...

    async def save_aggregate(self, aggregate: Aggregate) -> None:
        """
        Insert (no identity yet) or update the aggregate record. Inserting
        assigns ``id``; timestamps are store-managed.

        Raises:
            RecordConstraintViolation: A storage constraint rejected the write
        """
        ...

    async def insert_event(self, event: BaseEvent, event_table: str, reference_field: str) -> None:
        """Insert the event record, assigning ``id`` and ``created_at``."""
        ...

    async def fetch_events(
            self,
            event_table: str,
            reference_field: str,
            aggregate_id: int,
    ) -> List[Mapping[str, Any]]:
        """
        Event records for one aggregate in insertion order.

        Each row has ``id``, ``event_type``, ``payload``, ``aggregate_ref``
        and ``created_at``.
        """
        ...


@runtime_checkable
class RecordStore(Protocol):
    """Transactional record store the apply engine runs on."""

    def transaction(self) -> AsyncContextManager[RecordTransaction]:
        """Open a transaction; commit on clean exit, roll back on exception."""
        ...
