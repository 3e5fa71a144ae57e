# =============================================================================
# File: eventcore/infra/event_store/pg_record_store.py
# Description: PostgreSQL (asyncpg) implementation of the record store port
#              Row locks via SELECT ... FOR UPDATE bounded by lock_timeout
# =============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Callable, List, Mapping, Optional, Type

import asyncpg
from asyncpg.exceptions import IntegrityConstraintViolationError, LockNotAvailableError

from eventcore.common.base.base_aggregate import Aggregate
from eventcore.common.base.base_event import BaseEvent
from eventcore.common.exceptions.exceptions import AggregateNotFound, LockTimeout, RecordConstraintViolation
from eventcore.infra.event_store.record_store import A
from eventcore.infra.persistence import pg_client

log = logging.getLogger("eventcore.event_store.pg_record_store")

TransactionFactory = Callable[[], AsyncContextManager[asyncpg.Connection]]


def quote_ident(name: str) -> str:
    """Quote a table/column identifier."""
    return '"' + name.replace('"', '""') + '"'


class PostgresRecordTransaction:
    """Record store operations bound to one asyncpg transaction connection."""

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    async def fetch_aggregate(self, aggregate_type: Type[A], aggregate_id: int) -> Optional[A]:
        table = quote_ident(aggregate_type.record_table())
        row = await self.conn.fetchrow(f"SELECT * FROM {table} WHERE id = $1", aggregate_id)
        if row is None:
            return None
        return aggregate_type.model_validate(dict(row))

    async def lock_aggregate(self, aggregate: Aggregate, timeout: float) -> None:
        aggregate_type = type(aggregate)
        table = quote_ident(aggregate_type.record_table())
        timeout_ms = max(1, int(timeout * 1000))

        # SET LOCAL only affects the current transaction
        await self.conn.execute(f"SET LOCAL lock_timeout = '{timeout_ms}ms'")
        try:
            row = await self.conn.fetchrow(f"SELECT * FROM {table} WHERE id = $1 FOR UPDATE", aggregate.id)
        except LockNotAvailableError as e:
            raise LockTimeout(
                f"Timed out after {timeout_ms}ms waiting for lock on "
                f"{aggregate_type.__name__}:{aggregate.id}",
                aggregate_ref=aggregate.id,
            ) from e

        if row is None:
            raise AggregateNotFound(
                f"{aggregate_type.__name__} {aggregate.id} disappeared before it could be locked",
                aggregate_ref=aggregate.id,
            )
        aggregate.refresh_from(aggregate_type.model_validate(dict(row)))

    async def save_aggregate(self, aggregate: Aggregate) -> None:
        aggregate_type = type(aggregate)
        table = quote_ident(aggregate_type.record_table())
        record = aggregate.to_record()
        columns = list(record)
        values = [record[c] for c in columns]

        try:
            if not aggregate.is_persisted:
                placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
                column_sql = ", ".join(quote_ident(c) for c in columns)
                row = await self.conn.fetchrow(
                    f"INSERT INTO {table} ({column_sql}) VALUES ({placeholders}) "
                    f"RETURNING id, created_at, updated_at",
                    *values,
                )
                aggregate.id = row["id"]
                aggregate.created_at = row["created_at"]
                aggregate.updated_at = row["updated_at"]
            else:
                assignments = ", ".join(f"{quote_ident(c)} = ${i}" for i, c in enumerate(columns, start=1))
                row = await self.conn.fetchrow(
                    f"UPDATE {table} SET {assignments}{', ' if assignments else ''}updated_at = now() "
                    f"WHERE id = ${len(columns) + 1} RETURNING updated_at",
                    *values,
                    aggregate.id,
                )
                if row is None:
                    raise AggregateNotFound(
                        f"{aggregate_type.__name__} {aggregate.id} not found on update",
                        aggregate_ref=aggregate.id,
                    )
                aggregate.updated_at = row["updated_at"]
        except IntegrityConstraintViolationError as e:
            raise RecordConstraintViolation(
                str(e), constraint=getattr(e, "constraint_name", None)
            ) from e

    async def insert_event(self, event: BaseEvent, event_table: str, reference_field: str) -> None:
        record = event.to_record()
        row = await self.conn.fetchrow(
            f"INSERT INTO {quote_ident(event_table)} (event_type, payload, {quote_ident(reference_field)}) "
            f"VALUES ($1, $2, $3) RETURNING id, created_at",
            record["event_type"],
            record["payload"],
            record["aggregate_ref"],
        )
        event.id = row["id"]
        event.created_at = row["created_at"]

    async def fetch_events(
            self,
            event_table: str,
            reference_field: str,
            aggregate_id: int,
    ) -> List[Mapping[str, Any]]:
        ref = quote_ident(reference_field)
        rows = await self.conn.fetch(
            f"SELECT id, event_type, payload, {ref} AS aggregate_ref, created_at "
            f"FROM {quote_ident(event_table)} WHERE {ref} = $1 ORDER BY id",
            aggregate_id,
        )
        return [dict(row) for row in rows]


class PostgresRecordStore:
    """
    Record store backed by PostgreSQL.

    Usage:
        store = PostgresRecordStore()
        engine = ApplyEngine(store)

    Args:
        transaction_factory: Context manager factory yielding a connection
                             inside an open transaction (default: pg_client.transaction)
    """

    def __init__(self, transaction_factory: Optional[TransactionFactory] = None):
        self._transaction_factory = transaction_factory or pg_client.transaction

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresRecordTransaction]:
        async with self._transaction_factory() as conn:
            yield PostgresRecordTransaction(conn)
