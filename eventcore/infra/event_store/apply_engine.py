# =============================================================================
# File: eventcore/infra/event_store/apply_engine.py
# Description: Transactional apply-then-persist engine
#              resolve -> lock -> apply -> persist aggregate ->
#              backfill reference -> persist event, in one transaction
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Type

from pydantic import ValidationError

from eventcore.common.base.base_aggregate import Aggregate
from eventcore.common.base.base_event import BaseEvent
from eventcore.common.exceptions.exceptions import (
    AggregatePersistenceFailure,
    AggregateValidationError,
    EventCoreError,
    EventImmutable,
    MissingAggregateBinding,
    RecordConstraintViolation,
)
from eventcore.config.event_store_config import EventStoreConfig, get_event_store_config
from eventcore.infra.event_store.aggregate_binding import (
    AggregateBinding,
    binding_of,
    bindings_for_aggregate,
    event_class_for,
    find_event_class,
)
from eventcore.infra.event_store.aggregate_resolver import AggregateResolver
from eventcore.infra.event_store.record_store import RecordStore, RecordTransaction

log = logging.getLogger("eventcore.apply_engine")


class ApplyState(str, Enum):
    """States of one event application attempt"""
    DRAFT = "draft"
    RESOLVED = "resolved"
    APPLIED = "applied"
    PERSISTED = "persisted"
    FAILED = "failed"


_TERMINAL_STATES = frozenset({ApplyState.PERSISTED, ApplyState.FAILED})


@dataclass
class ApplyAttempt:
    """Progress record of one pass through the apply protocol."""
    event_type: str
    attempt_id: uuid.UUID = field(default_factory=uuid.uuid4)
    state: ApplyState = ApplyState.DRAFT
    transitions: List[ApplyState] = field(default_factory=lambda: [ApplyState.DRAFT])
    aggregate_ref: Optional[int] = None
    error: Optional[BaseException] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in _TERMINAL_STATES

    def advance(self, state: ApplyState) -> None:
        if self.is_terminal:
            raise RuntimeError(f"Apply attempt {self.attempt_id} already {self.state.value}")
        self.state = state
        self.transitions.append(state)


@dataclass(frozen=True)
class ApplyResult:
    """A persisted event together with the aggregate state it produced."""
    event: BaseEvent
    aggregate: Aggregate
    attempt: ApplyAttempt


TransitionListener = Callable[[ApplyAttempt, ApplyState], None]


class ApplyEngine:
    """
    Applies events to aggregates and persists both atomically.

    Protocol (single transaction):
        1. Resolve the aggregate (load by reference, or build new)
        2. Lock it if it already exists (exclusive row lock, bounded wait)
        3. event.apply(aggregate) -> new aggregate state
        4. Persist the aggregate (invariants + store constraints)
        5. Backfill the event's aggregate reference for new aggregates
        6. Persist the event

    Any failure rolls the whole transaction back. Nothing is retried here;
    a caller retrying must start again from a fresh (draft) event.

    Events creating a new aggregate take no lock, so two concurrent
    creations for the same logical entity both succeed and yield two
    aggregates. Guarding against that (idempotency key, pre-check, unique
    constraint on the aggregate table) is the caller's responsibility.
    """

    def __init__(
            self,
            store: RecordStore,
            config: Optional[EventStoreConfig] = None,
            resolver: Optional[AggregateResolver] = None,
            listeners: Optional[Sequence[TransitionListener]] = None,
    ):
        self.store = store
        self.config = config or get_event_store_config()
        self.resolver = resolver or AggregateResolver()
        self._listeners: List[TransitionListener] = list(listeners or [])

    # -------------------------------------------------------------------------
    # Apply
    # -------------------------------------------------------------------------
    async def apply(self, event: BaseEvent) -> ApplyResult:
        """
        Run the full apply protocol for a draft event.

        Returns:
            ApplyResult with the persisted event and aggregate

        Raises:
            MissingAggregateBinding: Event type not bound to an aggregate, or
                its event_type string does not resolve back to its class
            EventImmutable: Event was already persisted
            AggregateNotFound: Referenced aggregate does not exist
            LockTimeout: Aggregate lock not acquired in time
            ApplyNotImplemented: Event type does not override apply()
            AggregatePersistenceFailure: Aggregate state rejected on save
        """
        binding = binding_of(event)
        if find_event_class(event.event_type) is not type(event):
            raise MissingAggregateBinding(
                f"event_type '{event.event_type}' is not registered for {type(event).__name__}",
                event_type=event.event_type,
                aggregate_ref=event.aggregate_ref,
            )
        if event.is_persisted:
            raise EventImmutable(
                f"Event {event.id} is already persisted",
                event_type=event.event_type,
                aggregate_ref=event.aggregate_ref,
            )

        attempt = ApplyAttempt(event_type=event.event_type, aggregate_ref=event.aggregate_ref)
        original_ref = event.aggregate_ref
        started = time.perf_counter()

        log.info(
            f"Applying {event.event_type} to {binding.aggregate_type.__name__}:"
            f"{original_ref if original_ref is not None else 'new'}",
            extra=self._log_extra(attempt, binding),
        )

        try:
            async with self.store.transaction() as tx:
                aggregate = await self._run_protocol(tx, event, binding, attempt)
        except (Exception, asyncio.CancelledError) as exc:
            self._restore_draft(event, original_ref)
            self._fail(attempt, exc, binding)
            raise

        # Committed: the event and the aggregate state are now visible together
        self._transition(attempt, ApplyState.PERSISTED)
        log.info(
            f"Persisted {event.event_type} #{event.id} -> {binding.aggregate_type.__name__}:{aggregate.id} "
            f"in {(time.perf_counter() - started) * 1000:.1f}ms",
            extra=self._log_extra(attempt, binding),
        )
        return ApplyResult(event=event, aggregate=aggregate, attempt=attempt)

    async def _run_protocol(
            self,
            tx: RecordTransaction,
            event: BaseEvent,
            binding: AggregateBinding,
            attempt: ApplyAttempt,
    ) -> Aggregate:
        # 1. Resolve
        aggregate = await self.resolver.resolve(tx, event)
        self._transition(attempt, ApplyState.RESOLVED)

        # 2. Lock (existing aggregates only)
        if aggregate.is_persisted:
            await tx.lock_aggregate(aggregate, self.config.lock_timeout_seconds)

        # 3. Apply
        new_state = event.apply(aggregate)
        if not isinstance(new_state, binding.aggregate_type):
            raise TypeError(
                f"{type(event).__name__}.apply() must return a {binding.aggregate_type.__name__}, "
                f"got {type(new_state).__name__}"
            )
        event.attach_aggregate(new_state)
        self._transition(attempt, ApplyState.APPLIED)

        # 4. Persist aggregate
        await self._persist_aggregate(tx, event, new_state)

        # 5. Backfill reference
        if event.aggregate_ref is None:
            event.aggregate_ref = new_state.id
        attempt.aggregate_ref = event.aggregate_ref

        # 6. Persist event
        await tx.insert_event(event, binding.event_table, binding.reference_field)
        return new_state

    async def _persist_aggregate(self, tx: RecordTransaction, event: BaseEvent, aggregate: Aggregate) -> None:
        context = dict(event_type=event.event_type, aggregate_ref=event.aggregate_ref)
        name = type(aggregate).__name__
        try:
            aggregate.check_invariants()
            # model_copy(update=...) and model_construct() skip field validation
            type(aggregate).model_validate(aggregate.model_dump())
            await tx.save_aggregate(aggregate)
        except AggregateValidationError as exc:
            raise AggregatePersistenceFailure(
                f"{name} rejected: {exc.message}", errors=exc.errors, **context
            ) from exc
        except ValidationError as exc:
            raise AggregatePersistenceFailure(
                f"{name} rejected: invalid attributes",
                errors=exc.errors(include_url=False, include_context=False),
                **context,
            ) from exc
        except RecordConstraintViolation as exc:
            raise AggregatePersistenceFailure(
                f"{name} rejected by store: {exc.message}",
                errors={"constraint": exc.constraint},
                **context,
            ) from exc

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------
    async def history(self, aggregate_type: Type[Aggregate], aggregate_id: int) -> List[BaseEvent]:
        """
        Persisted events of one aggregate, oldest first, rebuilt as their
        concrete event classes.
        """
        locations = {(b.event_table, b.reference_field) for b in bindings_for_aggregate(aggregate_type)}
        events: List[BaseEvent] = []

        async with self.store.transaction() as tx:
            for event_table, reference_field in sorted(locations):
                for row in await tx.fetch_events(event_table, reference_field, aggregate_id):
                    event_class = event_class_for(row["event_type"])
                    events.append(event_class.model_validate(dict(row)))

        events.sort(key=lambda e: (e.created_at is None, e.created_at, e.id))
        return events

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _transition(self, attempt: ApplyAttempt, state: ApplyState) -> None:
        attempt.advance(state)
        if self.config.log_transitions:
            log.debug(f"[{attempt.attempt_id}] {attempt.event_type} -> {state.value}")
        for listener in self._listeners:
            listener(attempt, state)

    def _fail(self, attempt: ApplyAttempt, exc: BaseException, binding: AggregateBinding) -> None:
        if isinstance(exc, EventCoreError):
            if exc.event_type is None:
                exc.event_type = attempt.event_type
            if exc.aggregate_ref is None:
                exc.aggregate_ref = attempt.aggregate_ref

        attempt.error = exc
        if not attempt.is_terminal:
            self._transition(attempt, ApplyState.FAILED)

        level = logging.ERROR if not isinstance(exc, EventCoreError) else logging.WARNING
        log.log(
            level,
            f"Apply failed for {attempt.event_type} on {binding.aggregate_type.__name__}:"
            f"{attempt.aggregate_ref if attempt.aggregate_ref is not None else 'new'} "
            f"({type(exc).__name__}: {exc}); transaction rolled back",
            extra=self._log_extra(attempt, binding),
        )

    @staticmethod
    def _restore_draft(event: BaseEvent, original_ref: Optional[int]) -> None:
        # The store may have assigned identity before the commit failed
        event.id = None
        event.created_at = None
        event.aggregate_ref = original_ref

    @staticmethod
    def _log_extra(attempt: ApplyAttempt, binding: AggregateBinding) -> dict:
        return {
            "event_type": attempt.event_type,
            "aggregate_type": binding.aggregate_type.__name__,
            "aggregate_ref": attempt.aggregate_ref,
            "attempt_id": str(attempt.attempt_id),
        }
