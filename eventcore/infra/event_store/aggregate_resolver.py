# =============================================================================
# File: eventcore/infra/event_store/aggregate_resolver.py
# Description: Resolves the aggregate an event applies to - loads the
#              referenced aggregate, or builds a new unsaved one
# =============================================================================

from __future__ import annotations

import logging

from eventcore.common.base.base_aggregate import Aggregate
from eventcore.common.base.base_event import BaseEvent
from eventcore.common.exceptions.exceptions import AggregateNotFound
from eventcore.infra.event_store.aggregate_binding import binding_of
from eventcore.infra.event_store.record_store import RecordTransaction

log = logging.getLogger("eventcore.event_store.aggregate_resolver")


class AggregateResolver:
    """
    Finds or builds the aggregate targeted by an event.

    - ``aggregate_ref`` set: load the bound aggregate type by that id
    - ``aggregate_ref`` absent: construct a new aggregate with no identity

    The result is attached to the event for the duration of apply; the
    resolver itself never writes.
    """

    async def resolve(self, tx: RecordTransaction, event: BaseEvent) -> Aggregate:
        binding = binding_of(event)
        aggregate_type = binding.aggregate_type

        if event.aggregate_ref is not None:
            aggregate = await tx.fetch_aggregate(aggregate_type, event.aggregate_ref)
            if aggregate is None:
                raise AggregateNotFound(
                    f"{aggregate_type.__name__} {event.aggregate_ref} not found",
                    event_type=event.event_type,
                    aggregate_ref=event.aggregate_ref,
                )
            log.debug(f"Resolved {aggregate_type.__name__}:{aggregate.id} for {event.event_type}")
        else:
            aggregate = aggregate_type()
            log.debug(f"Built new {aggregate_type.__name__} for {event.event_type}")

        event.attach_aggregate(aggregate)
        return aggregate
