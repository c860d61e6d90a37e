"""
Unit of Work Pattern

Manages database transactions and ensures that domain events
are published only after successful transaction commit.
"""

from abc import ABC, abstractmethod
from typing import List
import logging

from django.db import transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """
    Abstract Unit of Work pattern

    Collects events from the aggregates touched inside the ``with``
    block and hands them to the message bus once the work is committed.
    Nothing is published when the block raises.
    """

    def __init__(self, bus=None):
        self._events: List[DomainEvent] = []
        self._bus = bus

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    @property
    def bus(self):
        if self._bus is None:
            from shared.application.message_bus import message_bus
            self._bus = message_bus
        return self._bus

    @abstractmethod
    def commit(self):
        """Commit the transaction"""
        pass

    def rollback(self):
        """Rollback changes and discard events"""
        if self._events:
            logger.warning(f"Rolling back unit of work, discarding {len(self._events)} events")
        self._events.clear()

    def collect_events(self, aggregate):
        """
        Collect events from aggregate root

        Extracts all domain events from the aggregate and
        clears them from the aggregate.
        """
        new_events = aggregate.events
        if new_events:
            self._events.extend(new_events)
            aggregate.clear_events()
            logger.debug(
                f"Collected {len(new_events)} events from "
                f"{aggregate.__class__.__name__} (ID: {aggregate.id})"
            )

    def _take_events(self) -> List[DomainEvent]:
        events = self._events.copy()
        self._events.clear()
        return events

    def _publish_events(self, events: List[DomainEvent]):
        logger.info(f"Publishing {len(events)} domain events after commit")
        try:
            self.bus.publish_events(events)
        except Exception as e:
            # The data is committed; a publishing failure must not undo it
            logger.error(f"Error publishing events: {e}", exc_info=True)


class DjangoUnitOfWork(AbstractUnitOfWork):
    """
    Django implementation of Unit of Work

    Usage:
        with DjangoUnitOfWork() as uow:
            booking = booking_repo.get_by_id(booking_id, lock=True)
            updated = apply_transition(booking, action, actor)
            booking_repo.save(updated, expected_status=booking.status)
            uow.collect_events(updated)
        # Events are published after commit
    """

    def __init__(self, bus=None):
        super().__init__(bus)
        self._transaction = None

    def __enter__(self):
        """Start database transaction"""
        self._transaction = transaction.atomic()
        self._transaction.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Complete or rollback transaction"""
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            if self._transaction:
                self._transaction.__exit__(exc_type, exc_val, exc_tb)

    def commit(self):
        """
        Schedule event publishing

        Events are published using Django's transaction.on_commit()
        to ensure they're only sent after database commit succeeds.
        """
        events = self._take_events()
        logger.debug(f"Committing transaction with {len(events)} events")
        if events:
            transaction.on_commit(lambda: self._publish_events(events))


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """
    Unit of work for in-memory repositories

    There is no transaction to wait for, so events are published as soon
    as the block completes. ``committed`` and ``published`` let tests see
    what happened.
    """

    def __init__(self, bus=None):
        super().__init__(bus)
        self.committed = False
        self.published: List[DomainEvent] = []

    def commit(self):
        events = self._take_events()
        self.committed = True
        self.published.extend(events)
        if events:
            self._publish_events(events)
