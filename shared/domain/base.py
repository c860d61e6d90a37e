"""
Base Domain Classes

Building blocks shared by every bounded context:
- Entity: Objects with unique identity
- ValueObject: Immutable objects compared by value
- Aggregate: Consistency boundaries that collect domain events
- DomainEvent: Something that happened, published after commit

All dataclasses here are keyword-only so that subclasses may declare
required fields after the inherited defaulted ones.
"""

from abc import ABC
from dataclasses import dataclass, field, fields
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, List
from uuid import UUID, uuid4


def utcnow() -> datetime:
    """Timezone-aware current time used for every domain timestamp."""
    return datetime.now(timezone.utc)


@dataclass(kw_only=True)
class Entity(ABC):
    """
    Base class for all entities

    Entities have unique identity and are mutable.
    Two entities are equal if their IDs are equal.
    Subclasses must be declared with ``eq=False`` to keep identity equality.
    """
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __eq__(self, other):
        if not isinstance(other, self.__class__):
            return False
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def touch(self):
        self.updated_at = utcnow()


@dataclass(frozen=True)
class ValueObject(ABC):
    """
    Base class for value objects

    Value objects are immutable and have no identity.
    Two value objects are equal if all their attributes are equal.
    """
    pass


@dataclass(kw_only=True, eq=False)
class Aggregate(Entity):
    """
    Base class for aggregate roots

    Aggregates collect domain events that the unit of work publishes
    once the surrounding transaction has committed.
    """
    _events: List['DomainEvent'] = field(default_factory=list, repr=False, init=False)

    def add_event(self, event: 'DomainEvent'):
        self._events.append(event)

    def clear_events(self):
        self._events.clear()

    @property
    def events(self) -> List['DomainEvent']:
        """Copy of the collected events"""
        return self._events.copy()


def _serialize(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if hasattr(value, 'amount') and hasattr(value, 'currency'):
        return {'amount': str(value.amount), 'currency': value.currency}
    return value


@dataclass(kw_only=True)
class DomainEvent:
    """
    Base class for domain events

    Events cross process boundaries (Celery), so ``to_dict`` flattens
    every payload field into JSON-friendly primitives.
    """
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=utcnow)
    aggregate_id: UUID | None = None

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict:
        payload = {
            f.name: _serialize(getattr(self, f.name))
            for f in fields(self)
            if f.name not in ('event_id', 'occurred_at', 'aggregate_id')
        }
        return {
            'event_id': str(self.event_id),
            'event_type': self.event_type,
            'occurred_at': self.occurred_at.isoformat(),
            'aggregate_id': str(self.aggregate_id) if self.aggregate_id else None,
            'payload': payload,
        }
