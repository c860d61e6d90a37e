from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

import pytest

from shared.application.message_bus import MessageBus
from shared.application.uow import InMemoryUnitOfWork
from shared.domain.base import Aggregate, DomainEvent
from shared.domain.value_objects import Money


@dataclass(kw_only=True)
class ThingHappened(DomainEvent):
    name: str
    price: Money | None = None


@dataclass(kw_only=True, eq=False)
class Thing(Aggregate):
    name: str = "crate"

    def rename(self, name):
        self.name = name
        self.add_event(ThingHappened(aggregate_id=self.id, name=name))


def test_handlers_run_in_order_and_failures_are_isolated():
    bus = MessageBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.register_event_handler(ThingHappened, broken)
    bus.register_event_handler(ThingHappened, lambda event: seen.append(event.name))

    bus.publish_events([ThingHappened(name="first"), ThingHappened(name="second")])

    assert seen == ["first", "second"]


def test_registration_is_idempotent():
    bus = MessageBus()

    @bus.subscribe(ThingHappened)
    def handler(event):
        pass

    bus.register_event_handler(ThingHappened, handler)

    assert bus.handlers_for(ThingHappened) == [handler]


def test_unit_of_work_publishes_collected_events_on_commit():
    bus = MessageBus()
    seen = []
    bus.register_event_handler(ThingHappened, seen.append)
    thing = Thing()

    with InMemoryUnitOfWork(bus) as uow:
        thing.rename("pallet")
        uow.collect_events(thing)
        assert seen == []

    assert uow.committed
    assert [event.name for event in seen] == ["pallet"]
    assert thing.events == []


def test_unit_of_work_discards_events_when_the_block_fails():
    bus = MessageBus()
    seen = []
    bus.register_event_handler(ThingHappened, seen.append)
    thing = Thing()

    with pytest.raises(LookupError):
        with InMemoryUnitOfWork(bus) as uow:
            thing.rename("pallet")
            uow.collect_events(thing)
            raise LookupError("missing")

    assert not uow.committed
    assert seen == []


def test_event_to_dict_flattens_payload():
    aggregate_id = uuid4()
    event = ThingHappened(aggregate_id=aggregate_id, name="crate", price=Money(Decimal("9.5")))

    data = event.to_dict()

    assert data["event_type"] == "ThingHappened"
    assert data["aggregate_id"] == str(aggregate_id)
    assert data["payload"] == {"name": "crate", "price": {"amount": "9.50", "currency": "USD"}}
