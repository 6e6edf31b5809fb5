"""Tests for the in-process change feed."""

from scheduling.realtime.feed import ChangeEvent, ChangeFeed, Collection, Operation


def _event(collection: Collection, record_id: str = "1") -> ChangeEvent:
    return ChangeEvent(collection=collection, operation=Operation.INSERT, record_id=record_id)


class TestChangeFeed:
    def test_fans_out_to_every_subscriber(self):
        feed = ChangeFeed()
        first: list[ChangeEvent] = []
        second: list[ChangeEvent] = []
        feed.subscribe(first.append)
        feed.subscribe(second.append)

        feed.publish(_event(Collection.DELIVERIES))

        assert len(first) == len(second) == 1

    def test_collection_filter(self):
        feed = ChangeFeed()
        received: list[ChangeEvent] = []
        feed.subscribe(received.append, {Collection.MESSAGES})

        feed.publish(_event(Collection.DELIVERIES))
        feed.publish(_event(Collection.MESSAGES, "7"))

        assert [e.record_id for e in received] == ["7"]

    def test_unsubscribe(self):
        feed = ChangeFeed()
        received: list[ChangeEvent] = []
        token = feed.subscribe(received.append)
        feed.unsubscribe(token)
        feed.unsubscribe(token)

        feed.publish(_event(Collection.TIMELINE))

        assert received == []

    def test_failing_subscriber_does_not_block_others(self):
        feed = ChangeFeed()
        received: list[ChangeEvent] = []

        def broken(event: ChangeEvent) -> None:
            raise RuntimeError("boom")

        feed.subscribe(broken)
        feed.subscribe(received.append)

        feed.publish(_event(Collection.NOTIFICATIONS))

        assert len(received) == 1

    def test_events_carry_identifiers_only(self):
        event = ChangeEvent(
            collection=Collection.DELIVERIES,
            operation=Operation.UPDATE,
            record_id="d-1",
            delivery_id="d-1",
        )
        assert set(event.model_dump()) == {
            "collection",
            "operation",
            "record_id",
            "delivery_id",
            "user_id",
        }
