from sshfleet.core.events import EventBus


def test_publish_reaches_subscribers_in_order():
    bus = EventBus()
    seen = []
    bus.subscribe(lambda e: seen.append(("first", e.name)))
    bus.subscribe(lambda e: seen.append(("second", e.name)))

    event = bus.publish("server.added", server="web1")

    assert seen == [("first", "server.added"), ("second", "server.added")]
    assert event.metadata == {"server": "web1"}


def test_unsubscribe():
    bus = EventBus()
    seen = []
    unsubscribe = bus.subscribe(seen.append)

    unsubscribe()
    unsubscribe()
    bus.publish("run.finished")

    assert seen == []


def test_failing_subscriber_does_not_break_publisher():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("subscriber bug")

    bus.subscribe(broken)
    bus.subscribe(seen.append)

    bus.publish("server.removed")

    assert [e.name for e in seen] == ["server.removed"]


def test_recent_events_are_bounded_and_filterable():
    bus = EventBus(keep=3)
    for name in ("a", "b", "a", "c"):
        bus.publish(name)

    assert [e.name for e in bus.get_events()] == ["b", "a", "c"]
    assert len(bus.get_events("a")) == 1
    bus.clear()
    assert bus.get_events() == []
