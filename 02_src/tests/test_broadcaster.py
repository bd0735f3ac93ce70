"""Tests for EventBroadcaster."""

import logging
import threading
from datetime import datetime, timezone

import pytest

from tol_core.broadcaster import EventBroadcaster, InvalidEventError
from tol_core.models import Event, EventKind, UserRole


def make_event(n: int = 0, kind: EventKind = EventKind.SYSTEM_NOTIFICATION) -> Event:
    return Event(kind=kind, id=f"evt_{n}", payload={"n": n})


class TestBroadcasterSubscribe:
    """Tests for subscribe / unsubscribe."""

    def test_subscribe_then_publish_invokes_once(self, broadcaster):
        """A freshly subscribed callback gets the next event exactly once."""
        calls = []
        broadcaster.subscribe("a", calls.append)

        event = broadcaster.publish(make_event(1))

        assert calls == [event]

    def test_unsubscribe_stops_delivery(self, broadcaster):
        calls = []
        broadcaster.subscribe("a", calls.append)
        broadcaster.unsubscribe("a")

        broadcaster.publish(make_event(1))

        assert calls == []

    def test_unsubscribe_unknown_is_noop(self, broadcaster):
        broadcaster.unsubscribe("missing")
        assert broadcaster.channel_count == 0

    def test_resubscribe_replaces_callback(self, broadcaster):
        """Same id twice: only the newest callback fires."""
        old_calls, new_calls = [], []
        broadcaster.subscribe("a", old_calls.append)
        broadcaster.subscribe("a", new_calls.append)

        broadcaster.publish(make_event(1))

        assert old_calls == []
        assert len(new_calls) == 1
        assert broadcaster.channel_count == 1

    def test_resubscribe_keeps_position(self, broadcaster):
        order = []
        broadcaster.subscribe("a", lambda e: order.append("a1"))
        broadcaster.subscribe("b", lambda e: order.append("b"))
        broadcaster.subscribe("a", lambda e: order.append("a2"))

        broadcaster.publish(make_event(1))

        assert order == ["a2", "b"]
        assert broadcaster.channels() == ["a", "b"]


class TestBroadcasterPublish:
    """Tests for publish()."""

    def test_publish_without_channels(self, broadcaster):
        """Zero channels is not an error; the event is still buffered."""
        event = broadcaster.publish(make_event(1))
        assert broadcaster.recent_events(10) == [event]

    def test_delivery_in_registration_order(self, broadcaster):
        order = []
        for name in ["first", "second", "third"]:
            broadcaster.subscribe(name, lambda e, name=name: order.append(name))

        broadcaster.publish(make_event(1))

        assert order == ["first", "second", "third"]

    def test_failing_callback_is_isolated(self, broadcaster, caplog):
        """A raising callback neither stops others nor reaches the publisher."""
        calls = []

        def failing(event):
            calls.append("failing")
            raise RuntimeError("boom")

        broadcaster.subscribe("bad", failing)
        broadcaster.subscribe("good", lambda e: calls.append("good"))

        with caplog.at_level(logging.ERROR):
            broadcaster.publish(make_event(1))

        assert calls == ["failing", "good"]
        assert "Delivery to channel bad failed" in caplog.text

    def test_fills_id_and_timestamp(self, broadcaster):
        before = datetime.now(timezone.utc)
        event = broadcaster.publish(Event(kind=EventKind.USER_LOGIN))
        after = datetime.now(timezone.utc)

        assert event.id.startswith("msg_")
        assert before <= event.occurred_at <= after

    def test_keeps_given_id_and_timestamp(self, broadcaster):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        event = broadcaster.publish(
            Event(kind=EventKind.USER_LOGIN, id="fixed", occurred_at=ts)
        )
        assert event.id == "fixed"
        assert event.occurred_at == ts

    def test_accepts_kind_as_string(self, broadcaster):
        event = broadcaster.publish(Event(kind="crm_update"))  # type: ignore[arg-type]
        assert event.kind is EventKind.CRM_UPDATE

    def test_normalizes_roles(self, broadcaster):
        event = broadcaster.publish(
            Event(
                kind=EventKind.SYSTEM_NOTIFICATION,
                origin_role="AGENT",  # type: ignore[arg-type]
                target_roles=["ADMIN"],  # type: ignore[arg-type]
            )
        )
        assert event.origin_role is UserRole.AGENT
        assert event.target_roles == (UserRole.ADMIN,)

    def test_unknown_kind_rejected(self, broadcaster):
        """Malformed events are neither buffered nor delivered."""
        calls = []
        broadcaster.subscribe("a", calls.append)

        with pytest.raises(InvalidEventError):
            broadcaster.publish(Event(kind="order_shipped"))  # type: ignore[arg-type]

        assert calls == []
        assert broadcaster.recent_events(10) == []

    def test_unknown_role_rejected(self, broadcaster):
        with pytest.raises(InvalidEventError):
            broadcaster.publish(
                Event(kind=EventKind.SYSTEM_NOTIFICATION, target_roles=("OWNER",))  # type: ignore[arg-type]
            )

    def test_callback_may_unsubscribe_itself(self, broadcaster):
        """Callbacks run outside the lock, so re-entrant calls don't deadlock."""
        calls = []

        def once(event):
            calls.append(event.id)
            broadcaster.unsubscribe("once")

        broadcaster.subscribe("once", once)
        broadcaster.publish(make_event(1))
        broadcaster.publish(make_event(2))

        assert calls == ["evt_1"]

    def test_subscribe_during_delivery_not_in_current_round(self, broadcaster):
        late_calls = []

        def registrar(event):
            broadcaster.subscribe("late", late_calls.append)

        broadcaster.subscribe("registrar", registrar)
        broadcaster.publish(make_event(1))
        assert late_calls == []

        broadcaster.publish(make_event(2))
        assert [e.id for e in late_calls] == ["evt_2"]


class TestBroadcasterHistory:
    """Tests for the sliding-window history."""

    def test_recent_events_chronological(self, broadcaster):
        for n in range(5):
            broadcaster.publish(make_event(n))

        assert [e.id for e in broadcaster.recent_events(3)] == ["evt_2", "evt_3", "evt_4"]

    def test_recent_events_limit_clamps(self, broadcaster):
        for n in range(3):
            broadcaster.publish(make_event(n))

        assert len(broadcaster.recent_events(50)) == 3

    def test_recent_events_non_positive_limit(self, broadcaster):
        broadcaster.publish(make_event(1))
        assert broadcaster.recent_events(0) == []
        assert broadcaster.recent_events(-5) == []

    def test_recent_events_default_limit(self, broadcaster):
        for n in range(60):
            broadcaster.publish(make_event(n))

        recent = broadcaster.recent_events()
        assert len(recent) == 50
        assert recent[0].id == "evt_10"

    @pytest.mark.parametrize("total", [1, 999, 1000, 1001, 2500])
    def test_window_holds_last_events(self, broadcaster, total):
        """The buffer is capped at 1000 and keeps the newest, oldest-first."""
        for n in range(total):
            broadcaster.publish(make_event(n))

        held = broadcaster.recent_events(5000)
        expected = list(range(max(0, total - 1000), total))
        assert len(held) == min(total, 1000)
        assert [e.payload["n"] for e in held] == expected

    def test_recent_events_matches_min_rule(self, broadcaster):
        published = [broadcaster.publish(make_event(n)) for n in range(20)]
        for n in (1, 7, 20, 40):
            assert broadcaster.recent_events(n) == published[-min(n, 20):]

    def test_custom_history_limit(self):
        small = EventBroadcaster(history_limit=3)
        for n in range(5):
            small.publish(make_event(n))

        assert [e.id for e in small.recent_events(10)] == ["evt_2", "evt_3", "evt_4"]

    def test_invalid_history_limit(self):
        with pytest.raises(ValueError):
            EventBroadcaster(history_limit=0)

    def test_recent_events_has_no_side_effects(self, broadcaster):
        broadcaster.publish(make_event(1))
        broadcaster.recent_events(1)
        assert len(broadcaster.recent_events(10)) == 1

    def test_clear_keeps_channels(self, broadcaster):
        calls = []
        broadcaster.subscribe("a", calls.append)
        broadcaster.publish(make_event(1))

        broadcaster.clear()

        assert broadcaster.recent_events(10) == []
        assert broadcaster.channels() == ["a"]


class TestBroadcasterConcurrency:
    """Concurrent publishers and subscribers."""

    def test_concurrent_publishes_keep_window_consistent(self):
        broadcaster = EventBroadcaster(history_limit=100)
        received = []
        lock = threading.Lock()

        def collect(event):
            with lock:
                received.append(event.id)

        broadcaster.subscribe("collector", collect)

        def worker(offset):
            for n in range(200):
                broadcaster.publish(make_event(offset + n))

        threads = [threading.Thread(target=worker, args=(i * 1000,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(received) == 1600
        assert len(set(received)) == 1600
        assert len(broadcaster.recent_events(1000)) == 100

    def test_subscribe_churn_during_publish(self):
        broadcaster = EventBroadcaster()
        stop = threading.Event()

        def churn():
            n = 0
            while not stop.is_set():
                broadcaster.subscribe(f"c{n % 10}", lambda e: None)
                broadcaster.unsubscribe(f"c{(n + 5) % 10}")
                n += 1

        thread = threading.Thread(target=churn)
        thread.start()
        try:
            for n in range(500):
                broadcaster.publish(make_event(n))
        finally:
            stop.set()
            thread.join()

        assert broadcaster.channel_count <= 10
        assert len(broadcaster.recent_events(1000)) == 500
