"""
事件总线单元测试
"""
import pytest
from datetime import datetime

from clinic_core.engine import EventBus, Event


class TestEventBus:
    """事件总线测试"""

    @pytest.fixture
    def event_bus(self):
        return EventBus()

    @pytest.fixture
    def sample_event(self):
        return Event(
            event_type="booking.confirmed",
            timestamp=datetime.now(),
            data={"booking_id": 1},
            source="test"
        )

    def test_subscribe_and_publish(self, event_bus, sample_event):
        received = []
        event_bus.subscribe("booking.confirmed", received.append)

        result = event_bus.publish(sample_event)

        assert received == [sample_event]
        assert result.subscriber_count == 1
        assert result.success_count == 1

    def test_handler_error_isolated(self, event_bus, sample_event):
        received = []

        def broken(event):
            raise RuntimeError("smtp down")

        event_bus.subscribe("booking.confirmed", broken)
        event_bus.subscribe("booking.confirmed", received.append)

        result = event_bus.publish(sample_event)

        assert result.failure_count == 1
        assert result.failed_handlers[0].endswith("broken")
        assert result.success_count == 1
        assert len(received) == 1

    def test_unsubscribe(self, event_bus, sample_event):
        received = []
        event_bus.subscribe("booking.confirmed", received.append)
        event_bus.unsubscribe("booking.confirmed", received.append)
        event_bus.publish(sample_event)
        assert received == []

    def test_history_newest_first(self, event_bus):
        for i in range(3):
            event_bus.publish(Event(event_type="booking.created", timestamp=datetime.now(), data={"i": i}))
        history = event_bus.get_history("booking.created")
        assert [e.data["i"] for e in history] == [2, 1, 0]

    def test_instances_are_independent(self, sample_event):
        a, b = EventBus(), EventBus()
        received = []
        a.subscribe("booking.confirmed", received.append)
        b.publish(sample_event)
        assert received == []
