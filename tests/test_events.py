"""
Tests for the in-process event publisher.
"""

from app.services.events import EVENT_SCHEMAS, AcademyEvents, EventPublisher


class TestEventPublisher:
    """Test EventPublisher."""

    def test_every_event_has_a_schema(self):
        assert set(EVENT_SCHEMAS) == set(AcademyEvents)

    def test_publish_and_subscribe(self):
        publisher = EventPublisher()
        received = []
        publisher.subscribe(AcademyEvents.MILESTONE_UNLOCKED, received.append)

        ok = publisher.publish(AcademyEvents.MILESTONE_UNLOCKED, {
            "user_id": "U1", "module_id": "core-balance-foundation", "name": "plank-hold-mastery",
        })

        assert ok is True
        assert len(received) == 1
        assert received[0]["event_type"] == "milestone.unlocked"
        assert received[0]["data"]["name"] == "plank-hold-mastery"

    def test_missing_fields_rejected(self):
        publisher = EventPublisher()
        assert publisher.publish(AcademyEvents.SESSION_STARTED, {"user_id": "U1"}) is False
        assert len(publisher.events) == 0

    def test_failing_subscriber_does_not_block_others(self):
        publisher = EventPublisher()
        received = []

        def broken(event):
            raise RuntimeError("subscriber down")

        publisher.subscribe(AcademyEvents.SESSION_ABANDONED, broken)
        publisher.subscribe(AcademyEvents.SESSION_ABANDONED, received.append)
        publisher.publish(AcademyEvents.SESSION_ABANDONED, {
            "session_id": "s1", "user_id": "U1", "module_id": "m1",
        })
        assert len(received) == 1

    def test_history_is_bounded(self):
        publisher = EventPublisher(max_events=2)
        for i in range(3):
            publisher.publish(AcademyEvents.SESSION_STARTED, {
                "session_id": f"s{i}", "user_id": "U1", "module_id": "m1",
            })
        assert [e["data"]["session_id"] for e in publisher.events] == ["s1", "s2"]
        assert len(publisher.of_type(AcademyEvents.SESSION_STARTED)) == 2
