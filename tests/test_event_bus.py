"""
Unit tests for the async EventBus.
"""

import asyncio
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from voicebot.event_bus import Event, EventBus, EventType, state_event, turn_event


def run(coro):
    """Helper to run a coroutine synchronously."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class TestEventBus:
    """Tests for EventBus publish/subscribe mechanism."""

    def test_single_subscriber(self):
        """A single subscriber should receive published events."""
        async def _test():
            bus = EventBus()
            received = []

            async def handler(event: Event):
                received.append(event)

            bus.subscribe(EventType.STATE_CHANGED, handler)
            await bus.start()

            bus.publish_nowait(state_event("listening"))

            # Give dispatcher time to process
            await asyncio.sleep(0.1)
            await bus.stop()

            assert len(received) == 1
            assert received[0].data["state"] == "listening"

        run(_test())

    def test_publish_nowait(self):
        """Synchronous publishing reaches async subscribers."""
        async def _test():
            bus = EventBus()
            received = []

            async def handler(event: Event):
                received.append(event.data["state"])

            bus.subscribe(EventType.STATE_CHANGED, handler)
            await bus.start()
            bus.publish_nowait(state_event("idle"))
            await asyncio.sleep(0.1)
            await bus.stop()

            assert received == ["idle"]

        run(_test())

    def test_event_type_filtering(self):
        """Subscribers should only receive events of their subscribed type."""
        async def _test():
            bus = EventBus()
            states = []
            turns = []

            async def state_handler(event: Event):
                states.append(event)

            async def turn_handler(event: Event):
                turns.append(event)

            bus.subscribe(EventType.STATE_CHANGED, state_handler)
            bus.subscribe(EventType.TURN_ADDED, turn_handler)
            await bus.start()

            bus.publish_nowait(state_event("processing"))
            bus.publish_nowait(turn_event("user", "what is React?"))
            await asyncio.sleep(0.1)
            await bus.stop()

            assert len(states) == 1
            assert len(turns) == 1
            assert turns[0].data == {"role": "user", "text": "what is React?"}

        run(_test())

    def test_multiple_events_in_order(self):
        """State changes should be delivered in publish order."""
        async def _test():
            bus = EventBus()
            received = []

            async def handler(event: Event):
                received.append(event.data["state"])

            bus.subscribe(EventType.STATE_CHANGED, handler)
            await bus.start()

            for state in ("listening", "processing", "speaking", "idle"):
                bus.publish_nowait(state_event(state))

            await asyncio.sleep(0.2)
            await bus.stop()

            assert received == ["listening", "processing", "speaking", "idle"]

        run(_test())

    def test_no_subscribers(self):
        """Publishing with no subscribers should not raise errors."""
        async def _test():
            bus = EventBus()
            await bus.start()
            bus.publish_nowait(turn_event("bot", "nobody listening"))
            await asyncio.sleep(0.05)
            await bus.stop()

        run(_test())

    def test_event_constructors(self):
        """Convenience event constructors should produce correct events."""
        e1 = state_event("idle", error="No speech detected.")
        assert e1.type == EventType.STATE_CHANGED
        assert e1.data == {"state": "idle", "error": "No speech detected."}
        assert e1.source == "session"

        e2 = turn_event("bot", "hi")
        assert e2.type == EventType.TURN_ADDED
        assert e2.data["role"] == "bot"

    def test_handler_exception_does_not_crash_bus(self):
        """A handler that raises should not prevent other handlers from running."""
        async def _test():
            bus = EventBus()
            received_good = []

            async def bad_handler(event: Event):
                raise ValueError("intentional error")

            async def good_handler(event: Event):
                received_good.append(event)

            bus.subscribe(EventType.TURN_ADDED, bad_handler)
            bus.subscribe(EventType.TURN_ADDED, good_handler)
            await bus.start()

            bus.publish_nowait(turn_event("user", "test error handling"))
            await asyncio.sleep(0.2)
            await bus.stop()

            assert len(received_good) == 1
            assert received_good[0].data["text"] == "test error handling"

        run(_test())

    def test_queue_full_drops_event(self):
        """When a subscriber queue is full, events should be dropped without error."""
        async def _test():
            bus = EventBus(maxsize=2)
            received = []

            async def slow_handler(event: Event):
                await asyncio.sleep(0.5)  # Deliberately slow
                received.append(event)

            bus.subscribe(EventType.STATE_CHANGED, slow_handler)
            await bus.start()

            for _ in range(5):
                bus.publish_nowait(state_event("listening"))

            await asyncio.sleep(1.0)
            await bus.stop()

            assert len(received) <= 2

        run(_test())

    def test_start_stop_lifecycle(self):
        """Bus should handle start/stop gracefully even with no subscribers."""
        async def _test():
            bus = EventBus()
            await bus.start()
            assert bus._running is True
            await bus.stop()
            assert bus._running is False

        run(_test())
