import asyncio
import json
import unittest
from unittest.mock import patch

from contracts.snapshot import Snapshot, SnapshotSummary
from core import live_fanout
from core.live_fanout import LiveFanout, serialize_update
from fakes import RecordingSubscriber, make_status


def make_snapshot(cycle=1):
    results = [make_status("bank")]
    return Snapshot(
        cycle=cycle,
        institutions=results,
        cycle_duration_seconds=1.5,
        summary=SnapshotSummary.from_results(results),
    )


class GatedSubscriber(RecordingSubscriber):
    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def send(self, message):
        await self.gate.wait()
        await super().send(message)


class TestLiveFanout(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.fanout = LiveFanout(ping_interval=0.05, send_timeout=0.5)

    async def test_connect_before_first_publish_gets_nothing(self):
        subscriber = RecordingSubscriber()
        self.assertIsNone(await self.fanout.connect(subscriber))
        self.assertEqual(subscriber.messages, [])
        self.assertEqual(await self.fanout.subscriber_count(), 1)

    async def test_publish_serializes_once_and_sends_same_text(self):
        subscribers = [RecordingSubscriber() for _ in range(3)]
        for s in subscribers:
            await self.fanout.connect(s)
        with patch.object(
            live_fanout, "serialize_update", wraps=live_fanout.serialize_update
        ) as serialize:
            delivered = await self.fanout.publish(make_snapshot())
        serialize.assert_called_once()
        self.assertEqual(delivered, 3)
        messages = [s.messages[0] for s in subscribers]
        self.assertTrue(all(m is messages[0] for m in messages))
        payload = json.loads(messages[0])
        self.assertEqual(payload["event"], "update")
        self.assertEqual(payload["data"]["institutions"][0]["institution_id"], "bank")

    async def test_late_subscriber_gets_latest_immediately(self):
        await self.fanout.publish(make_snapshot(cycle=1))
        await self.fanout.publish(make_snapshot(cycle=2))
        subscriber = RecordingSubscriber()
        message = await self.fanout.connect(subscriber)
        self.assertEqual(subscriber.messages, [message])
        self.assertEqual(json.loads(message)["data"]["cycle"], 2)

    async def test_failed_subscriber_is_dropped(self):
        good, bad = RecordingSubscriber(), RecordingSubscriber(fail=True)
        await self.fanout.connect(good)
        await self.fanout.connect(bad)
        delivered = await self.fanout.publish(make_snapshot())
        self.assertEqual(delivered, 1)
        self.assertEqual(await self.fanout.subscriber_count(), 1)

    async def test_disconnect(self):
        subscriber = RecordingSubscriber()
        await self.fanout.connect(subscriber)
        self.assertTrue(await self.fanout.disconnect(subscriber))
        self.assertFalse(await self.fanout.disconnect(subscriber))
        self.assertEqual(await self.fanout.subscriber_count(), 0)

    async def test_slow_new_subscriber_does_not_hold_up_others(self):
        await self.fanout.publish(make_snapshot(cycle=1))
        slow = GatedSubscriber()
        connecting = asyncio.create_task(self.fanout.connect(slow))
        await asyncio.sleep(0.01)

        other = RecordingSubscriber()
        await asyncio.wait_for(self.fanout.connect(other), timeout=0.2)
        publishing = asyncio.create_task(self.fanout.publish(make_snapshot(cycle=2)))
        await asyncio.sleep(0.01)
        self.assertEqual([json.loads(m)["data"]["cycle"] for m in other.messages], [1, 2])
        self.assertEqual(slow.messages, [])

        slow.gate.set()
        await connecting
        self.assertEqual(await publishing, 2)
        self.assertEqual([json.loads(m)["data"]["cycle"] for m in slow.messages], [1, 2])

    async def test_stale_update_is_not_resent(self):
        subscriber = RecordingSubscriber()
        await self.fanout.connect(subscriber)
        await self.fanout.publish(make_snapshot(cycle=1))
        await self.fanout.publish(make_snapshot(cycle=2))
        stale = serialize_update(make_snapshot(cycle=1))
        self.assertTrue(await self.fanout._send(subscriber, stale, 1))
        self.assertEqual(len(subscriber.messages), 2)

    async def test_liveness_loop_pings_and_drops_dead(self):
        alive, dead = RecordingSubscriber(), RecordingSubscriber()
        await self.fanout.connect(alive)
        await self.fanout.connect(dead)
        dead.fail = True
        await self.fanout.start()
        await asyncio.sleep(0.12)
        await self.fanout.stop()
        self.assertIn('{"event":"ping"}', alive.messages)
        self.assertEqual(await self.fanout.subscriber_count(), 1)


if __name__ == "__main__":
    unittest.main()
