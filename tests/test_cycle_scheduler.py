import asyncio
import json
import unittest
from unittest.mock import MagicMock

from contracts.errors import ProbeNetworkError
from contracts.probe_outcome import SourceKind
from contracts.resolved_status import PriorityTier, StatusTier
from core.baseline_tracker import BaselineTracker
from core.cycle_scheduler import CycleScheduler
from core.live_fanout import LiveFanout
from core.snapshot_store import SnapshotStore
from core.source_resolver import SourceResolver
from fakes import FakeProbe, RecordingSubscriber, direct_failed, direct_ok, make_institution


def build_scheduler(institutions, direct, **kwargs):
    resolver = SourceResolver(
        direct, slow_latency_ms=2000, critical_latency_ms=5000, institution_deadline=30
    )
    kwargs.setdefault("interval", 60)
    kwargs.setdefault("max_concurrent", 4)
    return CycleScheduler(
        institutions,
        resolver,
        BaselineTracker(),
        SnapshotStore(),
        **kwargs,
    )


class TestCycleScheduler(unittest.IsolatedAsyncioTestCase):
    async def test_healthy_first_probe(self):
        bank = make_institution("bank", baseline=500)
        direct = FakeProbe(SourceKind.DIRECT, {bank.urls[0]: direct_ok(bank.urls[0], 520)})
        scheduler = build_scheduler([bank], direct)

        snapshot = await scheduler.run_cycle()

        result = snapshot.institutions[0]
        self.assertEqual(result.status, StatusTier.OK)
        self.assertLessEqual(result.severity.score, 10)
        self.assertAlmostEqual(result.ratio, 1.02, places=2)
        self.assertEqual(result.priority.tier, PriorityTier.P4_INFO)
        self.assertEqual(scheduler.baseline_tracker.history("bank"), [520])
        self.assertIs(scheduler.snapshot_store.current, snapshot)

    async def test_server_error_after_slow_response(self):
        bank = make_institution("bank", baseline=500)
        url = bank.urls[0]
        direct = FakeProbe(SourceKind.DIRECT, {url: direct_failed(url, 6000, 503)})
        scheduler = build_scheduler([bank], direct)

        result = (await scheduler.run_cycle()).institutions[0]

        self.assertEqual(result.status, StatusTier.CRITICAL)
        self.assertGreaterEqual(result.severity.score, 70)
        self.assertLessEqual(result.severity.score, 100)
        self.assertEqual(result.priority.tier, PriorityTier.P1_CRITICAL)
        self.assertEqual(scheduler.baseline_tracker.history("bank"), [])

    async def test_isolated_slow_institution(self):
        institutions = [make_institution(f"ok{i}", baseline=500) for i in range(9)]
        slow = make_institution("slow", baseline=2000)
        institutions.append(slow)
        results = {i.urls[0]: direct_ok(i.urls[0], 300) for i in institutions[:9]}
        results[slow.urls[0]] = direct_ok(slow.urls[0], 2500)
        scheduler = build_scheduler(institutions, FakeProbe(SourceKind.DIRECT, results))

        snapshot = await scheduler.run_cycle()

        by_id = {r.institution_id: r for r in snapshot.institutions}
        self.assertEqual(by_id["slow"].status, StatusTier.SLOW)
        self.assertIn("isolated problem", by_id["slow"].severity.factors)
        self.assertEqual(by_id["slow"].severity.score, 10 + 15)
        self.assertEqual(snapshot.summary.ok, 9)
        self.assertEqual(snapshot.summary.slow, 1)
        self.assertEqual(snapshot.summary.total, 10)

    async def test_exhausted_institution_is_error(self):
        bank = make_institution("bank", urls=["https://a", "https://b"])
        direct = FakeProbe(
            SourceKind.DIRECT,
            {"https://a": ProbeNetworkError("https://a"), "https://b": ProbeNetworkError("https://b")},
        )
        result = (await build_scheduler([bank], direct).run_cycle()).institutions[0]
        self.assertEqual(result.status, StatusTier.ERROR)
        self.assertIsNone(result.latency_ms)
        self.assertGreaterEqual(result.severity.score, 45)
        self.assertEqual(result.priority.tier, PriorityTier.P1_CRITICAL)

    async def test_one_failing_institution_does_not_break_cycle(self):
        good = make_institution("good")
        bad = make_institution("bad")
        direct = FakeProbe(
            SourceKind.DIRECT,
            {good.urls[0]: direct_ok(good.urls[0], 200), bad.urls[0]: RuntimeError("boom")},
        )
        snapshot = await build_scheduler([good, bad], direct).run_cycle()
        by_id = {r.institution_id: r for r in snapshot.institutions}
        self.assertEqual(len(snapshot.institutions), 2)
        self.assertEqual(by_id["good"].status, StatusTier.OK)
        self.assertEqual(by_id["bad"].status, StatusTier.ERROR)
        self.assertIsNotNone(by_id["bad"].severity)

    async def test_no_overlapping_cycles(self):
        bank = make_institution("bank")
        direct = FakeProbe(SourceKind.DIRECT, {bank.urls[0]: direct_ok(bank.urls[0], 200)}, delay=0.05)
        scheduler = build_scheduler([bank], direct)
        first = asyncio.create_task(scheduler.run_cycle())
        await asyncio.sleep(0.01)
        self.assertTrue(scheduler.cycle_in_progress)
        self.assertIsNone(await scheduler.run_cycle())
        snapshot = await first
        self.assertEqual(snapshot.cycle, 1)
        self.assertFalse(scheduler.cycle_in_progress)

    async def test_bounded_fan_out(self):
        institutions = [make_institution(f"b{i}") for i in range(6)]
        results = {i.urls[0]: direct_ok(i.urls[0], 100) for i in institutions}
        direct = FakeProbe(SourceKind.DIRECT, results, delay=0.02)
        await build_scheduler(institutions, direct, max_concurrent=2).run_cycle()
        self.assertLessEqual(direct.max_in_flight, 2)
        self.assertEqual(len(direct.calls), 6)

    async def test_loop_skips_ticks_while_cycle_runs(self):
        bank = make_institution("bank")
        direct = FakeProbe(SourceKind.DIRECT, {bank.urls[0]: direct_ok(bank.urls[0], 200)}, delay=0.12)
        scheduler = build_scheduler([bank], direct, interval=0.05)
        await scheduler.start()
        await asyncio.sleep(0.3)
        await scheduler.stop()
        self.assertGreaterEqual(scheduler.skipped_ticks, 1)
        self.assertEqual(direct.max_in_flight, 1)
        self.assertIsNotNone(scheduler.snapshot_store.current)

    async def test_sink_failure_does_not_abort_cycle(self):
        bank = make_institution("bank")
        sink = MagicMock()
        sink.write.side_effect = OSError("disk full")
        direct = FakeProbe(SourceKind.DIRECT, {bank.urls[0]: direct_ok(bank.urls[0], 200)})
        scheduler = build_scheduler([bank], direct, sink=sink)
        snapshot = await scheduler.run_cycle()
        self.assertIsNotNone(snapshot)
        sink.write.assert_called_once_with(snapshot)

    async def test_subscriber_mid_cycle_sees_previous_then_new(self):
        bank = make_institution("bank")
        gate = asyncio.Event()

        async def gated():
            await gate.wait()
            return direct_ok(bank.urls[0], 200)

        direct = FakeProbe(SourceKind.DIRECT, {bank.urls[0]: direct_ok(bank.urls[0], 200)})
        fanout = LiveFanout(ping_interval=60)
        scheduler = build_scheduler([bank], direct, fanout=fanout)
        await scheduler.run_cycle()

        direct.results[bank.urls[0]] = gated
        in_flight = asyncio.create_task(scheduler.run_cycle())
        await asyncio.sleep(0.01)
        subscriber = RecordingSubscriber()
        await fanout.connect(subscriber)
        self.assertEqual(len(subscriber.messages), 1)
        self.assertEqual(json.loads(subscriber.messages[0])["data"]["cycle"], 1)

        gate.set()
        await in_flight
        self.assertEqual(len(subscriber.messages), 2)
        latest = json.loads(subscriber.messages[1])
        self.assertEqual(latest["event"], "update")
        self.assertEqual(latest["data"]["cycle"], 2)
        self.assertEqual(len(latest["data"]["institutions"]), 1)


if __name__ == "__main__":
    unittest.main()
