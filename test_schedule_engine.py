import asyncio
import json
import os
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

from managers.schedule_engine import ScheduleEngine
from managers.schedule_store import ScheduleEntry, ScheduleStore
from managers.timer_registry import TimerRegistry, is_valid_cron
from spotify_api.errors import SpotifyAPIError

# 2024-03-04 07:00 in Sao Paulo (UTC-3, no DST)
START = datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)
SEVEN_THIRTY = datetime(2024, 3, 4, 10, 30, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingClient:
    """Stands in for SpotifyClient; records player calls in order."""

    def __init__(self, fail_with: Exception = None):
        self.calls = []
        self.fail_with = fail_with

    async def set_shuffle(self, state, *, device_id=None):
        self.calls.append(("shuffle", state, device_id))
        if self.fail_with is not None:
            raise self.fail_with

    async def start_playback(self, payload=None, *, device_id=None):
        self.calls.append(("play", payload, device_id))


class EngineTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = ScheduleStore(os.path.join(self._tmp.name, "schedule.json"))
        self.clock = FakeClock()
        self.registry = TimerRegistry(self.clock)
        self.client = RecordingClient()
        self.engine = ScheduleEngine(self.store, self.client, timezone="America/Sao_Paulo", registry=self.registry)

    def tearDown(self):
        self._tmp.cleanup()

    def write_schedule(self, items, **top_level):
        self.store.save_items(items)
        if top_level:
            raw = self.store.load_raw()
            raw.update(top_level)
            with open(self.store.path, "w", encoding="utf-8") as f:
                json.dump(raw, f)

    async def fire_at(self, when: datetime):
        self.clock.now = when
        tasks = self.registry.run_pending()
        if tasks:
            await asyncio.gather(*tasks)
        return tasks


class TestCompile(EngineTestCase):
    def test_injected_empty_registry_is_kept(self):
        # an empty TimerRegistry is falsy; it must still be used
        self.assertEqual(len(self.registry), 0)
        self.assertIs(self.engine.registry, self.registry)

    def test_default_registry_uses_tick_seconds(self):
        engine = ScheduleEngine(self.store, self.client, tick_seconds=5.0)
        self.assertEqual(engine.registry.tick_seconds, 5.0)

    def test_invalid_and_disabled_entries_are_skipped(self):
        self.write_schedule(
            [
                {"id": "ok-1", "cron": "30 7 * * *", "uri": "spotify:playlist:X"},
                {"id": "ok-2", "cron": "0 8 * * 1-5", "uri": "https://open.spotify.com/track/T1"},
                {"id": "off", "cron": "0 9 * * *", "uri": "spotify:album:A", "enabled": False},
                {"id": "bad-cron", "cron": "not a cron", "uri": "spotify:album:A"},
                {"id": "six-fields", "cron": "0 0 7 * * *", "uri": "spotify:album:A"},
                {"id": "bad-uri", "cron": "0 9 * * *", "uri": "https://example.com/x"},
                {"id": "empty-uri", "cron": "0 9 * * *", "uri": ""},
            ]
        )

        created = self.engine.compile()

        self.assertEqual(created, 2)
        self.assertEqual(self.engine.timer_count, 2)
        self.assertEqual(sorted(t.name for t in self.registry.timers), ["ok-1", "ok-2"])

    def test_compile_given_entries_skips_the_store(self):
        # no schedule file exists; the entries come from the caller
        entries = [
            ScheduleEntry(id="a", cron="30 7 * * *", uri="spotify:playlist:X"),
            ScheduleEntry(id="b", cron="0 8 * * *", uri="spotify:album:A", enabled=False),
        ]
        self.assertEqual(self.engine.compile(entries), 1)
        self.assertEqual([t.name for t in self.registry.timers], ["a"])
        self.assertFalse(os.path.exists(self.store.path))

    def test_empty_or_missing_schedule(self):
        self.assertEqual(self.engine.compile(), 0)
        self.write_schedule([])
        self.assertEqual(self.engine.compile(), 0)

    def test_timer_uses_configured_timezone(self):
        self.write_schedule([{"id": "a", "cron": "30 7 * * *", "uri": "spotify:playlist:X"}])
        self.engine.compile()
        timer = self.registry.timers[0]
        self.assertEqual(timer.next_fire_at, SEVEN_THIRTY)

    def test_cron_validation(self):
        self.assertTrue(is_valid_cron("*/5 * * * *"))
        self.assertTrue(is_valid_cron(" 30 7 * * 1-5 "))
        self.assertFalse(is_valid_cron("not a cron"))
        self.assertFalse(is_valid_cron("61 7 * * *"))
        self.assertFalse(is_valid_cron("* * * *"))
        self.assertFalse(is_valid_cron(None))


class TestReload(EngineTestCase):
    async def test_reload_async_reads_store_off_the_loop(self):
        self.write_schedule([{"id": "a", "cron": "30 7 * * *", "uri": "spotify:playlist:X"}])
        self.assertEqual(await self.engine.reload_async(), 1)
        self.assertEqual(self.engine.timer_count, 1)

    async def test_reload_twice_fires_once_per_instant(self):
        self.write_schedule(
            [
                {"id": "a", "cron": "30 7 * * *", "uri": "spotify:playlist:X"},
                {"id": "b", "cron": "30 7 * * *", "uri": "spotify:track:T"},
            ]
        )

        first = self.engine.reload()
        old_timers = self.registry.timers
        second = self.engine.reload()

        self.assertEqual(first, second)
        self.assertEqual(self.engine.timer_count, 2)
        self.assertTrue(all(not t.active for t in old_timers))

        tasks = await self.fire_at(SEVEN_THIRTY)
        self.assertEqual(len(tasks), 2)
        self.assertEqual(len([c for c in self.client.calls if c[0] == "play"]), 2)

        # same instant again: nothing left to fire
        self.assertEqual(await self.fire_at(SEVEN_THIRTY + timedelta(seconds=30)), [])

    async def test_nothing_fires_before_the_instant(self):
        self.write_schedule([{"id": "a", "cron": "30 7 * * *", "uri": "spotify:playlist:X"}])
        self.engine.compile()
        self.assertEqual(await self.fire_at(SEVEN_THIRTY - timedelta(seconds=1)), [])
        self.assertEqual(self.client.calls, [])

    async def test_cleared_registry_stops_firing(self):
        self.write_schedule([{"id": "a", "cron": "30 7 * * *", "uri": "spotify:playlist:X"}])
        self.engine.compile()
        self.write_schedule([])
        self.assertEqual(self.engine.reload(), 0)

        self.assertEqual(await self.fire_at(SEVEN_THIRTY), [])
        self.assertEqual(self.client.calls, [])


class TestExecution(EngineTestCase):
    async def test_shuffle_then_context_play(self):
        self.write_schedule([{"id": "a", "cron": "30 7 * * *", "uri": "spotify:playlist:X", "shuffle": True}])
        self.engine.compile()

        await self.fire_at(SEVEN_THIRTY)

        self.assertEqual(
            self.client.calls,
            [
                ("shuffle", True, None),
                ("play", {"context_uri": "spotify:playlist:X", "position_ms": 0}, None),
            ],
        )

    async def test_each_device_gets_shuffle_then_play(self):
        self.write_schedule(
            [{"id": "a", "cron": "30 7 * * *", "uri": "spotify:track:T", "devices": ["d1", "d2"], "startFromBeginning": False}]
        )
        self.engine.compile()

        await self.fire_at(SEVEN_THIRTY)

        payload = {"uris": ["spotify:track:T"]}
        self.assertEqual(
            self.client.calls,
            [
                ("shuffle", False, "d1"),
                ("play", payload, "d1"),
                ("shuffle", False, "d2"),
                ("play", payload, "d2"),
            ],
        )

    async def test_store_default_device_is_used(self):
        self.write_schedule([{"id": "a", "cron": "30 7 * * *", "uri": "spotify:album:A"}], deviceId="kitchen")
        self.engine.compile()

        await self.fire_at(SEVEN_THIRTY)

        self.assertEqual([c[2] for c in self.client.calls], ["kitchen", "kitchen"])

    async def test_live_edits_to_target_and_devices_apply_without_reload(self):
        self.write_schedule([{"id": "a", "cron": "30 7 * * *", "uri": "spotify:album:A"}])
        self.engine.compile()

        self.write_schedule([{"id": "a", "cron": "0 12 * * *", "uri": "spotify:playlist:NEW", "deviceId": "tv"}])
        await self.fire_at(SEVEN_THIRTY)

        self.assertEqual(
            self.client.calls[-1],
            ("play", {"context_uri": "spotify:playlist:NEW", "position_ms": 0}, "tv"),
        )

    async def test_deleted_entry_plays_compiled_target(self):
        self.write_schedule([{"id": "a", "cron": "30 7 * * *", "uri": "spotify:album:A"}])
        self.engine.compile()
        self.write_schedule([])

        await self.fire_at(SEVEN_THIRTY)

        self.assertEqual(self.client.calls[-1], ("play", {"context_uri": "spotify:album:A", "position_ms": 0}, None))

    async def test_failure_is_swallowed_and_timer_survives(self):
        client = RecordingClient(fail_with=SpotifyAPIError(404, "No active device found"))
        engine = ScheduleEngine(self.store, client, timezone="America/Sao_Paulo", registry=self.registry)
        self.write_schedule([{"id": "a", "cron": "30 7 * * *", "uri": "spotify:playlist:X"}])
        engine.compile()

        tasks = await self.fire_at(SEVEN_THIRTY)
        self.assertEqual([t.result() for t in tasks], [False])
        # play never attempted after the failed shuffle
        self.assertEqual([c[0] for c in client.calls], ["shuffle"])

        self.assertEqual(engine.timer_count, 1)
        tasks = await self.fire_at(SEVEN_THIRTY + timedelta(days=1))
        self.assertEqual(len(tasks), 1)


class TestRegistryLoop(unittest.IsolatedAsyncioTestCase):
    async def test_start_and_shutdown(self):
        fired = []

        async def job():
            fired.append(True)

        clock = FakeClock(START)
        registry = TimerRegistry(clock, tick_seconds=0.01)
        registry.add("30 7 * * *", job, name="job")

        registry.start()
        self.assertTrue(registry.is_running)
        clock.now = SEVEN_THIRTY
        await asyncio.sleep(0.05)
        await registry.shutdown()

        self.assertEqual(fired, [True])
        self.assertFalse(registry.is_running)
        self.assertEqual(len(registry), 0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
