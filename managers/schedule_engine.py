import asyncio
from typing import Any, Dict, List, Optional

from managers.schedule_store import ScheduleEntry, ScheduleStore
from managers.timer_registry import TimerRegistry, is_valid_cron, resolve_timezone
from spotify_api.client import SpotifyClient
from spotify_api.uris import build_play_payload
from utils.logger import log_debug, log_error, log_info, log_success

DEFAULT_TIMEZONE = "America/Sao_Paulo"


class ScheduleEngine:
    """Turns the persisted schedule into cron timers and plays entries when they fire.

    The schedule file is read again at every firing, so device and target edits
    apply without a reload. Changing ``cron``, ``enabled`` or ``shuffle`` needs
    ``reload()``.
    """

    def __init__(
        self,
        store: ScheduleStore,
        client: SpotifyClient,
        *,
        timezone: str = DEFAULT_TIMEZONE,
        registry: Optional[TimerRegistry] = None,
        tick_seconds: float = 1.0,
    ):
        self.store = store
        self.client = client
        self.tz = resolve_timezone(timezone, fallback=DEFAULT_TIMEZONE)
        self.registry = registry if registry is not None else TimerRegistry(tick_seconds=tick_seconds)

    @property
    def timer_count(self) -> int:
        return len(self.registry)

    def compile(self, entries: Optional[List[ScheduleEntry]] = None) -> int:
        """Drop every timer and build one per enabled, valid entry. Returns the count.

        ``entries`` skips the store read, for callers that loaded it off the loop.
        """
        if entries is None:
            entries = self.store.load()
        self.registry.clear()

        if not entries:
            log_info("Schedule is empty, no timers created")
            return 0

        created = 0
        for entry in entries:
            label = entry.title or entry.id or entry.uri

            if not entry.enabled:
                log_debug(f"Schedule skip {label}: disabled")
                continue
            if not is_valid_cron(entry.cron):
                log_debug(f"Schedule skip {label}: invalid cron {entry.cron!r}")
                continue

            payload = build_play_payload(entry.uri, entry.start_from_beginning)
            if payload is None:
                log_debug(f"Schedule skip {label}: unplayable target {entry.uri!r}")
                continue

            self.registry.add(
                entry.cron.strip(),
                self._job(entry, payload),
                tz=self.tz,
                name=label,
            )
            created += 1

        log_info(f"Schedule compiled: {created} timer(s) created")
        return created

    def reload(self) -> int:
        return self.compile()

    async def reload_async(self) -> int:
        entries = await asyncio.to_thread(self.store.load)
        return self.compile(entries)

    def _job(self, entry: ScheduleEntry, payload: Dict[str, Any]):
        async def run():
            return await self.execute(entry, payload)

        return run

    @staticmethod
    def _current_entry(raw: Dict[str, Any], snapshot: ScheduleEntry) -> ScheduleEntry:
        items = raw.get("items")
        if snapshot.id and isinstance(items, list):
            for item in items:
                if isinstance(item, dict) and str(item.get("id") or "") == snapshot.id:
                    return ScheduleEntry.from_dict(item)
        return snapshot

    async def execute(self, snapshot: ScheduleEntry, compiled_payload: Dict[str, Any]) -> bool:
        """Shuffle, then play, on every resolved device (or once with no device).

        Failures are logged and never raised: a timer outlives a failed firing.
        """
        try:
            raw = await asyncio.to_thread(self.store.load_raw)
            entry = self._current_entry(raw, snapshot)

            payload = build_play_payload(entry.uri, entry.start_from_beginning) or compiled_payload
            devices = ScheduleStore.resolve_devices(entry, raw)

            for device_id in devices or [None]:
                await self.client.set_shuffle(snapshot.shuffle, device_id=device_id)
                await self.client.start_playback(payload, device_id=device_id)

            log_success(f"Scheduled playback started: {entry.title or entry.id or 'item'}")
            return True
        except Exception as e:
            log_error(f"Scheduled playback failed for {snapshot.id or snapshot.uri}: {e}", exc_info=True)
            return False
