import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from utils.json_files import read_json_file, write_json_file

DEFAULT_SCHEDULE_PATH = os.path.join("data", "schedule.json")

# JSON key -> dataclass attribute, in on-disk order
_KNOWN_KEYS = {
    "id": "id",
    "cron": "cron",
    "uri": "uri",
    "enabled": "enabled",
    "shuffle": "shuffle",
    "startFromBeginning": "start_from_beginning",
    "deviceId": "device_id",
    "devices": "devices",
    "title": "title",
    "imageUrl": "image_url",
    "subtitle": "subtitle",
    "kind": "kind",
}


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _device_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    return [str(d) for d in value if isinstance(d, str)]


@dataclass
class ScheduleEntry:
    """One persisted schedule entry.

    ``enabled`` and ``start_from_beginning`` are only turned off by a literal
    ``false``; ``shuffle`` is only turned on by a literal ``true``. Keys this
    class does not know about are carried in ``extra`` and written back as-is.
    """

    id: str = ""
    cron: str = ""
    uri: str = ""
    enabled: bool = True
    shuffle: bool = False
    start_from_beginning: bool = True
    device_id: Optional[str] = None
    devices: Optional[List[str]] = None
    title: Optional[str] = None
    image_url: Optional[str] = None
    subtitle: Optional[str] = None
    kind: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ScheduleEntry":
        return ScheduleEntry(
            id=str(data.get("id") or ""),
            cron=str(data.get("cron") or ""),
            uri=str(data.get("uri") or ""),
            enabled=data.get("enabled") is not False,
            shuffle=data.get("shuffle") is True,
            start_from_beginning=data.get("startFromBeginning") is not False,
            device_id=_optional_str(data.get("deviceId")),
            devices=_device_list(data.get("devices")),
            title=_optional_str(data.get("title")),
            image_url=_optional_str(data.get("imageUrl")),
            subtitle=_optional_str(data.get("subtitle")),
            kind=_optional_str(data.get("kind")),
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, attr in _KNOWN_KEYS.items():
            value = getattr(self, attr)
            # optional fields are omitted rather than written as null
            if value is None:
                continue
            out[key] = list(value) if isinstance(value, list) else value
        out.update(self.extra)
        return out

    def target_devices(self) -> Optional[List[str]]:
        """Devices named on the entry itself, or None when the entry names none.

        Any ``devices`` list (even an empty one) overrides the store defaults.
        """
        if self.device_id and self.device_id.strip():
            return [self.device_id.strip()]
        if self.devices is None:
            return None
        return [d.strip() for d in self.devices if d.strip()]


class ScheduleStore:
    """Persisted schedule file: ``{"items": [...], "deviceId"?, "devices"?, ...}``.

    Loads never raise: a missing or corrupt file reads as an empty schedule.
    Saves replace ``items`` only and keep every other top-level key.
    """

    def __init__(self, path: str = DEFAULT_SCHEDULE_PATH):
        self.path = path

    def load_raw(self) -> Dict[str, Any]:
        data = read_json_file(self.path, fallback={})
        return data if isinstance(data, dict) else {}

    def load(self) -> List[ScheduleEntry]:
        items = self.load_raw().get("items")
        if not isinstance(items, list):
            return []
        return [ScheduleEntry.from_dict(item) for item in items if isinstance(item, dict)]

    def has_items_list(self) -> bool:
        """False for legacy files written before schedules were stored as a list."""
        return isinstance(self.load_raw().get("items"), list)

    def save(self, entries: List[ScheduleEntry]) -> None:
        self.save_items([e.to_dict() for e in entries])

    def save_items(self, items: List[Any]) -> int:
        """Write raw item dicts (as received by the admin API). Returns the count."""
        record = self.load_raw()
        record["items"] = list(items)
        write_json_file(self.path, record)
        return len(record["items"])

    def set_default_device(self, device_id: Optional[str]) -> None:
        record = self.load_raw()
        if device_id and device_id.strip():
            record["deviceId"] = device_id.strip()
        else:
            record.pop("deviceId", None)
        record.setdefault("items", [])
        write_json_file(self.path, record)

    @staticmethod
    def default_devices(raw: Dict[str, Any]) -> List[str]:
        """Store-level default devices: ``deviceId`` first, then ``devices``."""
        device_id = raw.get("deviceId") if isinstance(raw, dict) else None
        if isinstance(device_id, str) and device_id.strip():
            return [device_id.strip()]
        devices = _device_list(raw.get("devices")) if isinstance(raw, dict) else None
        return [d.strip() for d in (devices or []) if d.strip()]

    @classmethod
    def resolve_devices(cls, entry: ScheduleEntry, raw: Dict[str, Any]) -> List[str]:
        """Entry devices win over store defaults; an empty list means "no device"."""
        devices = entry.target_devices()
        return devices if devices is not None else cls.default_devices(raw)
