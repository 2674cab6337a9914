import httpx
import questionary

from managers.schedule_store import ScheduleEntry, ScheduleStore
from managers.timer_registry import is_valid_cron
from spotify_api.uris import build_play_payload, spotify_url_to_uri
from utils.logger import log_error, log_info, log_success, log_warning

# questionary turns a None value into the title, so cancel needs its own marker
CANCEL = "__cancel__"


def schedule_menu(config):
    """
    Displays the Schedule Menu and edits the schedule file.
    Changes reach the running server only after a reload.
    """
    store = ScheduleStore(config["schedule_path"])

    while True:
        choice = questionary.select(
            "⏰ Schedule Menu — Choose an option:",
            choices=[
                "List schedule entries",
                "Add an entry",
                "Enable/disable an entry",
                "Remove an entry",
                "Set default device",
                "Reload running server",
                "Back"
            ]
        ).ask()

        if choice == "List schedule entries":
            list_entries(store)

        elif choice == "Add an entry":
            add_entry(store)

        elif choice == "Enable/disable an entry":
            toggle_entry(store)

        elif choice == "Remove an entry":
            remove_entry(store)

        elif choice == "Set default device":
            set_default_device(store)

        elif choice == "Reload running server":
            reload_server(config)

        elif choice == "Back" or choice is None:
            break


def _describe(entry: ScheduleEntry) -> str:
    state = "on" if entry.enabled else "off"
    label = entry.title or entry.uri
    flags = " 🔀" if entry.shuffle else ""
    return f"[{state}] {entry.id} · {entry.cron} · {label}{flags}"


def _validate_cron(value: str):
    return True if is_valid_cron(value) else "Enter 5 cron fields, e.g. '30 7 * * 1-5'"


def _validate_uri(value: str):
    if build_play_payload(value) is None:
        return "Enter a spotify:track/album/playlist/artist URI or open.spotify.com link"
    return True


def list_entries(store: ScheduleStore):
    entries = store.load()
    if not entries:
        log_info("Schedule is empty")
        return entries

    log_info(f"{len(entries)} schedule entr{'y' if len(entries) == 1 else 'ies'}:")
    for entry in entries:
        log_info(f"  {_describe(entry)}")
    return entries


def add_entry(store: ScheduleStore):
    entries = store.load()
    taken = {e.id for e in entries}

    entry_id = questionary.text(
        "Entry id:",
        validate=lambda v: True if v.strip() and v.strip() not in taken else "Id must be unique and non-empty",
    ).ask()
    if not entry_id:
        return None

    cron = questionary.text("Cron expression (min hour day month weekday):", validate=_validate_cron).ask()
    if not cron:
        return None

    uri = questionary.text("Spotify URI or link:", validate=_validate_uri).ask()
    if not uri:
        return None

    title = questionary.text("Title (optional):").ask()
    shuffle = questionary.confirm("Shuffle?", default=False).ask()

    entry = ScheduleEntry(
        id=entry_id.strip(),
        cron=cron.strip(),
        uri=spotify_url_to_uri(uri),
        shuffle=bool(shuffle),
        title=title.strip() if title and title.strip() else None,
    )
    store.save(entries + [entry])
    log_success(f"Added {_describe(entry)}")
    return entry


def _pick_entry(store: ScheduleStore, message: str):
    entries = store.load()
    if not entries:
        log_info("Schedule is empty")
        return entries, None

    choices = [questionary.Choice(_describe(e), value=e.id) for e in entries]
    choices.append(questionary.Choice("Cancel", value=CANCEL))
    picked = questionary.select(message, choices=choices).ask()
    if picked == CANCEL:
        return entries, None
    return entries, picked


def toggle_entry(store: ScheduleStore):
    entries, picked = _pick_entry(store, "Enable/disable which entry?")
    if picked is None:
        return None

    for entry in entries:
        if entry.id == picked:
            entry.enabled = not entry.enabled
            store.save(entries)
            log_success(f"{entry.id} is now {'enabled' if entry.enabled else 'disabled'}")
            return entry
    return None


def remove_entry(store: ScheduleStore):
    entries, picked = _pick_entry(store, "Remove which entry?")
    if picked is None:
        return False

    if not questionary.confirm(f"Remove '{picked}'?", default=False).ask():
        return False

    store.save([e for e in entries if e.id != picked])
    log_success(f"Removed {picked}")
    return True


def set_default_device(store: ScheduleStore):
    current = store.default_devices(store.load_raw())
    device_id = questionary.text(
        "Default device id (empty to clear):",
        default=current[0] if current else "",
    ).ask()
    if device_id is None:
        return None

    store.set_default_device(device_id)
    if device_id.strip():
        log_success(f"Default device set to {device_id.strip()}")
    else:
        log_info("Default device cleared")
    return device_id.strip() or None


def reload_server(config, http_post=httpx.post):
    port = config.get("server_port", 3001)
    url = f"http://127.0.0.1:{port}/api/schedule/reload"

    try:
        resp = http_post(url, timeout=10)
    except httpx.HTTPError as e:
        log_error(f"Server not reachable at {url}: {e}")
        return None

    if resp.status_code >= 400:
        log_warning(f"Reload failed (HTTP {resp.status_code}): {resp.text}")
        return None

    created = resp.json().get("tasksCreated")
    log_success(f"Server reloaded: {created} timer(s) active")
    return created
