import json
import os
from typing import Any


def read_json_file(path: str, fallback: Any = None) -> Any:
    """Read a JSON file, returning ``fallback`` when it is missing, empty or invalid.

    Callers rely on this never raising: a broken state file means "nothing stored".
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read().strip()
    except (OSError, UnicodeDecodeError):
        return fallback

    if not content:
        return fallback

    try:
        return json.loads(content)
    except json.JSONDecodeError:
        return fallback


def write_json_file(path: str, data: Any) -> None:
    """Overwrite ``path`` with pretty JSON, creating the parent directory."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def parse_body(text: str) -> Any:
    """Parse a response body; malformed JSON is wrapped as {"raw": text}, never raised."""
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {"raw": text}
