import urllib.parse
from typing import Any, Dict, Iterable, List, Optional

from constants import CONTEXT_URI_PREFIXES, EPISODE_URI_PREFIX, TRACK_URI_PREFIX, URL_ENTITY_TYPES


def is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def spotify_url_to_uri(value: Any) -> str:
    """Normalize a Spotify reference to its canonical URI.

    - ``spotify:...`` URIs pass through unchanged
    - ``https://open.spotify.com/<type>/<id>`` becomes ``spotify:<type>:<id>``
      (locale prefixes such as ``/intl-pt/`` are skipped)
    - unrecognized open.spotify.com links become ""
    - anything else is returned stripped, for the caller to validate
    """
    s = str(value if value is not None else "").strip()
    if not s:
        return ""

    if s.startswith("spotify:"):
        return s

    if "open.spotify.com/" in s:
        parsed = urllib.parse.urlparse(s if "://" in s else f"https://{s}")
        parts = [p for p in parsed.path.split("/") if p]
        if parts and parts[0].startswith("intl-"):
            parts = parts[1:]
        if len(parts) < 2:
            return ""
        entity_type, entity_id = parts[0], parts[1]
        if entity_type in URL_ENTITY_TYPES and entity_id:
            return f"spotify:{entity_type}:{entity_id}"
        return ""

    return s


def clean_uris(values: Iterable[Any]) -> List[str]:
    out = []
    for v in values or []:
        uri = spotify_url_to_uri(v)
        if uri:
            out.append(uri)
    return out


def playlist_id_to_uri(playlist_id: Any) -> str:
    pid = str(playlist_id or "").strip()
    return f"spotify:playlist:{pid}" if pid else ""


def is_track_uri(uri: str) -> bool:
    return str(uri).startswith(TRACK_URI_PREFIX)


def is_removable_item_uri(uri: str) -> bool:
    u = str(uri)
    return u.startswith(TRACK_URI_PREFIX) or u.startswith(EPISODE_URI_PREFIX)


def build_play_payload(reference: Any, start_from_beginning: bool = True) -> Optional[Dict[str, Any]]:
    """Turn a track/album/playlist/artist reference into a /me/player/play body.

    Returns None when the reference cannot be played.
    """
    uri = spotify_url_to_uri(reference)
    if not is_non_empty_string(uri):
        return None
    parts = uri.split(":")
    if len(parts) < 3 or not parts[2].strip():
        return None

    payload: Dict[str, Any]
    if uri.startswith(TRACK_URI_PREFIX):
        payload = {"uris": [uri]}
    elif uri.startswith(CONTEXT_URI_PREFIXES):
        payload = {"context_uri": uri}
    else:
        return None

    if start_from_beginning:
        payload["position_ms"] = 0
    return payload


def build_library_params(uris: Iterable[Any]) -> Dict[str, str]:
    """Query params for the /me/library endpoints: comma-joined canonical URIs."""
    return {"uris": ",".join(clean_uris(uris))}
