SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
SPOTIFY_TOKEN_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/api/token"
SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"

SPOTIFY_SCOPES = [
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
    "user-read-private",
    "playlist-read-private",
    "playlist-read-collaborative",
    "playlist-modify-public",
    "playlist-modify-private",
    "user-library-modify",
]

# Entity types accepted when converting open.spotify.com links to URIs.
URL_ENTITY_TYPES = ("track", "album", "playlist", "artist", "episode", "show")
CONTEXT_URI_PREFIXES = ("spotify:album:", "spotify:playlist:", "spotify:artist:")
TRACK_URI_PREFIX = "spotify:track:"
EPISODE_URI_PREFIX = "spotify:episode:"

# Upstream per-call item limit for playlist writes.
MAX_ITEMS_PER_REQUEST = 100

SEARCH_LIMIT_MAX = 10
SEARCH_OFFSET_MAX = 1000
PLAYLIST_PAGE_LIMIT = 50
MAX_PLAYLIST_PAGES = 20
MAX_ITEM_PAGES = 200

OAUTH_STATE_COOKIE = "spotify_oauth_state"
