"""Spotify Web API integration.

Token lifecycle (CredentialStore -> TokenCache -> AuthRetryPolicy) plus a thin
async client and the helpers built on top of it.
"""

from .auth import SpotifyOAuth, TokenGrant, check_spotify_credentials
from .catalog import SpotifyCatalog
from .client import NO_CONTENT, SpotifyClient, UpstreamRequest
from .credential_store import CredentialRecord, CredentialStore
from .errors import ConfigurationError, NoCredentialError, SpotifyAPIError, SpotifyError
from .playlist_editor import PlaylistEditor
from .retry_policy import AuthRetryPolicy
from .token_cache import TokenCache, TokenState

__all__ = [
    "SpotifyOAuth",
    "TokenGrant",
    "check_spotify_credentials",
    "SpotifyCatalog",
    "NO_CONTENT",
    "SpotifyClient",
    "UpstreamRequest",
    "CredentialRecord",
    "CredentialStore",
    "ConfigurationError",
    "NoCredentialError",
    "SpotifyAPIError",
    "SpotifyError",
    "PlaylistEditor",
    "AuthRetryPolicy",
    "TokenCache",
    "TokenState",
]
