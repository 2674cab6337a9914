import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Optional

from .auth import SpotifyOAuth
from .credential_store import CredentialStore
from .errors import NoCredentialError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_MARGIN_SECONDS = 60


class TokenState(Enum):
    EMPTY = "empty"
    VALID = "valid"
    REFRESHING = "refreshing"


class TokenCache:
    """In-memory access token with single-flight refresh.

    Concurrent callers that need a refresh all await the same in-flight task, so
    N simultaneous requests cost exactly one token-endpoint exchange. The cached
    token's expiry is the upstream lifetime minus ``expiry_margin`` seconds.
    """

    def __init__(
        self,
        store: CredentialStore,
        oauth: SpotifyOAuth,
        *,
        expiry_margin: int = DEFAULT_EXPIRY_MARGIN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.oauth = oauth
        self.expiry_margin = int(expiry_margin)
        self._clock = clock

        self._state = TokenState.EMPTY
        self._access_token: Optional[str] = None
        self._expires_at = 0.0
        self._inflight: Optional[asyncio.Future] = None

    @property
    def state(self) -> TokenState:
        return self._state

    @property
    def expires_at(self) -> float:
        return self._expires_at

    def _cached_token(self) -> Optional[str]:
        if self._state is TokenState.VALID and self._access_token and self._clock() < self._expires_at:
            return self._access_token
        return None

    async def get_access_token(self) -> str:
        cached = self._cached_token()
        if cached is not None:
            return cached

        if self._inflight is None:
            self._state = TokenState.REFRESHING
            task = asyncio.ensure_future(self._refresh())
            task.add_done_callback(self._clear_inflight)
            self._inflight = task

        # shield: a cancelled waiter must not cancel the refresh other callers share
        return await asyncio.shield(self._inflight)

    def invalidate(self, rejected_token: Optional[str] = None) -> None:
        """Drop the cached token so the next get_access_token() refreshes.

        With ``rejected_token``, nothing happens if the cache already moved on to a
        different token. A refresh in flight is kept; later callers join it.
        """
        if rejected_token is not None and self._access_token is not None and rejected_token != self._access_token:
            return

        self._access_token = None
        self._expires_at = 0.0
        if self._state is not TokenState.REFRESHING:
            self._state = TokenState.EMPTY

    def _clear_inflight(self, task: asyncio.Future) -> None:
        if self._inflight is task:
            self._inflight = None

    async def _refresh(self) -> str:
        try:
            record = self.store.load()
            if not record.has_refresh_token:
                raise NoCredentialError()

            grant = await self.oauth.refresh(record.refresh_token)
        except Exception:
            self._access_token = None
            self._expires_at = 0.0
            self._state = TokenState.EMPTY
            raise

        self._access_token = grant.access_token
        self._expires_at = self._clock() + grant.expires_in - self.expiry_margin
        self._state = TokenState.VALID
        logger.debug("Access token refreshed, valid for %ss", grant.expires_in - self.expiry_margin)
        return grant.access_token
