import logging
from typing import Awaitable, Callable

import httpx

from .errors import SpotifyError
from .token_cache import TokenCache

logger = logging.getLogger(__name__)

Attempt = Callable[[str], Awaitable[httpx.Response]]


class AuthRetryPolicy:
    """Run an authenticated attempt; on 401, force one refresh and retry once.

    If the forced refresh fails, the first 401 response is returned unchanged so
    the caller reports it like any other upstream error.
    """

    retry_status = 401

    def __init__(self, token_cache: TokenCache):
        self.token_cache = token_cache

    async def execute(self, attempt: Attempt) -> httpx.Response:
        token = await self.token_cache.get_access_token()
        response = await attempt(token)

        if response.status_code != self.retry_status:
            return response

        self.token_cache.invalidate(token)
        try:
            fresh_token = await self.token_cache.get_access_token()
        except SpotifyError as e:
            logger.warning("Forced token refresh after 401 failed: %s", e)
            return response

        return await attempt(fresh_token)
