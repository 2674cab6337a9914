from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from fastapi import Request

from managers.ai_playlist_manager import AIPlaylistManager, OpenAIPlaylistPlanner
from managers.schedule_engine import ScheduleEngine
from managers.schedule_store import ScheduleStore
from managers.timer_registry import TimerRegistry
from spotify_api.auth import SpotifyOAuth
from spotify_api.catalog import SpotifyCatalog
from spotify_api.client import SpotifyClient
from spotify_api.credential_store import CredentialStore
from spotify_api.playlist_editor import PlaylistEditor
from spotify_api.token_cache import TokenCache


@dataclass
class Services:
    """Everything a request handler needs, built once per application."""

    config: Dict[str, Any]
    credential_store: CredentialStore
    oauth: SpotifyOAuth
    token_cache: TokenCache
    client: SpotifyClient
    catalog: SpotifyCatalog
    editor: PlaylistEditor
    schedule_store: ScheduleStore
    engine: ScheduleEngine
    ai: AIPlaylistManager

    @property
    def default_market(self) -> str:
        return str(self.config.get("default_market") or "BR").strip() or "BR"

    async def aclose(self) -> None:
        await self.engine.registry.shutdown()
        await self.client.aclose()


def build_services(
    config: Dict[str, Any],
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    registry: Optional[TimerRegistry] = None,
    planner: Optional[OpenAIPlaylistPlanner] = None,
) -> Services:
    """Wire the object graph from config. ``http_client`` serves both token and API calls."""
    credential_store = CredentialStore(config["tokens_path"])
    oauth = SpotifyOAuth(config, http_client=http_client)
    token_cache = TokenCache(
        credential_store,
        oauth,
        expiry_margin=int(config.get("token_expiry_margin", 60)),
    )
    client = SpotifyClient(token_cache, http_client=http_client, timeout=float(config.get("http_timeout", 30.0)))
    catalog = SpotifyCatalog(client)
    editor = PlaylistEditor(
        client,
        chunk_size=int(config.get("bulk_chunk_size", 100)),
        chunk_delay=float(config.get("bulk_chunk_delay", 0.04)),
    )

    schedule_store = ScheduleStore(config["schedule_path"])
    engine = ScheduleEngine(
        schedule_store,
        client,
        timezone=config.get("schedule_timezone", "America/Sao_Paulo"),
        registry=registry,
        tick_seconds=float(config.get("scheduler_tick_seconds", 1.0)),
    )

    planner = planner or OpenAIPlaylistPlanner(config.get("openai_api_key", ""), config.get("openai_model", "gpt-4o-mini"))
    ai = AIPlaylistManager(planner, catalog, editor)

    return Services(
        config=config,
        credential_store=credential_store,
        oauth=oauth,
        token_cache=token_cache,
        client=client,
        catalog=catalog,
        editor=editor,
        schedule_store=schedule_store,
        engine=engine,
        ai=ai,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
