import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from openai import APIError, APIStatusError, AsyncOpenAI

from spotify_api.catalog import SpotifyCatalog
from spotify_api.errors import ConfigurationError, SpotifyAPIError
from spotify_api.playlist_editor import PlaylistEditor
from utils.logger import log_info, log_warning

DEFAULT_PLAYLIST_NAME = "AI Playlist"
MIN_TRACKS = 5
MAX_TRACKS = 100
DEFAULT_TRACKS = 25
LOOKUP_DELAY = 0.07


class PlannerError(SpotifyAPIError):
    """The language model call failed or returned something unusable."""


def clamp_count(count: Any) -> int:
    try:
        n = int(count)
    except (TypeError, ValueError):
        n = DEFAULT_TRACKS
    return min(MAX_TRACKS, max(MIN_TRACKS, n))


@dataclass
class PlaylistPlan:
    name: str
    description: str
    queries: List[str] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PlaylistPlan":
        tracks = data.get("tracks") if isinstance(data.get("tracks"), list) else []
        queries = []
        for t in tracks:
            q = t.get("query") if isinstance(t, dict) else t
            if isinstance(q, str) and q.strip():
                queries.append(q.strip())
        return PlaylistPlan(
            name=str(data.get("name") or DEFAULT_PLAYLIST_NAME).strip(),
            description=str(data.get("description") or "").strip(),
            queries=queries,
        )

    def summary(self) -> Dict[str, str]:
        return {"name": self.name, "description": self.description}


class OpenAIPlaylistPlanner:
    """Asks an OpenAI chat model for a playlist: a name, a description and N search queries."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", *, client: Optional[AsyncOpenAI] = None):
        self.api_key = str(api_key or "").strip()
        self.model = model
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("OPENAI_API_KEY is not configured on the backend.")
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    @staticmethod
    def _instructions(n: int) -> str:
        return (
            "You create Spotify playlists.\n"
            f"Return a JSON object with keys name, description and tracks (exactly {n} items).\n"
            'Each track item is {"query": "song - artist"}.\n'
            "Do not repeat songs."
        )

    async def generate_plan(self, prompt: str, count: Any = DEFAULT_TRACKS) -> PlaylistPlan:
        n = clamp_count(count)
        client = self._get_client()

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self._instructions(n)},
                    {"role": "user", "content": str(prompt or "").strip()},
                ],
                response_format={"type": "json_object"},
            )
        except APIStatusError as e:
            raise PlannerError(e.status_code, e.message, getattr(e, "body", None)) from e
        except APIError as e:
            raise PlannerError(500, e.message) from e

        raw = (response.choices[0].message.content or "").strip() if response.choices else ""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = None
        if not isinstance(data, dict):
            raise PlannerError(500, "The model did not return valid JSON.", {"raw": raw})

        return PlaylistPlan.from_dict(data)


class AIPlaylistManager:
    """Plan a playlist with the model, resolve it against Spotify search, optionally create it."""

    def __init__(
        self,
        planner: OpenAIPlaylistPlanner,
        catalog: SpotifyCatalog,
        editor: PlaylistEditor,
        *,
        lookup_delay: float = LOOKUP_DELAY,
        sleep=asyncio.sleep,
    ):
        self.planner = planner
        self.catalog = catalog
        self.editor = editor
        self.lookup_delay = lookup_delay
        self._sleep = sleep

    async def resolve_queries(self, queries: List[str], market: Optional[str]) -> Dict[str, Any]:
        """First search hit per query, deduplicated by URI. Misses keep ``track: None``."""
        uris: List[str] = []
        picked: List[Dict[str, Any]] = []
        seen = set()

        for q in queries:
            term = str(q or "").strip()
            if not term:
                continue
            track = await self.catalog.first_track(term, market=market)
            if track and track["uri"] not in seen:
                seen.add(track["uri"])
                uris.append(track["uri"])
                picked.append({"query": term, "track": track})
            else:
                picked.append({"query": term, "track": None})
            await self._sleep(self.lookup_delay)

        return {"uris": uris, "picked": picked}

    async def preview(self, prompt: str, count: Any = DEFAULT_TRACKS, market: Optional[str] = None) -> Dict[str, Any]:
        plan = await self.planner.generate_plan(prompt, count)
        resolved = await self.resolve_queries(plan.queries, market)
        log_info(f"AI plan '{plan.name}': {len(resolved['uris'])}/{len(plan.queries)} tracks resolved")
        return {"plan": plan, "resolved": resolved}

    async def create(
        self,
        prompt: str,
        count: Any = DEFAULT_TRACKS,
        market: Optional[str] = None,
        *,
        public: bool = False,
    ) -> Dict[str, Any]:
        result = await self.preview(prompt, count, market)
        plan: PlaylistPlan = result["plan"]
        resolved = result["resolved"]

        if not resolved["uris"]:
            log_warning("AI plan resolved to zero tracks, playlist not created")
            raise SpotifyAPIError(
                422,
                "Could not resolve any tracks on Spotify. Try a more specific prompt.",
                {"plan": plan.summary(), "resolved": resolved},
            )

        created = await self.editor.client.create_playlist(plan.name, public=public, description=plan.description)
        playlist_id = created.get("id") if isinstance(created, dict) else None
        if not playlist_id:
            raise SpotifyAPIError(500, "Playlist creation returned no id", created)

        await self.editor.add_items(playlist_id, resolved["uris"])

        return {
            "playlist": {
                "id": created.get("id"),
                "name": created.get("name"),
                "uri": created.get("uri"),
                "external_urls": created.get("external_urls"),
                "images": created.get("images") or [],
            },
            "added": len(resolved["uris"]),
            "resolved": resolved,
            "plan": plan,
        }
