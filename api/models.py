from typing import Any, Dict, List, Optional

from pydantic import BaseModel


# Playlists
class CreatePlaylistBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    isPublic: Optional[bool] = None


class PlaylistDetailsBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    isPublic: Optional[bool] = None
    collaborative: Optional[bool] = None


class AddItemsBody(BaseModel):
    uris: Optional[List[str]] = None
    position: Optional[int] = None


class RemoveItemsBody(BaseModel):
    items: Optional[List[Dict[str, Any]]] = None
    uris: Optional[List[str]] = None
    snapshot_id: Optional[str] = None


# either uris (replace) or range_start + insert_before (reorder)
class UpdateItemsBody(BaseModel):
    uris: Optional[List[str]] = None
    range_start: Optional[int] = None
    insert_before: Optional[int] = None
    range_length: Optional[int] = None
    snapshot_id: Optional[str] = None


# Player
class DeviceBody(BaseModel):
    deviceId: Optional[str] = None


class PlayContextBody(DeviceBody):
    contextUri: Optional[str] = None


class PlayUrisBody(DeviceBody):
    uris: Optional[List[str]] = None


class SeekBody(DeviceBody):
    positionMs: Optional[float] = None


class ShuffleBody(DeviceBody):
    state: bool = False


# AI
class AIPlaylistBody(BaseModel):
    prompt: Optional[str] = None
    count: Optional[int] = None
    market: Optional[str] = None
    isPublic: Optional[bool] = None
