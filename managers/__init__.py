# Managers module exports
from managers.schedule_store import ScheduleEntry, ScheduleStore
from managers.timer_registry import CronTimer, TimerRegistry, is_valid_cron
from managers.schedule_engine import ScheduleEngine
from managers.ai_playlist_manager import AIPlaylistManager, OpenAIPlaylistPlanner, PlaylistPlan

__all__ = [
    # Schedule store
    "ScheduleEntry",
    "ScheduleStore",
    # Timers
    "CronTimer",
    "TimerRegistry",
    "is_valid_cron",
    # Schedule engine
    "ScheduleEngine",
    # AI playlists
    "AIPlaylistManager",
    "OpenAIPlaylistPlanner",
    "PlaylistPlan",
]
