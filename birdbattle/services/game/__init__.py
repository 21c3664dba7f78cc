"""Game domain services: catalog, combat, rooms and timers.

This package holds the match logic imported by the socket handlers and
HTTP routes, keeping transport concerns separated from core game
mechanics.
"""

from .catalog import DEFAULT_CATALOG, BirdCatalog
from .matchmaking import MatchQueue
from .registry import RoomRegistry
from .room import Room
from .scheduler import TimerScheduler
from .supervisor import ConnectionSupervisor, SupervisorSettings, now_ms

__all__ = [
    'BirdCatalog',
    'ConnectionSupervisor',
    'DEFAULT_CATALOG',
    'MatchQueue',
    'Room',
    'RoomRegistry',
    'SupervisorSettings',
    'TimerScheduler',
    'now_ms',
]
