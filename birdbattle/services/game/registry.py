import random
import string
import threading
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from birdbattle.errors import NotFoundError
from birdbattle.models import PlayerState, RoomPhase
from .room import Room


def generate_room_id(now: int, length: int = 9) -> str:
    """Time-ordered room id, e.g. ``room_1700000000000_k3j9x0a1b``."""
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))
    return f"room_{now}_{suffix}"


class RoomRegistry:
    """All live rooms of this process, keyed by room id.

    Deleted ids are remembered (bounded) so that a late reconnect or a
    sweep can tell a finished room from one this process never knew.
    """

    def __init__(self, clock: Callable[[], int], retired_limit: int = 1024):
        self._lock = threading.Lock()
        self._rooms: Dict[str, Room] = {}
        self._retired: 'OrderedDict[str, int]' = OrderedDict()
        self._retired_limit = retired_limit
        self.clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id) -> bool:
        with self._lock:
            return room_id in self._rooms

    def rooms(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())

    def create(self, player1: PlayerState, player2: PlayerState, catalog) -> Room:
        now = self.clock()
        with self._lock:
            room_id = generate_room_id(now)
            while room_id in self._rooms or room_id in self._retired:
                room_id = generate_room_id(now)
            room = Room(room_id, player1, player2, catalog, clock=self.clock, created_at=now)
            self._rooms[room_id] = room
            return room

    def restore(self, room_id: str, player1: PlayerState, player2: PlayerState, catalog) -> Optional[Room]:
        """Recreate a room this process has no record of.

        Returns the existing room if one appeared meanwhile, and None for a
        retired id.
        """
        with self._lock:
            if room_id in self._retired:
                return None
            existing = self._rooms.get(room_id)
            if existing is not None:
                return existing
            room = Room(room_id, player1, player2, catalog, clock=self.clock,
                        phase=RoomPhase.IN_PROGRESS)
            room.reconstructed = True
            self._rooms[room_id] = room
            return room

    def get(self, room_id) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(room_id)

    def require(self, room_id) -> Room:
        room = self.get(room_id)
        if room is None:
            raise NotFoundError('Room not found', code='RoomNotFound', roomId=room_id)
        return room

    def delete(self, room_id) -> Optional[Room]:
        """Remove a room; deleting an absent room is a no-op."""
        with self._lock:
            room = self._rooms.pop(room_id, None)
            if room is not None:
                self._retired[room_id] = self.clock()
                while len(self._retired) > self._retired_limit:
                    self._retired.popitem(last=False)
            return room

    def is_retired(self, room_id) -> bool:
        with self._lock:
            return room_id in self._retired

    def stale(self, max_age_ms: int, now: int = None) -> List[Room]:
        now = self.clock() if now is None else now
        with self._lock:
            return [room for room in self._rooms.values() if now - room.created_at > max_age_ms]
