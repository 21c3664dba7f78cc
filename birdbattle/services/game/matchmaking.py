import threading
from collections import deque
from typing import Deque, Optional, Tuple

from birdbattle.errors import ConflictError
from birdbattle.models import WaitingPlayer


class MatchQueue:
    """FIFO of players waiting for an opponent.

    Shared by every connection handler, so all access goes through
    ``self._lock``.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._waiting: Deque[WaitingPlayer] = deque()

    def __len__(self) -> int:
        with self._lock:
            return len(self._waiting)

    def __contains__(self, connection_id) -> bool:
        with self._lock:
            return any(p.connection_id == connection_id for p in self._waiting)

    def enqueue(self, connection_id: str, name: str, now: int) -> int:
        with self._lock:
            if any(p.connection_id == connection_id for p in self._waiting):
                raise ConflictError('Already in matchmaking queue', code='AlreadyQueued')
            self._waiting.append(WaitingPlayer(connection_id=connection_id, name=name, enqueued_at=now))
            return len(self._waiting)

    def remove(self, connection_id: str) -> bool:
        with self._lock:
            for player in self._waiting:
                if player.connection_id == connection_id:
                    self._waiting.remove(player)
                    return True
            return False

    def position(self, connection_id: str) -> Optional[int]:
        with self._lock:
            for idx, player in enumerate(self._waiting, start=1):
                if player.connection_id == connection_id:
                    return idx
            return None

    def pop_pair(self) -> Optional[Tuple[WaitingPlayer, WaitingPlayer]]:
        with self._lock:
            if len(self._waiting) < 2:
                return None
            return self._waiting.popleft(), self._waiting.popleft()
