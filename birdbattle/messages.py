"""Inbound and outbound Socket.IO messages.

Inbound events are parsed into one dataclass per event name before they
reach the supervisor; anything malformed raises ``ValidationError`` at
this boundary.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from birdbattle.errors import ValidationError


# Outbound event names
QUEUE_JOINED = 'queueJoined'
MATCH_FOUND = 'matchFound'
BIRD_SELECTED = 'birdSelected'
BIRD_STOLEN = 'birdStolen'
GAME_START = 'gameStart'
ABILITY_USED = 'abilityUsed'
HEALTH_UPDATE = 'healthUpdate'
SCORE_UPDATE = 'scoreUpdate'
STATUS_EXPIRED = 'statusExpired'
OPPONENT_MOVE = 'opponentMove'
GAME_OVER = 'gameOver'
OPPONENT_DISCONNECTED = 'opponentDisconnected'
GAME_JOINED = 'gameJoined'
ROOM_NOT_FOUND = 'roomNotFound'
ERROR = 'error'

BOTH_SLOTS = (1, 2)


@dataclass
class Outbound:
    event: str
    payload: Dict[str, Any]
    # player slots that receive the event
    to: Tuple[int, ...] = BOTH_SLOTS


def _require_mapping(data, event: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError(f"Invalid {event} data")
    return data


def _require_str(data: Dict[str, Any], key: str, event: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid {event} data: '{key}' is required")
    return value.strip()


def is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def parse_player_number(value, event: str) -> int:
    if isinstance(value, bool) or value not in BOTH_SLOTS:
        raise ValidationError(f"Invalid {event} data: player number must be 1 or 2")
    return int(value)


@dataclass
class FindMatch:
    event = 'findMatch'
    name: str

    @classmethod
    def from_payload(cls, data, max_name_length: int = 32):
        data = _require_mapping(data, cls.event)
        name = data.get('name')
        if not isinstance(name, str) or not name.strip():
            raise ValidationError('Invalid player data')
        return cls(name=name.strip()[:max_name_length])


@dataclass
class SelectBird:
    event = 'selectBird'
    room_id: str
    bird_id: str
    lock: bool = False

    @classmethod
    def from_payload(cls, data):
        data = _require_mapping(data, cls.event)
        if not data.get('roomId') or not data.get('birdId'):
            raise ValidationError('Invalid bird selection data')
        lock = data.get('lock', False)
        if not isinstance(lock, bool):
            raise ValidationError("Invalid bird selection data: 'lock' must be a boolean")
        return cls(
            room_id=_require_str(data, 'roomId', cls.event),
            bird_id=_require_str(data, 'birdId', cls.event),
            lock=lock,
        )


@dataclass
class PlayerReady:
    """Legacy alias of ``selectBird`` with ``lock=True``."""

    event = 'playerReady'
    room_id: str
    bird_id: str

    @classmethod
    def from_payload(cls, data):
        data = _require_mapping(data, cls.event)
        return cls(
            room_id=_require_str(data, 'roomId', cls.event),
            bird_id=_require_str(data, 'birdId', cls.event),
        )


@dataclass
class UseAbility:
    event = 'useAbility'
    room_id: str
    ability_type: str

    @classmethod
    def from_payload(cls, data):
        data = _require_mapping(data, cls.event)
        return cls(
            room_id=_require_str(data, 'roomId', cls.event),
            ability_type=_require_str(data, 'abilityType', cls.event),
        )


GAME_ACTIONS = ('move', 'damage', 'heal', 'pipeCollision', 'ability', 'score')


@dataclass
class GameAction:
    event = 'gameAction'
    room_id: str
    action: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data):
        data = _require_mapping(data, cls.event)
        if not data.get('roomId') or not data.get('action'):
            raise ValidationError('Invalid game action data')
        action = data.get('action')
        if action not in GAME_ACTIONS:
            raise ValidationError('Unknown action', code='UnknownAction')
        payload = data.get('payload')
        if payload is None:
            payload = {}
        if action != 'move' and not isinstance(payload, dict):
            raise ValidationError(f"Invalid {action} data")
        return cls(room_id=_require_str(data, 'roomId', cls.event), action=action, payload=payload)

    def target_and_amount(self) -> Tuple[int, int]:
        """Structural validation shared by the damage and heal actions; amounts are floored."""
        target = self.payload.get('target')
        amount = self.payload.get('amount')
        if isinstance(target, bool) or target not in BOTH_SLOTS or not is_number(amount) or amount < 0:
            raise ValidationError(f"Invalid {self.action} data")
        return int(target), int(math.floor(amount))


@dataclass
class JoinGameRoom:
    event = 'joinGameRoom'
    room_id: str
    player_number: int
    name: str
    bird_id: Optional[str] = None

    @classmethod
    def from_payload(cls, data, max_name_length: int = 32):
        data = _require_mapping(data, cls.event)
        name = data.get('name', data.get('playerName'))
        if not isinstance(name, str) or not name.strip():
            name = 'Player'
        bird_id = data.get('birdId')
        if bird_id is not None and not isinstance(bird_id, str):
            raise ValidationError("Invalid joinGameRoom data: 'birdId' must be a string")
        return cls(
            room_id=_require_str(data, 'roomId', cls.event),
            player_number=parse_player_number(data.get('playerNumber'), cls.event),
            name=name.strip()[:max_name_length],
            bird_id=bird_id,
        )
