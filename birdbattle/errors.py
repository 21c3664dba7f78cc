from typing import Any, Dict


class GameError(Exception):
    """Base class for errors reported back to the offending connection.

    Every subclass is recoverable: the room is left untouched and only the
    sender receives an ``error`` event built from ``to_dict()``.
    """

    kind = 'GameError'
    default_code = 'GameError'

    def __init__(self, message: str, code: str = None, **extra: Any):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        payload = {'message': self.message, 'code': self.code, 'kind': self.kind}
        payload.update(self.extra)
        return payload


class ValidationError(GameError):
    kind = 'ValidationError'
    default_code = 'InvalidPayload'


class NotFoundError(GameError):
    kind = 'NotFoundError'
    default_code = 'NotFound'


class ConflictError(GameError):
    kind = 'ConflictError'
    default_code = 'Conflict'


class CooldownError(GameError):
    kind = 'CooldownError'
    default_code = 'OnCooldown'

    def __init__(self, message: str, remaining_ms: int):
        super().__init__(message, remainingCooldown=remaining_ms)
        self.remaining_ms = remaining_ms


class ActionBlockedError(GameError):
    """An active status effect forbids the requested action."""

    kind = 'PermissionError'
    default_code = 'StatusBlocked'


class StateError(GameError):
    kind = 'StateError'
    default_code = 'WrongPhase'
