"""Status effects stored as ``effect name -> expiry timestamp`` on a player.

Expiry is checked lazily against the caller's clock; there are no timers
attached to individual effects, so nothing outlives a deleted room.
"""

from typing import Dict, List

from birdbattle.models import PlayerState


INVULNERABLE = 'invulnerable'
FREEZE = 'freeze'
NIGHTMARE = 'nightmare'
SLOW = 'slow'

BLOCKS_ABILITIES = frozenset({FREEZE, NIGHTMARE})
BLOCKS_MOVEMENT = frozenset({FREEZE})


def apply_status(player: PlayerState, effect: str, duration_ms: int, now: int) -> int:
    """Set (or refresh) an effect; returns its expiry timestamp."""
    expires_at = now + int(duration_ms)
    player.status_effects[effect] = expires_at
    return expires_at


def has_status(player: PlayerState, effect: str, now: int) -> bool:
    expires_at = player.status_effects.get(effect)
    if expires_at is None:
        return False
    return now <= expires_at


def expire_statuses(player: PlayerState, now: int) -> List[str]:
    expired = [name for name, expires_at in player.status_effects.items() if now > expires_at]
    for name in expired:
        del player.status_effects[name]
    return expired


def active_statuses(player: PlayerState, now: int) -> Dict[str, int]:
    """Remaining milliseconds per active effect."""
    return {
        name: expires_at - now
        for name, expires_at in player.status_effects.items()
        if now <= expires_at
    }


def is_invulnerable(player: PlayerState, now: int) -> bool:
    return has_status(player, INVULNERABLE, now)


def can_act(player: PlayerState, now: int) -> bool:
    return not any(has_status(player, effect, now) for effect in BLOCKS_ABILITIES)


def can_move(player: PlayerState, now: int) -> bool:
    return not any(has_status(player, effect, now) for effect in BLOCKS_MOVEMENT)


def blocking_status(player: PlayerState, now: int):
    for effect in sorted(BLOCKS_ABILITIES):
        if has_status(player, effect, now):
            return effect
    return None
