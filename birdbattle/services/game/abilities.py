import math
from dataclasses import dataclass, field
from typing import Any, Dict, List

from birdbattle.models import (
    DAMAGE_KINDS,
    HEAL_KINDS,
    RELAY_KINDS,
    STATUS_KINDS,
    AbilityDefinition,
    PlayerState,
)
from .effects import apply_status, is_invulnerable


DAMAGE_EFFECT_TYPES = {
    'aoe': 'aoe_damage',
    'chain': 'chain_damage',
}


@dataclass
class AbilityResult:
    damage: int = 0
    healing: int = 0
    effects: List[Dict[str, Any]] = field(default_factory=list)
    statuses_applied: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'damage': self.damage,
            'healing': self.healing,
            'effects': list(self.effects),
        }


def calculate_damage(attacker: PlayerState, base_damage) -> int:
    return int(math.floor(base_damage * attacker.attack / 100))


def apply_damage(target: PlayerState, amount, now: int) -> int:
    """Subtract HP, clamped at zero. Invulnerable targets take nothing.

    Fractional amounts are floored so HP stays integral. Returns the HP
    actually removed.
    """
    amount = int(math.floor(amount))
    if amount <= 0 or is_invulnerable(target, now):
        return 0
    before = target.hp
    target.hp = max(0, target.hp - amount)
    return before - target.hp


def apply_heal(target: PlayerState, amount) -> int:
    """Add HP (floored) without exceeding max HP; returns the HP actually restored."""
    amount = int(math.floor(amount))
    if amount <= 0:
        return 0
    gained = min(amount, max(0, target.max_hp - target.hp))
    target.hp += gained
    return gained


def set_fatal(target: PlayerState) -> int:
    """Drop HP to zero unconditionally (pipe collisions ignore invulnerability)."""
    lost = target.hp
    target.hp = 0
    return lost


def _apply_ability_status(ability, caster, opponent, result, now):
    target = caster if ability.status_target == 'caster' else opponent
    expires_at = apply_status(target, ability.status_effect, ability.status_duration_ms, now)
    entry = {
        'type': 'status_effect',
        'target': target.slot,
        'effect': ability.status_effect,
        'duration': ability.status_duration_ms,
    }
    result.effects.append(entry)
    result.statuses_applied.append({
        'target': target.slot,
        'effect': ability.status_effect,
        'expiresAt': expires_at,
    })


def resolve(ability: AbilityDefinition, caster: PlayerState, opponent: PlayerState, now: int) -> AbilityResult:
    """Apply one ability activation to the two player states.

    Routing is driven by ``ability.kind``: damage kinds hit the opponent,
    heals restore the caster, status kinds attach ``ability.status_effect``
    to whichever side ``ability.status_target`` names, and push/obstacle
    kinds only describe an effect for the clients' physics. A damage or
    heal ability that also carries a status effect applies it in the same
    call.
    """
    result = AbilityResult()
    kind = ability.kind

    if kind in DAMAGE_KINDS:
        damage = apply_damage(opponent, calculate_damage(caster, ability.damage), now)
        result.damage = damage
        entry = {'type': DAMAGE_EFFECT_TYPES.get(kind, 'damage'), 'target': opponent.slot, 'amount': damage}
        if kind == 'chain' and ability.chain_range is not None:
            entry['chainRange'] = ability.chain_range
        result.effects.append(entry)
    elif kind in HEAL_KINDS:
        healed = apply_heal(caster, ability.heal)
        result.healing = healed
        result.effects.append({'type': 'heal', 'target': caster.slot, 'amount': healed})
    elif kind in STATUS_KINDS:
        if ability.has_status:
            _apply_ability_status(ability, caster, opponent, result, now)
        return result
    elif kind in RELAY_KINDS:
        if kind == 'push':
            result.effects.append({'type': 'push', 'target': opponent.slot, 'force': ability.push_force})
        else:
            result.effects.append({'type': 'create_obstacle', 'target': opponent.slot, 'duration': ability.duration_ms})
    else:
        raise ValueError(f"unknown ability kind: {kind}")

    # Secondary effect carried by a damage/heal ability, e.g. Ice Shard's slow
    if ability.has_status:
        _apply_ability_status(ability, caster, opponent, result, now)
    return result
