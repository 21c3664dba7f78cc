import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


DAMAGE_KINDS = ('projectile', 'lightning', 'stealth', 'aoe', 'chain')
STATUS_KINDS = ('disable', 'invulnerability', 'control')
HEAL_KINDS = ('heal',)
RELAY_KINDS = ('push', 'obstacle')

ABILITY_SLOTS = ('normal', 'signature', 'ultimate')
UNIVERSAL_SLOT = 'universal'


class RoomPhase(str, enum.Enum):
    SELECTING_BIRDS = 'selecting_birds'
    IN_PROGRESS = 'in_progress'
    OVER = 'over'


@dataclass(frozen=True)
class AbilityDefinition:
    name: str
    key: str
    kind: str
    description: str = ''
    damage: int = 0
    heal: int = 0
    cooldown_ms: int = 0
    status_effect: Optional[str] = None
    status_duration_ms: int = 0
    # 'opponent' or 'caster'
    status_target: str = 'opponent'
    uses_per_match: Optional[int] = None
    push_force: Optional[int] = None
    chain_range: Optional[int] = None
    duration_ms: Optional[int] = None

    @property
    def has_status(self) -> bool:
        return bool(self.status_effect and self.status_duration_ms)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'name': self.name,
            'key': self.key,
            'type': self.kind,
            'description': self.description,
            'damage': self.damage,
            'heal': self.heal,
            'cooldown': self.cooldown_ms,
        }
        if self.status_effect:
            data['statusEffect'] = self.status_effect
            data['statusDuration'] = self.status_duration_ms
            data['statusTarget'] = self.status_target
        if self.uses_per_match is not None:
            data['usesPerMatch'] = self.uses_per_match
        if self.push_force is not None:
            data['pushForce'] = self.push_force
        if self.chain_range is not None:
            data['chainRange'] = self.chain_range
        if self.duration_ms is not None:
            data['duration'] = self.duration_ms
        return data


@dataclass(frozen=True)
class BirdStats:
    hp: int
    speed: int
    attack: int


@dataclass(frozen=True)
class BirdDefinition:
    id: str
    name: str
    stats: BirdStats
    normal: AbilityDefinition
    signature: AbilityDefinition
    ultimate: AbilityDefinition

    def ability(self, slot: str) -> Optional[AbilityDefinition]:
        if slot not in ABILITY_SLOTS:
            return None
        return getattr(self, slot)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'stats': {'hp': self.stats.hp, 'speed': self.stats.speed, 'attack': self.stats.attack},
            'abilities': {slot: self.ability(slot).to_dict() for slot in ABILITY_SLOTS},
        }


@dataclass
class WaitingPlayer:
    connection_id: str
    name: str
    enqueued_at: int


@dataclass
class PlayerState:
    slot: int
    name: str
    connection_id: Optional[str] = None
    bird_id: Optional[str] = None
    locked: bool = False
    hp: int = 100
    max_hp: int = 100
    attack: int = 100
    speed: int = 100
    score: int = 0
    ultimate_uses_left: Optional[int] = None
    last_used: Dict[str, int] = field(default_factory=dict)
    # effect name -> expiry timestamp (ms)
    status_effects: Dict[str, int] = field(default_factory=dict)

    @property
    def connected(self) -> bool:
        return self.connection_id is not None

    @property
    def alive(self) -> bool:
        return self.hp > 0

    def load_bird(self, bird: BirdDefinition) -> None:
        """Reset combat stats from a bird definition (on lock-in)."""
        self.bird_id = bird.id
        self.hp = bird.stats.hp
        self.max_hp = bird.stats.hp
        self.attack = bird.stats.attack
        self.speed = bird.stats.speed
        self.ultimate_uses_left = bird.ultimate.uses_per_match
        self.last_used = {}
        self.status_effects = {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'playerNumber': self.slot,
            'name': self.name,
            'connected': self.connected,
            'birdId': self.bird_id,
            'isLocked': self.locked,
            'hp': self.hp,
            'maxHp': self.max_hp,
            'attack': self.attack,
            'speed': self.speed,
            'score': self.score,
            'ultimateUsesLeft': self.ultimate_uses_left,
            'statusEffects': dict(self.status_effects),
        }
