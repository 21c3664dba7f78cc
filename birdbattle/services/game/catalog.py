from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from birdbattle.errors import ValidationError
from birdbattle.models import (
    ABILITY_SLOTS,
    UNIVERSAL_SLOT,
    AbilityDefinition,
    BirdDefinition,
    BirdStats,
)


PHOENIX = BirdDefinition(
    id='phoenix',
    name='Phoenix',
    stats=BirdStats(hp=80, speed=90, attack=100),
    normal=AbilityDefinition(
        name='Ember Shot', key='Q', kind='projectile', damage=10, cooldown_ms=6000,
        description='10 damage projectile',
    ),
    signature=AbilityDefinition(
        name='Flame Wave', key='E', kind='aoe', damage=20, cooldown_ms=10000,
        description='20 AoE damage wave',
    ),
    ultimate=AbilityDefinition(
        name='Rebirth', key='X', kind='heal', heal=50, cooldown_ms=15000, uses_per_match=1,
        description='Heal 50 HP (once per match)',
    ),
)

FROSTBEAK = BirdDefinition(
    id='frostbeak',
    name='Frostbeak',
    stats=BirdStats(hp=90, speed=70, attack=75),
    normal=AbilityDefinition(
        name='Ice Shard', key='Q', kind='projectile', damage=8, cooldown_ms=6000,
        status_effect='slow', status_duration_ms=3000,
        description='8 damage + slow effect',
    ),
    signature=AbilityDefinition(
        name='Blizzard', key='E', kind='obstacle', cooldown_ms=10000, duration_ms=5000,
        description='Creates obstacle for opponent',
    ),
    ultimate=AbilityDefinition(
        name='Freeze Time', key='X', kind='disable', cooldown_ms=15000,
        status_effect='freeze', status_duration_ms=3000,
        description='Freezes opponent for 3 seconds',
    ),
)

THUNDERWING = BirdDefinition(
    id='thunderwing',
    name='Thunderwing',
    stats=BirdStats(hp=70, speed=100, attack=80),
    normal=AbilityDefinition(
        name='Shock Bolt', key='Q', kind='lightning', damage=12, cooldown_ms=6000,
        description='12 damage lightning',
    ),
    signature=AbilityDefinition(
        name='Wind Gust', key='E', kind='push', cooldown_ms=10000, push_force=200,
        description='Pushes opponent toward obstacles',
    ),
    ultimate=AbilityDefinition(
        name='Lightning Strike', key='X', kind='chain', damage=30, cooldown_ms=15000, chain_range=150,
        description='30 damage, chains to obstacles',
    ),
)

SHADOWFEATHER = BirdDefinition(
    id='shadowfeather',
    name='Shadowfeather',
    stats=BirdStats(hp=60, speed=85, attack=90),
    normal=AbilityDefinition(
        name='Shadow Strike', key='Q', kind='stealth', damage=15, cooldown_ms=6000,
        description='15 damage stealth attack',
    ),
    signature=AbilityDefinition(
        name='Vanish', key='E', kind='invulnerability', cooldown_ms=10000,
        status_effect='invulnerable', status_duration_ms=2000, status_target='caster',
        description='2 seconds invulnerability',
    ),
    ultimate=AbilityDefinition(
        name='Nightmare', key='X', kind='control', cooldown_ms=15000,
        status_effect='nightmare', status_duration_ms=5000,
        description='Reverses controls + disables abilities',
    ),
)

UNIVERSAL_HEAL = AbilityDefinition(
    name='Heal', key='C', kind='heal', heal=15, cooldown_ms=10000,
    description='Heal 15 HP',
)

DEFAULT_BIRDS = (PHOENIX, FROSTBEAK, THUNDERWING, SHADOWFEATHER)


class BirdCatalog:
    """Read-only table of playable birds plus the universal abilities."""

    def __init__(self, birds: Iterable[BirdDefinition] = DEFAULT_BIRDS,
                 universal: Optional[Mapping[str, AbilityDefinition]] = None):
        table: Dict[str, BirdDefinition] = {}
        for bird in birds:
            if bird.id in table:
                raise ValueError(f"duplicate bird id: {bird.id}")
            table[bird.id] = bird
        self._birds = MappingProxyType(table)
        self._universal = MappingProxyType(dict(universal or {'heal': UNIVERSAL_HEAL}))

    def __len__(self) -> int:
        return len(self._birds)

    def __contains__(self, bird_id) -> bool:
        return self.is_valid(bird_id)

    def ids(self) -> List[str]:
        return list(self._birds)

    def is_valid(self, bird_id) -> bool:
        return isinstance(bird_id, str) and bird_id in self._birds

    def get(self, bird_id) -> BirdDefinition:
        if not self.is_valid(bird_id):
            raise ValidationError(f"Invalid bird type: {bird_id}", code='InvalidBird')
        return self._birds[bird_id]

    def universal_ability(self, name: str = 'heal') -> Optional[AbilityDefinition]:
        return self._universal.get(name)

    def ability(self, bird_id: str, slot: str) -> Optional[AbilityDefinition]:
        """Look up an ability by slot name or key binding (``Q``, ``E``, ``X``, ``C``)."""
        slot = self.normalize_slot(bird_id, slot)
        if slot is None:
            return None
        if slot == UNIVERSAL_SLOT:
            return self.universal_ability()
        return self.get(bird_id).ability(slot)

    def normalize_slot(self, bird_id: str, slot) -> Optional[str]:
        if not isinstance(slot, str) or not slot:
            return None
        lowered = slot.lower()
        if lowered == UNIVERSAL_SLOT or lowered in self._universal:
            return UNIVERSAL_SLOT
        if lowered in ABILITY_SLOTS:
            return lowered
        key = slot.upper()
        heal = self.universal_ability()
        if heal is not None and heal.key == key:
            return UNIVERSAL_SLOT
        if self.is_valid(bird_id):
            bird = self._birds[bird_id]
            for name in ABILITY_SLOTS:
                if bird.ability(name).key == key:
                    return name
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'birds': {bird_id: bird.to_dict() for bird_id, bird in self._birds.items()},
            'universal': {name: ability.to_dict() for name, ability in self._universal.items()},
        }


DEFAULT_CATALOG = BirdCatalog()
