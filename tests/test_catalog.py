import pytest

from birdbattle.errors import ValidationError
from birdbattle.models import AbilityDefinition, BirdDefinition, BirdStats
from birdbattle.services.game.catalog import DEFAULT_BIRDS, DEFAULT_CATALOG, BirdCatalog, UNIVERSAL_HEAL


def test_default_catalog_has_reference_birds():
    assert set(DEFAULT_CATALOG.ids()) == {'phoenix', 'frostbeak', 'thunderwing', 'shadowfeather'}
    phoenix = DEFAULT_CATALOG.get('phoenix')
    assert phoenix.stats.hp == 80
    assert phoenix.ultimate.uses_per_match == 1
    assert DEFAULT_CATALOG.get('shadowfeather').signature.status_target == 'caster'


def test_unknown_bird_is_rejected():
    assert not DEFAULT_CATALOG.is_valid('penguin')
    assert not DEFAULT_CATALOG.is_valid(None)
    with pytest.raises(ValidationError) as exc:
        DEFAULT_CATALOG.get('penguin')
    assert exc.value.code == 'InvalidBird'


def test_ability_lookup_by_slot_and_key():
    assert DEFAULT_CATALOG.ability('frostbeak', 'normal').name == 'Ice Shard'
    assert DEFAULT_CATALOG.ability('frostbeak', 'x').name == 'Freeze Time'
    assert DEFAULT_CATALOG.ability('frostbeak', 'universal') is UNIVERSAL_HEAL
    assert DEFAULT_CATALOG.ability('frostbeak', 'C') is UNIVERSAL_HEAL
    assert DEFAULT_CATALOG.ability('frostbeak', 'mega') is None


def test_catalog_is_read_only_and_extensible():
    with pytest.raises(TypeError):
        DEFAULT_CATALOG._birds['penguin'] = None

    penguin = BirdDefinition(
        id='penguin',
        name='Penguin',
        stats=BirdStats(hp=120, speed=40, attack=60),
        normal=AbilityDefinition(name='Slide', key='Q', kind='projectile', damage=5, cooldown_ms=3000),
        signature=AbilityDefinition(name='Huddle', key='E', kind='heal', heal=10, cooldown_ms=8000),
        ultimate=AbilityDefinition(name='Avalanche', key='X', kind='aoe', damage=25, cooldown_ms=15000),
    )
    catalog = BirdCatalog(DEFAULT_BIRDS + (penguin,))
    assert catalog.is_valid('penguin')
    assert len(catalog) == 5
    assert catalog.to_dict()['birds']['penguin']['abilities']['ultimate']['type'] == 'aoe'


def test_duplicate_ids_are_refused():
    with pytest.raises(ValueError):
        BirdCatalog([DEFAULT_CATALOG.get('phoenix'), DEFAULT_CATALOG.get('phoenix')])
