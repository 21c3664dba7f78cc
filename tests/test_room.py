import pytest

from birdbattle.errors import ActionBlockedError, ConflictError, CooldownError, StateError, ValidationError
from birdbattle.models import RoomPhase


def _names(events):
    return [e.event for e in events]


def _one(events, name):
    matches = [e for e in events if e.event == name]
    assert len(matches) == 1
    return matches[0]


# ---- bird selection ----

def test_distinct_unlocked_selections_both_succeed(room):
    first = room.select_bird(1, 'phoenix')
    second = room.select_bird(2, 'frostbeak')
    assert _names(first) == ['birdSelected']
    assert _names(second) == ['birdSelected']
    assert second[0].payload['playerNumber'] == 2
    assert second[0].payload['isLocked'] is False
    assert room.player(1).bird_id == 'phoenix'
    assert room.player(2).bird_id == 'frostbeak'
    assert room.phase == RoomPhase.SELECTING_BIRDS


def test_selecting_an_unlocked_bird_steals_it(room):
    room.select_bird(1, 'phoenix')
    events = room.select_bird(2, 'phoenix')
    assert _names(events) == ['birdStolen', 'birdSelected']
    stolen = events[0].payload
    assert stolen['fromPlayer'] == 1
    assert stolen['toPlayer'] == 2
    assert stolen['birdId'] == 'phoenix'
    assert room.player(1).bird_id is None
    assert room.player(2).bird_id == 'phoenix'


def test_locked_bird_cannot_be_taken(room):
    room.select_bird(1, 'phoenix', lock=True)
    for lock in (False, True):
        with pytest.raises(ConflictError) as exc:
            room.select_bird(2, 'phoenix', lock=lock)
        assert exc.value.code == 'BirdLocked'
    assert room.player(1).bird_id == 'phoenix'
    assert room.player(2).bird_id is None


def test_lock_in_is_final(room):
    room.select_bird(1, 'phoenix', lock=True)
    with pytest.raises(ConflictError) as exc:
        room.select_bird(1, 'frostbeak')
    assert exc.value.code == 'AlreadyLocked'


def test_unknown_bird_is_rejected_without_changes(room):
    room.select_bird(1, 'phoenix')
    with pytest.raises(ValidationError) as exc:
        room.select_bird(1, 'dodo')
    assert exc.value.code == 'InvalidBird'
    assert room.player(1).bird_id == 'phoenix'


def test_lock_loads_bird_stats(room):
    room.select_bird(2, 'thunderwing', lock=True)
    bo = room.player(2)
    assert (bo.hp, bo.max_hp, bo.attack, bo.speed) == (70, 70, 80, 100)
    assert bo.ultimate_uses_left is None


def test_game_starts_only_when_both_locked(room):
    assert _names(room.select_bird(1, 'phoenix', lock=True)) == ['birdSelected']
    assert room.phase == RoomPhase.SELECTING_BIRDS
    assert _names(room.select_bird(2, 'frostbeak')) == ['birdSelected']
    assert room.phase == RoomPhase.SELECTING_BIRDS
    events = room.select_bird(2, 'frostbeak', lock=True)
    assert _names(events) == ['birdSelected', 'gameStart', 'healthUpdate']
    assert room.phase == RoomPhase.IN_PROGRESS


def test_game_start_fires_once(room):
    events = room.select_bird(1, 'phoenix', lock=True)
    events += room.select_bird(2, 'frostbeak', lock=True)
    for _ in range(3):
        with pytest.raises(StateError):
            room.select_bird(2, 'frostbeak', lock=True)
    assert _names(events).count('gameStart') == 1


def test_steal_then_lock_scenario(room):
    room.select_bird(1, 'phoenix')
    steal = room.select_bird(2, 'phoenix')
    assert _one(steal, 'birdStolen').payload['fromPlayer'] == 1
    assert room.player(1).bird_id is None
    room.select_bird(1, 'frostbeak', lock=True)
    assert room.phase == RoomPhase.SELECTING_BIRDS
    events = room.select_bird(2, 'phoenix', lock=True)
    start = _one(events, 'gameStart').payload
    assert start == {
        'player1Bird': 'frostbeak',
        'player2Bird': 'phoenix',
        'player1Name': 'Ann',
        'player2Name': 'Bo',
    }


# ---- combat ----

def test_ability_before_start_is_rejected(room):
    room.select_bird(1, 'phoenix', lock=True)
    with pytest.raises(StateError) as exc:
        room.use_ability(1, 'normal')
    assert exc.value.code == 'GameNotStarted'


def test_ability_hits_and_broadcasts_health(battle_room):
    events = battle_room.use_ability(1, 'normal')
    used = _one(events, 'abilityUsed').payload
    assert used['playerNumber'] == 1
    assert used['abilityType'] == 'normal'
    assert used['damage'] == 10
    health = _one(events, 'healthUpdate').payload
    assert health['player1HP'] == 80
    assert health['player2HP'] == 50


def test_unknown_ability_is_rejected(battle_room):
    with pytest.raises(ValidationError) as exc:
        battle_room.use_ability(1, 'mega')
    assert exc.value.code == 'InvalidAbility'


def test_cooldown_blocks_repeat_use(battle_room, clock):
    battle_room.use_ability(1, 'normal')
    clock.advance(1000)
    with pytest.raises(CooldownError) as exc:
        battle_room.use_ability(1, 'normal')
    assert exc.value.remaining_ms == 5000
    assert exc.value.to_dict()['remainingCooldown'] == 5000
    assert battle_room.player(2).hp == 50
    # other slots keep their own cooldowns
    battle_room.use_ability(1, 'signature')
    clock.advance(5000)
    battle_room.use_ability(1, 'Q')
    assert battle_room.player(2).hp == 50 - 20 - 10


def test_universal_heal_has_its_own_cooldown(battle_room, clock):
    battle_room.player(1).hp = 40
    events = battle_room.use_ability(1, 'universal')
    assert _one(events, 'abilityUsed').payload['healing'] == 15
    assert battle_room.player(1).hp == 55
    with pytest.raises(CooldownError):
        battle_room.use_ability(1, 'C')
    battle_room.use_ability(1, 'normal')


def test_limited_ultimate_can_be_used_once(battle_room, clock):
    battle_room.player(1).hp = 10
    battle_room.use_ability(1, 'ultimate')
    assert battle_room.player(1).hp == 60
    assert battle_room.player(1).ultimate_uses_left == 0
    clock.advance(60_000)
    with pytest.raises(ConflictError) as exc:
        battle_room.use_ability(1, 'ultimate')
    assert exc.value.code == 'NoUsesLeft'


def test_nightmare_blocks_abilities_until_it_expires(battle_room, clock):
    battle_room.use_ability(2, 'ultimate')
    clock.advance(1000)
    with pytest.raises(ActionBlockedError) as exc:
        battle_room.use_ability(1, 'normal')
    assert exc.value.code == 'StatusBlocked'
    assert exc.value.to_dict()['kind'] == 'PermissionError'
    clock.advance(4001)
    events = battle_room.use_ability(1, 'normal')
    expired = _one(events, 'statusExpired').payload
    assert expired == {'playerNumber': 1, 'effect': 'nightmare'}


def test_invulnerable_player_ignores_reported_damage_but_heals(battle_room):
    battle_room.report_damage(1, 2, 20)
    assert battle_room.player(2).hp == 40
    battle_room.use_ability(2, 'signature')
    events = battle_room.report_damage(1, 2, 30)
    assert battle_room.player(2).hp == 40
    assert _one(events, 'healthUpdate').payload['player2Status']['effects'] == {'invulnerable': 2000}
    battle_room.use_ability(1, 'normal')
    assert battle_room.player(2).hp == 40
    battle_room.report_heal(2, 2, 5)
    assert battle_room.player(2).hp == 45


def test_pipe_collision_is_fatal_even_when_invulnerable(battle_room):
    battle_room.use_ability(2, 'signature')
    events = battle_room.report_pipe_collision(2)
    assert battle_room.player(2).hp == 0
    over = _one(events, 'gameOver').payload
    assert over['winner'] == 1
    assert over['reason'] == 'Pipe collision'
    assert over['winnerName'] == 'Ann'
    assert over['loserName'] == 'Bo'


def test_hp_stays_within_bounds(battle_room):
    steps = [('damage', 2, 15), ('heal', 2, 100), ('damage', 1, 30.5), ('heal', 1, 7),
             ('damage', 1, 0), ('heal', 2, 0), ('damage', 2, 44)]
    for kind, target, amount in steps:
        if kind == 'damage':
            battle_room.report_damage(1, target, amount)
        else:
            battle_room.report_heal(1, target, amount)
        for player in battle_room.players.values():
            assert isinstance(player.hp, int)
            assert 0 <= player.hp <= player.max_hp


def test_win_detection_fires_once_and_freezes_room(battle_room):
    events = battle_room.report_damage(1, 2, 1000)
    assert battle_room.player(2).hp == 0
    assert _names(events).count('gameOver') == 1
    assert battle_room.phase == RoomPhase.OVER
    assert battle_room.winner == 1
    with pytest.raises(StateError) as exc:
        battle_room.report_damage(2, 1, 10)
    assert exc.value.code == 'GameOver'
    with pytest.raises(StateError):
        battle_room.use_ability(2, 'normal')
    assert battle_room.player(1).hp == 80


def test_ability_kill_ends_the_game(battle_room):
    battle_room.player(2).hp = 5
    events = battle_room.use_ability(1, 'normal')
    over = _one(events, 'gameOver').payload
    assert over['winner'] == 1
    assert over['reason'] == 'HP depleted'


def test_move_is_relayed_verbatim_to_opponent(battle_room):
    payload = {'action': 'move', 'x': 10, 'y': 20, 'velocityX': 1, 'velocityY': -3}
    events = battle_room.relay_move(1, payload)
    assert len(events) == 1
    assert events[0].event == 'opponentMove'
    assert events[0].payload is payload
    assert events[0].to == (2,)


def test_score_updates(battle_room):
    events = battle_room.report_score(2, 1)
    assert events[0].payload == {'player1Score': 0, 'player2Score': 1}


def test_forfeit_notifies_remaining_player(battle_room):
    events = battle_room.forfeit(2)
    assert _names(events) == ['opponentDisconnected', 'gameOver']
    assert all(e.to == (1,) for e in events)
    assert events[1].payload['reason'] == 'Opponent disconnected'
    assert battle_room.forfeit(2) == []
