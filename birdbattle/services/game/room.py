import threading
from typing import Any, Callable, Dict, List, Optional

from birdbattle.errors import (
    ActionBlockedError,
    ConflictError,
    CooldownError,
    StateError,
    ValidationError,
)
from birdbattle.messages import (
    ABILITY_USED,
    BIRD_SELECTED,
    BIRD_STOLEN,
    GAME_OVER,
    GAME_START,
    HEALTH_UPDATE,
    OPPONENT_DISCONNECTED,
    OPPONENT_MOVE,
    SCORE_UPDATE,
    STATUS_EXPIRED,
    Outbound,
)
from birdbattle.models import UNIVERSAL_SLOT, PlayerState, RoomPhase
from .abilities import apply_damage, apply_heal, resolve, set_fatal
from .effects import active_statuses, blocking_status, can_act, can_move, expire_statuses


REASON_HP = 'HP depleted'
REASON_PIPE = 'Pipe collision'
REASON_DISCONNECT = 'Opponent disconnected'


class Room:
    """One two-player match and its state machine.

    ``SELECTING_BIRDS -> IN_PROGRESS -> OVER``; the registry deletes the
    room afterwards. Every public method takes ``self.lock`` and returns the
    events to deliver; a rejected call raises before anything is mutated.
    """

    def __init__(self, room_id: str, player1: PlayerState, player2: PlayerState, catalog,
                 clock: Callable[[], int], created_at: int = None,
                 phase: RoomPhase = RoomPhase.SELECTING_BIRDS):
        self.id = room_id
        self.catalog = catalog
        self.clock = clock
        self.created_at = clock() if created_at is None else created_at
        self.phase = phase
        self.players: Dict[int, PlayerState] = {1: player1, 2: player2}
        self.winner: Optional[int] = None
        self.over_reason: Optional[str] = None
        self.over_at: Optional[int] = None
        # rebuilt from a client's joinGameRoom rather than created by matchmaking
        self.reconstructed = False
        self.lock = threading.RLock()

    # ---- helpers ----

    def player(self, slot: int) -> PlayerState:
        return self.players[slot]

    def opponent(self, slot: int) -> PlayerState:
        return self.players[3 - slot]

    @property
    def is_over(self) -> bool:
        return self.phase == RoomPhase.OVER

    def slot_for(self, connection_id: str) -> Optional[int]:
        for slot, player in self.players.items():
            if player.connection_id == connection_id:
                return slot
        return None

    def attach(self, slot: int, connection_id: str, name: str = None) -> None:
        with self.lock:
            player = self.players[slot]
            player.connection_id = connection_id
            if name:
                player.name = name

    def detach(self, slot: int) -> None:
        with self.lock:
            self.players[slot].connection_id = None

    def _require_in_progress(self) -> None:
        if self.phase == RoomPhase.SELECTING_BIRDS:
            raise StateError('Game not started', code='GameNotStarted')
        if self.phase == RoomPhase.OVER:
            raise StateError('Game is over', code='GameOver')

    def _expire_statuses(self, now: int) -> List[Outbound]:
        events = []
        for slot, player in self.players.items():
            for effect in expire_statuses(player, now):
                events.append(Outbound(STATUS_EXPIRED, {'playerNumber': slot, 'effect': effect}))
        return events

    # ---- bird selection ----

    def select_bird(self, slot: int, bird_id: str, lock: bool = False) -> List[Outbound]:
        with self.lock:
            if self.phase != RoomPhase.SELECTING_BIRDS:
                raise StateError('Bird selection is closed', code='SelectionClosed')
            bird = self.catalog.get(bird_id)
            me = self.player(slot)
            opponent = self.opponent(slot)
            if me.locked:
                raise ConflictError('Bird already locked in', code='AlreadyLocked', birdId=me.bird_id)
            if opponent.bird_id == bird_id and opponent.locked:
                raise ConflictError(f"{bird.name} is locked by your opponent", code='BirdLocked', birdId=bird_id)

            now = self.clock()
            events = []
            if opponent.bird_id == bird_id:
                opponent.bird_id = None
                events.append(Outbound(BIRD_STOLEN, {
                    'birdId': bird_id,
                    'fromPlayer': opponent.slot,
                    'toPlayer': me.slot,
                    'timestamp': now,
                }))

            me.bird_id = bird_id
            me.locked = lock
            if lock:
                me.load_bird(bird)
            events.append(Outbound(BIRD_SELECTED, {
                'playerNumber': me.slot,
                'birdId': bird_id,
                'isLocked': lock,
                'timestamp': now,
            }))
            events.extend(self._maybe_start(now))
            return events

    def _maybe_start(self, now: int) -> List[Outbound]:
        if self.phase != RoomPhase.SELECTING_BIRDS:
            return []
        p1, p2 = self.players[1], self.players[2]
        if not (p1.locked and p2.locked and p1.bird_id and p2.bird_id):
            return []
        if p1.bird_id == p2.bird_id:
            return []
        self.phase = RoomPhase.IN_PROGRESS
        return [
            Outbound(GAME_START, {
                'player1Bird': p1.bird_id,
                'player2Bird': p2.bird_id,
                'player1Name': p1.name,
                'player2Name': p2.name,
            }),
            self.health_update(now),
        ]

    # ---- combat ----

    def use_ability(self, slot: int, ability_type: str) -> List[Outbound]:
        with self.lock:
            self._require_in_progress()
            me = self.player(slot)
            opponent = self.opponent(slot)
            if not me.locked or not me.bird_id:
                raise StateError('No bird locked in', code='NoBirdLocked')
            now = self.clock()
            effect = blocking_status(me, now)
            if effect is not None:
                raise ActionBlockedError(f"Cannot use abilities while affected by {effect}", effect=effect)

            slot_name = self.catalog.normalize_slot(me.bird_id, ability_type)
            ability = self.catalog.ability(me.bird_id, slot_name) if slot_name else None
            if ability is None:
                raise ValidationError('Invalid ability', code='InvalidAbility', abilityType=ability_type)

            last_used = me.last_used.get(slot_name)
            if last_used is not None and now - last_used < ability.cooldown_ms:
                remaining = ability.cooldown_ms - (now - last_used)
                raise CooldownError('Ability on cooldown', remaining_ms=remaining)

            limited = slot_name == 'ultimate' and me.ultimate_uses_left is not None
            if limited and me.ultimate_uses_left <= 0:
                raise ConflictError('Ultimate already used', code='NoUsesLeft')

            events = self._expire_statuses(now)
            result = resolve(ability, me, opponent, now)
            me.last_used[slot_name] = now
            if limited:
                me.ultimate_uses_left -= 1

            payload = result.to_dict()
            payload.update({
                'playerNumber': slot,
                'abilityType': slot_name,
                'abilityName': ability.name,
                'universal': slot_name == UNIVERSAL_SLOT,
                'timestamp': now,
            })
            events.append(Outbound(ABILITY_USED, payload))
            events.append(self.health_update(now))
            events.extend(self._check_defeat(REASON_HP))
            return events

    def relay_move(self, slot: int, payload: Any) -> List[Outbound]:
        with self.lock:
            self._require_in_progress()
            return [Outbound(OPPONENT_MOVE, payload, to=(3 - slot,))]

    def relay_ability(self, slot: int, payload: Dict[str, Any]) -> List[Outbound]:
        """Cosmetic ``abilityUsed`` relay kept for older clients; no state change."""
        with self.lock:
            self._require_in_progress()
            return [Outbound(ABILITY_USED, {
                'playerNumber': slot,
                'ability': payload.get('ability'),
                'target': payload.get('target'),
            })]

    def report_damage(self, slot: int, target: int, amount) -> List[Outbound]:
        with self.lock:
            self._require_in_progress()
            now = self.clock()
            events = self._expire_statuses(now)
            apply_damage(self.player(target), amount, now)
            events.append(self.health_update(now))
            events.extend(self._check_defeat(REASON_HP))
            return events

    def report_heal(self, slot: int, target: int, amount) -> List[Outbound]:
        with self.lock:
            self._require_in_progress()
            now = self.clock()
            apply_heal(self.player(target), amount)
            return [self.health_update(now)]

    def report_pipe_collision(self, slot: int, target: int = None) -> List[Outbound]:
        # Instant-fatal: invulnerability is deliberately not consulted here.
        with self.lock:
            self._require_in_progress()
            now = self.clock()
            set_fatal(self.player(target or slot))
            return [self.health_update(now)] + self._check_defeat(REASON_PIPE)

    def report_score(self, slot: int, amount: int = 1) -> List[Outbound]:
        with self.lock:
            self._require_in_progress()
            self.player(slot).score += amount
            return [Outbound(SCORE_UPDATE, {
                'player1Score': self.players[1].score,
                'player2Score': self.players[2].score,
            })]

    # ---- terminal transitions ----

    def _check_defeat(self, reason: str) -> List[Outbound]:
        if self.phase != RoomPhase.IN_PROGRESS:
            return []
        for slot in (1, 2):
            if self.players[slot].hp <= 0:
                return self._finish(3 - slot, reason)
        return []

    def _finish(self, winner: int, reason: str, to=(1, 2)) -> List[Outbound]:
        self.phase = RoomPhase.OVER
        self.winner = winner
        self.over_reason = reason
        self.over_at = self.clock()
        return [Outbound(GAME_OVER, {
            'winner': winner,
            'winnerName': self.players[winner].name,
            'loserName': self.players[3 - winner].name,
            'reason': reason,
            'player1Score': self.players[1].score,
            'player2Score': self.players[2].score,
        }, to=to)]

    def forfeit(self, slot: int) -> List[Outbound]:
        """End the match because ``slot`` never came back."""
        with self.lock:
            if self.is_over:
                return []
            winner = 3 - slot
            events = [Outbound(OPPONENT_DISCONNECTED, {'disconnectedPlayer': slot}, to=(winner,))]
            events.extend(self._finish(winner, REASON_DISCONNECT, to=(winner,)))
            return events

    # ---- views ----

    def _status_view(self, player: PlayerState, now: int) -> Dict[str, Any]:
        return {
            'effects': active_statuses(player, now),
            'canMove': can_move(player, now),
            'canAct': can_act(player, now),
        }

    def health_update(self, now: int = None) -> Outbound:
        now = self.clock() if now is None else now
        p1, p2 = self.players[1], self.players[2]
        return Outbound(HEALTH_UPDATE, {
            'player1HP': p1.hp,
            'player2HP': p2.hp,
            'player1MaxHP': p1.max_hp,
            'player2MaxHP': p2.max_hp,
            'player1Status': self._status_view(p1, now),
            'player2Status': self._status_view(p2, now),
        })

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            return {
                'roomId': self.id,
                'phase': self.phase.value,
                'createdAt': self.created_at,
                'players': [self.players[1].to_dict(), self.players[2].to_dict()],
                'winner': self.winner,
                'reason': self.over_reason,
            }
