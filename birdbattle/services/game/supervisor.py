import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from birdbattle.errors import ConflictError, NotFoundError, ValidationError
from birdbattle.messages import (
    GAME_JOINED,
    MATCH_FOUND,
    QUEUE_JOINED,
    ROOM_NOT_FOUND,
    FindMatch,
    GameAction,
    JoinGameRoom,
    Outbound,
    PlayerReady,
    SelectBird,
    UseAbility,
    parse_player_number,
)
from birdbattle.models import PlayerState
from .catalog import DEFAULT_CATALOG, BirdCatalog
from .matchmaking import MatchQueue
from .registry import RoomRegistry
from .room import Room


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SupervisorSettings:
    cleanup_delay_sec: float = 5.0
    grace_sec: float = 30.0
    stale_max_age_sec: float = 3600.0
    default_hp: int = 100
    max_name_length: int = 32

    @classmethod
    def from_config(cls, config) -> 'SupervisorSettings':
        return cls(
            cleanup_delay_sec=float(config.get('ROOM_CLEANUP_DELAY_SEC', 5)),
            grace_sec=float(config.get('RECONNECT_GRACE_SEC', 30)),
            stale_max_age_sec=float(config.get('STALE_ROOM_MAX_AGE_SEC', 3600)),
            default_hp=int(config.get('DEFAULT_PLAYER_HP', 100)),
            max_name_length=int(config.get('MAX_NAME_LENGTH', 32)),
        )


class ConnectionSupervisor:
    """Maps transport connections to (room, slot) and drives room lifecycles.

    Lock order is room lock, then ``self._lock``, then registry/queue lock;
    the supervisor lock is never held while waiting for a room. Popping a
    pair from the queue and a disconnect both run under ``self._lock`` so a
    player leaving mid-pairing is seen by one side or the other.
    """

    def __init__(self, emit: Callable[[str, Any, str], None], scheduler, logger,
                 catalog: BirdCatalog = DEFAULT_CATALOG, registry: RoomRegistry = None,
                 queue: MatchQueue = None, settings: SupervisorSettings = None,
                 clock: Callable[[], int] = now_ms):
        self._emit = emit
        self.scheduler = scheduler
        self.logger = logger
        self.catalog = catalog
        self.clock = clock
        self.registry = registry if registry is not None else RoomRegistry(clock)
        self.queue = queue if queue is not None else MatchQueue()
        self.settings = settings or SupervisorSettings()
        self._lock = threading.Lock()
        self._bindings: Dict[str, Tuple[str, int]] = {}
        # connections popped from the queue whose room is still being created
        self._pairing: Set[str] = set()
        self._left_while_pairing: Set[str] = set()

    # ---- connection bindings ----

    def binding(self, sid: str) -> Optional[Tuple[str, int]]:
        with self._lock:
            return self._bindings.get(sid)

    def _unbind_room(self, room_id: str) -> None:
        with self._lock:
            for sid in [s for s, (rid, _) in self._bindings.items() if rid == room_id]:
                del self._bindings[sid]

    def _new_player(self, slot: int, name: str, sid: Optional[str]) -> PlayerState:
        hp = self.settings.default_hp
        return PlayerState(slot=slot, name=name, connection_id=sid, hp=hp, max_hp=hp)

    # ---- delivery ----

    def _deliver(self, room: Room, events: List[Outbound]) -> None:
        for out in events:
            for slot in out.to:
                sid = room.player(slot).connection_id
                if sid:
                    self._emit(out.event, out.payload, sid)

    def _with_room(self, sid: str, room_id: str, action: Callable[[Room, int], List[Outbound]]) -> List[Outbound]:
        """Run one mutation on a room with its lock held, then deliver the events."""
        room = self.registry.require(room_id)
        with room.lock:
            if self.registry.get(room_id) is not room:
                raise NotFoundError('Room not found', code='RoomNotFound', roomId=room_id)
            slot = room.slot_for(sid)
            if slot is None:
                raise NotFoundError('Player not in room', code='PlayerNotInRoom', roomId=room_id)
            was_over = room.is_over
            events = action(room, slot)
            self._deliver(room, events)
            if room.is_over and not was_over:
                self._on_game_over(room)
            return events

    # ---- matchmaking ----

    def find_match(self, sid: str, msg: FindMatch) -> int:
        bound = self.binding(sid)
        if bound is not None:
            room = self.registry.get(bound[0])
            if room is not None and not room.is_over:
                raise ConflictError('Already in a match', code='AlreadyInMatch', roomId=bound[0])
        position = self.queue.enqueue(sid, msg.name, self.clock())
        self._emit(QUEUE_JOINED, {'position': position}, sid)
        self.logger.info(f"[queue] sid={sid} name={msg.name} position={position}")
        self._pair_waiting()
        return position

    def _pair_waiting(self) -> None:
        while True:
            with self._lock:
                pair = self.queue.pop_pair()
                if pair is None:
                    return
                first, second = pair
                self._pairing.update((first.connection_id, second.connection_id))
            room = self.registry.create(
                self._new_player(1, first.name, first.connection_id),
                self._new_player(2, second.name, second.connection_id),
                self.catalog,
            )
            with self._lock:
                left = []
                for waiting, slot in ((first, 1), (second, 2)):
                    sid = waiting.connection_id
                    self._pairing.discard(sid)
                    if sid in self._left_while_pairing:
                        self._left_while_pairing.discard(sid)
                        left.append(slot)
                    else:
                        self._bindings[sid] = (room.id, slot)
            if left:
                with room.lock:
                    for slot in left:
                        room.detach(slot)
                        self._start_grace(room, slot)
                self.logger.info(f"[match] room={room.id} slots={left} left before pairing finished")
            for me, other, number in ((first, second, 1), (second, first, 2)):
                if number in left:
                    continue
                self._emit(MATCH_FOUND, {
                    'roomId': room.id,
                    'opponent': other.name,
                    'opponentName': other.name,
                    'myName': me.name,
                    'playerNumber': number,
                }, me.connection_id)
            self.logger.info(f"[match] room={room.id} p1={first.name} p2={second.name}")

    # ---- bird selection ----

    def select_bird(self, sid: str, msg: SelectBird) -> List[Outbound]:
        return self._with_room(sid, msg.room_id,
                               lambda room, slot: room.select_bird(slot, msg.bird_id, msg.lock))

    def player_ready(self, sid: str, msg: PlayerReady) -> List[Outbound]:
        return self.select_bird(sid, SelectBird(room_id=msg.room_id, bird_id=msg.bird_id, lock=True))

    # ---- combat ----

    def use_ability(self, sid: str, msg: UseAbility) -> List[Outbound]:
        return self._with_room(sid, msg.room_id,
                               lambda room, slot: room.use_ability(slot, msg.ability_type))

    def game_action(self, sid: str, msg: GameAction) -> List[Outbound]:
        action = msg.action
        if action == 'move':
            return self._with_room(sid, msg.room_id, lambda room, slot: room.relay_move(slot, msg.payload))
        if action == 'ability':
            return self._with_room(sid, msg.room_id, lambda room, slot: room.relay_ability(slot, msg.payload))
        if action == 'damage':
            target, amount = msg.target_and_amount()
            return self._with_room(sid, msg.room_id,
                                   lambda room, slot: room.report_damage(slot, target, amount))
        if action == 'heal':
            target, amount = msg.target_and_amount()
            return self._with_room(sid, msg.room_id,
                                   lambda room, slot: room.report_heal(slot, target, amount))
        if action == 'pipeCollision':
            target = msg.payload.get('target')
            if target is not None:
                target = parse_player_number(target, 'pipeCollision')
            return self._with_room(sid, msg.room_id,
                                   lambda room, slot: room.report_pipe_collision(slot, target))
        if action == 'score':
            amount = msg.payload.get('amount', 1)
            if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
                raise ValidationError('Invalid score data')
            return self._with_room(sid, msg.room_id, lambda room, slot: room.report_score(slot, amount))
        raise ValidationError('Unknown action', code='UnknownAction')

    # ---- reconnection ----

    def join_game_room(self, sid: str, msg: JoinGameRoom) -> Optional[Room]:
        room = self.registry.get(msg.room_id)
        if room is None:
            room = self._reconstruct(sid, msg)
            if room is None:
                self._emit(ROOM_NOT_FOUND, {'roomId': msg.room_id}, sid)
                return None

        slot = msg.player_number
        with room.lock:
            if self.registry.get(msg.room_id) is not room:
                self._emit(ROOM_NOT_FOUND, {'roomId': msg.room_id}, sid)
                return None
            player = room.player(slot)
            if room.reconstructed and not player.locked and msg.bird_id is not None and not room.is_over:
                # Second seat of a rebuilt room brings its own bird
                player.load_bird(self.catalog.get(msg.bird_id))
                player.locked = True
            previous = player.connection_id
            self.scheduler.cancel(('grace', room.id, slot))
            room.attach(slot, sid, msg.name)
            with self._lock:
                if previous and previous != sid:
                    self._bindings.pop(previous, None)
                self._bindings[sid] = (room.id, slot)
            self._emit(GAME_JOINED, {
                'roomId': room.id,
                'playerNumber': slot,
                'state': room.snapshot(),
            }, sid)
        if previous != sid:
            self.logger.info(f"[reconnect] room={room.id} slot={slot} sid={sid} previous={previous}")
        return room

    def _reconstruct(self, sid: str, msg: JoinGameRoom) -> Optional[Room]:
        # Trusts the client's playerNumber/name: there is no session token to check.
        if self.registry.is_retired(msg.room_id):
            return None
        bird = self.catalog.get(msg.bird_id) if msg.bird_id is not None else None
        slot = msg.player_number
        players = {
            slot: self._new_player(slot, msg.name, None),
            3 - slot: self._new_player(3 - slot, 'Opponent', None),
        }
        if bird is not None:
            players[slot].load_bird(bird)
            players[slot].locked = True
        room = self.registry.restore(msg.room_id, players[1], players[2], self.catalog)
        if room is None:
            return None
        if room.players[slot] is players[slot]:
            self.logger.warning(f"[reconstruct] room={msg.room_id} slot={slot} name={msg.name}")
            # The other seat starts out disconnected and gets the usual grace window
            self._start_grace(room, 3 - slot)
        return room

    # ---- disconnects and cleanup ----

    def disconnect(self, sid: str) -> None:
        with self._lock:
            dequeued = self.queue.remove(sid)
            if sid in self._pairing:
                self._left_while_pairing.add(sid)
            bound = self._bindings.pop(sid, None)
        if dequeued:
            self.logger.info(f"[disconnect] sid={sid} removed from queue ({len(self.queue)} waiting)")
        if bound is None:
            return
        room_id, slot = bound
        room = self.registry.get(room_id)
        if room is None:
            return
        with room.lock:
            if room.player(slot).connection_id != sid:
                return
            room.detach(slot)
            if room.is_over:
                return
            self._start_grace(room, slot)
        self.logger.info(f"[disconnect] room={room_id} slot={slot} grace={self.settings.grace_sec}s")

    def _start_grace(self, room: Room, slot: int) -> None:
        self.scheduler.schedule(('grace', room.id, slot), self.settings.grace_sec,
                                self._grace_expired, room.id, slot)

    def _grace_expired(self, room_id: str, slot: int) -> None:
        room = self.registry.get(room_id)
        if room is None:
            return
        with room.lock:
            if self.registry.get(room_id) is not room or room.player(slot).connected:
                return
            self._deliver(room, room.forfeit(slot))
            self.logger.info(f"[game-over] room={room_id} slot={slot} did not reconnect")
            self._delete_room(room_id, 'grace expired')

    def _on_game_over(self, room: Room) -> None:
        self.logger.info(
            f"[game-over] room={room.id} winner={room.winner} reason={room.over_reason}"
        )
        for slot in (1, 2):
            self.scheduler.cancel(('grace', room.id, slot))
        self.scheduler.schedule(('cleanup', room.id), self.settings.cleanup_delay_sec,
                                self._delete_room, room.id, 'finished')

    def _delete_room(self, room_id: str, reason: str) -> bool:
        room = self.registry.get(room_id)
        if room is None:
            return False
        with room.lock:
            if self.registry.delete(room_id) is None:
                return False
        for key in (('grace', room_id, 1), ('grace', room_id, 2), ('cleanup', room_id)):
            self.scheduler.cancel(key)
        self._unbind_room(room_id)
        self.logger.info(f"[cleanup] room={room_id} reason={reason}")
        return True

    def sweep_stale_rooms(self) -> int:
        max_age_ms = int(self.settings.stale_max_age_sec * 1000)
        removed = 0
        for room in self.registry.stale(max_age_ms, self.clock()):
            if self._delete_room(room.id, 'stale'):
                removed += 1
        if removed:
            self.logger.info(f"[sweep] removed {removed} stale room(s)")
        return removed

    def status(self) -> Dict[str, int]:
        return {'activeRooms': len(self.registry), 'queuedPlayers': len(self.queue)}
