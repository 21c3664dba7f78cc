from flask import current_app, request
from flask_socketio import emit

from birdbattle.errors import GameError
from birdbattle.messages import (
    ERROR,
    FindMatch,
    GameAction,
    JoinGameRoom,
    PlayerReady,
    SelectBird,
    UseAbility,
)


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _supervisor():
    return current_app.extensions['birdbattle']


def _max_name_length() -> int:
    return int(current_app.config.get('MAX_NAME_LENGTH', 32))


def _dispatch(handler, message_cls, data, **parse_kwargs):
    """Parse, run and convert errors for one inbound event.

    Game errors go back to the sender only; anything unexpected is logged
    and reported as a generic error so the room and the process survive.
    """
    sid = _get_sid()
    try:
        message = message_cls.from_payload(data, **parse_kwargs)
        handler(sid, message)
    except GameError as exc:
        current_app.logger.info(f"[rejected] sid={sid} event={message_cls.event} code={exc.code} msg={exc.message}")
        emit(ERROR, exc.to_dict())
    except Exception:
        current_app.logger.exception(f"[error] sid={sid} event={message_cls.event}")
        emit(ERROR, {'message': 'Internal server error', 'code': 'InternalError'})


def _ensure_sweeper_started(app) -> None:
    if app.config.get('TESTING') or app.config.get('SWEEPER_STARTED'):
        return
    app.config['SWEEPER_STARTED'] = True
    supervisor = app.extensions['birdbattle']
    interval = float(app.config.get('STALE_SWEEP_INTERVAL_SEC', 60))
    supervisor.scheduler.every(interval, supervisor.sweep_stale_rooms)
    app.logger.info(f"[sweep] stale room sweeper every {interval}s")


def handle_connect(auth=None):
    _ensure_sweeper_started(current_app._get_current_object())
    current_app.logger.info(f"[connect] sid={_get_sid()}")
    emit('connected', {'sid': _get_sid()})


def handle_disconnect(*_args):
    sid = _get_sid()
    current_app.logger.info(f"[disconnect] sid={sid}")
    try:
        _supervisor().disconnect(sid)
    except Exception:
        current_app.logger.exception(f"[error] sid={sid} event=disconnect")


def handle_find_match(data=None):
    _dispatch(_supervisor().find_match, FindMatch, data, max_name_length=_max_name_length())


def handle_select_bird(data=None):
    _dispatch(_supervisor().select_bird, SelectBird, data)


def handle_player_ready(data=None):
    _dispatch(_supervisor().player_ready, PlayerReady, data)


def handle_use_ability(data=None):
    _dispatch(_supervisor().use_ability, UseAbility, data)


def handle_game_action(data=None):
    _dispatch(_supervisor().game_action, GameAction, data)


def handle_join_game_room(data=None):
    _dispatch(_supervisor().join_game_room, JoinGameRoom, data, max_name_length=_max_name_length())


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers(flask_app, namespace: str = '/') -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    from birdbattle import socketio

    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('findMatch', handle_find_match, namespace=namespace)
    socketio.on_event('selectBird', handle_select_bird, namespace=namespace)
    socketio.on_event('playerReady', handle_player_ready, namespace=namespace)
    socketio.on_event('useAbility', handle_use_ability, namespace=namespace)
    socketio.on_event('gameAction', handle_game_action, namespace=namespace)
    socketio.on_event('joinGameRoom', handle_join_game_room, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
    flask_app.logger.info(f"[socketio] handlers registered on namespace {namespace}")
