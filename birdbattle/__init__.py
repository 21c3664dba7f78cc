import time

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

socketio = SocketIO(async_mode=None)


def _origins(config):
    raw = config.get('CORS_ORIGINS') or ''
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return [o.strip() for o in raw.split(',') if o.strip()]


def create_app(config_class=Config, scheduler=None, clock=None):
    """Build the Flask app and its game supervisor.

    ``scheduler`` and ``clock`` exist for tests that need to fire timers or
    move time by hand.
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = _origins(flask_app.config)
    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/')

    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from birdbattle.services.game import (
        ConnectionSupervisor,
        SupervisorSettings,
        TimerScheduler,
        now_ms,
    )

    if scheduler is None:
        scheduler = TimerScheduler(socketio.start_background_task, flask_app.logger)

    def emit(event, payload, sid):
        socketio.emit(event, payload, to=sid, namespace=namespace)

    supervisor = ConnectionSupervisor(
        emit=emit,
        scheduler=scheduler,
        logger=flask_app.logger,
        settings=SupervisorSettings.from_config(flask_app.config),
        clock=clock or now_ms,
    )
    flask_app.extensions['birdbattle'] = supervisor
    flask_app.config['STARTED_AT'] = time.time()

    # Import and register blueprints here
    from birdbattle.main import main
    flask_app.register_blueprint(main)

    from birdbattle.api.birds import birds
    flask_app.register_blueprint(birds, url_prefix='/api')

    from birdbattle.socketio_events import register_socketio_handlers
    register_socketio_handlers(flask_app, namespace=namespace)

    @click.command('list-birds')
    def list_birds_command():
        """Prints the playable birds and their abilities."""
        for bird_id in supervisor.catalog.ids():
            bird = supervisor.catalog.get(bird_id)
            click.echo(f"{bird.id}: {bird.name} hp={bird.stats.hp} speed={bird.stats.speed} attack={bird.stats.attack}")
            for slot in ('normal', 'signature', 'ultimate'):
                ability = bird.ability(slot)
                click.echo(f"  [{ability.key}] {slot}: {ability.name} - {ability.description}")
        heal = supervisor.catalog.universal_ability()
        click.echo(f"universal [{heal.key}]: {heal.name} - {heal.description}")

    @click.command('sweep-rooms')
    def sweep_rooms_command():
        """Deletes rooms older than STALE_ROOM_MAX_AGE_SEC."""
        removed = supervisor.sweep_stale_rooms()
        click.echo(f"Removed {removed} stale room(s)")

    flask_app.cli.add_command(list_birds_command)
    flask_app.cli.add_command(sweep_rooms_command)

    return flask_app
