import time

from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Bird Battle session server is running'})


@main.route('/health')
def health():
    """Process health, live room/queue counts and the bird catalog for client bootstrap."""
    supervisor = current_app.extensions['birdbattle']
    started_at = current_app.config.get('STARTED_AT') or time.time()
    payload = {
        'status': 'ok',
        'uptime': round(time.time() - started_at, 3),
    }
    payload.update(supervisor.status())
    payload.update(supervisor.catalog.to_dict())
    return jsonify(payload)
