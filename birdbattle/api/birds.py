from flask import Blueprint, current_app, jsonify

from birdbattle.errors import GameError

birds = Blueprint('birds', __name__)


@birds.route('/birds', methods=['GET'])
def list_birds():
    """
    Returns every playable bird plus the universal abilities.
    """
    catalog = current_app.extensions['birdbattle'].catalog
    return jsonify(catalog.to_dict()), 200


@birds.route('/birds/<string:bird_id>', methods=['GET'])
def get_bird(bird_id):
    catalog = current_app.extensions['birdbattle'].catalog
    if not catalog.is_valid(bird_id):
        return jsonify({'error': f'Unknown bird: {bird_id}', 'code': 'InvalidBird'}), 404
    return jsonify(catalog.get(bird_id).to_dict()), 200


@birds.route('/rooms/<string:room_id>/state', methods=['GET'])
def get_room_state(room_id):
    """
    Read-only snapshot of a live room.
    """
    supervisor = current_app.extensions['birdbattle']
    try:
        room = supervisor.registry.require(room_id)
    except GameError as exc:
        return jsonify({'error': exc.message, 'code': exc.code}), 404
    return jsonify(room.snapshot()), 200
