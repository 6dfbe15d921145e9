from flask import Blueprint, current_app, jsonify

from tambola.errors import NotFound

rooms = Blueprint('rooms', __name__)


@rooms.route('/<string:room_code>', methods=['GET'])
def get_room(room_code):
    """
    Reports whether a room exists and where its game stands.
    """
    try:
        status = current_app.extensions['tambola'].room_status(room_code)
    except NotFound as exc:
        return jsonify(exc.to_dict()), 404
    return jsonify(status)


@rooms.route('/pool', methods=['GET'])
def pool_status():
    service = current_app.extensions['tambola']
    return jsonify({'remaining': service.pool.remaining()})
