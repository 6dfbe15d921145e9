from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Tambola game server!'})

@main.route('/health')
def health():
    service = current_app.extensions['tambola']
    return jsonify({'status': 'ok', 'rooms': service.active_room_count()})
