from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from functools import wraps
from typing import Any, Dict

from tambola.broadcast import room_channel
from tambola.errors import InvalidPayload, TambolaError


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore

def _service():
    return current_app.extensions['tambola']

def _room_code(data: Dict[str, Any]) -> str:
    code = data.get('room_code')
    if not isinstance(code, str) or not code.strip():
        raise InvalidPayload('room_code is required')
    return code.strip().upper()

def _approved(data: Dict[str, Any]) -> bool:
    approved = data.get('approved', True)
    if not isinstance(approved, bool):
        raise InvalidPayload('approved must be true or false')
    return approved


def acknowledged(handler):
    """Turn a handler's return value or error into the ``{success, ...}`` ack."""
    @wraps(handler)
    def wrapper(data=None):
        payload = data if isinstance(data, dict) else {}
        try:
            result = handler(payload) or {}
        except TambolaError as exc:
            current_app.logger.info(f"[ack-fail] event={handler.__name__} code={exc.code} error={exc}")
            return exc.to_dict()
        except Exception:
            current_app.logger.exception(f"[ack-error] event={handler.__name__}")
            return {'success': False, 'error': 'Internal server error', 'code': 'InternalError'}
        return dict(result, success=True)
    return wrapper


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws', 'sid': _get_sid()})


def handle_disconnect(reason=None):
    _service().disconnect(_get_sid())


@acknowledged
def handle_create_room(data):
    room = _service().create_room(_get_sid(), data.get('name'), data.get('max_tickets_per_player'))
    join_room(room_channel(room.code))
    return {'room_code': room.code, 'role': 'moderator'}


@acknowledged
def handle_join_room(data):
    code = _room_code(data)
    # Subscribe first so the joiner also receives its own player-list-updated
    join_room(room_channel(code))
    try:
        return _service().join_room(_get_sid(), code, data.get('name'))
    except TambolaError:
        leave_room(room_channel(code))
        raise


@acknowledged
def handle_start_game(data):
    return _service().start_game(
        _get_sid(), _room_code(data),
        data.get('rules'), data.get('limits'), data.get('mode'), data.get('interval'),
    )


@acknowledged
def handle_manual_call_next(data):
    return _service().call_next(_get_sid(), _room_code(data))


@acknowledged
def handle_admin_toggle_number(data):
    return _service().toggle_number(_get_sid(), _room_code(data), data.get('number'))


@acknowledged
def handle_pause_auto(data):
    return _service().pause(_get_sid(), _room_code(data))


@acknowledged
def handle_resume_auto(data):
    return _service().resume(_get_sid(), _room_code(data))


@acknowledged
def handle_stop_game(data):
    return _service().stop(_get_sid(), _room_code(data))


@acknowledged
def handle_request_ticket(data):
    return _service().request_ticket(_get_sid(), _room_code(data), data.get('count', 1))


@acknowledged
def handle_approve_ticket(data):
    return _service().approve_ticket(
        _get_sid(), _room_code(data), data.get('request_id'), _approved(data),
    )


@acknowledged
def handle_submit_claim(data):
    return _service().submit_claim(_get_sid(), _room_code(data), data.get('claim_type'))


@acknowledged
def handle_verify_claim(data):
    return _service().verify_claim(
        _get_sid(), _room_code(data), data.get('claim_id'), _approved(data),
    )


def handle_ping(data):
    emit('pong', data or {})


HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'create-room': handle_create_room,
    'join-room': handle_join_room,
    'start-game': handle_start_game,
    'manual-call-next': handle_manual_call_next,
    'admin-toggle-number': handle_admin_toggle_number,
    'pause-auto': handle_pause_auto,
    'resume-auto': handle_resume_auto,
    'stop-game': handle_stop_game,
    'request-ticket': handle_request_ticket,
    'approve-ticket': handle_approve_ticket,
    'submit-claim': handle_submit_claim,
    'verify-claim': handle_verify_claim,
    'ping': handle_ping,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from tambola import socketio

    for event, handler in HANDLERS.items():
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        for event, handler in HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
