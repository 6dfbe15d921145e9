from typing import Iterable


def room_channel(room_code: str) -> str:
    """Socket.IO room every member of a game room is subscribed to."""
    return f"room:{room_code}"


class SocketIOBroadcaster:
    """Delivers game events through Flask-SocketIO.

    Safe to call from background tasks; ``socketio.emit`` needs no request
    context.
    """

    def __init__(self, socketio, namespaces: Iterable[str] = ('/ws',)):
        self.socketio = socketio
        self.namespaces = tuple(namespaces)

    def to_room(self, room_code: str, event: str, data: dict) -> None:
        for namespace in self.namespaces:
            self.socketio.emit(event, data, to=room_channel(room_code), namespace=namespace)

    def to_channel(self, channel: str, event: str, data: dict) -> None:
        for namespace in self.namespaces:
            self.socketio.emit(event, data, to=channel, namespace=namespace)
