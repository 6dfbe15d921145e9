import logging
import random
import string
import threading
from typing import Dict, List, Optional

from tambola.errors import NotFound
from .rooms import Room

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Room code -> ``Room`` for this process. Rooms are never evicted."""

    def __init__(self, code_length: int = 6, rng=None):
        self.code_length = code_length
        self._rng = rng or random
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._rooms)

    def generate_code(self) -> str:
        """Generate a unique, short room code."""
        alphabet = string.ascii_uppercase + string.digits
        while True:
            code = ''.join(self._rng.choices(alphabet, k=self.code_length))
            if code not in self._rooms:
                return code
            logger.warning(f"Room code collision detected, regenerating: {code}")

    def create(self, moderator_name: str, moderator_channel: str, max_tickets_per_player: int) -> Room:
        with self._lock:
            code = self.generate_code()
            room = Room(code, moderator_name, moderator_channel, max_tickets_per_player, self._rng)
            self._rooms[code] = room
        logger.info(f"[room-created] room={code} moderator={moderator_name}")
        return room

    def find(self, code) -> Optional[Room]:
        if not isinstance(code, str):
            return None
        return self._rooms.get(code.strip().upper())

    def get(self, code) -> Room:
        room = self.find(code)
        if room is None:
            raise NotFound('Room', code)
        return room

    def rooms(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())

    def rooms_for_channel(self, channel: str) -> List[Room]:
        """Rooms where ``channel`` is bound as moderator or as a player."""
        return [
            room for room in self.rooms()
            if room.moderator_channel == channel or room.find_participant(channel) is not None
        ]
