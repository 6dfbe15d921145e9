"""Room state machine.

One ``Room`` holds everything about a single game session: lifecycle state,
prize configuration, the call engine, players and their tickets, and the
pending ticket requests and claims. Methods here only change state; the
``GameService`` checks authority, takes the room lock and broadcasts.

Lifecycle::

    stopped -> running <-> paused -> finished
    finished -> running   (new game: numbers reset, players kept)
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from tambola.errors import CapacityError, InvalidPayload, InvalidState, Unauthorized
from .calls import CallEngine
from .claims import WinCondition
from .pool import Ticket
from .scheduler import DrawTimer

logger = logging.getLogger(__name__)


class RoomState(Enum):
    STOPPED = 'stopped'
    RUNNING = 'running'
    PAUSED = 'paused'
    FINISHED = 'finished'


class DrawMode(Enum):
    MANUAL = 'manual'
    TIMED = 'timed'

    @classmethod
    def parse(cls, value) -> 'DrawMode':
        if value is None:
            return cls.MANUAL
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower()
        if name == 'auto':
            return cls.TIMED
        try:
            return cls(name)
        except ValueError:
            raise InvalidPayload(f"mode must be 'manual' or 'timed', got {value!r}")


# Valid transitions: {current_state: {next_state, ...}}
TRANSITIONS = {
    RoomState.STOPPED: {RoomState.RUNNING},
    RoomState.RUNNING: {RoomState.PAUSED, RoomState.FINISHED},
    RoomState.PAUSED: {RoomState.RUNNING, RoomState.FINISHED},
    RoomState.FINISHED: {RoomState.RUNNING},
}


@dataclass
class Participant:
    name: str
    channel: Optional[str]
    tickets: List[Ticket] = field(default_factory=list)

    @property
    def tickets_issued(self) -> int:
        return len(self.tickets)

    @property
    def connected(self) -> bool:
        return self.channel is not None

    def to_dict(self):
        return {'name': self.name, 'tickets': self.tickets_issued, 'connected': self.connected}


@dataclass
class TicketRequest:
    id: str
    name: str
    channel: str
    count: int = 1
    requested_at: float = field(default_factory=time.time)

    def to_dict(self):
        return {
            'request_id': self.id,
            'name': self.name,
            'count': self.count,
            'requested_at': self.requested_at,
        }


@dataclass
class PendingClaim:
    id: str
    name: str
    channel: str
    condition: WinCondition
    ticket_id: str
    numbers: List[int]
    submitted_at: float = field(default_factory=time.time)

    def to_dict(self):
        return {
            'claim_id': self.id,
            'name': self.name,
            'claim_type': self.condition.value,
            'ticket_id': self.ticket_id,
            'numbers': list(self.numbers),
            'submitted_at': self.submitted_at,
        }


@dataclass
class Winner:
    name: str
    condition: WinCondition
    ticket_id: str
    numbers: List[int]
    called_count: int

    def to_dict(self):
        return {
            'name': self.name,
            'claim_type': self.condition.value,
            'ticket_id': self.ticket_id,
            'numbers': list(self.numbers),
            'called_count': self.called_count,
        }


class GameSettings:
    """Validated ``start-game`` configuration."""

    def __init__(self, max_winners: Dict[WinCondition, int], mode: DrawMode, interval: Optional[float]):
        self.max_winners = max_winners
        self.mode = mode
        self.interval = interval

    @classmethod
    def from_payload(cls, rules, limits=None, mode=None, interval=None,
                     default_interval: float = 5.0, min_interval: float = 1.0) -> 'GameSettings':
        """Parse the moderator's prize and draw configuration.

        ``rules`` is a list of win-condition names or a mapping name -> active;
        ``limits`` maps names to winner caps (default 1). ``interval`` is in
        seconds and only used in timed mode.
        """
        if isinstance(rules, dict):
            active = [WinCondition.parse(name) for name, on in rules.items() if on]
        elif isinstance(rules, (list, tuple)):
            active = [WinCondition.parse(name) for name in rules]
        else:
            raise InvalidPayload('rules must be a list of prize names or a mapping of name to enabled')
        if not active:
            raise InvalidPayload('At least one win condition must be active')

        if limits is None:
            limits = {}
        elif not isinstance(limits, dict):
            raise InvalidPayload('limits must be a mapping of prize name to winner cap')
        caps = {}
        for name, cap in limits.items():
            if isinstance(cap, bool) or not isinstance(cap, int) or cap < 1:
                raise InvalidPayload(f"winner limit for {name!r} must be a positive integer")
            caps[WinCondition.parse(name)] = cap
        max_winners = {condition: caps.get(condition, 1) for condition in active}

        draw_mode = DrawMode.parse(mode)
        seconds = None
        if draw_mode is DrawMode.TIMED:
            seconds = default_interval if interval is None else interval
            if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds < min_interval:
                raise InvalidPayload(f"interval must be a number of seconds >= {min_interval}")
            seconds = float(seconds)
        return cls(max_winners, draw_mode, seconds)


class Room:
    def __init__(self, code: str, moderator_name: str, moderator_channel: Optional[str],
                 max_tickets_per_player: int, rng=None):
        self.code = code
        self.moderator_name = moderator_name
        self.moderator_channel = moderator_channel
        self.max_tickets_per_player = max_tickets_per_player
        self.state = RoomState.STOPPED
        self.calls = CallEngine(rng)
        self.max_winners: Dict[WinCondition, int] = {}
        self.winner_counts: Dict[WinCondition, int] = {}
        self.winners: List[Winner] = []
        self.mode = DrawMode.MANUAL
        self.interval: Optional[float] = None
        self.participants: Dict[str, Participant] = {}
        self.ticket_requests: Dict[str, TicketRequest] = {}
        self.claims: Dict[str, PendingClaim] = {}
        self.timer: Optional[DrawTimer] = None
        self.games_played = 0
        # Serializes every event for this room, timer callbacks included
        self.lock = threading.RLock()

    # ---- Authority ----

    def is_moderator(self, channel: Optional[str]) -> bool:
        return channel is not None and channel == self.moderator_channel

    def require_moderator(self, channel: Optional[str]) -> None:
        if not self.is_moderator(channel):
            raise Unauthorized(f"Only the moderator of room {self.code} may do that")

    def participant_for(self, channel: Optional[str]) -> Participant:
        participant = self.find_participant(channel)
        if participant is None:
            raise Unauthorized(f"Join room {self.code} as a player first")
        return participant

    def find_participant(self, channel: Optional[str]) -> Optional[Participant]:
        if channel is None:
            return None
        for participant in self.participants.values():
            if participant.channel == channel:
                return participant
        return None

    # ---- Lifecycle ----

    def require_state(self, *states: RoomState, action: str = 'do that') -> None:
        if self.state not in states:
            raise InvalidState(f"Cannot {action} while the game is {self.state.value}")

    def transition(self, new_state: RoomState) -> RoomState:
        if new_state not in TRANSITIONS[self.state]:
            raise InvalidState(
                f"Room {self.code} cannot go from {self.state.value} to {new_state.value}"
            )
        logger.info(f"[state] room={self.code} {self.state.value} -> {new_state.value}")
        self.state = new_state
        return new_state

    def start(self, settings: GameSettings) -> None:
        self.transition(RoomState.RUNNING)
        self.cancel_timer()
        self.calls.reset()
        self.winners = []
        self.claims = {}
        self.max_winners = dict(settings.max_winners)
        self.winner_counts = {condition: 0 for condition in self.max_winners}
        self.mode = settings.mode
        self.interval = settings.interval
        self.games_played += 1

    def pause(self) -> None:
        if self.mode is not DrawMode.TIMED:
            raise InvalidState('Pause is only available in timed mode')
        self.transition(RoomState.PAUSED)
        self.cancel_timer()

    def resume(self) -> None:
        self.require_state(RoomState.PAUSED, action='resume')
        self.transition(RoomState.RUNNING)

    def finish(self) -> None:
        self.transition(RoomState.FINISHED)
        self.cancel_timer()

    def arm_timer(self, start: Callable[[], DrawTimer]) -> DrawTimer:
        # The previous handle is always cancelled before a new one exists
        self.cancel_timer()
        self.timer = start()
        return self.timer

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    # ---- Players ----

    def join(self, name: str, channel: str) -> Tuple[Participant, bool]:
        """Add a player or re-bind an existing one. Returns ``(player, rejoined)``."""
        participant = self.participants.get(name)
        if participant is not None:
            participant.channel = channel
            return participant, True
        participant = Participant(name=name, channel=channel)
        self.participants[name] = participant
        return participant, False

    def drop(self, participant: Participant, retain: bool) -> None:
        if retain:
            participant.channel = None
        else:
            self.participants.pop(participant.name, None)

    def purge_pending(self, channel: str) -> Tuple[List[TicketRequest], List[PendingClaim]]:
        """Forget requests and claims submitted from ``channel``."""
        requests = [r for r in self.ticket_requests.values() if r.channel == channel]
        claims = [c for c in self.claims.values() if c.channel == channel]
        for r in requests:
            del self.ticket_requests[r.id]
        for c in claims:
            del self.claims[c.id]
        return requests, claims

    def pending_ticket_count(self, name: str) -> int:
        return sum(r.count for r in self.ticket_requests.values() if r.name == name)

    # ---- Prizes ----

    def is_active(self, condition: WinCondition) -> bool:
        return condition in self.max_winners

    def cap_reached(self, condition: WinCondition) -> bool:
        return self.winner_counts.get(condition, 0) >= self.max_winners.get(condition, 0)

    def has_won(self, name: str, condition: WinCondition) -> bool:
        return any(w.name == name and w.condition is condition for w in self.winners)

    def has_pending_claim(self, name: str, condition: WinCondition) -> bool:
        return any(c.name == name and c.condition is condition for c in self.claims.values())

    def record_winner(self, claim: PendingClaim, numbers: List[int], ticket_id: str) -> Winner:
        if self.cap_reached(claim.condition):
            raise CapacityError(
                f"{claim.condition.value} cap already reached "
                f"({self.winner_counts.get(claim.condition, 0)}/{self.max_winners.get(claim.condition, 0)})"
            )
        winner = Winner(claim.name, claim.condition, ticket_id, list(numbers), len(self.calls.called))
        self.winners.append(winner)
        self.winner_counts[claim.condition] += 1
        return winner

    # ---- Views ----

    def player_list(self) -> List[dict]:
        return [p.to_dict() for p in self.participants.values()]

    def rules(self) -> List[str]:
        return [condition.value for condition in self.max_winners]

    def limits(self) -> Dict[str, int]:
        return {condition.value: cap for condition, cap in self.max_winners.items()}

    def summary(self) -> dict:
        return {
            'room_code': self.code,
            'called': list(self.calls.called),
            'history': list(self.calls.history),
            'winners': [w.to_dict() for w in self.winners],
        }

    def status(self) -> dict:
        return {
            'room_code': self.code,
            'state': self.state.value,
            'mode': self.mode.value,
            'interval': self.interval,
            'players': len(self.participants),
            'called': len(self.calls.called),
            'remaining': len(self.calls.available),
            'moderator_connected': self.moderator_channel is not None,
        }

    def snapshot(self, participant: Optional[Participant] = None) -> dict:
        """Everything a (re)joining client needs to render the room."""
        data = self.status()
        data.update({
            'called': list(self.calls.called),
            'last_number': self.calls.last,
            'rules': self.rules(),
            'limits': self.limits(),
            'winners': [w.to_dict() for w in self.winners],
            'players': self.player_list(),
            'max_tickets_per_player': self.max_tickets_per_player,
        })
        if participant is not None:
            data['tickets'] = [t.to_dict() for t in participant.tickets]
        else:
            data['ticket_requests'] = [r.to_dict() for r in self.ticket_requests.values()]
            data['claims'] = [c.to_dict() for c in self.claims.values()]
        return data
