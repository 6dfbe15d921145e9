"""The room protocol.

``GameService`` owns the room registry and implements every request the
moderator and players can send. Each call takes the room's lock, so events
for one room are applied one at a time, and reports outcomes through the
broadcaster:

* ``to_room(code, event, data)`` for room-wide events
* ``to_channel(channel, event, data)`` for moderator-only or player-only ones
"""
import logging
import random
import uuid
from typing import Optional

from tambola.errors import (
    CapacityError,
    InvalidPayload,
    NotFound,
    TambolaError,
    Unauthorized,
    ValidationFailure,
)
from .claims import WinCondition, validate
from .pool import TicketPool, allocate
from .registry import RoomRegistry
from .rooms import DrawMode, GameSettings, PendingClaim, Room, RoomState, TicketRequest
from .scheduler import DrawTimer

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 32


class GameService:
    def __init__(self, pool: TicketPool, broadcaster, timers, config=None, rng=None):
        config = config or {}
        self.pool = pool
        self.broadcaster = broadcaster
        self.timers = timers
        self.rng = rng or random
        self.registry = RoomRegistry(int(config.get('ROOM_CODE_LENGTH', 6)), self.rng)
        self.max_tickets_per_player = int(config.get('MAX_TICKETS_PER_PLAYER', 5))
        self.default_interval = float(config.get('DEFAULT_DRAW_INTERVAL_SEC', 5))
        self.min_interval = float(config.get('MIN_DRAW_INTERVAL_SEC', 1))
        self.retain_players = bool(config.get('RETAIN_DISCONNECTED_PLAYERS', True))

    # ---- Rooms & players ----

    def create_room(self, channel: str, name, max_tickets_per_player=None) -> Room:
        name = _display_name(name)
        cap = self.max_tickets_per_player if max_tickets_per_player is None else max_tickets_per_player
        if isinstance(cap, bool) or not isinstance(cap, int) or cap < 1:
            raise InvalidPayload('max_tickets_per_player must be a positive integer')
        room = self.registry.create(name, channel, cap)
        self.broadcaster.to_channel(channel, 'room-created', {
            'room_code': room.code,
            'moderator': name,
            'max_tickets_per_player': cap,
        })
        return room

    def join_room(self, channel: str, room_code, name) -> dict:
        """Join as a player, or re-claim the moderator seat by name."""
        name = _display_name(name)
        room = self.registry.get(room_code)
        with room.lock:
            if name == room.moderator_name:
                if room.moderator_channel not in (None, channel):
                    raise Unauthorized(f"{name} is already connected as moderator")
                room.moderator_channel = channel
                logger.info(f"[join] room={room.code} moderator={name} rebound")
                self.broadcaster.to_room(room.code, 'player-joined', {
                    'name': name, 'role': 'moderator', 'rejoined': True,
                })
                snapshot = room.snapshot()
                snapshot['role'] = 'moderator'
                return snapshot

            seated = room.find_participant(channel)
            if seated is not None and seated.name != name:
                raise Unauthorized(f"This connection already plays as {seated.name} in room {room.code}")
            participant, rejoined = room.join(name, channel)
            logger.info(f"[join] room={room.code} player={name} rejoined={rejoined}")
            self.broadcaster.to_room(room.code, 'player-joined', {
                'name': name, 'role': 'player', 'rejoined': rejoined,
            })
            self._player_list(room)
            snapshot = room.snapshot(participant)
            snapshot['role'] = 'player'
            return snapshot

    def disconnect(self, channel: str) -> None:
        """Release every seat ``channel`` holds. Not an error if it holds none."""
        for room in self.registry.rooms_for_channel(channel):
            with room.lock:
                if room.moderator_channel == channel:
                    self._moderator_left(room)
                participant = room.find_participant(channel)
                if participant is not None:
                    self._player_left(room, participant, channel)

    def _moderator_left(self, room: Room) -> None:
        room.moderator_channel = None
        logger.info(f"[disconnect] room={room.code} moderator={room.moderator_name}")
        if room.state is RoomState.RUNNING and room.mode is DrawMode.TIMED:
            room.pause()
            self.broadcaster.to_room(room.code, 'auto-paused', {'reason': 'moderator-disconnected'})
        self.broadcaster.to_room(room.code, 'admin-disconnected', {
            'moderator': room.moderator_name,
            'state': room.state.value,
        })

    def _player_left(self, room: Room, participant, channel: str) -> None:
        requests, claims = room.purge_pending(channel)
        room.drop(participant, self.retain_players)
        logger.info(
            f"[disconnect] room={room.code} player={participant.name} retained={self.retain_players} "
            f"purged_requests={len(requests)} purged_claims={len(claims)}"
        )
        self.broadcaster.to_room(room.code, 'player-left', {
            'name': participant.name,
            'purged_requests': [r.id for r in requests],
            'purged_claims': [c.id for c in claims],
        })
        self._player_list(room)

    # ---- Game flow (moderator only) ----

    def start_game(self, channel: str, room_code, rules, limits=None, mode=None, interval=None) -> dict:
        room = self.registry.get(room_code)
        with room.lock:
            room.require_moderator(channel)
            room.require_state(RoomState.STOPPED, RoomState.FINISHED, action='start a new game')
            settings = GameSettings.from_payload(
                rules, limits, mode, interval,
                default_interval=self.default_interval, min_interval=self.min_interval,
            )
            room.start(settings)
            logger.info(
                f"[game-start] room={room.code} game={room.games_played} mode={room.mode.value} "
                f"interval={room.interval} rules={room.limits()}"
            )
            self.broadcaster.to_room(room.code, 'game-started', {
                'rules': room.rules(),
                'limits': room.limits(),
                'mode': room.mode.value,
                'interval': room.interval,
                'game': room.games_played,
            })
            if room.mode is DrawMode.TIMED:
                self._arm_timer(room)
            return room.status()

    def call_next(self, channel: str, room_code) -> dict:
        room = self.registry.get(room_code)
        with room.lock:
            room.require_moderator(channel)
            room.require_state(RoomState.RUNNING, action='draw a number')
            number = self._draw(room, source='manual')
            return {'number': number, 'called': list(room.calls.called), 'state': room.state.value}

    def toggle_number(self, channel: str, room_code, number) -> dict:
        room = self.registry.get(room_code)
        with room.lock:
            room.require_moderator(channel)
            room.require_state(RoomState.RUNNING, RoomState.PAUSED, action='correct the called numbers')
            added = room.calls.toggle(number)
            logger.info(f"[toggle] room={room.code} number={number} called={added}")
            self.broadcaster.to_room(room.code, 'number-called', {
                'number': number,
                'called': list(room.calls.called),
                'remaining': len(room.calls.available),
                'toggled': True,
                'added': added,
            })
            if room.calls.exhausted:
                self._finish(room, reason='no numbers left', auto=True)
            return {'number': number, 'added': added, 'called': list(room.calls.called), 'state': room.state.value}

    def pause(self, channel: str, room_code) -> dict:
        room = self.registry.get(room_code)
        with room.lock:
            room.require_moderator(channel)
            room.require_state(RoomState.RUNNING, action='pause')
            room.pause()
            self.broadcaster.to_room(room.code, 'auto-paused', {'reason': 'moderator'})
            return room.status()

    def resume(self, channel: str, room_code) -> dict:
        room = self.registry.get(room_code)
        with room.lock:
            room.require_moderator(channel)
            room.resume()
            self._arm_timer(room)
            self.broadcaster.to_room(room.code, 'auto-resumed', {'interval': room.interval})
            return room.status()

    def stop(self, channel: str, room_code) -> dict:
        room = self.registry.get(room_code)
        with room.lock:
            room.require_moderator(channel)
            room.require_state(RoomState.RUNNING, RoomState.PAUSED, action='stop')
            self._finish(room, reason='stopped by moderator', auto=False)
            return room.summary()

    def _arm_timer(self, room: Room) -> DrawTimer:
        code = room.code
        return room.arm_timer(lambda: self.timers.start(
            room.interval,
            lambda timer: self._on_timer(code, timer),
            label=f"room={code}",
        ))

    def _on_timer(self, room_code: str, timer: DrawTimer) -> None:
        room = self.registry.find(room_code)
        if room is None:
            timer.cancel()
            return
        with room.lock:
            # A paused or stopped room has already swapped out or cancelled this handle
            if room.timer is not timer or timer.cancelled or room.state is not RoomState.RUNNING:
                timer.cancel()
                return
            self._draw(room, source='timer')

    def _draw(self, room: Room, source: str) -> Optional[int]:
        number = room.calls.draw()
        if number is None:
            self._finish(room, reason='no numbers left', auto=True)
            return None
        remaining = len(room.calls.available)
        logger.info(f"[draw] room={room.code} source={source} number={number} remaining={remaining}")
        self.broadcaster.to_room(room.code, 'number-called', {
            'number': number,
            'called': list(room.calls.called),
            'remaining': remaining,
            'source': source,
        })
        if room.calls.exhausted:
            self._finish(room, reason='no numbers left', auto=True)
        return number

    def _finish(self, room: Room, reason: str, auto: bool) -> None:
        room.finish()
        logger.info(f"[game-finish] room={room.code} reason={reason} winners={len(room.winners)}")
        if auto:
            self.broadcaster.to_room(room.code, 'auto-finished', {'reason': reason})
        self.broadcaster.to_room(room.code, 'game-summary', room.summary())

    # ---- Tickets ----

    def request_ticket(self, channel: str, room_code, count=1) -> dict:
        room = self.registry.get(room_code)
        with room.lock:
            participant = room.participant_for(channel)
            room.require_state(RoomState.STOPPED, RoomState.RUNNING, RoomState.PAUSED,
                               action='request tickets')
            count = _positive_int(count, 'count')
            pending = room.pending_ticket_count(participant.name)
            if participant.tickets_issued + pending + count > room.max_tickets_per_player:
                raise CapacityError(
                    f"Ticket limit ({room.max_tickets_per_player}) reached or pending: you have "
                    f"{participant.tickets_issued} ticket(s) and {pending} pending"
                )
            request = TicketRequest(uuid.uuid4().hex, participant.name, channel, count)
            room.ticket_requests[request.id] = request
            logger.info(f"[ticket-request] room={room.code} player={participant.name} request={request.id} count={count}")
            self._to_moderator(room, 'ticket-requested', dict(request.to_dict(), issued=participant.tickets_issued))
            return {'request_id': request.id, 'count': count}

    def approve_ticket(self, channel: str, room_code, request_id, approved=True) -> dict:
        room = self.registry.get(room_code)
        with room.lock:
            room.require_moderator(channel)
            if approved:
                room.require_state(RoomState.STOPPED, RoomState.RUNNING, RoomState.PAUSED,
                                   action='hand out tickets')
            request = room.ticket_requests.pop(request_id, None) if isinstance(request_id, str) else None
            if request is None:
                raise NotFound('Ticket request', request_id)
            participant = room.participants.get(request.name)
            if participant is None:
                raise NotFound('Player', request.name)

            # A rejection only forgets the request, whatever the game state
            if not approved:
                logger.info(f"[ticket-reject] room={room.code} request={request.id}")
                self._to_player(room, participant, 'ticket-request-response', {
                    'request_id': request.id, 'approved': False, 'reason': 'Rejected by moderator',
                })
                return {'request_id': request.id, 'approved': False}

            try:
                tickets = allocate(self.pool, room, participant, request.count)
            except TambolaError as exc:
                logger.warning(f"[ticket-fail] room={room.code} request={request.id} code={exc.code} error={exc}")
                self._to_player(room, participant, 'ticket-request-response', {
                    'request_id': request.id, 'approved': False, 'error': str(exc), 'code': exc.code,
                })
                raise

            self._to_player(room, participant, 'ticket-request-response', {
                'request_id': request.id,
                'approved': True,
                'tickets': [t.to_dict() for t in tickets],
            })
            self._to_player(room, participant, 'ticket-updated', {
                'tickets': [t.to_dict() for t in participant.tickets],
            })
            self._player_list(room)
            return {
                'request_id': request.id,
                'approved': True,
                'tickets': [t.id for t in tickets],
                'issued': participant.tickets_issued,
            }

    # ---- Claims ----

    def submit_claim(self, channel: str, room_code, claim_type) -> dict:
        room = self.registry.get(room_code)
        with room.lock:
            participant = room.participant_for(channel)
            room.require_state(RoomState.RUNNING, RoomState.PAUSED, RoomState.FINISHED,
                               action='claim a prize')
            condition = WinCondition.parse(claim_type)
            if not room.is_active(condition):
                raise ValidationFailure(f"{condition.value} is not a prize in this game")
            if room.cap_reached(condition):
                raise CapacityError(
                    f"{condition.value} already has {room.max_winners[condition]} winner(s)"
                )
            if room.has_won(participant.name, condition):
                raise ValidationFailure(f"You have already won {condition.value}")
            if room.has_pending_claim(participant.name, condition):
                raise ValidationFailure(f"Your {condition.value} claim is already waiting for the moderator")

            result = validate(participant.tickets, condition, room.calls.called)
            if not result.valid:
                logger.info(f"[claim-invalid] room={room.code} player={participant.name} claim={condition.value}")
                raise ValidationFailure(result.reason)

            claim = PendingClaim(
                uuid.uuid4().hex, participant.name, channel, condition, result.ticket.id, result.numbers,
            )
            room.claims[claim.id] = claim
            logger.info(
                f"[claim-submit] room={room.code} player={participant.name} claim={condition.value} "
                f"ticket={claim.ticket_id} id={claim.id}"
            )
            payload = claim.to_dict()
            payload['rows'] = result.ticket.grid.to_list()
            self._to_moderator(room, 'claim-submitted', payload)
            return claim.to_dict()

    def verify_claim(self, channel: str, room_code, claim_id, approved=True) -> dict:
        room = self.registry.get(room_code)
        with room.lock:
            room.require_moderator(channel)
            claim = room.claims.pop(claim_id, None) if isinstance(claim_id, str) else None
            if claim is None:
                raise NotFound('Claim', claim_id)
            participant = room.participants.get(claim.name)

            if not approved:
                self._claim_resolved(room, claim, participant, 'rejected', 'Rejected by moderator')
                return {'claim_id': claim.id, 'status': 'rejected'}

            # The called set may have been corrected since submission
            tickets = participant.tickets if participant is not None else []
            result = validate(tickets, claim.condition, room.calls.called)
            if not result.valid:
                self._claim_resolved(room, claim, participant, 'invalid', result.reason)
                raise ValidationFailure(f"Claim no longer holds: {result.reason}")

            try:
                winner = room.record_winner(claim, result.numbers, result.ticket.id)
            except CapacityError as exc:
                self._claim_resolved(room, claim, participant, 'cap-reached', str(exc))
                raise

            self._claim_resolved(room, claim, participant, 'approved', None)
            self.broadcaster.to_room(room.code, 'winner-announced', dict(
                winner.to_dict(),
                winners=room.winner_counts[claim.condition],
                max_winners=room.max_winners[claim.condition],
            ))
            return {'claim_id': claim.id, 'status': 'approved', 'winner': winner.to_dict()}

    def _claim_resolved(self, room: Room, claim: PendingClaim, participant, status: str, reason) -> None:
        logger.info(f"[claim-verify] room={room.code} claim={claim.id} player={claim.name} status={status}")
        payload = dict(claim.to_dict(), status=status, reason=reason)
        if participant is not None:
            self._to_player(room, participant, 'claim-updated', payload)
        self._to_moderator(room, 'claim-verified', payload)

    # ---- Status ----

    def room_status(self, room_code) -> dict:
        room = self.registry.get(room_code)
        with room.lock:
            return room.status()

    def active_room_count(self) -> int:
        return len(self.registry)

    # ---- Helpers ----

    def _player_list(self, room: Room) -> None:
        self.broadcaster.to_room(room.code, 'player-list-updated', {'players': room.player_list()})

    def _to_moderator(self, room: Room, event: str, data: dict) -> None:
        if room.moderator_channel is not None:
            self.broadcaster.to_channel(room.moderator_channel, event, data)

    def _to_player(self, room: Room, participant, event: str, data: dict) -> None:
        if participant.channel is not None:
            self.broadcaster.to_channel(participant.channel, event, data)


def _display_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidPayload('name is required')
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidPayload(f"name must be at most {MAX_NAME_LENGTH} characters")
    return name


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidPayload(f"{field} must be a positive integer")
    return value
