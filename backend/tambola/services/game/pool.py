"""Shared ticket pool and the per-room allocation engine."""
import logging
import threading
import uuid
from typing import Iterable, List

from tambola import db
from tambola.errors import CapacityError, InvalidPayload, PoolExhausted
from tambola.models import PoolTicket
from .layout import Grid, generate_grids

logger = logging.getLogger(__name__)


class Ticket:
    """A grid owned by one participant in one room."""

    __slots__ = ('id', 'grid')

    def __init__(self, ticket_id: str, grid: Grid):
        self.id = ticket_id
        self.grid = grid

    def to_dict(self):
        return {'id': self.id, 'rows': self.grid.to_list()}

    def __repr__(self):
        return f"Ticket({self.id!r})"


class TicketPool:
    """Finite sequence of pre-built grids stored in the ``pool_ticket`` table.

    Grids are handed out front-to-back and never reused. All access goes
    through one process-wide lock and one transaction per call, so no two
    allocations can observe the same pool.
    """

    def __init__(self):
        self._lock = threading.Lock()

    def remaining(self) -> int:
        return PoolTicket.query.count()

    def add(self, grids: Iterable[Grid]) -> int:
        with self._lock:
            added = 0
            try:
                for grid in grids:
                    db.session.add(PoolTicket.from_grid(grid))
                    added += 1
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
        logger.info(f"[pool-add] added={added}")
        return added

    def seed(self, count: int, rng=None, max_attempts: int = 10) -> int:
        return self.add(generate_grids(count, rng, max_attempts))

    def clear(self) -> int:
        with self._lock:
            try:
                removed = PoolTicket.query.delete()
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
        logger.info(f"[pool-clear] removed={removed}")
        return removed

    def take(self, count: int) -> List[Grid]:
        """Remove and return the first ``count`` grids.

        Raises ``PoolExhausted`` without touching the pool when fewer remain.
        """
        with self._lock:
            try:
                rows = (
                    PoolTicket.query.order_by(PoolTicket.id)
                    .limit(count)
                    .with_for_update()
                    .all()
                )
                if len(rows) < count:
                    raise PoolExhausted(count, len(rows))
                grids = [row.to_grid() for row in rows]
                for row in rows:
                    db.session.delete(row)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
        return grids


def allocate(pool: TicketPool, room, participant, count: int = 1) -> List[Ticket]:
    """Move ``count`` grids from the pool to ``participant`` of ``room``.

    All-or-nothing: on ``CapacityError`` or ``PoolExhausted`` neither the pool
    nor the participant's tickets change.
    """
    if count < 1:
        raise InvalidPayload('count must be at least 1')
    cap = room.max_tickets_per_player
    if participant.tickets_issued + count > cap:
        raise CapacityError(
            f"{participant.name} holds {participant.tickets_issued} of {cap} tickets; "
            f"cannot add {count}"
        )
    grids = pool.take(count)
    tickets = [Ticket(_ticket_id(room.code, participant.name), grid) for grid in grids]
    participant.tickets.extend(tickets)
    logger.info(
        f"[allocate] room={room.code} player={participant.name} "
        f"tickets={[t.id for t in tickets]} issued={participant.tickets_issued}"
    )
    return tickets


def _ticket_id(room_code: str, name: str) -> str:
    return f"{room_code}-{name}-{uuid.uuid4().hex[:8]}"
