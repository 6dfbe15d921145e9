"""Game exceptions.

Every failure the room protocol can report is a ``TambolaError`` carrying a
stable ``code``. The Socket.IO layer turns them into
``{'success': False, 'error': ..., 'code': ...}`` acknowledgements.
"""


class TambolaError(Exception):
    """Base class for all game errors."""
    code = 'TambolaError'

    def to_dict(self):
        return {'success': False, 'error': str(self), 'code': self.code}


class NotFound(TambolaError):
    """Unknown room, player, ticket request or claim."""
    code = 'NotFound'

    def __init__(self, kind, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")


class Unauthorized(TambolaError):
    """A non-moderator channel invoked a moderator operation."""
    code = 'Unauthorized'


class InvalidState(TambolaError):
    """Operation is not legal in the room's current lifecycle state."""
    code = 'InvalidState'


class InvalidPayload(TambolaError):
    """A request payload is missing fields or carries malformed values."""
    code = 'InvalidPayload'


class CapacityError(TambolaError):
    """A per-player ticket cap or a per-condition winner cap was exceeded."""
    code = 'CapacityError'


class PoolExhausted(TambolaError):
    """Not enough pre-built grids left in the ticket pool."""
    code = 'PoolExhausted'

    def __init__(self, requested, remaining):
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Ticket pool exhausted: requested {requested}, {remaining} remaining"
        )


class ValidationFailure(TambolaError):
    """A claim does not satisfy its win condition."""
    code = 'ValidationFailure'


class UnknownClaimType(TambolaError):
    code = 'UnknownClaimType'

    def __init__(self, claim_type):
        self.claim_type = claim_type
        super().__init__(f"Unknown claim type: {claim_type!r}")


class GenerationError(TambolaError):
    """The layout generator ran out of attempts."""
    code = 'GenerationError'


class TicketIntegrityError(TambolaError):
    """A stored grid breaks the layout rules."""
    code = 'TicketIntegrityError'
