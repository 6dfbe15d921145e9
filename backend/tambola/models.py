from tambola import db
import json

from tambola.services.game.layout import Grid


class PoolTicket(db.Model):
    """One pre-built grid waiting in the shared ticket pool.

    Rows are consumed in ``id`` order and deleted when allocated.
    """
    __tablename__ = 'pool_ticket'
    id = db.Column(db.Integer, primary_key=True)
    layout = db.Column(db.Text, nullable=False)  # JSON-encoded 3x9 list, null for blanks

    @classmethod
    def from_grid(cls, grid: Grid) -> 'PoolTicket':
        return cls(layout=json.dumps(grid.to_list()))

    def to_grid(self) -> Grid:
        return Grid.from_list(json.loads(self.layout))

