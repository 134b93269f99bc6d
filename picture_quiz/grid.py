"""
Reveal-state grid covering the hidden picture.
"""
from typing import List

from .errors import AlreadyRevealedError, InvalidSizeError, OutOfRangeError
from .models import GridSnapshot


class Grid:
    """Fixed size x size array of cells; a cell goes hidden -> revealed once."""

    MIN_SIZE = 2
    MAX_SIZE = 5

    def __init__(self, size: int):
        if isinstance(size, bool) or not isinstance(size, int) or not self.MIN_SIZE <= size <= self.MAX_SIZE:
            raise InvalidSizeError(
                f"Grid size must be between {self.MIN_SIZE} and {self.MAX_SIZE}, got {size!r}"
            )
        self.size = size
        self._revealed: List[bool] = [False] * (size * size)

    @property
    def cell_count(self) -> int:
        return self.size * self.size

    def _check_index(self, cell: int) -> None:
        if isinstance(cell, bool) or not isinstance(cell, int) or not 0 <= cell < self.cell_count:
            raise OutOfRangeError(f"Cell {cell!r} is outside a {self.size}x{self.size} grid")

    def reveal(self, cell: int) -> None:
        """
        Mark a cell revealed.

        Raises:
            OutOfRangeError: If the index is not a cell of this grid
            AlreadyRevealedError: If the cell was revealed before
        """
        self._check_index(cell)
        if self._revealed[cell]:
            raise AlreadyRevealedError(f"Cell {cell} is already revealed")
        self._revealed[cell] = True

    def is_revealed(self, cell: int) -> bool:
        self._check_index(cell)
        return self._revealed[cell]

    def is_complete(self) -> bool:
        return all(self._revealed)

    def revealed_count(self) -> int:
        return sum(self._revealed)

    def hidden_cells(self) -> List[int]:
        return [i for i, revealed in enumerate(self._revealed) if not revealed]

    def snapshot(self) -> GridSnapshot:
        return tuple(self._revealed)
