"""
Grid and sequential positioning for flat sibling sets.

The compiler uses these for initial placement: a sibling set is evenly spaced
and centered under its parent, and subtrees that hang off no parent are
wrapped into rows below the main tree.
"""

from .models import Position

DEFAULT_SPACING_X = 200
DEFAULT_SPACING_Y = 150


def sequential_positions(
    count: int,
    center_x: float,
    y: float,
    spacing: float = DEFAULT_SPACING_X
) -> list[Position]:
    """
    Evenly spaced positions centered on `center_x`.

    Args:
        count: Number of siblings
        center_x: X coordinate the row is centered on
        y: Y coordinate of the row
        spacing: Distance between consecutive siblings

    Returns:
        One Position per sibling, left to right
    """
    if count <= 0:
        return []
    offset = (count - 1) * spacing / 2
    return [Position(x=center_x - offset + i * spacing, y=y) for i in range(count)]


def grid_positions(
    count: int,
    max_per_row: int = 3,
    spacing_x: float = 300,
    spacing_y: float = 250,
    start_y: float = DEFAULT_SPACING_Y
) -> list[Position]:
    """Row-wrapped positions, each row centered on x = 0."""
    if count <= 0:
        return []
    max_per_row = max(1, max_per_row)
    per_row = min(count, max_per_row)
    start_x = -(per_row * spacing_x) / 2 + spacing_x / 2

    positions = []
    for i in range(count):
        row, col = divmod(i, max_per_row)
        positions.append(Position(x=start_x + col * spacing_x, y=start_y + row * spacing_y))
    return positions

