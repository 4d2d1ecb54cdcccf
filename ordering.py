"""Board position math for drag-and-drop.

Tasks carry a float ``order_index``. Dropping a card between two others gives
it the midpoint of its neighbours, so a single move touches a single row.
Cards without an order sit at the bottom of their column. When a drop lands
next to such a card, or no value fits strictly between the neighbours any
more, the column is renumbered from scratch.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

ORDER_STEP = 10.0


def drop_order(orders: Sequence[Optional[float]], index: int) -> Optional[float]:
    """Order value for a card dropped at ``index`` into a column.

    ``orders`` are the column's current orders in display order (unordered
    cards last), with the moved card already removed. Returns None when the
    column has to be rebalanced first.
    """
    n = len(orders)
    index = max(0, min(index, n))
    if n == 0:
        return ORDER_STEP

    if index >= n:
        last = orders[-1]
        return None if last is None else last + ORDER_STEP

    nxt = orders[index]
    if nxt is None:
        return None
    if index == 0:
        candidate = nxt / 2
        return candidate if candidate < nxt else None

    prev = orders[index - 1]
    if prev is None:
        return None
    candidate = prev + (nxt - prev) / 2
    return candidate if prev < candidate < nxt else None


def rebalanced(count: int) -> List[float]:
    """Evenly spaced orders for a column of ``count`` cards."""
    return [(i + 1) * ORDER_STEP for i in range(count)]
