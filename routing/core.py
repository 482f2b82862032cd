"""Greedy construction of a visiting order over a cost matrix."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def route_cost(
    order: Sequence[int],
    matrix: Sequence[Sequence[float]],
    *,
    closed: bool = False,
) -> float:
    """Total matrix cost of visiting ``order``; closed tours return to the start."""
    if len(order) < 2:
        return 0.0
    total = sum(matrix[order[i]][order[i + 1]] for i in range(len(order) - 1))
    if closed:
        total += matrix[order[-1]][order[0]]
    return total


def nearest_neighbor_order(
    matrix: Sequence[Sequence[float]],
    start_index: int = 0,
) -> list[int]:
    """Nearest-neighbour tour seeded at ``start_index``.

    Ties go to the lowest input index. Unreachable pairs (``inf``) are only
    chosen once nothing reachable is left.
    """
    n = len(matrix)
    if n == 0:
        return []
    if not 0 <= start_index < n:
        msg = f"start_index {start_index} out of range for {n} waypoints"
        raise ValueError(msg)

    visited = [False] * n
    order = [start_index]
    visited[start_index] = True
    current = start_index

    for _ in range(n - 1):
        best_index = -1
        best_cost = math.inf
        for candidate in range(n):
            if visited[candidate]:
                continue
            cost = matrix[current][candidate]
            if best_index == -1 or cost < best_cost:
                best_index = candidate
                best_cost = cost
        order.append(best_index)
        visited[best_index] = True
        current = best_index

    return order
