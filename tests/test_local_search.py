from __future__ import annotations

import math
import random

import pytest

from routing.core import nearest_neighbor_order, route_cost
from routing.local_search import improve_order_2opt

SQUARE = [(0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0)]


def _euclidean(points) -> list[list[float]]:
    return [[math.dist(a, b) for b in points] for a in points]


def test_route_cost_open_and_closed() -> None:
    matrix = _euclidean(SQUARE)

    assert route_cost([0, 1, 2, 3], matrix) == pytest.approx(3.0)
    assert route_cost([0, 1, 2, 3], matrix, closed=True) == pytest.approx(4.0)
    assert route_cost([2], matrix) == 0.0


def test_nearest_neighbor_breaks_ties_on_lowest_index() -> None:
    matrix = [
        [0.0, 5.0, 5.0],
        [5.0, 0.0, 1.0],
        [5.0, 1.0, 0.0],
    ]

    assert nearest_neighbor_order(matrix, 0) == [0, 1, 2]
    assert nearest_neighbor_order([], 0) == []
    with pytest.raises(ValueError):
        nearest_neighbor_order(matrix, 3)


def test_nearest_neighbor_takes_unreachable_points_last() -> None:
    inf = math.inf
    matrix = [
        [0.0, inf, 9.0],
        [inf, 0.0, inf],
        [9.0, inf, 0.0],
    ]

    assert nearest_neighbor_order(matrix, 0) == [0, 2, 1]


def test_two_opt_uncrosses_a_closed_tour() -> None:
    matrix = _euclidean(SQUARE)
    crossing = [0, 2, 1, 3]

    improved, stats = improve_order_2opt(crossing, matrix, closed=True)

    assert improved[0] == 0
    assert sorted(improved) == [0, 1, 2, 3]
    assert route_cost(improved, matrix, closed=True) == pytest.approx(4.0)
    assert stats["improvements"] >= 1
    assert stats["final_cost"] < stats["initial_cost"]


def test_two_opt_improves_an_open_path_and_keeps_the_start() -> None:
    points = [(0.0, 0.0), (3.0, 0.0), (1.0, 0.0), (2.0, 0.0), (4.0, 0.0)]
    matrix = _euclidean(points)

    improved, _ = improve_order_2opt([0, 1, 2, 3, 4], matrix)

    assert improved[0] == 0
    assert route_cost(improved, matrix) < route_cost([0, 1, 2, 3, 4], matrix)


def test_two_opt_handles_asymmetric_costs_without_getting_worse() -> None:
    matrix = [
        [0.0, 1.0, 10.0, 10.0, 10.0],
        [10.0, 0.0, 1.0, 10.0, 2.0],
        [10.0, 10.0, 0.0, 1.0, 10.0],
        [1.0, 10.0, 10.0, 0.0, 1.0],
        [10.0, 10.0, 10.0, 1.0, 0.0],
    ]
    start = [0, 1, 4, 3, 2]

    improved, stats = improve_order_2opt(start, matrix)

    assert route_cost(improved, matrix) <= route_cost(start, matrix)
    assert stats["final_cost"] == pytest.approx(route_cost(improved, matrix))


def test_two_opt_leaves_tiny_tours_alone() -> None:
    matrix = _euclidean(SQUARE[:3])

    improved, stats = improve_order_2opt([0, 2, 1], matrix)

    assert improved == [0, 2, 1]
    assert stats["passes"] == 0.0


def test_two_opt_stops_only_when_no_swap_improves() -> None:
    rng = random.Random(7)
    points = [(rng.uniform(0, 100), rng.uniform(0, 100)) for _ in range(25)]
    matrix = _euclidean(points)

    improved, stats = improve_order_2opt(list(range(len(points))), matrix)

    best = route_cost(improved, matrix)
    for i in range(len(improved) - 2):
        for j in range(i + 2, len(improved) - 1):
            swapped = improved[: i + 1] + improved[i + 1 : j + 1][::-1] + improved[j + 1 :]
            assert route_cost(swapped, matrix) >= best - 1e-9
    assert stats["passes"] >= 2
