"""Tests for cube-coordinate geometry."""

from __future__ import annotations

import pytest

from sternhalma.errors import InvalidCoordinateError
from sternhalma.geometry import (
    DIRECTIONS,
    ORIGIN,
    CubeCoord,
    centroid,
    direction_between,
    disk,
    distance,
    jump_destination,
    neighbors,
    parse_coord_key,
    ring,
    rotate60,
)


def test_cube_invariant_holds_for_generated_cells():
    for cell in disk(ORIGIN, 4):
        assert cell.q + cell.r + cell.s == 0


def test_from_cube_rejects_bad_sum():
    with pytest.raises(InvalidCoordinateError):
        CubeCoord.from_cube(1, 1, 1)
    assert CubeCoord.from_cube(2, -3, 1) == CubeCoord(2, -3)


def test_distance_zero_only_for_equal_cells():
    cells = disk(ORIGIN, 2)
    for a in cells:
        for b in cells:
            assert (distance(a, b) == 0) == (a == b)
            assert distance(a, b) == distance(b, a)


def test_neighbors_are_six_distinct_adjacent_cells():
    cell = CubeCoord(2, -1)
    adjacent = list(neighbors(cell))
    assert len(set(adjacent)) == 6
    assert all(distance(cell, n) == 1 for n in adjacent)


def test_jump_destination_is_two_steps_away():
    origin = CubeCoord(0, 0)
    for d in DIRECTIONS:
        landing = jump_destination(origin, d)
        assert landing == CubeCoord(2 * d.q, 2 * d.r)
        assert distance(origin, landing) == 2


def test_direction_between():
    assert direction_between(ORIGIN, CubeCoord(1, -1)) == 0
    assert direction_between(ORIGIN, CubeCoord(0, -1)) == 5
    assert direction_between(ORIGIN, CubeCoord(2, -2)) is None


def test_ring_and_disk_sizes():
    assert ring(ORIGIN, 0) == [ORIGIN]
    assert len(ring(ORIGIN, 3)) == 18
    assert all(distance(ORIGIN, c) == 3 for c in ring(ORIGIN, 3))
    assert len(disk(ORIGIN, 4)) == 61
    with pytest.raises(InvalidCoordinateError):
        ring(ORIGIN, -1)


def test_rotate60_full_turn_is_identity():
    cell = CubeCoord(3, -1)
    assert rotate60(cell, 6) == cell
    assert rotate60(cell, 3) == CubeCoord(-3, 1)
    assert distance(ORIGIN, rotate60(cell)) == distance(ORIGIN, cell)


def test_centroid_of_ring_is_center():
    c = centroid(ring(CubeCoord(1, 1), 1))
    assert c.q == pytest.approx(1.0)
    assert c.r == pytest.approx(1.0)
    assert c.s == pytest.approx(-2.0)
    assert centroid([]) == (0.0, 0.0, 0.0)


def test_key_round_trip():
    cell = CubeCoord(-4, 7)
    assert cell.key == "-4,7"
    assert parse_coord_key(cell.key) == cell
    assert parse_coord_key("3,-2") == CubeCoord(3, -2)


@pytest.mark.parametrize("bad", ["", "1", "1,2,3", "a,b", "1.5,2"])
def test_parse_rejects_malformed_keys(bad):
    with pytest.raises(InvalidCoordinateError):
        parse_coord_key(bad)
