"""Cube-coordinate hex geometry for the star board.

Every cell is addressed by cube coordinates ``(q, r, s)`` with the invariant
``q + r + s == 0``. Only ``q`` and ``r`` are stored by callers; ``s`` is
derived on construction, and the textual key ``"q,r"`` is the identity used
by board maps and every serialized payload.

Usage:
    from sternhalma.geometry import CubeCoord, distance, neighbors

    origin = CubeCoord(0, 0)
    ring = list(neighbors(origin))
    assert all(distance(origin, cell) == 1 for cell in ring)
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import NamedTuple, Protocol

from .errors import InvalidCoordinateError


class _Cube(Protocol):
    q: float
    r: float
    s: float


@dataclass(frozen=True, slots=True)
class CubeCoord:
    """Immutable integer hex cell. Equality and hashing use ``(q, r)``."""

    q: int
    r: int
    s: int = field(init=False, compare=False)
    key: str = field(init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "s", -self.q - self.r)
        object.__setattr__(self, "key", f"{self.q},{self.r}")

    @classmethod
    def from_cube(cls, q: int, r: int, s: int) -> CubeCoord:
        """Build from all three components, failing loudly on a bad sum."""
        if q + r + s != 0:
            raise InvalidCoordinateError(
                "Cube coordinate components must sum to zero",
                context={"q": q, "r": r, "s": s},
            )
        return cls(q, r)

    def __add__(self, other: CubeCoord) -> CubeCoord:
        return CubeCoord(self.q + other.q, self.r + other.r)

    def __sub__(self, other: CubeCoord) -> CubeCoord:
        return CubeCoord(self.q - other.q, self.r - other.r)

    def __str__(self) -> str:
        return self.key


class FractionalCube(NamedTuple):
    """Non-integer cube point, produced by :func:`centroid`."""

    q: float
    r: float
    s: float


ORIGIN = CubeCoord(0, 0)

# Unit directions in fixed order: E, SE, SW, W, NW, NE. Move generation
# iterates in this order, so changing it changes AI candidate ordering.
DIRECTIONS: tuple[CubeCoord, ...] = (
    CubeCoord(1, -1),
    CubeCoord(1, 0),
    CubeCoord(0, 1),
    CubeCoord(-1, 1),
    CubeCoord(-1, 0),
    CubeCoord(0, -1),
)

DIRECTION_NAMES: tuple[str, ...] = ("E", "SE", "SW", "W", "NW", "NE")


def coord_key(coord: CubeCoord) -> str:
    return coord.key


def parse_coord_key(key: str) -> CubeCoord:
    """Parse a ``"q,r"`` key back into a coordinate."""
    parts = key.split(",")
    if len(parts) != 2:
        raise InvalidCoordinateError(
            "Coordinate key must have the form 'q,r'", context={"key": key}
        )
    try:
        return CubeCoord(int(parts[0]), int(parts[1]))
    except ValueError as exc:
        raise InvalidCoordinateError(
            "Coordinate key components must be integers",
            context={"key": key},
        ) from exc


def add(a: CubeCoord, b: CubeCoord) -> CubeCoord:
    return CubeCoord(a.q + b.q, a.r + b.r)


def subtract(a: CubeCoord, b: CubeCoord) -> CubeCoord:
    return CubeCoord(a.q - b.q, a.r - b.r)


def scale(a: CubeCoord, factor: int) -> CubeCoord:
    return CubeCoord(a.q * factor, a.r * factor)


def neighbor(coord: CubeCoord, direction: int) -> CubeCoord:
    d = DIRECTIONS[direction]
    return CubeCoord(coord.q + d.q, coord.r + d.r)


def neighbors(coord: CubeCoord) -> Iterator[CubeCoord]:
    """Yield the six adjacent cells in direction order."""
    for d in DIRECTIONS:
        yield CubeCoord(coord.q + d.q, coord.r + d.r)


def jump_destination(origin: CubeCoord, over: CubeCoord) -> CubeCoord:
    """Landing cell when jumping from ``origin`` over the adjacent ``over``."""
    return CubeCoord(2 * over.q - origin.q, 2 * over.r - origin.r)


def direction_between(a: CubeCoord, b: CubeCoord) -> int | None:
    """Index into :data:`DIRECTIONS` if ``b`` is adjacent to ``a``."""
    dq, dr = b.q - a.q, b.r - a.r
    for index, d in enumerate(DIRECTIONS):
        if d.q == dq and d.r == dr:
            return index
    return None


def distance(a: _Cube, b: _Cube) -> float:
    """Hex distance; integral for integer cells, fractional for centroids."""
    return max(abs(a.q - b.q), abs(a.r - b.r), abs(a.s - b.s))


def centroid(points: Iterable[CubeCoord]) -> FractionalCube:
    """Mean of ``points``; the origin when ``points`` is empty."""
    pts = list(points)
    if not pts:
        return FractionalCube(0.0, 0.0, 0.0)
    n = len(pts)
    q = sum(p.q for p in pts) / n
    r = sum(p.r for p in pts) / n
    s = sum(p.s for p in pts) / n
    return FractionalCube(q, r, s)


def ring(center: CubeCoord, radius: int) -> list[CubeCoord]:
    """Cells at exactly ``radius`` from ``center``, walked counter-clockwise.

    The walk starts at ``center + NW * radius`` and follows each direction
    in order for ``radius`` steps, so ``len(ring) == 6 * radius``.
    """
    if radius < 0:
        raise InvalidCoordinateError(
            "Ring radius must be non-negative", context={"radius": radius}
        )
    if radius == 0:
        return [center]
    results: list[CubeCoord] = []
    cell = add(center, scale(DIRECTIONS[4], radius))
    for direction in range(6):
        for _ in range(radius):
            results.append(cell)
            cell = neighbor(cell, direction)
    return results


def disk(center: CubeCoord, radius: int) -> list[CubeCoord]:
    """All cells within ``radius`` of ``center``, innermost ring first."""
    cells: list[CubeCoord] = []
    for r in range(radius + 1):
        cells.extend(ring(center, r))
    return cells


def rotate60(coord: CubeCoord, steps: int = 1) -> CubeCoord:
    """Rotate about the origin by ``steps`` * 60 degrees clockwise."""
    q, r, s = coord.q, coord.r, coord.s
    for _ in range(steps % 6):
        q, r, s = -r, -s, -q
    return CubeCoord(q, r)
