from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import AbstractSet, Iterator


class Direction(Enum):
    UP = (0, -1)
    DOWN = (0, 1)
    LEFT = (-1, 0)
    RIGHT = (1, 0)

    @property
    def delta(self) -> tuple[int, int]:
        return self.value

    @property
    def opposite(self) -> "Direction":
        return {
            Direction.UP: Direction.DOWN,
            Direction.DOWN: Direction.UP,
            Direction.LEFT: Direction.RIGHT,
            Direction.RIGHT: Direction.LEFT,
        }[self]

    @classmethod
    def from_delta(cls, dx: int, dy: int) -> "Direction | None":
        for direction in cls:
            if direction.value == (dx, dy):
                return direction
        return None


@dataclass(frozen=True, order=True)
class Position:
    x: int
    y: int

    def step(self, direction: Direction) -> "Position":
        dx, dy = direction.delta
        return Position(x=self.x + dx, y=self.y + dy)

    def chebyshev(self, other: "Position") -> int:
        return max(abs(self.x - other.x), abs(self.y - other.y))


def in_bounds(size: int, pos: Position) -> bool:
    return 0 <= pos.x < size and 0 <= pos.y < size


@dataclass(frozen=True)
class Edge:
    """
    Boundary between two orthogonally adjacent cells.

    Always stored with ``a < b`` so that the edge between p and q is the same
    value (and hash) regardless of argument order. Use ``Edge.between``.
    """

    a: Position
    b: Position

    def __post_init__(self) -> None:
        if abs(self.a.x - self.b.x) + abs(self.a.y - self.b.y) != 1:
            raise ValueError(f"Cells are not adjacent: {self.a}, {self.b}")
        if self.b < self.a:
            raise ValueError(f"Edge is not canonical: {self.a} > {self.b}")

    @classmethod
    def between(cls, p: Position, q: Position) -> "Edge":
        return cls(a=min(p, q), b=max(p, q))

    def __iter__(self) -> Iterator[Position]:
        yield self.a
        yield self.b


def reachable(
    size: int,
    src: Position,
    dst: Position,
    walls: AbstractSet[Edge],
    avoid: AbstractSet[Position] = frozenset(),
) -> bool:
    """
    Breadth-first search over the open edges of a size x size grid.

    Cells in ``avoid`` are treated as impassable (other than ``dst`` itself).
    """
    q = deque([src])
    seen = {src}
    while q:
        cur = q.popleft()
        if cur == dst:
            return True
        for direction in Direction:
            nxt = cur.step(direction)
            if nxt in seen or not in_bounds(size, nxt):
                continue
            if nxt in avoid and nxt != dst:
                continue
            if Edge.between(cur, nxt) in walls:
                continue
            seen.add(nxt)
            q.append(nxt)
    return False


def solvable(size: int, start: Position, key: Position, door: Position, walls: AbstractSet[Edge]) -> bool:
    # The door is locked until the key is held, so the first leg may not cross it.
    return reachable(size, start, key, walls, avoid={door}) and reachable(size, key, door, walls)


def essential_cells(size: int, *anchors: Position) -> frozenset[Position]:
    """Anchors plus their in-bounds orthogonal neighbours."""
    cells: set[Position] = set()
    for pos in anchors:
        cells.add(pos)
        for direction in Direction:
            nxt = pos.step(direction)
            if in_bounds(size, nxt):
                cells.add(nxt)
    return frozenset(cells)


@dataclass(frozen=True)
class Maze:
    size: int
    start: Position
    key: Position
    door: Position
    walls: frozenset[Edge] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        for name, pos in (("start", self.start), ("key", self.key), ("door", self.door)):
            if not self.in_bounds(pos):
                raise ValueError(f"{name} out of bounds: {pos}")
        if len({self.start, self.key, self.door}) != 3:
            raise ValueError("start, key and door must be distinct cells")
        # Callers may hand in a plain set.
        object.__setattr__(self, "walls", frozenset(self.walls))

    def in_bounds(self, pos: Position) -> bool:
        return in_bounds(self.size, pos)

    def has_wall(self, pos: Position, direction: Direction) -> bool:
        nxt = pos.step(direction)
        if not self.in_bounds(pos) or not self.in_bounds(nxt):
            return False
        return Edge.between(pos, nxt) in self.walls

    def available_moves(self, pos: Position) -> set[Direction]:
        if not self.in_bounds(pos):
            return set()
        return {
            d for d in Direction
            if self.in_bounds(pos.step(d)) and not self.has_wall(pos, d)
        }

    def is_solvable(self) -> bool:
        return solvable(self.size, self.start, self.key, self.door, self.walls)
