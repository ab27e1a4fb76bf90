from __future__ import annotations

import logging
import random
from typing import Callable

from config import CONFIG, GameConfig
from maze import Edge, Maze, Position, essential_cells, solvable

logger = logging.getLogger(__name__)


def _random_edge(size: int, rng: random.Random) -> Edge:
    if rng.random() < 0.5:
        # Between (x, y) and (x, y + 1)
        x = rng.randrange(size)
        y = rng.randrange(size - 1)
        return Edge(Position(x, y), Position(x, y + 1))
    x = rng.randrange(size - 1)
    y = rng.randrange(size)
    return Edge(Position(x, y), Position(x + 1, y))


def _propose_walls(
    size: int,
    start: Position,
    key: Position,
    door: Position,
    density: float,
    rng: random.Random,
    is_protected: Callable[[Edge], bool],
) -> frozenset[Edge]:
    walls: set[Edge] = set()
    for _ in range(size * size):
        if rng.random() >= density:
            continue
        edge = _random_edge(size, rng)
        if edge in walls or is_protected(edge):
            continue
        walls.add(edge)
        if not solvable(size, start, key, door, walls):
            walls.discard(edge)
    return frozenset(walls)


def place_walls(
    size: int,
    start: Position,
    key: Position,
    door: Position,
    density: float,
    essential: frozenset[Position],
    rng: random.Random,
) -> frozenset[Edge]:
    """
    Propose size * size random walls and keep those that leave both the
    start->key and key->door walks open.

    The start->key walk may not pass through the door cell, since the door
    stays locked until the key is held. This rejects more walls than plain
    two-leg reachability would, so the realised density is a little lower.

    ``density`` is the chance that a proposal is drawn at all. A wall with
    both endpoints in ``essential`` is never proposed.
    """
    return _propose_walls(
        size, start, key, door, density, rng,
        is_protected=lambda edge: edge.a in essential and edge.b in essential,
    )


def place_fallback_walls(
    size: int,
    start: Position,
    key: Position,
    door: Position,
    density: float,
    rng: random.Random,
) -> frozenset[Edge]:
    """Like place_walls, but keeps walls clear of the 3x3 block around each anchor."""
    anchors = (start, key, door)

    def near_anchor(edge: Edge) -> bool:
        return any(cell.chebyshev(anchor) <= 1 for cell in edge for anchor in anchors)

    return _propose_walls(size, start, key, door, density, rng, is_protected=near_anchor)


class LevelFactory:
    """
    Builds solvable mazes for the fixed level table.

    The random source is injectable so that a seeded factory replays the
    same sequence of levels.
    """

    def __init__(self, rng: random.Random | None = None, config: GameConfig = CONFIG):
        self.rng = rng if rng is not None else random.Random()
        self.config = config

    def generate_level(self, level_index: int) -> Maze:
        level = self.config.level(level_index)
        return self.generate_for_size(level.size, level.wall_density)

    def generate_for_size(self, size: int, density: float) -> Maze:
        if size < 2:
            raise ValueError(f"Grid too small: {size}")

        start = Position(0, 0)
        for attempt in range(1, self.config.max_attempts + 1):
            key = Position(self.rng.randrange(size), self.rng.randrange(size))
            door = Position(self.rng.randrange(size), self.rng.randrange(size))
            if len({start, key, door}) != 3:
                continue

            essential = essential_cells(size, start, key, door)
            walls = place_walls(size, start, key, door, density, essential, self.rng)
            maze = Maze(size=size, start=start, key=key, door=door, walls=walls)
            if maze.is_solvable():
                logger.debug(
                    "generated %dx%d maze on attempt %d with %d walls",
                    size, size, attempt, len(walls),
                )
                return maze
            logger.debug("attempt %d produced an unsolvable %dx%d maze", attempt, size, size)

        logger.warning(
            "no solvable %dx%d maze after %d attempts; using fallback layout",
            size, size, self.config.max_attempts,
        )
        return self._fallback(size)

    def _fallback(self, size: int) -> Maze:
        start = Position(0, 0)
        key = Position(int(size * 0.6), int(size * 0.4))
        door = Position(size - 1, size - 1)
        walls = place_fallback_walls(
            size, start, key, door, self.config.fallback_density, self.rng
        )
        return Maze(size=size, start=start, key=key, door=door, walls=walls)
