import importlib
import random

import pytest

from config import GameConfig
from generator import LevelFactory
from maze import Edge, Maze, Position
from scheduler import ManualScheduler


def import_required(module_name: str):
    """
    Import a project module with a clearer failure message than ModuleNotFoundError.
    """
    try:
        return importlib.import_module(module_name)
    except ModuleNotFoundError as e:
        pytest.fail(f"Required module '{module_name}.py' could not be imported. Original error: {e}")


@pytest.fixture
def generator_module():
    return import_required("generator")


class FixedFactory:
    """
    Factory that serves hand-built mazes per level, so rule tests do not
    depend on random layouts. Levels without an entry fall back to a seeded
    LevelFactory.
    """

    def __init__(self, mazes: dict[int, Maze], config: GameConfig | None = None):
        self.config = config or GameConfig()
        self.mazes = dict(mazes)
        self.generated: list[int] = []
        self._random = LevelFactory(rng=random.Random(0), config=self.config)

    def generate_level(self, level_index: int) -> Maze:
        self.generated.append(level_index)
        if level_index in self.mazes:
            return self.mazes[level_index]
        return self._random.generate_level(level_index)


def open_maze(size: int = 5, key=(2, 2), door=(4, 4), walls=()) -> Maze:
    return Maze(
        size=size,
        start=Position(0, 0),
        key=Position(*key),
        door=Position(*door),
        walls=frozenset(Edge.between(Position(*a), Position(*b)) for a, b in walls),
    )


@pytest.fixture
def seeded_factory():
    return LevelFactory(rng=random.Random(1234))


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def fixed_factory():
    # Level 1: open 5x5 with a wall between (1,1) and (1,2).
    return FixedFactory({1: open_maze(walls=[((1, 1), (1, 2))])})


@pytest.fixture
def make_maze():
    return open_maze


@pytest.fixture
def make_factory():
    return FixedFactory
