from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


@dataclass(frozen=True)
class LevelConfig:
    size: int
    wall_density: float


def _default_levels() -> Dict[int, LevelConfig]:
    return {
        1: LevelConfig(size=5, wall_density=0.50),
        2: LevelConfig(size=7, wall_density=0.70),
        3: LevelConfig(size=10, wall_density=0.85),
    }


@dataclass(frozen=True)
class GameConfig:
    levels: Dict[int, LevelConfig] = field(default_factory=_default_levels)

    # Per-level countdown, seconds
    time_limit: float = 300.0
    # Delay between a wall collision and the reset to start, seconds
    collision_delay: float = 1.0

    # Generation
    max_attempts: int = 50
    fallback_density: float = 0.30

    @property
    def max_level(self) -> int:
        return max(self.levels)

    def level(self, level_index: int) -> LevelConfig:
        try:
            return self.levels[level_index]
        except KeyError:
            raise ValueError(f"Unknown level: {level_index}") from None


CONFIG = GameConfig()
