"""
Level / movement state machine.

Every transition is a pure function ``(session, intent) -> (session, events)``.
Sessions and player states are frozen; a transition returns new values and
leaves its inputs untouched. Level generation is delegated to a
``LevelFactory`` passed in by the caller.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol, Union

from config import GameConfig
from maze import Direction, Edge, Maze, Position

logger = logging.getLogger(__name__)


class MazeSource(Protocol):
    config: GameConfig

    def generate_level(self, level_index: int) -> Maze: ...


class GamePhase(Enum):
    PLAYING = "playing"
    BLOCKED = "blocked"
    LEVEL_COMPLETE = "level_complete"
    GAME_WON = "game_won"
    GAME_OVER = "game_over"


class BlockReason(Enum):
    BOUNDS = "bounds"
    WALL = "wall"
    DOOR_LOCKED = "door_locked"


# ----------------------------
# Intents
# ----------------------------


@dataclass(frozen=True)
class Move:
    dx: int
    dy: int


@dataclass(frozen=True)
class ResolveBlocked:
    pass


@dataclass(frozen=True)
class Tick:
    seconds: float


@dataclass(frozen=True)
class Timeout:
    pass


@dataclass(frozen=True)
class Restart:
    pass


@dataclass(frozen=True)
class RetryLevel:
    pass


Intent = Union[Move, ResolveBlocked, Tick, Timeout, Restart, RetryLevel]


# ----------------------------
# Events
# ----------------------------


@dataclass(frozen=True)
class LevelStarted:
    level_index: int
    size: int
    maze: Maze


@dataclass(frozen=True)
class Moved:
    position: Position
    visited: frozenset[Position]


@dataclass(frozen=True)
class Blocked:
    reason: BlockReason
    direction: Direction | None = None


@dataclass(frozen=True)
class KeyCollected:
    pass


@dataclass(frozen=True)
class KeyReturned:
    pass


@dataclass(frozen=True)
class LevelComplete:
    level_index: int
    timed_out: bool = False


@dataclass(frozen=True)
class GameWon:
    pass


@dataclass(frozen=True)
class GameOver:
    pass


Event = Union[
    LevelStarted, Moved, Blocked, KeyCollected, KeyReturned, LevelComplete, GameWon, GameOver
]


# ----------------------------
# State
# ----------------------------


@dataclass(frozen=True)
class PlayerState:
    position: Position
    visited: frozenset[Position] = field(default_factory=frozenset)
    key_collected: bool = False


@dataclass(frozen=True)
class GameSession:
    level_index: int
    max_level: int
    phase: GamePhase
    maze: Maze
    player: PlayerState
    time_remaining: float
    # Budget ran out during a collision; the level ends once it resolves.
    timeout_pending: bool = False

    @property
    def is_over(self) -> bool:
        return self.phase in (GamePhase.GAME_WON, GamePhase.GAME_OVER)


Transition = tuple[GameSession, list[Event]]


def start_level(level_index: int, factory: MazeSource) -> Transition:
    config = factory.config
    maze = factory.generate_level(level_index)
    session = GameSession(
        level_index=level_index,
        max_level=config.max_level,
        phase=GamePhase.PLAYING,
        maze=maze,
        player=PlayerState(position=maze.start),
        time_remaining=config.time_limit,
    )
    logger.info("level %d started on a %dx%d grid", level_index, maze.size, maze.size)
    return session, [LevelStarted(level_index=level_index, size=maze.size, maze=maze)]


def step(session: GameSession, intent: Intent, factory: MazeSource) -> Transition:
    if isinstance(intent, Restart):
        return start_level(1, factory)
    if isinstance(intent, RetryLevel):
        if session.is_over:
            return start_level(1, factory)
        return start_level(session.level_index, factory)
    if isinstance(intent, ResolveBlocked):
        return _resolve_blocked(session, factory)
    if isinstance(intent, Move):
        if session.phase is not GamePhase.PLAYING:
            logger.debug("dropping %s in phase %s", intent, session.phase.value)
            return session, []
        return _move(session, intent, factory)
    if isinstance(intent, (Tick, Timeout)):
        if session.phase not in (GamePhase.PLAYING, GamePhase.BLOCKED):
            logger.debug("dropping %s in phase %s", intent, session.phase.value)
            return session, []
        if isinstance(intent, Tick):
            return _tick(session, intent, factory)
        return _expire(session, factory)
    raise TypeError(f"Unknown intent: {intent!r}")


def _move(session: GameSession, intent: Move, factory: MazeSource) -> Transition:
    direction = Direction.from_delta(intent.dx, intent.dy)
    if direction is None:
        logger.debug("ignoring move with invalid delta (%s, %s)", intent.dx, intent.dy)
        return session, []

    maze = session.maze
    player = session.player
    target = player.position.step(direction)

    if not maze.in_bounds(target):
        return session, [Blocked(BlockReason.BOUNDS, direction)]

    # Wall before lock: a walled approach to a locked door is a collision.
    if Edge.between(player.position, target) in maze.walls:
        return replace(session, phase=GamePhase.BLOCKED), [Blocked(BlockReason.WALL, direction)]

    if target == maze.door and not player.key_collected:
        return session, [Blocked(BlockReason.DOOR_LOCKED, direction)]

    visited = player.visited | {target}
    player = replace(player, position=target, visited=visited)
    events: list[Event] = [Moved(position=target, visited=visited)]

    if target == maze.key and not player.key_collected:
        player = replace(player, key_collected=True)
        events.append(KeyCollected())

    session = replace(session, player=player)
    if target == maze.door and player.key_collected:
        session, more = _finish_level(session, factory, timed_out=False)
        events.extend(more)
    return session, events


def _resolve_blocked(session: GameSession, factory: MazeSource) -> Transition:
    if session.phase is not GamePhase.BLOCKED:
        logger.debug("stale collision resolution in phase %s", session.phase.value)
        return session, []
    if session.timeout_pending:
        return _finish_level(session, factory, timed_out=True)

    start = session.maze.start
    events: list[Event] = []
    if session.player.key_collected:
        events.append(KeyReturned())
    player = PlayerState(position=start)
    events.append(Moved(position=start, visited=player.visited))
    return replace(session, phase=GamePhase.PLAYING, player=player), events


def _tick(session: GameSession, intent: Tick, factory: MazeSource) -> Transition:
    if not math.isfinite(intent.seconds) or intent.seconds <= 0:
        logger.debug("ignoring tick of %r seconds", intent.seconds)
        return session, []
    remaining = max(0.0, session.time_remaining - intent.seconds)
    session = replace(session, time_remaining=remaining)
    if remaining > 0:
        return session, []
    return _expire(session, factory)


def _expire(session: GameSession, factory: MazeSource) -> Transition:
    # The countdown keeps running through a collision; the level ends when it resolves.
    if session.phase is GamePhase.BLOCKED:
        return replace(session, time_remaining=0.0, timeout_pending=True), []
    return _finish_level(session, factory, timed_out=True)


def _finish_level(session: GameSession, factory: MazeSource, *, timed_out: bool) -> Transition:
    session = replace(session, phase=GamePhase.LEVEL_COMPLETE)
    events: list[Event] = [LevelComplete(level_index=session.level_index, timed_out=timed_out)]
    logger.info(
        "level %d %s", session.level_index, "timed out" if timed_out else "completed"
    )

    if session.level_index < session.max_level:
        session, more = start_level(session.level_index + 1, factory)
        events.extend(more)
        return session, events

    if timed_out:
        events.append(GameOver())
        return replace(session, phase=GamePhase.GAME_OVER), events
    events.append(GameWon())
    return replace(session, phase=GamePhase.GAME_WON), events
