from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable

from config import CONFIG, GameConfig
from generator import LevelFactory
from maze import Direction, Position
from rules import (
    BlockReason,
    Blocked,
    Event,
    GameOver,
    GamePhase,
    GameSession,
    GameWon,
    Intent,
    KeyCollected,
    KeyReturned,
    LevelComplete,
    LevelStarted,
    Move,
    ResolveBlocked,
    Restart,
    RetryLevel,
    Tick,
    Timeout,
    start_level,
    step,
)
from scheduler import ManualScheduler, ScheduledCall

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


@dataclass(frozen=True)
class Command:
    """
    Normalized command object consumed by the engine.
    """

    verb: str
    args: list[str] = field(default_factory=list)


@dataclass
class GameView:
    """
    UI-agnostic state projection returned by the engine.
    """

    level: int
    size: int
    pos: dict[str, int]
    start: dict[str, int]
    key: dict[str, int] | None
    door: dict[str, int]
    visited: list[dict[str, int]]
    walls: list[tuple[dict[str, int], dict[str, int]]]
    available_moves: list[str]
    key_collected: bool
    phase: str
    time_remaining: float
    is_over: bool


@dataclass
class GameOutput:
    """
    Wrapper for state + user-facing messages from engine commands.
    """

    view: GameView
    events: list[Event] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)


_DIRECTION_TOKENS = {
    "up": Direction.UP,
    "u": Direction.UP,
    "n": Direction.UP,
    "north": Direction.UP,
    "down": Direction.DOWN,
    "d": Direction.DOWN,
    "s": Direction.DOWN,
    "south": Direction.DOWN,
    "left": Direction.LEFT,
    "l": Direction.LEFT,
    "w": Direction.LEFT,
    "west": Direction.LEFT,
    "right": Direction.RIGHT,
    "r": Direction.RIGHT,
    "e": Direction.RIGHT,
    "east": Direction.RIGHT,
}


class GameEngine:
    """
    Owns the current GameSession and wires the pure transitions to a
    scheduler (for the collision delay) and to event subscribers.
    """

    def __init__(
        self,
        *,
        factory: Any = None,
        scheduler: ManualScheduler | None = None,
        config: GameConfig | None = None,
        start: bool = True,
    ):
        if factory is None:
            factory = LevelFactory(config=config if config is not None else CONFIG)
        elif config is not None and config != factory.config:
            raise ValueError("config conflicts with the factory's config; pass one or the other")
        self.factory = factory
        self.scheduler = scheduler if scheduler is not None else ManualScheduler()
        self.session: GameSession | None = None
        self._listeners: list[Listener] = []
        self._pending_resolve: ScheduledCall | None = None
        if start:
            self.start_level(1)

    # ----------------------------
    # Subscription
    # ----------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, events: list[Event]) -> None:
        for event in events:
            for listener in list(self._listeners):
                listener(event)

    # ----------------------------
    # Intents
    # ----------------------------

    def start_level(self, level_index: int) -> list[Event]:
        self.session, events = start_level(level_index, self.factory)
        self._sync_collision_timer()
        self._publish(events)
        return events

    def dispatch(self, intent: Intent) -> list[Event]:
        if self.session is None:
            if isinstance(intent, (Restart, RetryLevel)):
                return self.start_level(1)
            return []
        self.session, events = step(self.session, intent, self.factory)
        self._sync_collision_timer()
        self._publish(events)
        return events

    def move(self, dx: int, dy: int) -> list[Event]:
        return self.dispatch(Move(dx, dy))

    def restart(self) -> list[Event]:
        return self.dispatch(Restart())

    def retry_level(self) -> list[Event]:
        return self.dispatch(RetryLevel())

    def tick(self, seconds: float) -> list[Event]:
        return self.dispatch(Tick(seconds))

    def timeout(self) -> list[Event]:
        return self.dispatch(Timeout())

    def resolve_blocked_delay_elapsed(self) -> list[Event]:
        return self.dispatch(ResolveBlocked())

    def _sync_collision_timer(self) -> None:
        # Exactly one pending resolution while blocked, none otherwise.
        blocked = self.session is not None and self.session.phase is GamePhase.BLOCKED
        pending = self._pending_resolve
        if blocked and (pending is None or not pending.active):
            self._pending_resolve = self.scheduler.schedule(
                self.factory.config.collision_delay, self._on_collision_delay
            )
        elif not blocked and pending is not None:
            if pending.active:
                logger.debug("cancelling pending collision resolution")
                self.scheduler.cancel(pending)
            self._pending_resolve = None

    def _on_collision_delay(self) -> None:
        self._pending_resolve = None
        self.resolve_blocked_delay_elapsed()

    # ----------------------------
    # Text commands
    # ----------------------------

    def handle(self, command: Command) -> GameOutput:
        verb = (command.verb or "").strip().lower()
        args = command.args or []

        if verb in {"look", "map"}:
            return self._output([])

        if verb == "restart":
            return self._output(self.restart())

        if verb == "retry":
            return self._output(self.retry_level())

        if verb == "wait":
            try:
                seconds = float(args[0]) if args else self.factory.config.collision_delay
            except ValueError:
                return self._output([], ["Invalid duration."])
            if not math.isfinite(seconds):
                return self._output([], ["Invalid duration."])
            events = self.tick(seconds)
            collected: list[Event] = []
            unsubscribe = self.subscribe(collected.append)
            try:
                self.scheduler.advance(seconds)
            finally:
                unsubscribe()
            return self._output(events + collected)

        if verb == "go":
            token = args[0] if args else None
        elif verb in _DIRECTION_TOKENS:
            token = verb
        else:
            return self._output([], ["Unknown command."])

        direction = _DIRECTION_TOKENS.get((token or "").strip().lower())
        if direction is None:
            return self._output([], ["Invalid direction."])
        if self.session is not None and self.session.phase is GamePhase.BLOCKED:
            return self._output([], ["Recovering from the collision..."])
        dx, dy = direction.delta
        return self._output(self.move(dx, dy))

    def _output(self, events: list[Event], messages: list[str] | None = None) -> GameOutput:
        messages = list(messages or [])
        for event in events:
            text = describe_event(event)
            if text:
                messages.append(text)
        return GameOutput(view=self.view(), events=events, messages=messages)

    def view(self) -> GameView:
        if self.session is None:
            raise RuntimeError("No level has been started")
        session = self.session
        maze = session.maze
        player = session.player
        return GameView(
            level=session.level_index,
            size=maze.size,
            pos=_pos_dict(player.position),
            start=_pos_dict(maze.start),
            key=None if player.key_collected else _pos_dict(maze.key),
            door=_pos_dict(maze.door),
            visited=[_pos_dict(p) for p in sorted(player.visited)],
            walls=[(_pos_dict(e.a), _pos_dict(e.b)) for e in sorted(maze.walls, key=lambda e: (e.a, e.b))],
            available_moves=sorted(d.name for d in maze.available_moves(player.position)),
            key_collected=player.key_collected,
            phase=session.phase.value,
            time_remaining=session.time_remaining,
            is_over=session.is_over,
        )


def describe_event(event: Event) -> str | None:
    if isinstance(event, LevelStarted):
        return (
            f"Level {event.level_index}: navigate the {event.size}x{event.size} grid "
            "to find the key and reach the door!"
        )
    if isinstance(event, Blocked):
        return {
            BlockReason.BOUNDS: "You can't go that way.",
            BlockReason.WALL: "You hit a wall!",
            BlockReason.DOOR_LOCKED: "Need key first!",
        }[event.reason]
    if isinstance(event, KeyCollected):
        return "Key collected!"
    if isinstance(event, KeyReturned):
        return "Key returned!"
    if isinstance(event, LevelComplete):
        if event.timed_out:
            return f"Time up on level {event.level_index}!"
        return f"Level {event.level_index} complete!"
    if isinstance(event, GameWon):
        return "You win! You completed all levels!"
    if isinstance(event, GameOver):
        return "Game over. Time's up!"
    return None


def _pos_dict(pos: Position) -> dict[str, int]:
    return {"x": pos.x, "y": pos.y}
