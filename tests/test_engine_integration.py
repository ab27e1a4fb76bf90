import random
from collections import deque

import pytest

import main
from config import GameConfig
from generator import LevelFactory
from maze import Direction, Position
from rules import (
    BlockReason,
    Blocked,
    GamePhase,
    KeyReturned,
    LevelComplete,
    LevelStarted,
    Moved,
)


def _path(maze, src, dst, avoid=()):
    """Directions along a BFS shortest path using only the maze API."""
    q = deque([src])
    prev = {src: None}
    while q:
        cur = q.popleft()
        if cur == dst:
            break
        for d in maze.available_moves(cur):
            nxt = cur.step(d)
            if nxt in prev or nxt in avoid:
                continue
            prev[nxt] = (cur, d)
            q.append(nxt)
    assert dst in prev, f"{dst} must be reachable from {src}"

    dirs = []
    cur = dst
    while prev[cur] is not None:
        cur, d = prev[cur]
        dirs.append(d)
    dirs.reverse()
    return dirs


def _solve_current_level(engine):
    maze = engine.session.maze
    events = []
    for d in _path(maze, maze.start, maze.key, avoid={maze.door}) + _path(maze, maze.key, maze.door):
        events.extend(engine.move(*d.delta))
    return events


@pytest.fixture
def engine(fixed_factory, scheduler):
    return main.GameEngine(factory=fixed_factory, scheduler=scheduler)


def test_new_engine_starts_level_one(engine):
    view = engine.view()
    assert view.level == 1
    assert view.size == 5
    assert view.pos == {"x": 0, "y": 0}
    assert view.phase == "playing"
    assert view.available_moves == ["DOWN", "RIGHT"]
    assert view.key == {"x": 2, "y": 2}
    assert view.walls == [({"x": 1, "y": 1}, {"x": 1, "y": 2})]


def test_subscribers_receive_events(engine):
    seen = []
    unsubscribe = engine.subscribe(seen.append)
    engine.move(1, 0)
    engine.move(0, -1)
    assert seen == [
        Moved(position=Position(1, 0), visited=frozenset({Position(1, 0)})),
        Blocked(BlockReason.BOUNDS, Direction.UP),
    ]

    unsubscribe()
    engine.move(1, 0)
    assert len(seen) == 2


def test_wall_collision_resolves_after_delay(engine, scheduler):
    engine.move(1, 0)
    engine.move(0, 1)
    events = engine.move(0, 1)
    assert events == [Blocked(BlockReason.WALL, Direction.DOWN)]
    assert engine.session.phase is GamePhase.BLOCKED
    assert scheduler.pending == 1

    scheduler.advance(0.5)
    assert engine.session.phase is GamePhase.BLOCKED

    scheduler.advance(0.5)
    assert engine.session.phase is GamePhase.PLAYING
    assert engine.view().pos == {"x": 0, "y": 0}
    assert engine.view().visited == []
    assert scheduler.pending == 0


def test_key_returned_after_collision(make_maze, make_factory, scheduler):
    factory = make_factory({1: make_maze(key=(1, 1), walls=[((1, 1), (1, 2))])})
    engine = main.GameEngine(factory=factory, scheduler=scheduler)
    seen = []
    engine.subscribe(seen.append)

    engine.move(1, 0)
    engine.move(0, 1)
    assert engine.view().key_collected
    assert engine.view().key is None

    engine.move(0, 1)
    scheduler.advance(1.0)
    assert KeyReturned() in seen
    assert engine.view().key_collected is False
    assert engine.view().key == {"x": 1, "y": 1}


def test_restart_cancels_pending_resolution(engine, scheduler):
    engine.move(1, 0)
    engine.move(0, 1)
    engine.move(0, 1)
    assert scheduler.pending == 1

    engine.restart()
    assert scheduler.pending == 0
    engine.move(1, 0)

    scheduler.advance(5.0)
    # A stale resolution would have reset the player to the start.
    assert engine.view().pos == {"x": 1, "y": 0}


def test_manual_resolution_cancels_scheduled_one(engine, scheduler):
    engine.move(1, 0)
    engine.move(0, 1)
    engine.move(0, 1)
    engine.resolve_blocked_delay_elapsed()
    assert engine.session.phase is GamePhase.PLAYING
    assert scheduler.pending == 0


def test_only_one_resolution_armed_per_collision(engine, scheduler):
    engine.move(1, 0)
    engine.move(0, 1)
    engine.move(0, 1)
    engine.move(0, 1)
    engine.move(-1, 0)
    assert scheduler.pending == 1


def test_timeout_advances_to_level_two(engine):
    events = engine.timeout()
    assert events[0] == LevelComplete(level_index=1, timed_out=True)
    assert engine.view().level == 2
    assert engine.view().size == 7


def test_tick_drives_the_countdown(engine):
    engine.tick(120)
    assert engine.view().time_remaining == 180
    events = engine.tick(180)
    assert LevelComplete(level_index=1, timed_out=True) in events


def test_timeout_during_collision_advances_after_delay(engine, scheduler):
    engine.move(1, 0)
    engine.move(0, 1)
    engine.move(0, 1)
    assert engine.session.phase is GamePhase.BLOCKED

    assert engine.timeout() == []
    assert engine.view().level == 1

    scheduler.advance(1.0)
    view = engine.view()
    assert view.level == 2
    assert view.phase == "playing"
    assert view.time_remaining == 300.0
    assert scheduler.pending == 0


def test_tick_during_collision_spends_budget(engine):
    engine.move(1, 0)
    engine.move(0, 1)
    engine.move(0, 1)

    engine.tick(1.0)
    assert engine.view().phase == "blocked"
    assert engine.view().time_remaining == 299.0


def test_full_playthrough_wins(scheduler):
    engine = main.GameEngine(factory=LevelFactory(rng=random.Random(2024)), scheduler=scheduler)

    started = []
    engine.subscribe(lambda e: started.append(e.level_index) if isinstance(e, LevelStarted) else None)

    for _ in range(3):
        _solve_current_level(engine)

    assert started == [2, 3]
    assert engine.session.phase is GamePhase.GAME_WON
    assert engine.view().is_over

    engine.restart()
    assert engine.view().level == 1
    assert engine.view().phase == "playing"


def test_engine_without_start_ignores_moves(fixed_factory):
    engine = main.GameEngine(factory=fixed_factory, start=False)
    assert engine.move(1, 0) == []
    with pytest.raises(RuntimeError):
        engine.view()
    engine.restart()
    assert engine.view().level == 1


# ----------------------------
# Text commands
# ----------------------------


def test_direction_commands_move_player(engine):
    out = engine.handle(main.Command(verb="go", args=["right"]))
    assert out.view.pos == {"x": 1, "y": 0}
    out = engine.handle(main.Command(verb="s"))
    assert out.view.pos == {"x": 1, "y": 1}


def test_locked_door_message(make_maze, make_factory):
    engine = main.GameEngine(factory=make_factory({1: make_maze(key=(4, 0), door=(1, 0))}))
    out = engine.handle(main.Command(verb="right"))
    assert out.messages == ["Need key first!"]
    assert out.view.pos == {"x": 0, "y": 0}


def test_wait_resolves_collision(engine):
    engine.handle(main.Command(verb="right"))
    engine.handle(main.Command(verb="down"))
    out = engine.handle(main.Command(verb="down"))
    assert out.messages == ["You hit a wall!"]

    out = engine.handle(main.Command(verb="up"))
    assert out.view.pos == {"x": 1, "y": 1}
    assert out.view.phase == "blocked"

    out = engine.handle(main.Command(verb="wait", args=["1"]))
    assert out.view.pos == {"x": 0, "y": 0}
    assert out.view.phase == "playing"
    assert any(isinstance(e, Moved) for e in out.events)


def test_invalid_commands_leave_state_unchanged(engine):
    before = engine.view()
    out = engine.handle(main.Command(verb="warp", args=["now"]))
    assert out.messages == ["Unknown command."]
    out = engine.handle(main.Command(verb="go", args=["sideways"]))
    assert out.messages == ["Invalid direction."]
    out = engine.handle(main.Command(verb="wait", args=["soon"]))
    assert out.messages == ["Invalid duration."]
    assert engine.view() == before


@pytest.mark.parametrize("duration", ["nan", "inf", "-inf"])
def test_wait_rejects_non_finite_duration(engine, duration):
    before = engine.view()
    out = engine.handle(main.Command(verb="wait", args=[duration]))
    assert out.messages == ["Invalid duration."]
    assert out.events == []
    assert out.view.level == 1
    assert out.view.time_remaining == 300.0
    assert engine.view() == before


def test_conflicting_config_rejected(fixed_factory, scheduler):
    with pytest.raises(ValueError):
        main.GameEngine(
            factory=fixed_factory, scheduler=scheduler, config=GameConfig(time_limit=10.0)
        )

    engine = main.GameEngine(
        factory=fixed_factory, scheduler=scheduler, config=fixed_factory.config
    )
    assert engine.view().time_remaining == 300.0


def test_config_alone_builds_factory(scheduler):
    engine = main.GameEngine(scheduler=scheduler, config=GameConfig(time_limit=10.0))
    assert engine.factory.config.time_limit == 10.0
    assert engine.view().time_remaining == 10.0


def test_restart_and_retry_commands(engine):
    engine.timeout()
    assert engine.view().level == 2

    out = engine.handle(main.Command(verb="retry"))
    assert out.view.level == 2
    assert out.messages[0].startswith("Level 2:")

    out = engine.handle(main.Command(verb="restart"))
    assert out.view.level == 1
