"""Playback orchestration: one cursor, two modes, one view model.

In scrub mode the cursor is a time value driven by ``PlaybackClock`` or by
``seek``; the nearest commit's most significant file is shown. In step mode the
cursor is an index into the operation sequence and each operation runs through
``OVERVIEW -> CREATING | MODIFYING`` before the next one starts.

Every timer and fetch callback carries the generation it was scheduled under.
Pausing, seeking, stepping and mode switches bump the generation, so callbacks
from an abandoned step return without touching state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Any

from gitreplay.clock import PlaybackClock
from gitreplay.config import EndPolicy, PlaybackConfig, validate_speed
from gitreplay.diff import parse_diff, split_lines
from gitreplay.models import (
    Commit,
    Hunk,
    Operation,
    OperationKind,
    PlaybackStats,
    RevealState,
)
from gitreplay.repository import DiffUnavailable
from gitreplay.reveal import RevealSchedule, RevealScheduler, visible_hunks, visible_lines
from gitreplay.scheduler import Scheduler, TimerHandle
from gitreplay.sequencer import most_significant, operation_for
from gitreplay.session import Session
from gitreplay.timeline import EmptyTimeline

logger = logging.getLogger(__name__)

DISPLAY_CONTENT = "content"
DISPLAY_DIFF = "diff"


class Mode(Enum):
    SCRUB = "scrub"
    STEP = "step"


class Phase(Enum):
    IDLE = "idle"
    OVERVIEW = "overview"
    CREATING = "creating"
    MODIFYING = "modifying"
    COMPLETE = "complete"


@dataclass(frozen=True)
class PlaybackView:
    """Everything the presentation layer needs for one frame."""

    mode: Mode
    phase: Phase
    playing: bool
    speed: float
    end_policy: EndPolicy
    commit: Commit | None
    operation: Operation | None
    operation_index: int
    operation_count: int
    reveal: RevealState
    display: str | None
    content_lines: tuple[str, ...]
    hunks: tuple[Hunk, ...]
    granularity: str
    progress: float
    time: float | None
    stats: PlaybackStats
    error: str | None = None
    controls_enabled: bool = True
    commit_number: int = 0
    commit_count: int = 0

    @property
    def visible_content(self) -> list[str]:
        return visible_lines(list(self.content_lines), self.reveal.visible_count)

    @property
    def visible_hunks(self) -> list[Hunk]:
        return visible_hunks(list(self.hunks), self.reveal.visible_count, self.granularity)


@dataclass
class _StepCounters:
    created: int = 0
    modified: int = 0
    failed: int = 0

    def record(self, kind: OperationKind) -> None:
        match kind:
            case OperationKind.CREATE:
                self.created += 1
            case OperationKind.MODIFY:
                self.modified += 1


@dataclass
class _Display:
    kind: str | None = None
    content_lines: tuple[str, ...] = ()
    hunks: tuple[Hunk, ...] = ()


class Orchestrator:
    def __init__(
        self,
        session: Session | None = None,
        config: PlaybackConfig | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.config = config or PlaybackConfig()
        self.scheduler = scheduler or Scheduler()
        self.speed = self.config.speed
        self.end_policy = self.config.end_policy
        self.reveal = RevealScheduler()
        self.session: Session | None = None
        self.clock: PlaybackClock | None = None
        self.mode = Mode.STEP
        self.phase = Phase.IDLE
        self.playing = False
        self.generation = 0
        self.index = 0
        self.error: str | None = None
        self._commit: Commit | None = None
        self._operation: Operation | None = None
        self._display = _Display()
        self._counters = _StepCounters()
        self._handles: list[TimerHandle] = []
        self._listeners: list[Callable[[PlaybackView], None]] = []
        if session is not None:
            self.load(session)

    # -- session lifecycle -------------------------------------------------

    def load(self, session: Session) -> None:
        """Attach a new session, discarding everything from the previous one."""
        self._bump()
        if self.session is not None and self.session is not session:
            self.session.close()
        if self.clock is not None:
            self.clock.pause()
        self.session = session
        self.playing = False
        self.phase = Phase.IDLE
        self.index = 0
        self.error = None
        self._commit = None
        self._operation = None
        self._display = _Display()
        self._counters = _StepCounters()
        self.reveal.reset()
        self.clock = None
        if session.timeline:
            self.clock = PlaybackClock(
                self.scheduler,
                session.timeline.bounds(),
                tick_interval_ms=self.config.tick_interval_ms,
                span_seconds=self.config.span_seconds,
                on_tick=self._on_clock_tick,
                on_end=self._on_clock_end,
            )
            self.clock.set_speed(self.speed)
            self._commit = session.timeline.commits[0]
        self._emit()

    @property
    def operations(self) -> list[Operation]:
        return self.session.operations if self.session else []

    def _require_timeline(self) -> Session:
        if self.session is None or not self.session.timeline:
            raise EmptyTimeline()
        return self.session

    # -- listeners ---------------------------------------------------------

    def subscribe(self, listener: Callable[[PlaybackView], None]) -> None:
        self._listeners.append(listener)

    def _emit(self) -> None:
        view = self.view
        for listener in list(self._listeners):
            listener(view)

    @property
    def stats(self) -> PlaybackStats:
        return PlaybackStats(
            created=self._counters.created,
            modified=self._counters.modified,
            failed=self._counters.failed,
            total_operations=len(self.operations),
        )

    @property
    def view(self) -> PlaybackView:
        session = self.session
        timeline = session.timeline if session else None
        time: float | None = None
        progress = 0.0
        if timeline:
            if self.mode is Mode.SCRUB and self.clock is not None:
                time = self.clock.time
                progress = self.clock.progress
            elif self._commit is not None:
                time = self._commit.timestamp
                progress = timeline.progress(time)
        commit_number = 0
        if timeline and self._commit is not None:
            commit_number = timeline.index_of(self._commit) + 1
        return PlaybackView(
            mode=self.mode,
            phase=self.phase,
            playing=self.playing,
            speed=self.speed,
            end_policy=self.end_policy,
            commit=self._commit,
            operation=self._operation,
            operation_index=self.index,
            operation_count=len(self.operations),
            reveal=self.reveal.state,
            display=self._display.kind,
            content_lines=self._display.content_lines,
            hunks=self._display.hunks,
            granularity=self.config.diff_granularity,
            progress=progress,
            time=time,
            stats=self.stats,
            error=self.error,
            controls_enabled=bool(timeline),
            commit_number=commit_number,
            commit_count=len(timeline) if timeline else 0,
        )

    # -- controls ----------------------------------------------------------

    def play(self) -> None:
        self._require_timeline()
        if self.playing:
            return
        self.playing = True
        if self.mode is Mode.SCRUB:
            assert self.clock is not None
            self.clock.start(self.speed)
            self._show_scrub(self.clock.time, force=True)
            return
        if self.phase is Phase.COMPLETE:
            self.index = 0
            self._counters = _StepCounters()
        self._enter_operation(self.index)

    def pause(self) -> None:
        if not self.playing:
            return
        self.playing = False
        self._bump()
        if self.clock is not None:
            self.clock.pause()
        if self.mode is Mode.SCRUB and self.clock is not None:
            self._show_scrub(self.clock.time, force=True)
        else:
            self._emit()

    def toggle(self) -> None:
        if self.playing:
            self.pause()
        else:
            self.play()

    def seek(self, time: float) -> None:
        """Move the scrub cursor; switches to scrub mode."""
        self._require_timeline()
        assert self.clock is not None
        if self.mode is not Mode.SCRUB:
            self._switch_mode(Mode.SCRUB)
        self.clock.seek(time)
        self._show_scrub(self.clock.time, force=True)

    def scrub(self, fraction: float) -> None:
        session = self._require_timeline()
        self.seek(session.timeline.time_at(fraction))

    def set_speed(self, multiplier: float) -> None:
        self.speed = validate_speed(multiplier)
        if self.clock is not None:
            self.clock.set_speed(self.speed)
        self._emit()

    def set_end_policy(self, policy: EndPolicy | str) -> None:
        self.end_policy = EndPolicy(policy)
        self._emit()

    def set_mode(self, mode: Mode) -> None:
        if mode is self.mode:
            return
        was_playing = self.playing
        self._switch_mode(mode)
        if self.session is not None and self.session.timeline:
            if mode is Mode.SCRUB:
                assert self.clock is not None
                self._show_scrub(self.clock.time, force=True)
            if was_playing:
                self.play()
            else:
                self._emit()

    def step(self, operation_index: int) -> None:
        """Jump to an operation; switches to step mode."""
        self._require_timeline()
        if not 0 <= operation_index < len(self.operations):
            raise IndexError(f"operation index {operation_index} out of range")
        if self.mode is not Mode.STEP:
            self._switch_mode(Mode.STEP)
        self.index = operation_index
        if self.phase is Phase.COMPLETE:
            self._counters = _StepCounters()
        if self.playing:
            self._enter_operation(operation_index)
        else:
            self._show_operation(operation_index)

    def next(self) -> None:
        if self.operations:
            self.step(min(self.index + 1, len(self.operations) - 1))

    def previous(self) -> None:
        if self.operations:
            self.step(max(self.index - 1, 0))

    # -- internals: scheduling ---------------------------------------------

    def _bump(self) -> int:
        self.generation += 1
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
        return self.generation

    def _later(self, delay_ms: float, callback: Callable[..., None], *args: Any) -> None:
        self._handles = [h for h in self._handles if not (h.fired or h.cancelled)]
        self._handles.append(self.scheduler.call_later(delay_ms, callback, *args))

    def _stale(self, generation: int) -> bool:
        return generation != self.generation

    def _switch_mode(self, mode: Mode) -> None:
        self._bump()
        self.playing = False
        self.error = None
        if self.clock is not None:
            self.clock.pause()
            self.clock.seek(self.clock.min_time)
        self.index = 0
        self._counters = _StepCounters()
        self.phase = Phase.IDLE
        self._operation = None
        self._display = _Display()
        self.reveal.reset()
        self.mode = mode
        logger.debug("switched to %s mode", mode.value)

    def _animated(self) -> bool:
        if not self.config.animate or not self.playing:
            return False
        if self.mode is Mode.SCRUB:
            return self.clock is not None and self.clock.running
        return True

    # -- internals: step mode ----------------------------------------------

    def _enter_operation(self, index: int) -> None:
        generation = self._bump()
        operations = self.operations
        if not operations:
            self._complete()
            return
        self.index = index
        op = operations[index]
        self._operation = op
        self._commit = op.commit
        self._display = _Display()
        self.reveal.reset()
        self.error = None
        self.phase = Phase.OVERVIEW
        logger.debug("operation %d/%d: %s %s", index + 1, len(operations), op.kind.value, op.path)
        self._emit()
        self._later(self.config.overview_dwell_ms / self.speed, self._begin_change, generation, op)

    def _show_operation(self, index: int) -> None:
        """Render an operation without animation while paused."""
        generation = self._bump()
        op = self.operations[index]
        self._operation = op
        self._commit = op.commit
        self.error = None
        self._begin_change(generation, op)

    def _on_operation_done(self, generation: int, failed: bool = False) -> None:
        if self._stale(generation):
            return
        op = self._operation
        if op is not None and self.playing:
            if failed:
                self._counters.failed += 1
            else:
                self._counters.record(op.kind)
        self._emit()
        if not self.playing:
            return
        self._later(self.config.operation_dwell_ms / self.speed, self._advance, generation)

    def _advance(self, generation: int) -> None:
        if self._stale(generation):
            return
        if self.index + 1 < len(self.operations):
            self._enter_operation(self.index + 1)
            return
        if self.end_policy is EndPolicy.LOOP:
            logger.debug("end of sequence, looping")
            self._counters = _StepCounters()
            self._enter_operation(0)
        else:
            self._complete()

    def _complete(self) -> None:
        self._bump()
        self.playing = False
        self.phase = Phase.COMPLETE
        logger.info(
            "playback complete: %d created, %d modified, %d failed",
            self._counters.created,
            self._counters.modified,
            self._counters.failed,
        )
        self._emit()

    # -- internals: scrub mode ---------------------------------------------

    def _on_clock_tick(self, time: float) -> None:
        if self.mode is Mode.SCRUB:
            self._show_scrub(time)

    def _on_clock_end(self) -> None:
        if self.mode is not Mode.SCRUB:
            return
        self.pause()

    def _show_scrub(self, time: float, force: bool = False) -> None:
        session = self._require_timeline()
        commit = session.timeline.nearest(time)
        if not force and self._commit is not None and commit.hash == self._commit.hash:
            self._emit()
            return
        generation = self._bump()
        self._commit = commit
        change = most_significant(commit)
        if change is None:
            self._operation = None
            self._display = _Display()
            self.reveal.reset()
            self.phase = Phase.IDLE
            self._emit()
            return
        op = operation_for(commit, change, session.operations)
        self._operation = op
        self.index = max(op.sequence_index, 0)
        self._begin_change(generation, op)

    # -- internals: fetch and reveal ----------------------------------------

    def _begin_change(self, generation: int, op: Operation) -> None:
        if self._stale(generation):
            return
        session = self.session
        assert session is not None
        self._display = _Display()
        self.reveal.reset()
        match op.kind:
            case OperationKind.CREATE:
                self.phase = Phase.CREATING
                self._emit()
                self.scheduler.submit(
                    lambda: session.load_content(op.commit.hash, op.path),
                    lambda fut: self._on_content(generation, fut),
                )
            case OperationKind.MODIFY:
                self.phase = Phase.MODIFYING
                self._emit()
                self.scheduler.submit(
                    lambda: session.load_diff(op.commit.hash, op.path),
                    lambda fut: self._on_diff(generation, op, fut),
                )

    def _on_content(self, generation: int, future: Future[Any]) -> None:
        if self._stale(generation):
            return
        exc = future.exception()
        if exc is not None:
            self._fail(generation, exc)
            return
        lines = tuple(split_lines(str(future.result())))
        self._display = _Display(DISPLAY_CONTENT, content_lines=lines)
        schedule = self.reveal.content(
            len(lines),
            self.config.content_interval_ms,
            self.speed,
            self.config.content_target_steps,
            instant=not self._animated(),
        )
        self._run_reveal(generation, schedule)

    def _on_diff(self, generation: int, op: Operation, future: Future[Any]) -> None:
        if self._stale(generation):
            return
        exc = future.exception()
        hunks: list[Hunk] = []
        if exc is None:
            hunks = parse_diff(future.result())
            if not hunks:
                exc = DiffUnavailable(op.commit.hash, op.path, "no hunks")
        if isinstance(exc, DiffUnavailable):
            logger.info("falling back to content for %s: %s", op.path, exc)
            session = self.session
            assert session is not None
            self.scheduler.submit(
                lambda: session.load_content(op.commit.hash, op.path),
                lambda fut: self._on_content(generation, fut),
            )
            return
        if exc is not None:
            self._fail(generation, exc)
            return
        self._display = _Display(DISPLAY_DIFF, hunks=tuple(hunks))
        schedule = self.reveal.diff(
            hunks,
            self.config.diff_granularity,
            self.config.diff_interval_ms,
            self.speed,
            instant=not self._animated(),
        )
        self._run_reveal(generation, schedule)

    def _fail(self, generation: int, exc: BaseException) -> None:
        op = self._operation
        logger.warning("operation %s failed: %s", op.path if op else "?", exc)
        self.error = str(exc)
        self._display = _Display()
        self.reveal.reset()
        self._finish(generation, failed=True)

    def _run_reveal(self, generation: int, schedule: RevealSchedule) -> None:
        states = iter(schedule)
        if schedule.instant:
            for state in states:
                self.reveal.advance(state)
            self._emit()
            self._finish(generation)
            return
        self._emit()
        self._later(schedule.interval_ms, self._reveal_tick, generation, states, schedule.interval_ms)

    def _reveal_tick(
        self, generation: int, states: Iterator[RevealState], interval_ms: float
    ) -> None:
        if self._stale(generation):
            return
        state = next(states, None)
        if state is None:
            self._finish(generation)
            return
        self.reveal.advance(state)
        self._emit()
        if state.complete:
            self._finish(generation)
        else:
            self._later(interval_ms, self._reveal_tick, generation, states, interval_ms)

    def _finish(self, generation: int, failed: bool = False) -> None:
        if self.mode is Mode.STEP:
            self._on_operation_done(generation, failed)
        else:
            self._emit()
