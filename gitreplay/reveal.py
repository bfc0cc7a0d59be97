"""Line-by-line and hunk-by-hunk reveal schedules."""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

from gitreplay.models import DiffLine, Hunk, RevealState

HUNK = "hunk"
LINE = "line"
GRANULARITIES = (HUNK, LINE)


def rate_per_step(total: int, target_step_count: int | None) -> int:
    """Lines revealed per tick so a reveal takes at most ``target_step_count`` ticks."""
    if target_step_count is None or target_step_count <= 0 or total <= 0:
        return 1
    return max(1, math.ceil(total / target_step_count))


@dataclass(frozen=True)
class RevealSchedule:
    """A lazy, replayable sequence of reveal states for one operation."""

    total: int
    rate_per_step: int
    interval_ms: float
    instant: bool = False

    def __iter__(self) -> Iterator[RevealState]:
        if self.instant or self.total <= 0:
            yield RevealState.full(max(self.total, 0))
            return
        visible = 0
        while visible < self.total:
            visible = min(self.total, visible + self.rate_per_step)
            yield RevealState(visible, self.total, visible == self.total)

    def __len__(self) -> int:
        if self.instant or self.total <= 0:
            return 1
        return math.ceil(self.total / self.rate_per_step)


class RevealScheduler:
    """Produces reveal schedules and tracks the state of the current one."""

    def __init__(self) -> None:
        self.state = RevealState.empty()

    def schedule(
        self,
        total: int,
        rate_per_step: int = 1,
        step_interval_ms: float = 0.0,
        instant: bool = False,
    ) -> RevealSchedule:
        if total < 0:
            raise ValueError("total must be >= 0")
        if rate_per_step < 1:
            raise ValueError("rate_per_step must be >= 1")
        self.state = RevealState(0, total, False)
        return RevealSchedule(total, rate_per_step, step_interval_ms, instant)

    def advance(self, state: RevealState) -> RevealState:
        """Record a state from the active schedule; never moves backwards."""
        if state.total == self.state.total and state.visible_count < self.state.visible_count:
            return self.state
        self.state = state
        return state

    def reset(self) -> None:
        self.state = RevealState.empty()

    def content(
        self,
        line_count: int,
        base_interval_ms: float,
        speed: float,
        target_steps: int | None,
        instant: bool = False,
    ) -> RevealSchedule:
        return self.schedule(
            line_count,
            rate_per_step(line_count, target_steps),
            base_interval_ms / speed,
            instant,
        )

    def diff(
        self,
        hunks: list[Hunk],
        granularity: str,
        base_interval_ms: float,
        speed: float,
        instant: bool = False,
    ) -> RevealSchedule:
        if granularity == HUNK:
            total = len(hunks)
        elif granularity == LINE:
            total = sum(len(hunk.lines) for hunk in hunks)
        else:
            raise ValueError(f"unknown diff granularity: {granularity}")
        return self.schedule(total, 1, base_interval_ms / speed, instant)


def visible_lines(lines: list[str], count: int) -> list[str]:
    return lines[: max(0, count)]


def visible_hunks(hunks: list[Hunk], count: int, granularity: str) -> list[Hunk]:
    """The part of ``hunks`` shown after ``count`` reveal steps."""
    if granularity == HUNK:
        return hunks[: max(0, count)]
    shown: list[Hunk] = []
    remaining = max(0, count)
    for hunk in hunks:
        if remaining <= 0:
            break
        lines: tuple[DiffLine, ...] = hunk.lines[:remaining]
        remaining -= len(lines)
        shown.append(
            Hunk(
                old_start=hunk.old_start,
                old_line_count=hunk.old_line_count,
                new_start=hunk.new_start,
                new_line_count=hunk.new_line_count,
                lines=lines,
                header=hunk.header,
            )
        )
    return shown
