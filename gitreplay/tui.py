"""Textual TUI for gitreplay."""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.logging import TextualHandler
from textual.widgets import Footer, Static

from gitreplay import render
from gitreplay.config import EndPolicy, PlaybackConfig
from gitreplay.orchestrator import Mode, Orchestrator, PlaybackView
from gitreplay.scheduler import Scheduler
from gitreplay.session import Session
from gitreplay.timeline import EmptyTimeline

logger = logging.getLogger(__name__)

COMMAND_BAR = (
    "Space: play/pause  |  m: mode  |  ←/→: seek or step  |  +/-: speed  |  e: end policy  |  q/Esc: quit"
)
SPEEDS = [0.25, 0.5, 1.0, 2.0, 5.0, 10.0]
SEEK_FRACTION = 0.05


CSS = """
Screen {
    layout: vertical;
}

#command_bar {
    padding: 0 1;
    height: 1;
    color: $text-muted;
}

#header {
    padding: 0 1;
    height: 2;
}

#operation {
    padding: 0 1;
    height: 1;
}

#progress {
    padding: 0 1;
    height: 1;
}

#status_line {
    padding: 0 1;
    height: 1;
}

#warning_line {
    padding: 0 1;
    height: 1;
    color: $warning;
}

#panes {
    height: 1fr;
}

#tree_pane {
    width: 36;
    height: 1fr;
    border: round $secondary;
}

#stage {
    width: 1fr;
    height: 1fr;
    border: round $primary;
}

#body, #tree {
    padding: 0 1;
}
"""


def _next_speed(current: float, direction: int) -> float:
    if direction > 0:
        for speed in SPEEDS:
            if speed > current:
                return speed
        return SPEEDS[-1]
    for speed in reversed(SPEEDS):
        if speed < current:
            return speed
    return SPEEDS[0]


class TuiApp(App[None]):
    """Main textual application."""

    CSS = CSS
    BINDINGS = [
        Binding("q", "quit_player", "Quit"),
        Binding("escape", "quit_player", "Quit"),
        Binding("space", "toggle_play", "Play/Pause"),
        Binding("m", "switch_mode", "Mode"),
        Binding("right", "forward", "Forward"),
        Binding("left", "back", "Back"),
        Binding("plus,equals_sign", "faster", "Faster"),
        Binding("minus", "slower", "Slower"),
        Binding("e", "toggle_end_policy", "End policy"),
    ]

    def __init__(
        self,
        session: Session,
        config: PlaybackConfig,
        scheduler: Scheduler | None = None,
        mode: Mode = Mode.STEP,
    ) -> None:
        super().__init__()
        self.session = session
        self.config = config
        self.scheduler = scheduler or Scheduler(ThreadPoolExecutor(max_workers=2))
        self.orchestrator = Orchestrator(session, config, self.scheduler)
        self.initial_mode = mode
        self._dirty = True
        self._last_pump = time.monotonic()
        self._tree_commit: str | None = None
        self._tree_paths: list[str] = []
        self.orchestrator.subscribe(self._on_view)

    def compose(self) -> ComposeResult:
        yield Static(COMMAND_BAR, id="command_bar")
        yield Static("", id="header")
        yield Static("", id="operation")
        yield Static("", id="progress")
        yield Static("", id="status_line")
        yield Static("", id="warning_line")
        with Horizontal(id="panes"):
            with VerticalScroll(id="tree_pane"):
                yield Static("", id="tree")
            with VerticalScroll(id="stage"):
                yield Static("", id="body")
        yield Footer()

    def on_mount(self) -> None:
        logging.getLogger("gitreplay").addHandler(TextualHandler())
        logger.info("replaying %s in %s mode", self.session.branch, self.initial_mode.value)
        if not self.session.timeline:
            self._set_warning("No commits on this branch: playback controls disabled.")
        else:
            self.orchestrator.set_mode(self.initial_mode)
        self._last_pump = time.monotonic()
        self._repaint(self.orchestrator.view)
        self.set_interval(self.config.tick_interval_ms / 1000, self._tick)

    def on_unmount(self) -> None:
        executor = self.scheduler.executor
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def _tick(self) -> None:
        now = time.monotonic()
        elapsed_ms = (now - self._last_pump) * 1000
        self._last_pump = now
        self.scheduler.advance(elapsed_ms)
        if self._dirty:
            self._repaint(self.orchestrator.view)

    def _on_view(self, view: PlaybackView) -> None:
        self._dirty = True

    def _set_warning(self, message: str | None) -> None:
        self.query_one("#warning_line", Static).update(message or "")

    def _repaint(self, view: PlaybackView) -> None:
        self._dirty = False
        self.query_one("#header", Static).update(render.format_header(view))
        operation = render.format_operation(view.operation) if view.operation else ""
        self.query_one("#operation", Static).update(operation)
        self.query_one("#progress", Static).update(render.render_progress(view.progress))
        self.query_one("#status_line", Static).update(render.format_status(view))
        self.query_one("#body", Static).update(render.render_body(view))
        self._sync_tree(view)
        self.query_one("#tree", Static).update(render.render_tree(self._tree_paths, view))

    def _sync_tree(self, view: PlaybackView) -> None:
        commit = view.commit
        if commit is None or commit.hash == self._tree_commit:
            return
        self._tree_commit = commit.hash
        self.scheduler.submit(
            lambda: self.session.load_tree(commit.hash),
            lambda fut: self._on_tree(commit.hash, fut),
        )

    def _on_tree(self, revision: str, future: Future[Any]) -> None:
        if revision != self._tree_commit:
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("cannot list tree at %s: %s", revision, exc)
            self._tree_paths = []
        else:
            self._tree_paths = list(future.result())
        self._dirty = True

    def _guard(self) -> bool:
        if not self.orchestrator.view.controls_enabled:
            self._set_warning("No commits loaded.")
            return False
        return True

    def action_quit_player(self) -> None:
        self.orchestrator.pause()
        self.exit(None)

    def action_toggle_play(self) -> None:
        if not self._guard():
            return
        try:
            self.orchestrator.toggle()
        except EmptyTimeline as exc:
            self._set_warning(str(exc))

    def action_switch_mode(self) -> None:
        if not self._guard():
            return
        mode = Mode.SCRUB if self.orchestrator.mode is Mode.STEP else Mode.STEP
        self.orchestrator.set_mode(mode)

    def action_forward(self) -> None:
        if not self._guard():
            return
        if self.orchestrator.mode is Mode.SCRUB:
            self.orchestrator.scrub(min(1.0, self.orchestrator.view.progress + SEEK_FRACTION))
        else:
            self.orchestrator.next()

    def action_back(self) -> None:
        if not self._guard():
            return
        if self.orchestrator.mode is Mode.SCRUB:
            self.orchestrator.scrub(max(0.0, self.orchestrator.view.progress - SEEK_FRACTION))
        else:
            self.orchestrator.previous()

    def action_faster(self) -> None:
        self.orchestrator.set_speed(_next_speed(self.orchestrator.speed, 1))

    def action_slower(self) -> None:
        self.orchestrator.set_speed(_next_speed(self.orchestrator.speed, -1))

    def action_toggle_end_policy(self) -> None:
        policy = EndPolicy.STOP if self.orchestrator.end_policy is EndPolicy.LOOP else EndPolicy.LOOP
        self.orchestrator.set_end_policy(policy)


def run_tui(session: Session, config: PlaybackConfig, mode: Mode = Mode.STEP) -> None:
    """Run the textual playback application."""
    app = TuiApp(session, config, mode=mode)
    app.run()
