import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, NoReturn

import click
import questionary
from rich.console import Console

from gitreplay import git_ops, render
from gitreplay.config import ConfigError, EndPolicy, PlaybackConfig, load_config, save_config
from gitreplay.diff import parse_diff
from gitreplay.orchestrator import Mode, Orchestrator, Phase, PlaybackView
from gitreplay.repository import DiffUnavailable
from gitreplay.reveal import GRANULARITIES
from gitreplay.scheduler import Scheduler
from gitreplay.session import Session, SessionError
from gitreplay.timeline import EmptyTimeline
from gitreplay.tree import FileTree
from gitreplay.tui import run_tui

logger = logging.getLogger(__name__)


@dataclass
class CliState:
    repo_path: Path
    branch: str | None


def _fail(message: str) -> NoReturn:
    click.echo(f"gitreplay: {message}", err=True)
    raise SystemExit(1)


def _setup_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )


def _open_session(state: CliState, branch: str | None = None) -> Session:
    try:
        return Session.open(state.repo_path, branch or state.branch)
    except SessionError as exc:
        _fail(str(exc))


def _load_config(session: Session, **overrides: Any) -> PlaybackConfig:
    try:
        base = load_config(session.repo_root) if session.repo_root else PlaybackConfig()
        return base.replace(**overrides)
    except ConfigError as exc:
        _fail(str(exc))


def _choose_branch(state: CliState) -> str | None:
    """Ask for a branch when none was given and there is a choice to make."""
    if state.branch or not sys.stdin.isatty() or not sys.stdout.isatty():
        return state.branch
    try:
        session = Session.open(state.repo_path)
    except SessionError as exc:
        logger.debug("skipping branch prompt: %s", exc)
        return None
    branches = session.repository.list_branches()
    if len(branches) < 2:
        return None
    current = session.repository.current_branch()
    return questionary.select(
        "Branch to replay:",
        choices=branches,
        default=current if current in branches else None,
    ).ask()


def playback_options(func: Callable[..., Any]) -> Callable[..., Any]:
    func = click.option("--speed", type=float, default=None, help="Speed multiplier.")(func)
    func = click.option(
        "--loop/--stop",
        "loop",
        default=None,
        help="Restart at the first operation, or stop, after the last one.",
    )(func)
    func = click.option(
        "--granularity",
        type=click.Choice(GRANULARITIES),
        default=None,
        help="Reveal diffs hunk by hunk or line by line.",
    )(func)
    func = click.option(
        "--no-animate",
        "no_animate",
        is_flag=True,
        default=False,
        help="Render every change in full without animation.",
    )(func)
    return func


def _overrides(
    speed: float | None, loop: bool | None, granularity: str | None, no_animate: bool
) -> dict[str, Any]:
    return {
        "speed": speed,
        "end_policy": None if loop is None else (EndPolicy.LOOP if loop else EndPolicy.STOP),
        "diff_granularity": granularity,
        "animate": False if no_animate else None,
    }


@click.group(context_settings={"help_option_names": ["-h", "--help"]}, invoke_without_command=True)
@click.option(
    "-C",
    "--repo",
    "repo_path",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="Repository to replay.",
)
@click.option("-b", "--branch", default=None, help="Branch to replay (defaults to the current one).")
@click.option("--scrub", is_flag=True, default=False, help="Start in time-scrub mode.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log debug output to stderr.")
@playback_options
@click.pass_context
def main(
    ctx: click.Context,
    repo_path: Path,
    branch: str | None,
    scrub: bool,
    verbose: bool,
    speed: float | None,
    loop: bool | None,
    granularity: str | None,
    no_animate: bool,
) -> None:
    """gitreplay: replay a branch's history as an animated sequence."""
    _setup_logging(verbose)
    ctx.obj = CliState(repo_path=repo_path, branch=branch)
    if ctx.invoked_subcommand is not None:
        return

    session = _open_session(ctx.obj, _choose_branch(ctx.obj))
    config = _load_config(session, **_overrides(speed, loop, granularity, no_animate))
    run_tui(session, config, Mode.SCRUB if scrub else Mode.STEP)


@main.command("log")
@click.pass_obj
def log_operations(state: CliState) -> None:
    """List file operations in playback order."""
    session = _open_session(state)
    console = Console()
    for op in session.operations:
        line = render.format_operation(op)
        line.append(f"  {op.commit.short_hash} {render.format_time(op.commit.timestamp)}", style="dim")
        console.print(f"{op.sequence_index + 1:>4} ", line, sep="", highlight=False)
    if not session.operations:
        click.echo("No file operations on this branch.")


@main.command("play")
@playback_options
@click.option("--show/--no-show", default=False, help="Print each change once fully revealed.")
@click.pass_obj
def play(
    state: CliState,
    speed: float | None,
    loop: bool | None,
    granularity: str | None,
    no_animate: bool,
    show: bool,
) -> None:
    """Run step-mode playback to the end without a UI and print a summary."""
    session = _open_session(state)
    config = _load_config(session, **_overrides(speed, loop, granularity, no_animate))
    # A non-interactive run must terminate.
    config = config.replace(end_policy=EndPolicy.STOP)
    console = Console()
    orchestrator = Orchestrator(session, config, Scheduler())
    announced: set[int] = set()
    shown: set[int] = set()

    def on_view(view: PlaybackView) -> None:
        op = view.operation
        if op is None:
            return
        if view.phase is Phase.OVERVIEW and op.sequence_index not in announced:
            announced.add(op.sequence_index)
            console.print(f"{op.sequence_index + 1:>4} ", render.format_operation(op), sep="")
        if (
            show
            and view.reveal.complete
            and view.phase in (Phase.CREATING, Phase.MODIFYING)
            and op.sequence_index not in shown
        ):
            shown.add(op.sequence_index)
            console.print(render.render_body(view))

    orchestrator.subscribe(on_view)
    try:
        orchestrator.play()
    except EmptyTimeline as exc:
        _fail(str(exc))
    orchestrator.scheduler.run_until_idle()
    console.print(render.render_stats(orchestrator.stats))


@main.command("diff")
@click.argument("revision")
@click.argument("path")
@click.pass_obj
def show_diff(state: CliState, revision: str, path: str) -> None:
    """Print the parsed diff of PATH at REVISION with line numbers."""
    session = _open_session(state)
    try:
        hunks = parse_diff(session.load_diff(revision, path))
    except DiffUnavailable as exc:
        _fail(str(exc))
    Console().print(render.render_diff(hunks), highlight=False)


@main.command("tree")
@click.argument("revision", required=False)
@click.pass_obj
def show_tree(state: CliState, revision: str | None) -> None:
    """Print the file tree at REVISION (defaults to the branch tip)."""
    session = _open_session(state)
    rev = revision or session.branch
    try:
        paths = session.load_tree(rev)
    except git_ops.GitError as exc:
        _fail(f"cannot list tree at {rev}: {exc}")
    Console().print(FileTree.from_paths(paths).to_rich(label=rev))


@main.command("at")
@click.argument("when")
@click.pass_obj
def commit_at(state: CliState, when: str) -> None:
    """Print the commit nearest to WHEN (an ISO 8601 timestamp)."""
    try:
        moment = datetime.fromisoformat(when)
    except ValueError:
        _fail(f"invalid timestamp: {when}")
    session = _open_session(state)
    try:
        commit = session.timeline.nearest(moment.timestamp())
    except EmptyTimeline as exc:
        _fail(str(exc))
    click.echo(f"{commit.short_hash} {commit.date.isoformat()} {commit.subject}")


@main.command("config")
@playback_options
@click.option("--save", is_flag=True, default=False, help="Write the settings to the repository.")
@click.pass_obj
def configure(
    state: CliState,
    speed: float | None,
    loop: bool | None,
    granularity: str | None,
    no_animate: bool,
    save: bool,
) -> None:
    """Show the effective playback settings, optionally saving overrides."""
    session = _open_session(state)
    config = _load_config(session, **_overrides(speed, loop, granularity, no_animate))
    if save and session.repo_root is not None:
        save_config(session.repo_root, config)
        click.echo("Saved playback settings.")
    for name, value in vars(config).items():
        click.echo(f"{name} = {value.value if isinstance(value, EndPolicy) else value}")


if __name__ == "__main__":
    main()
