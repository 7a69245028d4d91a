"""
Command line interface for VibeSnap.

Each command parses its arguments, opens the repository through
SnapshotManager, runs one operation with asyncio.run and renders the
result. A VibeSnapError becomes one red line on stderr and exit status 1.
"""

import asyncio
import functools
import sys
from pathlib import Path
from typing import Optional, List, Tuple

import click
import toml
from rich.text import Text

from .. import __version__
from ..managers.snapshot import SnapshotManager
from ..snapshot.diff import DiffReport
from ..snapshot.repository import Repository
from ..utils.config import ConfigLoader, VibeConfig
from ..utils.errors import VibeSnapError, ConfigurationError, NotInRepoError
from ..utils.logging import setup_logging, get_logger
from ..watch.lock import WatchLock, StopResult
from . import display, interactive
from .display import console

logger = get_logger(__name__)


def handle_errors(func):
    """Turn VibeSnap errors into a red message and exit status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except VibeSnapError as e:
            logger.debug("command_failed", **e.to_dict()["error"])
            display.print_error(e.message)
            display.print_hints(e.get_suggestions())
            sys.exit(1)
    return wrapper


def load_user_config(ctx: click.Context) -> VibeConfig:
    return ConfigLoader(ctx.obj.get("config_path")).load()


def split_files(files: Tuple[str, ...], file: Optional[str]) -> Optional[List[str]]:
    """Merge comma-separated --files values and --file into one list."""
    selected = [f.strip() for value in files for f in value.split(",") if f.strip()]
    if file:
        selected.append(file)
    return selected or None


def print_restore(outcome, track: str) -> None:
    report = outcome.value
    display.print_warnings(outcome.warnings)
    if report.aborted:
        raise VibeSnapError("No specified files found in checkpoint")

    if report.selective:
        files_info = f" ({len(report.restored)} files: {', '.join(report.restored)})"
        console.print(Text(
            f"Selective restore completed{files_info}\n"
            f"Restored files from checkpoint {report.checkpoint_id} to workspace"
        ))
        return

    console.print(Text.assemble(
        "Workspace restored to ", (report.checkpoint_id, "green"),
        f" ({len(report.restored)} files)",
    ))
    console.print(Text.assemble(
        ("Detached mode", "yellow"),
        f": Workspace files now match '{report.checkpoint_id}'.\n"
        f"You are still on track '{track}', and HEAD pointer is updated to "
        f"'{report.checkpoint_id}' for parenting purposes.",
    ))
    console.print(Text("Hint: If you want to save new work from this point on a new track, run:", style="cyan"))
    console.print(f"  vibesnap branch <new-track-name> --from-id {report.checkpoint_id}")
    console.print("  vibesnap switch <new-track-name>")


@click.group()
@click.version_option(__version__, prog_name="vibesnap")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              envvar="VIBESNAP_CONFIG", help="Configuration file path")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Optional[Path]):
    """Snapshot-style version control for AI-first coding."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    setup_logging(log_level="DEBUG" if verbose else "WARNING")


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=Path), default=".")
@click.pass_context
@handle_errors
def init(ctx: click.Context, path: Path):
    """Create a new VibeSnap repo."""
    config = load_user_config(ctx)
    path.mkdir(parents=True, exist_ok=True)
    report = asyncio.run(SnapshotManager.init(path, config))

    if report.created_vibeignore:
        console.print(Text("Created .vibeignore with common ignore patterns", style="green"))
    else:
        console.print(Text(f"Using existing {report.ignore_file} for ignore patterns", style="green"))
    console.print(Text(f"Initialised empty VibeSnap repo in {report.root / '.vibe'}", style="green"))


@cli.command()
@click.argument("paths", nargs=-1, type=click.Path(path_type=Path))
@click.option("--note", "-n", default="", help="Checkpoint note")
@click.option("--progress", "show_progress", is_flag=True, help="Show progress for large operations")
@click.option("--files", multiple=True, help="Snap only specific files (comma-separated)")
@click.option("--file", "file", help="Snap only the specified file")
@click.pass_context
@handle_errors
def snap(ctx, paths, note, show_progress, files, file):
    """Create a checkpoint from the given paths."""
    config = load_user_config(ctx)
    selected = split_files(files, file)

    async def run():
        async with SnapshotManager.open(config=config) as manager:
            with display.progress(config.should_show_progress(show_progress), "Snapping") as on_file:
                outcome = await manager.snap(list(paths) or None, note, selected, on_file=on_file)
            return outcome, len(await manager.load_manifest(outcome.value.id))

    outcome, count = asyncio.run(run())
    display.print_warnings(outcome.warnings)
    cp = outcome.value
    files_info = f" ({count} files: {', '.join(selected)})" if selected else f" ({count} files)"
    console.print(Text(f"✓ snap {cp.id}{files_info} - {cp.note}", style="green"))


async def _load_manifest(config, checkpoint_id):
    async with SnapshotManager.open(config=config) as manager:
        return await manager.load_manifest(checkpoint_id)


@cli.command(name="list")
@click.option("--track", "-t", help="Only checkpoints on this track")
@click.option("--tree", is_flag=True, help="Show files in each checkpoint as a tree")
@click.option("--interactive", is_flag=True, help="Interactive selection mode")
@click.option("--file", "file", help="Show only checkpoints containing this file")
@click.pass_context
@handle_errors
def list_command(ctx, track, tree, interactive, file):
    """List checkpoints."""
    config = load_user_config(ctx)

    async def run():
        async with SnapshotManager.open(config=config) as manager:
            checkpoints = await manager.list_checkpoints(track, containing=file)
            manifests = {}
            if tree:
                for cp in checkpoints:
                    try:
                        manifests[cp.id] = await manager.load_manifest(cp.id)
                    except VibeSnapError as e:
                        logger.warning("manifest_unreadable", checkpoint_id=cp.id, error=e.message)
            return checkpoints, manifests

    checkpoints, manifests = asyncio.run(run())

    if interactive:
        _interactive_list(config, list(reversed(checkpoints)))
        return
    if not checkpoints:
        console.print("No checkpoints found.")
        return
    if tree:
        console.print(display.checkpoints_tree(checkpoints, manifests))
    else:
        console.print(display.checkpoints_table(checkpoints))


def _interactive_list(config, checkpoints):
    chosen = interactive.select_checkpoint(checkpoints)
    if chosen is None:
        return
    action = interactive.select_action(["Restore", "Show Details", "Cancel"])
    if action == "Restore":
        _restore(config, chosen.id, None, False)
    elif action == "Show Details":
        manifest = asyncio.run(_load_manifest(config, chosen.id))
        console.print(f"\nCheckpoint: {chosen.id}")
        console.print(display.file_tree(manifest))
    else:
        console.print("Cancelled.")


def _restore(config, checkpoint_id, files, show_progress):
    async def run():
        async with SnapshotManager.open(config=config) as manager:
            with display.progress(config.should_show_progress(show_progress), "Restoring") as on_file:
                outcome = await manager.restore(checkpoint_id, files, on_file=on_file)
            return outcome, manager.head().track

    outcome, track = asyncio.run(run())
    print_restore(outcome, track)


async def _all_checkpoints_newest_first(config):
    async with SnapshotManager.open(config=config) as manager:
        return list(reversed(await manager.list_checkpoints()))


@cli.command()
@click.argument("checkpoint_id", required=False)
@click.option("--interactive", is_flag=True, help="Interactive selection mode")
@click.option("--progress", "show_progress", is_flag=True, help="Show progress for large operations")
@click.option("--files", multiple=True, help="Restore only specific files (comma-separated)")
@click.option("--file", "file", help="Restore only the specified file")
@click.option("--interactive-files", is_flag=True, help="Interactive file selection within checkpoint")
@click.pass_context
@handle_errors
def restore(ctx, checkpoint_id, interactive, show_progress, files, file, interactive_files):
    """Restore a checkpoint into the working tree (detached)."""
    config = load_user_config(ctx)
    selected = split_files(files, file)

    if interactive or not checkpoint_id:
        chosen = _pick_checkpoint(config, "Select checkpoint to restore")
        if chosen is None:
            return
        checkpoint_id = chosen

    if interactive_files:
        manifest = asyncio.run(_load_manifest(config, checkpoint_id))
        path = interactive.select_file(manifest, checkpoint_id)
        if path is None:
            return
        selected = [path]

    _restore(config, checkpoint_id, selected, show_progress)


def _pick_checkpoint(config, prompt: str) -> Optional[str]:
    chosen = interactive.select_checkpoint(asyncio.run(_all_checkpoints_newest_first(config)), prompt)
    return chosen.id if chosen else None


@cli.command()
@click.argument("name")
@click.option("--from-id", help="Checkpoint the new track starts from (default: HEAD)")
@click.pass_context
@handle_errors
def branch(ctx, name, from_id):
    """Create a new track."""
    config = load_user_config(ctx)

    async def run():
        async with SnapshotManager.open(config=config) as manager:
            return await manager.branch(name, from_id)

    track = asyncio.run(run())
    console.print(Text.assemble(
        "Created track ", (track.name, "green"), " at ", (track.head or "root", "green"),
    ))


def _switch(config, name):
    async def run():
        async with SnapshotManager.open(config=config) as manager:
            return await manager.switch(name)

    outcome = asyncio.run(run())
    display.print_warnings(outcome.warnings)
    head = outcome.value
    if head.checkpoint:
        console.print(Text.assemble(
            "Switched to track ", (head.track, "green"),
            " and restored checkpoint ", (head.checkpoint, "green"),
        ))
    else:
        console.print(Text(f"Switched to empty track {head.track}", style="yellow"))


@cli.command()
@click.argument("name", required=False)
@click.option("--interactive", is_flag=True, help="Interactive selection mode")
@click.pass_context
@handle_errors
def switch(ctx, name, interactive):
    """Switch to another track and sync files."""
    config = load_user_config(ctx)
    if interactive or not name:
        name = _pick_track(config)
        if name is None:
            return
    _switch(config, name)


def _pick_track(config) -> Optional[str]:
    async def tracks():
        async with SnapshotManager.open(config=config) as manager:
            return await manager.list_tracks()
    return interactive.select_track(asyncio.run(tracks()))


@cli.command()
@click.option("--progress", "show_progress", is_flag=True, help="Show progress for large operations")
@click.pass_context
@handle_errors
def latest(ctx, show_progress):
    """Restore the latest checkpoint on the current track."""
    config = load_user_config(ctx)

    async def run():
        async with SnapshotManager.open(config=config) as manager:
            with display.progress(config.should_show_progress(show_progress), "Restoring") as on_file:
                outcome = await manager.latest(on_file=on_file)
            return outcome, manager.head().track

    outcome, track = asyncio.run(run())
    if outcome is None:
        console.print(Text(f"Track '{track}' has no checkpoints yet", style="yellow"))
        return
    console.print(Text.assemble(
        "Restored latest checkpoint ", (outcome.value.checkpoint_id, "green"),
        " on track ", (track, "green"),
    ))
    display.print_warnings(outcome.warnings)


def _diff(config, id1, id2, file, side_by_side):
    async def run() -> DiffReport:
        async with SnapshotManager.open(config=config) as manager:
            first, second = await manager.diff_pair(id1, id2)
            return await manager.diff(first, second, file)

    display.print_diff(asyncio.run(run()), side_by_side, single_file=file is not None)


@cli.command()
@click.argument("id1", required=False)
@click.argument("id2", required=False)
@click.argument("file", required=False)
@click.option("--side-by-side", is_flag=True, help="Show side-by-side diff view")
@click.option("--interactive", is_flag=True, help="Interactive selection mode")
@click.pass_context
@handle_errors
def diff(ctx, id1, id2, file, side_by_side, interactive):
    """Show the diff between two checkpoints (defaults to the last two)."""
    config = load_user_config(ctx)
    if interactive:
        id1, id2 = _pick_pair(config)
        if id1 is None:
            return
    _diff(config, id1, id2, file, side_by_side)


def _pick_pair(config):
    checkpoints = asyncio.run(_all_checkpoints_newest_first(config))
    if len(checkpoints) < 2:
        console.print("Need at least two checkpoints to diff.")
        return None, None
    first = interactive.select_checkpoint(checkpoints, "Select first checkpoint")
    second = interactive.select_checkpoint(checkpoints, "Select second checkpoint")
    return first.id, second.id


@cli.group()
def select():
    """Interactive checkpoint selection."""


@select.command(name="restore")
@click.option("--progress", "show_progress", is_flag=True, help="Show progress for large operations")
@click.pass_context
@handle_errors
def select_restore(ctx, show_progress):
    """Interactively restore a checkpoint."""
    config = load_user_config(ctx)
    checkpoint_id = _pick_checkpoint(config, "Select checkpoint to restore")
    if checkpoint_id is not None:
        _restore(config, checkpoint_id, None, show_progress)


@select.command(name="switch")
@click.pass_context
@handle_errors
def select_switch(ctx):
    """Interactively switch track."""
    config = load_user_config(ctx)
    name = _pick_track(config)
    if name is not None:
        _switch(config, name)


@select.command(name="diff")
@click.option("--side-by-side", is_flag=True, help="Show side-by-side diff view")
@click.pass_context
@handle_errors
def select_diff(ctx, side_by_side):
    """Interactively diff two checkpoints."""
    config = load_user_config(ctx)
    id1, id2 = _pick_pair(config)
    if id1 is not None:
        _diff(config, id1, id2, None, side_by_side)


@cli.command()
@click.option("--track", "-t", help="Track to show (default: current)")
@click.option("--detailed", is_flag=True, help="Show a table with checkpoint types")
@click.pass_context
@handle_errors
def timeline(ctx, track, detailed):
    """Show the checkpoints of a track in time order."""
    config = load_user_config(ctx)

    async def run():
        async with SnapshotManager.open(config=config) as manager:
            name = track or manager.head().track
            return name, await manager.timeline(name)

    name, entries = asyncio.run(run())
    display.print_timeline(entries, name, detailed)


@cli.command()
@click.option("--track", help="Show only this track")
@click.pass_context
@handle_errors
def graph(ctx, track):
    """Show checkpoints newest first with their parents."""
    config = load_user_config(ctx)

    async def run():
        async with SnapshotManager.open(config=config) as manager:
            return await manager.graph_view(track), await manager.list_tracks()

    checkpoints, tracks = asyncio.run(run())
    display.print_graph(checkpoints, tracks)


@cli.command()
@click.option("--duration", "-d", help="How far back, e.g. 30m, 2h, 1h30m")
@click.option("--to", "to_time", help="Time of day today, HH:MM or HH:MM:SS")
@click.pass_context
@handle_errors
def rewind(ctx, duration, to_time):
    """Restore the current track as it was at an earlier time."""
    config = load_user_config(ctx)

    async def run():
        async with SnapshotManager.open(config=config) as manager:
            checkpoint, outcome = await manager.rewind(duration, to_time)
            return checkpoint, outcome, manager.head().track

    checkpoint, outcome, track = asyncio.run(run())
    console.print(Text(f"Rewound to checkpoint {checkpoint.id}", style="cyan"))
    print_restore(outcome, track)


@cli.command()
@click.pass_context
@handle_errors
def fastforward(ctx):
    """Restore the next checkpoint after HEAD on the current track."""
    config = load_user_config(ctx)

    async def run():
        async with SnapshotManager.open(config=config) as manager:
            checkpoint, outcome = await manager.fast_forward()
            return checkpoint, outcome, manager.head().track

    checkpoint, outcome, track = asyncio.run(run())
    console.print(Text(f"Fast-forwarded to checkpoint {checkpoint.id}", style="cyan"))
    print_restore(outcome, track)


@cli.command()
@click.option("--interval", type=click.IntRange(min=1), help="Minutes between auto-snaps")
@click.option("--stop", is_flag=True, help="Stop a running watcher")
@click.option("--on-save", is_flag=True, help="Auto-snap when files change")
@click.pass_context
@handle_errors
def watch(ctx, interval, stop, on_save):
    """Automatically snap on a timer or on file changes."""
    config = load_user_config(ctx)
    repo = Repository.discover()

    if stop:
        result = WatchLock.stop(repo.pid_path)
        if result is StopResult.STOPPED:
            console.print(Text("Watch stopped.", style="green"))
        elif result is StopResult.STALE:
            console.print(Text("Watch process was not running.", style="yellow"))
        else:
            console.print(Text("Watch is not running.", style="yellow"))
        return

    minutes = interval or config.watch_interval_minutes
    if on_save:
        console.print(Text(f"Started watching {repo.root} (auto-snap on file save)", style="green"))
    else:
        console.print(Text(f"Started watching {repo.root} (auto-snap every {minutes} minutes)", style="green"))
    console.print(Text("Press Ctrl+C to stop watching...", style="cyan"))

    setup_logging(
        log_level="DEBUG" if ctx.obj.get("verbose") else "INFO",
        log_file=repo.logs_path / "watch.log",
    )

    async def run():
        async with SnapshotManager(repo.root, config) as manager:
            await manager.watch(minutes, on_change=on_save)

    asyncio.run(run())
    console.print("Watch stopped.")


@cli.group(name="config")
def config_group():
    """Manage configuration settings."""


@config_group.command(name="show")
@click.pass_context
@handle_errors
def config_show(ctx):
    """Show current configuration."""
    console.print(toml.dumps(load_user_config(ctx).to_toml_dict()), markup=False)


@config_group.command(name="get")
@click.argument("key")
@click.pass_context
@handle_errors
def config_get(ctx, key):
    """Get a configuration value."""
    console.print(str(ConfigLoader(ctx.obj.get("config_path")).get(key)), markup=False)


@config_group.command(name="set")
@click.argument("key")
@click.argument("value")
@click.pass_context
@handle_errors
def config_set(ctx, key, value):
    """Set a configuration value."""
    ConfigLoader(ctx.obj.get("config_path")).set(key, value)
    console.print(f"Set {key} = {value}", markup=False)


@config_group.command(name="reset")
@click.option("--confirm", "confirmed", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
@handle_errors
def config_reset(ctx, confirmed):
    """Reset configuration to defaults."""
    if confirmed or interactive.confirm("Reset config to defaults?"):
        ConfigLoader(ctx.obj.get("config_path")).reset()
        console.print(Text("Config reset to defaults.", style="green"))
    else:
        console.print("Reset cancelled.")


@config_group.command(name="edit")
@click.pass_context
@handle_errors
def config_edit(ctx):
    """Open the configuration file in an editor."""
    loader = ConfigLoader(ctx.obj.get("config_path"))
    if not loader.path.exists():
        loader.save(VibeConfig())
    console.print(f"Opening config file: {loader.path}", markup=False)
    click.edit(filename=str(loader.path))
    # Validate whatever the editor left behind
    try:
        loader.load()
    except ConfigurationError:
        display.print_warnings([f"{loader.path} is no longer valid; run 'vibesnap config reset'"])
        raise


@config_group.command(name="path")
@click.pass_context
def config_path(ctx):
    """Show configuration file location."""
    console.print(str(ConfigLoader(ctx.obj.get("config_path")).path), markup=False)


@cli.command()
@click.option("--confirm", "confirmed", is_flag=True, help="Skip the confirmation prompt")
@handle_errors
def reset(confirmed):
    """Irreversibly delete the .vibe repo and all snaps."""
    if not confirmed and not interactive.confirm(
        "This will delete the .vibe directory and all snapshots. Continue?"
    ):
        console.print("Reset cancelled.")
        return
    try:
        root = Repository.find_root()
    except NotInRepoError:
        console.print("No VibeSnap repo found to reset.")
        return
    SnapshotManager.reset(root)
    console.print(Text("VibeSnap repo has been reset.", style="green"))


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
