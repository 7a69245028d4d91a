"""
Terminal rendering for VibeSnap.

All output formatting lives here; the core hands over plain checkpoints,
manifests and diff reports.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Callable, Dict

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, MofNCompleteColumn
from rich.table import Table
from rich.text import Text
from rich.tree import Tree
from rich import box

from ..models.snapshot import Checkpoint, Manifest, TimelineEntry, Track
from ..snapshot.diff import DiffReport, FileDiff, SEPARATOR


console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

LINE_STYLES = {"delete": "red", "insert": "green", "equal": ""}


def format_time(timestamp: int, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    return datetime.fromtimestamp(timestamp).strftime(fmt)


def print_error(message: str) -> None:
    err_console.print(Text(f"Error: {message}", style="red"))


def print_warnings(warnings: List[str]) -> None:
    for warning in warnings:
        err_console.print(Text(f"Warning: {warning}", style="yellow"))


def print_hints(hints: List[str]) -> None:
    for hint in hints:
        err_console.print(Text(f"Hint: {hint}", style="cyan"))


def checkpoints_table(checkpoints: List[Checkpoint]) -> Table:
    table = Table(box=box.SQUARE, show_lines=False)
    for column in ("id", "track", "parent", "when", "note"):
        table.add_column(column, overflow="fold")
    for cp in checkpoints:
        table.add_row(
            cp.id,
            Text(cp.track),
            cp.parent or "-",
            format_time(cp.timestamp),
            Text(cp.note),
        )
    return table


def file_tree(manifest: Manifest, label: str = "Files") -> Tree:
    """Nested tree of the manifest's paths."""
    tree = Tree(label, guide_style="blue")
    nodes: Dict[str, Tree] = {}
    for path in manifest.paths():
        parent = tree
        parts = path.split("/")
        for depth, part in enumerate(parts[:-1]):
            key = "/".join(parts[:depth + 1])
            if key not in nodes:
                nodes[key] = parent.add(Text(f"{part}/", style="bold"))
            parent = nodes[key]
        parent.add(Text(parts[-1]))
    return tree


def checkpoints_tree(checkpoints: List[Checkpoint], manifests: Dict[str, Manifest]) -> Tree:
    root = Tree(Text("VibeSnap Repository", style="bold cyan"), guide_style="blue")
    for cp in checkpoints:
        label = Text.assemble(
            (cp.id, "bold green"), " ", (cp.track, "yellow"),
            (f" ({format_time(cp.timestamp)})", "dim"),
        )
        node = root.add(label)
        if cp.note:
            node.add(Text.assemble(("Note", "cyan"), f": {cp.note}"))
        if cp.parent:
            node.add(Text.assemble(("Parent", "cyan"), ": ", (cp.parent, "dim")))
        manifest = manifests.get(cp.id)
        if manifest is not None:
            node.add(file_tree(manifest, "[cyan]Files[/cyan]"))
    return root


def print_timeline(entries: List[TimelineEntry], track: str, detailed: bool = False) -> None:
    if not entries:
        console.print(Text(f"No checkpoints found on track '{track}'", style="yellow"))
        return

    console.print()
    console.print(Text(f"Timeline for track: {track}", style="bold cyan"))
    console.print(Text("━" * 60, style="bright_black"))
    console.print()

    if detailed:
        table = Table(box=box.SQUARE)
        for column in ("Time", "ID", "Type", "Note"):
            table.add_column(column, overflow="fold")
        for entry in entries:
            cp = entry.checkpoint
            marker = "→" if entry.is_current else " "
            table.add_row(
                format_time(cp.timestamp),
                Text(f"{marker} {cp.id}", style="green" if entry.is_current else ""),
                Text("auto", style="grey50") if cp.is_auto else Text("manual", style="cyan"),
                Text(cp.note),
            )
        console.print(table)
    else:
        for entry in entries:
            cp = entry.checkpoint
            if entry.is_current:
                marker = Text("●", style="green")
            elif cp.is_auto:
                marker = Text("○", style="bright_black")
            else:
                marker = Text("◆", style="cyan")
            console.print(Text.assemble(
                marker, " ",
                (format_time(cp.timestamp, "%H:%M:%S"), "bright_black"), " ",
                (cp.id, "bold green" if entry.is_current else ""),
                " - ", (cp.note, "bright_black"),
            ))

    console.print()
    console.print(Text("Legend:", style="bright_black"))
    console.print(Text.assemble(
        "  ", ("◆", "cyan"), " Manual snap  ",
        ("○", "bright_black"), " Auto-snap  ",
        ("●", "green"), " Current position",
    ))


def print_graph(checkpoints: List[Checkpoint], tracks: Optional[List[Track]] = None) -> None:
    console.print(Text("Checkpoint Graph:", style="bold cyan"))
    heads = {t.head: t.name for t in tracks or [] if t.head}
    for cp in checkpoints:
        line = Text.assemble(
            "* ", (cp.id, "green"), " (", (cp.track, "yellow"), ") -> ",
            (cp.parent or "root", "dim"), " ", cp.note,
        )
        if cp.id in heads:
            line.append(f"  [{heads[cp.id]} head]", style="bold magenta")
        console.print(line)


def unified_lines(file_diff: FileDiff) -> List[Text]:
    """Header lines followed by every line with its ``-``, ``+`` or space prefix."""
    out = [
        Text.assemble("--- a/", (file_diff.path, "red")),
        Text.assemble("+++ b/", (file_diff.path, "green")),
    ]
    out.extend(
        Text(f"{line.sign} {line.text}", style=LINE_STYLES[line.tag])
        for line in file_diff.lines
    )
    return out


def side_by_side_lines(file_diff: FileDiff) -> List[Text]:
    """Change clusters with context, each line carrying its old line number."""
    out = [Text(f"Diff for {file_diff.path}", style="bold")]
    for idx, group in enumerate(file_diff.groups):
        if idx > 0:
            out.append(Text(SEPARATOR))
        for line in group:
            number = "" if line.old_index is None else str(line.old_index)
            out.append(Text(f"{number:>4} {line.sign} {line.text}", style=LINE_STYLES[line.tag] or "dim"))
    return out


def print_file_diff(file_diff: FileDiff, side_by_side: bool = False) -> None:
    render = side_by_side_lines if side_by_side else unified_lines
    for line in render(file_diff):
        console.print(line)


def print_diff(report: DiffReport, side_by_side: bool = False, single_file: bool = False) -> None:
    if report.identical:
        console.print("Files are identical." if single_file else "No differences found.")
        return
    for file_diff in report.files:
        if not single_file:
            console.print()
            console.print(Text(f"Diff for {file_diff.path}:", style="bold"))
        print_file_diff(file_diff, side_by_side)


@contextmanager
def progress(enabled: bool, description: str) -> Iterator[Optional[Callable[[str], None]]]:
    """Yield a per-file callback driving a spinner, or None when disabled."""
    if not enabled:
        yield None
        return

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        MofNCompleteColumn(),
        TextColumn("{task.fields[current]}", style="dim"),
        console=err_console,
        transient=True,
    ) as bar:
        task = bar.add_task(description, total=None, current="")

        def advance(path: str) -> None:
            bar.update(task, advance=1, current=path)

        yield advance
