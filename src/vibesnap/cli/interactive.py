"""Numbered-menu selection built on rich.prompt."""

from typing import List, Optional, Sequence

from rich.prompt import IntPrompt, Confirm
from rich.text import Text

from ..models.snapshot import Checkpoint, Manifest, Track
from .display import console, format_time


def choose(items: Sequence[str], prompt: str, default: int = 1) -> int:
    """Show a numbered list and return the 0-based index picked."""
    for number, item in enumerate(items, start=1):
        console.print(Text.assemble((f"{number:>3}", "cyan"), f") {item}"))
    picked = IntPrompt.ask(
        prompt,
        console=console,
        choices=[str(n) for n in range(1, len(items) + 1)],
        default=default,
        show_choices=False,
    )
    return picked - 1


def describe(checkpoint: Checkpoint) -> str:
    return (
        f"{checkpoint.id} ({checkpoint.track}) - "
        f"{format_time(checkpoint.timestamp)} - {checkpoint.note or 'No note'}"
    )


def select_checkpoint(checkpoints: List[Checkpoint], prompt: str = "Select a checkpoint") -> Optional[Checkpoint]:
    if not checkpoints:
        console.print("No checkpoints found.")
        return None
    return checkpoints[choose([describe(c) for c in checkpoints], prompt)]


def select_file(manifest: Manifest, checkpoint_id: str) -> Optional[str]:
    paths = manifest.paths()
    if not paths:
        console.print(f"No files found in checkpoint {checkpoint_id}")
        return None
    return paths[choose(paths, f"Select file to restore from checkpoint {checkpoint_id}")]


def select_track(tracks: List[Track]) -> Optional[str]:
    if not tracks:
        console.print("No tracks found.")
        return None
    return tracks[choose([t.name for t in tracks], "Select track to switch to")].name


def select_action(actions: Sequence[str]) -> str:
    return actions[choose(actions, "What would you like to do?")]


def confirm(prompt: str) -> bool:
    return Confirm.ask(prompt, console=console, default=False)
