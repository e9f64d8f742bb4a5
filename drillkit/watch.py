"""Watch mode: re-check exercises whenever their files change."""

import enum
import os
import queue
import subprocess
import sys
import threading
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import TextIO

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .exercise import Exercise
from .verify import VerificationFailed, verify

WATCH_DIR = "./exercises"
_POLL_SECONDS = 1.0
_DEBOUNCE_SECONDS = 1.0

WELCOME = (
    "Welcome to watch mode! You can type 'help' to get an overview of the "
    "commands you can use here."
)

HELP_TEXT = "\n".join(
    [
        "Commands available to you in watch mode:",
        "  hint   - prints the current exercise's hint",
        "  clear  - clears the screen",
        "  quit   - quits watch mode",
        "  !<cmd> - executes a command, like `!rustc --explain E0381`",
        "  help   - displays this help message",
        "",
        "Watch mode automatically re-evaluates the current exercise",
        "when you edit a file's contents.",
    ]
)


class WatchStatus(enum.Enum):
    """How watch mode ended."""

    FINISHED = "finished"
    UNFINISHED = "unfinished"


class WatchShell:
    """Reads commands typed while watch mode is running."""

    def __init__(self, hint: str | None = None, stream: TextIO | None = None):
        self.hint = hint
        self.stream = stream
        self.should_quit = threading.Event()

    def handle(self, line: str) -> None:
        """Carry out one command line."""
        command = line.strip()
        if command == "hint":
            if self.hint is not None:
                print(self.hint)
        elif command == "clear":
            print("\x1b[2J\x1b[1;1H")
        elif command == "quit":
            self.should_quit.set()
            print("Bye!")
        elif command == "help":
            print(HELP_TEXT)
        elif command.startswith("!"):
            cmd = command[1:]
            parts = cmd.split()
            if not parts:
                print("no command provided")
                return
            try:
                subprocess.run(parts, check=False)
            except OSError as err:
                print(f"failed to execute command `{cmd}`: {err}")
        else:
            print(f"unknown command: {command}")

    def run(self) -> None:
        """Handle lines from the input stream until it ends or quit is typed."""
        stream = self.stream if self.stream is not None else sys.stdin
        try:
            for line in stream:
                self.handle(line)
                if self.should_quit.is_set():
                    break
        except (OSError, ValueError) as err:
            print(f"error reading command: {err}")


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, changes: "queue.Queue[Path]"):
        super().__init__()
        self._changes = changes

    def on_created(self, event) -> None:
        self._record(event)

    def on_modified(self, event) -> None:
        self._record(event)

    def _record(self, event) -> None:
        if not event.is_directory:
            self._changes.put(Path(os.fsdecode(event.src_path)))


def _clear_screen() -> None:
    print("\x1bc")


def _ends_with(path: Path, tail: Path) -> bool:
    tail_parts = Path(tail).parts
    parts = path.parts
    return len(tail_parts) <= len(parts) and parts[len(parts) - len(tail_parts):] == tail_parts


def _pending_after_change(exercises: Sequence[Exercise], changed: Path) -> Iterator[Exercise]:
    matched = next((e for e in exercises if _ends_with(changed, e.path)), None)
    if matched is not None:
        yield matched
    yield from (
        e for e in exercises if not e.looks_done() and not _ends_with(changed, e.path)
    )


def _collect_changes(changes: "queue.Queue[Path]", first: Path) -> list[Path]:
    collected = {first: None}
    while True:
        try:
            collected[changes.get(timeout=_DEBOUNCE_SECONDS)] = None
        except queue.Empty:
            return list(collected)


def watch(
    exercises: Sequence[Exercise], verbose: bool = False, success_hints: bool = False
) -> WatchStatus:
    """Verify the exercises, then re-verify after each edit until done or quit."""
    changes: "queue.Queue[Path]" = queue.Queue()
    observer = Observer()
    observer.schedule(_ChangeHandler(changes), WATCH_DIR, recursive=True)
    observer.start()
    try:
        _clear_screen()
        try:
            verify(exercises, (0, len(exercises)), verbose, success_hints)
        except VerificationFailed as failure:
            shell = WatchShell(failure.exercise.hint)
        else:
            return WatchStatus.FINISHED

        print(WELCOME)
        threading.Thread(target=shell.run, daemon=True).start()
        while not shell.should_quit.is_set():
            try:
                first = changes.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue
            for changed in _collect_changes(changes, first):
                if changed.suffix != ".rs" or not changed.exists():
                    continue
                filepath = changed.resolve()
                num_done = sum(1 for e in exercises if e.looks_done())
                _clear_screen()
                try:
                    verify(
                        _pending_after_change(exercises, filepath),
                        (num_done, len(exercises)),
                        verbose,
                        success_hints,
                    )
                except VerificationFailed as failure:
                    shell.hint = failure.exercise.hint
                else:
                    return WatchStatus.FINISHED
        return WatchStatus.UNFINISHED
    finally:
        observer.stop()
        observer.join()