"""Exercise descriptions, compilation, running and completion state."""

import contextlib
import enum
import os
import re
import subprocess
import threading
import tomllib
import weakref
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

RUSTC_COLOR_ARGS = ("--color", "always")
RUSTC_EDITION_ARGS = ("--edition", "2021")
I_AM_DONE_REGEX = re.compile(r"^\s*///?\s*I\s+AM\s+NOT\s+DONE", re.MULTILINE)
CONTEXT = 2
CLIPPY_CARGO_TOML_PATH = "./exercises/clippy/Cargo.toml"
BUILD_SCRIPT_CARGO_TOML_PATH = "./exercises/tests/Cargo.toml"


def temp_file() -> str:
    """Name of the binary built for this process and thread."""
    return f"./temp_{os.getpid()}_ThreadId{threading.get_ident()}"


def _remove_quietly(path: str) -> None:
    with contextlib.suppress(OSError):
        os.remove(path)


def clean() -> None:
    """Remove the temporary binary, if there is one."""
    _remove_quietly(temp_file())


class Mode(enum.Enum):
    """How an exercise is checked."""

    COMPILE = "compile"
    TEST = "test"
    CLIPPY = "clippy"
    BUILD_SCRIPT = "buildscript"


@dataclass(frozen=True)
class ContextLine:
    """A source line shown around the pending marker."""

    line: str
    number: int
    important: bool


@dataclass(frozen=True)
class State:
    """Completion state: done when there is no pending context."""

    context: tuple[ContextLine, ...] = ()

    DONE: ClassVar["State"]

    @property
    def done(self) -> bool:
        return not self.context


State.DONE = State()


@dataclass(frozen=True)
class ExerciseOutput:
    """Captured output of a command."""

    stdout: str
    stderr: str


class ExerciseFailed(Exception):
    """A compile or run step exited unsuccessfully."""

    def __init__(self, output: ExerciseOutput):
        super().__init__(output.stderr or output.stdout)
        self.output = output


def _capture(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(args, capture_output=True, check=False)


def _output(result: subprocess.CompletedProcess) -> ExerciseOutput:
    return ExerciseOutput(
        stdout=(result.stdout or b"").decode("utf-8", errors="replace"),
        stderr=(result.stderr or b"").decode("utf-8", errors="replace"),
    )


def _cargo_manifest(name: str) -> str:
    return (
        "[package]\n"
        f'name = "{name}"\n'
        'version = "0.0.1"\n'
        'edition = "2021"\n'
        "[[bin]]\n"
        f'name = "{name}"\n'
        f'path = "{name}.rs"'
    )


def _write_manifest(path: str, name: str) -> None:
    try:
        Path(path).write_text(_cargo_manifest(name), encoding="utf-8")
    except OSError as err:
        if "NO_EMOJI" in os.environ:
            message = "Failed to write Clippy Cargo.toml file."
        else:
            message = "Failed to write 📎 Clippy 📎 Cargo.toml file."
        raise OSError(message) from err


def _lines(source: str) -> list[str]:
    lines = source.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]


@dataclass
class Exercise:
    """One exercise as described in info.toml."""

    name: str
    path: Path
    mode: Mode
    hint: str

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.mode = Mode(self.mode)

    def compile(self) -> "CompiledExercise":
        """Build the exercise; raise ExerciseFailed when the build fails."""
        target = temp_file()
        source = str(self.path)
        rustc = [*RUSTC_COLOR_ARGS, *RUSTC_EDITION_ARGS]
        match self.mode:
            case Mode.COMPILE:
                result = _capture(["rustc", source, "-o", target, *rustc])
            case Mode.TEST:
                result = _capture(["rustc", "--test", source, "-o", target, *rustc])
            case Mode.CLIPPY:
                _write_manifest(CLIPPY_CARGO_TOML_PATH, self.name)
                # The binary is built so the exercise can be run; a failure
                # here shows up again when clippy compiles it.
                _capture(["rustc", source, "-o", target, *rustc])
                _capture(
                    ["cargo", "clean", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                     *RUSTC_COLOR_ARGS]
                )
                result = _capture(
                    ["cargo", "clippy", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                     *RUSTC_COLOR_ARGS, "--", "-D", "warnings", "-D", "clippy::float_cmp"]
                )
            case Mode.BUILD_SCRIPT:
                _write_manifest(BUILD_SCRIPT_CARGO_TOML_PATH, self.name)
                result = _capture(
                    ["cargo", "test", "--manifest-path", BUILD_SCRIPT_CARGO_TOML_PATH]
                )
        if result.returncode == 0:
            return CompiledExercise(self, target)
        clean()
        raise ExerciseFailed(_output(result))

    def _run(self, binary: str) -> ExerciseOutput:
        if self.mode is Mode.BUILD_SCRIPT:
            return ExerciseOutput(stdout="", stderr="")
        args = [binary]
        if self.mode is Mode.TEST:
            args.append("--show-output")
        result = _capture(args)
        output = _output(result)
        if result.returncode != 0:
            raise ExerciseFailed(output)
        return output

    def state(self) -> State:
        """Read the source and report whether the pending marker remains."""
        source = self.path.read_text(encoding="utf-8")
        if not I_AM_DONE_REGEX.search(source):
            return State.DONE
        lines = _lines(source)
        matched = next(
            (i for i, line in enumerate(lines) if I_AM_DONE_REGEX.search(line)), None
        )
        if matched is None:
            raise ValueError(f"{self.path}: pending marker is not on a single line")
        low = max(matched - CONTEXT, 0)
        high = matched + CONTEXT
        return State(
            tuple(
                ContextLine(line=line, number=i + 1, important=i == matched)
                for i, line in enumerate(lines[low : high + 1], start=low)
            )
        )

    def looks_done(self) -> bool:
        """True when the pending marker has been removed."""
        return self.state().done

    def __str__(self) -> str:
        return str(self.path)


class CompiledExercise:
    """A built exercise; its binary is removed when closed."""

    def __init__(self, exercise: Exercise, binary: str):
        self.exercise = exercise
        self.binary = binary
        self._finalizer = weakref.finalize(self, _remove_quietly, binary)

    def run(self) -> ExerciseOutput:
        """Run the built binary; raise ExerciseFailed on a non-zero exit."""
        return self.exercise._run(self.binary)

    def close(self) -> None:
        self._finalizer()

    def __enter__(self) -> "CompiledExercise":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _exercise_from_table(table: dict) -> Exercise:
    try:
        return Exercise(
            name=table["name"], path=Path(table["path"]), mode=table["mode"], hint=table["hint"]
        )
    except KeyError as err:
        raise ValueError(f"exercise entry is missing field {err.args[0]!r}") from err


def load_exercises(path="info.toml") -> list[Exercise]:
    """Load the exercise list from a TOML file."""
    with open(path, "rb") as handle:
        data = tomllib.load(handle)
    if "exercises" not in data:
        raise ValueError("missing field 'exercises'")
    return [_exercise_from_table(table) for table in data["exercises"]]