"""Checking exercises one after another and reporting the outcome."""

import os
import sys
from collections.abc import Iterable

from rich.console import Console
from rich.text import Text

from .exercise import CompiledExercise, Exercise, ExerciseFailed, Mode
from .ui import success, warn

_BAR_WIDTH = 60
_SEPARATOR = "===================="


class VerificationFailed(Exception):
    """An exercise did not compile, failed to run or is still pending."""

    def __init__(self, exercise: Exercise):
        super().__init__(f"{exercise} is not finished")
        self.exercise = exercise


class _Spinner:
    """A one-line status message on a terminal's stderr."""

    def __init__(self, message: str):
        self._stream = sys.stderr
        self._live = self._stream.isatty()
        self.set_message(message)

    def set_message(self, message: str) -> None:
        if self._live:
            self._stream.write(f"\r\x1b[2K… {message}")
            self._stream.flush()

    def finish_and_clear(self) -> None:
        if self._live:
            self._stream.write("\r\x1b[2K")
            self._stream.flush()
            self._live = False

    def __enter__(self) -> "_Spinner":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.finish_and_clear()


class _ProgressBar:
    """Overall progress drawn on a terminal's stderr."""

    def __init__(self, position: int, total: int):
        self._stream = sys.stderr
        self._live = self._stream.isatty()
        self.position = position
        self.total = total
        self._draw()

    def _draw(self) -> None:
        if not self._live:
            return
        fraction = self.position / self.total if self.total else 1.0
        filled = min(int(_BAR_WIDTH * fraction), _BAR_WIDTH)
        if filled < _BAR_WIDTH:
            bar = "#" * filled + ">" + "-" * (_BAR_WIDTH - filled - 1)
        else:
            bar = "#" * _BAR_WIDTH
        self._stream.write(
            f"\rProgress: [{bar}] {self.position}/{self.total} ({fraction * 100:.1f} %)"
        )
        self._stream.flush()

    def inc(self) -> None:
        self.position += 1
        self._draw()

    def finish(self) -> None:
        if self._live:
            self._stream.write("\n")
            self._stream.flush()


def _console() -> Console:
    return Console(file=sys.stdout, highlight=False, soft_wrap=True, emoji=False)


def verify(
    exercises: Iterable[Exercise],
    progress: tuple[int, int],
    verbose: bool = False,
    success_hints: bool = False,
) -> None:
    """Check exercises in order; raise VerificationFailed at the first unfinished one."""
    num_done, total = progress
    bar = _ProgressBar(num_done, total)
    try:
        for exercise in exercises:
            if not _check(exercise, verbose, success_hints):
                raise VerificationFailed(exercise)
            bar.inc()
    finally:
        bar.finish()


def _check(exercise: Exercise, verbose: bool, success_hints: bool) -> bool:
    match exercise.mode:
        case Mode.TEST | Mode.BUILD_SCRIPT:
            return _compile_and_test(exercise, True, verbose, success_hints)
        case Mode.COMPILE:
            return _compile_and_run_interactively(exercise, success_hints)
        case Mode.CLIPPY:
            return _compile_only(exercise, success_hints)


def test(exercise: Exercise, verbose: bool = False) -> None:
    """Build and run an exercise's tests; raise VerificationFailed on failure."""
    _compile_and_test(exercise, False, verbose, False)


def _compile(exercise: Exercise, spinner: _Spinner) -> CompiledExercise:
    try:
        return exercise.compile()
    except ExerciseFailed as failure:
        spinner.finish_and_clear()
        warn(f"Compiling of {exercise} failed! Please try again. Here's the output:")
        print(failure.output.stderr)
        raise VerificationFailed(exercise) from failure


def _compile_only(exercise: Exercise, success_hints: bool) -> bool:
    with _Spinner(f"Compiling {exercise}...") as spinner:
        _compile(exercise, spinner).close()
    return prompt_for_completion(exercise, None, success_hints)


def _compile_and_run_interactively(exercise: Exercise, success_hints: bool) -> bool:
    with _Spinner(f"Compiling {exercise}...") as spinner:
        with _compile(exercise, spinner) as compiled:
            spinner.set_message(f"Running {exercise}...")
            try:
                output = compiled.run()
            except ExerciseFailed as failure:
                spinner.finish_and_clear()
                warn(f"Ran {exercise} with errors")
                print(failure.output.stdout)
                print(failure.output.stderr)
                raise VerificationFailed(exercise) from failure
    return prompt_for_completion(exercise, output.stdout, success_hints)


def _compile_and_test(
    exercise: Exercise, interactive: bool, verbose: bool, success_hints: bool
) -> bool:
    with _Spinner(f"Testing {exercise}...") as spinner:
        with _compile(exercise, spinner) as compiled:
            try:
                output = compiled.run()
            except ExerciseFailed as failure:
                spinner.finish_and_clear()
                warn(f"Testing of {exercise} failed! Please try again. Here's the output:")
                print(failure.output.stdout)
                raise VerificationFailed(exercise) from failure
    if verbose:
        print(output.stdout)
    if interactive:
        return prompt_for_completion(exercise, None, success_hints)
    return True


def _success_message(mode: Mode, no_emoji: bool) -> str:
    match mode:
        case Mode.COMPILE:
            return "The code is compiling!"
        case Mode.TEST:
            return "The code is compiling, and the tests pass!"
        case Mode.CLIPPY:
            if no_emoji:
                return "The code is compiling, and Clippy is happy!"
            return "The code is compiling, and 📎 Clippy 📎 is happy!"
        case Mode.BUILD_SCRIPT:
            return "Build script works!"


def _announce(exercise: Exercise) -> None:
    match exercise.mode:
        case Mode.COMPILE:
            success(f"Successfully ran {exercise}!")
        case Mode.TEST:
            success(f"Successfully tested {exercise}!")
        case Mode.CLIPPY | Mode.BUILD_SCRIPT:
            success(f"Successfully compiled {exercise}!")


def prompt_for_completion(
    exercise: Exercise, prompt_output: str | None, success_hints: bool
) -> bool:
    """Return True when the exercise is done, otherwise show where to continue."""
    state = exercise.state()
    if state.done:
        return True
    _announce(exercise)

    no_emoji = "NO_EMOJI" in os.environ
    message = _success_message(exercise.mode, no_emoji)
    print()
    print(f"~*~ {message} ~*~" if no_emoji else f"🎉 🎉  {message} 🎉 🎉")
    print()

    console = _console()
    separator = Text(_SEPARATOR, style="bold")
    if prompt_output is not None:
        print("Output:")
        console.print(separator)
        print(prompt_output)
        console.print(separator)
        print()
    if success_hints:
        print("Hints:")
        console.print(separator)
        print(exercise.hint)
        console.print(separator)
        print()

    print("You can keep working on this exercise,")
    console.print(
        Text.assemble(
            "or jump into the next one by removing the ",
            ("`I AM NOT DONE`", "bold"),
            " comment:",
        )
    )
    print()
    for context_line in state.context:
        line = (context_line.line, "bold") if context_line.important else context_line.line
        console.print(
            Text.assemble(
                (f"{context_line.number:>2}", "bold blue"), " ", ("|", "blue"), "  ", line
            )
        )
    return False