"""Running a single exercise on request."""

import subprocess

from .exercise import Exercise, ExerciseFailed, Mode
from .ui import success, warn
from .verify import VerificationFailed, _Spinner, test


def run(exercise: Exercise, verbose: bool = False) -> None:
    """Build and run one exercise, raising VerificationFailed if that fails."""
    match exercise.mode:
        case Mode.TEST | Mode.BUILD_SCRIPT:
            test(exercise, verbose)
        case Mode.COMPILE | Mode.CLIPPY:
            _compile_and_run(exercise)


def reset(exercise: Exercise) -> subprocess.Popen:
    """Stash the changes made to an exercise; raises OSError if git cannot start."""
    return subprocess.Popen(["git", "stash", "--", str(exercise.path)])


def _compile_and_run(exercise: Exercise) -> None:
    with _Spinner(f"Compiling {exercise}...") as spinner:
        try:
            compiled = exercise.compile()
        except ExerciseFailed as failure:
            spinner.finish_and_clear()
            warn(f"Compilation of {exercise} failed!, Compiler error message:\n")
            print(failure.output.stderr)
            raise VerificationFailed(exercise) from failure
        with compiled:
            spinner.set_message(f"Running {exercise}...")
            try:
                output = compiled.run()
            except ExerciseFailed as failure:
                spinner.finish_and_clear()
                print(failure.output.stdout)
                print(failure.output.stderr)
                warn(f"Ran {exercise} with errors")
                raise VerificationFailed(exercise) from failure
    print(output.stdout)
    success(f"Successfully ran {exercise}")