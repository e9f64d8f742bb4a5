import subprocess
from pathlib import Path
from unittest import mock

import pytest

from drillkit.exercise import (
    CompiledExercise,
    ContextLine,
    Exercise,
    ExerciseFailed,
    ExerciseOutput,
    Mode,
    State,
    load_exercises,
    temp_file,
)

PENDING = "// fake_exercise\n\n// I AM NOT DONE\n\nfn main() {\n\n}\n"
FINISHED = "// fake_exercise\n\nfn main() {\n\n}\n"


def _done(stdout=b"", stderr=b"", code=0):
    return subprocess.CompletedProcess(args=[], returncode=code, stdout=stdout, stderr=stderr)


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_clean(workdir):
    Path(temp_file()).touch()
    source = _write(workdir / "pending_exercise.rs", PENDING)
    exercise = Exercise(name="example", path=source, mode=Mode.COMPILE, hint="")
    with mock.patch("subprocess.run", return_value=_done()):
        compiled = exercise.compile()
    compiled.close()
    assert not Path(temp_file()).exists()


def test_context_manager_removes_binary(workdir):
    source = _write(workdir / "a.rs", FINISHED)
    exercise = Exercise(name="a", path=source, mode=Mode.COMPILE, hint="")
    with mock.patch("subprocess.run", return_value=_done()):
        with exercise.compile() as compiled:
            Path(compiled.binary).touch()
            assert Path(compiled.binary).exists()
    assert not Path(compiled.binary).exists()


def test_pending_state(tmp_path):
    source = _write(tmp_path / "pending_exercise.rs", PENDING)
    exercise = Exercise(name="pending_exercise", path=source, mode=Mode.COMPILE, hint="")
    expected = (
        ContextLine(line="// fake_exercise", number=1, important=False),
        ContextLine(line="", number=2, important=False),
        ContextLine(line="// I AM NOT DONE", number=3, important=True),
        ContextLine(line="", number=4, important=False),
        ContextLine(line="fn main() {", number=5, important=False),
    )
    assert exercise.state() == State(expected)
    assert exercise.looks_done() is False


def test_finished_exercise(tmp_path):
    source = _write(tmp_path / "finished_exercise.rs", FINISHED)
    exercise = Exercise(name="finished_exercise", path=source, mode=Mode.COMPILE, hint="")
    assert exercise.state() == State.DONE
    assert exercise.looks_done() is True


def test_marker_at_first_line_clamps_context(tmp_path):
    source = _write(tmp_path / "x.rs", "// I AM NOT DONE\n\n#[test]\nfn it_works() {}\n")
    state = Exercise(name="x", path=source, mode=Mode.TEST, hint="").state()
    assert [c.number for c in state.context] == [1, 2, 3]
    assert [c.important for c in state.context] == [True, False, False]


@pytest.mark.parametrize(
    "marker", ["  /// I  AM NOT   DONE", "//I AM NOT DONE", "\t// I AM NOT DONE yet"]
)
def test_marker_variants_are_pending(tmp_path, marker):
    source = _write(tmp_path / "x.rs", f"fn main() {{}}\n{marker}\n")
    assert Exercise(name="x", path=source, mode=Mode.COMPILE, hint="").looks_done() is False


def test_done_comment_is_not_pending(tmp_path):
    source = _write(tmp_path / "x.rs", "// I AM DONE\nfn main() {}\n")
    assert Exercise(name="x", path=source, mode=Mode.COMPILE, hint="").looks_done() is True


def test_exercise_with_output(workdir):
    source = _write(workdir / "testSuccess.rs", "#[test]\nfn passing() {}\n")
    exercise = Exercise(name="exercise_with_output", path=source, mode=Mode.TEST, hint="")
    with mock.patch(
        "subprocess.run", return_value=_done(stdout=b"THIS TEST TOO SHALL PASS\n")
    ) as fake:
        out = exercise.compile().run()
    assert "THIS TEST TOO SHALL PASS" in out.stdout
    compile_args = fake.call_args_list[0].args[0]
    run_args = fake.call_args_list[1].args[0]
    assert compile_args[:2] == ["rustc", "--test"]
    assert run_args == [temp_file(), "--show-output"]


def test_compile_failure_raises_and_cleans(workdir):
    Path(temp_file()).touch()
    source = _write(workdir / "compFailure.rs", "fn main() {\n    let\n}\n")
    exercise = Exercise(name="compFailure", path=source, mode=Mode.COMPILE, hint="")
    with mock.patch("subprocess.run", return_value=_done(stderr=b"expected pattern", code=1)):
        with pytest.raises(ExerciseFailed) as info:
            exercise.compile()
    assert info.value.output.stderr == "expected pattern"
    assert not Path(temp_file()).exists()


def test_run_failure_raises(workdir):
    source = _write(workdir / "t.rs", FINISHED)
    exercise = Exercise(name="t", path=source, mode=Mode.COMPILE, hint="")
    with mock.patch("subprocess.run", return_value=_done()):
        compiled = exercise.compile()
    with mock.patch("subprocess.run", return_value=_done(stdout=b"partial", code=101)):
        with pytest.raises(ExerciseFailed) as info:
            compiled.run()
    assert info.value.output == ExerciseOutput(stdout="partial", stderr="")


def test_build_script_run_has_empty_output(workdir):
    (workdir / "exercises" / "tests").mkdir(parents=True)
    exercise = Exercise(name="build", path="exercises/tests/build.rs", mode="buildscript", hint="")
    with mock.patch("subprocess.run", return_value=_done()) as fake:
        compiled = exercise.compile()
        output = compiled.run()
    assert output == ExerciseOutput(stdout="", stderr="")
    assert fake.call_count == 1
    assert fake.call_args.args[0][:2] == ["cargo", "test"]


def test_clippy_writes_manifest_and_runs_clippy(workdir):
    (workdir / "exercises" / "clippy").mkdir(parents=True)
    exercise = Exercise(name="clippy1", path="exercises/clippy/clippy1.rs", mode=Mode.CLIPPY, hint="")
    with mock.patch("subprocess.run", return_value=_done()) as fake:
        compiled = exercise.compile()
    assert isinstance(compiled, CompiledExercise)
    manifest = (workdir / "exercises" / "clippy" / "Cargo.toml").read_text()
    assert manifest.startswith('[package]\nname = "clippy1"\n')
    assert manifest.endswith('path = "clippy1.rs"')
    commands = [call.args[0][:2] for call in fake.call_args_list]
    assert commands == [["rustc", "exercises/clippy/clippy1.rs"], ["cargo", "clean"], ["cargo", "clippy"]]
    with mock.patch("subprocess.run", return_value=_done(stdout=b"clippy ran")):
        output = compiled.run()
    assert output == ExerciseOutput(stdout="clippy ran", stderr="")


def test_manifest_write_failure(workdir, monkeypatch):
    monkeypatch.setenv("NO_EMOJI", "1")
    exercise = Exercise(name="c", path="c.rs", mode=Mode.CLIPPY, hint="")
    with pytest.raises(OSError, match="Failed to write Clippy Cargo.toml file."):
        exercise.compile()


def test_str_is_path(tmp_path):
    exercise = Exercise(name="a", path=tmp_path / "a.rs", mode=Mode.COMPILE, hint="")
    assert str(exercise) == str(tmp_path / "a.rs")


def test_load_exercises(tmp_path):
    info = tmp_path / "info.toml"
    info.write_text(
        '[[exercises]]\nname = "intro1"\npath = "exercises/intro/intro1.rs"\n'
        'mode = "compile"\nhint = "Hello!"\n\n'
        '[[exercises]]\nname = "tests1"\npath = "exercises/tests/tests1.rs"\n'
        'mode = "test"\nhint = ""\n',
        encoding="utf-8",
    )
    exercises = load_exercises(info)
    assert [e.name for e in exercises] == ["intro1", "tests1"]
    assert [e.mode for e in exercises] == [Mode.COMPILE, Mode.TEST]
    assert exercises[0].path == Path("exercises/intro/intro1.rs")
    assert exercises[0].hint == "Hello!"


def test_load_exercises_rejects_unknown_mode(tmp_path):
    info = tmp_path / "info.toml"
    info.write_text('[[exercises]]\nname = "a"\npath = "a.rs"\nmode = "bogus"\nhint = ""\n')
    with pytest.raises(ValueError):
        load_exercises(info)


def test_load_exercises_missing_field(tmp_path):
    info = tmp_path / "info.toml"
    info.write_text('[[exercises]]\nname = "a"\npath = "a.rs"\nmode = "test"\n')
    with pytest.raises(ValueError, match="hint"):
        load_exercises(info)