# drillkit

drillkit is a command-line companion for a collection of small Rust
exercises. It reads an `info.toml` file that lists the exercises. It compiles
and runs each one with `rustc`, or with `cargo` for Clippy and build-script
exercises, and it reports which exercises are done and which still need work.

An exercise counts as pending while its source file still has a line
containing an `// I AM NOT DONE` marker. When the exercise compiles and
passes, remove the marker and drillkit moves on to the next exercise.

## Installing

```
pip install .
```

`rustc` must be on your `PATH`. Every command except `--version` checks for
`info.toml` in the current directory and for a working `rustc`. If either is
missing, the command exits with status 1.

## The exercise list

`info.toml` holds an `exercises` array. Each entry has these fields:

```toml
[[exercises]]
name = "intro1"
path = "exercises/intro/intro1.rs"
mode = "compile"      # compile, test, clippy or buildscript
hint = "Remove the marker to move on."
```

- `compile` builds the file with `rustc` and runs the binary.
- `test` builds a test harness with `rustc --test` and runs it with `--show-output`.
- `clippy` writes `./exercises/clippy/Cargo.toml` and runs `cargo clippy`.
- `buildscript` writes `./exercises/tests/Cargo.toml` and runs `cargo test`.

## Commands

```
drillkit                     # show the welcome text
drillkit --version           # print the version
drillkit verify              # verify all exercises in order, stopping at the first unfinished one
drillkit watch               # re-verify whenever a file under ./exercises changes
drillkit watch --success-hints
drillkit run NAME            # compile and run (or test) one exercise
drillkit run next            # run the first exercise that is not done yet
drillkit reset NAME          # stash your changes to one exercise with `git stash --`
drillkit hint NAME           # print the hint for one exercise
drillkit list                # table of names, paths and status, then a progress line
drillkit list --paths        # only paths
drillkit list --names        # only names
drillkit list --filter a,b   # only exercises whose name or path contains a pattern
drillkit list --solved       # only finished exercises
drillkit list --unsolved     # only pending exercises
drillkit lsp                 # write rust-project.json for rust-analyzer
drillkit cicvverify          # grade every exercise and write a JSON report
```

`NAME` may be `next` for `run`, `reset` and `hint`. If no exercise matches, a
message is printed and the exit status is 1.

Put `--nocapture` before the subcommand to see the output of test exercises,
for example `drillkit --nocapture run NAME`.

### Watch mode

`drillkit watch` first verifies all exercises. If they all pass, it ends. If
one fails, it waits for `.rs` files under `./exercises` to change. After each
change it checks the edited exercise first and then the other pending ones.
While it runs, you can type these commands:

- `hint` prints the hint of the exercise that failed last
- `clear` clears the screen
- `quit` leaves watch mode
- `!<cmd>` runs a program with the words that follow, such as `!rustc --explain E0381`
- `help` lists these commands

### rust-analyzer support

`drillkit lsp` takes the standard library sources from `RUST_SRC_PATH`. If
that is not set, it asks `rustc --print sysroot` for them. It then adds every
`.rs` file below `./exercises` as a crate and writes `./rust-project.json`.

### Grading report

`drillkit cicvverify` runs every exercise at the same time and prints a
progress line for each result. It then writes
`.github/result/check_result.json`. The report holds each exercise's name and
result, the number of exercises, successes and failures, and how many seconds
the run took.

### Plain output

Set the `NO_EMOJI` environment variable to replace emoji in messages with
plain characters.

## Using it from Python

```python
from drillkit.exercise import load_exercises
from drillkit.verify import verify, VerificationFailed

exercises = load_exercises("info.toml")
try:
    verify(exercises, (0, len(exercises)), verbose=False, success_hints=False)
except VerificationFailed as failure:
    print(failure.exercise.hint)
```

Other building blocks:

- `Exercise.state()` returns the lines around the pending marker.
- `Exercise.looks_done()` tells whether the marker is gone.
- `Exercise.compile()` returns a `CompiledExercise`. Use it as a context manager so that the temporary binary is removed. It raises `ExerciseFailed` when the build fails.
- `drillkit.run.run` checks a single exercise.
- `drillkit.project.RustAnalyzerProject` builds `rust-project.json`.
- `drillkit.cli.main` runs the command line.