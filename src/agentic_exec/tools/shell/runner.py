"""Sequential pipeline execution with a single deadline.

Stages never share a shell. Each stage is a plain ``Popen`` of an argv
list with stderr merged into stdout. In pipe mode the captured output of
one stage is written to a private temp file and the next stage is started
through a fixed wrapper script that redirects its stdin from that file::

    #!/bin/sh
    set -euf
    tmp="$1"; shift
    exec "$@" < "$tmp"

The wrapper receives the temp file and the argv as positional parameters,
so no command text is ever parsed by ``sh``.
"""

import os
import shutil
import signal
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from agentic_exec.constants import COMMAND_LOG_PREVIEW_LENGTH, MAX_OUTPUT_CHARS, truncate
from agentic_exec.logging import Loggers
from agentic_exec.tools.shell.errors import CommandNotFoundError, CommandPermissionError
from agentic_exec.tools.shell.models import (
    CommandStage,
    ExecutionResult,
    OPERATOR_PIPE,
    OPERATOR_SEQUENCE,
    OPERATORS,
    format_pipeline,
)
from agentic_exec.tools.shell.prefix import command_basename

logger = Loggers.tools()

WRAPPER_SCRIPT = """#!/bin/sh
set -euf
tmp="$1"; shift
exec "$@" < "$tmp"
"""

# Grace period for collecting output after killing a timed-out stage
_KILL_GRACE_SECONDS = 2.0


class StagedInput:
    """Private temp directory holding stage input files and the wrapper.

    The directory is created on first use with mode 0700, input files with
    mode 0600. ``cleanup`` removes everything and is safe to call more than
    once; only the first call does any work.
    """

    def __init__(self, temp_dir: Path | str | None = None):
        self._temp_dir = temp_dir
        self._dir: Path | None = None
        self._wrapper: Path | None = None
        self._cleaned = False

    @property
    def directory(self) -> Path:
        if self._cleaned:
            raise RuntimeError("StagedInput used after cleanup")
        if self._dir is None:
            self._dir = Path(tempfile.mkdtemp(prefix="agentic-exec-", dir=self._temp_dir))
        return self._dir

    def wrapper(self) -> Path:
        """Path of the stdin-redirecting wrapper script."""
        if self._wrapper is None:
            path = self.directory / "stdin-wrapper.sh"
            self._write_private(path, WRAPPER_SCRIPT.encode(), 0o700)
            self._wrapper = path
        return self._wrapper

    def write_input(self, index: int, data: bytes) -> Path:
        """Store ``data`` as the stdin of stage ``index``."""
        path = self.directory / f"stage-{index}.stdin"
        self._write_private(path, data, 0o600)
        return path

    def cleanup(self) -> None:
        if self._cleaned:
            return
        self._cleaned = True
        if self._dir is None:
            return
        try:
            shutil.rmtree(self._dir)
        except OSError as e:
            logger.warning("shell_temp_cleanup_failed", path=str(self._dir), error=str(e))

    def __enter__(self) -> "StagedInput":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    @staticmethod
    def _write_private(path: Path, data: bytes, mode: int) -> None:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(path, mode)


@dataclass
class _StageOutcome:
    output: bytes
    exit_code: int
    timed_out: bool = False


class PipelineRunner:
    """Runs prepared command stages in order under one deadline.

    Example:
        runner = PipelineRunner(cwd="/src/project")
        stages = runner.prepare([CommandStage("ls", ("-la",))])
        result = runner.run(stages, timeout_ms=5000)
    """

    def __init__(
        self,
        cwd: Path | str | None = None,
        temp_dir: Path | str | None = None,
        max_output_chars: int = MAX_OUTPUT_CHARS,
        path_completion_commands: Sequence[str] = ("rg",),
    ):
        """Initialize the runner.

        Args:
            cwd: Working directory of every stage (the project root)
            temp_dir: Parent directory for per-run temp directories
            max_output_chars: Output size before truncation
            path_completion_commands: Search tools that get ``cwd`` appended
                when called without a path argument
        """
        self.cwd = Path(cwd or Path.cwd()).expanduser().resolve()
        self.temp_dir = temp_dir
        self.max_output_chars = max_output_chars
        self.path_completion_commands = frozenset(path_completion_commands)

    # ------------------------------------------------------------------
    # Preparation
    # ------------------------------------------------------------------

    def prepare(self, stages: Sequence[CommandStage]) -> tuple[CommandStage, ...]:
        """Resolve executables and apply path completion.

        Returns stages whose commands are absolute paths. Preparing already
        prepared stages returns them unchanged.

        Raises:
            CommandNotFoundError: If an executable cannot be found.
            CommandPermissionError: If an executable is not runnable.
        """
        prepared = []
        for index, stage in enumerate(stages):
            stage = self._resolve(stage)
            if index == 0:
                stage = self._complete_path(stage)
            prepared.append(stage)
        return tuple(prepared)

    def _resolve(self, stage: CommandStage) -> CommandStage:
        path = self._find_executable(stage.command)
        if path is not None:
            return CommandStage(path, stage.args)

        # "git log" given as the command: split off the leading arguments
        if " " in stage.command.strip():
            base, *extra = stage.command.split()
            path = self._find_executable(base)
            if path is not None:
                return CommandStage(path, (*extra, *stage.args))

        raise CommandNotFoundError(stage.display())

    def _find_executable(self, command: str) -> str | None:
        if command.startswith("~"):
            command = os.path.expanduser(command)

        if "/" not in command:
            return shutil.which(command)

        path = Path(command)
        if not path.is_absolute():
            path = self.cwd / path
        if not path.is_file():
            return None
        if not os.access(path, os.X_OK):
            raise CommandPermissionError(command)
        return os.path.normpath(str(path))

    def _complete_path(self, stage: CommandStage) -> CommandStage:
        if command_basename(stage.command) not in self.path_completion_commands:
            return stage
        positionals = [arg for arg in stage.args if not arg.startswith("-")]
        if any(arg.startswith((".", "/")) for arg in positionals):
            return stage
        return CommandStage(stage.command, (*stage.args, str(self.cwd)))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(
        self,
        stages: Sequence[CommandStage],
        timeout_ms: int,
        operator: str = OPERATOR_PIPE,
    ) -> ExecutionResult:
        """Run ``stages`` and report the outcome.

        With ``|`` each stage after the first reads the previous stage's
        output on stdin; with ``&&`` stages run independently and their
        outputs are concatenated. Either way the first non-zero exit stops
        the run and later stages are never started.

        Raises:
            CommandNotFoundError: If an executable cannot be found.
            CommandPermissionError: If an executable is not runnable.
        """
        if operator not in OPERATORS:
            raise ValueError(f"Unsupported operator: {operator!r}")

        stages = self.prepare(stages)
        command = format_pipeline(stages, operator)
        start = time.monotonic()
        deadline = start + timeout_ms / 1000

        logger.info(
            "shell_run_started",
            command=truncate(command, COMMAND_LOG_PREVIEW_LENGTH),
            stages=len(stages),
            operator=operator,
            timeout_ms=timeout_ms,
        )

        staged = StagedInput(self.temp_dir)
        transcript: list[str] = []
        previous_output: bytes | None = None
        outcome = _StageOutcome(b"", 0)
        failed_index: int | None = None
        index = 0

        try:
            for index, stage in enumerate(stages):
                stdin_path = None
                if operator == OPERATOR_PIPE and index > 0:
                    stdin_path = staged.write_input(index, previous_output or b"")

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    outcome = _StageOutcome(b"", -1, timed_out=True)
                else:
                    outcome = self._run_stage(stage, staged, stdin_path, remaining)

                if operator == OPERATOR_SEQUENCE:
                    transcript.append(f"$ {stage.display()}\n{self._decode(outcome.output)}")

                if outcome.timed_out or outcome.exit_code != 0:
                    failed_index = index
                    break
                previous_output = outcome.output
        finally:
            staged.cleanup()

        duration_ms = int((time.monotonic() - start) * 1000)

        if operator == OPERATOR_SEQUENCE:
            output = "\n".join(part.rstrip("\n") for part in transcript)
        else:
            output = self._decode(outcome.output)
        output, truncated = self._truncate(output)

        result = ExecutionResult(
            output=output,
            exit_code=outcome.exit_code,
            timed_out=outcome.timed_out,
            failed_stage_index=failed_index,
            command=command,
            stage_command=stages[index].display(),
            stage_count=len(stages),
            duration_ms=duration_ms,
            truncated=truncated,
            timeout_ms=timeout_ms,
        )

        if result.timed_out:
            logger.warning(
                "shell_stage_timeout",
                stage=index,
                command=truncate(result.stage_command, COMMAND_LOG_PREVIEW_LENGTH),
                timeout_ms=timeout_ms,
            )
        logger.info(
            "shell_run_finished",
            exit_code=result.exit_code,
            failed_stage=failed_index,
            duration_ms=duration_ms,
        )
        return result

    def _run_stage(
        self,
        stage: CommandStage,
        staged: StagedInput,
        stdin_path: Path | None,
        timeout_s: float,
    ) -> _StageOutcome:
        argv = stage.argv
        if stdin_path is not None:
            argv = ["/bin/sh", str(staged.wrapper()), str(stdin_path), *argv]

        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                cwd=self.cwd,
                start_new_session=True,
            )
        except FileNotFoundError as e:
            raise CommandNotFoundError(stage.display()) from e
        except PermissionError as e:
            raise CommandPermissionError(stage.display()) from e

        try:
            output, _ = process.communicate(timeout=timeout_s)
            return _StageOutcome(output or b"", process.returncode)
        except subprocess.TimeoutExpired:
            self._kill(process)
            try:
                output, _ = process.communicate(timeout=_KILL_GRACE_SECONDS)
            except subprocess.TimeoutExpired:
                # A detached grandchild still holds the pipe
                process.stdout.close()
                process.wait()
                output = b""
            return _StageOutcome(output or b"", -1, timed_out=True)
        except BaseException:
            self._kill(process)
            process.wait()
            raise

    @staticmethod
    def _kill(process: subprocess.Popen) -> None:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            process.kill()

    @staticmethod
    def _decode(output: bytes) -> str:
        return output.decode("utf-8", errors="replace")

    def _truncate(self, output: str) -> tuple[str, bool]:
        if len(output) > self.max_output_chars:
            return output[: self.max_output_chars], True
        return output, False
