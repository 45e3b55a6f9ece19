"""Sandboxed execution of external commands.

:class:`SandboxedExecutor` is the one place untrusted data crosses into
OS process execution.  It re-verifies every part of a request itself
rather than trusting earlier validation:

1. The executable path must equal its own canonical (``realpath``) form,
   exist, be a regular executable file and, if the policy names any,
   be on the allow-list.
2. Every argument must pass the ``SystemCommandParameter`` rule; the
   canonical values are what get passed to the child.
3. The working directory must exist.
4. The child runs without a shell, with an explicitly built environment,
   stdin closed and stderr merged into stdout.  On POSIX core dumps are
   disabled and resource limits applied before ``exec``.
5. The deadline is enforced: terminate, wait the grace period, kill.
   On POSIX the child leads its own session and the signals go to the
   whole process group, so background processes it started die with it.
6. Output is read through :class:`~inputguard.io.BoundedLineReader` on a
   reader thread, bounded per line and in total.

Every failure is an :class:`~inputguard.core.errors.ExecutorFailure`
whose external message is generic; the diagnostic text is in ``cause``.
"""
from __future__ import annotations

import contextlib
import functools
import logging
import os
import signal
import subprocess
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from inputguard.core.errors import (
    ArgumentRejected,
    ExecutablePathInvalid,
    ExecutionTimeout,
    ExecutorFailure,
    LineTooLong,
    OutputLimitExceeded,
    SpawnFailure,
    WorkingDirectoryMissing,
)
from inputguard.core.types import Accepted, ExecutionRequest, IntrusionSuspected
from inputguard.io.line_reader import BoundedLineReader
from inputguard.isolation.environment import EnvironmentManager
from inputguard.isolation.sandbox import ResourceLimits, SandboxPolicy
from inputguard.validation.engine import ValidationEngine

logger = logging.getLogger(__name__)

ARGUMENT_RULE = "SystemCommandParameter"


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Merged output of a finished child process.

    ``output`` holds every line followed by ``"\\n"``.
    """

    exit_code: int
    output: str


def _preexec_fn(disable_core_dumps: bool, limits: ResourceLimits) -> None:
    """Runs in the child between ``fork`` and ``exec`` (POSIX only)."""
    import resource

    if disable_core_dumps:
        resource.setrlimit(resource.RLIMIT_CORE, (0, 0))
    if limits.max_memory_bytes is not None:
        resource.setrlimit(
            resource.RLIMIT_AS, (limits.max_memory_bytes, limits.max_memory_bytes),
        )
    if limits.max_cpu_seconds is not None:
        resource.setrlimit(
            resource.RLIMIT_CPU, (limits.max_cpu_seconds, limits.max_cpu_seconds),
        )
    if limits.max_file_descriptors is not None:
        resource.setrlimit(
            resource.RLIMIT_NOFILE,
            (limits.max_file_descriptors, limits.max_file_descriptors),
        )


class _OutputCollector:
    """Drains the child's stdout on a reader thread.

    An over-long line or too much output kills the child's process group;
    the resulting error is stored and re-raised on the calling thread.  The
    stream is closed by the reader thread once it stops reading.
    """

    def __init__(
        self,
        kill: Callable[[], None],
        stream: BinaryIO,
        reader: BoundedLineReader,
        max_output_bytes: int,
    ) -> None:
        self._kill = kill
        self._stream = stream
        self._reader = reader
        self._max_output_bytes = max_output_bytes
        self.lines: list[str] = []
        self.error: ExecutorFailure | None = None

    def run(self) -> None:
        total = 0
        try:
            while True:
                line = self._reader.read_line_bytes(self._stream)
                if line is None:
                    return
                total += len(line) + 1
                if total > self._max_output_bytes:
                    self._fail(OutputLimitExceeded(
                        f"Output exceeded {self._max_output_bytes} bytes",
                    ))
                    return
                self.lines.append(line.decode("utf-8", errors="replace"))
        except LineTooLong:
            self._fail(OutputLimitExceeded(
                f"Output line exceeded {self._reader.max_length} bytes",
            ))
        except (OSError, ValueError) as exc:
            self._fail(SpawnFailure(f"Reading process output failed: {exc}"))
        finally:
            self._stream.close()

    def _fail(self, error: ExecutorFailure) -> None:
        self.error = error
        self._kill()

    def text(self) -> str:
        return "".join(line + "\n" for line in self.lines)


class SandboxedExecutor:
    """Run external commands under a :class:`SandboxPolicy`.

    Usage::

        executor = SandboxedExecutor(engine, SandboxPolicy())
        result = executor.run("/usr/bin/echo", ["hello"], "/tmp", timeout=5)
        # result.exit_code == 0, result.output == "hello\\n"

    The executor holds no per-call state; one instance may be shared by
    many threads.  :meth:`execute` blocks the calling thread until the
    child exits or its deadline passes.
    """

    def __init__(
        self,
        engine: ValidationEngine,
        policy: SandboxPolicy | None = None,
    ) -> None:
        self._engine = engine
        self._policy = policy or SandboxPolicy()
        self._env_manager = EnvironmentManager(self._policy.environment)

    @property
    def policy(self) -> SandboxPolicy:
        return self._policy

    def run(
        self,
        executable: str | Path,
        arguments: Sequence[str] = (),
        working_directory: str | Path = ".",
        *,
        timeout: float | None = None,
        context: str = "execute",
    ) -> ExecutionResult:
        """Build an :class:`ExecutionRequest` and :meth:`execute` it."""
        request = ExecutionRequest(
            executable_path=os.fspath(executable),
            arguments=tuple(arguments),
            working_directory=Path(working_directory),
            timeout=timeout,
            context=context,
        )
        return self.execute(request)

    def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Verify *request*, run it and return its merged output.

        Raises
        ------
        ExecutorFailure
            One of its subclasses, for any verification, spawn, I/O,
            output-bound or timeout failure.
        """
        context = request.context
        try:
            executable = self._verify_executable(request.executable_path)
            arguments = self._verify_arguments(context, request.arguments)
            cwd = self._verify_working_directory(request.working_directory)
            env = self._env_manager.build_child_env()
            timeout = self._policy.clamp_timeout(request.timeout)

            logger.info(
                "launching process: context=%s executable=%s args=%d timeout=%.1fs",
                context,
                executable,
                len(arguments),
                timeout,
            )
            result = self._spawn_and_wait([executable, *arguments], cwd, env, timeout)
        except ExecutorFailure as exc:
            logger.warning(
                "execution failed: context=%s code=%s cause=%s",
                context,
                exc.code,
                exc.cause,
            )
            raise

        logger.info(
            "process finished: context=%s executable=%s exit_code=%d",
            context,
            executable,
            result.exit_code,
        )
        return result

    # -- verification -------------------------------------------------------

    def _verify_executable(self, raw: str) -> str:
        try:
            canonical = os.path.realpath(raw, strict=True)
        except OSError as exc:
            raise ExecutablePathInvalid(f"No such executable: {raw}") from exc
        if canonical != raw:
            raise ExecutablePathInvalid(
                f"Invalid path to executable file: {raw} (canonical form {canonical})",
            )
        if not os.path.isfile(canonical) or not os.access(canonical, os.X_OK):
            raise ExecutablePathInvalid(f"Not an executable file: {raw}")
        allowed = self._policy.allowed_executables
        if allowed and canonical not in allowed:
            raise ExecutablePathInvalid(f"Executable is not allowed by policy: {raw}")
        return canonical

    def _verify_arguments(self, context: str, arguments: Sequence[str]) -> list[str]:
        verified: list[str] = []
        for index, argument in enumerate(arguments):
            outcome = self._engine.validate_input(context, argument, ARGUMENT_RULE)
            if not isinstance(outcome, Accepted):
                raise ArgumentRejected(
                    f"Illegal characters in parameter {index}: {outcome.reason}",
                    details={
                        "index": index,
                        "intrusion": isinstance(outcome, IntrusionSuspected),
                    },
                )
            verified.append(outcome.value)
        return verified

    @staticmethod
    def _verify_working_directory(path: Path) -> str:
        if not path.is_dir():
            raise WorkingDirectoryMissing(f"No such working directory: {path}")
        return str(path)

    # -- process supervision ------------------------------------------------

    def _spawn_and_wait(
        self,
        argv: list[str],
        cwd: str,
        env: dict[str, str],
        timeout: float,
    ) -> ExecutionResult:
        posix = self._policy.is_posix
        preexec = None
        if posix:
            preexec = functools.partial(
                _preexec_fn,
                self._policy.disable_core_dumps,
                self._policy.resource_limits,
            )
        try:
            proc = subprocess.Popen(
                argv,
                cwd=cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                close_fds=True,
                preexec_fn=preexec,
                start_new_session=posix,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as exc:
            raise SpawnFailure(f"Failed to start {argv[0]}: {exc}") from exc

        collector = _OutputCollector(
            functools.partial(self._kill, proc),
            proc.stdout,
            BoundedLineReader(self._policy.max_line_length),
            self._policy.max_output_bytes,
        )
        reader = threading.Thread(
            target=collector.run, name="inputguard-output", daemon=True,
        )
        reader.start()
        try:
            try:
                exit_code = proc.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                self._terminate(proc)
                raise ExecutionTimeout(
                    f"Process exceeded timeout of {timeout}s",
                    details={"timeout_ms": int(timeout * 1000)},
                ) from None

            # Background processes left by the child still hold the pipe.
            self._kill(proc)
            reader.join(self._policy.graceful_shutdown_s)
            if reader.is_alive():
                raise SpawnFailure("Process output stream was not closed after exit")
            if collector.error is not None:
                raise collector.error
            return ExecutionResult(exit_code=exit_code, output=collector.text())
        finally:
            if proc.poll() is None:
                self._terminate(proc)
            self._kill(proc)
            reader.join(self._policy.graceful_shutdown_s)

    def _signal(self, proc: subprocess.Popen[bytes], sig: int) -> None:
        """Send *sig* to the child's whole process group on POSIX."""
        with contextlib.suppress(ProcessLookupError):
            if self._policy.is_posix:
                os.killpg(proc.pid, sig)
            elif proc.poll() is None:
                proc.send_signal(sig)

    def _kill(self, proc: subprocess.Popen[bytes]) -> None:
        self._signal(proc, signal.SIGKILL if self._policy.is_posix else signal.SIGTERM)

    def _terminate(self, proc: subprocess.Popen[bytes]) -> None:
        """Terminate the group, wait the grace period, then kill it."""
        self._signal(proc, signal.SIGTERM)
        with contextlib.suppress(subprocess.TimeoutExpired):
            proc.wait(timeout=self._policy.graceful_shutdown_s)
        self._kill(proc)
        proc.wait()
