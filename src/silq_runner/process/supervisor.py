"""
Compiler subprocess supervisor.

Builds the compiler argument list, spawns the compiler with asyncio, and turns
its two output streams into a single completion value: the accumulated
diagnostics payload from stderr plus, in run mode, the program output from
stdout (also streamed chunk by chunk to a callback while it arrives).

Nothing is buffered to disk. The exit code is recorded but never interpreted;
only stream completion matters.
"""

from __future__ import annotations

import asyncio
import codecs
import os
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog

from silq_runner.constants import ERROR_JSON_FLAG, RUN_FLAG

_READ_CHUNK_BYTES = 4096

StdoutCallback = Callable[[str], None]


class CompilerMode(StrEnum):
    """Check only type-checks; run type-checks and executes the program."""

    CHECK = "check"
    RUN = "run"


def build_arguments(file_path: str, mode: CompilerMode) -> tuple[str, ...]:
    """Compiler arguments: ``--error-json <file> [--run]``."""

    arguments = [ERROR_JSON_FLAG, file_path]
    if mode is CompilerMode.RUN:
        arguments.append(RUN_FLAG)
    return tuple(arguments)


@dataclass(frozen=True, slots=True)
class ToolInvocation:
    """One compiler invocation against one source file."""

    executable: str
    file_path: str
    mode: CompilerMode = CompilerMode.CHECK

    @property
    def argv(self) -> tuple[str, ...]:
        return (self.executable, *build_arguments(self.file_path, self.mode))

    @property
    def cwd(self) -> str:
        return str(Path(self.file_path).parent)


class LaunchError(RuntimeError):
    """The compiler could not be started (missing executable, spawn failure, no pid)."""

    def __init__(self, invocation: ToolInvocation, reason: str) -> None:
        super().__init__(f"cannot start {invocation.executable!r}: {reason}")
        self.invocation = invocation
        self.reason = reason


@dataclass(frozen=True, slots=True)
class ProcessOutput:
    diagnostics_payload: str
    stdout_text: str = ""
    exit_code: int | None = None


@runtime_checkable
class CompilerHandle(Protocol):
    """A launched compiler process."""

    @property
    def invocation(self) -> ToolInvocation: ...

    @property
    def pid(self) -> int | None: ...

    async def wait_for_output(self, on_stdout: StdoutCallback | None = None) -> ProcessOutput: ...

    def terminate(self) -> None: ...


@runtime_checkable
class CompilerLauncher(Protocol):
    """Pluggable launch interface used by the session controller."""

    async def launch(self, invocation: ToolInvocation) -> CompilerHandle: ...


class CompilerProcess(CompilerHandle):
    """Wraps an ``asyncio.subprocess.Process`` started by :class:`ProcessSupervisor`."""

    def __init__(self, process: asyncio.subprocess.Process, invocation: ToolInvocation) -> None:
        self._process = process
        self._invocation = invocation
        self._terminated = False

    @property
    def invocation(self) -> ToolInvocation:
        return self._invocation

    @property
    def pid(self) -> int | None:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def terminated(self) -> bool:
        return self._terminated

    async def wait_for_output(self, on_stdout: StdoutCallback | None = None) -> ProcessOutput:
        """Drain stderr (and stdout in run mode) to end-of-stream, then reap the process."""

        stderr = self._process.stderr
        if stderr is None:
            raise RuntimeError("compiler stderr is not captured")

        stdout = self._process.stdout
        try:
            if stdout is not None:
                payload, stdout_text = await asyncio.gather(
                    _drain(stderr), _drain(stdout, on_chunk=on_stdout)
                )
            else:
                payload = await _drain(stderr)
                stdout_text = ""
            exit_code = await self._process.wait()
        except asyncio.CancelledError:
            self.terminate()
            with suppress(ProcessLookupError):
                await self._process.wait()
            raise

        return ProcessOutput(
            diagnostics_payload=payload,
            stdout_text=stdout_text,
            exit_code=exit_code,
        )

    def terminate(self) -> None:
        """Kill the compiler without waiting for its streams to drain."""

        self._terminated = True
        if self._process.returncode is not None:
            return
        with suppress(ProcessLookupError):
            self._process.kill()


class ProcessSupervisor(CompilerLauncher):
    """Spawns compiler processes with the stream wiring each mode needs."""

    def __init__(
        self,
        *,
        env: dict[str, str] | None = None,
        logger: Any | None = None,
    ) -> None:
        self._env = env
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def launch(self, invocation: ToolInvocation) -> CompilerProcess:
        try:
            process = await asyncio.create_subprocess_exec(
                *invocation.argv,
                cwd=invocation.cwd,
                env=self._build_env(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=(
                    asyncio.subprocess.PIPE
                    if invocation.mode is CompilerMode.RUN
                    else asyncio.subprocess.DEVNULL
                ),
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            self._logger.warning(
                "compiler_launch_failed",
                executable=invocation.executable,
                file_path=invocation.file_path,
                mode=invocation.mode.value,
                error=str(exc),
            )
            raise LaunchError(invocation, str(exc)) from exc

        if not process.pid:
            raise LaunchError(invocation, "process has no pid")

        self._logger.info(
            "compiler_launched",
            pid=process.pid,
            argv=list(invocation.argv),
            cwd=invocation.cwd,
            mode=invocation.mode.value,
        )
        return CompilerProcess(process, invocation)

    def _build_env(self) -> dict[str, str] | None:
        if self._env is None:
            return None
        env = dict(os.environ)
        env.update(self._env)
        return env


async def _drain(
    stream: asyncio.StreamReader,
    *,
    on_chunk: StdoutCallback | None = None,
) -> str:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    parts: list[str] = []
    while True:
        raw = await stream.read(_READ_CHUNK_BYTES)
        text = decoder.decode(raw, final=not raw)
        if text:
            parts.append(text)
            if on_chunk is not None:
                on_chunk(text)
        if not raw:
            break
    return "".join(parts)


__all__ = [
    "CompilerHandle",
    "CompilerLauncher",
    "CompilerMode",
    "CompilerProcess",
    "LaunchError",
    "ProcessOutput",
    "ProcessSupervisor",
    "StdoutCallback",
    "ToolInvocation",
    "build_arguments",
]
