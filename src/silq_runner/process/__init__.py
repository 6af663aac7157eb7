"""Compiler subprocess supervision and run tracking."""

from silq_runner.process.supervisor import (
    CompilerHandle,
    CompilerLauncher,
    CompilerMode,
    CompilerProcess,
    LaunchError,
    ProcessOutput,
    ProcessSupervisor,
    ToolInvocation,
    build_arguments,
)
from silq_runner.process.tracker import ExecutionTracker, RunSession, TrackerState

__all__ = [
    "CompilerHandle",
    "CompilerLauncher",
    "CompilerMode",
    "CompilerProcess",
    "ExecutionTracker",
    "LaunchError",
    "ProcessOutput",
    "ProcessSupervisor",
    "RunSession",
    "ToolInvocation",
    "TrackerState",
    "build_arguments",
]
