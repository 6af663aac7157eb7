"""Terminal rendering for the silq-runner command line.

File: src/silq_runner/ui/render.py

Respects the ``NO_COLOR`` environment variable and the ``--no-color`` flag.
Diagnostics are printed compiler-style with 1-based lines and columns.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping, Sequence

from rich.console import Console
from rich.text import Text

from silq_runner.diagnostics.model import Diagnostic, Severity
from silq_runner.session.interfaces import DiagnosticCollection, OutputChannel

_SEVERITY_STYLES: dict[Severity, str] = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "yellow",
    Severity.HINT: "cyan",
}


def _color_allowed(no_color_flag: bool) -> bool:
    if no_color_flag:
        return False
    return not os.environ.get("NO_COLOR", "")


class CLIRenderer:
    """Thin wrapper over a stdout and a stderr ``rich`` console."""

    def __init__(self, *, no_color: bool = False, verbose: bool = False) -> None:
        self.verbose = verbose
        color = _color_allowed(no_color)
        self._out = Console(no_color=not color, highlight=False, soft_wrap=True)
        self._err = Console(stderr=True, no_color=not color, highlight=False, soft_wrap=True)

    def text(self, line: str, *, style: str | None = None) -> None:
        self._out.print(Text(line, style=style or ""))

    def raw(self, chunk: str) -> None:
        """Write program output exactly as received."""

        self._out.print(Text(chunk), end="")

    def warning(self, message: str) -> None:
        self._err.print(Text(f"warning: {message}", style="yellow"))

    def error(self, message: str) -> None:
        self._err.print(Text(f"error: {message}", style="bold red"))

    def info(self, message: str) -> None:
        self._err.print(Text(message))

    def json(self, payload: object) -> None:
        self._out.print(Text(json.dumps(payload, sort_keys=True, indent=2, ensure_ascii=False)))

    def diagnostics(self, file_path: str, diagnostics: Sequence[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self._out.print(format_diagnostic(file_path, diagnostic))
            for related in diagnostic.related:
                start = related.location.range.start
                self._out.print(
                    Text.assemble(
                        "    ",
                        (f"{file_path}:{start.line + 1}:{start.column + 1}", "dim"),
                        ": note: ",
                        related.message,
                    )
                )

    def summary(self, counts: Mapping[Severity, int]) -> None:
        parts = [f"{counts.get(severity, 0)} {severity.value}(s)" for severity in Severity]
        self._out.print(Text(", ".join(parts), style="bold"))


def format_diagnostic(file_path: str, diagnostic: Diagnostic) -> Text:
    """``path:line:col: severity: message`` with 1-based line and column."""

    start = diagnostic.range.start
    return Text.assemble(
        (f"{file_path}:{start.line + 1}:{start.column + 1}", "bold"),
        ": ",
        (diagnostic.severity.value, _SEVERITY_STYLES[diagnostic.severity]),
        ": ",
        diagnostic.message,
    )


class ConsoleOutputChannel(OutputChannel):
    """Output channel that writes straight to the terminal.

    A terminal cannot be cleared retroactively, so ``clear`` and ``show`` are no-ops.
    """

    def __init__(self, name: str, renderer: CLIRenderer) -> None:
        self._name = name
        self._renderer = renderer

    @property
    def name(self) -> str:
        return self._name

    def append(self, text: str) -> None:
        self._renderer.raw(text)

    def append_line(self, text: str) -> None:
        self._renderer.raw(f"{text}\n")

    def clear(self) -> None:
        return None

    def show(self, *, preserve_focus: bool = True) -> None:
        return None


class ConsoleDiagnosticSink(DiagnosticCollection):
    """Diagnostic collection that also prints each published batch."""

    def __init__(self, renderer: CLIRenderer, file_paths: Mapping[str, str]) -> None:
        super().__init__()
        self._renderer = renderer
        self._file_paths = dict(file_paths)

    def set(self, document_id: str, diagnostics: tuple[Diagnostic, ...]) -> None:
        super().set(document_id, diagnostics)
        file_path = self._file_paths.get(document_id, document_id)
        if diagnostics:
            self._renderer.diagnostics(file_path, diagnostics)
        else:
            self._renderer.text(f"{file_path}: no problems", style="green")


class ConsoleNotifier:
    """Notifier printing to stderr and remembering errors for the exit code."""

    def __init__(self, renderer: CLIRenderer) -> None:
        self._renderer = renderer
        self.errors: list[str] = []

    def info(self, message: str) -> None:
        self._renderer.info(message)

    def error(self, message: str) -> None:
        self.errors.append(message)
        self._renderer.error(message)


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = [
    "CLIRenderer",
    "ConsoleDiagnosticSink",
    "ConsoleNotifier",
    "ConsoleOutputChannel",
    "create_renderer",
    "format_diagnostic",
]
