"""Command-line interface router for silq-runner."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from silq_runner import __version__
from silq_runner.config import (
    ConfigLoadError,
    ConfigValidationError,
    RunnerSettings,
    dump_effective_config,
    load_config,
)
from silq_runner.constants import HISTORY_CHANNEL_NAME, LANGUAGE_ID, LIVE_CHANNEL_NAME
from silq_runner.diagnostics.model import Diagnostic, Severity
from silq_runner.main import ExitCode
from silq_runner.observability import LoggingConfig, setup_logging, shutdown_logging
from silq_runner.session import (
    DiagnosticCollection,
    DiagnosticSink,
    Document,
    MemoryOutputChannel,
    Notifier,
    OutputChannel,
    SessionController,
    StaticDocumentSource,
)
from silq_runner.ui.render import (
    CLIRenderer,
    ConsoleDiagnosticSink,
    ConsoleNotifier,
    ConsoleOutputChannel,
    create_renderer,
)

DEFAULT_WATCH_INTERVAL_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = int(ExitCode.INTERNAL_ERROR)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="silq-runner",
        description=(
            "Type check and run Silq programs with editor-style diagnostics.\n\n"
            "Common workflows:\n"
            "  silq-runner check prog.slq      Report diagnostics for a file\n"
            "  silq-runner run prog.slq        Run a program and show its output\n"
            "  silq-runner watch *.slq         Re-check files whenever they change\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a silq.toml config file (default: ./silq.toml if present).",
    )
    common.add_argument(
        "--binary",
        default=None,
        help="Path to the silq compiler (overrides silq.binary_path).",
    )
    common.add_argument(
        "--json", action="store_true", default=False, help="Emit JSON instead of text."
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Log debug events to stderr.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Type check files and print their diagnostics",
    )
    check_parser.add_argument("files", nargs="+", help="Silq source files")
    check_parser.set_defaults(handler=_cmd_check)

    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Run a program and print its output",
    )
    run_parser.add_argument("file", help="Silq source file")
    run_parser.set_defaults(handler=_cmd_run)

    watch_parser = subparsers.add_parser(
        "watch",
        parents=[common],
        help="Re-check files whenever they are modified",
        description=(
            "Poll files for modification and treat each change as a save.\n"
            "With --auto-run the changed file is run instead of checked."
        ),
    )
    watch_parser.add_argument("files", nargs="+", help="Silq source files")
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_WATCH_INTERVAL_SECONDS,
        help=f"Polling interval in seconds (default: {DEFAULT_WATCH_INTERVAL_SECONDS}).",
    )
    watch_parser.add_argument(
        "--auto-run",
        action="store_true",
        default=False,
        help="Run a file when it changes (overrides silq.auto_run).",
    )
    watch_parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Stop after this many polling cycles.",
    )
    watch_parser.set_defaults(handler=_cmd_watch)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Print the effective configuration as JSON",
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return the process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    renderer = create_renderer(no_color=namespace.no_color, verbose=namespace.verbose)
    try:
        return int(handler(namespace, renderer))
    except CLIError as exc:
        renderer.error(str(exc))
        return exc.exit_code
    finally:
        shutdown_logging()


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_check(args: argparse.Namespace, renderer: CLIRenderer) -> int:
    settings = _prepare(args)
    documents = _documents(args.files)
    sink = DiagnosticCollection()
    notifier = ConsoleNotifier(renderer)
    controller = _controller(
        settings,
        documents=documents,
        sink=sink,
        notifier=notifier,
        live=MemoryOutputChannel(LIVE_CHANNEL_NAME),
    )

    async def _check_all() -> None:
        for document in documents:
            await controller.check(document)
        await controller.drain()

    asyncio.run(_check_all())

    results = {document.document_id: sink.get(document.document_id) for document in documents}
    skipped = [document for document in documents if document.language_id != LANGUAGE_ID]
    if args.json:
        renderer.json(
            {
                "documents": [
                    {
                        "document_id": document.document_id,
                        "skipped": document in skipped,
                        "diagnostics": [d.to_dict() for d in results[document.document_id]],
                    }
                    for document in documents
                ],
                "errors": list(notifier.errors),
            }
        )
    else:
        for document in skipped:
            renderer.warning(f"{document.file_path}: not a Silq source file, skipped")
        for document in documents:
            renderer.diagnostics(document.file_path, results[document.document_id])
        renderer.summary(_count_severities(results.values()))

    return _exit_code(notifier, results.values())


def _cmd_run(args: argparse.Namespace, renderer: CLIRenderer) -> int:
    settings = _prepare(args)
    (document,) = _documents([args.file])
    if document.language_id != LANGUAGE_ID:
        raise CLIError(
            f"{document.file_path}: not a Silq source file",
            exit_code=int(ExitCode.CONFIG_ERROR),
        )

    sink = DiagnosticCollection()
    notifier = ConsoleNotifier(renderer)
    memory_live = MemoryOutputChannel(LIVE_CHANNEL_NAME)
    live: OutputChannel = memory_live
    if not args.json:
        live = ConsoleOutputChannel(LIVE_CHANNEL_NAME, renderer)
    history = MemoryOutputChannel(HISTORY_CHANNEL_NAME)
    controller = _controller(
        settings,
        documents=[document],
        sink=sink,
        notifier=notifier,
        live=live,
        history=history,
    )

    async def _run() -> None:
        await controller.run(document)
        await controller.drain()

    asyncio.run(_run())

    diagnostics = sink.get(document.document_id)
    if args.json:
        renderer.json(
            {
                "document_id": document.document_id,
                "output": history.text,
                "live": memory_live.text,
                "diagnostics": [d.to_dict() for d in diagnostics],
                "errors": list(notifier.errors),
            }
        )
    else:
        renderer.diagnostics(document.file_path, diagnostics)

    return _exit_code(notifier, [diagnostics])


def _cmd_watch(args: argparse.Namespace, renderer: CLIRenderer) -> int:
    overrides: dict[str, object] = {}
    if args.auto_run:
        overrides["silq.auto_run"] = True
    settings = _prepare(args, extra_overrides=overrides)
    if args.interval <= 0:
        raise CLIError("--interval must be > 0", exit_code=int(ExitCode.CONFIG_ERROR))

    documents = _documents(args.files)
    source = StaticDocumentSource(documents)
    sink = ConsoleDiagnosticSink(
        renderer, {document.document_id: document.file_path for document in documents}
    )
    notifier = ConsoleNotifier(renderer)
    controller = _controller(
        settings,
        documents=source,
        sink=sink,
        notifier=notifier,
        live=ConsoleOutputChannel(LIVE_CHANNEL_NAME, renderer),
    )

    try:
        asyncio.run(
            _watch(controller, source, documents, interval=args.interval, max_cycles=args.max_cycles)
        )
    except KeyboardInterrupt:
        renderer.info("stopped")
    return _exit_code(notifier, [])


async def _watch(
    controller: SessionController,
    source: StaticDocumentSource,
    documents: Sequence[Document],
    *,
    interval: float,
    max_cycles: int | None,
) -> None:
    mtimes = {document.document_id: _mtime(document) for document in documents}
    by_id = {document.document_id: document for document in documents}
    try:
        await controller.activate()
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            await asyncio.sleep(interval)
            cycles += 1
            for document_id in sorted(mtimes):
                current = _mtime(by_id[document_id])
                if current == mtimes[document_id]:
                    continue
                mtimes[document_id] = current
                document = by_id[document_id]
                if current is None:
                    source.close(document_id)
                    await controller.handle_close(document)
                elif document_id not in {doc.document_id for doc in source.open_documents()}:
                    source.open(document, activate=False)
                    await controller.handle_open(document)
                else:
                    await controller.handle_save(document)
        await controller.drain()
    finally:
        await controller.shutdown()


def _cmd_config(args: argparse.Namespace, renderer: CLIRenderer) -> int:
    config = _load_config(args)
    renderer.text(dump_effective_config(config))
    return int(ExitCode.SUCCESS)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_config(
    args: argparse.Namespace, extra_overrides: Mapping[str, object] | None = None
) -> dict[str, Any]:
    overrides: dict[str, object] = dict(extra_overrides or {})
    if args.binary:
        overrides["silq.binary_path"] = str(Path(args.binary).expanduser().absolute())
    try:
        return load_config(args.config_path, cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc


def _prepare(
    args: argparse.Namespace, extra_overrides: Mapping[str, object] | None = None
) -> RunnerSettings:
    config = _load_config(args, extra_overrides)
    logging_config = LoggingConfig.from_observability(config["observability"])
    if args.verbose:
        logging_config = LoggingConfig(
            level="DEBUG",
            log_dir=logging_config.log_dir,
            log_to_stderr=True,
        )
    setup_logging(logging_config)
    return RunnerSettings.from_config(config)


def _documents(paths: Sequence[str]) -> list[Document]:
    documents: list[Document] = []
    seen: set[str] = set()
    for raw in paths:
        path = Path(raw)
        if not path.is_file():
            raise CLIError(f"file not found: {raw}", exit_code=int(ExitCode.CONFIG_ERROR))
        document = Document.from_path(path)
        if document.document_id in seen:
            continue
        seen.add(document.document_id)
        documents.append(document)
    return documents


def _controller(
    settings: RunnerSettings,
    *,
    documents: Sequence[Document] | StaticDocumentSource,
    sink: DiagnosticSink,
    notifier: Notifier,
    live: OutputChannel,
    history: OutputChannel | None = None,
) -> SessionController:
    source = documents if isinstance(documents, StaticDocumentSource) else None
    if source is None:
        source = StaticDocumentSource(documents)
    return SessionController(
        documents=source,
        diagnostic_sink=sink,
        live_output=live,
        history_output=history or MemoryOutputChannel(HISTORY_CHANNEL_NAME),
        notifier=notifier,
        config=settings,
        locator=settings.locator(),
    )


def _mtime(document: Document) -> int | None:
    try:
        return Path(document.file_path).stat().st_mtime_ns
    except FileNotFoundError:
        return None


def _count_severities(batches: Iterable[Sequence[Diagnostic]]) -> dict[Severity, int]:
    counts: dict[Severity, int] = {}
    for batch in batches:
        for diagnostic in batch:
            counts[diagnostic.severity] = counts.get(diagnostic.severity, 0) + 1
    return counts


def _exit_code(notifier: ConsoleNotifier, batches: Iterable[Sequence[Diagnostic]]) -> int:
    if notifier.errors:
        return int(ExitCode.COMPILER_UNAVAILABLE)
    for batch in batches:
        if any(diagnostic.severity is Severity.ERROR for diagnostic in batch):
            return int(ExitCode.DIAGNOSTICS_ERROR)
    return int(ExitCode.SUCCESS)


__all__ = ["CLIError", "build_parser", "run_cli"]
