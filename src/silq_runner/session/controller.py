"""Session controller; owns the diagnostic set and dispatches compiler requests.

File: src/silq_runner/session/controller.py

The controller:
1. Receives document lifecycle intents (open, save, close) and explicit run requests.
2. Decides check vs. run per document and launches the compiler.
3. Awaits each invocation as its own task and decodes the diagnostics payload.
4. Publishes diagnostics to the diagnostic sink and run output to the output channels.

Every request is stamped with a per-document generation; a completion is
published only if no newer request for the same document was issued since,
and run output only while its run session is still the tracked one.
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass
from typing import Any

import structlog

from silq_runner.constants import CANNOT_START_MESSAGE, LANGUAGE_ID, PREEMPTED_MESSAGE
from silq_runner.diagnostics.decoder import decode_diagnostics
from silq_runner.diagnostics.model import Diagnostic, DiagnosticSet
from silq_runner.locator import BundledBinaryLocator
from silq_runner.process.supervisor import (
    CompilerHandle,
    CompilerLauncher,
    CompilerMode,
    LaunchError,
    ProcessSupervisor,
    StdoutCallback,
    ToolInvocation,
)
from silq_runner.process.tracker import ExecutionTracker, RunSession
from silq_runner.session.interfaces import (
    BinaryLocator,
    ConfigurationProvider,
    DiagnosticSink,
    Document,
    DocumentSource,
    Notifier,
    OutputChannel,
)


@dataclass(frozen=True, slots=True)
class _Request:
    document: Document
    mode: CompilerMode
    generation: int


@dataclass(slots=True)
class _RunOutput:
    awaiting_first_chunk: bool = True


class SessionController:
    """Top-level dispatch and publication for one editor session."""

    def __init__(
        self,
        *,
        documents: DocumentSource,
        diagnostic_sink: DiagnosticSink,
        live_output: OutputChannel,
        history_output: OutputChannel,
        notifier: Notifier,
        config: ConfigurationProvider,
        locator: BinaryLocator | None = None,
        launcher: CompilerLauncher | None = None,
        tracker: ExecutionTracker | None = None,
        logger: Any | None = None,
    ) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._documents = documents
        self._sink = diagnostic_sink
        self._live = live_output
        self._history = history_output
        self._notifier = notifier
        self._config = config
        self._locator = locator if locator is not None else BundledBinaryLocator()
        self._launcher = launcher if launcher is not None else ProcessSupervisor(logger=self._logger)
        self._tracker = tracker if tracker is not None else ExecutionTracker(logger=self._logger)
        self._diagnostics = DiagnosticSet()
        self._latest_request: dict[str, int] = {}
        self._request_counter = 0
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def diagnostics(self) -> DiagnosticSet:
        return self._diagnostics

    @property
    def tracker(self) -> ExecutionTracker:
        return self._tracker

    @property
    def pending(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    async def activate(self) -> None:
        """Type check every open document."""
        await self.check_all()

    async def handle_open(self, document: Document) -> None:
        await self.check_all(document)

    async def handle_save(self, document: Document) -> None:
        await self.check_all(document)

    async def handle_close(self, document: Document) -> None:
        self._diagnostics.remove(document.document_id)
        self._latest_request.pop(document.document_id, None)
        self._sink.clear(document.document_id)
        self._logger.debug("document_closed", document_id=document.document_id)

    async def run_active(self) -> asyncio.Task[None] | None:
        """Intent: explicit run command on the active document.

        A document with unsaved changes is saved instead; the resulting save
        event triggers the run when auto-run is enabled.
        """
        document = self._documents.active_document()
        if document is None:
            return None
        if document.is_dirty:
            self._documents.save(document)
            return None
        return await self.run(document)

    async def check_all(self, changed: Document | None = None) -> None:
        """Check every open document; run ``changed`` instead when auto-run is on."""
        auto_run = bool(self._config.auto_run)
        for document in list(self._documents.open_documents()):
            if (
                changed is not None
                and auto_run
                and document.document_id == changed.document_id
            ):
                await self.run(document)
            else:
                await self.check(document)

    async def check(self, document: Document) -> asyncio.Task[None] | None:
        if document.language_id != LANGUAGE_ID:
            return None
        return await self.perform(document, CompilerMode.CHECK)

    async def run(self, document: Document) -> asyncio.Task[None] | None:
        if document.language_id != LANGUAGE_ID:
            return None
        return await self.perform(document, CompilerMode.RUN)

    async def perform(self, document: Document, mode: CompilerMode) -> asyncio.Task[None] | None:
        """Launch the compiler for ``document`` and schedule publication of its results."""
        executable = self._resolve_executable()
        if not executable:
            self._report_cannot_start(document, mode, reason="compiler binary not found")
            return None

        request, previous = self._stamp(document, mode)
        session: RunSession | None = None
        if mode is CompilerMode.RUN:
            preempting = self._tracker.current is not None
            session = self._tracker.begin(document.document_id)
            if preempting:
                self._notifier.info(PREEMPTED_MESSAGE)
            self._live.clear()
            self._live.append_line(f"running {document.file_name}...")

        invocation = ToolInvocation(executable=executable, file_path=document.file_path, mode=mode)
        try:
            process = await self._launcher.launch(invocation)
        except LaunchError as exc:
            if session is not None:
                self._tracker.abandon(session)
            self._unstamp(request, previous)
            self._report_cannot_start(document, mode, reason=exc.reason)
            return None

        if session is not None and not self._tracker.attach(session, process):
            self._unstamp(request, previous)
            return None

        task = asyncio.create_task(self._complete(request, process, session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait until every in-flight invocation has been published or discarded."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Kill the tracked run, wait for outstanding work, and clear all diagnostics."""
        self._tracker.terminate_current()
        await self.drain()
        self.dispose()

    def dispose(self) -> None:
        for document_id in self._diagnostics.document_ids():
            self._sink.clear(document_id)
        self._diagnostics.clear()
        self._latest_request.clear()

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _complete(
        self,
        request: _Request,
        process: CompilerHandle,
        session: RunSession | None,
    ) -> None:
        run_output = _RunOutput()
        on_stdout: StdoutCallback | None = None
        if session is not None:
            on_stdout = functools.partial(self._stream_stdout, session, run_output)

        document = request.document
        try:
            output = await process.wait_for_output(on_stdout)
            diagnostics = decode_diagnostics(
                output.diagnostics_payload, document.document_id, logger=self._logger
            )

            superseded_run = session is not None and not self._tracker.is_current(session)
            if superseded_run or not self._is_latest(request):
                self._logger.info(
                    "stale_completion_discarded",
                    document_id=document.document_id,
                    mode=request.mode.value,
                    generation=request.generation,
                    diagnostics=len(diagnostics),
                )
            else:
                self._publish_diagnostics(document, diagnostics)

            if session is not None and not superseded_run:
                self._publish_run_result(document, diagnostics, run_output)
        except Exception:
            self._logger.exception(
                "compiler_output_failed",
                document_id=document.document_id,
                mode=request.mode.value,
            )
        finally:
            if session is not None:
                self._tracker.finish(session)

    def _stream_stdout(self, session: RunSession, run_output: _RunOutput, chunk: str) -> None:
        if not self._tracker.is_current(session):
            return
        if run_output.awaiting_first_chunk:
            self._live.clear()
            run_output.awaiting_first_chunk = False
        self._live.append(chunk)
        self._history.append(chunk)
        self._live.show(preserve_focus=True)

    def _publish_diagnostics(self, document: Document, diagnostics: tuple[Diagnostic, ...]) -> None:
        batch = self._diagnostics.replace(document.document_id, diagnostics)
        self._sink.set(document.document_id, batch)
        self._logger.info(
            "diagnostics_published",
            document_id=document.document_id,
            count=len(batch),
        )

    def _publish_run_result(
        self,
        document: Document,
        diagnostics: tuple[Diagnostic, ...],
        run_output: _RunOutput,
    ) -> None:
        if run_output.awaiting_first_chunk:
            self._live.clear()
            run_output.awaiting_first_chunk = False
        else:
            self._live.append_line("\n")

        if not diagnostics:
            self._live.append_line(f"Result for {document.file_name}")
            self._live.show(preserve_focus=True)
        else:
            self._live.clear()
            self._live.append_line(f'Errors in {document.file_name} (see "problems" window)')

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_executable(self) -> str | None:
        configured = self._config.binary_path
        if configured:
            return configured
        return self._locator.locate()

    def _stamp(self, document: Document, mode: CompilerMode) -> tuple[_Request, int | None]:
        self._request_counter += 1
        previous = self._latest_request.get(document.document_id)
        self._latest_request[document.document_id] = self._request_counter
        request = _Request(document=document, mode=mode, generation=self._request_counter)
        return request, previous

    def _unstamp(self, request: _Request, previous: int | None) -> None:
        """Hand the document back to the request that was latest before ``request``."""
        document_id = request.document.document_id
        if self._latest_request.get(document_id) != request.generation:
            return
        if previous is None:
            self._latest_request.pop(document_id, None)
        else:
            self._latest_request[document_id] = previous

    def _is_latest(self, request: _Request) -> bool:
        return self._latest_request.get(request.document.document_id) == request.generation

    def _report_cannot_start(self, document: Document, mode: CompilerMode, *, reason: str) -> None:
        self._logger.warning(
            "compiler_cannot_start",
            document_id=document.document_id,
            mode=mode.value,
            reason=reason,
        )
        self._notifier.error(CANNOT_START_MESSAGE)


__all__ = ["SessionController"]
