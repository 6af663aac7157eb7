"""Editor-side collaborators consumed by the session controller; no editor imports.

The controller never touches an editor API directly. Documents, diagnostics
display, output panes, user notifications, configuration and binary lookup
all come in through the protocols below. The in-memory implementations back
the command-line harness and the tests.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Protocol, runtime_checkable

from silq_runner.constants import LANGUAGE_ID, SOURCE_SUFFIXES
from silq_runner.diagnostics.model import Diagnostic

# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Document:
    """An open document as seen by the controller."""

    document_id: str
    file_path: str
    language_id: str = LANGUAGE_ID
    is_dirty: bool = False

    @classmethod
    def from_path(cls, path: str | Path, *, is_dirty: bool = False) -> Document:
        resolved = Path(path).expanduser().resolve()
        suffix = resolved.suffix
        language = LANGUAGE_ID if suffix in SOURCE_SUFFIXES else suffix.lstrip(".")
        return cls(
            document_id=resolved.as_posix(),
            file_path=str(resolved),
            language_id=language,
            is_dirty=is_dirty,
        )

    @property
    def file_name(self) -> str:
        return self.file_path


@runtime_checkable
class DocumentSource(Protocol):
    def open_documents(self) -> Iterable[Document]: ...

    def active_document(self) -> Document | None: ...

    def save(self, document: Document) -> None:
        """Request a save; the source reports completion as a save event."""


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


@runtime_checkable
class DiagnosticSink(Protocol):
    def set(self, document_id: str, diagnostics: tuple[Diagnostic, ...]) -> None: ...

    def clear(self, document_id: str) -> None: ...


@runtime_checkable
class OutputChannel(Protocol):
    @property
    def name(self) -> str: ...

    def append(self, text: str) -> None: ...

    def append_line(self, text: str) -> None: ...

    def clear(self) -> None: ...

    def show(self, *, preserve_focus: bool = True) -> None: ...


@runtime_checkable
class Notifier(Protocol):
    def info(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


# ---------------------------------------------------------------------------
# Configuration and binary lookup
# ---------------------------------------------------------------------------


@runtime_checkable
class ConfigurationProvider(Protocol):
    @property
    def auto_run(self) -> bool: ...

    @property
    def binary_path(self) -> str | None: ...


@runtime_checkable
class BinaryLocator(Protocol):
    def locate(self) -> str | None: ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------


class DiagnosticCollection(DiagnosticSink):
    """Diagnostic sink that keeps the last published batch per document."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[Diagnostic, ...]] = {}
        self.history: list[tuple[str, tuple[Diagnostic, ...] | None]] = []

    def set(self, document_id: str, diagnostics: tuple[Diagnostic, ...]) -> None:
        self._entries[document_id] = tuple(diagnostics)
        self.history.append((document_id, self._entries[document_id]))

    def clear(self, document_id: str) -> None:
        self._entries.pop(document_id, None)
        self.history.append((document_id, None))

    def get(self, document_id: str) -> tuple[Diagnostic, ...]:
        return self._entries.get(document_id, ())

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._entries

    def snapshot(self) -> Mapping[str, tuple[Diagnostic, ...]]:
        return MappingProxyType(dict(self._entries))


class MemoryOutputChannel(OutputChannel):
    """Output channel holding its current text in memory."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._parts: list[str] = []
        self.shown = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def append(self, text: str) -> None:
        self._parts.append(text)

    def append_line(self, text: str) -> None:
        self._parts.append(f"{text}\n")

    def clear(self) -> None:
        self._parts.clear()

    def show(self, *, preserve_focus: bool = True) -> None:
        self.shown += 1


@dataclass
class RecordingNotifier:
    infos: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def info(self, message: str) -> None:
        self.infos.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class StaticDocumentSource(DocumentSource):
    """Fixed set of open documents; ``save`` marks the document clean."""

    def __init__(self, documents: Iterable[Document] = (), *, active: str | None = None) -> None:
        self._documents: dict[str, Document] = {doc.document_id: doc for doc in documents}
        self._active = active
        self.saved: list[str] = []

    def open_documents(self) -> tuple[Document, ...]:
        return tuple(self._documents.values())

    def active_document(self) -> Document | None:
        if self._active is None:
            return None
        return self._documents.get(self._active)

    def open(self, document: Document, *, activate: bool = True) -> None:
        self._documents[document.document_id] = document
        if activate:
            self._active = document.document_id

    def close(self, document_id: str) -> Document | None:
        if self._active == document_id:
            self._active = None
        return self._documents.pop(document_id, None)

    def save(self, document: Document) -> None:
        self.saved.append(document.document_id)
        self._documents[document.document_id] = Document(
            document_id=document.document_id,
            file_path=document.file_path,
            language_id=document.language_id,
            is_dirty=False,
        )


@dataclass(frozen=True, slots=True)
class StaticConfiguration:
    auto_run: bool = False
    binary_path: str | None = None


__all__ = [
    "BinaryLocator",
    "ConfigurationProvider",
    "DiagnosticCollection",
    "DiagnosticSink",
    "Document",
    "DocumentSource",
    "MemoryOutputChannel",
    "Notifier",
    "OutputChannel",
    "RecordingNotifier",
    "StaticConfiguration",
    "StaticDocumentSource",
]
