"""Session orchestration: editor collaborator protocols and the session controller."""

from silq_runner.session.controller import SessionController
from silq_runner.session.interfaces import (
    BinaryLocator,
    ConfigurationProvider,
    DiagnosticCollection,
    DiagnosticSink,
    Document,
    DocumentSource,
    MemoryOutputChannel,
    Notifier,
    OutputChannel,
    RecordingNotifier,
    StaticConfiguration,
    StaticDocumentSource,
)

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
    "SessionController",
    "StaticConfiguration",
    "StaticDocumentSource",
]
