"""
Diagnostic value types and the per-document diagnostic set.

Positions are stored 0-based in lines and verbatim in columns; translation from
the compiler's 1-based lines happens in the decoder. Ranges are not checked for
``start <= end``: the compiler output is trusted as-is.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType
from typing import NoReturn
from urllib.parse import unquote, urlparse

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


class Severity(StrEnum):
    """Diagnostic severity as rendered by the editor."""

    ERROR = "error"
    WARNING = "warning"
    HINT = "hint"

    @classmethod
    def from_tag(cls, tag: object) -> Severity:
        """Map a compiler severity tag; unknown or missing tags become warnings."""

        if tag == "error":
            return cls.ERROR
        if tag == "note":
            return cls.HINT
        return cls.WARNING


@dataclass(frozen=True, slots=True)
class Position:
    line: int
    column: int

    def __post_init__(self) -> None:
        _require_non_negative(self.line, "Position.line")
        _require_non_negative(self.column, "Position.column")

    def to_dict(self) -> dict[str, JSONValue]:
        return {"line": self.line, "column": self.column}


@dataclass(frozen=True, slots=True)
class Range:
    start: Position
    end: Position

    @classmethod
    def of(cls, start_line: int, start_column: int, end_line: int, end_column: int) -> Range:
        return cls(Position(start_line, start_column), Position(end_line, end_column))

    def to_dict(self) -> dict[str, JSONValue]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}


@dataclass(frozen=True, slots=True)
class Location:
    document_id: str
    range: Range

    def to_dict(self) -> dict[str, JSONValue]:
        return {"document_id": self.document_id, "range": self.range.to_dict()}


@dataclass(frozen=True, slots=True)
class RelatedInfo:
    """Secondary location elaborating on a primary diagnostic."""

    location: Location
    message: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"location": self.location.to_dict(), "message": self.message}


@dataclass(frozen=True, slots=True)
class Diagnostic:
    range: Range
    message: str
    severity: Severity = Severity.WARNING
    related: tuple[RelatedInfo, ...] = ()

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "range": self.range.to_dict(),
            "message": self.message,
            "severity": self.severity.value,
            "related": [item.to_dict() for item in self.related],
        }


@dataclass(slots=True)
class DiagnosticSet:
    """Diagnostics keyed by document identity; entries are replaced, never merged."""

    _entries: dict[str, tuple[Diagnostic, ...]] = field(default_factory=dict)

    def replace(self, document_id: str, diagnostics: Iterable[Diagnostic]) -> tuple[Diagnostic, ...]:
        batch = tuple(diagnostics)
        self._entries[document_id] = batch
        return batch

    def remove(self, document_id: str) -> bool:
        return self._entries.pop(document_id, None) is not None

    def get(self, document_id: str) -> tuple[Diagnostic, ...]:
        return self._entries.get(document_id, ())

    def clear(self) -> None:
        self._entries.clear()

    def document_ids(self) -> tuple[str, ...]:
        return tuple(sorted(self._entries))

    def snapshot(self) -> Mapping[str, tuple[Diagnostic, ...]]:
        return MappingProxyType(dict(self._entries))

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.document_ids())


def canonical_document_id(path_or_uri: str | os.PathLike[str]) -> str:
    """Return the canonical file identity used to compare diagnostic sources."""

    raw = os.fspath(path_or_uri).strip()
    if raw.startswith("file://"):
        parsed = urlparse(raw)
        raw = unquote(parsed.path)
        if parsed.netloc and parsed.netloc != "localhost":
            raw = f"//{parsed.netloc}{raw}"
    expanded = os.path.expanduser(raw)
    return Path(os.path.normpath(os.path.abspath(expanded))).as_posix()


def _require_non_negative(value: object, path: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if value < 0:
        _fail(path, "must be >= 0")


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "Diagnostic",
    "DiagnosticSet",
    "JSONScalar",
    "JSONValue",
    "Location",
    "Position",
    "Range",
    "RelatedInfo",
    "Severity",
    "canonical_document_id",
]
