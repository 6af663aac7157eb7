"""
Decode the compiler's ``--error-json`` payload into diagnostics.

Decoding is best-effort: the compiler may write nothing, or a partial payload,
on success. An unparseable payload therefore decodes to no diagnostics and is
only logged informationally. Individual malformed records are skipped.

Records are kept only when their ``source`` names the requesting document.
Related-information entries are always anchored to the requesting document,
whatever ``source`` they declare.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any, NoReturn

import structlog

from silq_runner.diagnostics.model import (
    Diagnostic,
    Location,
    Position,
    Range,
    RelatedInfo,
    Severity,
    canonical_document_id,
)

_PAYLOAD_EXCERPT_CHARS = 200


class DiagnosticShapeError(ValueError):
    """Raised when a diagnostic record does not have the expected shape."""


def decode_diagnostics(
    payload: str | bytes,
    document_id: str,
    *,
    logger: Any | None = None,
) -> tuple[Diagnostic, ...]:
    """Decode ``payload`` into the diagnostics that belong to ``document_id``.

    Never raises. Order follows the payload's array order.
    """

    log = logger if logger is not None else structlog.get_logger(__name__)
    text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload

    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError) as exc:
        log.info(
            "diagnostics_decode_failed",
            document_id=document_id,
            reason=str(exc),
            excerpt=text[:_PAYLOAD_EXCERPT_CHARS],
        )
        return ()

    if not isinstance(parsed, list):
        log.info(
            "diagnostics_decode_failed",
            document_id=document_id,
            reason=f"expected array, got {type(parsed).__name__}",
        )
        return ()

    target = canonical_document_id(document_id)
    diagnostics: list[Diagnostic] = []
    for index, record in enumerate(parsed):
        try:
            source = record_source(record, f"diagnostics[{index}]")
            if canonical_document_id(source) != target:
                log.debug(
                    "diagnostic_cross_document_dropped",
                    document_id=document_id,
                    source=source,
                    index=index,
                )
                continue
            diagnostics.append(
                parse_diagnostic_record(record, document_id, path=f"diagnostics[{index}]")
            )
        except DiagnosticShapeError as exc:
            log.debug("diagnostic_record_skipped", document_id=document_id, reason=str(exc))

    return tuple(diagnostics)


def record_source(record: object, path: str) -> str:
    """Return the declared ``source`` of one record."""

    obj = _expect_object(record, path)
    return _as_str(obj.get("source"), f"{path}.source")


def parse_diagnostic_record(
    record: object,
    document_id: str,
    *,
    path: str = "diagnostic",
) -> Diagnostic:
    """Build one :class:`Diagnostic` from a compiler record.

    Raises :class:`DiagnosticShapeError` with a dotted field path when the
    record is malformed. Does not filter by source.
    """

    obj = _expect_object(record, path)
    related_raw = obj.get("relatedInformation")
    related: list[RelatedInfo] = []
    if related_raw is not None:
        if not isinstance(related_raw, Sequence) or isinstance(related_raw, (str, bytes)):
            _fail(f"{path}.relatedInformation", f"expected array, got {type(related_raw).__name__}")
        for index, item in enumerate(related_raw):
            try:
                related.append(
                    parse_related_record(
                        item, document_id, path=f"{path}.relatedInformation[{index}]"
                    )
                )
            except DiagnosticShapeError:
                continue

    return Diagnostic(
        range=_range_from_record(obj, path),
        message=_as_str(obj.get("message"), f"{path}.message"),
        severity=Severity.from_tag(obj.get("severity")),
        related=tuple(related),
    )


def parse_related_record(record: object, document_id: str, *, path: str) -> RelatedInfo:
    obj = _expect_object(record, path)
    return RelatedInfo(
        location=Location(document_id=document_id, range=_range_from_record(obj, path)),
        message=_as_str(obj.get("message"), f"{path}.message"),
    )


def _range_from_record(obj: Mapping[str, object], path: str) -> Range:
    return Range(
        start=_position(obj.get("start"), f"{path}.start"),
        end=_position(obj.get("end"), f"{path}.end"),
    )


def _position(value: object, path: str) -> Position:
    obj = _expect_object(value, path)
    line = _as_int(obj.get("line"), f"{path}.line")
    column = _as_int(obj.get("column"), f"{path}.column")
    if column < 0:
        _fail(f"{path}.column", "must be >= 0")
    # Compiler lines are 1-based; a reported line 0 stays on the first line.
    return Position(line=max(line - 1, 0), column=column)


def _expect_object(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    return value


def _as_int(value: object, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    return value


def _as_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    return value


def _fail(path: str, message: str) -> NoReturn:
    raise DiagnosticShapeError(f"{path}: {message}")


__all__ = [
    "DiagnosticShapeError",
    "decode_diagnostics",
    "parse_diagnostic_record",
    "parse_related_record",
    "record_source",
]
