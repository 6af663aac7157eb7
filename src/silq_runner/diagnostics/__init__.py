"""Diagnostic model and the compiler payload decoder."""

from silq_runner.diagnostics.decoder import (
    DiagnosticShapeError,
    decode_diagnostics,
    parse_diagnostic_record,
)
from silq_runner.diagnostics.model import (
    Diagnostic,
    DiagnosticSet,
    Location,
    Position,
    Range,
    RelatedInfo,
    Severity,
    canonical_document_id,
)

__all__ = [
    "Diagnostic",
    "DiagnosticSet",
    "DiagnosticShapeError",
    "Location",
    "Position",
    "Range",
    "RelatedInfo",
    "Severity",
    "canonical_document_id",
    "decode_diagnostics",
    "parse_diagnostic_record",
]
