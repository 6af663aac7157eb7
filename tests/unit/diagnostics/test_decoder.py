"""Unit tests for the ``--error-json`` decoder.

File: tests/unit/diagnostics/test_decoder.py

Tests:
- Line decrement with columns unchanged
- Cross-document records are dropped
- Unparseable payloads decode to nothing
- Severity mapping through the decoder
- Related information anchoring
- Per-record skipping of malformed entries
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest import mock

import pytest
from hypothesis import given
from hypothesis import strategies as st

from silq_runner.diagnostics.decoder import (
    DiagnosticShapeError,
    decode_diagnostics,
    parse_diagnostic_record,
)
from silq_runner.diagnostics.model import Position, Range, Severity

DOC = "/work/a.silq"
OTHER = "/work/b.silq"


def _record(
    *,
    source: str = DOC,
    start: tuple[int, int] = (2, 0),
    end: tuple[int, int] = (2, 3),
    message: str = "type error",
    severity: object = "error",
    related: list[dict[str, object]] | None = None,
) -> dict[str, object]:
    record: dict[str, object] = {
        "source": source,
        "start": {"line": start[0], "column": start[1]},
        "end": {"line": end[0], "column": end[1]},
        "message": message,
        "relatedInformation": related if related is not None else [],
    }
    if severity is not None:
        record["severity"] = severity
    return record


def _payload(*records: object) -> str:
    return json.dumps(list(records))


@pytest.mark.unit
class TestDecodeBasics:
    def test_single_error(self) -> None:
        diagnostics = decode_diagnostics(_payload(_record()), DOC)

        assert len(diagnostics) == 1
        (diagnostic,) = diagnostics
        assert diagnostic.severity is Severity.ERROR
        assert diagnostic.message == "type error"
        assert diagnostic.range == Range(Position(1, 0), Position(1, 3))
        assert diagnostic.related == ()

    def test_relative_source_matches_relative_document(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        diagnostics = decode_diagnostics(_payload(_record(source="a.silq")), "a.silq")

        assert len(diagnostics) == 1
        assert diagnostics[0].range.start == Position(1, 0)
        assert diagnostics[0].range.end == Position(1, 3)

    def test_bytes_payload(self) -> None:
        diagnostics = decode_diagnostics(_payload(_record()).encode("utf-8"), DOC)
        assert len(diagnostics) == 1

    def test_order_is_preserved(self) -> None:
        payload = _payload(*(_record(message=f"m{index}") for index in range(5)))
        assert [d.message for d in decode_diagnostics(payload, DOC)] == [
            "m0",
            "m1",
            "m2",
            "m3",
            "m4",
        ]

    def test_empty_array(self) -> None:
        assert decode_diagnostics("[]", DOC) == ()


@pytest.mark.unit
class TestLineDecrement:
    @given(
        start_line=st.integers(min_value=1, max_value=10_000),
        end_line=st.integers(min_value=1, max_value=10_000),
        start_column=st.integers(min_value=0, max_value=500),
        end_column=st.integers(min_value=0, max_value=500),
    )
    def test_lines_shift_columns_do_not(
        self, start_line: int, end_line: int, start_column: int, end_column: int
    ) -> None:
        payload = _payload(
            _record(start=(start_line, start_column), end=(end_line, end_column))
        )

        (diagnostic,) = decode_diagnostics(payload, DOC)

        assert diagnostic.range.start == Position(start_line - 1, start_column)
        assert diagnostic.range.end == Position(end_line - 1, end_column)

    def test_line_zero_clamps_to_first_line(self) -> None:
        (diagnostic,) = decode_diagnostics(_payload(_record(start=(0, 0), end=(0, 2))), DOC)
        assert diagnostic.range.start.line == 0
        assert diagnostic.range.end.line == 0

    def test_start_after_end_is_kept_verbatim(self) -> None:
        (diagnostic,) = decode_diagnostics(_payload(_record(start=(5, 4), end=(3, 1))), DOC)
        assert diagnostic.range == Range.of(4, 4, 2, 1)


@pytest.mark.unit
class TestCrossDocumentFiltering:
    def test_other_source_dropped(self) -> None:
        payload = _payload(_record(source=OTHER, message="elsewhere"), _record(message="here"))
        assert [d.message for d in decode_diagnostics(payload, DOC)] == ["here"]

    @given(
        st.lists(
            st.tuples(st.sampled_from([DOC, OTHER, "/work/c.silq"]), st.integers(0, 100)),
            max_size=20,
        )
    )
    def test_result_contains_exactly_matching_sources(
        self, entries: list[tuple[str, int]]
    ) -> None:
        payload = _payload(
            *(_record(source=source, message=f"{source}#{tag}") for source, tag in entries)
        )

        decoded = [d.message for d in decode_diagnostics(payload, DOC)]

        assert decoded == [f"{source}#{tag}" for source, tag in entries if source == DOC]

    def test_equivalent_spellings_match(self) -> None:
        payload = _payload(_record(source="/work/sub/../a.silq"))
        assert len(decode_diagnostics(payload, DOC)) == 1


@pytest.mark.unit
class TestUnparseablePayloads:
    @pytest.mark.parametrize("payload", ["not json", "[{", "", "   ", b"\xff\xfe"])
    def test_returns_empty(self, payload: str | bytes) -> None:
        assert decode_diagnostics(payload, DOC) == ()

    @pytest.mark.parametrize("payload", ['{"source": "x"}', "42", "null", '"text"'])
    def test_non_array_returns_empty(self, payload: str) -> None:
        assert decode_diagnostics(payload, DOC) == ()

    def test_failure_logged_informationally(self) -> None:
        logger = mock.Mock()

        decode_diagnostics("[{", DOC, logger=logger)

        logger.info.assert_called_once()
        assert logger.info.call_args.args[0] == "diagnostics_decode_failed"
        logger.error.assert_not_called()
        logger.warning.assert_not_called()

    @pytest.mark.parametrize("payload", ["[" * 100_000, '{"a":' * 100_000])
    def test_deeply_nested_payload_returns_empty(self, payload: str) -> None:
        logger = mock.Mock()

        assert decode_diagnostics(payload, DOC, logger=logger) == ()
        assert logger.info.call_args.args[0] == "diagnostics_decode_failed"

    @given(st.text(max_size=50))
    def test_never_raises(self, payload: str) -> None:
        result = decode_diagnostics(payload, DOC, logger=mock.Mock())
        assert isinstance(result, tuple)


@pytest.mark.unit
class TestSeverityMapping:
    @pytest.mark.parametrize(
        ("tag", "expected"),
        [
            ("error", Severity.ERROR),
            ("note", Severity.HINT),
            ("warning", Severity.WARNING),
            ("fatal", Severity.WARNING),
            (None, Severity.WARNING),
        ],
    )
    def test_tags(self, tag: object, expected: Severity) -> None:
        (diagnostic,) = decode_diagnostics(_payload(_record(severity=tag)), DOC)
        assert diagnostic.severity is expected


@pytest.mark.unit
class TestRelatedInformation:
    def test_related_anchored_to_requesting_document(self) -> None:
        related = [
            {
                "source": OTHER,
                "start": {"line": 7, "column": 2},
                "end": {"line": 7, "column": 9},
                "message": "declared here",
            }
        ]

        (diagnostic,) = decode_diagnostics(_payload(_record(related=related)), DOC)

        (info,) = diagnostic.related
        assert info.location.document_id == DOC
        assert info.location.range == Range.of(6, 2, 6, 9)
        assert info.message == "declared here"

    def test_missing_related_field_is_allowed(self) -> None:
        record = _record()
        del record["relatedInformation"]
        (diagnostic,) = decode_diagnostics(_payload(record), DOC)
        assert diagnostic.related == ()

    def test_malformed_related_entry_skipped(self) -> None:
        related = [
            {"start": {"line": 1, "column": 0}},
            {
                "source": DOC,
                "start": {"line": 3, "column": 0},
                "end": {"line": 3, "column": 1},
                "message": "ok",
            },
        ]
        (diagnostic,) = decode_diagnostics(_payload(_record(related=related)), DOC)
        assert [info.message for info in diagnostic.related] == ["ok"]


@pytest.mark.unit
class TestMalformedRecords:
    def test_bad_record_skipped_good_record_kept(self) -> None:
        payload = _payload(
            {"source": DOC, "message": "no range"},
            "not an object",
            _record(message="fine"),
        )
        assert [d.message for d in decode_diagnostics(payload, DOC)] == ["fine"]

    def test_shape_error_names_field(self) -> None:
        record = _record()
        record["start"] = {"line": "2", "column": 0}

        with pytest.raises(DiagnosticShapeError, match=r"diagnostic\.start\.line"):
            parse_diagnostic_record(record, DOC)

    def test_negative_column_rejected(self) -> None:
        with pytest.raises(DiagnosticShapeError, match="column"):
            parse_diagnostic_record(_record(start=(1, -1)), DOC)
