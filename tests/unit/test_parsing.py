import logging

import pytest

from pqmap.assembler import (
    assemble_records,
    assemble_records_with_lookahead,
    find_item_starts,
)
from pqmap.line_classifier import classify_line, is_item_boundary
from pqmap.model import CandidateRecord, item_sort_key
from pqmap.normalizer import SourceLine, normalize_document
from pqmap.parser import parse_document
from pqmap.settings import ParserSettings
from pqmap.validator import validate_records

TWO_RECORD_DOCUMENT = "\n".join(
    [
        "7.001",
        "Has the State established a legal framework for ANS oversight?",
        "7.002",
        "CE-4",
        "Does the State ensure that air traffic services",
        "are provided in accordance with ICAO provisions?",
        "Yes",
        "1) Review the ATS provider's operations manual.",
        "Check that letters of agreement",
        "are in place with all adjacent units.",
        "Yes",
        "Confirm that the agreements are kept up to date.",
        "Page 4 of 120",
        "A11",
        "3.1",
        "Doc 4444",
        "Chapter 2",
        "PANS",
        "Att. A",
        "STD",
        "GM",
        "Doc 9426",
        "Part B",
    ]
)

SUMMARY_TABLE_DOCUMENT = "\n".join(
    [
        "7.001",
        "7.002",
        "7.003",
        "Page 1 of 5",
        "7.001",
        "CE-1",
        "Yes",
        "Has the State promulgated primary aviation legislation?",
        "Verify that the legislation is in force.",
        "CC",
        "7.002",
        "Does the State ensure that its regulations are kept current?",
        "7.005",
        "Note",
        "x",
    ]
)


def _lines(*texts: str) -> list[SourceLine]:
    return [SourceLine(index=index, text=text) for index, text in enumerate(texts)]


def _candidate(item_key: str, header_text: str, start_line: int = 0) -> CandidateRecord:
    return CandidateRecord(
        item_key=item_key,
        header_text=header_text,
        body_text="",
        citation_text="",
        is_priority=False,
        requires_on_site=False,
        category="CE_1",
        start_line=start_line,
    )


def test_parse_001_normalizer_strips_non_printable_characters_and_trims() -> None:
    lines = normalize_document("  7.001 \x00\r\n\tHas\u00e9 the State\u2014\n\n")

    assert lines == [
        SourceLine(index=0, text="7.001"),
        SourceLine(index=1, text="Has the State"),
        SourceLine(index=2, text=""),
    ]


def test_parse_002_normalizer_returns_empty_sequence_for_empty_input() -> None:
    assert normalize_document("") == []


def test_parse_003_line_classifier_follows_precedence_order() -> None:
    assert classify_line("Page 3 of 10") == "skip"
    assert classify_line("Protocol Question") == "skip"
    assert classify_line("") == "skip"
    assert classify_line("7.001") == "item_boundary"
    assert classify_line("CE-3") == "critical_element"
    assert classify_line("Yes") == "priority_marker"
    assert classify_line("Doc 4444") == "reference_citation"
    assert classify_line("A11") == "reference_citation"
    assert classify_line("Verify that the State has a process.") == "guidance_start"
    assert classify_line("Has the State established a process?") == "question_start"
    assert classify_line("established for all aerodromes.") == "content"


def test_parse_004_item_boundary_requires_exact_three_digit_shape() -> None:
    assert is_item_boundary("7.123")
    assert not is_item_boundary("7.12")
    assert not is_item_boundary("7.1234")
    assert not is_item_boundary("7.123 Has the State")
    assert classify_line("7.1234") == "reference_citation"
    assert classify_line("CE-9") == "content"
    assert classify_line("No") == "content"


def test_parse_005_sequential_assembler_emits_two_records_for_minimal_document() -> None:
    candidates = assemble_records(normalize_document(TWO_RECORD_DOCUMENT))

    assert [candidate.item_key for candidate in candidates] == ["7.001", "7.002"]
    first, second = candidates
    assert first.header_text == "Has the State established a legal framework for ANS oversight?"
    assert first.category == "CE_1"
    assert second.header_text == (
        "Does the State ensure that air traffic services "
        "are provided in accordance with ICAO provisions?"
    )
    assert second.category == "CE_4"
    assert second.is_priority is True
    assert second.body_text.startswith("1) Review the ATS provider's operations manual.")
    assert "Confirm that the agreements are kept up to date." in second.body_text
    assert second.citation_text == (
        "A11 3.1 Doc 4444 Chapter 2 PANS Att. A STD GM Doc 9426 Part B"
    )
    assert second.start_line == 2


def test_parse_006_priority_marker_is_ignored_outside_header_section(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.DEBUG, logger="pqmap.assembler")
    candidates = assemble_records(
        _lines(
            "7.010",
            "Has the State established an ATS safety oversight function?",
            "Verify the organization chart.",
            "Yes",
        )
    )

    assert len(candidates) == 1
    assert candidates[0].is_priority is False
    assert candidates[0].body_text == "Verify the organization chart. Yes"
    assert "Priority marker outside header kept as text (item_key=7.010 line=3 section=body)" in (
        caplog.text
    )


def test_parse_007_critical_element_tag_is_sticky_across_records() -> None:
    candidates = assemble_records(
        _lines(
            "7.001",
            "CE-3",
            "Has the State established a civil aviation system?",
            "7.002",
            "Has the State established a second oversight function?",
            "7.003",
            "CE-5",
            "Has the State provided technical guidance to inspectors?",
        )
    )

    assert [candidate.category for candidate in candidates] == ["CE_3", "CE_3", "CE_5"]


def test_parse_008_lines_before_first_boundary_are_ignored() -> None:
    candidates = assemble_records(
        _lines(
            "Introduction to the protocol questions",
            "Yes",
            "7.001",
            "Has the State established a legal framework?",
        )
    )

    assert len(candidates) == 1
    assert candidates[0].is_priority is False
    assert candidates[0].header_text == "Has the State established a legal framework?"


def test_parse_009_lookahead_skips_summary_table_markers() -> None:
    lines = normalize_document(SUMMARY_TABLE_DOCUMENT)

    starts = find_item_starts(lines)
    candidates = assemble_records_with_lookahead(lines)

    assert [lines[start].text for start in starts] == ["7.001", "7.002"]
    assert [candidate.item_key for candidate in candidates] == ["7.001", "7.002"]
    assert candidates[0].is_priority is True
    assert candidates[0].header_text == "Has the State promulgated primary aviation legislation?"
    assert candidates[0].body_text == "Verify that the legislation is in force."
    assert candidates[0].citation_text == "CC"
    assert candidates[1].header_text == (
        "Does the State ensure that its regulations are kept current?"
    )


def test_parse_010_lookahead_window_is_configurable() -> None:
    lines = _lines(
        "7.001",
        "CE-2",
        "Yes",
        "short",
        "tiny",
        "Has the State established specific operating regulations?",
    )

    assert find_item_starts(lines, ParserSettings(lookahead_window=5)) == [0]
    assert find_item_starts(lines, ParserSettings(lookahead_window=3)) == []


def test_parse_011_validator_rejects_short_headers_before_deduplication() -> None:
    result = validate_records(
        [
            _candidate("7.001", "", start_line=0),
            _candidate("7.002", "Too short", start_line=1),
            _candidate("7.001", "Has the State established a legal framework?", start_line=5),
            _candidate("7.001", "Has the State established a later duplicate?", start_line=9),
        ]
    )

    assert [question.item_key for question in result.accepted] == ["7.001"]
    assert result.accepted[0].question_text_en == "Has the State established a legal framework?"
    assert result.rejected == ["7.001", "7.002"]
    assert result.duplicates == ["7.001"]


def test_parse_012_validator_sorts_by_numeric_key_and_marks_french_text() -> None:
    result = validate_records(
        [
            _candidate("7.100", "Has the State established item one hundred?"),
            _candidate("7.010", "Has the State established item ten here?"),
            _candidate("7.002", "Has the State established item two here?"),
        ]
    )

    assert [question.item_key for question in result.accepted] == ["7.002", "7.010", "7.100"]
    first = result.accepted[0]
    assert first.question_text_fr == "[FR] Has the State established item two here?"
    assert first.guidance_fr == ""
    assert validate_records([]).accepted == []


def test_parse_013_item_sort_key_compares_numbers_not_text() -> None:
    assert item_sort_key("7.9") < item_sort_key("7.10")
    assert item_sort_key("ATM002") < item_sort_key("ATM010")
    assert item_sort_key("none") == ()


def test_parse_014_parse_document_is_deterministic_and_reports_statistics() -> None:
    first = parse_document(SUMMARY_TABLE_DOCUMENT)
    second = parse_document(SUMMARY_TABLE_DOCUMENT)

    assert first.questions == second.questions
    assert [question.item_key for question in first.questions] == ["7.001", "7.002"]
    assert first.candidate_count == 6
    assert first.rejected == ["7.001", "7.002", "7.003", "7.005"]
    assert first.duplicates == []
    assert first.priority_count == 1
    assert first.by_critical_element == {"CE_1": 2}


def test_parse_015_lookahead_parse_matches_sequential_accepted_set() -> None:
    sequential = parse_document(SUMMARY_TABLE_DOCUMENT)
    lookahead = parse_document(SUMMARY_TABLE_DOCUMENT, lookahead=True)

    assert lookahead.questions == sequential.questions
    assert lookahead.candidate_count == 2
    assert lookahead.rejected == []


def test_parse_016_parser_settings_reject_non_positive_thresholds() -> None:
    with pytest.raises(ValueError):
        ParserSettings(min_header_length=0)
    with pytest.raises(ValueError):
        ParserSettings(lookahead_window=-1)
