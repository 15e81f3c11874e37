# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Tunable parser thresholds."""

from dataclasses import dataclass

MIN_HEADER_LENGTH: int = 20
LOOKAHEAD_WINDOW: int = 5
LOOKAHEAD_CONTENT_LENGTH: int = 30
MAX_RECORD_SPAN: int = 100
DEFAULT_CRITICAL_ELEMENT: str = "CE_1"


@dataclass(frozen=True)
class ParserSettings:
    """Collect the heuristic thresholds used while parsing one document.

    The values were chosen empirically against the USOAP CMA protocol
    question export; none of them is a contract.

    Attributes:
        min_header_length: Shortest question text accepted by the validator.
        lookahead_window: Lines scanned after a boundary marker for content.
        lookahead_content_length: Line length that counts as question content.
        max_record_span: Upper bound of lines read for the last record.
        default_critical_element: Sticky category tag before any tag is seen.
    """

    min_header_length: int = MIN_HEADER_LENGTH
    lookahead_window: int = LOOKAHEAD_WINDOW
    lookahead_content_length: int = LOOKAHEAD_CONTENT_LENGTH
    max_record_span: int = MAX_RECORD_SPAN
    default_critical_element: str = DEFAULT_CRITICAL_ELEMENT

    def __post_init__(self) -> None:
        for name in (
            "min_header_length",
            "lookahead_window",
            "lookahead_content_length",
            "max_record_span",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
