# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Parse a converted protocol question document into accepted questions."""

import logging
from collections import Counter
from dataclasses import dataclass

from pqmap.assembler import assemble_records, assemble_records_with_lookahead
from pqmap.model import AcceptedQuestion
from pqmap.normalizer import normalize_document
from pqmap.settings import ParserSettings
from pqmap.validator import validate_records

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParseResult:
    """Represent one parse run and its statistics."""

    questions: list[AcceptedQuestion]
    line_count: int
    candidate_count: int
    rejected: list[str]
    duplicates: list[str]

    @property
    def by_critical_element(self) -> dict[str, int]:
        counts = Counter(question.critical_element for question in self.questions)
        return dict(sorted(counts.items()))

    @property
    def priority_count(self) -> int:
        return sum(1 for question in self.questions if question.is_priority)


def parse_document(
    raw_text: str,
    settings: ParserSettings | None = None,
    lookahead: bool = False,
) -> ParseResult:
    """Run normalization, assembly and validation over one document.

    Args:
        raw_text: Raw extracted document text.
        settings: Parser thresholds; defaults apply when omitted.
        lookahead: Use the look-ahead assembler that ignores summary tables.

    Returns:
        Accepted questions with parse statistics.
    """
    settings = settings or ParserSettings()
    lines = normalize_document(raw_text)
    if lookahead:
        candidates = assemble_records_with_lookahead(lines, settings)
    else:
        candidates = assemble_records(lines, settings)
    validation = validate_records(candidates, settings)
    logger.info(
        f"Document parsed (lines={len(lines)} candidates={len(candidates)} "
        f"accepted={len(validation.accepted)} lookahead={lookahead})"
    )
    return ParseResult(
        questions=validation.accepted,
        line_count=len(lines),
        candidate_count=len(candidates),
        rejected=validation.rejected,
        duplicates=validation.duplicates,
    )
