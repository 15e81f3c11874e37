# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Validation, deduplication and ordering of candidate records."""

import logging
from dataclasses import dataclass, field

from pqmap.model import AcceptedQuestion, CandidateRecord, item_sort_key
from pqmap.settings import ParserSettings

logger = logging.getLogger(__name__)

UNTRANSLATED_PREFIX: str = "[FR] "


@dataclass(frozen=True)
class ValidationResult:
    """Represent the validator output and its counters.

    Attributes:
        accepted: Accepted questions, unique and sorted by numeric key.
        rejected: Item keys of candidates whose header was empty or too short.
        duplicates: Item keys of dropped later occurrences.
    """

    accepted: list[AcceptedQuestion]
    rejected: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)


def untranslated(text: str) -> str:
    """Mark English text as a pending French translation."""
    return f"{UNTRANSLATED_PREFIX}{text}" if text else ""


def to_accepted(record: CandidateRecord) -> AcceptedQuestion:
    return AcceptedQuestion(
        item_key=record.item_key,
        question_text_en=record.header_text,
        question_text_fr=untranslated(record.header_text),
        guidance_en=record.body_text,
        guidance_fr=untranslated(record.body_text),
        references=record.citation_text,
        is_priority=record.is_priority,
        requires_on_site=record.requires_on_site,
        critical_element=record.category,
    )


def validate_records(
    candidates: list[CandidateRecord], settings: ParserSettings | None = None
) -> ValidationResult:
    """Reject short records, drop duplicates and sort the rest.

    Rejection happens before deduplication, so the first occurrence with a
    usable header wins even when an empty summary-table occurrence of the
    same key came earlier.

    Args:
        candidates: Assembler output in document order.
        settings: Parser thresholds; defaults apply when omitted.

    Returns:
        Accepted questions and the keys that were rejected or dropped.
    """
    settings = settings or ParserSettings()
    accepted: dict[str, AcceptedQuestion] = {}
    rejected: list[str] = []
    duplicates: list[str] = []
    for record in candidates:
        if len(record.header_text) < settings.min_header_length:
            logger.warning(
                f"Record rejected, question text too short "
                f"(item_key={record.item_key} line={record.start_line} "
                f"length={len(record.header_text)})"
            )
            rejected.append(record.item_key)
            continue
        if record.item_key in accepted:
            logger.warning(
                f"Duplicate record dropped (item_key={record.item_key} line={record.start_line})"
            )
            duplicates.append(record.item_key)
            continue
        accepted[record.item_key] = to_accepted(record)
    ordered = sorted(accepted.values(), key=lambda question: item_sort_key(question.item_key))
    logger.info(
        f"Validation completed (accepted={len(ordered)} rejected={len(rejected)} "
        f"duplicates={len(duplicates)})"
    )
    return ValidationResult(accepted=ordered, rejected=rejected, duplicates=duplicates)
