# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Domain models for protocol question records and their classification."""

import re
from dataclasses import dataclass, field
from typing import Literal

Provenance = Literal["exact-lookup", "prefix-rule", "keyword-score", "unclassified"]

_DIGITS = re.compile(r"\d+")


def item_sort_key(item_key: str) -> tuple[int, ...]:
    """Return the numeric portion of an item key as a sortable tuple.

    ``"7.001"`` sorts as ``(7, 1)``; keys without digits sort first.
    """
    return tuple(int(part) for part in _DIGITS.findall(item_key))


@dataclass(frozen=True)
class CandidateRecord:
    """Represent one raw record produced by the assembler.

    Attributes:
        item_key: Boundary marker text, e.g. ``7.001``.
        header_text: Accumulated question text.
        body_text: Accumulated guidance text.
        citation_text: Accumulated reference citations.
        is_priority: Priority marker seen while in the header section.
        requires_on_site: On-site verification marker.
        category: Critical-element tag, sticky across records.
        start_line: Line index of the boundary marker (0-based).
    """

    item_key: str
    header_text: str
    body_text: str
    citation_text: str
    is_priority: bool
    requires_on_site: bool
    category: str
    start_line: int


@dataclass(frozen=True)
class AcceptedQuestion:
    """Represent a validated, deduplicated protocol question.

    Attributes:
        item_key: Unique question identifier within an accepted set.
        question_text_en: English question text.
        question_text_fr: French question text.
        guidance_en: English guidance for review of evidence.
        guidance_fr: French guidance.
        references: Reference citation text.
        is_priority: Priority protocol question flag.
        requires_on_site: On-site verification flag.
        critical_element: Critical-element tag (``CE_1`` .. ``CE_8``).
        audit_area: Source audit area.
    """

    item_key: str
    question_text_en: str
    question_text_fr: str
    guidance_en: str
    guidance_fr: str
    references: str
    is_priority: bool
    requires_on_site: bool
    critical_element: str
    audit_area: str = "ANS"


@dataclass(frozen=True)
class TargetCategory:
    """Represent one node of the destination taxonomy.

    Attributes:
        code: Stable category code, also the renumbering prefix.
        review_area: Review-area value questions are classified into.
        name_en: English display name.
        name_fr: French display name.
        description_en: English description.
        description_fr: French description.
        sort_order: Position within the questionnaire.
    """

    code: str
    review_area: str
    name_en: str
    name_fr: str
    description_en: str
    description_fr: str
    sort_order: int


@dataclass(frozen=True)
class PlaceholderQuestion:
    """Represent an authored stand-in question for a sparsely sourced category."""

    review_area: str
    question_text_en: str
    question_text_fr: str
    guidance_en: str
    guidance_fr: str


@dataclass(frozen=True)
class ClassificationDecision:
    """Represent the review-area decision for one question.

    Attributes:
        item_key: Classified question identifier.
        category: Review area, or ``None`` when unclassified.
        provenance: Strategy that produced the decision.
        score: Winning keyword score (scoring strategy only).
        runner_up_margin: Winning score minus the next best score.
        low_confidence: ``True`` when a score tie was broken by taxonomy order.
        scores: Per-area keyword scores (scoring strategy only).
    """

    item_key: str
    category: str | None
    provenance: Provenance
    score: int | None = None
    runner_up_margin: int | None = None
    low_confidence: bool = False
    scores: dict[str, int] = field(default_factory=dict)
