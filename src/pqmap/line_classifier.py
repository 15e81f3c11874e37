# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Per-line tagging of normalized protocol question text.

Each tag is backed by its own ordered pattern list. Tags are checked in a
fixed precedence order and the first match wins:

``skip`` > ``item_boundary`` > ``critical_element`` > ``priority_marker`` >
``reference_citation`` > ``guidance_start`` > ``question_start`` > ``content``.
"""

import re
from typing import Literal

LineTag = Literal[
    "skip",
    "item_boundary",
    "critical_element",
    "priority_marker",
    "reference_citation",
    "guidance_start",
    "question_start",
    "content",
]

ITEM_BOUNDARY_PATTERN = re.compile(r"^7\.\d{3}$")
CRITICAL_ELEMENT_PATTERN = re.compile(r"^CE-[1-8]$")
PRIORITY_MARKER: str = "Yes"
NEGATIVE_MARKER: str = "No"

SKIP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^PQ No\.?$"),
    re.compile(r"^Protocol Question$"),
    re.compile(r"^Guidance for Review of Evidence$"),
    re.compile(r"^ICAO References$"),
    re.compile(r"^PPQ$"),
    re.compile(r"^CE$"),
    re.compile(r"^Page \d+ of \d+$"),
    re.compile(r"^QMSF-007"),
    re.compile(r"^USOAP CMA 2024 Protocol Questions"),
    re.compile(r"^\s*$"),
    re.compile(r"^New\s+Revised\s+Deleted"),
    re.compile(r"^No\s*change$"),
    re.compile(r"^Description of Amendments$"),
    re.compile(r"^\?+$"),
)

REFERENCE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^CC$"),  # Chicago Convention
    re.compile(r"^STD$"),
    re.compile(r"^GM$"),
    re.compile(r"^RP$"),
    re.compile(r"^PANS$"),
    re.compile(r"^Doc\s*\d+"),
    re.compile(r"^A\d+$"),  # Annex
    re.compile(r"^Art\."),
    re.compile(r"^Att\."),
    re.compile(r"^App\."),
    re.compile(r"^\d+\.\d+"),  # section numbers
    re.compile(r"^Part\s+[A-Z]"),
    re.compile(r"^Foreword"),
    re.compile(r"^Chapter"),
)

GUIDANCE_PREFIXES: tuple[str, ...] = (
    "1)",
    "2)",
    "3)",
    "Verify",
    "Review",
    "Confirm",
    "Note to",
    "Notes to",
    "Check",
    "Assess",
    "Determine",
    "Sample",
)

QUESTION_PREFIXES: tuple[str, ...] = (
    "Has the State",
    "Does the State",
    "Is the State",
    "Are the ",
    "Is there",
    "Does the ANS",
    "Has the ANS",
    "Does the ATS",
    "Has the ATS",
    "If the State",
    "Has the competent",
)


def is_skip(line: str) -> bool:
    return any(pattern.search(line) for pattern in SKIP_PATTERNS)


def is_item_boundary(line: str) -> bool:
    return ITEM_BOUNDARY_PATTERN.match(line) is not None


def is_reference(line: str) -> bool:
    return any(pattern.search(line) for pattern in REFERENCE_PATTERNS)


def is_guidance_start(line: str) -> bool:
    return line.startswith(GUIDANCE_PREFIXES)


def is_question_start(line: str) -> bool:
    return line.startswith(QUESTION_PREFIXES)


def classify_line(line: str) -> LineTag:
    """Tag a single trimmed line.

    Args:
        line: Trimmed line text.

    Returns:
        The first matching tag in precedence order; ``content`` otherwise.
    """
    if is_skip(line):
        return "skip"
    if is_item_boundary(line):
        return "item_boundary"
    if CRITICAL_ELEMENT_PATTERN.match(line):
        return "critical_element"
    if line == PRIORITY_MARKER:
        return "priority_marker"
    if is_reference(line):
        return "reference_citation"
    if is_guidance_start(line):
        return "guidance_start"
    if is_question_start(line):
        return "question_start"
    return "content"


def normalize_critical_element(line: str) -> str:
    """Convert a ``CE-3`` tag line to the stored ``CE_3`` form."""
    return line.replace("-", "_")
