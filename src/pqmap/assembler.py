# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Group classified lines into candidate protocol question records.

Assembly is a fold over the line stream. The fold state is immutable and
carries the sticky critical-element tag explicitly, so a run never depends
on module-level mutable state.
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Literal

from pqmap.line_classifier import (
    CRITICAL_ELEMENT_PATTERN,
    NEGATIVE_MARKER,
    PRIORITY_MARKER,
    classify_line,
    is_item_boundary,
    is_question_start,
    is_skip,
    normalize_critical_element,
)
from pqmap.model import CandidateRecord
from pqmap.normalizer import SourceLine
from pqmap.settings import ParserSettings

logger = logging.getLogger(__name__)

Section = Literal["header", "body", "citation"]


@dataclass(frozen=True)
class OpenRecord:
    """Represent the record currently being accumulated."""

    item_key: str
    start_line: int
    section: Section
    category: str
    header: tuple[str, ...] = ()
    body: tuple[str, ...] = ()
    citation: tuple[str, ...] = ()
    is_priority: bool = False

    def append(self, text: str) -> "OpenRecord":
        """Append text to the active section buffer."""
        if self.section == "header":
            return replace(self, header=self.header + (text,))
        if self.section == "body":
            return replace(self, body=self.body + (text,))
        return replace(self, citation=self.citation + (text,))

    def finalize(self) -> CandidateRecord:
        return CandidateRecord(
            item_key=self.item_key,
            header_text=" ".join(self.header).strip(),
            body_text=" ".join(self.body).strip(),
            citation_text=" ".join(self.citation).strip(),
            is_priority=self.is_priority,
            requires_on_site=False,
            category=self.category,
            start_line=self.start_line,
        )


@dataclass(frozen=True)
class AssemblyState:
    """Represent the fold state between two lines.

    Attributes:
        current_default_category: Last critical-element tag seen; new records
            start with it until a tag of their own overrides it.
        record: Open record, or ``None`` while awaiting the first boundary.
    """

    current_default_category: str
    record: OpenRecord | None = None


def initial_state(settings: ParserSettings) -> AssemblyState:
    return AssemblyState(current_default_category=settings.default_critical_element)


def advance(
    state: AssemblyState, line: SourceLine
) -> tuple[AssemblyState, CandidateRecord | None]:
    """Apply one line to the fold state.

    Args:
        state: State before the line.
        line: Normalized source line.

    Returns:
        The next state and the record finalized by this line, if any.
    """
    tag = classify_line(line.text)
    if tag == "skip":
        return state, None
    if tag == "item_boundary":
        emitted = state.record.finalize() if state.record is not None else None
        record = OpenRecord(
            item_key=line.text,
            start_line=line.index,
            section="header",
            category=state.current_default_category,
        )
        return replace(state, record=record), emitted

    record = state.record
    if record is None:
        return state, None

    if tag == "critical_element":
        category = normalize_critical_element(line.text)
        return (
            AssemblyState(
                current_default_category=category,
                record=replace(record, category=category),
            ),
            None,
        )
    if tag == "priority_marker":
        if record.section == "header":
            return replace(state, record=replace(record, is_priority=True)), None
        logger.debug(
            f"Priority marker outside header kept as text "
            f"(item_key={record.item_key} line={line.index} section={record.section})"
        )
    if tag == "reference_citation":
        record = replace(record, section="citation", citation=record.citation + (line.text,))
        return replace(state, record=record), None
    if tag == "guidance_start":
        record = replace(record, section="body")
    return replace(state, record=record.append(line.text)), None


def finish(state: AssemblyState) -> tuple[AssemblyState, CandidateRecord | None]:
    """Finalize the open record at end of input."""
    if state.record is None:
        return state, None
    return replace(state, record=None), state.record.finalize()


def assemble_records(
    lines: Iterable[SourceLine], settings: ParserSettings | None = None
) -> list[CandidateRecord]:
    """Assemble candidate records with a single sequential scan.

    Every boundary marker starts a record, including markers that belong to
    summary tables. Such records are filtered later by the validator.

    Args:
        lines: Normalized document lines.
        settings: Parser thresholds; defaults apply when omitted.

    Returns:
        Candidate records in document order, duplicates included.
    """
    state = initial_state(settings or ParserSettings())
    candidates: list[CandidateRecord] = []
    for line in lines:
        state, emitted = advance(state, line)
        if emitted is not None:
            candidates.append(emitted)
    state, emitted = finish(state)
    if emitted is not None:
        candidates.append(emitted)
    logger.info(f"Sequential assembly completed (candidates={len(candidates)})")
    return candidates


def find_item_starts(
    lines: list[SourceLine], settings: ParserSettings | None = None
) -> list[int]:
    """Locate boundary markers that start a genuine record.

    A marker adjacent to another marker belongs to an index or summary table.
    Otherwise the marker is kept only if question content follows within the
    look-ahead window: a question-start phrase or a sufficiently long line.

    Args:
        lines: Normalized document lines.
        settings: Parser thresholds; defaults apply when omitted.

    Returns:
        Positions (into ``lines``) of genuine boundary markers.
    """
    settings = settings or ParserSettings()
    starts: list[int] = []
    for position, line in enumerate(lines):
        if not is_item_boundary(line.text):
            continue
        previous_text = lines[position - 1].text if position > 0 else ""
        next_text = lines[position + 1].text if position + 1 < len(lines) else ""
        if is_item_boundary(previous_text) or is_item_boundary(next_text):
            logger.debug(f"Boundary inside summary table skipped (line={line.index})")
            continue
        window_end = min(position + 1 + settings.lookahead_window, len(lines))
        for candidate in lines[position + 1 : window_end]:
            text = candidate.text
            if is_skip(text):
                continue
            if is_item_boundary(text):
                break
            if CRITICAL_ELEMENT_PATTERN.match(text):
                continue
            if text in (PRIORITY_MARKER, NEGATIVE_MARKER):
                continue
            if is_question_start(text) or len(text) > settings.lookahead_content_length:
                starts.append(position)
                break
    return starts


def assemble_records_with_lookahead(
    lines: list[SourceLine], settings: ParserSettings | None = None
) -> list[CandidateRecord]:
    """Assemble candidate records, ignoring summary-table boundary markers.

    Each genuine record spans from its marker to the next genuine marker, or
    ``max_record_span`` lines for the last one, and stops early at any other
    boundary marker.

    Args:
        lines: Normalized document lines.
        settings: Parser thresholds; defaults apply when omitted.

    Returns:
        Candidate records in document order.
    """
    settings = settings or ParserSettings()
    starts = find_item_starts(lines, settings)
    logger.info(f"Boundary markers with nearby content found (count={len(starts)})")
    state = initial_state(settings)
    candidates: list[CandidateRecord] = []
    for number, start in enumerate(starts):
        if number + 1 < len(starts):
            end = starts[number + 1]
        else:
            end = min(start + settings.max_record_span, len(lines))
        state, _ = advance(state, lines[start])
        for line in lines[start + 1 : end]:
            if is_item_boundary(line.text):
                break
            state, _ = advance(state, line)
        state, emitted = finish(state)
        if emitted is not None:
            candidates.append(emitted)
    logger.info(f"Look-ahead assembly completed (candidates={len(candidates)})")
    return candidates
