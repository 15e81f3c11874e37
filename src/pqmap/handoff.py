# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""JSON hand-off artifact between the parse and reorganization stages."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import Levenshtein

from pqmap.model import AcceptedQuestion, item_sort_key

logger = logging.getLogger(__name__)

FIELD_NAMES: dict[str, str] = {
    "item_key": "pqNumber",
    "question_text_en": "questionTextEn",
    "question_text_fr": "questionTextFr",
    "guidance_en": "guidanceEn",
    "guidance_fr": "guidanceFr",
    "references": "icaoReferences",
    "is_priority": "isPriorityPQ",
    "requires_on_site": "requiresOnSite",
    "critical_element": "criticalElement",
    "audit_area": "auditArea",
}
REQUIRED_FIELDS: tuple[str, ...] = ("pqNumber", "questionTextEn")


class HandoffError(RuntimeError):
    """Represent a malformed or unreadable hand-off artifact."""


@dataclass(frozen=True)
class ChangedQuestion:
    """Represent one question whose text changed between two parse runs."""

    item_key: str
    similarity: float
    previous_text: str
    current_text: str


@dataclass(frozen=True)
class DriftReport:
    """Represent differences between two accepted question sets."""

    added: list[str]
    removed: list[str]
    changed: list[ChangedQuestion]

    @property
    def has_drift(self) -> bool:
        return bool(self.added or self.removed or self.changed)


def question_to_dict(question: AcceptedQuestion) -> dict[str, Any]:
    return {json_name: getattr(question, attr) for attr, json_name in FIELD_NAMES.items()}


def _flag(payload: dict[str, Any], name: str) -> bool:
    value = payload.get(name)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise HandoffError(f"Hand-off field '{name}' is not a boolean: {value!r:.60}")


def question_from_dict(payload: dict[str, Any]) -> AcceptedQuestion:
    """Build a question from one hand-off object.

    Raises:
        HandoffError: If a required field is missing or not a string, or a
            flag is neither a boolean nor "true"/"false".
    """
    for name in REQUIRED_FIELDS:
        if not isinstance(payload.get(name), str):
            raise HandoffError(f"Hand-off object is missing '{name}': {payload!r:.120}")
    return AcceptedQuestion(
        item_key=payload["pqNumber"],
        question_text_en=payload["questionTextEn"],
        question_text_fr=payload.get("questionTextFr") or "",
        guidance_en=payload.get("guidanceEn") or "",
        guidance_fr=payload.get("guidanceFr") or "",
        references=payload.get("icaoReferences") or "",
        is_priority=_flag(payload, "isPriorityPQ"),
        requires_on_site=_flag(payload, "requiresOnSite"),
        critical_element=payload.get("criticalElement") or "CE_1",
        audit_area=payload.get("auditArea") or "ANS",
    )


def write_questions(questions: list[AcceptedQuestion], output_path: Path) -> None:
    """Write accepted questions as a JSON array.

    Raises:
        OSError: If directory creation or file writing fails.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps([question_to_dict(q) for q in questions], indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    logger.info(f"Hand-off written (path={output_path} questions={len(questions)})")


def read_questions(input_path: Path) -> list[AcceptedQuestion]:
    """Read accepted questions from a JSON array file.

    Raises:
        OSError: If the file cannot be read.
        HandoffError: If the content is not a JSON array of question objects.
    """
    try:
        payload = json.loads(input_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise HandoffError(f"{input_path}: invalid JSON ({exc})") from exc
    if not isinstance(payload, list):
        raise HandoffError(f"{input_path}: expected a JSON array")
    questions = []
    for item in payload:
        if not isinstance(item, dict):
            raise HandoffError(f"{input_path}: expected JSON objects in the array")
        questions.append(question_from_dict(item))
    logger.info(f"Hand-off loaded (path={input_path} questions={len(questions)})")
    return questions


def merge_question_sets(*question_sets: list[AcceptedQuestion]) -> list[AcceptedQuestion]:
    """Merge hand-off sets; the first occurrence of a key wins.

    Returns:
        Questions sorted by the numeric portion of their key.
    """
    merged: dict[str, AcceptedQuestion] = {}
    for questions in question_sets:
        for question in questions:
            if question.item_key in merged:
                logger.warning(f"Duplicate key ignored while merging (item_key={question.item_key})")
                continue
            merged[question.item_key] = question
    return sorted(merged.values(), key=lambda q: item_sort_key(q.item_key))


def diff_question_sets(
    previous: list[AcceptedQuestion], current: list[AcceptedQuestion]
) -> DriftReport:
    """Compare two accepted sets by key and question text.

    Args:
        previous: Set from the earlier parse run.
        current: Set from the latest parse run.

    Returns:
        Added and removed keys plus changed texts with their similarity ratio.
    """
    previous_by_key = {q.item_key: q for q in previous}
    current_by_key = {q.item_key: q for q in current}
    added = sorted(set(current_by_key) - set(previous_by_key), key=item_sort_key)
    removed = sorted(set(previous_by_key) - set(current_by_key), key=item_sort_key)
    changed: list[ChangedQuestion] = []
    for key in sorted(set(previous_by_key) & set(current_by_key), key=item_sort_key):
        before = previous_by_key[key].question_text_en
        after = current_by_key[key].question_text_en
        if before == after:
            continue
        changed.append(
            ChangedQuestion(
                item_key=key,
                similarity=float(Levenshtein.ratio(before, after)),
                previous_text=before,
                current_text=after,
            )
        )
    logger.info(
        f"Drift computed (added={len(added)} removed={len(removed)} changed={len(changed)})"
    )
    return DriftReport(added=added, removed=removed, changed=changed)
