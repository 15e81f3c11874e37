# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Persisted questionnaire hierarchy contracts."""

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Protocol

from pqmap.taxonomy import QuestionnaireMetadata

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Represent a fatal store operation failure."""


@dataclass(frozen=True)
class QuestionnaireRow:
    """Represent one persisted questionnaire."""

    id: int
    type: str
    code: str
    version: str
    title_en: str
    title_fr: str
    description_en: str
    description_fr: str
    is_active: bool
    created_at: str


@dataclass(frozen=True)
class CategoryRow:
    """Represent one persisted questionnaire category."""

    id: int
    questionnaire_id: int
    code: str
    sort_order: int
    name_en: str
    name_fr: str
    audit_area: str | None
    critical_element: str | None
    review_area: str | None


@dataclass(frozen=True)
class QuestionRow:
    """Represent one persisted question with its category code."""

    id: int
    questionnaire_id: int
    category_id: int
    category_code: str
    pq_number: str
    question_text_en: str
    guidance_en: str | None
    review_area: str | None
    critical_element: str | None
    required_evidence: list[str]
    sort_order: int


@dataclass(frozen=True)
class AssessmentRow:
    """Represent one persisted assessment and its area selections."""

    id: int
    questionnaire_id: int
    questionnaire_type: str
    selected_audit_areas: list[str]
    selected_review_areas: list[str]


@dataclass(frozen=True)
class NewCategory:
    """Describe a category to create."""

    questionnaire_id: int
    code: str
    sort_order: int
    name_en: str
    name_fr: str
    description_en: str = ""
    description_fr: str = ""
    audit_area: str | None = None
    critical_element: str | None = None
    review_area: str | None = None


@dataclass(frozen=True)
class NewQuestion:
    """Describe a question to create."""

    questionnaire_id: int
    category_id: int
    pq_number: str
    question_text_en: str
    question_text_fr: str
    guidance_en: str | None = None
    guidance_fr: str | None = None
    audit_area: str | None = None
    review_area: str | None = None
    critical_element: str | None = None
    is_priority_pq: bool = False
    requires_on_site: bool = False
    sort_order: int = 0
    required_evidence: list[str] = field(default_factory=list)


class HierarchySession(Protocol):
    """Define the CRUD surface used inside one store transaction."""

    def find_questionnaires(self, questionnaire_type: str) -> list[QuestionnaireRow]:
        """Return questionnaires of a type, oldest first."""

    def create_questionnaire(
        self, questionnaire_type: str, metadata: QuestionnaireMetadata
    ) -> QuestionnaireRow: ...

    def update_questionnaire_metadata(
        self, questionnaire_id: int, metadata: QuestionnaireMetadata
    ) -> None: ...

    def delete_questionnaire(self, questionnaire_id: int) -> int: ...

    def list_categories(self, questionnaire_id: int) -> list[CategoryRow]: ...

    def create_category(self, category: NewCategory) -> int: ...

    def update_category_review_area(self, category_id: int, review_area: str) -> None: ...

    def delete_categories(self, questionnaire_id: int) -> int: ...

    def list_questions(self, questionnaire_id: int) -> list[QuestionRow]: ...

    def create_question(self, question: NewQuestion) -> int: ...

    def update_question_review_area(self, question_id: int, review_area: str) -> None: ...

    def delete_questions(self, questionnaire_id: int) -> int: ...

    def count_questions_by_category(self, questionnaire_id: int) -> dict[str, int]:
        """Return question counts grouped by category code."""

    def reference_text(self, question_ids: list[int]) -> dict[int, str]:
        """Return joined reference citations per question id."""

    def create_reference(self, question_id: int, document: str, chapter: str | None) -> int: ...

    def delete_references(self, question_ids: list[int]) -> int: ...

    def create_assessment(
        self,
        questionnaire_id: int,
        selected_audit_areas: list[str],
        selected_review_areas: list[str],
    ) -> int: ...

    def list_assessments(self) -> list[AssessmentRow]: ...

    def update_assessment_review_areas(self, assessment_id: int, review_areas: list[str]) -> None: ...

    def delete_assessments(self, questionnaire_id: int) -> int:
        """Delete assessments of a questionnaire together with their responses."""

    def create_response(self, assessment_id: int, question_id: int) -> int: ...

    def count_responses(self, question_ids: list[int]) -> int: ...

    def delete_responses(self, question_ids: list[int]) -> int: ...

    def response_review_areas(self, assessment_id: int) -> set[str]:
        """Return review areas of questions referenced by an assessment's responses."""

    def create_finding(self, title: str, question_id: int | None) -> int: ...

    def count_findings(self, question_ids: list[int]) -> int: ...

    def unlink_findings(self, question_ids: list[int]) -> int:
        """Null the question link of findings; the findings themselves stay."""


class HierarchyStore(Protocol):
    """Define the contract for opening one all-or-nothing store session."""

    def session(self) -> AbstractContextManager[HierarchySession]:
        """Open a transaction; commit on success, roll back on any exception."""
