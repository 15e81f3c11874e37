# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Re-seed a questionnaire hierarchy into the review-area taxonomy.

The twelve steps run strictly in order inside one store session:

 1. identify the questionnaire's questions
 2. delete assessment responses referencing them
 3. unlink findings from them (findings are kept)
 4. delete their reference citations
 5. delete the questions
 6. delete the old categories
 7. remove duplicate questionnaires of the same type
 8. update questionnaire metadata
 9. create the taxonomy categories
10. create renumbered questions per category
11. create authored placeholder questions
12. backfill empty assessment review-area selections

Any failure aborts the run; the session rolls back to the pre-migration
state and the error names the failed step.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from pqmap.annotation import backfill_assessment_review_areas
from pqmap.classifier import ClassificationReport
from pqmap.model import AcceptedQuestion, PlaceholderQuestion, TargetCategory, item_sort_key
from pqmap.store import (
    HierarchySession,
    HierarchyStore,
    NewCategory,
    NewQuestion,
    QuestionnaireRow,
)
from pqmap.taxonomy import (
    ANS_AUDIT_AREA,
    ANS_CATEGORIES,
    ANS_METADATA,
    ANS_QUESTIONNAIRE_TYPE,
    PLACEHOLDER_QUESTIONS,
    QuestionnaireMetadata,
)

logger = logging.getLogger(__name__)

QUESTION_NUMBER_WIDTH: int = 3


class MigrationPreconditionError(RuntimeError):
    """Represent a missing prerequisite detected before any destructive step."""


class MigrationStepError(RuntimeError):
    """Represent a failed migration step.

    Attributes:
        step_number: Number of the failed step (1-based).
        step_name: Name of the failed step.
        completed_steps: Names of the steps completed before the failure.
    """

    def __init__(
        self, step_number: int, step_name: str, completed_steps: list[str], cause: str
    ) -> None:
        super().__init__(f"Step {step_number} ({step_name}) failed: {cause}")
        self.step_number = step_number
        self.step_name = step_name
        self.completed_steps = completed_steps


@dataclass(frozen=True)
class StepLog:
    """Represent one completed step and the rows it touched."""

    number: int
    name: str
    count: int


@dataclass
class MigrationResult:
    """Collect the outcome of one migration run."""

    questionnaire_id: int = 0
    previous_code: str = ""
    new_code: str = ""
    responses_found: int = 0
    findings_found: int = 0
    before: dict[str, int] = field(default_factory=dict)
    after: dict[str, int] = field(default_factory=dict)
    created_by_category: dict[str, int] = field(default_factory=dict)
    placeholders_created: int = 0
    unclassified: list[str] = field(default_factory=list)
    steps: list[StepLog] = field(default_factory=list)

    @property
    def questions_created(self) -> int:
        return sum(self.created_by_category.values())

    def count(self, name: str) -> int:
        for step in self.steps:
            if step.name == name:
                return step.count
        return 0


def question_number(prefix: str, position: int) -> str:
    """Build a renumbered item key such as ``ATM001``."""
    return f"{prefix}{position:0{QUESTION_NUMBER_WIDTH}d}"


def group_by_category(
    questions: Sequence[AcceptedQuestion],
    report: ClassificationReport,
    categories: Sequence[TargetCategory],
) -> dict[str, list[AcceptedQuestion]]:
    """Group classified questions by review area in taxonomy order.

    Args:
        questions: Accepted questions.
        report: One decision per question.
        categories: Target taxonomy.

    Returns:
        Questions per review area, each sorted by numeric item key.

    Raises:
        MigrationPreconditionError: If decisions and questions disagree or a
            decision names an area outside the taxonomy.
    """
    by_key = {question.item_key: question for question in questions}
    decided = {decision.item_key for decision in report.decisions}
    if decided != set(by_key) or len(report.decisions) != len(by_key):
        raise MigrationPreconditionError(
            "Classification decisions do not match the question set "
            f"(questions={len(by_key)} decisions={len(report.decisions)})"
        )
    ordered = sorted(categories, key=lambda category: category.sort_order)
    grouped: dict[str, list[AcceptedQuestion]] = {category.review_area: [] for category in ordered}
    for decision in report.decisions:
        if decision.category is None:
            continue
        if decision.category not in grouped:
            raise MigrationPreconditionError(
                f"Decision for {decision.item_key} names unknown review area {decision.category}"
            )
        grouped[decision.category].append(by_key[decision.item_key])
    for members in grouped.values():
        members.sort(key=lambda question: item_sort_key(question.item_key))
    return grouped


class MigrationOrchestrator:
    """Replace a questionnaire's hierarchy with the target taxonomy."""

    def __init__(
        self,
        store: HierarchyStore,
        questionnaire_type: str = ANS_QUESTIONNAIRE_TYPE,
        categories: Sequence[TargetCategory] = ANS_CATEGORIES,
        metadata: QuestionnaireMetadata = ANS_METADATA,
        placeholders: Sequence[PlaceholderQuestion] = PLACEHOLDER_QUESTIONS,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Store opening the migration transaction.
            questionnaire_type: Type of the questionnaire to reorganize.
            categories: Target taxonomy categories.
            metadata: Questionnaire metadata written in step 8.
            placeholders: Authored questions created in step 11.

        Raises:
            MigrationPreconditionError: If a placeholder names an area that
                no category owns.
        """
        self._store = store
        self._questionnaire_type = questionnaire_type
        self._categories = sorted(categories, key=lambda category: category.sort_order)
        self._metadata = metadata
        self._placeholders = list(placeholders)
        areas = {category.review_area for category in self._categories}
        orphans = sorted({p.review_area for p in self._placeholders} - areas)
        if orphans:
            raise MigrationPreconditionError(
                f"Placeholder questions reference unknown review areas: {', '.join(orphans)}"
            )

    def run(
        self, questions: Sequence[AcceptedQuestion], report: ClassificationReport
    ) -> MigrationResult:
        """Run all steps in one transaction.

        Args:
            questions: Accepted questions to file under the new categories.
            report: Classification decisions for ``questions``.

        Returns:
            Step log, before/after breakdowns and unclassified keys.

        Raises:
            MigrationPreconditionError: If the questionnaire is missing or the
                inputs are inconsistent. Nothing is changed.
            MigrationStepError: If a step fails. The store is rolled back.
            StoreError: If the transaction cannot be opened or committed.
        """
        grouped = group_by_category(questions, report, self._categories)
        result = MigrationResult(unclassified=report.unclassified)
        if result.unclassified:
            logger.warning(
                f"Unclassified questions are left out of the new hierarchy "
                f"(count={len(result.unclassified)} keys={','.join(result.unclassified)})"
            )
        with self._store.session() as session:
            questionnaires = session.find_questionnaires(self._questionnaire_type)
            if not questionnaires:
                raise MigrationPreconditionError(
                    f"No questionnaire of type {self._questionnaire_type} found; seed it first"
                )
            run = _MigrationRun(
                session=session,
                primary=questionnaires[0],
                duplicates=questionnaires[1:],
                grouped=grouped,
                result=result,
                categories=self._categories,
                metadata=self._metadata,
                placeholders=self._placeholders,
            )
            run.execute()
        logger.info(
            f"Migration committed (questionnaire={result.new_code} "
            f"questions_created={result.questions_created} "
            f"placeholders={result.placeholders_created})"
        )
        return result


class _MigrationRun:
    """Hold the state of one migration while its steps execute."""

    def __init__(
        self,
        session: HierarchySession,
        primary: QuestionnaireRow,
        duplicates: list[QuestionnaireRow],
        grouped: dict[str, list[AcceptedQuestion]],
        result: MigrationResult,
        categories: Sequence[TargetCategory],
        metadata: QuestionnaireMetadata,
        placeholders: Sequence[PlaceholderQuestion],
    ) -> None:
        self.session = session
        self.primary = primary
        self.duplicates = duplicates
        self.grouped = grouped
        self.result = result
        self.categories = categories
        self.metadata = metadata
        self.placeholders = placeholders
        self.question_ids: list[int] = []
        self.category_ids: dict[str, int] = {}
        result.questionnaire_id = primary.id
        result.previous_code = primary.code

    def execute(self) -> None:
        steps: list[tuple[str, Callable[[], int]]] = [
            ("identify questions", self.identify_questions),
            ("delete responses", lambda: self.session.delete_responses(self.question_ids)),
            ("unlink findings", lambda: self.session.unlink_findings(self.question_ids)),
            ("delete references", lambda: self.session.delete_references(self.question_ids)),
            ("delete questions", lambda: self.session.delete_questions(self.primary.id)),
            ("delete categories", lambda: self.session.delete_categories(self.primary.id)),
            ("remove duplicate questionnaires", self.remove_duplicates),
            ("update questionnaire metadata", self.update_metadata),
            ("create categories", self.create_categories),
            ("create questions", self.create_questions),
            ("create placeholder questions", self.create_placeholders),
            ("backfill assessment review areas", self.backfill_assessments),
        ]
        for number, (name, action) in enumerate(steps, start=1):
            logger.info(f"Migration step started (step={number} name={name})")
            try:
                count = action()
            except Exception as exc:
                completed = [step.name for step in self.result.steps]
                logger.error(
                    f"Migration step failed, rolling back "
                    f"(step={number} name={name} completed={len(completed)} error={exc})"
                )
                raise MigrationStepError(number, name, completed, str(exc)) from exc
            self.result.steps.append(StepLog(number=number, name=name, count=count))
            logger.info(f"Migration step completed (step={number} name={name} count={count})")
        self.result.after = self.session.count_questions_by_category(self.primary.id)

    def backfill_assessments(self) -> int:
        return backfill_assessment_review_areas(self.session)

    def identify_questions(self) -> int:
        self.question_ids = [row.id for row in self.session.list_questions(self.primary.id)]
        self.result.before = self.session.count_questions_by_category(self.primary.id)
        self.result.responses_found = self.session.count_responses(self.question_ids)
        self.result.findings_found = self.session.count_findings(self.question_ids)
        logger.info(
            f"Existing data inspected (questions={len(self.question_ids)} "
            f"responses={self.result.responses_found} findings={self.result.findings_found})"
        )
        return len(self.question_ids)

    def remove_duplicates(self) -> int:
        session = self.session
        for duplicate in self.duplicates:
            ids = [row.id for row in session.list_questions(duplicate.id)]
            responses = session.delete_responses(ids)
            findings = session.unlink_findings(ids)
            session.delete_references(ids)
            session.delete_questions(duplicate.id)
            session.delete_categories(duplicate.id)
            assessments = session.delete_assessments(duplicate.id)
            session.delete_questionnaire(duplicate.id)
            logger.warning(
                f"Duplicate questionnaire removed (code={duplicate.code} id={duplicate.id} "
                f"questions={len(ids)} responses={responses} findings_unlinked={findings} "
                f"assessments={assessments})"
            )
        return len(self.duplicates)

    def update_metadata(self) -> int:
        metadata = self.metadata
        self.session.update_questionnaire_metadata(self.primary.id, metadata)
        self.result.new_code = metadata.code
        return 1

    def create_categories(self) -> int:
        for category in self.categories:
            self.category_ids[category.review_area] = self.session.create_category(
                NewCategory(
                    questionnaire_id=self.primary.id,
                    code=category.code,
                    sort_order=category.sort_order,
                    name_en=category.name_en,
                    name_fr=category.name_fr,
                    description_en=category.description_en,
                    description_fr=category.description_fr,
                    audit_area=ANS_AUDIT_AREA,
                    review_area=category.review_area,
                )
            )
        return len(self.category_ids)

    def create_questions(self) -> int:
        total = 0
        for category in self.categories:
            members = self.grouped.get(category.review_area, [])
            for position, question in enumerate(members, start=1):
                self.session.create_question(
                    NewQuestion(
                        questionnaire_id=self.primary.id,
                        category_id=self.category_ids[category.review_area],
                        pq_number=question_number(category.code, position),
                        question_text_en=question.question_text_en,
                        question_text_fr=question.question_text_fr,
                        guidance_en=question.guidance_en or None,
                        guidance_fr=question.guidance_fr or None,
                        audit_area=ANS_AUDIT_AREA,
                        review_area=category.review_area,
                        critical_element=question.critical_element,
                        is_priority_pq=question.is_priority,
                        requires_on_site=question.requires_on_site,
                        sort_order=position,
                        required_evidence=[question.references] if question.references else [],
                    )
                )
            self.result.created_by_category[category.code] = len(members)
            if members:
                logger.info(
                    f"Category populated (code={category.code} questions={len(members)} "
                    f"range={question_number(category.code, 1)}-"
                    f"{question_number(category.code, len(members))})"
                )
            total += len(members)
        return total

    def create_placeholders(self) -> int:
        created = 0
        for category in self.categories:
            position = len(self.grouped.get(category.review_area, []))
            for placeholder in self.placeholders:
                if placeholder.review_area != category.review_area:
                    continue
                position += 1
                self.session.create_question(
                    NewQuestion(
                        questionnaire_id=self.primary.id,
                        category_id=self.category_ids[category.review_area],
                        pq_number=question_number(category.code, position),
                        question_text_en=placeholder.question_text_en,
                        question_text_fr=placeholder.question_text_fr,
                        guidance_en=placeholder.guidance_en,
                        guidance_fr=placeholder.guidance_fr,
                        audit_area=ANS_AUDIT_AREA,
                        review_area=category.review_area,
                        sort_order=position,
                    )
                )
                created += 1
        self.result.placeholders_created = created
        return created
