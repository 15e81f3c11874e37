# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Review-area annotation of persisted rows and assessment backfill."""

import logging
from dataclasses import dataclass, field

from pqmap.classifier import ClassificationSubject, PrefixRuleStrategy, TaxonomyClassifier
from pqmap.store import AssessmentRow, HierarchySession
from pqmap.taxonomy import (
    ANS_AUDIT_AREA,
    ANS_QUESTIONNAIRE_TYPE,
    ANS_REVIEW_AREAS,
    SMS_QUESTIONNAIRE_TYPE,
    SMS_REVIEW_AREA,
)

logger = logging.getLogger(__name__)


@dataclass
class AnnotationResult:
    """Collect counters and follow-up items of one annotation run."""

    categories_updated: int = 0
    categories_skipped: int = 0
    questions_updated: int = 0
    questions_content_mapped: int = 0
    questions_skipped: int = 0
    assessments_updated: int = 0
    warnings: list[str] = field(default_factory=list)


def default_review_areas(session: HierarchySession, assessment: AssessmentRow) -> list[str]:
    """Return the full-coverage review areas for an assessment.

    SMS questionnaires map to ``SMS``. ANS assessments with a broad audit
    scope get every ANS review area; narrower ones get the areas of the
    questions their responses reference, falling back to every ANS area.
    """
    if assessment.questionnaire_type == SMS_QUESTIONNAIRE_TYPE:
        return [SMS_REVIEW_AREA]
    audit_areas = assessment.selected_audit_areas
    if not audit_areas or ANS_AUDIT_AREA in audit_areas:
        return list(ANS_REVIEW_AREAS)
    referenced = session.response_review_areas(assessment.id)
    derived = [area for area in ANS_REVIEW_AREAS if area in referenced]
    return derived or list(ANS_REVIEW_AREAS)


def backfill_assessment_review_areas(session: HierarchySession) -> int:
    """Fill empty assessment review-area selections.

    Returns:
        Number of assessments updated.
    """
    updated = 0
    for assessment in session.list_assessments():
        if assessment.selected_review_areas:
            continue
        areas = default_review_areas(session, assessment)
        session.update_assessment_review_areas(assessment.id, areas)
        updated += 1
        logger.debug(
            f"Assessment review areas backfilled "
            f"(assessment_id={assessment.id} areas={','.join(areas)})"
        )
    logger.info(f"Assessment backfill completed (updated={updated})")
    return updated


def annotate_review_areas(
    session: HierarchySession, classifier: TaxonomyClassifier | None = None
) -> AnnotationResult:
    """Set review areas on categories and questions that have none.

    ANS categories are mapped from their code; CE-based categories span
    several areas and are reported instead. ANS questions are classified by
    item key prefix or content and otherwise inherit their category's area.
    SMS questionnaires map wholesale to ``SMS``.

    Args:
        session: Open store session.
        classifier: Question classifier; the default tiers when omitted.

    Returns:
        Counters and warnings for manual follow-up.
    """
    classifier = classifier or TaxonomyClassifier()
    prefix_rules = PrefixRuleStrategy()
    result = AnnotationResult()

    for questionnaire in session.find_questionnaires(ANS_QUESTIONNAIRE_TYPE):
        category_areas: dict[int, str | None] = {}
        for category in session.list_categories(questionnaire.id):
            area = category.review_area
            if area is None:
                area = prefix_rules.match_category_code(category.code)
                if area is None:
                    result.categories_skipped += 1
                    result.warnings.append(
                        f"Category {category.code} ({category.name_en}) has no direct review "
                        f"area mapping (cross-cutting category)"
                    )
                else:
                    session.update_category_review_area(category.id, area)
                    result.categories_updated += 1
            category_areas[category.id] = area

        questions = [
            row for row in session.list_questions(questionnaire.id) if row.review_area is None
        ]
        references = session.reference_text([row.id for row in questions])
        for row in questions:
            reference_parts = [references.get(row.id, ""), *row.required_evidence]
            decision = classifier.classify(
                ClassificationSubject(
                    item_key=row.pq_number,
                    question_text=row.question_text_en,
                    references=" ".join(part for part in reference_parts if part),
                    guidance=row.guidance_en or "",
                )
            )
            area = decision.category or category_areas.get(row.category_id)
            if area is None:
                result.questions_skipped += 1
                result.warnings.append(
                    f"Question {row.pq_number} could not be mapped to a review area"
                )
                continue
            if decision.provenance == "keyword-score":
                result.questions_content_mapped += 1
            session.update_question_review_area(row.id, area)
            result.questions_updated += 1

    for questionnaire in session.find_questionnaires(SMS_QUESTIONNAIRE_TYPE):
        for category in session.list_categories(questionnaire.id):
            if category.review_area is None:
                session.update_category_review_area(category.id, SMS_REVIEW_AREA)
                result.categories_updated += 1
        for row in session.list_questions(questionnaire.id):
            if row.review_area is None:
                session.update_question_review_area(row.id, SMS_REVIEW_AREA)
                result.questions_updated += 1

    result.assessments_updated = backfill_assessment_review_areas(session)
    for warning in result.warnings:
        logger.warning(warning)
    logger.info(
        f"Annotation completed (categories_updated={result.categories_updated} "
        f"questions_updated={result.questions_updated} "
        f"questions_skipped={result.questions_skipped} "
        f"assessments_updated={result.assessments_updated})"
    )
    return result
