# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Flat seed of accepted questions into critical-element categories."""

import logging
from dataclasses import dataclass, field

from pqmap.model import AcceptedQuestion, item_sort_key
from pqmap.store import (
    HierarchySession,
    NewCategory,
    NewQuestion,
    QuestionnaireRow,
    StoreError,
)
from pqmap.taxonomy import (
    ANS_AUDIT_AREA,
    ANS_QUESTIONNAIRE_TYPE,
    CRITICAL_ELEMENT_CATEGORIES,
    SOURCE_METADATA,
)
from pqmap.validator import untranslated

logger = logging.getLogger(__name__)

FALLBACK_CRITICAL_ELEMENT: str = "CE_1"


@dataclass(frozen=True)
class SeedResult:
    """Represent the counters of one seed run."""

    questionnaire_id: int
    questionnaire_code: str
    questionnaire_created: bool
    categories_created: int
    created: int
    skipped: list[str] = field(default_factory=list)
    errored: list[str] = field(default_factory=list)
    by_category: dict[str, int] = field(default_factory=dict)


def _find_or_create_questionnaire(session: HierarchySession) -> tuple[QuestionnaireRow, bool]:
    existing = session.find_questionnaires(ANS_QUESTIONNAIRE_TYPE)
    if existing:
        logger.info(f"Using existing questionnaire (code={existing[0].code} id={existing[0].id})")
        return existing[0], False
    created = session.create_questionnaire(ANS_QUESTIONNAIRE_TYPE, SOURCE_METADATA)
    logger.info(f"Questionnaire created (code={created.code} id={created.id})")
    return created, True


def seed_questions(session: HierarchySession, questions: list[AcceptedQuestion]) -> SeedResult:
    """Insert accepted questions under their critical-element category.

    Questionnaire and categories are found or created; questions whose item
    key already exists in the questionnaire are skipped, so the seed can be
    re-run against a partially seeded store. A question with empty text, or one the
    store refuses, is logged and counted as errored; the others are still inserted.

    Args:
        session: Open store session.
        questions: Accepted questions from the hand-off artifact.

    Returns:
        Seed counters and the per-category question counts afterwards.
    """
    questionnaire, questionnaire_created = _find_or_create_questionnaire(session)
    categories = {
        category.code: category.id for category in session.list_categories(questionnaire.id)
    }
    category_ids: dict[str, int] = {}
    categories_created = 0
    for config in CRITICAL_ELEMENT_CATEGORIES:
        category_id = categories.get(config.code)
        if category_id is None:
            category_id = session.create_category(
                NewCategory(
                    questionnaire_id=questionnaire.id,
                    code=config.code,
                    sort_order=config.sort_order,
                    name_en=config.name_en,
                    name_fr=config.name_fr,
                    description_en=f"Protocol questions for {config.name_en}",
                    description_fr=f"Questions du protocole pour {config.name_fr}",
                    audit_area=ANS_AUDIT_AREA,
                    critical_element=config.critical_element,
                )
            )
            categories_created += 1
            logger.info(f"Category created (code={config.code})")
        category_ids[config.critical_element] = category_id

    existing_keys = {row.pq_number for row in session.list_questions(questionnaire.id)}
    created = 0
    skipped: list[str] = []
    errored: list[str] = []
    for question in questions:
        if question.item_key in existing_keys:
            skipped.append(question.item_key)
            continue
        try:
            _insert_question(session, questionnaire.id, category_ids, question)
        except (StoreError, ValueError) as exc:
            logger.warning(f"Question not seeded (item_key={question.item_key} error={exc})")
            errored.append(question.item_key)
            continue
        existing_keys.add(question.item_key)
        created += 1
    logger.info(
        f"Seed completed (questionnaire={questionnaire.code} created={created} "
        f"skipped={len(skipped)} errored={len(errored)})"
    )
    return SeedResult(
        questionnaire_id=questionnaire.id,
        questionnaire_code=questionnaire.code,
        questionnaire_created=questionnaire_created,
        categories_created=categories_created,
        created=created,
        skipped=skipped,
        errored=errored,
        by_category=session.count_questions_by_category(questionnaire.id),
    )


def _insert_question(
    session: HierarchySession,
    questionnaire_id: int,
    category_ids: dict[str, int],
    question: AcceptedQuestion,
) -> None:
    if not question.question_text_en or not question.question_text_en.strip():
        raise ValueError("question text is empty")
    critical_element = question.critical_element
    if critical_element not in category_ids:
        logger.warning(
            f"Unknown critical element, using fallback "
            f"(item_key={question.item_key} critical_element={critical_element})"
        )
        critical_element = FALLBACK_CRITICAL_ELEMENT
    numeric = item_sort_key(question.item_key)
    session.create_question(
        NewQuestion(
            questionnaire_id=questionnaire_id,
            category_id=category_ids[critical_element],
            pq_number=question.item_key,
            question_text_en=question.question_text_en,
            question_text_fr=question.question_text_fr or untranslated(question.question_text_en),
            guidance_en=question.guidance_en,
            guidance_fr=question.guidance_fr,
            audit_area=ANS_AUDIT_AREA,
            critical_element=critical_element,
            is_priority_pq=question.is_priority,
            requires_on_site=question.requires_on_site,
            sort_order=numeric[-1] if numeric else 0,
            required_evidence=[question.references] if question.references else [],
        )
    )
