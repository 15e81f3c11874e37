import sqlite3
from pathlib import Path

import pytest

from pqmap.annotation import annotate_review_areas, backfill_assessment_review_areas
from pqmap.database import SQLiteHierarchySession, SQLiteHierarchyStore
from pqmap.model import AcceptedQuestion
from pqmap.seeding import seed_questions
from pqmap.store import NewCategory, NewQuestion, StoreError
from pqmap.taxonomy import (
    ANS_QUESTIONNAIRE_TYPE,
    ANS_REVIEW_AREAS,
    SMS_QUESTIONNAIRE_TYPE,
    SOURCE_METADATA,
    QuestionnaireMetadata,
)

SMS_METADATA = QuestionnaireMetadata(
    code="CANSO-SOE-2024",
    version="2024",
    title_en="CANSO Standard of Excellence",
    title_fr="Norme d'excellence CANSO",
    description_en="Safety management system maturity",
    description_fr="Maturité du système de gestion de la sécurité",
)


def _question(item_key: str, text: str, critical_element: str = "CE_1") -> AcceptedQuestion:
    return AcceptedQuestion(
        item_key=item_key,
        question_text_en=text,
        question_text_fr=f"[FR] {text}",
        guidance_en="",
        guidance_fr="",
        references="",
        is_priority=False,
        requires_on_site=False,
        critical_element=critical_element,
    )


def _count(db_path: Path, sql: str) -> int:
    connection = sqlite3.connect(db_path)
    try:
        return int(connection.execute(sql).fetchone()[0])
    finally:
        connection.close()


def test_store_001_session_commits_on_success(store: SQLiteHierarchyStore) -> None:
    with store.session() as session:
        created = session.create_questionnaire(ANS_QUESTIONNAIRE_TYPE, SOURCE_METADATA)

    with store.session() as session:
        found = session.find_questionnaires(ANS_QUESTIONNAIRE_TYPE)
    assert [row.id for row in found] == [created.id]
    assert found[0].code == "USOAP-CMA-2024"
    assert found[0].is_active is True


def test_store_002_session_rolls_back_on_any_exception(store: SQLiteHierarchyStore) -> None:
    with pytest.raises(RuntimeError, match="boom"):
        with store.session() as session:
            session.create_questionnaire(ANS_QUESTIONNAIRE_TYPE, SOURCE_METADATA)
            raise RuntimeError("boom")

    with store.session() as session:
        assert session.find_questionnaires(ANS_QUESTIONNAIRE_TYPE) == []


def test_store_003_database_errors_surface_as_store_error(
    store: SQLiteHierarchyStore, db_path: Path
) -> None:
    with pytest.raises(StoreError):
        with store.session() as session:
            questionnaire = session.create_questionnaire(ANS_QUESTIONNAIRE_TYPE, SOURCE_METADATA)
            session.create_question(
                NewQuestion(
                    questionnaire_id=questionnaire.id,
                    category_id=999,
                    pq_number="7.001",
                    question_text_en="Has the State established a process?",
                    question_text_fr="",
                )
            )

    assert _count(db_path, "SELECT COUNT(*) FROM questionnaires") == 0


def test_store_004_unlink_findings_keeps_finding_rows(
    store: SQLiteHierarchyStore, db_path: Path
) -> None:
    with store.session() as session:
        questionnaire = session.create_questionnaire(ANS_QUESTIONNAIRE_TYPE, SOURCE_METADATA)
        category_id = session.create_category(
            NewCategory(
                questionnaire_id=questionnaire.id,
                code="ANS-CE1",
                sort_order=1,
                name_en="Legislation",
                name_fr="Législation",
            )
        )
        question_id = session.create_question(
            NewQuestion(
                questionnaire_id=questionnaire.id,
                category_id=category_id,
                pq_number="7.001",
                question_text_en="Has the State established a process?",
                question_text_fr="",
            )
        )
        session.create_finding("Outdated legislation", question_id)
        assert session.count_findings([question_id]) == 1
        assert session.unlink_findings([question_id]) == 1
        assert session.count_findings([question_id]) == 0

    assert _count(db_path, "SELECT COUNT(*) FROM findings WHERE question_id IS NULL") == 1


def test_seed_001_creates_questionnaire_categories_and_questions(
    store: SQLiteHierarchyStore,
) -> None:
    questions = [
        _question("7.001", "Has the State promulgated primary legislation?"),
        _question("7.101", "Has the State established ATS oversight?", "CE_3"),
        _question("7.102", "Has the State issued technical guidance?", "CE_9"),
    ]

    with store.session() as session:
        result = seed_questions(session, questions)
        rows = session.list_questions(result.questionnaire_id)

    assert result.questionnaire_created is True
    assert result.questionnaire_code == "USOAP-CMA-2024"
    assert result.categories_created == 8
    assert result.created == 3
    assert result.skipped == []
    assert result.by_category["ANS-CE1"] == 2
    assert result.by_category["ANS-CE3"] == 1
    assert len(result.by_category) == 8
    by_key = {row.pq_number: row for row in rows}
    assert by_key["7.101"].sort_order == 101
    assert by_key["7.102"].critical_element == "CE_1"


def test_seed_002_rerun_skips_existing_item_keys(store: SQLiteHierarchyStore) -> None:
    questions = [
        _question("7.001", "Has the State promulgated primary legislation?"),
        _question("7.002", "Has the State promulgated specific regulations?"),
    ]
    with store.session() as session:
        seed_questions(session, questions[:1])

    with store.session() as session:
        result = seed_questions(session, questions)

    assert result.questionnaire_created is False
    assert result.categories_created == 0
    assert result.created == 1
    assert result.skipped == ["7.001"]


def test_seed_003_refused_questions_are_counted_and_the_rest_are_seeded(
    store: SQLiteHierarchyStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    original_create_question = SQLiteHierarchySession.create_question

    def refusing_create_question(self: SQLiteHierarchySession, question: NewQuestion) -> int:
        if question.pq_number == "7.003":
            raise StoreError("constraint failed")
        return original_create_question(self, question)

    monkeypatch.setattr(SQLiteHierarchySession, "create_question", refusing_create_question)
    questions = [
        _question("7.001", "Has the State promulgated primary legislation?"),
        _question("7.002", "   "),
        _question("7.003", "Has the State established ATS oversight?"),
        _question("7.004", "Has the State issued technical guidance?"),
    ]

    with store.session() as session:
        result = seed_questions(session, questions)

    with store.session() as session:
        rows = session.list_questions(result.questionnaire_id)
    assert result.created == 2
    assert result.errored == ["7.002", "7.003"]
    assert result.skipped == []
    assert sorted(row.pq_number for row in rows) == ["7.001", "7.004"]


def test_annot_001_annotates_ans_questions_and_reports_cross_cutting_categories(
    store: SQLiteHierarchyStore,
) -> None:
    questions = [
        _question("7.303", "Has the State established a process?"),
        _question("7.997", "Does the State provide search and rescue services?"),
        _question("7.998", "Has the State approved the programme budget?"),
    ]
    with store.session() as session:
        seeded = seed_questions(session, questions)
        session.create_assessment(seeded.questionnaire_id, ["ANS"], [])

    with store.session() as session:
        result = annotate_review_areas(session)
        rows = {row.pq_number: row for row in session.list_questions(seeded.questionnaire_id)}
        assessments = session.list_assessments()

    assert result.categories_updated == 0
    assert result.categories_skipped == 8
    assert result.questions_updated == 2
    assert result.questions_content_mapped == 1
    assert result.questions_skipped == 1
    assert any("7.998" in warning for warning in result.warnings)
    assert rows["7.303"].review_area == "CNS"
    assert rows["7.997"].review_area == "SAR"
    assert rows["7.998"].review_area is None
    assert assessments[0].selected_review_areas == list(ANS_REVIEW_AREAS)
    assert result.assessments_updated == 1


def test_annot_002_maps_sms_rows_and_derives_narrow_assessment_areas(
    store: SQLiteHierarchyStore,
) -> None:
    with store.session() as session:
        sms = session.create_questionnaire(SMS_QUESTIONNAIRE_TYPE, SMS_METADATA)
        sms_category = session.create_category(
            NewCategory(
                questionnaire_id=sms.id, code="SOE-1", sort_order=1, name_en="Policy", name_fr="Politique"
            )
        )
        session.create_question(
            NewQuestion(
                questionnaire_id=sms.id,
                category_id=sms_category,
                pq_number="SOE-1.1",
                question_text_en="Is there a safety policy?",
                question_text_fr="",
            )
        )
        sms_assessment = session.create_assessment(sms.id, [], [])

        ans = session.create_questionnaire(ANS_QUESTIONNAIRE_TYPE, SOURCE_METADATA)
        cns_category = session.create_category(
            NewCategory(
                questionnaire_id=ans.id, code="ANS-TELECOM", sort_order=1, name_en="Telecom", name_fr="Télécom"
            )
        )
        met_question = session.create_question(
            NewQuestion(
                questionnaire_id=ans.id,
                category_id=cns_category,
                pq_number="7.412",
                question_text_en="Does the State provide aeronautical MET services?",
                question_text_fr="",
            )
        )
        narrow = session.create_assessment(ans.id, ["ATM"], [])
        session.create_response(narrow, met_question)
        untouched = session.create_assessment(ans.id, ["ATM"], ["ATS"])

    with store.session() as session:
        result = annotate_review_areas(session)
        categories = session.list_categories(ans.id) + session.list_categories(sms.id)
        sms_rows = session.list_questions(sms.id)
        assessments = {row.id: row for row in session.list_assessments()}

    assert {category.code: category.review_area for category in categories} == {
        "ANS-TELECOM": "CNS",
        "SOE-1": "SMS",
    }
    assert sms_rows[0].review_area == "SMS"
    assert result.assessments_updated == 2
    assert assessments[sms_assessment].selected_review_areas == ["SMS"]
    assert assessments[narrow].selected_review_areas == ["MET"]
    assert assessments[untouched].selected_review_areas == ["ATS"]


def test_annot_003_backfill_falls_back_to_all_ans_areas(store: SQLiteHierarchyStore) -> None:
    with store.session() as session:
        ans = session.create_questionnaire(ANS_QUESTIONNAIRE_TYPE, SOURCE_METADATA)
        assessment = session.create_assessment(ans.id, ["ATM"], [])

        assert backfill_assessment_review_areas(session) == 1
        assert backfill_assessment_review_areas(session) == 0
        (row,) = session.list_assessments()

    assert row.id == assessment
    assert row.selected_review_areas == list(ANS_REVIEW_AREAS)


def test_annot_004_owning_category_code_decides_when_every_tier_misses(
    store: SQLiteHierarchyStore,
) -> None:
    with store.session() as session:
        ans = session.create_questionnaire(ANS_QUESTIONNAIRE_TYPE, SOURCE_METADATA)
        telecom = session.create_category(
            NewCategory(
                questionnaire_id=ans.id,
                code="ANS-TELECOM",
                sort_order=1,
                name_en="Telecom",
                name_fr="Télécom",
            )
        )
        session.create_question(
            NewQuestion(
                questionnaire_id=ans.id,
                category_id=telecom,
                pq_number="7.995",
                question_text_en="Has the State approved the programme budget?",
                question_text_fr="",
            )
        )
        session.create_question(
            NewQuestion(
                questionnaire_id=ans.id,
                category_id=telecom,
                pq_number="7.996",
                question_text_en="Does the State provide search and rescue services?",
                question_text_fr="",
            )
        )

    with store.session() as session:
        result = annotate_review_areas(session)
        rows = {row.pq_number: row for row in session.list_questions(ans.id)}

    assert rows["7.995"].review_area == "CNS"
    assert rows["7.996"].review_area == "SAR"
    assert result.questions_updated == 2
    assert result.questions_content_mapped == 1
    assert result.questions_skipped == 0
