# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""SQLite implementation of the questionnaire hierarchy store."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Sequence

from pqmap.store import (
    AssessmentRow,
    CategoryRow,
    NewCategory,
    NewQuestion,
    QuestionnaireRow,
    QuestionRow,
    StoreError,
)
from pqmap.taxonomy import QuestionnaireMetadata

logger = logging.getLogger(__name__)

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on old builds.
ID_CHUNK_SIZE: int = 500

SCHEMA: tuple[str, ...] = (
    "CREATE TABLE IF NOT EXISTS questionnaires ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "type TEXT NOT NULL, "
    "code TEXT NOT NULL, "
    "version TEXT NOT NULL, "
    "title_en TEXT NOT NULL, "
    "title_fr TEXT NOT NULL, "
    "description_en TEXT NOT NULL, "
    "description_fr TEXT NOT NULL, "
    "is_active INTEGER NOT NULL DEFAULT 1, "
    "created_at TEXT NOT NULL"
    ")",
    "CREATE TABLE IF NOT EXISTS categories ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "questionnaire_id INTEGER NOT NULL REFERENCES questionnaires(id), "
    "code TEXT NOT NULL, "
    "sort_order INTEGER NOT NULL, "
    "name_en TEXT NOT NULL, "
    "name_fr TEXT NOT NULL, "
    "description_en TEXT NOT NULL DEFAULT '', "
    "description_fr TEXT NOT NULL DEFAULT '', "
    "audit_area TEXT, "
    "critical_element TEXT, "
    "review_area TEXT"
    ")",
    "CREATE TABLE IF NOT EXISTS questions ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "questionnaire_id INTEGER NOT NULL REFERENCES questionnaires(id), "
    "category_id INTEGER NOT NULL REFERENCES categories(id), "
    "pq_number TEXT NOT NULL, "
    "question_text_en TEXT NOT NULL, "
    "question_text_fr TEXT NOT NULL, "
    "guidance_en TEXT, "
    "guidance_fr TEXT, "
    "audit_area TEXT, "
    "review_area TEXT, "
    "critical_element TEXT, "
    "is_priority_pq INTEGER NOT NULL DEFAULT 0, "
    "requires_on_site INTEGER NOT NULL DEFAULT 0, "
    "required_evidence TEXT NOT NULL DEFAULT '[]', "
    "sort_order INTEGER NOT NULL DEFAULT 0, "
    "is_active INTEGER NOT NULL DEFAULT 1"
    ")",
    "CREATE TABLE IF NOT EXISTS icao_references ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "question_id INTEGER NOT NULL REFERENCES questions(id), "
    "document TEXT NOT NULL, "
    "chapter TEXT"
    ")",
    "CREATE TABLE IF NOT EXISTS assessments ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "questionnaire_id INTEGER NOT NULL REFERENCES questionnaires(id), "
    "selected_audit_areas TEXT NOT NULL DEFAULT '[]', "
    "selected_review_areas TEXT NOT NULL DEFAULT '[]'"
    ")",
    "CREATE TABLE IF NOT EXISTS assessment_responses ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "assessment_id INTEGER NOT NULL REFERENCES assessments(id), "
    "question_id INTEGER NOT NULL REFERENCES questions(id)"
    ")",
    "CREATE TABLE IF NOT EXISTS findings ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "title TEXT NOT NULL, "
    "question_id INTEGER REFERENCES questions(id)"
    ")",
    "CREATE INDEX IF NOT EXISTS idx_questionnaires_type ON questionnaires(type)",
    "CREATE INDEX IF NOT EXISTS idx_categories_questionnaire_id ON categories(questionnaire_id)",
    "CREATE INDEX IF NOT EXISTS idx_questions_questionnaire_id ON questions(questionnaire_id)",
    "CREATE INDEX IF NOT EXISTS idx_questions_category_id ON questions(category_id)",
    "CREATE INDEX IF NOT EXISTS idx_responses_question_id ON assessment_responses(question_id)",
    "CREATE INDEX IF NOT EXISTS idx_findings_question_id ON findings(question_id)",
)


class SQLiteHierarchyStore:
    """Open transactional sessions on a SQLite database."""

    def __init__(self, db_path: Path) -> None:
        """Initialize store backend.

        Args:
            db_path: SQLite database file path.
        """
        self._db_path = db_path

    @contextmanager
    def session(self) -> Iterator["SQLiteHierarchySession"]:
        """Run the caller's work in one transaction.

        Yields:
            Session bound to the open transaction.

        Raises:
            StoreError: If the connection, schema setup or commit fails.
        """
        try:
            connection = sqlite3.connect(self._db_path)
        except sqlite3.DatabaseError as exc:
            raise StoreError(f"Cannot open database {self._db_path}: {exc}") from exc
        connection.row_factory = sqlite3.Row
        try:
            connection.execute("PRAGMA foreign_keys = ON")
            ensure_schema(connection)
            connection.execute("BEGIN")
        except sqlite3.DatabaseError as exc:
            connection.close()
            logger.warning(f"SQLite session setup failed (db_path={self._db_path} error={exc})")
            raise StoreError(str(exc)) from exc
        try:
            yield SQLiteHierarchySession(connection)
            connection.commit()
        except sqlite3.DatabaseError as exc:
            connection.rollback()
            logger.warning(f"SQLite transaction failed (db_path={self._db_path} error={exc})")
            raise StoreError(str(exc)) from exc
        except BaseException:
            connection.rollback()
            logger.warning(f"SQLite transaction rolled back (db_path={self._db_path})")
            raise
        finally:
            connection.close()


def ensure_schema(connection: sqlite3.Connection) -> None:
    """Create required tables and indexes when missing.

    Args:
        connection: Open SQLite connection.
    """
    for statement in SCHEMA:
        connection.execute(statement)


def _chunks(ids: Sequence[int]) -> Iterator[Sequence[int]]:
    for start in range(0, len(ids), ID_CHUNK_SIZE):
        yield ids[start : start + ID_CHUNK_SIZE]


def _placeholders(ids: Sequence[int]) -> str:
    return ", ".join("?" for _ in ids)


class SQLiteHierarchySession:
    """Implement hierarchy CRUD on one open SQLite transaction."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(sql, params)
        except sqlite3.DatabaseError as exc:
            logger.warning(f"SQLite statement failed (sql={sql[:60]!r} error={exc})")
            raise StoreError(str(exc)) from exc

    def _insert(self, sql: str, params: Sequence[Any]) -> int:
        row_id = self._execute(sql, params).lastrowid
        if row_id is None:
            raise StoreError("SQLite did not return a row id.")
        return int(row_id)

    def _execute_for_ids(self, template: str, ids: Sequence[int]) -> int:
        """Run a ``{ids}`` templated statement per id chunk and sum row counts."""
        total = 0
        for chunk in _chunks(ids):
            cursor = self._execute(template.format(ids=_placeholders(chunk)), chunk)
            total += cursor.rowcount
        return total

    def _count_for_ids(self, template: str, ids: Sequence[int]) -> int:
        total = 0
        for chunk in _chunks(ids):
            row = self._execute(template.format(ids=_placeholders(chunk)), chunk).fetchone()
            total += int(row[0])
        return total

    # Questionnaires

    def find_questionnaires(self, questionnaire_type: str) -> list[QuestionnaireRow]:
        rows = self._execute(
            "SELECT * FROM questionnaires WHERE type = ? ORDER BY created_at, id",
            (questionnaire_type,),
        ).fetchall()
        return [
            QuestionnaireRow(
                id=row["id"],
                type=row["type"],
                code=row["code"],
                version=row["version"],
                title_en=row["title_en"],
                title_fr=row["title_fr"],
                description_en=row["description_en"],
                description_fr=row["description_fr"],
                is_active=bool(row["is_active"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def create_questionnaire(
        self, questionnaire_type: str, metadata: QuestionnaireMetadata
    ) -> QuestionnaireRow:
        created_at = datetime.now(tz=timezone.utc).isoformat()
        questionnaire_id = self._insert(
            "INSERT INTO questionnaires ("
            "type, code, version, title_en, title_fr, description_en, description_fr, "
            "is_active, created_at"
            ") VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?)",
            (
                questionnaire_type,
                metadata.code,
                metadata.version,
                metadata.title_en,
                metadata.title_fr,
                metadata.description_en,
                metadata.description_fr,
                created_at,
            ),
        )
        return QuestionnaireRow(
            id=questionnaire_id,
            type=questionnaire_type,
            code=metadata.code,
            version=metadata.version,
            title_en=metadata.title_en,
            title_fr=metadata.title_fr,
            description_en=metadata.description_en,
            description_fr=metadata.description_fr,
            is_active=True,
            created_at=created_at,
        )

    def update_questionnaire_metadata(
        self, questionnaire_id: int, metadata: QuestionnaireMetadata
    ) -> None:
        self._execute(
            "UPDATE questionnaires SET code = ?, version = ?, title_en = ?, title_fr = ?, "
            "description_en = ?, description_fr = ?, is_active = 1 WHERE id = ?",
            (
                metadata.code,
                metadata.version,
                metadata.title_en,
                metadata.title_fr,
                metadata.description_en,
                metadata.description_fr,
                questionnaire_id,
            ),
        )

    def delete_questionnaire(self, questionnaire_id: int) -> int:
        return self._execute(
            "DELETE FROM questionnaires WHERE id = ?", (questionnaire_id,)
        ).rowcount

    # Categories

    def list_categories(self, questionnaire_id: int) -> list[CategoryRow]:
        rows = self._execute(
            "SELECT * FROM categories WHERE questionnaire_id = ? ORDER BY sort_order, id",
            (questionnaire_id,),
        ).fetchall()
        return [
            CategoryRow(
                id=row["id"],
                questionnaire_id=row["questionnaire_id"],
                code=row["code"],
                sort_order=row["sort_order"],
                name_en=row["name_en"],
                name_fr=row["name_fr"],
                audit_area=row["audit_area"],
                critical_element=row["critical_element"],
                review_area=row["review_area"],
            )
            for row in rows
        ]

    def create_category(self, category: NewCategory) -> int:
        return self._insert(
            "INSERT INTO categories ("
            "questionnaire_id, code, sort_order, name_en, name_fr, description_en, "
            "description_fr, audit_area, critical_element, review_area"
            ") VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                category.questionnaire_id,
                category.code,
                category.sort_order,
                category.name_en,
                category.name_fr,
                category.description_en,
                category.description_fr,
                category.audit_area,
                category.critical_element,
                category.review_area,
            ),
        )

    def update_category_review_area(self, category_id: int, review_area: str) -> None:
        self._execute(
            "UPDATE categories SET review_area = ? WHERE id = ?", (review_area, category_id)
        )

    def delete_categories(self, questionnaire_id: int) -> int:
        return self._execute(
            "DELETE FROM categories WHERE questionnaire_id = ?", (questionnaire_id,)
        ).rowcount

    # Questions

    def list_questions(self, questionnaire_id: int) -> list[QuestionRow]:
        rows = self._execute(
            "SELECT q.*, c.code AS category_code FROM questions q "
            "JOIN categories c ON c.id = q.category_id "
            "WHERE q.questionnaire_id = ? ORDER BY c.sort_order, q.sort_order, q.id",
            (questionnaire_id,),
        ).fetchall()
        return [
            QuestionRow(
                id=row["id"],
                questionnaire_id=row["questionnaire_id"],
                category_id=row["category_id"],
                category_code=row["category_code"],
                pq_number=row["pq_number"],
                question_text_en=row["question_text_en"],
                guidance_en=row["guidance_en"],
                review_area=row["review_area"],
                critical_element=row["critical_element"],
                required_evidence=json.loads(row["required_evidence"] or "[]"),
                sort_order=row["sort_order"],
            )
            for row in rows
        ]

    def create_question(self, question: NewQuestion) -> int:
        return self._insert(
            "INSERT INTO questions ("
            "questionnaire_id, category_id, pq_number, question_text_en, question_text_fr, "
            "guidance_en, guidance_fr, audit_area, review_area, critical_element, "
            "is_priority_pq, requires_on_site, required_evidence, sort_order"
            ") VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                question.questionnaire_id,
                question.category_id,
                question.pq_number,
                question.question_text_en,
                question.question_text_fr,
                question.guidance_en,
                question.guidance_fr,
                question.audit_area,
                question.review_area,
                question.critical_element,
                int(question.is_priority_pq),
                int(question.requires_on_site),
                json.dumps(question.required_evidence),
                question.sort_order,
            ),
        )

    def update_question_review_area(self, question_id: int, review_area: str) -> None:
        self._execute(
            "UPDATE questions SET review_area = ? WHERE id = ?", (review_area, question_id)
        )

    def delete_questions(self, questionnaire_id: int) -> int:
        return self._execute(
            "DELETE FROM questions WHERE questionnaire_id = ?", (questionnaire_id,)
        ).rowcount

    def count_questions_by_category(self, questionnaire_id: int) -> dict[str, int]:
        rows = self._execute(
            "SELECT c.code AS code, COUNT(q.id) AS total FROM categories c "
            "LEFT JOIN questions q ON q.category_id = c.id "
            "WHERE c.questionnaire_id = ? GROUP BY c.id ORDER BY c.sort_order, c.id",
            (questionnaire_id,),
        ).fetchall()
        return {row["code"]: int(row["total"]) for row in rows}

    # References

    def reference_text(self, question_ids: list[int]) -> dict[int, str]:
        parts: dict[int, list[str]] = {}
        for chunk in _chunks(question_ids):
            rows = self._execute(
                "SELECT question_id, document, chapter FROM icao_references "
                f"WHERE question_id IN ({_placeholders(chunk)}) ORDER BY id",
                chunk,
            ).fetchall()
            for row in rows:
                text = f"{row['document']} {row['chapter'] or ''}".strip()
                parts.setdefault(row["question_id"], []).append(text)
        return {question_id: " ".join(texts) for question_id, texts in parts.items()}

    def create_reference(self, question_id: int, document: str, chapter: str | None) -> int:
        return self._insert(
            "INSERT INTO icao_references (question_id, document, chapter) VALUES (?, ?, ?)",
            (question_id, document, chapter),
        )

    def delete_references(self, question_ids: list[int]) -> int:
        return self._execute_for_ids(
            "DELETE FROM icao_references WHERE question_id IN ({ids})", question_ids
        )

    # Assessments and responses

    def create_assessment(
        self,
        questionnaire_id: int,
        selected_audit_areas: list[str],
        selected_review_areas: list[str],
    ) -> int:
        return self._insert(
            "INSERT INTO assessments ("
            "questionnaire_id, selected_audit_areas, selected_review_areas"
            ") VALUES (?, ?, ?)",
            (
                questionnaire_id,
                json.dumps(selected_audit_areas),
                json.dumps(selected_review_areas),
            ),
        )

    def list_assessments(self) -> list[AssessmentRow]:
        rows = self._execute(
            "SELECT a.*, q.type AS questionnaire_type FROM assessments a "
            "JOIN questionnaires q ON q.id = a.questionnaire_id ORDER BY a.id"
        ).fetchall()
        return [
            AssessmentRow(
                id=row["id"],
                questionnaire_id=row["questionnaire_id"],
                questionnaire_type=row["questionnaire_type"],
                selected_audit_areas=json.loads(row["selected_audit_areas"] or "[]"),
                selected_review_areas=json.loads(row["selected_review_areas"] or "[]"),
            )
            for row in rows
        ]

    def update_assessment_review_areas(self, assessment_id: int, review_areas: list[str]) -> None:
        self._execute(
            "UPDATE assessments SET selected_review_areas = ? WHERE id = ?",
            (json.dumps(review_areas), assessment_id),
        )

    def delete_assessments(self, questionnaire_id: int) -> int:
        self._execute(
            "DELETE FROM assessment_responses WHERE assessment_id IN "
            "(SELECT id FROM assessments WHERE questionnaire_id = ?)",
            (questionnaire_id,),
        )
        return self._execute(
            "DELETE FROM assessments WHERE questionnaire_id = ?", (questionnaire_id,)
        ).rowcount

    def create_response(self, assessment_id: int, question_id: int) -> int:
        return self._insert(
            "INSERT INTO assessment_responses (assessment_id, question_id) VALUES (?, ?)",
            (assessment_id, question_id),
        )

    def count_responses(self, question_ids: list[int]) -> int:
        return self._count_for_ids(
            "SELECT COUNT(*) FROM assessment_responses WHERE question_id IN ({ids})",
            question_ids,
        )

    def delete_responses(self, question_ids: list[int]) -> int:
        return self._execute_for_ids(
            "DELETE FROM assessment_responses WHERE question_id IN ({ids})", question_ids
        )

    def response_review_areas(self, assessment_id: int) -> set[str]:
        rows = self._execute(
            "SELECT DISTINCT q.review_area FROM assessment_responses r "
            "JOIN questions q ON q.id = r.question_id "
            "WHERE r.assessment_id = ? AND q.review_area IS NOT NULL",
            (assessment_id,),
        ).fetchall()
        return {row[0] for row in rows}

    # Findings

    def create_finding(self, title: str, question_id: int | None) -> int:
        return self._insert(
            "INSERT INTO findings (title, question_id) VALUES (?, ?)", (title, question_id)
        )

    def count_findings(self, question_ids: list[int]) -> int:
        return self._count_for_ids(
            "SELECT COUNT(*) FROM findings WHERE question_id IN ({ids})", question_ids
        )

    def unlink_findings(self, question_ids: list[int]) -> int:
        return self._execute_for_ids(
            "UPDATE findings SET question_id = NULL WHERE question_id IN ({ids})", question_ids
        )
