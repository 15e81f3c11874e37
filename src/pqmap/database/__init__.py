# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Database backends for the questionnaire hierarchy store."""

from pqmap.database.sqlite import SQLiteHierarchySession, SQLiteHierarchyStore

__all__ = ["SQLiteHierarchySession", "SQLiteHierarchyStore"]
