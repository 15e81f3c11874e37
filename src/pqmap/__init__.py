# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Protocol question parsing, review-area classification and re-seeding."""
