# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Review-area classification with ordered, first-match-wins strategies."""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Mapping, Protocol, Sequence

from pqmap.model import AcceptedQuestion, ClassificationDecision, Provenance
from pqmap.taxonomy import (
    ANS_REVIEW_AREAS,
    CATEGORY_CODE_SUBSTRINGS,
    ITEM_KEY_PREFIXES,
    KEYWORD_RULES,
    REVIEW_AREA_LOOKUP,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationSubject:
    """Represent the signals available for classifying one question.

    Attributes:
        item_key: Question identifier.
        question_text: Question text.
        references: Reference citations.
        guidance: Guidance text.
    """

    item_key: str
    question_text: str
    references: str = ""
    guidance: str = ""

    @classmethod
    def from_question(cls, question: AcceptedQuestion) -> "ClassificationSubject":
        return cls(
            item_key=question.item_key,
            question_text=question.question_text_en,
            references=question.references,
            guidance=question.guidance_en,
        )


@dataclass(frozen=True)
class StrategyOutcome:
    """Represent a successful strategy match."""

    category: str
    score: int | None = None
    runner_up_margin: int | None = None
    low_confidence: bool = False
    scores: dict[str, int] = field(default_factory=dict)


class ClassificationStrategy(Protocol):
    """Define one classification tier."""

    name: Provenance

    def classify(self, subject: ClassificationSubject) -> StrategyOutcome | None:
        """Return a review area, or ``None`` to fall through to the next tier."""


class ExactLookupStrategy:
    """Map item keys through a hand-curated table."""

    name: Provenance = "exact-lookup"

    def __init__(self, table: Mapping[str, str] = REVIEW_AREA_LOOKUP) -> None:
        self._table = table

    def classify(self, subject: ClassificationSubject) -> StrategyOutcome | None:
        area = self._table.get(subject.item_key.strip())
        return StrategyOutcome(category=area) if area else None


class PrefixRuleStrategy:
    """Map item key prefixes and category code substrings to review areas."""

    name: Provenance = "prefix-rule"

    def __init__(
        self,
        key_prefixes: Sequence[tuple[str, tuple[str, ...]]] = ITEM_KEY_PREFIXES,
        code_substrings: Sequence[tuple[str, tuple[str, ...]]] = CATEGORY_CODE_SUBSTRINGS,
    ) -> None:
        self._key_prefixes = key_prefixes
        self._code_substrings = code_substrings

    def classify(self, subject: ClassificationSubject) -> StrategyOutcome | None:
        area = self.match_item_key(subject.item_key)
        return StrategyOutcome(category=area) if area else None

    def match_item_key(self, item_key: str) -> str | None:
        upper = item_key.upper().strip()
        for area, prefixes in self._key_prefixes:
            if upper.startswith(prefixes):
                return area
        return None

    def match_category_code(self, code: str) -> str | None:
        """Return the area implied by a category code, consulted only after every tier."""
        upper = code.upper()
        for area, substrings in self._code_substrings:
            if any(substring in upper for substring in substrings):
                return area
        return None


class KeywordScoreStrategy:
    """Score review areas by keyword and reference pattern hits."""

    name: Provenance = "keyword-score"

    def __init__(
        self,
        rules: Mapping[str, Sequence[str]] = KEYWORD_RULES,
        area_order: Sequence[str] = ANS_REVIEW_AREAS,
    ) -> None:
        """Initialize scoring rules.

        Args:
            rules: Regular expressions per review area.
            area_order: Canonical area order; ties resolve to the earliest.
        """
        self._area_order = [area for area in area_order if area in rules]
        self._patterns = {
            area: [re.compile(pattern) for pattern in rules[area]] for area in self._area_order
        }

    def score(self, subject: ClassificationSubject) -> dict[str, int]:
        combined = " ".join(
            (subject.question_text, subject.references, subject.guidance)
        ).upper()
        return {
            area: sum(len(pattern.findall(combined)) for pattern in patterns)
            for area, patterns in self._patterns.items()
        }

    def classify(self, subject: ClassificationSubject) -> StrategyOutcome | None:
        scores = self.score(subject)
        best = max(scores.values(), default=0)
        if best == 0:
            return None
        leaders = [area for area in self._area_order if scores[area] == best]
        others = sorted(
            (value for area, value in scores.items() if area != leaders[0]), reverse=True
        )
        margin = best - others[0] if others else best
        low_confidence = len(leaders) > 1
        if low_confidence:
            logger.warning(
                f"Keyword score tie broken by taxonomy order "
                f"(item_key={subject.item_key} tied={','.join(leaders)} "
                f"chosen={leaders[0]} score={best})"
            )
        return StrategyOutcome(
            category=leaders[0],
            score=best,
            runner_up_margin=margin,
            low_confidence=low_confidence,
            scores=scores,
        )


@dataclass(frozen=True)
class ClassificationReport:
    """Represent decisions for a question set plus review lists."""

    decisions: list[ClassificationDecision]

    @property
    def by_category(self) -> dict[str, int]:
        counts = Counter(d.category for d in self.decisions if d.category is not None)
        return dict(counts)

    @property
    def unclassified(self) -> list[str]:
        return [d.item_key for d in self.decisions if d.category is None]

    @property
    def low_confidence(self) -> list[str]:
        return [d.item_key for d in self.decisions if d.low_confidence]

    @property
    def by_provenance(self) -> dict[str, int]:
        return dict(Counter(d.provenance for d in self.decisions))


def default_strategies() -> list[ClassificationStrategy]:
    return [ExactLookupStrategy(), PrefixRuleStrategy(), KeywordScoreStrategy()]


class TaxonomyClassifier:
    """Compose strategies; the first one returning a known area wins."""

    def __init__(
        self,
        strategies: Sequence[ClassificationStrategy] | None = None,
        review_areas: Sequence[str] = ANS_REVIEW_AREAS,
    ) -> None:
        """Initialize the classifier.

        Args:
            strategies: Ordered tiers; exact lookup, prefix rule and keyword
                score when omitted.
            review_areas: Areas of the target taxonomy. Strategy results
                outside this set fall through to the next tier.
        """
        self._strategies = list(strategies) if strategies is not None else default_strategies()
        self._review_areas = set(review_areas)

    def classify(self, subject: ClassificationSubject) -> ClassificationDecision:
        """Classify one subject.

        Returns:
            Exactly one decision. An unclassified decision has
            ``category=None`` and provenance ``unclassified``.
        """
        for strategy in self._strategies:
            outcome = strategy.classify(subject)
            if outcome is None:
                continue
            if outcome.category not in self._review_areas:
                logger.warning(
                    f"Strategy result outside taxonomy ignored "
                    f"(item_key={subject.item_key} strategy={strategy.name} "
                    f"category={outcome.category})"
                )
                continue
            logger.debug(
                f"Question classified (item_key={subject.item_key} "
                f"category={outcome.category} strategy={strategy.name})"
            )
            return ClassificationDecision(
                item_key=subject.item_key,
                category=outcome.category,
                provenance=strategy.name,
                score=outcome.score,
                runner_up_margin=outcome.runner_up_margin,
                low_confidence=outcome.low_confidence,
                scores=outcome.scores,
            )
        logger.warning(f"Question could not be classified (item_key={subject.item_key})")
        return ClassificationDecision(
            item_key=subject.item_key, category=None, provenance="unclassified"
        )

    def classify_all(self, questions: Sequence[AcceptedQuestion]) -> ClassificationReport:
        decisions = [
            self.classify(ClassificationSubject.from_question(question))
            for question in questions
        ]
        report = ClassificationReport(decisions=decisions)
        logger.info(
            f"Classification completed (questions={len(decisions)} "
            f"unclassified={len(report.unclassified)} "
            f"low_confidence={len(report.low_confidence)})"
        )
        return report
