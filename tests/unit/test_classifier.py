from pqmap.classifier import (
    ClassificationSubject,
    ExactLookupStrategy,
    KeywordScoreStrategy,
    PrefixRuleStrategy,
    TaxonomyClassifier,
)
from pqmap.model import AcceptedQuestion
from pqmap.taxonomy import (
    ANS_CATEGORIES,
    ANS_REVIEW_AREAS,
    REVIEW_AREA_LOOKUP,
    category_for_area,
)


def _question(item_key: str, text: str, references: str = "", guidance: str = "") -> AcceptedQuestion:
    return AcceptedQuestion(
        item_key=item_key,
        question_text_en=text,
        question_text_fr="",
        guidance_en=guidance,
        guidance_fr="",
        references=references,
        is_priority=False,
        requires_on_site=False,
        critical_element="CE_1",
    )


def test_class_001_exact_lookup_overrides_keyword_content() -> None:
    subject = ClassificationSubject(
        item_key="7.303",
        question_text="Does the State provide meteorological weather services per Annex 3?",
    )

    decision = TaxonomyClassifier().classify(subject)

    assert REVIEW_AREA_LOOKUP["7.303"] == "CNS"
    assert decision.category == "CNS"
    assert decision.provenance == "exact-lookup"
    assert decision.low_confidence is False


def test_class_002_prefix_rule_matches_case_insensitively() -> None:
    decision = TaxonomyClassifier().classify(
        ClassificationSubject(item_key="cns-010", question_text="Is the budget approved?")
    )

    assert decision.category == "CNS"
    assert decision.provenance == "prefix-rule"


def test_class_003_prefix_rule_matches_category_code_substrings() -> None:
    rules = PrefixRuleStrategy()

    assert rules.match_category_code("ANS-TELECOM") == "CNS"
    assert rules.match_category_code("ans-search") == "SAR"
    assert rules.match_category_code("ANS-CE1") is None
    assert rules.match_category_code("METEO-1") == "MET"
    assert rules.classify(ClassificationSubject(item_key="7.998", question_text="")) is None


def test_class_004_keyword_scoring_picks_strictly_highest_area() -> None:
    decision = TaxonomyClassifier().classify(
        ClassificationSubject.from_question(
            _question(
                "7.997",
                "Does the State provide search and rescue services?",
                references="Annex 12",
            )
        )
    )

    assert decision.category == "SAR"
    assert decision.provenance == "keyword-score"
    assert decision.score == 2
    assert decision.runner_up_margin == 2
    assert decision.low_confidence is False
    assert decision.scores["SAR"] == 2


def test_class_005_keyword_tie_resolves_to_canonical_order_with_low_confidence() -> None:
    decision = TaxonomyClassifier().classify(
        ClassificationSubject(
            item_key="7.996", question_text="Is radar coverage adequate for weather avoidance?"
        )
    )

    assert decision.category == "MET"
    assert decision.provenance == "keyword-score"
    assert decision.low_confidence is True
    assert decision.runner_up_margin == 0


def test_class_006_zero_score_is_unclassified_not_defaulted() -> None:
    decision = TaxonomyClassifier().classify(
        ClassificationSubject(
            item_key="7.998", question_text="Has the State approved the programme budget?"
        )
    )

    assert decision.category is None
    assert decision.provenance == "unclassified"
    assert KeywordScoreStrategy().classify(
        ClassificationSubject(item_key="7.998", question_text="Nothing relevant here.")
    ) is None


def test_class_007_results_outside_taxonomy_fall_through() -> None:
    decision = TaxonomyClassifier().classify(
        ClassificationSubject(
            item_key="SMS-001",
            question_text="Has the provider implemented hazard identification?",
            references="A10",
        )
    )

    assert decision.category == "CNS"
    assert decision.provenance == "keyword-score"


def test_class_008_custom_strategies_are_consulted_in_order() -> None:
    classifier = TaxonomyClassifier(
        strategies=[ExactLookupStrategy({"7.001": "MET"}), KeywordScoreStrategy()]
    )

    decision = classifier.classify(
        ClassificationSubject(item_key="7.001", question_text="Annex 11 air traffic services")
    )

    assert decision.category == "MET"
    assert decision.provenance == "exact-lookup"


def test_class_009_every_question_gets_exactly_one_decision() -> None:
    questions = [
        _question("7.001", "Has the State established an ANS oversight function?"),
        _question("7.412", "Does the State provide MET services?"),
        _question("7.998", "Has the State approved the programme budget?"),
        _question("CHART-2", "Are charts current?"),
    ]

    report = TaxonomyClassifier().classify_all(questions)

    assert [decision.item_key for decision in report.decisions] == [
        "7.001",
        "7.412",
        "7.998",
        "CHART-2",
    ]
    assert report.by_category == {"ATS": 1, "MET": 1, "MAP": 1}
    assert report.unclassified == ["7.998"]
    assert report.by_provenance == {"exact-lookup": 2, "unclassified": 1, "prefix-rule": 1}


def test_class_010_taxonomy_covers_every_review_area_once() -> None:
    assert sorted(category.review_area for category in ANS_CATEGORIES) == sorted(ANS_REVIEW_AREAS)
    assert [category.sort_order for category in ANS_CATEGORIES] == list(range(1, 8))
    chart = category_for_area("MAP")
    assert chart is not None
    assert chart.code == "CHART"
    assert category_for_area("SMS") is None
    assert set(REVIEW_AREA_LOOKUP.values()) <= set(ANS_REVIEW_AREAS)
