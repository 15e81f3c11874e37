# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Fixed ANS review-area taxonomy and its curated resources."""

from dataclasses import dataclass

from pqmap.model import PlaceholderQuestion, TargetCategory

ANS_QUESTIONNAIRE_TYPE: str = "ANS_USOAP_CMA"
SMS_QUESTIONNAIRE_TYPE: str = "SMS_CANSO_SOE"
ANS_AUDIT_AREA: str = "ANS"
SMS_REVIEW_AREA: str = "SMS"

# Canonical order; keyword-score ties resolve to the earliest area.
ANS_REVIEW_AREAS: tuple[str, ...] = ("ATS", "FPD", "AIS", "MAP", "MET", "CNS", "SAR")
VALID_REVIEW_AREAS: tuple[str, ...] = ANS_REVIEW_AREAS + (SMS_REVIEW_AREA,)


@dataclass(frozen=True)
class QuestionnaireMetadata:
    """Represent descriptive questionnaire fields written by a migration."""

    code: str
    version: str
    title_en: str
    title_fr: str
    description_en: str
    description_fr: str


ANS_CATEGORIES: tuple[TargetCategory, ...] = (
    TargetCategory(
        code="ATM",
        review_area="ATS",
        name_en="Air Traffic Management",
        name_fr="Gestion du trafic aérien",
        description_en="Air traffic control, flow management, airspace management, and ATS safety oversight",
        description_fr="Contrôle de la circulation aérienne, gestion des flux, gestion de l'espace aérien et supervision de la sécurité des services ATS",
        sort_order=1,
    ),
    TargetCategory(
        code="IFPD",
        review_area="FPD",
        name_en="Instrument Flight Procedure Design",
        name_fr="Conception des procédures de vol aux instruments",
        description_en="Design, validation, and maintenance of instrument flight procedures including PANS-OPS compliance",
        description_fr="Conception, validation et maintenance des procédures de vol aux instruments, y compris la conformité PANS-OPS",
        sort_order=2,
    ),
    TargetCategory(
        code="AIS",
        review_area="AIS",
        name_en="Aeronautical Information Services",
        name_fr="Services d'information aéronautique",
        description_en="Aeronautical information management, NOTAMs, AIP publications, and quality management systems",
        description_fr="Gestion de l'information aéronautique, NOTAM, publications AIP et systèmes de gestion de la qualité",
        sort_order=3,
    ),
    TargetCategory(
        code="CHART",
        review_area="MAP",
        name_en="Aeronautical Charts",
        name_fr="Cartes aéronautiques",
        description_en="Production, validation, and maintenance of aeronautical charts",
        description_fr="Production, validation et maintenance des cartes aéronautiques",
        sort_order=4,
    ),
    TargetCategory(
        code="CNS",
        review_area="CNS",
        name_en="Communications, Navigation and Surveillance",
        name_fr="Communications, navigation et surveillance",
        description_en="Technical communications systems, navigation aids, and surveillance infrastructure",
        description_fr="Systèmes de communications techniques, aides à la navigation et infrastructure de surveillance",
        sort_order=5,
    ),
    TargetCategory(
        code="MET",
        review_area="MET",
        name_en="Aeronautical Meteorology",
        name_fr="Météorologie aéronautique",
        description_en="Aviation weather observation, forecasting, briefing, and MET service provider oversight",
        description_fr="Observation, prévision, briefing météorologiques pour l'aviation et supervision des prestataires de services MET",
        sort_order=6,
    ),
    TargetCategory(
        code="SAR",
        review_area="SAR",
        name_en="Search and Rescue",
        name_fr="Recherche et sauvetage",
        description_en="SAR coordination, planning, operations, and international cooperation",
        description_fr="Coordination, planification, opérations de recherche et sauvetage et coopération internationale",
        sort_order=7,
    ),
)

ANS_METADATA = QuestionnaireMetadata(
    code="AAPRP-ANS-2024",
    version="2024.2",
    title_en="AAPRP ANS Protocol Questionnaire",
    title_fr="Questionnaire du protocole ANS de l'AAPRP",
    description_en=(
        "African ANSP Peer Review Programme Protocol Questions organized by ANS review "
        "areas (ATM, IFPD, AIS, CHART, CNS, MET, SAR). Derived from ICAO USOAP CMA 2024 Edition."
    ),
    description_fr=(
        "Questions du protocole du Programme africain d'examen par les pairs des ANSP "
        "organisées par domaines d'examen ANS (ATM, IFPD, AIS, CHART, CNS, MET, SAR). "
        "Dérivées de l'édition 2024 de l'USOAP CMA de l'OACI."
    ),
)

SOURCE_METADATA = QuestionnaireMetadata(
    code="USOAP-CMA-2024",
    version="2024",
    title_en="ICAO USOAP CMA Protocol Questions 2024",
    title_fr="Questions du Protocole USOAP CMA de l'OACI 2024",
    description_en=(
        "Universal Safety Oversight Audit Programme Continuous Monitoring Approach "
        "Protocol Questions - 2024 Edition"
    ),
    description_fr="Questions du protocole USOAP CMA - Édition 2024",
)

_REVIEW_AREA_KEYS: dict[str, tuple[str, ...]] = {
    # Cross-cutting ANS oversight is filed under ATS.
    "ATS": (
        "7.001", "7.003", "7.007", "7.009", "7.011", "7.031", "7.037", "7.039",
        "7.045", "7.051", "7.073", "7.057", "7.060", "7.061", "7.062", "7.063",
        "7.065", "7.069", "7.081", "7.082", "7.087", "7.101", "7.109", "7.110",
        "7.111", "7.117", "7.119", "7.121", "7.131", "7.133", "7.135", "7.137",
        "7.139", "7.151", "7.153", "7.155", "7.158", "7.159", "7.162", "7.177",
        "7.187", "7.191", "7.193", "7.195", "7.199", "7.901", "7.905", "7.909",
        "7.913", "7.917", "7.921", "7.925", "7.929", "7.933", "7.937", "7.941",
    ),
    "FPD": (
        "7.205", "7.209", "7.211", "7.231", "7.233", "7.234", "7.243", "7.247",
        "7.249", "7.253", "7.267", "7.390",
    ),
    "AIS": (
        "7.005", "7.042", "7.085", "7.201", "7.215", "7.229", "7.255", "7.269",
        "7.273", "7.277", "7.281", "7.287", "7.288", "7.289", "7.291", "7.309",
    ),
    # No MAP entries: chart requirements are grouped with AIS in the source
    # document, so CHART is populated from placeholders.
    "CNS": (
        "7.303", "7.311", "7.321", "7.361", "7.373", "7.377", "7.381", "7.385",
        "7.391", "7.393", "7.395",
    ),
    "MET": (
        "7.412", "7.415", "7.417", "7.421", "7.425", "7.429", "7.435", "7.437",
        "7.451", "7.459", "7.463", "7.465", "7.467", "7.475", "7.476", "7.477",
        "7.481",
    ),
    "SAR": (
        "7.487", "7.491", "7.495", "7.499", "7.505", "7.507", "7.513", "7.517",
        "7.519", "7.521", "7.525", "7.529", "7.537", "7.543", "7.545",
    ),
}

REVIEW_AREA_LOOKUP: dict[str, str] = {
    key: area for area, keys in _REVIEW_AREA_KEYS.items() for key in keys
}

# Prefix rules: item keys starting with a prefix, or category codes
# containing a substring, map to the area.
ITEM_KEY_PREFIXES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("ATS", ("ATM", "ATC")),
    ("FPD", ("IFPD", "OPS", "PANS")),
    ("AIS", ("AIS", "AIM")),
    ("MAP", ("CHART", "MAP")),
    ("CNS", ("CNS",)),
    ("MET", ("MET",)),
    ("SAR", ("SAR",)),
    ("SMS", ("SMS",)),
)
CATEGORY_CODE_SUBSTRINGS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("ATS", ("ATM", "ATC")),
    ("FPD", ("IFPD", "PANS", "OPS")),
    ("AIS", ("AIS", "AIM")),
    ("MAP", ("CHART", "MAP")),
    ("CNS", ("CNS", "TELECOM", "COMM")),
    ("MET", ("MET", "METEO")),
    ("SAR", ("SAR", "SEARCH")),
    ("SMS", ("SMS", "SAFETY_M")),
)

# Regular expressions counted against the upper-cased question, reference and
# guidance text. ICAO Annex numbering: A2/A11 ATS, A3 MET, A4 charts,
# A10 CNS, A12 SAR, A15 AIS.
KEYWORD_RULES: dict[str, tuple[str, ...]] = {
    "ATS": (
        r"ANNEX\s*11", r"\bATS\b", r"AIR\s*TRAFFIC", r"RULES\s*OF\s*(THE\s*)?AIR",
        r"\bATSEP\b", r"\bA11\b", r"\bA2\b",
    ),
    "FPD": (
        r"PANS[\s-]*OPS", r"DOC\s*8168", r"FLIGHT\s*PROCED", r"INSTRUMENT\s*FLIGHT",
        r"\bIFPD\b",
    ),
    "AIS": (
        r"ANNEX\s*15", r"\bAIS\b", r"\bAIM\b", r"\bNOTAM", r"\bAIP\b", r"DOC\s*10066",
        r"\bA15\b", r"AERONAUTICAL\s*INFO",
    ),
    "MAP": (
        r"ANNEX\s*4\b", r"\bA4\b", r"AERONAUTICAL\s*CHART", r"CHART", r"CARTOGRAPH",
    ),
    "CNS": (
        r"ANNEX\s*10", r"\bA10\b", r"\bCNS\b", r"TELECOMM", r"NAVIGATION\s*AID",
        r"SURVEILLANCE", r"\bRADAR\b", r"\bRADIO\b",
    ),
    "MET": (
        r"ANNEX\s*3\b", r"\bA3\b", r"METEOROLOG", r"\bMET\b", r"\bWMO\b", r"WEATHER",
    ),
    "SAR": (r"ANNEX\s*12", r"\bA12\b", r"SEARCH\s*AND\s*RESCUE", r"\bSAR\b"),
}

PLACEHOLDER_QUESTIONS: tuple[PlaceholderQuestion, ...] = (
    PlaceholderQuestion(
        review_area="MAP",
        question_text_en="Does the State ensure that aeronautical charts are produced in accordance with ICAO Annex 4 requirements?",
        question_text_fr="L'État veille-t-il à ce que les cartes aéronautiques soient produites conformément aux exigences de l'Annexe 4 de l'OACI ?",
        guidance_en="Review the aeronautical chart production process. Verify compliance with ICAO Annex 4 specifications for chart types, formats, symbols, and data representation. Check that charts are produced using approved data sources.",
        guidance_fr="Examiner le processus de production des cartes aéronautiques. Vérifier la conformité aux spécifications de l'Annexe 4 de l'OACI pour les types de cartes, les formats, les symboles et la représentation des données. Vérifier que les cartes sont produites à partir de sources de données approuvées.",
    ),
    PlaceholderQuestion(
        review_area="MAP",
        question_text_en="Does the State ensure that aeronautical charts are kept current through a systematic amendment process aligned with AIRAC cycles?",
        question_text_fr="L'État veille-t-il à ce que les cartes aéronautiques soient maintenues à jour par un processus systématique d'amendement aligné sur les cycles AIRAC ?",
        guidance_en="Verify that aeronautical charts are updated in accordance with AIRAC cycle requirements. Check the process for incorporating amendments from AIS data, NOTAM, and other sources into chart products.",
        guidance_fr="Vérifier que les cartes aéronautiques sont mises à jour conformément aux exigences du cycle AIRAC. Vérifier le processus d'incorporation des amendements provenant des données AIS, des NOTAM et d'autres sources dans les produits cartographiques.",
    ),
    PlaceholderQuestion(
        review_area="MAP",
        question_text_en="Does the State ensure that quality assurance measures are in place for the validation of aeronautical chart data?",
        question_text_fr="L'État veille-t-il à ce que des mesures d'assurance qualité soient en place pour la validation des données des cartes aéronautiques ?",
        guidance_en="Review the quality assurance procedures for aeronautical chart production. Verify that validation checks are performed on chart data, including terrain and obstacle data, aerodrome information, and airspace boundaries.",
        guidance_fr="Examiner les procédures d'assurance qualité pour la production des cartes aéronautiques. Vérifier que des contrôles de validation sont effectués sur les données cartographiques, y compris les données de terrain et d'obstacles, les informations d'aérodrome et les limites d'espace aérien.",
    ),
    PlaceholderQuestion(
        review_area="MAP",
        question_text_en="Does the State ensure that electronic aeronautical charts and digital data sets meet the requirements for electronic display and navigation applications?",
        question_text_fr="L'État veille-t-il à ce que les cartes aéronautiques électroniques et les jeux de données numériques répondent aux exigences des applications d'affichage et de navigation électroniques ?",
        guidance_en="Verify that electronic aeronautical charts and digital data sets conform to applicable standards. Check that digital terrain and obstacle data are provided in formats compatible with aviation applications.",
        guidance_fr="Vérifier que les cartes aéronautiques électroniques et les jeux de données numériques sont conformes aux normes applicables. Vérifier que les données numériques de terrain et d'obstacles sont fournies dans des formats compatibles avec les applications aéronautiques.",
    ),
    PlaceholderQuestion(
        review_area="MAP",
        question_text_en="Does the State ensure that cartographic personnel are adequately trained and competent in aeronautical chart production standards?",
        question_text_fr="L'État veille-t-il à ce que le personnel cartographique soit adéquatement formé et compétent en matière de normes de production de cartes aéronautiques ?",
        guidance_en="Review the training and competency requirements for cartographic personnel. Verify that initial and recurrent training programmes are in place and that personnel maintain current knowledge of ICAO Annex 4 requirements.",
        guidance_fr="Examiner les exigences de formation et de compétence du personnel cartographique. Vérifier que des programmes de formation initiale et périodique sont en place et que le personnel maintient une connaissance à jour des exigences de l'Annexe 4 de l'OACI.",
    ),
)


@dataclass(frozen=True)
class CriticalElementCategory:
    """Represent one CE-based category of the flat seed layout."""

    critical_element: str
    code: str
    name_en: str
    name_fr: str
    sort_order: int


CRITICAL_ELEMENT_CATEGORIES: tuple[CriticalElementCategory, ...] = (
    CriticalElementCategory("CE_1", "ANS-CE1", "ANS - Primary Aviation Legislation", "ANS - Législation Aéronautique Primaire", 1),
    CriticalElementCategory("CE_2", "ANS-CE2", "ANS - Specific Operating Regulations", "ANS - Règlements d'Exploitation Spécifiques", 2),
    CriticalElementCategory("CE_3", "ANS-CE3", "ANS - Civil Aviation System and Safety Oversight Functions", "ANS - Système d'Aviation Civile et Fonctions de Surveillance", 3),
    CriticalElementCategory("CE_4", "ANS-CE4", "ANS - Technical Personnel Qualification and Training", "ANS - Qualification et Formation du Personnel Technique", 4),
    CriticalElementCategory("CE_5", "ANS-CE5", "ANS - Technical Guidance, Tools and Safety-Critical Information", "ANS - Orientations Techniques, Outils et Informations Critiques", 5),
    CriticalElementCategory("CE_6", "ANS-CE6", "ANS - Licensing, Certification, Authorization and Approval", "ANS - Licence, Certification, Autorisation et Approbation", 6),
    CriticalElementCategory("CE_7", "ANS-CE7", "ANS - Surveillance Obligations", "ANS - Obligations de Surveillance", 7),
    CriticalElementCategory("CE_8", "ANS-CE8", "ANS - Resolution of Safety Concerns", "ANS - Résolution des Problèmes de Sécurité", 8),
)


def category_for_area(review_area: str) -> TargetCategory | None:
    """Return the ANS category that owns a review area."""
    for category in ANS_CATEGORIES:
        if category.review_area == review_area:
            return category
    return None
