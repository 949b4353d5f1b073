"""
Narrative Extractor (Layer 2)

General-purpose matcher for plain-language candidate descriptions: age,
pregnancy counts written in prose, lifestyle, psychosocial and environmental
flags, infectious disease results and medical-condition keywords.

Screening policy: only candidates who already passed intake screening reach
this pipeline, so smoking and drug use are recorded as positive only with an
explicit current/active qualifier. A bare mention ("smoking history") leaves
the value negative rather than unknown.
"""

import re
import logging
from typing import Any, Dict, List, Optional, Set

from ..core.data_models import (
    AlcoholUse,
    Complication,
    ComplicationCategory,
    ConditionTag,
    ExtractionFragment,
    ExtractionLayer,
    TestResult,
)
from ..core import knowledge_base as kb

logger = logging.getLogger(__name__)


MIN_AGE = 14
MAX_AGE = 70

AGE_PATTERNS = [
    re.compile(r"\b(\d{2})\s*(?:yo|y/o|y\.o\.|yrs? old|years? old|-year-old|year-old|yof)\b", re.I),
    re.compile(r"(?<!gestational )\bage[ds]?\s*(?:of|:|=|is)?\s*(\d{2})\b(?!\s*(?:weeks?|wks?|w\b|\+))", re.I),
    re.compile(r"\b(\d{2})\s*(?:F|female)\b"),
]

PREGNANCY_COUNT_PATTERNS = [
    re.compile(r"\bhas\s+" + kb.COUNT_TOKEN + r"\s+(?:biological\s+|healthy\s+|living\s+)?(?:children|kids|sons|daughters)\b", re.I),
    re.compile(r"\bmother of\s+" + kb.COUNT_TOKEN + r"\b", re.I),
    re.compile(r"\b" + kb.COUNT_TOKEN + r"\s+(?:previous|prior|successful|healthy|uncomplicated|full[- ]term|term)\s+(?:deliveries|births)\b", re.I),
    re.compile(r"\b" + kb.COUNT_TOKEN + r"\s+(?:deliveries|live births)\b", re.I),
]
# Pregnancies are not deliveries: a prose pregnancy count only sets gravida
GRAVIDA_COUNT = re.compile(
    r"\b" + kb.COUNT_TOKEN + r"\s+(?:previous\s+|prior\s+|successful\s+|healthy\s+|uncomplicated\s+|full[- ]term\s+|term\s+)?pregnancies\b",
    re.I
)
GAVE_BIRTH = re.compile(r"\bgave birth\b|\bdelivered (?:a |her )?(?:healthy )?(?:baby|son|daughter)\b", re.I)

COMPLICATION_COUNT = re.compile(r"\b" + kb.COUNT_TOKEN + r"\s+(?:pregnancy[- ]related\s+|prior\s+|previous\s+)?complications?\b", re.I)
ALL_UNCOMPLICATED = re.compile(
    r"\b(?:all (?:pregnancies )?(?:were )?uncomplicated|uncomplicated pregnanc(?:y|ies)|"
    r"no (?:pregnancy |prior |previous )?complications?)\b",
    re.I
)

CESAREAN_COUNT = re.compile(r"\b" + kb.COUNT_TOKEN + r"\s+(?:prior\s+|previous\s+)?(?:c-?\s?sections?|ca?esare?i?ans?(?:\s+sections?)?|cesarean deliveries)\b", re.I)
CESAREAN_SINGLE = re.compile(r"\b(?:had|has had|underwent)\s+(?:a|one|an)\s+(?:c-?\s?section|ca?esare?i?an)\b", re.I)
VBAC = re.compile(r"\bVBAC\b|\bvaginal birth after ca?esare?i?an\b", re.I)

SMOKER_CURRENT = re.compile(
    r"\b(?:current(?:ly)?|active(?:ly)?|daily|still)\s+(?:smok\w*|cigarette\w*|tobacco|vap\w*)"
    r"|\bsmokes\s+(?:\d|a pack|daily|cigarettes|every day)",
    re.I
)
SMOKER_DENIED = re.compile(r"\b(?:non-?smoker|never smoked|former smoker|quit smoking|ex-?smoker)\b", re.I)

DRUG_CURRENT = re.compile(
    r"\b(?:current(?:ly)?|active(?:ly)?|ongoing)\s+(?:uses?\s+)?(?:recreational\s+)?"
    r"(?:drug|substance|illicit|cocaine|heroin|opioid|opiate|meth\w*|marijuana|cannabis)\w*(?:\s+(?:use|abuse))?",
    re.I
)

ALCOHOL_EXCESSIVE = re.compile(
    r"\b(?:heavy|excessive|daily)\s+(?:drink\w*|alcohol)|\balcohol (?:abuse|dependence|use disorder)\b|"
    r"\balcoholism\b|\bbinge drink\w*",
    re.I
)
ALCOHOL_SOCIAL = re.compile(
    r"\bsocial(?:ly)?\s+(?:drink\w*|alcohol)|\bdrinks?\s+socially\b|\boccasional(?:ly)?\s+(?:drink\w*|alcohol|glass)",
    re.I
)
ALCOHOL_NONE = re.compile(r"\b(?:no alcohol|denies alcohol|does not drink|doesn't drink|non-?drinker|abstains)\b", re.I)

BMI_DIRECT = re.compile(r"\bBMI\s*(?:of|:|=|was|is)?\s*(\d{2}(?:\.\d{1,2})?)\b", re.I)
WEIGHT_LBS = re.compile(r"\b(\d{2,3}(?:\.\d)?)\s*(?:lbs?|pounds)\b", re.I)
HEIGHT_FT_IN = re.compile(r"\b([4-6])\s*(?:'|ft|feet|foot)\s*(\d{1,2})?\s*(?:\"|''|in(?:ches)?)?", re.I)

BODY_MODIFICATION = re.compile(
    r"\b(?:recent|new)\s+(?:tattoos?|piercings?)\b|"
    r"\b(?:tattoo|piercing)s?\s+(?:\w+\s+){0,3}(?:within|in) the (?:last|past)\s+(?:\d+|six|twelve)\s+months\b",
    re.I
)

ENVIRONMENT_SIGNALS = {
    "housing_stable": (
        re.compile(r"\bhomeless\w*|\bunstable housing\b|\bhousing (?:insecurity|instability)\b|\bevict\w*|\bcouch surfing\b|\bliving in (?:a )?shelter\b", re.I),
        re.compile(r"\bstable housing\b|\bowns? (?:her |a |their )?(?:own )?home\b|\bstable home\b", re.I),
    ),
    "employment_stable": (
        re.compile(r"\bunemployed\b|\blost (?:her |my )?job\b|\bbetween jobs\b", re.I),
        re.compile(r"\b(?:employed|works as|working as|full[- ]time|part[- ]time job)\b", re.I),
    ),
    "financially_adequate": (
        re.compile(r"\bfinancial (?:hardship|difficult\w*|strain|stress|instability)\b|\bpublic assistance\b|\bbankrupt\w*|\bin debt\b", re.I),
        re.compile(r"\bfinancially (?:stable|secure|independent)\b", re.I),
    ),
    "relationship_stable": (
        re.compile(r"\bdivorc\w*|\bseparat(?:ed|ing)\b|\bunstable relationship\b", re.I),
        re.compile(r"\bmarried\b|\bstable relationship\b|\blong-?term partner\b", re.I),
    ),
    "partner_supportive": (
        re.compile(
            r"\b(?:partner|husband|spouse|boyfriend)\s+(?:is\s+)?(?:not supportive|unsupportive|opposed|against)\b|"
            r"\b(?:partner|husband|spouse)\s+(?:does not|doesn't)\s+support\b",
            re.I
        ),
        re.compile(
            r"\bsupportive (?:partner|husband|spouse|boyfriend)\b|\b(?:partner|husband|spouse)\s+(?:is\s+)?(?:very\s+)?supportive\b",
            re.I
        ),
    ),
}
LEGAL_ISSUES = re.compile(
    r"\blegal (?:issues|problems|trouble)\b|\barrested\b|\barrest record\b|\bconvict\w*|\bprobation\b|\bfelony\b|"
    r"\bpending charges\b|\bcustody (?:battle|dispute)\b",
    re.I
)

EVALUATION_COMPLETED = re.compile(
    r"\bpsych(?:ological|iatric|osocial)?\s+(?:evaluation|eval|assessment|screening)\s+"
    r"(?:was\s+)?(?:completed|done|passed|cleared|unremarkable|normal)\b|\bcleared by (?:psych\w*|mental health)\b",
    re.I
)
SUPPORT_INADEQUATE = re.compile(
    r"\b(?:no|lack of|lacks|limited|poor|inadequate|minimal)\s+(?:support system|social support|family support|support network)\b",
    re.I
)
ENVIRONMENT_UNSTABLE = re.compile(r"\bunstable (?:home|environment|living situation|household)\b|\bchaotic home\b", re.I)
COERCION = re.compile(r"\bcoerc\w*|\bpressured (?:into|to)\b|\bforced to\b", re.I)

# A screening result never reaches across a clause separator
RESULT_CLAUSE_END = re.compile(r"[,;]")

SURGICAL_PROCEDURES = re.compile(
    r"\b(cholecystectomy|appendectomy|myomectomy|hysteroscopy|laparoscopy|D&C|dilation and curettage|"
    r"LEEP|cone biopsy|gastric bypass|gastric sleeve|sleeve gastrectomy|tubal ligation|tubal reversal|"
    r"cerclage|tonsillectomy)\b",
    re.I
)

# Section weights for the confidence estimate
CONFIDENCE_WEIGHTS = {
    "age": 20,
    "pregnancy_history": 30,
    "condition_each": 5,
    "condition_cap": 20,
    "bmi": 15,
    "environmental": 15,
}


class NarrativeExtractor:
    """
    Layer 2 extractor for plain-language descriptions

    Each section is extracted independently; a section that finds nothing
    contributes no fields.
    """

    def __init__(self):
        self.complication_patterns = kb.compile_table(kb.NARRATIVE_COMPLICATION_KEYWORDS)
        self.condition_patterns = kb.compile_table(kb.CONDITION_SYNONYMS)
        self.psych_patterns = kb.compile_table(kb.PSYCH_FLAG_KEYWORDS)
        self.infectious_patterns = {
            name: re.compile(pattern, re.I) for name, pattern in kb.INFECTIOUS_TESTS.items()
        }
        logger.debug("Narrative extractor initialized")

    def extract(self, text: str) -> ExtractionFragment:
        values: Dict[str, Any] = {}

        age = self._extract_age(text)
        if age is not None:
            values["age"] = age

        values.update(self._extract_pregnancy_history(text))
        values.update(self._extract_lifestyle(text))

        conditions = self._extract_conditions(text)
        if conditions:
            values["medical_conditions"] = frozenset(conditions)

        values.update(self._extract_psychological(text))
        values.update(self._extract_environmental(text))

        infectious = self._extract_infectious_results(text)
        if infectious:
            values["infectious_disease_results"] = infectious

        surgeries = self._extract_surgical_history(text)
        if surgeries:
            values["surgical_history"] = surgeries

        confidence = self.estimate_confidence(values)
        logger.debug(f"Narrative extraction: {len(values)} fields, confidence={confidence}")
        return ExtractionFragment(layer=ExtractionLayer.NARRATIVE, values=values, confidence=confidence)

    @staticmethod
    def estimate_confidence(values: Dict[str, Any]) -> int:
        """Estimate 0-100 confidence from which major sections were populated"""
        weights = CONFIDENCE_WEIGHTS
        score = 0
        if "age" in values:
            score += weights["age"]
        if any(path.startswith("pregnancy_history.") for path in values):
            score += weights["pregnancy_history"]
        conditions = values.get("medical_conditions") or ()
        score += min(weights["condition_cap"], weights["condition_each"] * len(conditions))
        if "lifestyle.bmi" in values:
            score += weights["bmi"]
        if any(path.startswith("environmental.") for path in values):
            score += weights["environmental"]
        return min(100, score)

    # ========================================================================
    # AGE
    # ========================================================================

    def _extract_age(self, text: str) -> Optional[int]:
        for pattern in AGE_PATTERNS:
            for match in pattern.finditer(text):
                age = int(match.group(1))
                if MIN_AGE <= age <= MAX_AGE:
                    return age
        return None

    # ========================================================================
    # PREGNANCY HISTORY
    # ========================================================================

    def _extract_pregnancy_history(self, text: str) -> Dict[str, Any]:
        values: Dict[str, Any] = {}

        for pattern in PREGNANCY_COUNT_PATTERNS:
            match = pattern.search(text)
            if match and not kb.is_negated(text, match.start()):
                count = kb.parse_count(match.group(1))
                if count is not None:
                    values["pregnancy_history.term_pregnancy_count"] = count
                    values["pregnancy_history.total_deliveries"] = count
                    break
        else:
            if GAVE_BIRTH.search(text):
                values["pregnancy_history.term_pregnancy_count"] = 1
                values["pregnancy_history.total_deliveries"] = 1

        gravida = GRAVIDA_COUNT.search(text)
        if gravida and not kb.is_negated(text, gravida.start()):
            count = kb.parse_count(gravida.group(1))
            if count is not None:
                values["pregnancy_history.gravida"] = count

        cesareans = self._extract_cesarean_count(text)
        if cesareans is not None:
            values["pregnancy_history.cesarean_count"] = cesareans

        complications = self._extract_complications(text)
        explicit_count = self._explicit_complication_count(text)
        if complications:
            values["pregnancy_history.complications"] = tuple(complications)
            values["pregnancy_history.complication_count"] = max(explicit_count or 0, len(complications))
        elif explicit_count is not None:
            values["pregnancy_history.complication_count"] = explicit_count

        return values

    def _extract_cesarean_count(self, text: str) -> Optional[int]:
        counts: List[int] = []
        for match in CESAREAN_COUNT.finditer(text):
            if kb.is_negated(text, match.start()):
                continue
            count = kb.parse_count(match.group(1))
            if count is not None:
                counts.append(count)
        if counts:
            return max(counts)

        single = CESAREAN_SINGLE.search(text)
        if single and not kb.is_negated(text, single.start()):
            return 1

        # A VBAC implies at least one earlier cesarean
        if VBAC.search(text):
            return 1
        return None

    def _explicit_complication_count(self, text: str) -> Optional[int]:
        match = COMPLICATION_COUNT.search(text)
        if match and not kb.is_negated(text, match.start()):
            count = kb.parse_count(match.group(1))
            if count is not None:
                return count
        if ALL_UNCOMPLICATED.search(text):
            return 0
        return None

    def _extract_complications(self, text: str) -> List[Complication]:
        found: List[Complication] = []
        for category in ComplicationCategory:
            match = kb.first_unnegated(self.complication_patterns.get(category, []), text)
            if match is None:
                continue
            clause = kb.clause_around(text, match.start(), match.end())
            found.append(Complication(
                pregnancy_index=0,
                category=category,
                description=clause.strip()[:200],
                severity=kb.infer_severity(clause),
            ))
        return found

    # ========================================================================
    # LIFESTYLE
    # ========================================================================

    def _extract_lifestyle(self, text: str) -> Dict[str, Any]:
        values: Dict[str, Any] = {}

        smoker = SMOKER_CURRENT.search(text)
        if smoker and not kb.is_negated(text, smoker.start()):
            values["lifestyle.smoker"] = True
        elif SMOKER_DENIED.search(text):
            values["lifestyle.smoker"] = False

        drugs = DRUG_CURRENT.search(text)
        if drugs and not kb.is_negated(text, drugs.start()):
            values["lifestyle.drug_use"] = True

        excessive = ALCOHOL_EXCESSIVE.search(text)
        if excessive and not kb.is_negated(text, excessive.start()):
            values["lifestyle.alcohol_use"] = AlcoholUse.EXCESSIVE
        elif ALCOHOL_SOCIAL.search(text):
            values["lifestyle.alcohol_use"] = AlcoholUse.SOCIAL
        elif ALCOHOL_NONE.search(text):
            values["lifestyle.alcohol_use"] = AlcoholUse.NONE

        bmi = self._extract_bmi(text)
        if bmi is not None:
            values["lifestyle.bmi"] = bmi

        modification = BODY_MODIFICATION.search(text)
        if modification and not kb.is_negated(text, modification.start()):
            values["lifestyle.recent_body_modification"] = True

        return values

    def _extract_bmi(self, text: str) -> Optional[float]:
        direct = BMI_DIRECT.search(text)
        if direct:
            value = float(direct.group(1))
            if 10 <= value <= 80:
                return value

        weight = WEIGHT_LBS.search(text)
        height = HEIGHT_FT_IN.search(text)
        if weight and height:
            inches = int(height.group(1)) * 12 + int(height.group(2) or 0)
            if inches > 0:
                value = round(703 * float(weight.group(1)) / (inches * inches), 1)
                if 10 <= value <= 80:
                    return value
        return None

    # ========================================================================
    # MEDICAL CONDITIONS
    # ========================================================================

    def _extract_conditions(self, text: str) -> Set[ConditionTag]:
        """
        Map condition keywords onto ConditionTag

        Hypertension: a generic mention is treated as pregnancy-induced unless
        qualified as chronic/essential/pre-existing. Diabetes: gestational is
        checked before pre-existing so "gestational diabetes" is not also
        tagged as diabetes.
        """
        conditions: Set[ConditionTag] = set()

        # Hypertension family
        remaining = text
        for pattern, tag in (
            (kb.PULMONARY_HYPERTENSION, ConditionTag.PULMONARY_HYPERTENSION),
            (kb.CHRONIC_HYPERTENSION, ConditionTag.HYPERTENSION),
            (kb.PREGNANCY_HYPERTENSION, ConditionTag.PREGNANCY_HYPERTENSION),
        ):
            remaining = self._tag_and_mask(pattern, remaining, tag, conditions)
        generic = kb.GENERIC_HYPERTENSION.search(remaining)
        if generic and not kb.is_negated(remaining, generic.start()):
            conditions.add(ConditionTag.PREGNANCY_HYPERTENSION)

        # Diabetes family
        remaining = text
        for pattern, tag in (
            (kb.GESTATIONAL_DIABETES, ConditionTag.GESTATIONAL_DIABETES),
            (kb.INSULIN_DEPENDENT_DIABETES, ConditionTag.INSULIN_DEPENDENT_DIABETES),
        ):
            remaining = self._tag_and_mask(pattern, remaining, tag, conditions)
        generic = kb.GENERIC_DIABETES.search(remaining)
        if generic and not kb.is_negated(remaining, generic.start()):
            conditions.add(ConditionTag.DIABETES)

        for tag, patterns in self.condition_patterns.items():
            if kb.first_unnegated(patterns, text) is not None:
                conditions.add(tag)

        return conditions

    @staticmethod
    def _tag_and_mask(pattern, text: str, tag: ConditionTag, conditions: Set[ConditionTag]) -> str:
        spans = []
        for match in pattern.finditer(text):
            spans.append(match.span())
            if not kb.is_negated(text, match.start()):
                conditions.add(tag)
        return kb.mask_spans(text, spans)

    # ========================================================================
    # PSYCHOLOGICAL
    # ========================================================================

    def _extract_psychological(self, text: str) -> Dict[str, Any]:
        values: Dict[str, Any] = {}

        medication = kb.PSYCHOTROPIC_MEDICATIONS.search(text)
        if medication and not kb.is_negated(text, medication.start()):
            values["psychological.on_psychotropic_medication"] = True

        if EVALUATION_COMPLETED.search(text):
            values["psychological.evaluation_completed"] = True

        flags = {
            flag for flag, patterns in self.psych_patterns.items()
            if kb.first_unnegated(patterns, text) is not None
        }
        if flags:
            values["psychological.history_flags"] = frozenset(flags)

        if SUPPORT_INADEQUATE.search(text):
            values["psychological.support_adequate"] = False

        unstable = ENVIRONMENT_UNSTABLE.search(text)
        if unstable and not kb.is_negated(text, unstable.start()):
            values["psychological.environment_stable"] = False

        coercion = COERCION.search(text)
        if coercion and not kb.is_negated(text, coercion.start()):
            values["psychological.coercion_suspected"] = True

        return values

    # ========================================================================
    # ENVIRONMENTAL
    # ========================================================================

    def _extract_environmental(self, text: str) -> Dict[str, Any]:
        values: Dict[str, Any] = {}

        for name, (negative, positive) in ENVIRONMENT_SIGNALS.items():
            match = negative.search(text)
            if match and not kb.is_negated(text, match.start()):
                values[f"environmental.{name}"] = False
            elif positive.search(text):
                values[f"environmental.{name}"] = True

        legal = LEGAL_ISSUES.search(text)
        if legal:
            values["environmental.legal_issues"] = not kb.is_negated(text, legal.start())

        return values

    # ========================================================================
    # INFECTIOUS DISEASE AND SURGICAL HISTORY
    # ========================================================================

    def _extract_infectious_results(self, text: str) -> Dict[str, TestResult]:
        """
        Read screening results from a short window around each test name

        A test mentioned without a readable result is recorded as negative,
        as is every test when a generic STI screen is mentioned.
        """
        results: Dict[str, TestResult] = {}
        window = kb.RESULT_CONTEXT_WINDOW

        for name, pattern in self.infectious_patterns.items():
            match = pattern.search(text)
            if not match:
                continue
            after = RESULT_CLAUSE_END.split(text[match.end():match.end() + window], 1)[0]
            before = RESULT_CLAUSE_END.split(text[max(0, match.start() - window):match.start()])[-1]

            result = self._first_result(after)
            if result is None:
                if kb.is_negated(text, match.start()):
                    result = TestResult.NEGATIVE
                else:
                    result = self._first_result(before, last=True) or TestResult.NEGATIVE
            results[name] = result

        screen = kb.GENERIC_STI_SCREEN.search(text)
        if screen:
            after = text[screen.end():screen.end() + window]
            if not kb.POSITIVE_RESULT.search(after) or kb.NEGATIVE_RESULT.search(after):
                for name in kb.INFECTIOUS_TESTS:
                    results.setdefault(name, TestResult.NEGATIVE)

        return results

    @staticmethod
    def _first_result(segment: str, last: bool = False) -> Optional[TestResult]:
        """Result token nearest the test name: first after it, last before it"""
        negatives = [m.span() for m in kb.NEGATIVE_RESULT.finditer(segment)]
        found = [(start, TestResult.NEGATIVE) for start, _ in negatives]
        # "non-reactive" and "not detected" contain a positive token
        found += [
            (m.start(), TestResult.POSITIVE) for m in kb.POSITIVE_RESULT.finditer(segment)
            if not any(start <= m.start() < end for start, end in negatives)
        ]
        if not found:
            return None
        found.sort(key=lambda item: item[0])
        return found[-1][1] if last else found[0][1]

    def _extract_surgical_history(self, text: str) -> tuple:
        seen: List[str] = []
        for match in SURGICAL_PROCEDURES.finditer(text):
            if kb.is_negated(text, match.start()):
                continue
            procedure = match.group(1).lower()
            if procedure not in seen:
                seen.append(procedure)
        return tuple(seen)
