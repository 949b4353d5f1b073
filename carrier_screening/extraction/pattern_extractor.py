"""
Pattern Extractor (Layer 1)

Fast deterministic matcher for structured obstetric notation:
1. Gravida/para notation (G#P#, GTPAL, "gravida 3 para 2")
2. Delivery-type tokens (vaginal, cesarean, operative)
3. Gestational ages ("39+2", "39 weeks 2 days", "GA: 38")
4. Lab values (BP, glucose, HbA1c, TSH, Hgb, Hct, BMI, weight)
5. Complication categories via per-category keyword sets

Unmatched text is a normal outcome. Nothing in this module raises on input
that simply does not contain obstetric notation.
"""

import re
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core.data_models import (
    Complication,
    ComplicationCategory,
    ExtractionFragment,
    ExtractionLayer,
    GestationalAge,
    GestationalClass,
)
from ..core.knowledge_base import (
    ORDINAL_WORDS,
    PATTERN_COMPLICATION_KEYWORDS,
    clause_around,
    compile_table,
    infer_severity,
    is_negated,
    mask_spans,
    parse_count,
)

logger = logging.getLogger(__name__)


# Confidence contributed by each successful sub-extraction
CONFIDENCE_WEIGHTS = {
    "obstetric_notation": 30,
    "gestational_age": 20,
    "delivery_type": 25,
    "complication_status": 25,
    "lab_values": 10,
}

MIN_GESTATIONAL_WEEKS = 20
MAX_GESTATIONAL_WEEKS = 45

_COUNT_PREFIX = r"(?:\b(\d|one|two|three|four|five|six)\s+(?:prior\s+|previous\s+|repeat\s+)?)?"
_COUNT_SUFFIX = r"(?:\s*(?:[x×]\s*(\d)|\((\d)\)))?"

DELIVERY_TOKENS = {
    # Operative runs first and its spans are masked, so "vacuum-assisted
    # vaginal delivery" is not also counted as a vaginal delivery.
    "operative": (
        r"(?:forceps|vacuum)(?:[- ](?:assisted|extraction))?(?:\s+vaginal)?(?:\s+(?:delivery|deliveries|birth))?"
        r"|\bOVD\b|operative vaginal (?:delivery|deliveries|birth)|assisted (?:vaginal )?(?:delivery|deliveries)"
    ),
    "cesarean": (
        r"\bC/S\b|\bCS\b|\bLSCS\b|\bLTCS\b|\bRCS\b|\bc-?\s?sections?\b|\bcsections?\b"
        r"|\b(?:ca?esar(?:e|i)an|cesarian)(?:\s+(?:sections?|deliver(?:y|ies)|births?))?"
    ),
    "vaginal": (
        r"\bN?SVDs?\b|\bNSDs?\b|\bVBACs?\b|\bVDs?\b"
        r"|\bvaginal (?:delivery|deliveries|birth|births)\b|\bspontaneous vaginal\b"
    ),
}

OBSTETRIC_COMPACT = re.compile(r"\bG(\d{1,2})\s*P(\d)(\d)(\d)(\d)\b", re.I)
OBSTETRIC_GTPAL = re.compile(
    r"\bG\s*(\d{1,2})\s*,?\s*P\s*(\d{1,2})"
    r"(?:\s*\(?\s*(\d{1,2})\s*[-,]\s*(\d{1,2})\s*[-,]\s*(\d{1,2})\s*[-,]\s*(\d{1,2})\s*\)?)?",
    re.I
)
GRAVIDA_WORD = re.compile(r"\bgravida\s*:?\s*(\d{1,2})\b", re.I)
GRAVIDA_SUFFIX = re.compile(r"\b(\d{1,2})\s*gravida\b", re.I)
PARA_WORD = re.compile(r"\bpara\s*:?\s*(\d{1,2})\b", re.I)
PARA_SUFFIX = re.compile(r"\b(\d{1,2})\s*para\b", re.I)

GESTATIONAL_AGE_PATTERNS = [
    re.compile(r"\bGA\s*:?\s*(\d{2})(?:\s*\+\s*(\d))?\b", re.I),
    re.compile(r"\b(\d{2})\s*\+\s*(\d)\b"),
    re.compile(r"\b(\d{2})w(\d)d\b", re.I),
    re.compile(
        r"\b(\d{2})\s*(?:weeks?|wks?)(?:\s*(?:and\s*)?(\d)\s*(?:days?|d)\b)?(?:\s*(?:gestation|GA|EGA))?",
        re.I
    ),
]

LAB_PATTERNS = {
    "blood_pressure": re.compile(r"\b(?:BP|blood pressure)\s*(?:of|:|=|was|is)?\s*(\d{2,3})\s*/\s*(\d{2,3})\b", re.I),
    "glucose": re.compile(r"\b(?:glucose|blood sugar|FBG|GTT)\s*(?:of|:|=|was|is)?\s*(\d{2,3}(?:\.\d)?)\b", re.I),
    "hba1c": re.compile(r"\b(?:hba1c|a1c|hemoglobin a1c)\s*(?:of|:|=|was|is)?\s*(\d{1,2}(?:\.\d{1,2})?)\s*%?", re.I),
    "tsh": re.compile(r"\bTSH\s*(?:of|:|=|was|is)?\s*(\d{1,2}(?:\.\d{1,3})?)\b", re.I),
    "hemoglobin": re.compile(r"\b(?:hgb|hb|hemoglobin)(?!\s*a1c)\s*(?:of|:|=|was|is)?\s*(\d{1,2}(?:\.\d)?)\b", re.I),
    "hematocrit": re.compile(r"\b(?:hct|hematocrit)\s*(?:of|:|=|was|is)?\s*(\d{2}(?:\.\d)?)\s*%?", re.I),
    "bmi": re.compile(r"\bBMI\s*(?:of|:|=|was|is)?\s*(\d{2}(?:\.\d{1,2})?)\b", re.I),
    "weight": re.compile(r"\b(?:weight|wt)\s*(?:of|:|=|was|is)?\s*(\d{2,3}(?:\.\d)?)\s*(lbs?|pounds|kg)?\b", re.I),
}

NO_COMPLICATIONS = re.compile(
    r"\b(?:no (?:pregnancy |obstetric |prior |previous )?complications?|uncomplicated|"
    r"without complications?|complications?\s*:\s*(?:none|no|denies))\b",
    re.I
)

PREGNANCY_INDEX_CUES = [
    re.compile(r"\b(?:pregnancy|preg)\s*#?\s*(\d)\b", re.I),
    re.compile(r"\b(first|second|third|fourth|fifth|sixth|1st|2nd|3rd|4th|5th|6th)\s+(?:pregnancy|delivery|birth|baby)\b", re.I),
    re.compile(r"\bG(\d)\s*:", re.I),
]


class PatternExtractor:
    """
    Layer 1 extractor for structured obstetric notation

    Performance: pure regex, no I/O (~1-5ms per record)
    """

    def __init__(self):
        self.delivery_patterns = {
            name: re.compile(_COUNT_PREFIX + r"(?:" + tokens + r")" + _COUNT_SUFFIX, re.I)
            for name, tokens in DELIVERY_TOKENS.items()
        }
        self.complication_patterns = compile_table(PATTERN_COMPLICATION_KEYWORDS)
        logger.debug("Pattern extractor initialized")

    # ========================================================================
    # MAIN EXTRACTION
    # ========================================================================

    def extract(self, text: str) -> ExtractionFragment:
        """
        Run every sub-extraction and assemble a fragment

        Args:
            text: Raw candidate record text

        Returns:
            ExtractionFragment with only the fields that were found, and a
            0-100 confidence built from which sub-extractions succeeded
        """
        values: Dict[str, Any] = {}
        found = set()

        notation = self._extract_obstetric_notation(text)
        if notation:
            found.add("obstetric_notation")

        deliveries = self._extract_delivery_types(text)
        if deliveries:
            found.add("delivery_type")

        gestational_ages = self._extract_gestational_ages(text)
        if gestational_ages:
            found.add("gestational_age")

        labs = self._extract_lab_values(text)
        if labs:
            found.add("lab_values")

        complications, complications_denied = self._extract_complications(text)
        if complications or complications_denied:
            found.add("complication_status")

        # ====================================================================
        # Assemble obstetric fields
        # ====================================================================
        if notation:
            if notation.get("gravida") is not None:
                values["pregnancy_history.gravida"] = notation["gravida"]
            if notation.get("para") is not None:
                values["pregnancy_history.total_deliveries"] = notation["para"]
                values["pregnancy_history.term_pregnancy_count"] = notation.get("term", notation["para"])
            if notation.get("preterm") is not None:
                values["pregnancy_history.preterm_count"] = notation["preterm"]

        if deliveries:
            values["pregnancy_history.cesarean_count"] = deliveries["cesarean"]
            values["pregnancy_history.vaginal_delivery_count"] = deliveries["vaginal"]
            values["pregnancy_history.operative_delivery_count"] = deliveries["operative"]
            if "pregnancy_history.total_deliveries" not in values:
                values["pregnancy_history.total_deliveries"] = sum(deliveries.values())

        if gestational_ages:
            values["pregnancy_history.gestational_ages"] = tuple(gestational_ages)
            if "pregnancy_history.preterm_count" not in values:
                values["pregnancy_history.preterm_count"] = sum(
                    1 for ga in gestational_ages if ga.classification is GestationalClass.PRETERM
                )

        if complications or complications_denied:
            values["pregnancy_history.complications"] = tuple(complications)
            values["pregnancy_history.complication_count"] = len(complications)

        if labs:
            values["lab_values"] = labs
            if "bmi" in labs:
                values["lifestyle.bmi"] = labs["bmi"]

        confidence = min(100, sum(CONFIDENCE_WEIGHTS[name] for name in found))

        logger.debug(
            f"Pattern extraction: {len(values)} fields, sections={sorted(found)}, confidence={confidence}"
        )
        return ExtractionFragment(layer=ExtractionLayer.PATTERN, values=values, confidence=confidence)

    # ========================================================================
    # OBSTETRIC NOTATION
    # ========================================================================

    def _extract_obstetric_notation(self, text: str) -> Dict[str, int]:
        """
        Parse G/P notation

        Returns:
            Dict with gravida, para and, for GTPAL, term/preterm/abortions/living.
            Empty when no notation is present.
        """
        match = OBSTETRIC_COMPACT.search(text)
        if match:
            gravida = int(match.group(1))
            term, preterm, abortions, living = (int(match.group(i)) for i in range(2, 6))
            return {
                "gravida": gravida,
                "para": term + preterm,
                "term": term,
                "preterm": preterm,
                "abortions": abortions,
                "living": living,
            }

        match = OBSTETRIC_GTPAL.search(text)
        if match:
            result = {"gravida": int(match.group(1)), "para": int(match.group(2))}
            if match.group(3) is not None:
                result["term"] = int(match.group(3))
                result["preterm"] = int(match.group(4))
                result["abortions"] = int(match.group(5))
                result["living"] = int(match.group(6))
            return result

        result = {}
        # "gravida 2 para 1": the prefix form wins so "2 para" never reads as para
        gravida = GRAVIDA_WORD.search(text) or GRAVIDA_SUFFIX.search(text)
        if gravida:
            result["gravida"] = int(gravida.group(1))
        para = PARA_WORD.search(text) or PARA_SUFFIX.search(text)
        if para:
            result["para"] = int(para.group(1))
        return result

    # ========================================================================
    # DELIVERY TYPES
    # ========================================================================

    def _extract_delivery_types(self, text: str) -> Dict[str, int]:
        """
        Count deliveries per type

        A mention carrying an explicit count ("SVD x2", "2 prior c-sections")
        is authoritative for its type; otherwise each mention counts once.
        """
        counts: Dict[str, int] = {}
        remaining = text

        for name in ("operative", "cesarean", "vaginal"):
            explicit: List[int] = []
            mentions = 0
            spans: List[Tuple[int, int]] = []

            for match in self.delivery_patterns[name].finditer(remaining):
                spans.append(match.span())
                if is_negated(remaining, match.start()):
                    continue
                count = parse_count(match.group(2) or match.group(3) or match.group(1))
                if count is not None and count > 0:
                    explicit.append(count)
                mentions += 1

            counts[name] = max(explicit) if explicit else mentions
            remaining = mask_spans(remaining, spans)

        if not any(counts.values()):
            return {}
        return counts

    # ========================================================================
    # GESTATIONAL AGE
    # ========================================================================

    def _extract_gestational_ages(self, text: str) -> List[GestationalAge]:
        """Gestational ages within 20-45 weeks, one per position in the text"""
        seen_positions = set()
        ages: List[Tuple[int, GestationalAge]] = []

        for pattern in GESTATIONAL_AGE_PATTERNS:
            for match in pattern.finditer(text):
                weeks = int(match.group(1))
                days = int(match.group(2)) if match.group(2) else 0
                if not MIN_GESTATIONAL_WEEKS <= weeks <= MAX_GESTATIONAL_WEEKS or days > 6:
                    continue
                position = match.start(1)
                if position in seen_positions:
                    continue
                seen_positions.add(position)
                ages.append((position, GestationalAge(weeks=weeks, days=days)))

        ages.sort(key=lambda item: item[0])
        return [age for _, age in ages]

    # ========================================================================
    # LAB VALUES
    # ========================================================================

    def _extract_lab_values(self, text: str) -> Dict[str, float]:
        labs: Dict[str, float] = {}

        bp = LAB_PATTERNS["blood_pressure"].search(text)
        if bp:
            labs["bp_systolic"] = float(bp.group(1))
            labs["bp_diastolic"] = float(bp.group(2))

        for name in ("glucose", "hba1c", "tsh", "hemoglobin", "hematocrit"):
            match = LAB_PATTERNS[name].search(text)
            if match:
                labs[name] = float(match.group(1))

        bmi = LAB_PATTERNS["bmi"].search(text)
        if bmi:
            value = float(bmi.group(1))
            if 10 <= value <= 80:
                labs["bmi"] = value

        weight = LAB_PATTERNS["weight"].search(text)
        if weight:
            unit = (weight.group(2) or "lbs").lower()
            key = "weight_kg" if unit == "kg" else "weight_lbs"
            labs[key] = float(weight.group(1))

        return labs

    # ========================================================================
    # COMPLICATIONS
    # ========================================================================

    def _extract_complications(self, text: str) -> Tuple[List[Complication], bool]:
        """
        Detect complication categories

        Returns:
            Tuple of (complications, explicitly_denied). One complication is kept
            per (pregnancy index, category); negated mentions are ignored.
        """
        by_key: Dict[Tuple[int, ComplicationCategory], Tuple[int, Complication]] = {}

        for category, patterns in self.complication_patterns.items():
            for pattern in patterns:
                for match in pattern.finditer(text):
                    if is_negated(text, match.start()):
                        continue
                    index = self._pregnancy_index(text, match.start())
                    key = (index, category)
                    if key in by_key:
                        continue
                    clause = clause_around(text, match.start(), match.end())
                    by_key[key] = (
                        match.start(),
                        Complication(
                            pregnancy_index=index,
                            category=category,
                            description=clause.strip()[:200],
                            severity=infer_severity(clause),
                        ),
                    )

        ordered = sorted(by_key.values(), key=lambda item: (item[1].pregnancy_index, item[0]))
        complications = [complication for _, complication in ordered]
        denied = not complications and NO_COMPLICATIONS.search(text) is not None
        return complications, denied

    def _pregnancy_index(self, text: str, position: int) -> int:
        """Pregnancy number from the nearest preceding cue on the same line, else 0"""
        line_start = text.rfind("\n", 0, position) + 1
        prefix = text[line_start:position]

        best: Optional[Tuple[int, int]] = None
        for pattern in PREGNANCY_INDEX_CUES:
            for match in pattern.finditer(prefix):
                token = match.group(1).lower()
                index = ORDINAL_WORDS.get(token) if token in ORDINAL_WORDS else parse_count(token)
                if index and (best is None or match.start() > best[0]):
                    best = (match.start(), index)
        return best[1] if best else 0
