"""
Extraction Merger

Folds layer fragments into one CandidateRecord under fixed precedence:

1. Obstetric fields (pregnancy_history.*): Pattern Extractor when present,
   else Narrative Extractor
2. All other fields: whichever layer populated them, Narrative Extractor
   breaking ties
3. Explicit user fields override both

The optional AI overlay is applied on top of the merged record and explicit
fields are re-applied afterwards, so user input always wins.

Aggregate confidence blends layer confidences: pattern 40%, narrative 20%,
AI 40%. When the AI layer is not used its weight is renormalized away.
"""

import logging
from typing import Any, Dict, Optional

from ..core.data_models import (
    CandidateRecord,
    ExplicitFields,
    ExtractionFragment,
    ExtractionLayer,
    ExtractionResult,
    apply_field_values,
)

logger = logging.getLogger(__name__)

PATTERN_WEIGHT = 0.4
NARRATIVE_WEIGHT = 0.2
AI_WEIGHT = 0.4

OBSTETRIC_PREFIX = "pregnancy_history."

# Counts the AI layer may not erase when the pattern layer found a positive value
PROTECTED_COUNTS = (
    "pregnancy_history.cesarean_count",
    "pregnancy_history.term_pregnancy_count",
    "pregnancy_history.complication_count",
    "pregnancy_history.total_deliveries",
)

EXPLICIT_CONFIDENCE = 100


def blend_confidence(pattern_confidence: int, narrative_confidence: int, ai_used: bool) -> int:
    """
    Weighted 0-100 confidence

    Examples:
        blend_confidence(90, 50, False) -> round((36 + 10) / 0.6) = 77
        blend_confidence(90, 50, True)  -> round(36 + 10 + 40) = 86
    """
    weighted = PATTERN_WEIGHT * pattern_confidence + NARRATIVE_WEIGHT * narrative_confidence
    total_weight = PATTERN_WEIGHT + NARRATIVE_WEIGHT
    if ai_used:
        weighted += AI_WEIGHT * 100
        total_weight += AI_WEIGHT
    return max(0, min(100, int(round(weighted / total_weight))))


class ExtractionMerger:
    """Deterministic merge of extraction fragments"""

    def merge(
        self,
        pattern: ExtractionFragment,
        narrative: ExtractionFragment,
        explicit: Optional[ExplicitFields] = None
    ) -> ExtractionResult:
        """
        Merge Layer 1 and Layer 2 fragments

        Args:
            pattern: Pattern Extractor fragment
            narrative: Narrative Extractor fragment
            explicit: User-entered fields (always trusted)

        Returns:
            ExtractionResult without AI augmentation
        """
        record = CandidateRecord()

        pattern_values: Dict[str, Any] = {}
        narrative_values: Dict[str, Any] = {}

        for path, value in narrative.values.items():
            if path.startswith(OBSTETRIC_PREFIX) and pattern.has(path):
                continue
            narrative_values[path] = value
        for path, value in pattern.values.items():
            if not path.startswith(OBSTETRIC_PREFIX) and narrative.has(path):
                continue
            pattern_values[path] = value

        record = apply_field_values(record, pattern_values, ExtractionLayer.PATTERN, pattern.confidence)
        record = apply_field_values(record, narrative_values, ExtractionLayer.NARRATIVE, narrative.confidence)

        source_layers = set()
        if pattern_values:
            source_layers.add(ExtractionLayer.PATTERN)
        if narrative_values:
            source_layers.add(ExtractionLayer.NARRATIVE)

        record, used_explicit = self._apply_explicit(record, explicit)
        if used_explicit:
            source_layers.add(ExtractionLayer.EXPLICIT)

        confidence = blend_confidence(pattern.confidence, narrative.confidence, ai_used=False)
        logger.debug(
            f"Merged {len(pattern_values)} pattern + {len(narrative_values)} narrative fields "
            f"(confidence {confidence})"
        )

        return ExtractionResult(
            record=record,
            confidence=confidence,
            source_layers=frozenset(source_layers),
            layer_confidences={
                ExtractionLayer.PATTERN.value: pattern.confidence,
                ExtractionLayer.NARRATIVE.value: narrative.confidence,
            },
            ai_used=False,
        )

    def apply_ai_overlay(
        self,
        merged: ExtractionResult,
        ai_fragment: ExtractionFragment,
        pattern: ExtractionFragment,
        explicit: Optional[ExplicitFields] = None
    ) -> ExtractionResult:
        """
        Overlay a successful AI fragment onto the merged record

        AI values override every field they populate, except:
        - medical conditions are unioned with the merged set
        - a protected count the AI omits or reports as 0 keeps the pattern
          layer's positive value
        Explicit user fields are re-applied last.
        """
        overlay: Dict[str, Any] = {}

        for path, value in ai_fragment.values.items():
            if path in PROTECTED_COUNTS and not value and (pattern.get(path) or 0) > 0:
                logger.debug(f"Keeping pattern value for {path}: AI reported {value!r}")
                continue
            if path == "medical_conditions":
                value = frozenset(merged.record.medical_conditions) | frozenset(value)
            overlay[path] = value

        record = apply_field_values(merged.record, overlay, ExtractionLayer.AI, ai_fragment.confidence)
        record, _ = self._apply_explicit(record, explicit)

        pattern_confidence = merged.layer_confidences.get(ExtractionLayer.PATTERN.value, 0)
        narrative_confidence = merged.layer_confidences.get(ExtractionLayer.NARRATIVE.value, 0)
        layer_confidences = dict(merged.layer_confidences)
        layer_confidences[ExtractionLayer.AI.value] = ai_fragment.confidence

        return ExtractionResult(
            record=record,
            confidence=blend_confidence(pattern_confidence, narrative_confidence, ai_used=True),
            source_layers=merged.source_layers | {ExtractionLayer.AI},
            layer_confidences=layer_confidences,
            ai_used=True,
        )

    @staticmethod
    def _apply_explicit(record: CandidateRecord, explicit: Optional[ExplicitFields]):
        if explicit is None:
            return record, False
        values = explicit.as_values()
        if not values:
            return record, False
        return apply_field_values(record, values, ExtractionLayer.EXPLICIT, EXPLICIT_CONFIDENCE), True
