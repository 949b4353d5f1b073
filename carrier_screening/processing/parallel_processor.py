"""
Parallel Processing Module

Runs independent pipeline stages concurrently:
- Pattern Extractor and Narrative Extractor (no data dependency)
- Clinic scoring, specialist review and guideline eligibility (all read the
  same final record)

The merger is the synchronization point between the two extraction layers.

Safety Guarantees:
- No race conditions (extractors and rule engines hold no per-request state)
- No data corruption (fragments and records are immutable)
- Errors propagate; a failing stage fails the request instead of producing
  a partial assessment
"""

import asyncio
import logging
import time
from typing import Dict, Optional, Tuple

from ..assessment.clinic_scoring import ClinicRiskScorer
from ..assessment.eligibility import EligibilityAssessor
from ..assessment.specialist_review import SpecialistReviewPredictor
from ..core.data_models import (
    CandidateRecord,
    ClinicAssessments,
    EligibilityAssessment,
    ExtractionFragment,
    SpecialistAssessment,
)
from ..extraction.narrative_extractor import NarrativeExtractor
from ..extraction.pattern_extractor import PatternExtractor

logger = logging.getLogger(__name__)


async def _timed(func, *args) -> Tuple[object, float]:
    """Run a CPU-bound stage in a worker thread and measure it in ms"""
    start = time.time()
    result = await asyncio.to_thread(func, *args)
    return result, (time.time() - start) * 1000


class ParallelProcessor:
    """
    Async executor for the independent stages of one assessment

    Sequential (must not parallelize):
    - Merge (needs both extraction fragments)
    - AI overlay (needs the merged record)
    - Scoring (needs the final record)
    """

    def __init__(
        self,
        pattern_extractor: Optional[PatternExtractor] = None,
        narrative_extractor: Optional[NarrativeExtractor] = None,
        scorer: Optional[ClinicRiskScorer] = None,
        predictor: Optional[SpecialistReviewPredictor] = None,
        eligibility_assessor: Optional[EligibilityAssessor] = None
    ):
        self.pattern_extractor = pattern_extractor or PatternExtractor()
        self.narrative_extractor = narrative_extractor or NarrativeExtractor()
        self.scorer = scorer or ClinicRiskScorer()
        self.predictor = predictor or SpecialistReviewPredictor()
        self.eligibility_assessor = eligibility_assessor or EligibilityAssessor()

        logger.info("Parallel processor initialized")

    # ========================================================================
    # EXTRACTION (Layer 1 || Layer 2)
    # ========================================================================

    async def extract_parallel(
        self,
        text: str
    ) -> Tuple[ExtractionFragment, ExtractionFragment, Dict[str, float]]:
        """
        Run both deterministic extractors concurrently

        Args:
            text: Validated record text

        Returns:
            Tuple of (pattern_fragment, narrative_fragment, timings_ms)
        """
        start = time.time()
        (pattern, pattern_ms), (narrative, narrative_ms) = await asyncio.gather(
            _timed(self.pattern_extractor.extract, text),
            _timed(self.narrative_extractor.extract, text),
        )
        total_ms = (time.time() - start) * 1000

        logger.debug(
            f"Layer 1: {len(pattern.values)} fields, confidence {pattern.confidence} ({pattern_ms:.1f}ms); "
            f"Layer 2: {len(narrative.values)} fields, confidence {narrative.confidence} ({narrative_ms:.1f}ms)"
        )

        return pattern, narrative, {
            "pattern_extraction_ms": pattern_ms,
            "narrative_extraction_ms": narrative_ms,
            "extraction_ms": total_ms,
        }

    # ========================================================================
    # ASSESSMENT (scoring || specialist review || eligibility)
    # ========================================================================

    async def assess_parallel(
        self,
        record: CandidateRecord
    ) -> Tuple[ClinicAssessments, SpecialistAssessment, EligibilityAssessment, Dict[str, float]]:
        """
        Run the three rule engines concurrently

        Returns:
            Tuple of (clinic_assessments, specialist_assessment,
            eligibility_assessment, timings_ms)

        Raises:
            VocabularyViolationError: Propagated from any rule engine
        """
        start = time.time()
        (clinics, scoring_ms), (specialist, review_ms), (eligibility, eligibility_ms) = await asyncio.gather(
            _timed(self.scorer.assess, record),
            _timed(self.predictor.predict, record),
            _timed(self.eligibility_assessor.assess, record),
        )
        total_ms = (time.time() - start) * 1000

        return clinics, specialist, eligibility, {
            "clinic_scoring_ms": scoring_ms,
            "specialist_review_ms": review_ms,
            "eligibility_ms": eligibility_ms,
            "assessment_ms": total_ms,
        }
