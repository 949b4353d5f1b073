"""
Screening Engine - Main Orchestrator

Orchestrates all components of the carrier screening system:
- Input validation (typed rejection before the pipeline)
- Parallel deterministic extraction (Layer 1 pattern || Layer 2 narrative)
- Deterministic merge with explicit user fields
- Optional AI augmentation (Layer 3, fail-soft, bounded by a timeout)
- Parallel assessment (clinic scoring || specialist review || guideline eligibility)

This is the main entry point for the entire system.

Usage:
    engine = ScreeningEngine()
    result = await engine.assess("G3P2, 32yo, BMI 24.5, SVD x2, no complications")
"""

import asyncio
import logging
import re
import time
from dataclasses import replace
from typing import Optional

from .core.config import Settings, get_settings
from .core.data_models import AssessmentResult, ExplicitFields, ExtractionResult
from .exceptions import DocumentReadError, InvalidInputError
from .extraction.document_reader import DocumentReader, PlainTextDocumentReader
from .extraction.llm_extractor import DISABLED, LlmExtractor, build_client
from .processing.merger import ExtractionMerger
from .processing.parallel_processor import ParallelProcessor

logger = logging.getLogger(__name__)

ENGINE_VERSION = "1.0.0"

EXPLICIT_AGE_RANGE = (14, 70)
EXPLICIT_BMI_RANGE = (10.0, 80.0)

_ALPHANUMERIC = re.compile(r"[A-Za-z0-9]")


class ScreeningEngine:
    """
    Unified screening engine

    Holds no per-request state: every call to assess() builds its own
    CandidateRecord, so one engine may serve concurrent requests.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        llm_extractor: Optional[LlmExtractor] = None,
        document_reader: Optional[DocumentReader] = None
    ):
        """
        Initialize engine with all components

        Args:
            settings: Runtime settings (loaded from the environment if omitted)
            llm_extractor: AI extraction adapter (built from settings if omitted)
            document_reader: Document-to-text collaborator
        """
        logger.info("=" * 70)
        logger.info("Initializing Carrier Screening Engine")
        logger.info("=" * 70)

        self.settings = settings or get_settings()

        if llm_extractor is None:
            llm_extractor = LlmExtractor(build_client(self.settings), self.settings)
        self.llm_extractor = llm_extractor

        self.parallel_processor = ParallelProcessor()
        self.merger = ExtractionMerger()
        self.document_reader = document_reader or PlainTextDocumentReader()

        if self.llm_extractor.available:
            logger.info(f"AI extraction layer enabled (model: {self.settings.extraction_model})")
        else:
            logger.info("AI extraction layer unavailable; deterministic layers only")

        logger.info("Screening engine initialized successfully")
        logger.info("=" * 70)

    # ========================================================================
    # MAIN PROCESSING ENTRY POINTS
    # ========================================================================

    async def assess(
        self,
        text: str,
        explicit_fields: Optional[ExplicitFields] = None,
        use_ai: bool = True
    ) -> AssessmentResult:
        """
        Main entry point: assess one candidate record

        Complete Pipeline:
        1. Pattern and narrative extraction (parallel)
        2. Deterministic merge with explicit fields
        3. Optional AI overlay (fail-soft)
        4. Clinic scoring, specialist review and guideline eligibility (parallel)

        Args:
            text: Free-text or semi-structured medical record
            explicit_fields: User-entered values, always trusted
            use_ai: Allow the AI extraction layer for this request

        Returns:
            AssessmentResult

        Raises:
            InvalidInputError: Input rejected before entering the pipeline
            VocabularyViolationError: Record carries a tag outside the closed vocabulary
        """
        self.validate_input(text, explicit_fields)

        start_time = time.time()
        timings = {}

        # ====================================================================
        # STEP 1: Parallel Deterministic Extraction
        # ====================================================================
        pattern, narrative, extraction_timings = await self.parallel_processor.extract_parallel(text)
        timings.update(extraction_timings)

        logger.info(
            f"Step 1: extraction complete in {extraction_timings['extraction_ms']:.1f}ms "
            f"(pattern confidence {pattern.confidence}, narrative confidence {narrative.confidence})"
        )

        # ====================================================================
        # STEP 2: Deterministic Merge
        # ====================================================================
        step_start = time.time()
        extraction = self.merger.merge(pattern, narrative, explicit_fields)
        timings["merge_ms"] = (time.time() - step_start) * 1000

        # ====================================================================
        # STEP 3: Optional AI Overlay
        # ====================================================================
        step_start = time.time()
        extraction = await self._apply_ai_layer(extraction, text, pattern, explicit_fields, use_ai)
        timings["ai_extraction_ms"] = (time.time() - step_start) * 1000

        # ====================================================================
        # STEP 4: Parallel Assessment (three rule engines)
        # ====================================================================
        clinics, specialist, eligibility, assessment_timings = await self.parallel_processor.assess_parallel(
            extraction.record
        )
        timings.update(assessment_timings)

        timings["total_ms"] = (time.time() - start_time) * 1000

        logger.info(
            f"Assessment complete: {timings['total_ms']:.1f}ms total, "
            f"confidence {extraction.confidence}, ai_used={extraction.ai_used}"
        )

        return AssessmentResult(
            extraction=extraction,
            clinic_assessments=clinics,
            specialist_assessment=specialist,
            eligibility=eligibility,
            timings_ms=timings,
        )

    def assess_sync(
        self,
        text: str,
        explicit_fields: Optional[ExplicitFields] = None,
        use_ai: bool = True
    ) -> AssessmentResult:
        """Blocking wrapper around assess() for scripts; not for use inside a running loop"""
        return asyncio.run(self.assess(text, explicit_fields, use_ai))

    async def assess_document(
        self,
        content: bytes,
        declared_type: str,
        explicit_fields: Optional[ExplicitFields] = None,
        use_ai: bool = True
    ) -> AssessmentResult:
        """
        Convert a document to text, then assess it

        Raises:
            DocumentReadError: The document could not be converted to text
        """
        document = self.document_reader.read(content, declared_type)
        if not document.success:
            raise DocumentReadError(document.error or "Document could not be read")
        return await self.assess(document.text, explicit_fields, use_ai)

    # ========================================================================
    # PIPELINE HELPERS
    # ========================================================================

    async def _apply_ai_layer(
        self,
        merged: ExtractionResult,
        text: str,
        pattern,
        explicit_fields: Optional[ExplicitFields],
        use_ai: bool
    ) -> ExtractionResult:
        if not use_ai or not self.llm_extractor.available:
            logger.info("Step 3: AI extraction skipped")
            return replace(merged, ai_failure_reason=DISABLED)

        outcome = await self.llm_extractor.extract(text, explicit_fields)
        if not outcome.success:
            logger.warning(
                f"Step 3: AI extraction failed ({outcome.failure_reason}); using deterministic merge"
            )
            return replace(merged, ai_failure_reason=outcome.failure_reason)

        logger.info(f"Step 3: AI extraction applied in {outcome.elapsed_ms:.0f}ms")
        return self.merger.apply_ai_overlay(merged, outcome.fragment, pattern, explicit_fields)

    @staticmethod
    def validate_input(text, explicit_fields: Optional[ExplicitFields] = None) -> None:
        """
        Reject malformed requests before the pipeline

        Raises:
            InvalidInputError: Non-text, empty or symbol-only input, or explicit
                fields out of range
        """
        if not isinstance(text, str):
            raise InvalidInputError(f"Candidate input must be text, got {type(text).__name__}")
        if not text.strip():
            raise InvalidInputError("Candidate input is empty")
        if not _ALPHANUMERIC.search(text):
            raise InvalidInputError("Candidate input contains no readable text")

        if explicit_fields is None:
            return

        age = explicit_fields.age
        if age is not None:
            if isinstance(age, bool) or not isinstance(age, int):
                raise InvalidInputError("Explicit age must be an integer")
            low, high = EXPLICIT_AGE_RANGE
            if not low <= age <= high:
                raise InvalidInputError(f"Explicit age {age} outside accepted range {low}-{high}")

        bmi = explicit_fields.bmi
        if bmi is not None:
            if isinstance(bmi, bool) or not isinstance(bmi, (int, float)):
                raise InvalidInputError("Explicit BMI must be a number")
            low, high = EXPLICIT_BMI_RANGE
            if not low <= bmi <= high:
                raise InvalidInputError(f"Explicit BMI {bmi} outside accepted range {low:g}-{high:g}")

    # ========================================================================
    # CONVENIENCE METHODS
    # ========================================================================

    def get_version(self) -> str:
        """Get engine version"""
        return ENGINE_VERSION

    def is_ai_available(self) -> bool:
        """Check if the AI extraction layer can be used"""
        return self.llm_extractor.available
