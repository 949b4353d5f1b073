"""
LLM-Powered Extractor Module (AI Extraction Adapter, Layer 3)

Sends de-identified record text to an Anthropic model with a fixed JSON
extraction contract and converts the validated response into an
ExtractionFragment.

This is the only component that performs network I/O. Every failure mode
(disabled, timeout, service error, malformed JSON, schema violation) is
returned as a tagged AIExtractionOutcome; nothing is raised to the caller
and no call is retried.
"""

import asyncio
import json
import logging
import re
import time
from typing import Any, Dict, List, Optional

from anthropic import AsyncAnthropic, AnthropicError, APITimeoutError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.config import Settings
from ..core.data_models import (
    AIExtractionOutcome,
    Complication,
    ComplicationCategory,
    ComplicationSeverity,
    ExplicitFields,
    ExtractionFragment,
    ExtractionLayer,
)
from ..core.knowledge_base import normalize_category, normalize_condition
from .deidentify import deidentify_text

logger = logging.getLogger(__name__)

# Failure reasons reported on AIExtractionOutcome
DISABLED = "disabled"
TIMEOUT = "timeout"
SERVICE_ERROR = "service_error"
MALFORMED_RESPONSE = "malformed_response"
SCHEMA_VIOLATION = "schema_violation"

# Confidence recorded as provenance for AI-supplied fields
AI_LAYER_CONFIDENCE = 100

SYSTEM_PROMPT = (
    "You are a medical records analyst reviewing obstetric history for a gestational carrier "
    "candidate. Extract facts only; do not diagnose or give recommendations.\n\n"
    "Rules:\n"
    "- Count each distinct complication once per pregnancy. Group related findings "
    "(e.g. elevated blood pressure and proteinuria leading to preeclampsia is ONE complication).\n"
    "- Preterm labor counts only when delivery happened before 37 weeks.\n"
    "- Artificial rupture of membranes (AROM) and routine inductions are not complications.\n"
    "- Use only these complication categories: "
    + ", ".join(category.value for category in ComplicationCategory) + ".\n"
    "- Severity is one of: mild, moderate, severe.\n"
    "- List missing or unclear information under documentationGaps.\n\n"
    "Respond with a single JSON object and nothing else, using this shape:\n"
    "{\n"
    '  "pregnancyHistory": {\n'
    '    "numberOfTermPregnancies": int,\n'
    '    "numberOfCesareans": int,\n'
    '    "numberOfComplications": int,\n'
    '    "complications": [{"pregnancy": int, "category": str, "description": str, "severity": str}]\n'
    "  },\n"
    '  "medicalConditions": [str],\n'
    '  "surgicalHistory": [str],\n'
    '  "documentationGaps": [str],\n'
    '  "pregnancySummary": str\n'
    "}"
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.I)


# ============================================================================
# RESPONSE SCHEMA
# ============================================================================

class AIComplication(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pregnancy: int = Field(default=0, ge=0)
    category: ComplicationCategory
    description: str = ""
    severity: ComplicationSeverity = ComplicationSeverity.MODERATE

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value):
        category = normalize_category(value)
        if category is None:
            raise ValueError(f"unknown complication category: {value!r}")
        return category

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value):
        if value is None:
            return ComplicationSeverity.MODERATE
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("pregnancy", mode="before")
    @classmethod
    def _default_pregnancy(cls, value):
        return 0 if value is None else value


class AIPregnancyHistory(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    term_pregnancy_count: Optional[int] = Field(default=None, ge=0, alias="numberOfTermPregnancies")
    cesarean_count: Optional[int] = Field(default=None, ge=0, alias="numberOfCesareans")
    complication_count: Optional[int] = Field(default=None, ge=0, alias="numberOfComplications")
    complications: List[AIComplication] = Field(default_factory=list)


class AIExtractionResponse(BaseModel):
    """Fixed extraction contract returned by the external service"""
    model_config = ConfigDict(populate_by_name=True)

    pregnancy_history: AIPregnancyHistory = Field(default_factory=AIPregnancyHistory, alias="pregnancyHistory")
    medical_conditions: List[str] = Field(default_factory=list, alias="medicalConditions")
    surgical_history: List[str] = Field(default_factory=list, alias="surgicalHistory")
    documentation_gaps: List[str] = Field(default_factory=list, alias="documentationGaps")
    pregnancy_summary: Optional[str] = Field(default=None, alias="pregnancySummary")


def parse_response_text(response_text: str) -> AIExtractionResponse:
    """
    Strip code fences, decode JSON and validate against the contract

    Raises:
        json.JSONDecodeError: Response is not JSON
        ValidationError: Response does not match the contract
    """
    cleaned = _CODE_FENCE.sub("", response_text.strip()).strip()
    payload = json.loads(cleaned)
    return AIExtractionResponse.model_validate(payload)


def response_to_fragment(response: AIExtractionResponse) -> ExtractionFragment:
    """Convert a validated response into fragment values (only populated fields)"""
    values: Dict[str, Any] = {}
    history = response.pregnancy_history

    if history.term_pregnancy_count is not None:
        values["pregnancy_history.term_pregnancy_count"] = history.term_pregnancy_count
    if history.cesarean_count is not None:
        values["pregnancy_history.cesarean_count"] = history.cesarean_count
    if history.complications:
        values["pregnancy_history.complications"] = tuple(
            Complication(
                pregnancy_index=item.pregnancy,
                category=item.category,
                description=item.description,
                severity=item.severity,
            )
            for item in history.complications
        )
    if history.complication_count is not None:
        values["pregnancy_history.complication_count"] = history.complication_count
    elif history.complications:
        values["pregnancy_history.complication_count"] = len(history.complications)

    conditions = set()
    for raw in response.medical_conditions:
        tag = normalize_condition(raw)
        if tag is None:
            logger.warning(f"Dropping unrecognized condition from AI response: {raw!r}")
            continue
        conditions.add(tag)
    if conditions:
        values["medical_conditions"] = frozenset(conditions)

    if response.surgical_history:
        values["surgical_history"] = tuple(response.surgical_history)
    if response.documentation_gaps:
        values["documentation_gaps"] = tuple(response.documentation_gaps)
    if response.pregnancy_summary:
        values["pregnancy_summary"] = response.pregnancy_summary

    return ExtractionFragment(layer=ExtractionLayer.AI, values=values, confidence=AI_LAYER_CONFIDENCE)


# ============================================================================
# CLIENT
# ============================================================================

def build_client(settings: Settings) -> Optional[AsyncAnthropic]:
    """Create the Anthropic client, or None when the AI layer is unavailable"""
    if not settings.enable_ai_extraction:
        logger.info("AI extraction disabled by configuration")
        return None
    if not settings.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY not set. AI extraction layer disabled (graceful degradation).")
        return None
    return AsyncAnthropic(
        api_key=settings.anthropic_api_key,
        max_retries=0,
        timeout=settings.ai_timeout_seconds,
    )


class LlmExtractor:

    def __init__(self, client: Optional[AsyncAnthropic], settings: Optional[Settings] = None):
        """
        Initializes the LLM Extractor with a pre-configured Anthropic client.

        Args:
            client: An initialized AsyncAnthropic client (or None).
            settings: Model, token and timeout settings.
        """
        self.client = client
        self.settings = settings or Settings()

    @property
    def available(self) -> bool:
        return self.client is not None

    def build_user_prompt(self, deidentified_text: str, context: Optional[ExplicitFields] = None) -> str:
        lines = []
        if context is not None:
            provided = []
            if context.age is not None:
                provided.append(f"age {context.age}")
            if context.bmi is not None:
                provided.append(f"BMI {context.bmi}")
            if context.notes:
                provided.append(f"notes: {deidentify_text(context.notes, context.candidate_name)}")
            if provided:
                lines.append("User-provided context (trusted): " + "; ".join(provided))
                lines.append("")
        lines.append("Medical record:")
        lines.append(deidentified_text)
        return "\n".join(lines)

    async def extract(self, text: str, context: Optional[ExplicitFields] = None) -> AIExtractionOutcome:
        """
        Run one extraction call within the configured time budget

        Args:
            text: Raw record text (de-identified here before sending)
            context: Explicit user fields passed along as trusted context

        Returns:
            AIExtractionOutcome, success or tagged failure
        """
        if not self.client:
            logger.info("LLM client not available. Skipping AI extraction layer.")
            return AIExtractionOutcome.failed(DISABLED)

        candidate_name = context.candidate_name if context else None
        user_prompt = self.build_user_prompt(deidentify_text(text, candidate_name), context)

        start = time.time()
        try:
            message = await asyncio.wait_for(
                self.client.messages.create(
                    model=self.settings.extraction_model,
                    max_tokens=self.settings.ai_max_tokens,
                    temperature=0.0,  # Factual extraction
                    system=SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": user_prompt}],
                ),
                timeout=self.settings.ai_timeout_seconds,
            )
        except (asyncio.TimeoutError, APITimeoutError):
            elapsed = (time.time() - start) * 1000
            logger.warning(f"AI extraction timed out after {elapsed:.0f}ms; using deterministic merge")
            return AIExtractionOutcome.failed(TIMEOUT, elapsed)
        except AnthropicError as e:
            elapsed = (time.time() - start) * 1000
            logger.warning(f"AI extraction API error: {e}")
            return AIExtractionOutcome.failed(SERVICE_ERROR, elapsed)
        except Exception as e:
            elapsed = (time.time() - start) * 1000
            logger.error(f"Unexpected AI extraction error: {e}")
            return AIExtractionOutcome.failed(SERVICE_ERROR, elapsed)

        elapsed = (time.time() - start) * 1000

        try:
            response_text = "".join(
                block.text for block in message.content if getattr(block, "type", "text") == "text"
            )
            response = parse_response_text(response_text)
        except (json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.warning(f"AI extraction returned malformed JSON: {e}")
            return AIExtractionOutcome.failed(MALFORMED_RESPONSE, elapsed)
        except ValidationError as e:
            logger.warning(f"AI extraction response failed schema validation: {e.error_count()} error(s)")
            return AIExtractionOutcome.failed(SCHEMA_VIOLATION, elapsed)

        fragment = response_to_fragment(response)
        logger.info(f"AI extraction succeeded in {elapsed:.0f}ms ({len(fragment.values)} fields)")
        return AIExtractionOutcome(success=True, fragment=fragment, elapsed_ms=elapsed)
