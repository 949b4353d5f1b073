"""
Core data models for the carrier screening system

This module provides the closed vocabularies and the immutable record types
shared by every stage of the pipeline:
- Extraction layers produce ExtractionFragment values (dotted field paths)
- The merger folds fragments into a CandidateRecord
- The scoring engine, the specialist predictor and the eligibility assessor
  read the finalized record

Records are frozen dataclasses. Every stage builds new values with
dataclasses.replace instead of mutating shared state.
"""

from dataclasses import dataclass, field, replace, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from ..exceptions import VocabularyViolationError


# ============================================================================
# ENUMERATIONS
# ============================================================================

class AlcoholUse(Enum):
    """Alcohol consumption pattern"""
    NONE = "none"
    SOCIAL = "social"
    EXCESSIVE = "excessive"


class ComplicationCategory(Enum):
    """
    Closed set of pregnancy complication classes

    The scoring engine keys off these members only. Free-text descriptions
    never influence a score.
    """
    HYPERTENSIVE = "hypertensive"
    PREECLAMPSIA = "preeclampsia"
    GESTATIONAL_DIABETES = "gestational_diabetes"
    PRETERM_LABOR = "preterm_labor"
    MEMBRANE_RUPTURE = "membrane_rupture"
    PLACENTAL_ISSUES = "placental_issues"
    IUGR = "iugr"
    HYPEREMESIS = "hyperemesis"
    HEMORRHAGE = "hemorrhage"
    CERVICAL_INSUFFICIENCY = "cervical_insufficiency"
    CHOLESTASIS = "cholestasis"
    GI_COMPLICATIONS = "gi_complications"

    @property
    def label(self) -> str:
        text = self.value.replace("_", " ")
        return text[0].upper() + text[1:]


class ComplicationSeverity(Enum):
    """Severity of a single prior-pregnancy complication"""
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class ConditionTag(Enum):
    """
    Controlled medical-condition vocabulary

    Definition order is the evaluation order used by the scoring engine and
    the specialist predictor, so issue lists are stable across runs.
    """
    HYPERTENSION = "hypertension"
    PREGNANCY_HYPERTENSION = "pregnancy_hypertension"
    PULMONARY_HYPERTENSION = "pulmonary_hypertension"
    GESTATIONAL_DIABETES = "gestational_diabetes"
    DIABETES = "diabetes"
    INSULIN_DEPENDENT_DIABETES = "insulin_dependent_diabetes"
    PREECLAMPSIA = "preeclampsia"
    THYROID_DISORDER = "thyroid_disorder"
    AUTOIMMUNE_DISEASE = "autoimmune_disease"
    CARDIAC_DISEASE = "cardiac_disease"
    KIDNEY_DISEASE = "kidney_disease"
    ASTHMA = "asthma"
    CANCER = "cancer"
    IUGR = "iugr"
    PLACENTA_PREVIA = "placenta_previa"
    PLACENTAL_ABRUPTION = "placental_abruption"
    POSTPARTUM_HEMORRHAGE = "postpartum_hemorrhage"
    GERD = "gerd"
    GASTROPARESIS = "gastroparesis"
    HYPEREMESIS = "hyperemesis"
    GALLSTONES = "gallstones"
    GASTRITIS = "gastritis"
    BARIATRIC_SURGERY = "bariatric_surgery"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class PsychFlag(Enum):
    """Psychological history flags"""
    MAJOR_DEPRESSION = "major_depression"
    BIPOLAR_DISORDER = "bipolar_disorder"
    PSYCHOSIS = "psychosis"
    ANXIETY_DISORDER = "anxiety_disorder"
    EATING_DISORDER = "eating_disorder"
    SUBSTANCE_ABUSE = "substance_abuse"
    ABUSE_HISTORY = "abuse_history"


class TestResult(Enum):
    """Infectious disease screening outcome"""
    __test__ = False

    NEGATIVE = "negative"
    POSITIVE = "positive"


class GestationalClass(Enum):
    """Delivery timing classification"""
    PRETERM = "preterm"      # < 37 weeks
    TERM = "term"            # 37-42 weeks
    POST_TERM = "post_term"  # > 42 weeks


class ExtractionLayer(Enum):
    """Which layer produced a value"""
    PATTERN = "pattern"
    NARRATIVE = "narrative"
    AI = "ai"
    EXPLICIT = "explicit"


class ClinicProfile(Enum):
    """Clinic acceptance strictness profiles"""
    STRICT = "strict"
    MODERATE = "moderate"
    LENIENT = "lenient"


class IssueSeverity(Enum):
    """Severity tier of a scoring issue"""
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"


class AcceptanceLevel(Enum):
    """Three-level acceptance classification derived from a clinic score"""
    LIKELY_TO_APPROVE = "likely_to_approve"
    MAY_APPROVE_WITH_RECORDS = "may_approve_with_records"
    UNLIKELY_TO_APPROVE = "unlikely_to_approve"

    @property
    def label(self) -> str:
        return _ACCEPTANCE_LABELS[self]


_ACCEPTANCE_LABELS = {
    AcceptanceLevel.LIKELY_TO_APPROVE: "Likely to Approve",
    AcceptanceLevel.MAY_APPROVE_WITH_RECORDS: "May Approve with Additional Records",
    AcceptanceLevel.UNLIKELY_TO_APPROVE: "Unlikely to Approve",
}


class ReviewLevel(Enum):
    """Specialist consultation urgency, ordered by rank"""
    NOT_REQUIRED = "not_required"
    RECOMMENDED = "recommended"
    STRONGLY_RECOMMENDED = "strongly_recommended"
    REQUIRED = "required"

    @property
    def rank(self) -> int:
        return list(ReviewLevel).index(self)


class ApprovalLikelihood(Enum):
    """Predicted outcome of a specialist consultation"""
    LIKELY_APPROVE = "likely_approve"
    POSSIBLY_APPROVE = "possibly_approve"
    UNLIKELY_APPROVE = "unlikely_approve"
    LIKELY_DENY = "likely_deny"


class FindingSeverity(Enum):
    """Severity tag attached to a specialist finding"""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"



class EligibilityStatus(Enum):
    """Guideline eligibility tier, ordered from best to worst"""
    ELIGIBLE = "eligible"
    REQUIRES_COUNSELING = "requires_counseling"
    HIGH_RISK = "high_risk"
    DISQUALIFIED = "disqualified"


class CriteriaCategory(Enum):
    """Guideline evaluation areas, in evaluation order"""
    AGE = "Age Requirements"
    PREGNANCY_HISTORY = "Pregnancy History"
    MEDICAL = "Medical Evaluation"
    INFECTIOUS_DISEASE = "Infectious Disease Screening"
    PSYCHOLOGICAL = "Psychological Evaluation"
    LIFESTYLE = "Lifestyle Factors"
    ENVIRONMENTAL = "Environmental Stability"


# ============================================================================
# CANDIDATE RECORD
# ============================================================================

@dataclass(frozen=True)
class Complication:
    """
    One prior-pregnancy complication

    pregnancy_index is 1-based; 0 means the pregnancy could not be attributed.
    The category is validated by the scoring engine, not here, so that bad
    data reaching the scorer fails loudly instead of being filtered early.
    """
    pregnancy_index: int
    category: ComplicationCategory
    description: str = ""
    severity: ComplicationSeverity = ComplicationSeverity.MODERATE


@dataclass(frozen=True)
class GestationalAge:
    """Gestational age at delivery as written in the record"""
    weeks: int
    days: int = 0

    @property
    def classification(self) -> GestationalClass:
        if self.weeks < 37:
            return GestationalClass.PRETERM
        if self.weeks > 42:
            return GestationalClass.POST_TERM
        return GestationalClass.TERM


@dataclass(frozen=True)
class Lifestyle:
    bmi: Optional[float] = None
    smoker: bool = False
    alcohol_use: AlcoholUse = AlcoholUse.NONE
    drug_use: bool = False
    recent_body_modification: bool = False


@dataclass(frozen=True)
class PregnancyHistory:
    term_pregnancy_count: int = 0
    cesarean_count: int = 0
    total_deliveries: int = 0
    complications: Tuple[Complication, ...] = ()
    complication_count: int = 0

    # Obstetric detail recovered from structured notation
    gravida: Optional[int] = None
    vaginal_delivery_count: int = 0
    operative_delivery_count: int = 0
    preterm_count: int = 0
    gestational_ages: Tuple[GestationalAge, ...] = ()

    @property
    def effective_complication_count(self) -> int:
        """Explicit count, never less than the number of itemized complications"""
        return max(self.complication_count, len(self.complications))


@dataclass(frozen=True)
class Psychological:
    on_psychotropic_medication: bool = False
    evaluation_completed: bool = False
    history_flags: FrozenSet[PsychFlag] = frozenset()
    support_adequate: bool = True
    environment_stable: bool = True
    coercion_suspected: bool = False


@dataclass(frozen=True)
class Environmental:
    housing_stable: bool = True
    employment_stable: bool = True
    financially_adequate: bool = True
    relationship_stable: bool = True
    partner_supportive: bool = True
    legal_issues: bool = False


@dataclass(frozen=True)
class FieldProvenance:
    """Which layer produced a field value, with that layer's local confidence"""
    layer: ExtractionLayer
    confidence: int


@dataclass(frozen=True)
class CandidateRecord:
    """
    Normalized candidate data model

    Assembled fresh per assessment request. Provenance is diagnostic only and
    is excluded from equality so that two records with identical content
    compare equal regardless of which layer supplied each value.
    """
    age: Optional[int] = None
    lifestyle: Lifestyle = field(default_factory=Lifestyle)
    pregnancy_history: PregnancyHistory = field(default_factory=PregnancyHistory)
    medical_conditions: FrozenSet[ConditionTag] = frozenset()
    psychological: Psychological = field(default_factory=Psychological)
    environmental: Environmental = field(default_factory=Environmental)
    infectious_disease_results: Mapping[str, TestResult] = field(default_factory=dict)

    # Supplementary detail (labs, AI-only sections)
    lab_values: Mapping[str, float] = field(default_factory=dict)
    surgical_history: Tuple[str, ...] = ()
    documentation_gaps: Tuple[str, ...] = ()
    pregnancy_summary: Optional[str] = None

    provenance: Mapping[str, FieldProvenance] = field(
        default_factory=dict, compare=False, repr=False
    )

    def ordered_conditions(self) -> List[ConditionTag]:
        """Conditions in vocabulary definition order"""
        return [tag for tag in ConditionTag if tag in self.medical_conditions]


def validate_vocabulary(record: CandidateRecord) -> None:
    """
    Reject records whose tags fall outside the closed vocabularies

    Raises:
        VocabularyViolationError: On the first unknown complication category
            or condition tag
    """
    for complication in record.pregnancy_history.complications:
        if not isinstance(complication.category, ComplicationCategory):
            raise VocabularyViolationError(
                f"Complication category {complication.category!r} is not in the closed vocabulary"
            )
    for tag in record.medical_conditions:
        if not isinstance(tag, ConditionTag):
            raise VocabularyViolationError(f"Medical condition {tag!r} is not in the closed vocabulary")


def apply_field_values(
    record: CandidateRecord,
    values: Mapping[str, Any],
    layer: ExtractionLayer,
    confidence: int
) -> CandidateRecord:
    """
    Return a copy of record with dotted-path values applied

    Paths address either a top-level field ("age") or one level of nesting
    ("lifestyle.bmi"). Provenance is recorded for every applied path.

    Raises:
        KeyError: If a path does not name a record field
    """
    if not values:
        return record

    top_level: Dict[str, Any] = {}
    nested: Dict[str, Dict[str, Any]] = {}

    for path, value in values.items():
        head, _, tail = path.partition(".")
        if head not in _RECORD_FIELDS or head == "provenance":
            raise KeyError(f"Unknown candidate field: {path}")
        if tail:
            section = getattr(record, head)
            if not is_dataclass(section) or tail not in {f.name for f in fields(section)}:
                raise KeyError(f"Unknown candidate field: {path}")
            nested.setdefault(head, {})[tail] = value
        else:
            top_level[head] = value

    for head, updates in nested.items():
        base = top_level.get(head, getattr(record, head))
        top_level[head] = replace(base, **updates)

    provenance = dict(record.provenance)
    for path in values:
        provenance[path] = FieldProvenance(layer=layer, confidence=confidence)
    top_level["provenance"] = provenance

    return replace(record, **top_level)


_RECORD_FIELDS = {f.name for f in fields(CandidateRecord)}


# ============================================================================
# EXTRACTION MODELS
# ============================================================================

@dataclass(frozen=True)
class ExtractionFragment:
    """
    Partial candidate record produced by one extraction layer

    values only holds fields the layer actually found; absence is a
    parse-miss, not an error.
    """
    layer: ExtractionLayer
    values: Mapping[str, Any] = field(default_factory=dict)
    confidence: int = 0

    def has(self, path: str) -> bool:
        return path in self.values

    def get(self, path: str, default: Any = None) -> Any:
        return self.values.get(path, default)


@dataclass(frozen=True)
class ExplicitFields:
    """Values entered directly by the user; always trusted over extraction"""
    age: Optional[int] = None
    bmi: Optional[float] = None
    notes: Optional[str] = None
    candidate_name: Optional[str] = None

    def as_values(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        if self.age is not None:
            values["age"] = self.age
        if self.bmi is not None:
            values["lifestyle.bmi"] = self.bmi
        return values


@dataclass(frozen=True)
class AIExtractionOutcome:
    """Tagged result of the optional AI extraction layer"""
    success: bool
    fragment: Optional[ExtractionFragment] = None
    failure_reason: Optional[str] = None
    elapsed_ms: float = 0.0

    @classmethod
    def failed(cls, reason: str, elapsed_ms: float = 0.0) -> "AIExtractionOutcome":
        return cls(success=False, failure_reason=reason, elapsed_ms=elapsed_ms)


@dataclass(frozen=True)
class ExtractionResult:
    """
    Merged record with diagnostic confidence

    confidence and source_layers are for diagnostics and tests only. Scoring
    never reads them.
    """
    record: CandidateRecord
    confidence: int
    source_layers: FrozenSet[ExtractionLayer] = frozenset()
    layer_confidences: Mapping[str, int] = field(default_factory=dict)
    ai_used: bool = False
    ai_failure_reason: Optional[str] = None


# ============================================================================
# ASSESSMENT MODELS
# ============================================================================

@dataclass(frozen=True)
class Issue:
    severity: IssueSeverity
    message: str
    penalty: int = 0


@dataclass(frozen=True)
class ClinicAssessment:
    profile: ClinicProfile
    score: int
    issues: Tuple[Issue, ...]
    acceptance_level: AcceptanceLevel
    summary: str = ""

    def count(self, severity: IssueSeverity) -> int:
        return sum(1 for issue in self.issues if issue.severity is severity)


@dataclass(frozen=True)
class ClinicAssessments:
    strict: ClinicAssessment
    moderate: ClinicAssessment
    lenient: ClinicAssessment
    recommendations: Tuple[str, ...] = ()

    def by_profile(self) -> Dict[ClinicProfile, ClinicAssessment]:
        return {
            ClinicProfile.STRICT: self.strict,
            ClinicProfile.MODERATE: self.moderate,
            ClinicProfile.LENIENT: self.lenient,
        }


@dataclass(frozen=True)
class Finding:
    category: str
    concern: str
    specialist_view: str
    severity: FindingSeverity
    approvability: str
    review_level: ReviewLevel = ReviewLevel.NOT_REQUIRED
    generally_declined: bool = False


@dataclass(frozen=True)
class SpecialistAssessment:
    review_level: ReviewLevel
    likelihood: ApprovalLikelihood
    findings: Tuple[Finding, ...]
    likelihood_description: str = ""
    approval_range: str = ""
    consultation_needed: bool = False
    summary: str = ""
    questions_to_ask: Tuple[str, ...] = ()
    documentation_needed: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Criterion:
    """One guideline check result"""
    category: CriteriaCategory
    status: EligibilityStatus
    message: str
    guideline: str


@dataclass(frozen=True)
class EligibilityAssessment:
    """
    Guideline eligibility over every evaluated category

    overall_status is derived from the criteria; categories with no
    criterion were not evaluated and are listed in missing_categories.
    """
    criteria: Tuple[Criterion, ...]
    overall_status: EligibilityStatus
    overall_description: str
    recommendations: Tuple[str, ...] = ()

    def count(self, status: EligibilityStatus) -> int:
        return sum(1 for criterion in self.criteria if criterion.status is status)

    def by_category(self) -> Dict[CriteriaCategory, Tuple[Criterion, ...]]:
        grouped: Dict[CriteriaCategory, List[Criterion]] = {}
        for criterion in self.criteria:
            grouped.setdefault(criterion.category, []).append(criterion)
        return {category: tuple(items) for category, items in grouped.items()}

    @property
    def missing_categories(self) -> Tuple[CriteriaCategory, ...]:
        evaluated = {criterion.category for criterion in self.criteria}
        return tuple(category for category in CriteriaCategory if category not in evaluated)


@dataclass(frozen=True)
class AssessmentResult:
    """Combined response of one assess() call"""
    extraction: ExtractionResult
    clinic_assessments: ClinicAssessments
    specialist_assessment: SpecialistAssessment
    eligibility: EligibilityAssessment
    timings_ms: Mapping[str, float] = field(default_factory=dict, compare=False)

    @property
    def candidate_record(self) -> CandidateRecord:
        return self.extraction.record

    @property
    def extraction_confidence(self) -> int:
        return self.extraction.confidence


# ============================================================================
# SERIALIZATION HELPERS
# ============================================================================

def complication_to_dict(complication: Complication) -> Dict:
    category = complication.category
    return {
        "pregnancy_index": complication.pregnancy_index,
        "category": category.value if isinstance(category, ComplicationCategory) else str(category),
        "description": complication.description,
        "severity": complication.severity.value,
    }


def record_to_dict(record: CandidateRecord, include_provenance: bool = False) -> Dict:
    """Convert CandidateRecord to a JSON-ready dictionary with stable ordering"""
    history = record.pregnancy_history
    result = {
        "age": record.age,
        "lifestyle": {
            "bmi": record.lifestyle.bmi,
            "smoker": record.lifestyle.smoker,
            "alcohol_use": record.lifestyle.alcohol_use.value,
            "drug_use": record.lifestyle.drug_use,
            "recent_body_modification": record.lifestyle.recent_body_modification,
        },
        "pregnancy_history": {
            "term_pregnancy_count": history.term_pregnancy_count,
            "cesarean_count": history.cesarean_count,
            "total_deliveries": history.total_deliveries,
            "complications": [complication_to_dict(c) for c in history.complications],
            "complication_count": history.effective_complication_count,
            "gravida": history.gravida,
            "vaginal_delivery_count": history.vaginal_delivery_count,
            "operative_delivery_count": history.operative_delivery_count,
            "preterm_count": history.preterm_count,
            "gestational_ages": [
                {"weeks": ga.weeks, "days": ga.days, "classification": ga.classification.value}
                for ga in history.gestational_ages
            ],
        },
        "medical_conditions": [tag.value for tag in record.ordered_conditions()],
        "psychological": {
            "on_psychotropic_medication": record.psychological.on_psychotropic_medication,
            "evaluation_completed": record.psychological.evaluation_completed,
            "history_flags": sorted(flag.value for flag in record.psychological.history_flags),
            "support_adequate": record.psychological.support_adequate,
            "environment_stable": record.psychological.environment_stable,
            "coercion_suspected": record.psychological.coercion_suspected,
        },
        "environmental": {
            "housing_stable": record.environmental.housing_stable,
            "employment_stable": record.environmental.employment_stable,
            "financially_adequate": record.environmental.financially_adequate,
            "relationship_stable": record.environmental.relationship_stable,
            "partner_supportive": record.environmental.partner_supportive,
            "legal_issues": record.environmental.legal_issues,
        },
        "infectious_disease_results": {
            name: record.infectious_disease_results[name].value
            for name in sorted(record.infectious_disease_results)
        },
        "lab_values": {name: record.lab_values[name] for name in sorted(record.lab_values)},
        "surgical_history": list(record.surgical_history),
        "documentation_gaps": list(record.documentation_gaps),
        "pregnancy_summary": record.pregnancy_summary,
    }
    if include_provenance:
        result["provenance"] = {
            path: {"layer": prov.layer.value, "confidence": prov.confidence}
            for path, prov in sorted(record.provenance.items())
        }
    return result


def clinic_assessment_to_dict(assessment: ClinicAssessment) -> Dict:
    return {
        "profile": assessment.profile.value,
        "score": assessment.score,
        "acceptance_level": assessment.acceptance_level.value,
        "acceptance_label": assessment.acceptance_level.label,
        "issues": [
            {"severity": issue.severity.value, "message": issue.message, "penalty": issue.penalty}
            for issue in assessment.issues
        ],
        "summary": assessment.summary,
    }


def specialist_assessment_to_dict(assessment: SpecialistAssessment) -> Dict:
    return {
        "review_level": assessment.review_level.value,
        "likelihood": assessment.likelihood.value,
        "likelihood_description": assessment.likelihood_description,
        "approval_range": assessment.approval_range,
        "consultation_needed": assessment.consultation_needed,
        "findings": [
            {
                "category": finding.category,
                "concern": finding.concern,
                "specialist_view": finding.specialist_view,
                "severity": finding.severity.value,
                "approvability": finding.approvability,
                "review_level": finding.review_level.value,
                "generally_declined": finding.generally_declined,
            }
            for finding in assessment.findings
        ],
        "summary": assessment.summary,
        "questions_to_ask": list(assessment.questions_to_ask),
        "documentation_needed": list(assessment.documentation_needed),
    }


def eligibility_assessment_to_dict(assessment: EligibilityAssessment) -> Dict:
    return {
        "overall_status": assessment.overall_status.value,
        "overall_description": assessment.overall_description,
        "criteria": [
            {
                "category": criterion.category.value,
                "status": criterion.status.value,
                "message": criterion.message,
                "guideline": criterion.guideline,
            }
            for criterion in assessment.criteria
        ],
        "category_summaries": {
            category.value: [criterion.status.value for criterion in items]
            for category, items in assessment.by_category().items()
        },
        "missing_categories": [category.value for category in assessment.missing_categories],
        "recommendations": list(assessment.recommendations),
    }


def assessment_to_dict(result: AssessmentResult, include_provenance: bool = False) -> Dict:
    """Convert AssessmentResult to the assess() response shape"""
    clinics = result.clinic_assessments
    return {
        "candidate_record": record_to_dict(result.candidate_record, include_provenance),
        "extraction_confidence": result.extraction_confidence,
        "source_layers": sorted(layer.value for layer in result.extraction.source_layers),
        "ai_used": result.extraction.ai_used,
        "clinic_assessments": {
            "strict": clinic_assessment_to_dict(clinics.strict),
            "moderate": clinic_assessment_to_dict(clinics.moderate),
            "lenient": clinic_assessment_to_dict(clinics.lenient),
            "recommendations": list(clinics.recommendations),
        },
        "specialist_assessment": specialist_assessment_to_dict(result.specialist_assessment),
        "eligibility_assessment": eligibility_assessment_to_dict(result.eligibility),
    }
