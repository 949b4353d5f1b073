"""
Unit tests for the guideline eligibility assessor

Tests:
- Each evaluation category in isolation
- Overall tier roll-up
- Recommendations and incomplete-assessment reporting
- Closed-vocabulary enforcement
"""

import pytest

from carrier_screening.assessment.eligibility import BASE_RECOMMENDATIONS, EligibilityAssessor
from carrier_screening.core.data_models import (
    AlcoholUse,
    CandidateRecord,
    ConditionTag,
    CriteriaCategory,
    Criterion,
    Environmental,
    EligibilityStatus,
    Lifestyle,
    PregnancyHistory,
    PsychFlag,
    Psychological,
    TestResult,
)
from carrier_screening.exceptions import VocabularyViolationError

ELIGIBLE = EligibilityStatus.ELIGIBLE
COUNSELING = EligibilityStatus.REQUIRES_COUNSELING
HIGH_RISK = EligibilityStatus.HIGH_RISK
DISQUALIFIED = EligibilityStatus.DISQUALIFIED

ALL_NEGATIVE = {
    name: TestResult.NEGATIVE
    for name in ("hiv", "hepatitis_b", "hepatitis_c", "syphilis", "gonorrhea", "chlamydia")
}


@pytest.fixture(scope="module")
def assessor():
    return EligibilityAssessor()


def healthy_record(**overrides):
    values = {
        "age": 30,
        "lifestyle": Lifestyle(bmi=24.0),
        "pregnancy_history": PregnancyHistory(term_pregnancy_count=2, total_deliveries=2),
        "infectious_disease_results": ALL_NEGATIVE,
    }
    values.update(overrides)
    return CandidateRecord(**values)


def statuses(criteria):
    return [criterion.status for criterion in criteria]


# ============================================================================
# OVERALL
# ============================================================================

def test_healthy_candidate_is_eligible(assessor):
    assessment = assessor.assess(healthy_record())

    assert assessment.overall_status is ELIGIBLE
    assert assessment.overall_description == "Meets ASRM basic eligibility criteria - strong candidate"
    assert set(statuses(assessment.criteria)) == {ELIGIBLE}
    assert assessment.missing_categories == ()
    assert assessment.recommendations == BASE_RECOMMENDATIONS


def test_every_category_evaluated_in_order(assessor):
    assessment = assessor.assess(healthy_record())

    assert list(assessment.by_category()) == list(CriteriaCategory)


# ============================================================================
# AGE
# ============================================================================

@pytest.mark.parametrize("age, status", [
    (17, DISQUALIFIED),
    (19, HIGH_RISK),
    (21, ELIGIBLE),
    (35, ELIGIBLE),
    (36, COUNSELING),
    (45, COUNSELING),
    (46, HIGH_RISK),
])
def test_age_tiers(age, status):
    criterion = EligibilityAssessor.assess_age(age)

    assert criterion.category is CriteriaCategory.AGE
    assert criterion.status is status


def test_unknown_age_is_not_evaluated(assessor):
    assessment = assessor.assess(healthy_record(age=None))

    assert assessment.missing_categories == (CriteriaCategory.AGE,)
    assert assessment.recommendations[-1] == "INCOMPLETE ASSESSMENT: Missing evaluations for: Age Requirements"


# ============================================================================
# PREGNANCY HISTORY
# ============================================================================

def test_no_term_pregnancy_is_high_risk():
    criteria = EligibilityAssessor.assess_pregnancy_history(CandidateRecord())

    assert statuses(criteria) == [HIGH_RISK]
    assert criteria[0].message.startswith("No previous term pregnancy")


def test_delivery_count_without_term_count_counts_as_term():
    record = CandidateRecord(pregnancy_history=PregnancyHistory(total_deliveries=2, preterm_count=1))

    criteria = EligibilityAssessor.assess_pregnancy_history(record)

    assert statuses(criteria) == [ELIGIBLE]


def test_all_preterm_deliveries_are_not_term():
    record = CandidateRecord(pregnancy_history=PregnancyHistory(total_deliveries=1, preterm_count=1))

    assert statuses(EligibilityAssessor.assess_pregnancy_history(record)) == [HIGH_RISK]


def test_pregnancy_history_limits():
    record = CandidateRecord(pregnancy_history=PregnancyHistory(
        term_pregnancy_count=6, total_deliveries=6, cesarean_count=4, complication_count=1,
    ))

    criteria = EligibilityAssessor.assess_pregnancy_history(record)

    assert statuses(criteria) == [ELIGIBLE, HIGH_RISK, HIGH_RISK, HIGH_RISK]
    assert [c.message for c in criteria[1:]] == [
        "Previous pregnancy complications detected. Requires thorough medical evaluation.",
        "Candidate has had more than 5 previous deliveries",
        "Candidate has had more than 3 cesarean sections",
    ]


def test_three_cesareans_within_guideline():
    record = CandidateRecord(pregnancy_history=PregnancyHistory(term_pregnancy_count=3, cesarean_count=3))

    assert statuses(EligibilityAssessor.assess_pregnancy_history(record)) == [ELIGIBLE]


# ============================================================================
# MEDICAL CONDITIONS
# ============================================================================

def test_no_conditions_is_eligible():
    criteria = EligibilityAssessor.assess_medical_conditions(CandidateRecord())

    assert statuses(criteria) == [ELIGIBLE]


def test_condition_tiers():
    record = CandidateRecord(medical_conditions=frozenset({
        ConditionTag.CARDIAC_DISEASE, ConditionTag.THYROID_DISORDER, ConditionTag.ASTHMA,
    }))

    criteria = EligibilityAssessor.assess_medical_conditions(record)

    assert [(c.status, c.message) for c in criteria] == [
        (COUNSELING, "Medical condition requiring evaluation: thyroid disorder"),
        (HIGH_RISK, "Serious medical condition: cardiac disease - virtually all clinics will decline"),
    ]


def test_unlisted_condition_yields_no_criterion():
    record = CandidateRecord(medical_conditions=frozenset({ConditionTag.GERD}))

    assert EligibilityAssessor.assess_medical_conditions(record) == []


# ============================================================================
# INFECTIOUS DISEASE
# ============================================================================

def test_all_negative_screening():
    criteria = EligibilityAssessor.assess_infectious_diseases(healthy_record())

    assert [(c.status, c.message) for c in criteria] == [
        (ELIGIBLE, "All infectious disease screening tests negative"),
    ]


def test_positive_results_by_transmissibility():
    results = dict(ALL_NEGATIVE, hepatitis_c=TestResult.POSITIVE, chlamydia=TestResult.POSITIVE)

    criteria = EligibilityAssessor.assess_infectious_diseases(healthy_record(infectious_disease_results=results))

    assert statuses(criteria) == [HIGH_RISK, COUNSELING]
    assert criteria[0].message.startswith("Positive test for Hepatitis C.")
    assert criteria[1].message.startswith("Positive test for Chlamydia. Must be treated")


def test_partial_screening_lists_missing_tests():
    record = healthy_record(infectious_disease_results={"hiv": TestResult.NEGATIVE})

    criteria = EligibilityAssessor.assess_infectious_diseases(record)

    assert statuses(criteria) == [COUNSELING]
    assert criteria[0].message == (
        "Missing required infectious disease tests: Hepatitis B, Hepatitis C, Syphilis, Gonorrhea, Chlamydia"
    )


def test_no_results_skips_the_category(assessor):
    assessment = assessor.assess(healthy_record(infectious_disease_results={}))

    assert CriteriaCategory.INFECTIOUS_DISEASE in assessment.missing_categories
    assert assessment.overall_status is ELIGIBLE


# ============================================================================
# PSYCHOLOGICAL
# ============================================================================

def test_clean_psychological_history():
    criteria = EligibilityAssessor.assess_psychological(CandidateRecord())

    assert [(c.status, c.message) for c in criteria] == [
        (ELIGIBLE, "No concerning psychological history reported"),
    ]


def test_completed_evaluation_message():
    record = CandidateRecord(psychological=Psychological(evaluation_completed=True))

    criteria = EligibilityAssessor.assess_psychological(record)

    assert criteria[0].message == "Psychological evaluation completed with no concerning findings"


@pytest.mark.parametrize("flag, status", [
    (PsychFlag.MAJOR_DEPRESSION, HIGH_RISK),
    (PsychFlag.BIPOLAR_DISORDER, HIGH_RISK),
    (PsychFlag.PSYCHOSIS, HIGH_RISK),
    (PsychFlag.ANXIETY_DISORDER, COUNSELING),
    (PsychFlag.EATING_DISORDER, HIGH_RISK),
    (PsychFlag.SUBSTANCE_ABUSE, HIGH_RISK),
    (PsychFlag.ABUSE_HISTORY, COUNSELING),
])
def test_psych_history_flags(flag, status):
    record = CandidateRecord(psychological=Psychological(history_flags=frozenset({flag})))

    assert statuses(EligibilityAssessor.assess_psychological(record)) == [status]


def test_psychological_support_and_coercion():
    record = CandidateRecord(psychological=Psychological(
        coercion_suspected=True, on_psychotropic_medication=True,
        support_adequate=False, environment_stable=False,
    ))

    criteria = EligibilityAssessor.assess_psychological(record)

    assert statuses(criteria) == [HIGH_RISK] * 4
    assert criteria[0].message.startswith("Evidence of financial or emotional coercion")


# ============================================================================
# LIFESTYLE
# ============================================================================

@pytest.mark.parametrize("bmi, status", [
    (18.5, HIGH_RISK),
    (19.0, ELIGIBLE),
    (26.9, ELIGIBLE),
    (27.0, COUNSELING),
    (32.0, COUNSELING),
    (32.5, HIGH_RISK),
])
def test_bmi_tiers(bmi, status):
    criteria = EligibilityAssessor.assess_lifestyle(CandidateRecord(lifestyle=Lifestyle(bmi=bmi)))

    assert statuses(criteria) == [status]
    assert f"BMI of {bmi:g}" in criteria[0].message


def test_substance_use_is_disqualifying():
    lifestyle = Lifestyle(smoker=True, alcohol_use=AlcoholUse.EXCESSIVE, drug_use=True, recent_body_modification=True)

    criteria = EligibilityAssessor.assess_lifestyle(CandidateRecord(lifestyle=lifestyle))

    assert statuses(criteria) == [HIGH_RISK, DISQUALIFIED, DISQUALIFIED, COUNSELING]


def test_social_drinking_is_not_flagged():
    lifestyle = Lifestyle(bmi=22.0, alcohol_use=AlcoholUse.SOCIAL)

    assert statuses(EligibilityAssessor.assess_lifestyle(CandidateRecord(lifestyle=lifestyle))) == [ELIGIBLE]


def test_unknown_bmi_without_flags_leaves_lifestyle_unevaluated(assessor):
    assessment = assessor.assess(healthy_record(lifestyle=Lifestyle()))

    assert assessment.missing_categories == (CriteriaCategory.LIFESTYLE,)


# ============================================================================
# ENVIRONMENTAL
# ============================================================================

def test_stable_environment():
    criteria = EligibilityAssessor.assess_environmental(CandidateRecord())

    assert [(c.status, c.message) for c in criteria] == [
        (ELIGIBLE, "Stable family environment with adequate support"),
    ]


def test_environmental_instability():
    environmental = Environmental(
        housing_stable=False, employment_stable=False, financially_adequate=False,
        relationship_stable=False, partner_supportive=False, legal_issues=True,
    )

    criteria = EligibilityAssessor.assess_environmental(CandidateRecord(environmental=environmental))

    assert statuses(criteria) == [HIGH_RISK, COUNSELING, COUNSELING, HIGH_RISK, HIGH_RISK, HIGH_RISK]


# ============================================================================
# ROLL-UP AND RECOMMENDATIONS
# ============================================================================

def criterion(status):
    return Criterion(CriteriaCategory.LIFESTYLE, status, "message", "guideline")


@pytest.mark.parametrize("criteria_statuses, overall", [
    ([ELIGIBLE, ELIGIBLE], ELIGIBLE),
    ([ELIGIBLE, COUNSELING], COUNSELING),
    ([HIGH_RISK, COUNSELING], COUNSELING),
    ([HIGH_RISK, HIGH_RISK], HIGH_RISK),
    ([DISQUALIFIED], HIGH_RISK),
    ([DISQUALIFIED, DISQUALIFIED], HIGH_RISK),
])
def test_determine_overall(criteria_statuses, overall):
    status, _ = EligibilityAssessor.determine_overall([criterion(s) for s in criteria_statuses])

    assert status is overall


def test_multiple_disqualifying_description():
    _, description = EligibilityAssessor.determine_overall([criterion(DISQUALIFIED), criterion(DISQUALIFIED)])

    assert description.startswith("Multiple factors outside ASRM guidelines")


def test_recommendations_count_each_tier(assessor):
    record = healthy_record(
        age=40,
        lifestyle=Lifestyle(bmi=24.0, smoker=True, drug_use=True),
    )

    assessment = assessor.assess(record)

    assert assessment.overall_status is HIGH_RISK
    assert assessment.recommendations == BASE_RECOMMENDATIONS + (
        "CRITICAL: 1 disqualifying factor(s) identified - candidacy not recommended without resolution",
        "1 high-risk factor(s) require thorough evaluation and clearance",
        "1 factor(s) require additional counseling or testing",
    )


def test_assessment_is_deterministic(assessor):
    record = healthy_record(
        age=38,
        medical_conditions=frozenset({ConditionTag.HYPERTENSION, ConditionTag.KIDNEY_DISEASE}),
    )

    assert assessor.assess(record) == assessor.assess(record)


def test_unknown_condition_rejected(assessor):
    with pytest.raises(VocabularyViolationError):
        assessor.assess(CandidateRecord(medical_conditions=frozenset({"mystery_condition"})))
