"""
Unit tests for the multi-profile clinic risk scoring engine

Tests:
- Band penalties and combination penalties per profile
- Clamping to [0, ceiling] and acceptance-level thresholds
- Progressive lenient complication schedule
- Closed-vocabulary enforcement
- Determinism and monotonicity
- Cross-profile recommendations
"""

import pytest

from carrier_screening.assessment.clinic_scoring import (
    ClinicRiskScorer,
    acceptance_level_for,
    lenient_complication_penalty,
)
from carrier_screening.core.data_models import (
    AcceptanceLevel,
    CandidateRecord,
    ClinicProfile,
    Complication,
    ComplicationCategory,
    ComplicationSeverity,
    ConditionTag,
    IssueSeverity,
    Lifestyle,
    PregnancyHistory,
)
from carrier_screening.exceptions import VocabularyViolationError


@pytest.fixture(scope="module")
def scorer():
    return ClinicRiskScorer()


def healthy_record(**overrides):
    values = {"age": 30, "lifestyle": Lifestyle(bmi=24.0)}
    values.update(overrides)
    return CandidateRecord(**values)


# ============================================================================
# SCENARIOS
# ============================================================================

def test_clean_record_scores_at_ceilings(scorer):
    result = scorer.assess(healthy_record())

    assert (result.strict.score, result.moderate.score, result.lenient.score) == (95, 92, 95)
    for assessment in (result.strict, result.moderate, result.lenient):
        assert assessment.issues == ()
        assert assessment.acceptance_level is AcceptanceLevel.LIKELY_TO_APPROVE
    assert result.strict.summary == "Excellent candidate for strict clinics."


def test_strict_three_cesareans_at_age_44(scorer):
    record = CandidateRecord(
        age=44,
        pregnancy_history=PregnancyHistory(cesarean_count=3, total_deliveries=3),
    )

    strict = scorer.score_profile(record, ClinicProfile.STRICT)

    # 100 - 12 (age) - 10 (cesareans) - 35 (any major) - 30 (major plus another factor)
    assert strict.score == 13
    assert strict.acceptance_level is AcceptanceLevel.UNLIKELY_TO_APPROVE
    assert [issue.penalty for issue in strict.issues] == [12, 10, 30]
    assert all(issue.severity is IssueSeverity.MAJOR for issue in strict.issues)
    assert strict.summary == "May face significant challenges at strict clinics due to 3 major issue(s)."


def test_other_profiles_three_cesareans_at_age_44(scorer):
    record = CandidateRecord(
        age=44,
        pregnancy_history=PregnancyHistory(cesarean_count=3, total_deliveries=3),
    )

    assert scorer.score_profile(record, ClinicProfile.MODERATE).score == 82
    assert scorer.score_profile(record, ClinicProfile.LENIENT).score == 95


def test_preeclampsia_history(scorer):
    record = CandidateRecord(medical_conditions=frozenset({ConditionTag.PREECLAMPSIA}))

    result = scorer.assess(record)

    assert result.strict.issues[0].penalty == 95
    assert result.strict.score == 0
    assert result.moderate.score == 42
    assert result.moderate.acceptance_level is AcceptanceLevel.MAY_APPROVE_WITH_RECORDS
    assert result.lenient.issues[0].penalty == 29
    assert result.lenient.score == 65
    assert result.recommendations == (
        "Candidate likely to be accepted at lenient clinics",
        "Best match: LENIENT clinics - Likely to Approve",
    )


def test_current_smoker(scorer):
    record = healthy_record(lifestyle=Lifestyle(bmi=24.0, smoker=True))

    result = scorer.assess(record)

    assert result.strict.score == 5
    assert result.moderate.score == 60
    assert result.moderate.acceptance_level is AcceptanceLevel.MAY_APPROVE_WITH_RECORDS
    assert result.lenient.score == 76


def test_band_message_includes_value(scorer):
    record = healthy_record(lifestyle=Lifestyle(bmi=31.5))

    strict = scorer.score_profile(record, ClinicProfile.STRICT)

    assert strict.issues[0].message.startswith("BMI 31.5 exceeds strict clinic maximum")


def test_moderate_age_band(scorer):
    strict = scorer.score_profile(healthy_record(age=36), ClinicProfile.STRICT)

    assert strict.score == 94
    assert strict.count(IssueSeverity.MODERATE) == 1
    assert strict.summary == "May be accepted at strict clinics with 1 moderate concern(s) requiring evaluation."


def test_conditions_without_clinic_rule_are_not_penalized(scorer):
    record = healthy_record(medical_conditions=frozenset({ConditionTag.CANCER, ConditionTag.PLACENTA_PREVIA}))

    result = scorer.assess(record)

    assert (result.strict.score, result.moderate.score, result.lenient.score) == (95, 92, 95)


# ============================================================================
# COMPLICATIONS
# ============================================================================

@pytest.mark.parametrize("count, penalty", [(0, 0), (1, 5), (2, 12), (3, 20), (4, 25), (5, 30)])
def test_lenient_complication_schedule(count, penalty):
    assert lenient_complication_penalty(count) == penalty


def test_complication_count_without_itemized_list(scorer):
    record = healthy_record(pregnancy_history=PregnancyHistory(complication_count=3))

    result = scorer.assess(record)

    issue = result.lenient.issues[0]
    assert issue.severity is IssueSeverity.MODERATE
    assert issue.penalty == 20
    assert issue.message == "3 previous pregnancy complications - lenient clinics will review case-by-case"
    assert result.lenient.score == 80
    assert result.strict.score == 0
    assert result.moderate.score == 0


def test_complication_message_lists_categories(scorer):
    complications = (
        Complication(pregnancy_index=1, category=ComplicationCategory.PREECLAMPSIA),
        Complication(pregnancy_index=2, category=ComplicationCategory.GESTATIONAL_DIABETES),
    )
    record = healthy_record(pregnancy_history=PregnancyHistory(complications=complications))

    lenient = scorer.score_profile(record, ClinicProfile.LENIENT)

    assert lenient.issues[0].message == (
        "2 previous pregnancy complications (Preeclampsia, Gestational diabetes) - "
        "lenient clinics will review case-by-case"
    )
    assert lenient.issues[0].penalty == 12
    assert lenient.issues[0].severity is IssueSeverity.MINOR


# ============================================================================
# INVARIANTS
# ============================================================================

@pytest.mark.parametrize("score, level", [
    (95, AcceptanceLevel.LIKELY_TO_APPROVE),
    (61, AcceptanceLevel.LIKELY_TO_APPROVE),
    (60, AcceptanceLevel.MAY_APPROVE_WITH_RECORDS),
    (20, AcceptanceLevel.MAY_APPROVE_WITH_RECORDS),
    (19, AcceptanceLevel.UNLIKELY_TO_APPROVE),
    (0, AcceptanceLevel.UNLIKELY_TO_APPROVE),
])
def test_acceptance_thresholds(score, level):
    assert acceptance_level_for(score) is level


def test_scores_clamped_to_range(scorer):
    record = CandidateRecord(
        age=50,
        lifestyle=Lifestyle(bmi=42.0, smoker=True, drug_use=True),
        pregnancy_history=PregnancyHistory(cesarean_count=5, total_deliveries=7, complication_count=4),
        medical_conditions=frozenset(ConditionTag),
    )

    result = scorer.assess(record)

    for profile, assessment in result.by_profile().items():
        ceiling = scorer.profile_rules[profile].ceiling
        assert 0 <= assessment.score <= ceiling
    assert result.strict.score == 0


@pytest.mark.parametrize("tag", list(ConditionTag))
def test_adding_a_condition_never_raises_a_score(scorer, tag):
    base = scorer.assess(healthy_record())
    worse = scorer.assess(healthy_record(medical_conditions=frozenset({tag})))

    for profile, assessment in worse.by_profile().items():
        assert assessment.score <= base.by_profile()[profile].score


def test_scoring_is_deterministic(scorer):
    record = CandidateRecord(
        age=41,
        lifestyle=Lifestyle(bmi=33.0),
        medical_conditions=frozenset({ConditionTag.ASTHMA, ConditionTag.THYROID_DISORDER, ConditionTag.GERD}),
        pregnancy_history=PregnancyHistory(cesarean_count=2, total_deliveries=3),
    )

    assert scorer.assess(record) == scorer.assess(record)
    assert scorer.assess(record) == ClinicRiskScorer().assess(record)


def test_unknown_complication_category_rejected(scorer):
    record = CandidateRecord(
        pregnancy_history=PregnancyHistory(
            complications=(Complication(pregnancy_index=1, category="alien_abduction"),)
        )
    )

    with pytest.raises(VocabularyViolationError):
        scorer.assess(record)


def test_unknown_condition_rejected(scorer):
    record = CandidateRecord(medical_conditions=frozenset({"mystery_condition"}))

    with pytest.raises(VocabularyViolationError):
        scorer.score_profile(record, ClinicProfile.LENIENT)


# ============================================================================
# RECOMMENDATIONS
# ============================================================================

def test_recommendations_for_clean_record(scorer):
    result = scorer.assess(healthy_record())

    assert result.recommendations == (
        "Candidate is an excellent match for strict/premium clinics",
        "Candidate is an excellent match for moderate/average clinics",
        "Candidate is an excellent match for lenient clinics",
        "Best match: STRICT clinics - Likely to Approve",
    )


def test_recommendations_when_all_profiles_are_low(scorer):
    record = healthy_record(
        lifestyle=Lifestyle(bmi=24.0, smoker=True, drug_use=True),
        medical_conditions=frozenset({ConditionTag.PREECLAMPSIA}),
    )

    result = scorer.assess(record)

    assert result.lenient.score == 22
    assert result.recommendations == (
        "Candidate faces significant challenges at all clinic types. "
        "Consider addressing identified issues before applying.",
    )


@pytest.mark.parametrize("existing", [0, 1, 2, 4])
def test_adding_a_severe_complication_never_raises_a_score(scorer, existing):
    complications = tuple(
        Complication(pregnancy_index=i + 1, category=ComplicationCategory.IUGR) for i in range(existing)
    )
    severe = Complication(
        pregnancy_index=existing + 1,
        category=ComplicationCategory.HEMORRHAGE,
        severity=ComplicationSeverity.SEVERE,
    )
    base = scorer.assess(healthy_record(pregnancy_history=PregnancyHistory(complications=complications)))
    worse = scorer.assess(healthy_record(pregnancy_history=PregnancyHistory(complications=complications + (severe,))))

    for profile, assessment in worse.by_profile().items():
        assert assessment.score <= base.by_profile()[profile].score
