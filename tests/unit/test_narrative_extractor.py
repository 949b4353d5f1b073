"""
Unit tests for the Layer 2 narrative extractor
"""

import pytest

from carrier_screening.core.data_models import (
    AlcoholUse,
    ComplicationCategory,
    ConditionTag,
    ExtractionLayer,
    TestResult,
)
from carrier_screening.extraction.narrative_extractor import NarrativeExtractor


@pytest.fixture(scope="module")
def extractor():
    return NarrativeExtractor()


def test_structured_scenario(extractor):
    fragment = extractor.extract("G3P2, 32yo, BMI 24.5, SVD x2, no complications")

    assert fragment.layer is ExtractionLayer.NARRATIVE
    assert fragment.get("age") == 32
    assert fragment.get("lifestyle.bmi") == 24.5
    assert fragment.get("pregnancy_history.complication_count") == 0
    # age 20 + pregnancy history 30 + bmi 15
    assert fragment.confidence == 65


def test_plain_language_profile(extractor):
    text = (
        "Sarah is a 34 year old mother of two. She is a non-smoker, drinks socially, "
        "and is married with stable housing. Her BMI is 27.3."
    )
    fragment = extractor.extract(text)

    assert fragment.get("age") == 34
    assert fragment.get("pregnancy_history.term_pregnancy_count") == 2
    assert fragment.get("pregnancy_history.total_deliveries") == 2
    assert fragment.get("lifestyle.smoker") is False
    assert fragment.get("lifestyle.alcohol_use") is AlcoholUse.SOCIAL
    assert fragment.get("lifestyle.bmi") == 27.3
    assert fragment.get("environmental.relationship_stable") is True
    assert fragment.get("environmental.housing_stable") is True
    assert fragment.confidence == 80


def test_age_out_of_range_ignored(extractor):
    fragment = extractor.extract("Candidate is 75 years old.")

    assert not fragment.has("age")


def test_cesarean_counts(extractor):
    assert extractor.extract("She has had 2 c-sections.").get("pregnancy_history.cesarean_count") == 2
    assert extractor.extract("She had a c-section in 2018.").get("pregnancy_history.cesarean_count") == 1
    assert extractor.extract("Successful VBAC last year.").get("pregnancy_history.cesarean_count") == 1


def test_pregnancy_hypertension(extractor):
    fragment = extractor.extract("She had high blood pressure during her second pregnancy.")

    assert fragment.get("medical_conditions") == frozenset({ConditionTag.PREGNANCY_HYPERTENSION})
    complications = fragment.get("pregnancy_history.complications")
    assert [c.category for c in complications] == [ComplicationCategory.HYPERTENSIVE]
    assert fragment.get("pregnancy_history.complication_count") == 1


def test_chronic_hypertension_not_tagged_as_pregnancy_induced(extractor):
    fragment = extractor.extract("Chronic hypertension managed with labetalol.")

    assert fragment.get("medical_conditions") == frozenset({ConditionTag.HYPERTENSION})


def test_negated_conditions(extractor):
    fragment = extractor.extract("Denies hypertension or diabetes.")

    assert not fragment.has("medical_conditions")


def test_gestational_diabetes_not_tagged_as_diabetes(extractor):
    fragment = extractor.extract("History of gestational diabetes in 2019.")

    assert fragment.get("medical_conditions") == frozenset({ConditionTag.GESTATIONAL_DIABETES})


def test_type_one_diabetes(extractor):
    fragment = extractor.extract("Type 1 diabetes since childhood.")

    assert fragment.get("medical_conditions") == frozenset({ConditionTag.INSULIN_DEPENDENT_DIABETES})


def test_current_smoking_and_drug_use(extractor):
    assert extractor.extract("She currently smokes half a pack a day.").get("lifestyle.smoker") is True
    assert extractor.extract("Reports current marijuana use.").get("lifestyle.drug_use") is True


def test_unmentioned_lifestyle_left_unset(extractor):
    fragment = extractor.extract("Healthy candidate, 29 years old.")

    assert not fragment.has("lifestyle.smoker")
    assert not fragment.has("lifestyle.drug_use")


def test_bmi_from_weight_and_height(extractor):
    fragment = extractor.extract("Weighs 150 lbs and is 5'6\" tall.")

    assert fragment.get("lifestyle.bmi") == 24.2


def test_infectious_disease_results(extractor):
    fragment = extractor.extract("HIV negative, Hep B non-reactive, RPR positive.")

    assert fragment.get("infectious_disease_results") == {
        "hiv": TestResult.NEGATIVE,
        "hepatitis_b": TestResult.NEGATIVE,
        "syphilis": TestResult.POSITIVE,
    }


def test_surgical_history(extractor):
    fragment = extractor.extract("Prior appendectomy and laparoscopy, no cholecystectomy.")

    assert fragment.get("surgical_history") == ("appendectomy", "laparoscopy")


def test_estimate_confidence_caps_conditions():
    values = {"medical_conditions": frozenset(ConditionTag)}

    assert NarrativeExtractor.estimate_confidence(values) == 20


def test_mixed_infectious_results_are_read_per_test(extractor):
    fragment = extractor.extract("Labs: HIV pos, HBV neg.")

    assert fragment.get("infectious_disease_results") == {
        "hiv": TestResult.POSITIVE,
        "hepatitis_b": TestResult.NEGATIVE,
    }


def test_result_written_before_test_name(extractor):
    fragment = extractor.extract("Screening was non-reactive HIV.")

    assert fragment.get("infectious_disease_results") == {"hiv": TestResult.NEGATIVE}


# ============================================================================
# NEGATIVE DEFAULTS AND AGE DISAMBIGUATION
# ============================================================================

@pytest.mark.parametrize("text", [
    "G2P2. Delivered at gestational age 41 weeks, uncomplicated.",
    "Gestational age: 39 wks at delivery.",
    "Induced at age 40+2 for post-dates.",
])
def test_gestational_age_is_not_candidate_age(extractor, text):
    assert not extractor.extract(text).has("age")


def test_age_phrase_still_read(extractor):
    assert extractor.extract("Candidate age: 36. Gestational age 40 weeks at delivery.").get("age") == 36


@pytest.mark.parametrize("text", [
    "History of recreational marijuana use in college, none since 2012.",
    "Past recreational drug use, sober for ten years.",
    "Previously smoked, quit smoking in 2015.",
])
def test_past_use_stays_negative(extractor, text):
    fragment = extractor.extract(text)

    assert fragment.get("lifestyle.drug_use") in (None, False)
    assert fragment.get("lifestyle.smoker") in (None, False)


def test_current_recreational_use_is_positive(extractor):
    fragment = extractor.extract("Currently uses recreational cannabis on weekends.")

    assert fragment.get("lifestyle.drug_use") is True


def test_pregnancy_count_sets_gravida_only(extractor):
    fragment = extractor.extract("She has had 3 pregnancies.")

    assert fragment.get("pregnancy_history.gravida") == 3
    assert not fragment.has("pregnancy_history.total_deliveries")
    assert not fragment.has("pregnancy_history.term_pregnancy_count")


def test_delivery_count_still_sets_deliveries(extractor):
    fragment = extractor.extract("Two prior deliveries, both at term.")

    assert fragment.get("pregnancy_history.total_deliveries") == 2
    assert fragment.get("pregnancy_history.term_pregnancy_count") == 2
