"""
Unit tests for the Layer 1 pattern extractor

Covers obstetric notation, delivery counting, gestational ages, lab values,
complication detection and the section-based confidence estimate.
"""

import pytest

from carrier_screening.core.data_models import (
    ComplicationCategory,
    ComplicationSeverity,
    ExtractionLayer,
    GestationalAge,
)
from carrier_screening.extraction.pattern_extractor import PatternExtractor


@pytest.fixture(scope="module")
def extractor():
    return PatternExtractor()


def test_structured_scenario(extractor):
    fragment = extractor.extract("G3P2, 32yo, BMI 24.5, SVD x2, no complications")

    assert fragment.layer is ExtractionLayer.PATTERN
    assert fragment.get("pregnancy_history.gravida") == 3
    assert fragment.get("pregnancy_history.total_deliveries") == 2
    assert fragment.get("pregnancy_history.term_pregnancy_count") == 2
    assert fragment.get("pregnancy_history.vaginal_delivery_count") == 2
    assert fragment.get("pregnancy_history.cesarean_count") == 0
    assert fragment.get("pregnancy_history.operative_delivery_count") == 0
    assert fragment.get("pregnancy_history.complications") == ()
    assert fragment.get("pregnancy_history.complication_count") == 0
    assert fragment.get("lifestyle.bmi") == 24.5

    # notation 30 + delivery 25 + labs 10 + complication status 25
    assert fragment.confidence == 90


def test_compact_gtpal_notation(extractor):
    fragment = extractor.extract("G4P2113")

    assert fragment.get("pregnancy_history.gravida") == 4
    assert fragment.get("pregnancy_history.term_pregnancy_count") == 2
    assert fragment.get("pregnancy_history.preterm_count") == 1
    assert fragment.get("pregnancy_history.total_deliveries") == 3
    assert fragment.confidence == 30


def test_gravida_para_words(extractor):
    fragment = extractor.extract("Gravida 2 para 1")

    assert fragment.get("pregnancy_history.gravida") == 2
    assert fragment.get("pregnancy_history.total_deliveries") == 1
    assert fragment.get("pregnancy_history.term_pregnancy_count") == 1


def test_para_word_does_not_take_gravida_number(extractor):
    fragment = extractor.extract("She is gravida 4 para 2, both term.")

    assert fragment.get("pregnancy_history.gravida") == 4
    assert fragment.get("pregnancy_history.total_deliveries") == 2


def test_number_before_word_form(extractor):
    fragment = extractor.extract("3 gravida, 2 para")

    assert fragment.get("pregnancy_history.gravida") == 3
    assert fragment.get("pregnancy_history.total_deliveries") == 2


def test_explicit_delivery_counts(extractor):
    fragment = extractor.extract("Had 2 prior c-sections and one SVD.")

    assert fragment.get("pregnancy_history.cesarean_count") == 2
    assert fragment.get("pregnancy_history.vaginal_delivery_count") == 1
    assert fragment.get("pregnancy_history.total_deliveries") == 3


def test_operative_delivery_not_double_counted_as_vaginal(extractor):
    fragment = extractor.extract("Vacuum-assisted vaginal delivery in 2019.")

    assert fragment.get("pregnancy_history.operative_delivery_count") == 1
    assert fragment.get("pregnancy_history.vaginal_delivery_count") == 0


def test_complications_attributed_to_pregnancies(extractor):
    text = "Pregnancy 1: preeclampsia at 35 weeks. Pregnancy 2: GDM, diet-controlled."
    fragment = extractor.extract(text)

    complications = fragment.get("pregnancy_history.complications")
    assert [(c.pregnancy_index, c.category) for c in complications] == [
        (1, ComplicationCategory.PREECLAMPSIA),
        (2, ComplicationCategory.GESTATIONAL_DIABETES),
    ]
    assert complications[0].severity is ComplicationSeverity.MODERATE
    assert complications[1].severity is ComplicationSeverity.MILD
    assert fragment.get("pregnancy_history.complication_count") == 2

    assert fragment.get("pregnancy_history.gestational_ages") == (GestationalAge(weeks=35),)
    assert fragment.get("pregnancy_history.preterm_count") == 1


def test_severe_marker_sets_severity(extractor):
    fragment = extractor.extract("Pregnancy 1: HELLP, admitted to ICU.")

    complications = fragment.get("pregnancy_history.complications")
    assert complications[0].category is ComplicationCategory.PREECLAMPSIA
    assert complications[0].severity is ComplicationSeverity.SEVERE


def test_negated_complication_ignored(extractor):
    fragment = extractor.extract("Denies preeclampsia.")

    assert not fragment.has("pregnancy_history.complications")
    assert fragment.confidence == 0


def test_lab_values(extractor):
    fragment = extractor.extract("BP 142/92, HbA1c 5.4%, TSH 2.1, BMI 31.2")

    labs = fragment.get("lab_values")
    assert labs["bp_systolic"] == 142.0
    assert labs["bp_diastolic"] == 92.0
    assert labs["hba1c"] == 5.4
    assert labs["tsh"] == 2.1
    assert labs["bmi"] == 31.2
    assert "hemoglobin" not in labs
    assert fragment.get("lifestyle.bmi") == 31.2


def test_gestational_age_formats(extractor):
    fragment = extractor.extract("Delivered at 39+2, then 38 weeks 4 days")

    assert fragment.get("pregnancy_history.gestational_ages") == (
        GestationalAge(weeks=39, days=2),
        GestationalAge(weeks=38, days=4),
    )
    assert fragment.get("pregnancy_history.preterm_count") == 0


def test_text_without_notation(extractor):
    fragment = extractor.extract("Candidate enjoys hiking and volunteers weekly.")

    assert dict(fragment.values) == {}
    assert fragment.confidence == 0
