"""
Specialist Review Predictor

Second rule engine over the finalized CandidateRecord. Decides whether a
maternal-fetal medicine (MFM) consultation is warranted and predicts its
likely outcome.

Evaluation of a gestational carrier is more conservative than evaluation of
a woman carrying her own pregnancy: conditions that might be approved with
counseling for a personal pregnancy are often declined for surrogacy.

This predictor never consults the clinic scoring engine; both are
independent views of the same record.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..core.data_models import (
    ApprovalLikelihood,
    CandidateRecord,
    ComplicationCategory,
    ConditionTag,
    Finding,
    FindingSeverity,
    ReviewLevel,
    SpecialistAssessment,
    validate_vocabulary,
)

logger = logging.getLogger(__name__)

HIGH = FindingSeverity.HIGH
MODERATE = FindingSeverity.MODERATE
LOW = FindingSeverity.LOW

BASE_QUESTIONS = (
    "Complete obstetric history including complications, gestational ages at delivery, birth weights",
    "Current medications and dosages",
    "Recent vital signs (blood pressure, weight)",
    "Family history of pregnancy complications, diabetes, hypertension",
    "Any hospitalizations or surgeries",
)

BASE_DOCUMENTATION = (
    "Complete medical records from previous pregnancies and deliveries",
    "Recent physical examination with vital signs",
    "Current medication list",
    "Recent laboratory work (CBC, metabolic panel, thyroid function)",
)

# Finding category keyword -> follow-up questions
CATEGORY_QUESTIONS = {
    "Cesarean": (
        "Operative reports from all cesarean deliveries",
        "Indications for each cesarean (emergency vs scheduled)",
        "Any intraoperative complications or difficult surgery",
    ),
    "Hypertension": (
        "When was hypertension diagnosed and what was the cause?",
        "Current blood pressure readings (home monitoring log if available)",
        "Any end-organ effects (kidney, heart, eyes)?",
    ),
    "Diabetes": (
        "Recent hemoglobin A1c value",
        "Diet-controlled vs insulin-requiring?",
        "Any diabetic complications (retinopathy, neuropathy, nephropathy)?",
    ),
    "Obesity": (
        "Recent glucose tolerance test or fasting glucose",
        "Sleep apnea screening/sleep study results",
        "History of metabolic syndrome components",
    ),
}

# Finding category keyword -> documents to request
CATEGORY_DOCUMENTATION = {
    "Cesarean": (
        "Operative reports from all cesarean deliveries",
        "Pathology reports if placental abnormalities",
    ),
    "Hypertension": (
        "Cardiology evaluation and clearance letter",
        "Recent EKG and echocardiogram if indicated",
        "Renal function tests (creatinine, urinalysis)",
    ),
    "Diabetes": (
        "Endocrinology consultation note",
        "Recent A1c and glucose logs",
        "Ophthalmology exam (retinal screening)",
        "Urine microalbumin/creatinine ratio",
    ),
    "Thyroid": (
        "Recent TSH and Free T4 levels",
        "Endocrinology note if on treatment",
    ),
    "Autoimmune": (
        "Rheumatology consultation note",
        "Antibody panel results (ANA, anti-dsDNA, anti-Ro, anti-La, anticardiolipin)",
        "Disease activity markers",
    ),
    "Kidney": (
        "Nephrology consultation note",
        "Renal function tests (creatinine, GFR, urine protein)",
    ),
    "Cardiac": (
        "Cardiology evaluation and clearance letter",
        "Recent echocardiogram",
    ),
}

SUMMARY_PREFIX = {
    ReviewLevel.REQUIRED: "MFM consultation suggested before proceeding.",
    ReviewLevel.STRONGLY_RECOMMENDED: "MFM consultation suggested due to identified risk factors.",
    ReviewLevel.RECOMMENDED: "MFM consultation suggested for case-by-case evaluation.",
    ReviewLevel.NOT_REQUIRED: "MFM consultation not necessary for standard cases, but available if needed.",
}

# Recurrence notes for prior complications, keyed by condition tag or complication category
RECURRENCE_NOTES = (
    (ConditionTag.PREECLAMPSIA, ComplicationCategory.PREECLAMPSIA, "prior preeclampsia has 15-25% recurrence"),
    (ConditionTag.HYPEREMESIS, ComplicationCategory.HYPEREMESIS, "hyperemesis gravidarum has 15-80% recurrence rate"),
    (ConditionTag.GASTROPARESIS, None, "gastroparesis often recurs/worsens in pregnancy"),
    (ConditionTag.GESTATIONAL_DIABETES, ComplicationCategory.GESTATIONAL_DIABETES, "gestational diabetes has 30-70% recurrence"),
    (ConditionTag.GERD, None, "GERD typically recurs in pregnancy"),
)

SEVERE_RECURRENCE = (
    (ConditionTag.PREECLAMPSIA, ComplicationCategory.PREECLAMPSIA, "preeclampsia"),
    (ConditionTag.HYPEREMESIS, ComplicationCategory.HYPEREMESIS, "severe hyperemesis requiring hospitalization/TPN"),
    (ConditionTag.GASTROPARESIS, None, "gastroparesis"),
)


def _finding(category, concern, view, severity, approvability, level, declined=False) -> Finding:
    return Finding(
        category=category,
        concern=concern,
        specialist_view=view,
        severity=severity,
        approvability=approvability,
        review_level=level,
        generally_declined=declined,
    )


def _unique(items) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(items))


class SpecialistReviewPredictor:
    """Rule pass producing review level, findings and approval likelihood"""

    def predict(self, record: CandidateRecord) -> SpecialistAssessment:
        """
        Evaluate a finalized record

        Raises:
            VocabularyViolationError: A complication category or condition tag
                is outside the closed vocabulary
        """
        validate_vocabulary(record)

        findings: List[Finding] = []
        findings.extend(self._age_findings(record))
        findings.extend(self._cesarean_findings(record))
        findings.extend(self._delivery_findings(record))
        findings.extend(self._bmi_findings(record))
        for tag in record.ordered_conditions():
            finding = self._condition_finding(tag)
            if finding:
                findings.append(finding)
        findings.extend(self._complication_findings(record))

        significant = sum(1 for f in findings if f.severity in (MODERATE, HIGH))
        if significant >= 2:
            findings.append(_finding(
                "Multiple Risk Factors",
                f"{significant} moderate or high-risk factors identified",
                "MFM will note that combination of multiple risk factors compounds pregnancy risk. "
                "Each additional risk factor increases likelihood of adverse outcome. Will assess cumulative risk.",
                HIGH,
                "Multiple risk factors: MFM less likely to approve when 2+ significant risk factors present. "
                "Each clinic has different threshold for acceptable cumulative risk.",
                ReviewLevel.NOT_REQUIRED,
            ))

        review_level = max((f.review_level for f in findings), key=lambda level: level.rank,
                           default=ReviewLevel.NOT_REQUIRED)
        likelihood, description, approval_range = self.determine_likelihood(findings)

        logger.info(
            f"Specialist review: level={review_level.value} likelihood={likelihood.value} "
            f"findings={len(findings)}"
        )

        return SpecialistAssessment(
            review_level=review_level,
            likelihood=likelihood,
            findings=tuple(findings),
            likelihood_description=description,
            approval_range=approval_range,
            consultation_needed=review_level is not ReviewLevel.NOT_REQUIRED,
            summary=self.build_summary(review_level, description, findings),
            questions_to_ask=self._collect(BASE_QUESTIONS, CATEGORY_QUESTIONS, findings),
            documentation_needed=self._collect(BASE_DOCUMENTATION, CATEGORY_DOCUMENTATION, findings),
        )

    # ========================================================================
    # RULES
    # ========================================================================

    @staticmethod
    def _age_findings(record: CandidateRecord) -> List[Finding]:
        age = record.age
        if age is None:
            return []
        if age > 42:
            return [_finding(
                "Age",
                f"Age {age} significantly above ideal range for carriers",
                "MFM will evaluate advanced maternal age risks: increased rates of gestational diabetes, "
                "preeclampsia, placental complications, and cesarean delivery.",
                HIGH,
                "Age >42 is challenging - MFM likely to recommend against unless exceptionally healthy "
                "with excellent obstetric history",
                ReviewLevel.REQUIRED,
            )]
        if age > 40:
            return [_finding(
                "Age",
                f"Age {age} above ideal range but within ASRM guidelines",
                "MFM will assess for age-related risk factors including blood pressure, glucose tolerance, "
                "and prior pregnancy complications.",
                MODERATE,
                "Age 41-42 generally approvable with clean medical history and normal vital signs",
                ReviewLevel.RECOMMENDED,
            )]
        if age > 38:
            return [_finding(
                "Age",
                f"Age {age} approaching upper range",
                "MFM will note slightly increased risk but generally acceptable. Will monitor closely for "
                "gestational diabetes and hypertension.",
                LOW,
                "Age 39-40 typically approved without issue",
                ReviewLevel.NOT_REQUIRED,
            )]
        return []

    @staticmethod
    def _cesarean_findings(record: CandidateRecord) -> List[Finding]:
        count = record.pregnancy_history.cesarean_count
        if count >= 3:
            declined = count >= 4
            return [_finding(
                "Cesarean History",
                f"{count} previous cesarean deliveries",
                "MFM very concerned about placenta accreta/percreta risk, uterine rupture risk, "
                "intraoperative complications and hemorrhage risk. Will require operative reports and "
                "ultrasound evaluation of uterine scar.",
                HIGH,
                "Four or more C-sections: most MFMs will recommend against surrogacy due to high maternal risk"
                if declined else
                "Three C-sections: MFM may approve with extensive counseling, surgical history review and "
                "delivery at a tertiary care center. Some MFMs will not approve.",
                ReviewLevel.REQUIRED,
                declined=declined,
            )]
        if count == 2:
            return [_finding(
                "Cesarean History",
                "2 previous cesarean deliveries",
                "MFM will note increased risk of placenta previa, accreta (3-11% risk), and need for repeat "
                "cesarean. Will review operative reports.",
                MODERATE,
                "Two C-sections usually approved with proper counseling and surgical history review",
                ReviewLevel.RECOMMENDED,
            )]
        return []

    @staticmethod
    def _delivery_findings(record: CandidateRecord) -> List[Finding]:
        deliveries = record.pregnancy_history.total_deliveries
        if deliveries > 5:
            return [_finding(
                "Grand Multiparity",
                f"{deliveries} previous deliveries (grand multiparity)",
                "MFM will evaluate risks of grand multiparity: postpartum hemorrhage, placental "
                "abnormalities, malpresentation, and uterine atony.",
                MODERATE,
                "Grand multiparity can be approved if previous deliveries were uncomplicated and there is "
                "no anemia or uterine issue",
                ReviewLevel.STRONGLY_RECOMMENDED,
            )]
        return []

    @staticmethod
    def _bmi_findings(record: CandidateRecord) -> List[Finding]:
        bmi = record.lifestyle.bmi
        if not bmi:
            return []
        if bmi >= 35:
            declined = bmi >= 40
            return [_finding(
                "Obesity Class II/III",
                f"BMI {bmi} - Obesity Class {'III (Extreme)' if declined else 'II'}",
                "MFM will identify increased risk of gestational diabetes, preeclampsia, cesarean delivery, "
                "wound complications and anesthesia risks.",
                HIGH,
                "BMI 40 or above: most MFMs will not approve due to excessive maternal and fetal risks"
                if declined else
                "BMI 35-39.9: some MFMs may approve with metabolic workup and a weight management plan. "
                "Many will decline.",
                ReviewLevel.REQUIRED,
                declined=declined,
            )]
        if bmi >= 32:
            return [_finding(
                "Obesity Class I",
                f"BMI {bmi} - Obesity Class I",
                "MFM will note increased risk of gestational diabetes, hypertension, and cesarean delivery. "
                "Will order metabolic screening.",
                MODERATE,
                "BMI 32-34.9: usually approved with glucose tolerance test and blood pressure monitoring",
                ReviewLevel.RECOMMENDED,
            )]
        if bmi < 18.5:
            return [_finding(
                "Underweight",
                f"BMI {bmi} - Underweight",
                "MFM will assess for nutritional deficiencies, eating disorders, and risk of intrauterine "
                "growth restriction.",
                MODERATE,
                "Low BMI can be approved if nutritionally healthy and eating disorder history ruled out",
                ReviewLevel.RECOMMENDED,
            )]
        return []

    @staticmethod
    def _condition_finding(tag: ConditionTag) -> Optional[Finding]:
        if tag is ConditionTag.PREGNANCY_HYPERTENSION:
            return _finding(
                "Pregnancy-Induced Hypertension (PIH)",
                "History of pregnancy-induced hypertension",
                "MFM will evaluate if PIH was diet-controlled or required medication. PIH has 15-25% "
                "recurrence risk.",
                MODERATE,
                "Usually approvable if resolved postpartum, diet-controlled and without progression to "
                "preeclampsia",
                ReviewLevel.REQUIRED,
            )
        if tag is ConditionTag.HYPERTENSION:
            return _finding(
                "Chronic Hypertension",
                "History of chronic hypertension",
                "MFM will evaluate blood pressure control, medication regimen, target organ damage, and "
                "risk of superimposed preeclampsia (25-50%).",
                HIGH,
                "Approvable only if well-controlled on pregnancy-compatible medication with no target organ "
                "damage and baseline BP <140/90",
                ReviewLevel.REQUIRED,
            )
        if tag is ConditionTag.PULMONARY_HYPERTENSION:
            return _finding(
                "Pulmonary Hypertension",
                "History of pulmonary hypertension",
                "MFM and cardiology will consider pregnancy high risk for maternal mortality.",
                HIGH,
                "Pulmonary hypertension: generally declined for surrogacy",
                ReviewLevel.REQUIRED,
                declined=True,
            )
        if tag is ConditionTag.CARDIAC_DISEASE:
            return _finding(
                "Cardiac Disease",
                "Cardiac condition",
                "MFM will require cardiology evaluation of functional status and pregnancy tolerance.",
                HIGH,
                "Cardiac disease: generally declined unless cardiology clears a minor, fully resolved condition",
                ReviewLevel.REQUIRED,
                declined=True,
            )
        if tag is ConditionTag.GESTATIONAL_DIABETES:
            return _finding(
                "Gestational Diabetes History",
                "Previous gestational diabetes",
                "MFM will note 30-84% recurrence risk of gestational diabetes and order early glucose "
                "screening.",
                MODERATE,
                "Prior GDM: usually approved if diet-controlled only. Insulin-requiring GDM may be declined.",
                ReviewLevel.REQUIRED,
            )
        if tag in (ConditionTag.DIABETES, ConditionTag.INSULIN_DEPENDENT_DIABETES):
            return _finding(
                "Diabetes Mellitus",
                "Pre-existing diabetes",
                "MFM will assess diabetes control (A1c must be <6.5%), retinopathy, nephropathy and "
                "neuropathy. Will require endocrinology co-management.",
                HIGH,
                "Pre-existing diabetes: generally declined for surrogacy. Very rare approval with "
                "exceptional control.",
                ReviewLevel.REQUIRED,
                declined=True,
            )
        if tag is ConditionTag.THYROID_DISORDER:
            return _finding(
                "Thyroid Disorder",
                "Thyroid condition",
                "MFM will review thyroid function tests (TSH, Free T4) and ensure stable medication.",
                LOW,
                "Approved if well-controlled on stable medication dose with normal TSH",
                ReviewLevel.RECOMMENDED,
            )
        if tag is ConditionTag.AUTOIMMUNE_DISEASE:
            return _finding(
                "Autoimmune Disease",
                "Autoimmune condition",
                "MFM will assess disease activity, immunosuppressive medications, and risk of flare "
                "during pregnancy.",
                HIGH,
                "Case-by-case. Mild, stable disease on pregnancy-compatible medications may be approved.",
                ReviewLevel.REQUIRED,
            )
        if tag is ConditionTag.ASTHMA:
            return _finding(
                "Asthma",
                "Asthma diagnosis",
                "MFM will assess asthma severity and control.",
                LOW,
                "Approved if well-controlled on inhaled medications without recent exacerbations",
                ReviewLevel.NOT_REQUIRED,
            )
        if tag is ConditionTag.KIDNEY_DISEASE:
            return _finding(
                "Kidney Disease",
                "Renal condition",
                "MFM will evaluate kidney function (creatinine, GFR), proteinuria, and etiology.",
                HIGH,
                "Kidney disease: generally declined unless very mild with normal kidney function. "
                "Nephrology clearance required.",
                ReviewLevel.REQUIRED,
                declined=True,
            )
        return None

    @staticmethod
    def _complication_findings(record: CandidateRecord) -> List[Finding]:
        history = record.pregnancy_history
        if history.effective_complication_count <= 0:
            return []

        conditions = record.medical_conditions
        categories = {c.category for c in history.complications}

        def present(tag, category):
            return tag in conditions or (category is not None and category in categories)

        view = (
            "MFM will require detailed obstetric history: type of complications, severity, gestational age, "
            "maternal/fetal outcomes. Recurrence risk assessment crucial."
        )
        notes = [note for tag, category, note in RECURRENCE_NOTES if present(tag, category)]
        if notes:
            view += " " + "; ".join(notes) + "."

        approvability = "Approvability depends on type and severity of complications. "
        severe = [label for tag, category, label in SEVERE_RECURRENCE if present(tag, category)]
        if severe:
            approvability += (
                ", ".join(severe) + " - require extensive evaluation and often declined for surrogacy "
                "due to high recurrence risk."
            )
        else:
            approvability += (
                "Mild complications may be approved with proper evaluation. Severe complications "
                "(eclampsia, HELLP, placental abruption, stillbirth) typically declined."
            )

        return [_finding(
            "Previous Pregnancy Complications",
            "History of pregnancy complications",
            view,
            MODERATE,
            approvability,
            ReviewLevel.STRONGLY_RECOMMENDED,
        )]

    # ========================================================================
    # OUTCOME
    # ========================================================================

    @staticmethod
    def determine_likelihood(findings) -> Tuple[ApprovalLikelihood, str, str]:
        if not findings:
            return (
                ApprovalLikelihood.LIKELY_APPROVE,
                "No significant risk factors - MFM likely to approve",
                "90-100%",
            )

        high = sum(1 for f in findings if f.severity is HIGH)
        moderate = sum(1 for f in findings if f.severity is MODERATE)

        if high >= 2 or any(f.generally_declined for f in findings):
            return (
                ApprovalLikelihood.LIKELY_DENY,
                "Significant risk factors present - MFM unlikely to approve without major mitigation",
                "10-30%",
            )
        if high == 1:
            return (
                ApprovalLikelihood.UNLIKELY_APPROVE,
                "Concerning risk factor(s) - MFM approval challenging but possible with optimal management",
                "30-50%",
            )
        if moderate >= 2:
            return (
                ApprovalLikelihood.POSSIBLY_APPROVE,
                "Moderate risk factors - MFM may approve with close monitoring plan",
                "50-70%",
            )
        return (
            ApprovalLikelihood.LIKELY_APPROVE,
            "Manageable risk factors - MFM likely to approve with appropriate counseling",
            "70-90%",
        )

    @staticmethod
    def build_summary(review_level: ReviewLevel, description: str, findings) -> str:
        summary = f"{SUMMARY_PREFIX[review_level]} {description}"
        if findings:
            categories = _unique(f.category for f in findings)
            summary += f" Key areas of MFM focus: {', '.join(categories)}."
        return summary

    @staticmethod
    def _collect(base, table: Dict[str, Tuple[str, ...]], findings) -> Tuple[str, ...]:
        items = list(base)
        for finding in findings:
            for keyword, extra in table.items():
                if keyword in finding.category:
                    items.extend(extra)
        return _unique(items)
