"""
Guideline Eligibility Assessment

Third rule engine over the finalized CandidateRecord. Checks the candidate
against the ASRM 2022 gestational carrier recommendations, one category at
a time, and rolls the criteria up into an overall eligibility tier:
1. Age Requirements
2. Pregnancy History
3. Medical Evaluation
4. Infectious Disease Screening (only when results are on the record)
5. Psychological Evaluation
6. Lifestyle Factors
7. Environmental Stability

The overall tier reflects the guidelines only. Many clinics review outside
them case-by-case, which is what the clinic scoring profiles model.
"""

import logging
from dataclasses import replace
from typing import List, Tuple

from ..core.data_models import (
    AlcoholUse,
    CandidateRecord,
    ConditionTag,
    CriteriaCategory,
    Criterion,
    EligibilityAssessment,
    EligibilityStatus,
    PsychFlag,
    TestResult,
    validate_vocabulary,
)

logger = logging.getLogger(__name__)

ELIGIBLE = EligibilityStatus.ELIGIBLE
COUNSELING = EligibilityStatus.REQUIRES_COUNSELING
HIGH_RISK = EligibilityStatus.HIGH_RISK
DISQUALIFIED = EligibilityStatus.DISQUALIFIED

MAX_DELIVERIES = 5
MAX_CESAREANS = 3

# Conditions virtually every clinic declines, and conditions needing clearance
SERIOUS_CONDITIONS = (
    ConditionTag.PULMONARY_HYPERTENSION,
    ConditionTag.CARDIAC_DISEASE,
    ConditionTag.INSULIN_DEPENDENT_DIABETES,
    ConditionTag.CANCER,
)
CONCERNING_CONDITIONS = (
    ConditionTag.HYPERTENSION,
    ConditionTag.DIABETES,
    ConditionTag.THYROID_DISORDER,
    ConditionTag.AUTOIMMUNE_DISEASE,
    ConditionTag.KIDNEY_DISEASE,
)

# Infectious disease test key -> display name
REQUIRED_TESTS = {
    "hiv": "HIV",
    "hepatitis_b": "Hepatitis B",
    "hepatitis_c": "Hepatitis C",
    "syphilis": "Syphilis",
    "gonorrhea": "Gonorrhea",
    "chlamydia": "Chlamydia",
}
TRANSMISSIBLE_TESTS = ("hiv", "hepatitis_b", "hepatitis_c")
TREATABLE_TESTS = ("syphilis", "gonorrhea", "chlamydia")

BASE_RECOMMENDATIONS = (
    "Complete medical evaluation by qualified reproductive endocrinologist required",
    "Psychological evaluation by mental health professional specializing in reproductive medicine required",
    "Independent legal counsel required before any contracts",
)


class EligibilityAssessor:
    """
    Category-by-category guideline check

    Stateless: every call evaluates only the record it is given, so the
    result is a pure function of the record.
    """

    def assess(self, record: CandidateRecord) -> EligibilityAssessment:
        """
        Evaluate every category and derive the overall tier

        Raises:
            VocabularyViolationError: Record carries a tag outside the closed vocabulary
        """
        validate_vocabulary(record)

        criteria: List[Criterion] = []
        if record.age is not None:
            criteria.append(self.assess_age(record.age))
        criteria.extend(self.assess_pregnancy_history(record))
        criteria.extend(self.assess_medical_conditions(record))
        if record.infectious_disease_results:
            criteria.extend(self.assess_infectious_diseases(record))
        criteria.extend(self.assess_psychological(record))
        criteria.extend(self.assess_lifestyle(record))
        criteria.extend(self.assess_environmental(record))

        overall, description = self.determine_overall(criteria)
        assessment = EligibilityAssessment(
            criteria=tuple(criteria),
            overall_status=overall,
            overall_description=description,
        )
        assessment = replace(assessment, recommendations=self.build_recommendations(assessment))

        logger.info(
            f"Eligibility: {overall.value} ({len(criteria)} criteria, "
            f"{assessment.count(HIGH_RISK)} high risk, {assessment.count(DISQUALIFIED)} disqualifying)"
        )
        return assessment

    # ========================================================================
    # CATEGORY CHECKS
    # ========================================================================

    @staticmethod
    def assess_age(age: int) -> Criterion:
        category = CriteriaCategory.AGE
        if age < 18:
            return Criterion(category, DISQUALIFIED, "Candidate must be of legal age (18+)",
                             "ASRM 2022: Carriers must be of legal age")
        if age < 21:
            return Criterion(category, HIGH_RISK, "Candidate is below preferred minimum age of 21",
                             "ASRM 2022: Preferably between ages 21-45")
        if age <= 35:
            return Criterion(category, ELIGIBLE, "Age is within ideal range",
                             "ASRM 2022: Ideally younger than 35")
        if age <= 45:
            return Criterion(
                category, COUNSELING,
                "Age is acceptable but above ideal range. Counseling recommended regarding "
                "pregnancy risks with advancing maternal age.",
                "ASRM 2022: Preferably between 21-45, ideally <35"
            )
        return Criterion(
            category, HIGH_RISK,
            "Age exceeds standard maximum. All parties must be informed about potential risks "
            "of pregnancy with advancing maternal age.",
            "ASRM 2022: Certain situations may dictate use of carrier >45, but all parties must be informed of risks"
        )

    @staticmethod
    def assess_pregnancy_history(record: CandidateRecord) -> List[Criterion]:
        history = record.pregnancy_history
        category = CriteriaCategory.PREGNANCY_HISTORY
        criteria = []

        # A delivery count without a term count still proves a term delivery unless all were preterm
        term_deliveries = max(history.term_pregnancy_count, history.total_deliveries - history.preterm_count)
        if term_deliveries < 1:
            criteria.append(Criterion(
                category, HIGH_RISK,
                "No previous term pregnancy - ASRM strongly recommends at least one. "
                "Very rarely accepted by any clinic.",
                "ASRM 2022: Carrier should have had at least one term pregnancy"
            ))
        else:
            criteria.append(Criterion(
                category, ELIGIBLE, "Has completed at least one term pregnancy",
                "ASRM 2022: Minimum one term pregnancy required"
            ))

        if history.effective_complication_count > 0:
            criteria.append(Criterion(
                category, HIGH_RISK,
                "Previous pregnancy complications detected. Requires thorough medical evaluation.",
                "ASRM 2022: Pregnancy should be uncomplicated"
            ))
        if history.total_deliveries > MAX_DELIVERIES:
            criteria.append(Criterion(
                category, HIGH_RISK, f"Candidate has had more than {MAX_DELIVERIES} previous deliveries",
                f"ASRM 2022: Ideally no more than {MAX_DELIVERIES} previous deliveries"
            ))
        if history.cesarean_count > MAX_CESAREANS:
            criteria.append(Criterion(
                category, HIGH_RISK, f"Candidate has had more than {MAX_CESAREANS} cesarean sections",
                f"ASRM 2022: Ideally no more than {MAX_CESAREANS} cesarean deliveries"
            ))
        return criteria

    @staticmethod
    def assess_medical_conditions(record: CandidateRecord) -> List[Criterion]:
        category = CriteriaCategory.MEDICAL
        if not record.medical_conditions:
            return [Criterion(category, ELIGIBLE, "No reported medical conditions",
                              "ASRM 2022: Complete medical evaluation required")]

        criteria = []
        for tag in record.ordered_conditions():
            if tag in SERIOUS_CONDITIONS:
                criteria.append(Criterion(
                    category, HIGH_RISK,
                    f"Serious medical condition: {tag.label} - virtually all clinics will decline",
                    "ASRM 2022: Serious medical condition that poses significant risk"
                ))
            elif tag in CONCERNING_CONDITIONS:
                criteria.append(Criterion(
                    category, COUNSELING, f"Medical condition requiring evaluation: {tag.label}",
                    "ASRM 2022: Requires thorough medical evaluation and clearance"
                ))
        return criteria

    @staticmethod
    def assess_infectious_diseases(record: CandidateRecord) -> List[Criterion]:
        results = record.infectious_disease_results
        category = CriteriaCategory.INFECTIOUS_DISEASE
        criteria = []

        missing = [label for name, label in REQUIRED_TESTS.items() if name not in results]
        if missing:
            criteria.append(Criterion(
                category, COUNSELING, f"Missing required infectious disease tests: {', '.join(missing)}",
                "ASRM 2022: All carriers must be tested for infectious diseases"
            ))

        for name, label in REQUIRED_TESTS.items():
            if results.get(name) is not TestResult.POSITIVE:
                continue
            if name in TRANSMISSIBLE_TESTS:
                criteria.append(Criterion(
                    category, HIGH_RISK,
                    f"Positive test for {label}. Virtually all clinics decline due to transmission risk to fetus.",
                    "ASRM 2022: Positive HIV or Hepatitis generally disqualifies candidate"
                ))
            elif name in TREATABLE_TESTS:
                criteria.append(Criterion(
                    category, COUNSELING,
                    f"Positive test for {label}. Must be treated, retested, and deferred for 3 months "
                    "after successful treatment.",
                    "ASRM 2022: Treatable STIs require treatment and 3-month deferral"
                ))

        if not criteria:
            criteria.append(Criterion(
                category, ELIGIBLE, "All infectious disease screening tests negative",
                "ASRM 2022: Comprehensive infectious disease screening completed"
            ))
        return criteria

    @staticmethod
    def assess_psychological(record: CandidateRecord) -> List[Criterion]:
        psych = record.psychological
        flags = psych.history_flags
        category = CriteriaCategory.PSYCHOLOGICAL
        criteria = []

        if psych.coercion_suspected:
            criteria.append(Criterion(
                category, HIGH_RISK,
                "Evidence of financial or emotional coercion - virtually all clinics will decline for ethical reasons",
                "ASRM 2022: Evidence of coercion disqualifies candidate"
            ))
        if psych.on_psychotropic_medication:
            criteria.append(Criterion(
                category, HIGH_RISK,
                "Current psychoactive medication - most clinics require stable period off medication "
                "or cleared by psychiatrist",
                "ASRM 2022: Current psychotropic medication is typically disqualifying"
            ))
        if PsychFlag.BIPOLAR_DISORDER in flags or PsychFlag.PSYCHOSIS in flags:
            criteria.append(Criterion(
                category, HIGH_RISK,
                "History of bipolar disorder or psychosis - most clinics decline due to pregnancy stress risks",
                "ASRM 2022: History of bipolar disorder or psychosis with impaired functioning"
            ))
        if PsychFlag.MAJOR_DEPRESSION in flags:
            criteria.append(Criterion(
                category, HIGH_RISK, "History of major depression requires thorough evaluation and clearance",
                "ASRM 2022: Unresolved or untreated depression is disqualifying"
            ))
        if PsychFlag.ANXIETY_DISORDER in flags:
            criteria.append(Criterion(
                category, COUNSELING, "History of anxiety disorder requires evaluation of current functioning",
                "ASRM 2022: Clinically significant anxiety with impaired functioning is disqualifying"
            ))
        if PsychFlag.SUBSTANCE_ABUSE in flags:
            criteria.append(Criterion(
                category, HIGH_RISK, "History of substance abuse must be resolved and treated",
                "ASRM 2022: Unresolved drug/alcohol abuse is disqualifying"
            ))
        if PsychFlag.ABUSE_HISTORY in flags:
            criteria.append(Criterion(
                category, COUNSELING, "History of abuse requires psychological evaluation and treatment",
                "ASRM 2022: Unresolved abuse history is disqualifying"
            ))
        if PsychFlag.EATING_DISORDER in flags:
            criteria.append(Criterion(
                category, HIGH_RISK, "History of eating disorder must be resolved",
                "ASRM 2022: Unresolved eating disorders are disqualifying"
            ))
        if not psych.support_adequate:
            criteria.append(Criterion(
                category, HIGH_RISK, "Insufficient emotional support system",
                "ASRM 2022: Insufficient emotional support disqualifies candidate"
            ))
        if not psych.environment_stable:
            criteria.append(Criterion(
                category, HIGH_RISK, "Interpersonal or environmental instability detected",
                "ASRM 2022: Environmental instability or major life stressors are disqualifying"
            ))

        if not criteria:
            message = (
                "Psychological evaluation completed with no concerning findings"
                if psych.evaluation_completed
                else "No concerning psychological history reported"
            )
            criteria.append(Criterion(category, ELIGIBLE, message,
                                      "ASRM 2022: Comprehensive psychological evaluation completed"))
        return criteria

    @staticmethod
    def assess_lifestyle(record: CandidateRecord) -> List[Criterion]:
        lifestyle = record.lifestyle
        category = CriteriaCategory.LIFESTYLE
        criteria = []

        bmi = lifestyle.bmi
        if bmi is not None:
            if bmi < 19:
                criteria.append(Criterion(category, HIGH_RISK, f"BMI of {bmi:g} is below recommended range",
                                          "Standard practice: BMI typically 19-32 (varies by clinic)"))
            elif bmi < 27:
                criteria.append(Criterion(category, ELIGIBLE, f"BMI of {bmi:g} is within ideal range",
                                          "Standard practice: Preferably BMI <27"))
            elif bmi <= 32:
                criteria.append(Criterion(category, COUNSELING, f"BMI of {bmi:g} is acceptable but above ideal range",
                                          "Standard practice: Many programs accept BMI 19-32"))
            else:
                criteria.append(Criterion(category, HIGH_RISK,
                                          f"BMI of {bmi:g} exceeds typical maximum for most programs",
                                          "Standard practice: BMI >32 may be disqualifying"))

        if lifestyle.smoker:
            criteria.append(Criterion(
                category, HIGH_RISK, "Current tobacco use detected",
                "ASRM 2022: Tobacco use should be evaluated and typically requires cessation"
            ))
        if lifestyle.alcohol_use is AlcoholUse.EXCESSIVE:
            criteria.append(Criterion(category, DISQUALIFIED, "Excessive alcohol use detected",
                                      "ASRM 2022: Substance abuse disqualifies candidate"))
        if lifestyle.drug_use:
            criteria.append(Criterion(category, DISQUALIFIED, "Current recreational drug use detected",
                                      "ASRM 2022: Current drug use disqualifies candidate"))
        if lifestyle.recent_body_modification:
            criteria.append(Criterion(
                category, COUNSELING, "Recent tattoos/piercings without sterile technique may require deferral",
                "ASRM 2022: Recent non-sterile body modifications are concerning"
            ))
        return criteria

    @staticmethod
    def assess_environmental(record: CandidateRecord) -> List[Criterion]:
        env = record.environmental
        category = CriteriaCategory.ENVIRONMENTAL
        criteria = []

        if not env.housing_stable:
            criteria.append(Criterion(category, HIGH_RISK, "Unstable housing situation",
                                      "ASRM 2022: Stable home environment required"))
        if not env.employment_stable:
            criteria.append(Criterion(category, COUNSELING,
                                      "Employment situation may not support demands of surrogacy",
                                      "ASRM 2022: Employment must be flexible enough to support GC demands"))
        if not env.financially_adequate:
            criteria.append(Criterion(category, COUNSELING,
                                      "Financial situation requires evaluation for possible coercion",
                                      "ASRM 2022: Must assess for financial coercion"))
        if not env.relationship_stable:
            criteria.append(Criterion(category, HIGH_RISK, "Current marital or relationship instability",
                                      "ASRM 2022: Relationship instability is disqualifying"))
        if not env.partner_supportive:
            criteria.append(Criterion(category, HIGH_RISK, "Lack of partner/support system support",
                                      "ASRM 2022: Adequate support required"))
        if env.legal_issues:
            criteria.append(Criterion(category, HIGH_RISK,
                                      "Legal issues detected (bankruptcy, custody disputes, etc.)",
                                      "ASRM 2022: Ongoing legal disputes may be disqualifying"))

        if not criteria:
            criteria.append(Criterion(category, ELIGIBLE, "Stable family environment with adequate support",
                                      "ASRM 2022: Stable environment required"))
        return criteria

    # ========================================================================
    # ROLL-UP
    # ========================================================================

    @staticmethod
    def determine_overall(criteria) -> Tuple[EligibilityStatus, str]:
        """
        Overall tier from the individual criteria

        Disqualifying criteria escalate to HIGH_RISK rather than DISQUALIFIED:
        the guidelines leave room for case-by-case review at flexible clinics.
        """
        statuses = [criterion.status for criterion in criteria]
        disqualifying = statuses.count(DISQUALIFIED)
        high_risk = statuses.count(HIGH_RISK)

        if disqualifying >= 2:
            return HIGH_RISK, (
                "Multiple factors outside ASRM guidelines - case-by-case review needed at flexible clinics"
            )
        if disqualifying or high_risk >= 2:
            return HIGH_RISK, (
                "Outside ASRM standard guidelines - requires case-by-case review and likely MFM clearance"
            )
        if high_risk:
            return COUNSELING, "Some factors outside ideal range - most clinics will evaluate case-by-case"
        if COUNSELING in statuses:
            return COUNSELING, "Generally meets guidelines - some additional evaluation may be needed"
        return ELIGIBLE, "Meets ASRM basic eligibility criteria - strong candidate"

    @staticmethod
    def build_recommendations(assessment: EligibilityAssessment) -> Tuple[str, ...]:
        recommendations = list(BASE_RECOMMENDATIONS)

        disqualifying = assessment.count(DISQUALIFIED)
        high_risk = assessment.count(HIGH_RISK)
        counseling = assessment.count(COUNSELING)

        if disqualifying:
            recommendations.append(
                f"CRITICAL: {disqualifying} disqualifying factor(s) identified - "
                "candidacy not recommended without resolution"
            )
        if high_risk:
            recommendations.append(f"{high_risk} high-risk factor(s) require thorough evaluation and clearance")
        if counseling:
            recommendations.append(f"{counseling} factor(s) require additional counseling or testing")

        missing = assessment.missing_categories
        if missing:
            recommendations.append(
                "INCOMPLETE ASSESSMENT: Missing evaluations for: "
                + ", ".join(category.value for category in missing)
            )
        return tuple(recommendations)
