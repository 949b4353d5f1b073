"""
Multi-Profile Clinic Risk Scoring Engine

Evaluates a finalized CandidateRecord against three clinic acceptance
profiles (strict / moderate / lenient). Each profile starts from 100 and
subtracts itemized penalties in fixed stages:

1. Age bands
2. BMI bands
3. Cesarean-section count
4. Total deliveries
5. Medical conditions (per tag, per profile)
6. Prior pregnancy complications (strict x50, moderate x35, lenient progressive)
7. Lifestyle (current smoking, current drug use)
8. Combination penalties from issue counts by severity tier

The score is clamped to [0, profile ceiling] and mapped to an acceptance level.

Scoring is a pure function of the record. The same record always yields the
same scores and issue lists, in the same order.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from ..core.data_models import (
    AcceptanceLevel,
    CandidateRecord,
    ClinicAssessment,
    ClinicAssessments,
    ClinicProfile,
    ConditionTag,
    Issue,
    IssueSeverity,
    validate_vocabulary,
)

logger = logging.getLogger(__name__)

MAJOR = IssueSeverity.MAJOR
MODERATE = IssueSeverity.MODERATE
MINOR = IssueSeverity.MINOR

STARTING_SCORE = 100
LIKELY_THRESHOLD = 60   # score > 60
POSSIBLE_THRESHOLD = 20  # score >= 20


# ============================================================================
# RULE TYPES
# ============================================================================

@dataclass(frozen=True)
class PenaltyBand:
    """One band of a first-match-wins numeric rule; message may use {value}"""
    matches: Callable[[float], bool]
    severity: IssueSeverity
    penalty: int
    message: str


@dataclass(frozen=True)
class ConditionRule:
    severity: IssueSeverity
    penalty: int
    message: str


class IssueCounts(NamedTuple):
    minor: int
    moderate: int
    major: int

    @property
    def total(self) -> int:
        return self.minor + self.moderate + self.major


@dataclass(frozen=True)
class CombinationRule:
    """
    Penalty fired from issue counts

    Rules sharing a group are mutually exclusive: only the first applicable
    rule in a group fires.
    """
    applies: Callable[[IssueCounts], bool]
    penalty: int
    issue_severity: Optional[IssueSeverity] = None
    issue_message: str = ""
    group: Optional[str] = None


@dataclass(frozen=True)
class ComplicationRule:
    penalty: Callable[[int], int]
    severity: Callable[[int], IssueSeverity]
    suffix: str


@dataclass(frozen=True)
class ProfileRules:
    profile: ClinicProfile
    ceiling: int
    age_bands: Tuple[PenaltyBand, ...]
    bmi_bands: Tuple[PenaltyBand, ...]
    cesarean_bands: Tuple[PenaltyBand, ...]
    delivery_bands: Tuple[PenaltyBand, ...]
    condition_rules: Dict[ConditionTag, ConditionRule]
    complications: ComplicationRule
    smoking: ConditionRule
    drug_use: ConditionRule
    combinations: Tuple[CombinationRule, ...]


def lenient_complication_penalty(count: int) -> int:
    """Progressive schedule: 1st costs 5, 2nd 12, 3rd 20, each additional 5 more"""
    if count <= 0:
        return 0
    if count == 1:
        return 5
    if count == 2:
        return 12
    return 20 + (count - 3) * 5


def acceptance_level_for(score: int) -> AcceptanceLevel:
    if score > LIKELY_THRESHOLD:
        return AcceptanceLevel.LIKELY_TO_APPROVE
    if score >= POSSIBLE_THRESHOLD:
        return AcceptanceLevel.MAY_APPROVE_WITH_RECORDS
    return AcceptanceLevel.UNLIKELY_TO_APPROVE


class ClinicRiskScorer:
    """
    Deterministic scoring engine for the three clinic profiles

    Holds only immutable rule tables; safe to share across requests.
    """

    def __init__(self):
        self.profile_rules = self._load_profile_rules()
        logger.info(f"Clinic risk scorer initialized with {len(self.profile_rules)} profiles")

    def _load_profile_rules(self) -> Dict[ClinicProfile, ProfileRules]:
        """
        Penalty tables per clinic profile

        Magnitudes follow real-world clinic acceptance practice: strict
        clinics penalize hardest and react strongly to any combination,
        lenient clinics review most factors case by case.
        """
        organ_disease = (
            ConditionTag.PULMONARY_HYPERTENSION,
            ConditionTag.CARDIAC_DISEASE,
            ConditionTag.KIDNEY_DISEASE,
        )

        # ====================================================================
        # STRICT
        # ====================================================================
        strict_conditions = {
            ConditionTag.GESTATIONAL_DIABETES: ConditionRule(MAJOR, 10, "History of gestational diabetes - strict clinics rarely accept"),
            ConditionTag.DIABETES: ConditionRule(MAJOR, 10, "History of diabetes - strict clinics rarely accept"),
            ConditionTag.INSULIN_DEPENDENT_DIABETES: ConditionRule(MAJOR, 10, "Insulin-dependent diabetes - strict clinics rarely accept"),
            ConditionTag.PREECLAMPSIA: ConditionRule(MAJOR, 95, "History of preeclampsia - strict clinics will NOT accept due to high recurrence risk (15-25%)"),
            ConditionTag.PREGNANCY_HYPERTENSION: ConditionRule(MODERATE, 10, "History of pregnancy-induced hypertension (PIH) - strict clinics typically require it was diet-controlled"),
            ConditionTag.HYPERTENSION: ConditionRule(MAJOR, 10, "History of chronic hypertension - concerning for strict clinics"),
            ConditionTag.HYPEREMESIS: ConditionRule(MAJOR, 12, "History of severe hyperemesis (especially requiring hospitalization/PICC/TPN) - strict clinics very unlikely to accept"),
            ConditionTag.GASTROPARESIS: ConditionRule(MAJOR, 12, "History of gastroparesis - extremely concerning, strict clinics will not accept"),
            ConditionTag.GERD: ConditionRule(MODERATE, 6, "History of severe GERD - concerning for strict clinics"),
            ConditionTag.GALLSTONES: ConditionRule(MODERATE, 6, "History of gallstones - may be concerning"),
            ConditionTag.GASTRITIS: ConditionRule(MODERATE, 6, "History of gastritis - may be concerning"),
            ConditionTag.THYROID_DISORDER: ConditionRule(MODERATE, 6, "thyroid disorder may be concerning for strict clinics"),
            ConditionTag.AUTOIMMUNE_DISEASE: ConditionRule(MODERATE, 6, "autoimmune disease may be concerning for strict clinics"),
        }
        for tag in organ_disease:
            strict_conditions[tag] = ConditionRule(MAJOR, 12, f"History of {tag.label} - strict clinics will not accept")

        strict = ProfileRules(
            profile=ClinicProfile.STRICT,
            ceiling=95,
            age_bands=(
                PenaltyBand(lambda a: a < 21 or a > 42, MAJOR, 12, "Age outside strict clinic range (21-42) - very rarely accepted"),
                PenaltyBand(lambda a: a > 38, MAJOR, 10, "Age above ideal range for strict clinics (prefer <35)"),
                PenaltyBand(lambda a: a > 35, MODERATE, 6, "Age above ideal but many strict clinics accept 35-38"),
                PenaltyBand(lambda a: a < 23, MINOR, 5, "Age on lower end of range"),
            ),
            bmi_bands=(
                PenaltyBand(lambda b: b >= 32, MAJOR, 10, "BMI {value} significantly exceeds strict clinic preference - rarely accepted"),
                PenaltyBand(lambda b: b >= 30, MAJOR, 8, "BMI {value} exceeds strict clinic maximum (typically <30, some <27)"),
                PenaltyBand(lambda b: b >= 27, MODERATE, 12, "BMI {value} may be too high for some strict clinics (many prefer <27)"),
                PenaltyBand(lambda b: b < 18.5, MAJOR, 6, "BMI {value} below recommended minimum"),
            ),
            cesarean_bands=(
                PenaltyBand(lambda c: c >= 4, MAJOR, 12, "{value} C-sections - strict clinics extremely unlikely to accept"),
                PenaltyBand(lambda c: c == 3, MAJOR, 10, "3 C-sections exceeds strict clinic maximum (typically max 1-2)"),
                PenaltyBand(lambda c: c == 2, MODERATE, 6, "2 C-sections - some strict clinics accept, others prefer max 1"),
            ),
            delivery_bands=(
                PenaltyBand(lambda d: d > 5, MAJOR, 8, "More than 5 previous pregnancies concerning for strict clinics"),
                PenaltyBand(lambda d: d > 4, MODERATE, 12, "More than 4 previous pregnancies may be concerning for strict clinics"),
            ),
            condition_rules=strict_conditions,
            complications=ComplicationRule(
                penalty=lambda n: n * 50,
                severity=lambda n: MAJOR,
                suffix="highly concerning at strict clinics",
            ),
            smoking=ConditionRule(MAJOR, 60, "Current smoking - must cease, virtually all clinics require 3-6 month smoke-free period"),
            drug_use=ConditionRule(MAJOR, 65, "Current drug use - must cease and demonstrate sustained sobriety"),
            combinations=(
                CombinationRule(lambda c: c.major >= 1, 35),
                CombinationRule(lambda c: c.moderate >= 2, 40, MAJOR, "Multiple moderate issues - strict clinics almost never accept combinations"),
                CombinationRule(lambda c: c.minor >= 2, 20),
                CombinationRule(lambda c: c.total >= 3, 50, MAJOR, "3+ risk factors combined - strict clinics will not accept this combination", group="total"),
                CombinationRule(lambda c: c.total >= 2 and c.major >= 1, 30, MAJOR, "Major issue combined with other risk factors - combined risk compounds at strict clinics", group="total"),
            ),
        )

        # ====================================================================
        # MODERATE
        # ====================================================================
        moderate_conditions = {
            ConditionTag.INSULIN_DEPENDENT_DIABETES: ConditionRule(MAJOR, 6, "Insulin-dependent diabetes (Type I or II) - moderate clinics typically decline"),
            ConditionTag.DIABETES: ConditionRule(MAJOR, 6, "Pre-existing diabetes (Type I or II) - moderate clinics typically decline"),
            ConditionTag.GESTATIONAL_DIABETES: ConditionRule(MODERATE, 5, "History of gestational diabetes - requires physician approval and evaluation (case-by-case)"),
            ConditionTag.PREECLAMPSIA: ConditionRule(MAJOR, 48, "History of preeclampsia - moderate clinics typically decline due to high recurrence risk"),
            ConditionTag.PREGNANCY_HYPERTENSION: ConditionRule(MODERATE, 5, "History of pregnancy-induced hypertension (PIH) typically acceptable if it was fully diet-controlled"),
            ConditionTag.HYPERTENSION: ConditionRule(MODERATE, 5, "History of chronic hypertension - moderate clinics review if well-controlled"),
            ConditionTag.THYROID_DISORDER: ConditionRule(MINOR, 3, "thyroid disorder - acceptable if well-controlled"),
            ConditionTag.ASTHMA: ConditionRule(MINOR, 3, "asthma - acceptable if well-controlled"),
            ConditionTag.AUTOIMMUNE_DISEASE: ConditionRule(MINOR, 3, "autoimmune disease - acceptable if well-controlled"),
            ConditionTag.HYPEREMESIS: ConditionRule(MODERATE, 6, "History of severe hyperemesis - moderate clinics review case-by-case"),
            ConditionTag.GASTROPARESIS: ConditionRule(MODERATE, 6, "History of gastroparesis - concerning for moderate clinics"),
            ConditionTag.GERD: ConditionRule(MINOR, 3, "History of gerd - acceptable if well-managed"),
            ConditionTag.GALLSTONES: ConditionRule(MINOR, 3, "History of gallstones - acceptable if well-managed"),
            ConditionTag.GASTRITIS: ConditionRule(MINOR, 3, "History of gastritis - acceptable if well-managed"),
        }
        for tag in organ_disease:
            moderate_conditions[tag] = ConditionRule(MAJOR, 6, f"History of {tag.label} - moderate clinics typically decline")

        moderate = ProfileRules(
            profile=ClinicProfile.MODERATE,
            ceiling=92,
            age_bands=(
                PenaltyBand(lambda a: a < 21, MAJOR, 5, "Age below ASRM minimum - rare exceptions made"),
                PenaltyBand(lambda a: a > 45, MAJOR, 6, "Age over 45 exceeds ASRM maximum - most moderate clinics will not proceed"),
                PenaltyBand(lambda a: a >= 44, MAJOR, 5, "Age 44-45: Some moderate clinics review case-by-case with MFM clearance if exceptional health"),
                PenaltyBand(lambda a: a >= 41, MODERATE, 4, "Age 41-43: Most moderate clinics will consider case-by-case with MFM evaluation"),
                PenaltyBand(lambda a: a > 37, MINOR, 3, "Age 38-40: Within acceptable range with standard monitoring"),
            ),
            bmi_bands=(
                PenaltyBand(lambda b: b > 35, MAJOR, 6, "BMI {value} significantly exceeds moderate clinic threshold (32) - physician will require weight loss before proceeding"),
                PenaltyBand(lambda b: b >= 32, MODERATE, 4, "BMI {value} at/above moderate clinic threshold - requires physician approval, typically asked to lower to 32 or below"),
                PenaltyBand(lambda b: b >= 30, MINOR, 3, "BMI {value} acceptable for moderate clinics, approaching upper limit of 32"),
                PenaltyBand(lambda b: b < 18.5, MODERATE, 4, "BMI {value} very low - requires physician approval and nutritional evaluation"),
            ),
            cesarean_bands=(
                PenaltyBand(lambda c: c >= 4, MAJOR, 6, "{value} C-sections - moderate clinics typically decline (4+ is common cutoff)"),
                PenaltyBand(lambda c: c == 3, MODERATE, 3, "3 C-sections at ASRM maximum - acceptable with MFM clearance"),
            ),
            delivery_bands=(
                PenaltyBand(lambda d: d >= 6, MAJOR, 4, "6+ deliveries - moderate clinics typically decline unless OB/MFM counseling obtained"),
            ),
            condition_rules=moderate_conditions,
            complications=ComplicationRule(
                penalty=lambda n: n * 35,
                severity=lambda n: MODERATE,
                suffix="requires detailed evaluation",
            ),
            smoking=ConditionRule(MAJOR, 30, "Current smoking - must cease before approval, most clinics require 3-6 month smoke-free period"),
            drug_use=ConditionRule(MAJOR, 33, "Current drug use - must cease and demonstrate sustained sobriety"),
            combinations=(
                CombinationRule(lambda c: c.major >= 2, 18, MAJOR, "Multiple major issues - even moderate clinics unlikely to accept", group="major"),
                CombinationRule(lambda c: c.major >= 1, 10, group="major"),
                CombinationRule(lambda c: c.moderate >= 3, 13, MODERATE, "3+ moderate factors - case-by-case review required, physician approval needed"),
                CombinationRule(lambda c: c.minor >= 3, 8),
                CombinationRule(lambda c: c.total >= 4, 10, MODERATE, "4+ risk factors combined - extensive physician review required"),
            ),
        )

        # ====================================================================
        # LENIENT
        # ====================================================================
        lenient_conditions = {
            ConditionTag.PREECLAMPSIA: ConditionRule(MAJOR, 29, "History of preeclampsia - even lenient clinics are cautious due to 15-25% recurrence risk. Case-by-case evaluation required."),
            ConditionTag.GESTATIONAL_DIABETES: ConditionRule(MINOR, 3, "Gestational diabetes history acceptable if controlled by diet"),
            ConditionTag.PREGNANCY_HYPERTENSION: ConditionRule(MINOR, 3, "Pregnancy-induced hypertension (PIH) acceptable if it was diet-controlled"),
            ConditionTag.HYPERTENSION: ConditionRule(MINOR, 3, "Chronic hypertension acceptable if currently well-controlled"),
            ConditionTag.THYROID_DISORDER: ConditionRule(MINOR, 2, "thyroid disorder acceptable if well-controlled"),
            ConditionTag.DIABETES: ConditionRule(MINOR, 2, "diabetes acceptable if well-controlled"),
            ConditionTag.INSULIN_DEPENDENT_DIABETES: ConditionRule(MODERATE, 4, "Insulin-dependent diabetes - lenient clinics require endocrinology clearance"),
            ConditionTag.ASTHMA: ConditionRule(MINOR, 2, "asthma acceptable if well-controlled"),
            ConditionTag.AUTOIMMUNE_DISEASE: ConditionRule(MINOR, 2, "autoimmune disease acceptable if well-controlled"),
            ConditionTag.HYPEREMESIS: ConditionRule(MINOR, 4, "History of hyperemesis - acceptable if resolved"),
            ConditionTag.GASTROPARESIS: ConditionRule(MINOR, 4, "History of gastroparesis - acceptable if resolved"),
            ConditionTag.GERD: ConditionRule(MINOR, 2, "History of gerd - acceptable if well-managed"),
            ConditionTag.GALLSTONES: ConditionRule(MINOR, 2, "History of gallstones - acceptable if well-managed"),
            ConditionTag.GASTRITIS: ConditionRule(MINOR, 2, "History of gastritis - acceptable if well-managed"),
        }
        for tag in organ_disease:
            lenient_conditions[tag] = ConditionRule(MODERATE, 4, f"History of {tag.label} - lenient clinics require specialist clearance")

        lenient = ProfileRules(
            profile=ClinicProfile.LENIENT,
            ceiling=95,
            age_bands=(
                PenaltyBand(lambda a: a < 21, MODERATE, 2, "Age below ASRM minimum - lenient clinics may consider with maturity assessment"),
                PenaltyBand(lambda a: a > 48, MAJOR, 4, "Age over 48: Even lenient clinics rarely proceed due to excessive obstetric risks"),
                PenaltyBand(lambda a: a >= 46, MODERATE, 3, "Age 46-48: Lenient clinics will review case-by-case with extensive MFM evaluation"),
                PenaltyBand(lambda a: a > 43, MINOR, 2, "Age 44-45: Most lenient clinics will consider with MFM clearance and good health profile"),
            ),
            bmi_bands=(
                PenaltyBand(lambda b: b > 38, MAJOR, 3, "BMI {value} exceeds even lenient clinic typical maximum - very challenging but some may review"),
                PenaltyBand(lambda b: b > 35, MAJOR, 2, "BMI {value} above standard lenient maximum (35) - case-by-case review, MFM clearance critical"),
                PenaltyBand(lambda b: b >= 33, MODERATE, 4, "BMI {value} only accepted at very lenient clinics"),
                PenaltyBand(lambda b: b >= 32, MINOR, 2, "BMI {value} acceptable at lenient clinics"),
                PenaltyBand(lambda b: b < 19, MINOR, 2, "BMI {value} below recommended but may be acceptable with evaluation"),
            ),
            cesarean_bands=(
                PenaltyBand(lambda c: c > 3, MAJOR, 4, "{value} C-sections exceeds most clinic limits, even lenient ones"),
                PenaltyBand(lambda c: c == 3, MINOR, 2, "3 C-sections acceptable at lenient clinics with evaluation"),
            ),
            delivery_bands=(
                PenaltyBand(lambda d: d > 5, MODERATE, 2, "More than 5 previous pregnancies requires evaluation but may be acceptable"),
            ),
            condition_rules=lenient_conditions,
            complications=ComplicationRule(
                penalty=lenient_complication_penalty,
                severity=lambda n: MODERATE if n > 2 else MINOR,
                suffix="lenient clinics will review case-by-case",
            ),
            smoking=ConditionRule(MAJOR, 18, "Current smoking - must cease, lenient clinics typically require 3-6 month smoke-free period before proceeding"),
            drug_use=ConditionRule(MAJOR, 20, "Current drug use - must cease and demonstrate sobriety period"),
            combinations=(
                CombinationRule(lambda c: c.major >= 2, 11, MAJOR, "Multiple major issues - lenient clinics will need extensive evaluation", group="major"),
                CombinationRule(lambda c: c.major >= 1, 6, group="major"),
                CombinationRule(lambda c: c.moderate >= 3, 8, MODERATE, "3+ moderate factors - case-by-case review with physician approval"),
                CombinationRule(lambda c: c.minor >= 3, 5),
                CombinationRule(lambda c: c.total >= 4, 6, MINOR, "4+ risk factors - lenient clinics will review overall health picture"),
            ),
        )

        return {rules.profile: rules for rules in (strict, moderate, lenient)}

    # ========================================================================
    # MAIN SCORING ENTRY POINTS
    # ========================================================================

    def assess(self, record: CandidateRecord) -> ClinicAssessments:
        """
        Score a record under every clinic profile

        Raises:
            VocabularyViolationError: A complication category or condition tag
                is outside the closed vocabulary
        """
        validate_vocabulary(record)

        strict = self.score_profile(record, ClinicProfile.STRICT)
        moderate = self.score_profile(record, ClinicProfile.MODERATE)
        lenient = self.score_profile(record, ClinicProfile.LENIENT)

        logger.info(f"Clinic scores: strict={strict.score} moderate={moderate.score} lenient={lenient.score}")
        return ClinicAssessments(
            strict=strict,
            moderate=moderate,
            lenient=lenient,
            recommendations=tuple(self.build_recommendations(strict, moderate, lenient)),
        )

    def score_profile(self, record: CandidateRecord, profile: ClinicProfile) -> ClinicAssessment:
        """Score one profile; stages run in a fixed order"""
        validate_vocabulary(record)
        rules = self.profile_rules[profile]
        issues: List[Issue] = []
        history = record.pregnancy_history

        # STAGE 1-4: numeric bands
        if record.age is not None:
            self._apply_bands(rules.age_bands, record.age, issues)
        if record.lifestyle.bmi:
            self._apply_bands(rules.bmi_bands, record.lifestyle.bmi, issues)
        if history.cesarean_count:
            self._apply_bands(rules.cesarean_bands, history.cesarean_count, issues)
        if history.total_deliveries:
            self._apply_bands(rules.delivery_bands, history.total_deliveries, issues)

        # STAGE 5: medical conditions, in vocabulary order
        for tag in record.ordered_conditions():
            rule = rules.condition_rules.get(tag)
            if rule:
                issues.append(Issue(rule.severity, rule.message, rule.penalty))

        # STAGE 6: prior complications
        count = history.effective_complication_count
        if count > 0:
            issues.append(Issue(
                rules.complications.severity(count),
                self._complication_message(record, count, rules.complications.suffix),
                rules.complications.penalty(count),
            ))

        # STAGE 7: lifestyle
        if record.lifestyle.smoker:
            issues.append(Issue(rules.smoking.severity, rules.smoking.message, rules.smoking.penalty))
        if record.lifestyle.drug_use:
            issues.append(Issue(rules.drug_use.severity, rules.drug_use.message, rules.drug_use.penalty))

        itemized_penalty = sum(issue.penalty for issue in issues)

        # STAGE 8: combination penalties from counts of itemized issues
        counts = IssueCounts(
            minor=sum(1 for i in issues if i.severity is MINOR),
            moderate=sum(1 for i in issues if i.severity is MODERATE),
            major=sum(1 for i in issues if i.severity is MAJOR),
        )
        combination_penalty = 0
        fired_groups = set()
        for combination in rules.combinations:
            if combination.group and combination.group in fired_groups:
                continue
            if not combination.applies(counts):
                continue
            if combination.group:
                fired_groups.add(combination.group)
            combination_penalty += combination.penalty
            if combination.issue_severity is not None:
                issues.append(Issue(combination.issue_severity, combination.issue_message, combination.penalty))

        raw_score = STARTING_SCORE - itemized_penalty - combination_penalty
        score = max(0, min(rules.ceiling, raw_score))

        logger.debug(
            f"{profile.value}: itemized -{itemized_penalty}, combination -{combination_penalty}, "
            f"raw {raw_score}, final {score}"
        )

        assessment = ClinicAssessment(
            profile=profile,
            score=score,
            issues=tuple(issues),
            acceptance_level=acceptance_level_for(score),
        )
        return replace(assessment, summary=self.build_summary(assessment))

    # ========================================================================
    # HELPERS
    # ========================================================================

    @staticmethod
    def _apply_bands(bands, value, issues: List[Issue]) -> None:
        for band in bands:
            if band.matches(value):
                issues.append(Issue(band.severity, band.message.format(value=value), band.penalty))
                return

    @staticmethod
    def _complication_message(record: CandidateRecord, count: int, suffix: str) -> str:
        labels = [c.category.label for c in record.pregnancy_history.complications]
        listing = f" ({', '.join(labels)})" if labels else ""
        plural = "s" if count > 1 else ""
        return f"{count} previous pregnancy complication{plural}{listing} - {suffix}"

    @staticmethod
    def build_summary(assessment: ClinicAssessment) -> str:
        name = assessment.profile.value
        major = assessment.count(MAJOR)
        moderate = assessment.count(MODERATE)
        minor = assessment.count(MINOR)

        if major > 0:
            return f"May face significant challenges at {name} clinics due to {major} major issue(s)."
        if moderate > 0:
            return f"May be accepted at {name} clinics with {moderate} moderate concern(s) requiring evaluation."
        if minor > 0:
            return f"Good candidate for {name} clinics with {minor} minor consideration(s)."
        return f"Excellent candidate for {name} clinics."

    @staticmethod
    def build_recommendations(
        strict: ClinicAssessment,
        moderate: ClinicAssessment,
        lenient: ClinicAssessment
    ) -> List[str]:
        """Cross-profile recommendation lines"""
        recommendations = []

        if strict.score >= 80:
            recommendations.append("Candidate is an excellent match for strict/premium clinics")
        elif strict.score >= 60:
            recommendations.append("Candidate may be accepted at some strict clinics with evaluation")

        if moderate.score >= 80:
            recommendations.append("Candidate is an excellent match for moderate/average clinics")
        elif moderate.score >= 60:
            recommendations.append("Candidate likely to be accepted at moderate clinics")

        if lenient.score >= 80:
            recommendations.append("Candidate is an excellent match for lenient clinics")
        elif lenient.score >= 60:
            recommendations.append("Candidate likely to be accepted at lenient clinics")

        if strict.score < 40 and moderate.score < 40 and lenient.score < 40:
            recommendations.append(
                "Candidate faces significant challenges at all clinic types. "
                "Consider addressing identified issues before applying."
            )

        # Stable sort keeps strict -> moderate -> lenient order on ties
        best = sorted((strict, moderate, lenient), key=lambda a: -a.score)[0]
        if best.score >= 60:
            recommendations.append(
                f"Best match: {best.profile.value.upper()} clinics - {best.acceptance_level.label}"
            )

        return recommendations
