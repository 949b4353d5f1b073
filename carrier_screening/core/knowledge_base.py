"""
Obstetric Knowledge Base

Keyword, synonym and alias tables shared by the extraction layers, plus the
lexical helpers they all rely on (number words, negation and clause scope).

Every table is keyed by a closed vocabulary member from data_models, so an
extractor can only ever emit tags the scoring engine understands.
"""

import re
from typing import Dict, List, Optional, Pattern, Tuple

from .data_models import ComplicationCategory, ComplicationSeverity, ConditionTag, PsychFlag


# ============================================================================
# NUMBERS
# ============================================================================

NUMBER_WORDS = {
    "zero": 0, "no": 0, "none": 0,
    "one": 1, "a": 1, "an": 1, "single": 1, "once": 1,
    "two": 2, "twice": 2, "both": 2,
    "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}

ORDINAL_WORDS = {
    "first": 1, "1st": 1,
    "second": 2, "2nd": 2,
    "third": 3, "3rd": 3,
    "fourth": 4, "4th": 4,
    "fifth": 5, "5th": 5,
    "sixth": 6, "6th": 6,
}

# Regex fragment matching a small count written as digits or words
COUNT_TOKEN = r"(\d{1,2}|zero|one|two|three|four|five|six|seven|eight|nine|ten)"


def parse_count(token: Optional[str]) -> Optional[int]:
    """Convert a digit or number-word token to an int"""
    if token is None:
        return None
    token = token.strip().lower()
    if token.isdigit():
        return int(token)
    if token in ORDINAL_WORDS:
        return ORDINAL_WORDS[token]
    return NUMBER_WORDS.get(token)


# ============================================================================
# NEGATION AND CLAUSE SCOPE
# ============================================================================

NEGATION_CUE = re.compile(
    r"\b(?:no (?:history|hx|prior history) of|no|not|denies|denied|denying|negative for|"
    r"without|never|free of|ruled out|r/o|absence of|none)\b",
    re.I
)

# Words that end the scope of a preceding negation cue
NEGATION_RESET = re.compile(
    r"\b(?:but|however|except|although|though|aside from|other than|history of|hx of|"
    r"diagnosed with|positive for|had|has|with)\b",
    re.I
)

CLAUSE_BREAKS = ".;\n!?"

NEGATION_WINDOW = 60


def clause_start(text: str, position: int) -> int:
    """Index where the clause containing position begins"""
    start = 0
    for ch in CLAUSE_BREAKS:
        idx = text.rfind(ch, 0, position)
        # Decimal points do not end a clause
        if ch == "." and idx > 0 and idx + 1 < len(text) and text[idx - 1].isdigit() and text[idx + 1].isdigit():
            idx = text.rfind(ch, 0, idx)
        start = max(start, idx + 1)
    return start


def clause_end(text: str, position: int) -> int:
    """Index where the clause containing position ends (exclusive)"""
    end = len(text)
    for ch in CLAUSE_BREAKS:
        idx = text.find(ch, position)
        while ch == "." and idx > 0 and idx + 1 < len(text) and text[idx - 1].isdigit() and text[idx + 1].isdigit():
            idx = text.find(ch, idx + 1)
        if idx != -1:
            end = min(end, idx)
    return end


def clause_around(text: str, start: int, end: int) -> str:
    return text[clause_start(text, start):clause_end(text, end)]


def is_negated(text: str, start: int) -> bool:
    """
    True when the match starting at start sits inside a negated clause

    Looks back within the same clause for a negation cue that has not been
    closed by a reset word ("but", "history of", ...).
    """
    window_start = max(clause_start(text, start), start - NEGATION_WINDOW)
    prefix = text[window_start:start]
    cues = list(NEGATION_CUE.finditer(prefix))
    if not cues:
        return False
    tail = prefix[cues[-1].end():]
    return NEGATION_RESET.search(tail) is None


def mask_spans(text: str, spans: List[Tuple[int, int]]) -> str:
    """Blank out spans so later patterns cannot match them again"""
    if not spans:
        return text
    chars = list(text)
    for start, end in spans:
        for i in range(start, end):
            chars[i] = " "
    return "".join(chars)


# ============================================================================
# COMPLICATION SEVERITY MARKERS
# ============================================================================

SEVERE_MARKERS = re.compile(
    r"\b(?:severe|severely|hospitali[sz]ed|hospitali[sz]ation|admitted|icu|tpn|picc|hellp|"
    r"accreta|increta|percreta|abruption|transfusion|transfused|emergency|magnesium)\b"
    r"|(?<![-\w])eclampsia\b",
    re.I
)

MILD_MARKERS = re.compile(
    r"\b(?:mild|mildly|diet[- ]controlled|resolved|minor|borderline|brief)\b",
    re.I
)


def infer_severity(clause: str) -> ComplicationSeverity:
    if SEVERE_MARKERS.search(clause):
        return ComplicationSeverity.SEVERE
    if MILD_MARKERS.search(clause):
        return ComplicationSeverity.MILD
    return ComplicationSeverity.MODERATE


# ============================================================================
# COMPLICATION KEYWORDS
# ============================================================================

# Clinical notation, used by the pattern extractor
PATTERN_COMPLICATION_KEYWORDS: Dict[ComplicationCategory, List[str]] = {
    ComplicationCategory.HYPERTENSIVE: [
        r"\bPIH\b",
        r"\bGHTN\b",
        r"\bgestational hypertension\b",
        r"\bpregnancy[- ]induced hypertension\b",
        r"\bhypertensive disorder of pregnancy\b",
    ],
    ComplicationCategory.PREECLAMPSIA: [
        r"\bpre-?eclampsia\b",
        r"\bpreeclamptic\b",
        r"\bHELLP\b",
        r"(?<![-\w])eclampsia\b",
    ],
    ComplicationCategory.GESTATIONAL_DIABETES: [
        r"\bGDM(?:A[12])?\b",
        r"\bgestational diabetes\b",
    ],
    ComplicationCategory.PRETERM_LABOR: [
        r"\bpreterm (?:labor|labour|delivery|birth)\b",
        r"\bpremature (?:labor|labour|delivery|birth)\b",
        r"\bPTL\b",
        r"\bPTD\b",
    ],
    ComplicationCategory.MEMBRANE_RUPTURE: [
        r"\bP?PROM\b",
        r"\bpremature rupture of (?:the )?membranes\b",
        r"\bpreterm premature rupture\b",
    ],
    ComplicationCategory.PLACENTAL_ISSUES: [
        r"\bplacenta(?:l)? previa\b",
        r"\bplacental abruption\b",
        r"\babruptio placentae\b",
        r"\bplacenta (?:accreta|increta|percreta)\b",
        r"\bretained placenta\b",
        r"\bplacental insufficiency\b",
    ],
    ComplicationCategory.IUGR: [
        r"\bIUGR\b",
        r"\bFGR\b",
        r"\bSGA\b",
        r"\b(?:intrauterine|fetal) growth restriction\b",
    ],
    ComplicationCategory.HYPEREMESIS: [
        r"\bhyperemesis(?: gravidarum)?\b",
        r"\bHEG\b",
    ],
    ComplicationCategory.HEMORRHAGE: [
        r"\bPPH\b",
        r"\bpost-?partum h(?:a)?emorrhage\b",
        r"\bobstetric h(?:a)?emorrhage\b",
        r"\bantepartum h(?:a)?emorrhage\b",
    ],
    ComplicationCategory.CERVICAL_INSUFFICIENCY: [
        r"\bcervical (?:insufficiency|incompetence)\b",
        r"\bincompetent cervix\b",
        r"\bcerclage\b",
    ],
    ComplicationCategory.CHOLESTASIS: [
        r"\bICP\b",
        r"\b(?:intrahepatic |obstetric )?cholestasis(?: of pregnancy)?\b",
    ],
    ComplicationCategory.GI_COMPLICATIONS: [
        r"\bgastroparesis\b",
        r"\bpancreatitis\b",
        r"\bcholecystitis\b",
    ],
}

# Plain language, used by the narrative extractor
NARRATIVE_COMPLICATION_KEYWORDS: Dict[ComplicationCategory, List[str]] = {
    ComplicationCategory.HYPERTENSIVE: [
        r"\bhigh blood pressure (?:during|in|with) (?:her |my |the )?(?:\w+ )?pregnanc(?:y|ies)\b",
        r"\bgestational hypertension\b",
        r"\bpregnancy[- ]induced hypertension\b",
    ],
    ComplicationCategory.PREECLAMPSIA: [
        r"\bpre-?eclampsia\b",
        r"\btoxemia\b",
    ],
    ComplicationCategory.GESTATIONAL_DIABETES: [
        r"\bgestational diabetes\b",
        r"\bdiabetes (?:during|in|with) (?:her |my |the )?(?:\w+ )?pregnanc(?:y|ies)\b",
    ],
    ComplicationCategory.PRETERM_LABOR: [
        r"\bpreterm (?:labor|labour|delivery|birth|baby)\b",
        r"\bwent into labou?r early\b",
        r"\b(?:baby|son|daughter) (?:was )?born early\b",
        r"\bpremature (?:baby|birth|delivery)\b",
    ],
    ComplicationCategory.MEMBRANE_RUPTURE: [
        r"\bwater broke early\b",
        r"\bpremature rupture of (?:the )?membranes\b",
    ],
    ComplicationCategory.PLACENTAL_ISSUES: [
        r"\bplacenta previa\b",
        r"\bplacental abruption\b",
        r"\bplacenta (?:problems|issues|accreta)\b",
    ],
    ComplicationCategory.IUGR: [
        r"\bgrowth restriction\b",
        r"\bbaby (?:was|measured) (?:too )?small\b",
        r"\bIUGR\b",
    ],
    ComplicationCategory.HYPEREMESIS: [
        r"\bhyperemesis(?: gravidarum)?\b",
        r"\bsevere morning sickness\b",
        r"\bextreme (?:nausea|vomiting)\b",
    ],
    ComplicationCategory.HEMORRHAGE: [
        r"\bpost-?partum h(?:a)?emorrhage\b",
        r"\bheavy bleeding after (?:delivery|birth)\b",
        r"\blost a lot of blood\b",
        r"\bneeded a (?:blood )?transfusion\b",
    ],
    ComplicationCategory.CERVICAL_INSUFFICIENCY: [
        r"\bcerclage\b",
        r"\bweak cervix\b",
        r"\bincompetent cervix\b",
        r"\bcervical insufficiency\b",
    ],
    ComplicationCategory.CHOLESTASIS: [
        r"\bcholestasis\b",
        r"\bliver (?:condition|problem) (?:during|in) pregnancy\b",
    ],
    ComplicationCategory.GI_COMPLICATIONS: [
        r"\bgastroparesis\b",
    ],
}

# External spellings accepted when normalizing AI output
CATEGORY_ALIASES: Dict[str, ComplicationCategory] = {
    "hypertension": ComplicationCategory.HYPERTENSIVE,
    "gestational_hypertension": ComplicationCategory.HYPERTENSIVE,
    "pih": ComplicationCategory.HYPERTENSIVE,
    "pre_eclampsia": ComplicationCategory.PREECLAMPSIA,
    "eclampsia": ComplicationCategory.PREECLAMPSIA,
    "hellp": ComplicationCategory.PREECLAMPSIA,
    "diabetic": ComplicationCategory.GESTATIONAL_DIABETES,
    "diabetes": ComplicationCategory.GESTATIONAL_DIABETES,
    "gdm": ComplicationCategory.GESTATIONAL_DIABETES,
    "preterm": ComplicationCategory.PRETERM_LABOR,
    "preterm_birth": ComplicationCategory.PRETERM_LABOR,
    "preterm_delivery": ComplicationCategory.PRETERM_LABOR,
    "membrane": ComplicationCategory.MEMBRANE_RUPTURE,
    "prom": ComplicationCategory.MEMBRANE_RUPTURE,
    "pprom": ComplicationCategory.MEMBRANE_RUPTURE,
    "placental": ComplicationCategory.PLACENTAL_ISSUES,
    "placenta": ComplicationCategory.PLACENTAL_ISSUES,
    "growth": ComplicationCategory.IUGR,
    "growth_restriction": ComplicationCategory.IUGR,
    "fgr": ComplicationCategory.IUGR,
    "hyperemesis_gravidarum": ComplicationCategory.HYPEREMESIS,
    "hemorrhagic": ComplicationCategory.HEMORRHAGE,
    "pph": ComplicationCategory.HEMORRHAGE,
    "postpartum_hemorrhage": ComplicationCategory.HEMORRHAGE,
    "cervical": ComplicationCategory.CERVICAL_INSUFFICIENCY,
    "cerclage": ComplicationCategory.CERVICAL_INSUFFICIENCY,
    "icp": ComplicationCategory.CHOLESTASIS,
    "gi": ComplicationCategory.GI_COMPLICATIONS,
    "gastrointestinal": ComplicationCategory.GI_COMPLICATIONS,
}


def _vocabulary_key(value: str) -> str:
    return re.sub(r"[\s\-/]+", "_", value.strip().lower())


def normalize_category(value) -> Optional[ComplicationCategory]:
    """Map a category member, value or known alias onto the closed vocabulary"""
    if isinstance(value, ComplicationCategory):
        return value
    if not isinstance(value, str):
        return None
    key = _vocabulary_key(value)
    try:
        return ComplicationCategory(key)
    except ValueError:
        return CATEGORY_ALIASES.get(key)


# ============================================================================
# MEDICAL CONDITION SYNONYMS
# ============================================================================

# Hypertension and diabetes are resolved by dedicated rules in the narrative
# extractor (chronic vs pregnancy-induced, gestational vs pre-existing).
CHRONIC_HYPERTENSION = re.compile(
    r"\b(?:chronic|essential|pre-?existing|long-?standing|primary)\s+"
    r"(?:hypertension|htn|high blood pressure)\b",
    re.I
)
PREGNANCY_HYPERTENSION = re.compile(
    r"\b(?:gestational hypertension|pregnancy[- ]induced hypertension|PIH|GHTN|"
    r"high blood pressure (?:during|in|with) (?:her |my |the )?(?:\w+ )?pregnanc(?:y|ies))\b",
    re.I
)
PULMONARY_HYPERTENSION = re.compile(r"\bpulmonary (?:arterial )?hypertension\b", re.I)
GENERIC_HYPERTENSION = re.compile(r"\b(?:hypertension|htn|high blood pressure|elevated blood pressure)\b", re.I)

GESTATIONAL_DIABETES = re.compile(
    r"\b(?:gestational diabetes|GDM(?:A[12])?|"
    r"diabetes (?:during|in|with) (?:her |my |the )?(?:\w+ )?pregnanc(?:y|ies))\b",
    re.I
)
INSULIN_DEPENDENT_DIABETES = re.compile(
    r"\b(?:type (?:1|i|one) diabetes|T1DM|insulin[- ]dependent diabetes|IDDM|juvenile diabetes)\b",
    re.I
)
GENERIC_DIABETES = re.compile(r"\b(?:type (?:2|ii|two) diabetes|T2DM|diabetes|diabetic)\b", re.I)

CONDITION_SYNONYMS: Dict[ConditionTag, List[str]] = {
    ConditionTag.PREECLAMPSIA: [
        r"\bpre-?eclampsia\b", r"\btoxemia\b", r"\bHELLP\b",
    ],
    ConditionTag.THYROID_DISORDER: [
        r"\bhypothyroid(?:ism)?\b", r"\bhyperthyroid(?:ism)?\b", r"\bthyroid (?:disease|disorder|condition)\b",
        r"\bhashimoto'?s?\b", r"\bgraves'? disease\b", r"\blevothyroxine\b", r"\bsynthroid\b",
    ],
    ConditionTag.AUTOIMMUNE_DISEASE: [
        r"\blupus\b", r"\bSLE\b", r"\brheumatoid arthritis\b", r"\bantiphospholipid\b",
        r"\bautoimmune\b", r"\bmultiple sclerosis\b", r"\bceliac\b", r"\bsjogren'?s?\b",
    ],
    ConditionTag.CARDIAC_DISEASE: [
        r"\bheart disease\b", r"\bcardiomyopathy\b", r"\barrhythmia\b", r"\bheart failure\b",
        r"\bcongenital heart\b", r"\bcardiac (?:disease|condition)\b", r"\bvalve disease\b",
    ],
    ConditionTag.KIDNEY_DISEASE: [
        r"\bkidney disease\b", r"\brenal (?:disease|insufficiency|failure)\b", r"\bCKD\b",
        r"\bnephropathy\b", r"\bglomerulonephritis\b",
    ],
    ConditionTag.ASTHMA: [r"\basthma\b", r"\basthmatic\b"],
    ConditionTag.CANCER: [
        r"\bcancer\b", r"\bmalignancy\b", r"\blymphoma\b", r"\bleukemia\b", r"\bcarcinoma\b",
        r"\bmelanoma\b",
    ],
    ConditionTag.IUGR: [r"\bIUGR\b", r"\b(?:intrauterine |fetal )?growth restriction\b"],
    ConditionTag.PLACENTA_PREVIA: [r"\bplacenta(?:l)? previa\b"],
    ConditionTag.PLACENTAL_ABRUPTION: [r"\bplacental abruption\b", r"\babruptio placentae\b"],
    ConditionTag.POSTPARTUM_HEMORRHAGE: [r"\bpost-?partum h(?:a)?emorrhage\b", r"\bPPH\b"],
    ConditionTag.GERD: [r"\bGERD\b", r"\bacid reflux\b", r"\bgastro-?esophageal reflux\b"],
    ConditionTag.GASTROPARESIS: [r"\bgastroparesis\b"],
    ConditionTag.HYPEREMESIS: [r"\bhyperemesis(?: gravidarum)?\b", r"\bsevere morning sickness\b"],
    ConditionTag.GALLSTONES: [r"\bgallstones?\b", r"\bcholelithiasis\b", r"\bgallbladder disease\b"],
    ConditionTag.GASTRITIS: [r"\bgastritis\b"],
    ConditionTag.BARIATRIC_SURGERY: [
        r"\bbariatric\b", r"\bgastric (?:bypass|sleeve)\b", r"\blap[- ]band\b", r"\bsleeve gastrectomy\b",
    ],
}

# Free-form condition strings (AI output) onto tags
CONDITION_ALIASES: Dict[str, ConditionTag] = {
    "chronic_hypertension": ConditionTag.HYPERTENSION,
    "htn": ConditionTag.HYPERTENSION,
    "pih": ConditionTag.PREGNANCY_HYPERTENSION,
    "gestational_hypertension": ConditionTag.PREGNANCY_HYPERTENSION,
    "pregnancy_induced_hypertension": ConditionTag.PREGNANCY_HYPERTENSION,
    "gdm": ConditionTag.GESTATIONAL_DIABETES,
    "type_1_diabetes": ConditionTag.INSULIN_DEPENDENT_DIABETES,
    "type_2_diabetes": ConditionTag.DIABETES,
    "pre_eclampsia": ConditionTag.PREECLAMPSIA,
    "hypothyroidism": ConditionTag.THYROID_DISORDER,
    "hyperthyroidism": ConditionTag.THYROID_DISORDER,
    "thyroid": ConditionTag.THYROID_DISORDER,
    "lupus": ConditionTag.AUTOIMMUNE_DISEASE,
    "autoimmune": ConditionTag.AUTOIMMUNE_DISEASE,
    "heart_disease": ConditionTag.CARDIAC_DISEASE,
    "renal_disease": ConditionTag.KIDNEY_DISEASE,
    "ckd": ConditionTag.KIDNEY_DISEASE,
    "placental_abruption": ConditionTag.PLACENTAL_ABRUPTION,
    "pph": ConditionTag.POSTPARTUM_HEMORRHAGE,
    "hyperemesis_gravidarum": ConditionTag.HYPEREMESIS,
    "cholelithiasis": ConditionTag.GALLSTONES,
    "gastric_bypass": ConditionTag.BARIATRIC_SURGERY,
}


def normalize_condition(value) -> Optional[ConditionTag]:
    """Map a tag, tag value or known alias onto ConditionTag"""
    if isinstance(value, ConditionTag):
        return value
    if not isinstance(value, str):
        return None
    key = _vocabulary_key(value)
    try:
        return ConditionTag(key)
    except ValueError:
        return CONDITION_ALIASES.get(key)


# ============================================================================
# PSYCHOSOCIAL, LIFESTYLE AND INFECTIOUS DISEASE TABLES
# ============================================================================

PSYCH_FLAG_KEYWORDS: Dict[PsychFlag, List[str]] = {
    PsychFlag.MAJOR_DEPRESSION: [
        r"\bmajor depress\w*\b", r"\bMDD\b", r"\bsevere depression\b", r"\bpost-?partum depression\b",
    ],
    PsychFlag.BIPOLAR_DISORDER: [r"\bbipolar\b", r"\bmanic episodes?\b"],
    PsychFlag.PSYCHOSIS: [r"\bpsychosis\b", r"\bpsychotic\b", r"\bschizophreni\w*\b"],
    PsychFlag.ANXIETY_DISORDER: [
        r"\banxiety disorder\b", r"\bgeneralized anxiety\b", r"\bpanic disorder\b", r"\bGAD\b",
    ],
    PsychFlag.EATING_DISORDER: [r"\banorexia\b", r"\bbulimia\b", r"\beating disorder\b"],
    PsychFlag.SUBSTANCE_ABUSE: [
        r"\bsubstance (?:abuse|use disorder)\b", r"\baddiction\b", r"\brehab(?:ilitation)?\b",
    ],
    PsychFlag.ABUSE_HISTORY: [
        r"\bhistory of (?:domestic |sexual |physical )?abuse\b", r"\bdomestic violence\b", r"\bIPV\b",
    ],
}

PSYCHOTROPIC_MEDICATIONS = re.compile(
    r"\b(?:sertraline|zoloft|fluoxetine|prozac|escitalopram|lexapro|citalopram|celexa|"
    r"bupropion|wellbutrin|venlafaxine|effexor|duloxetine|cymbalta|lithium|lamotrigine|"
    r"quetiapine|seroquel|aripiprazole|abilify|antidepressants?|ssris?|snris?|antipsychotics?)\b",
    re.I
)

INFECTIOUS_TESTS: Dict[str, str] = {
    "hiv": r"\bHIV\b",
    "hepatitis_b": r"\b(?:hep(?:atitis)?\s*B|HBsAg|HBV)\b",
    "hepatitis_c": r"\b(?:hep(?:atitis)?\s*C|HCV)\b",
    "syphilis": r"\b(?:syphilis|RPR|VDRL)\b",
    "gonorrhea": r"\b(?:gonorrh(?:o)?ea|GC)\b",
    "chlamydia": r"\bchlamydia\b",
}

NEGATIVE_RESULT = re.compile(
    r"\b(?:negative|neg|non-?reactive|not detected|nr|immune|clear)\b",
    re.I
)
POSITIVE_RESULT = re.compile(r"\b(?:positive|pos|reactive|detected)\b|^\s?\+", re.I)

GENERIC_STI_SCREEN = re.compile(
    r"\b(?:STI|STD|infectious disease)\s+(?:testing|tests?|screen(?:ing)?|panel|workup)\b",
    re.I
)

RESULT_CONTEXT_WINDOW = 20


def compile_table(table: Dict) -> Dict:
    """Compile every pattern list in a keyword table (case-insensitive)"""
    compiled: Dict = {}
    for key, patterns in table.items():
        compiled[key] = [re.compile(p, re.I) for p in patterns]
    return compiled


def first_unnegated(patterns: List[Pattern], text: str) -> Optional["re.Match"]:
    """First match across patterns that is not inside a negated clause"""
    best = None
    for pattern in patterns:
        for match in pattern.finditer(text):
            if is_negated(text, match.start()):
                continue
            if best is None or match.start() < best.start():
                best = match
            break
    return best
