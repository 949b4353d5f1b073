"""
De-identification for text leaving the process

Applied before anything is sent to the external extraction service:
- Full dates are reduced to their year
- The candidate's full name, first name and last name become PATIENT_A

reidentify_text reverses the name substitution for display.
"""

import re
from typing import Optional

PLACEHOLDER = "PATIENT_A"
DEFAULT_DISPLAY_NAME = "The candidate"

_MONTHS = (
    r"(?:January|February|March|April|May|June|July|August|September|October|November|December|"
    r"Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec)"
)

DATE_PATTERNS = [
    # 03/14/2019, 3-14-2019
    re.compile(r"\b\d{1,2}[/\-]\d{1,2}[/\-](\d{4})\b"),
    # March 14, 2019
    re.compile(r"\b" + _MONTHS + r"\.?\s+\d{1,2}(?:st|nd|rd|th)?,?\s+(\d{4})\b", re.I),
    # 14 March 2019
    re.compile(r"\b\d{1,2}(?:st|nd|rd|th)?\s+" + _MONTHS + r"\.?,?\s+(\d{4})\b", re.I),
]


def _name_pattern(name: str, word_boundaries: bool = True) -> re.Pattern:
    escaped = re.escape(name)
    if word_boundaries:
        escaped = r"\b" + escaped + r"\b"
    return re.compile(escaped, re.I)


def deidentify_text(text: str, candidate_name: Optional[str] = None) -> str:
    """
    Remove dates and the candidate's name from text

    Args:
        text: Raw record text
        candidate_name: Candidate's real name, when known

    Returns:
        De-identified text
    """
    result = text
    for pattern in DATE_PATTERNS:
        result = pattern.sub(r"\1", result)

    if not candidate_name or not candidate_name.strip():
        return result

    name = candidate_name.strip()
    result = _name_pattern(name, word_boundaries=False).sub(PLACEHOLDER, result)

    parts = name.split()
    if len(parts) >= 2:
        for part in (parts[0], parts[-1]):
            # Single letters would erase unrelated text
            if len(part.strip(".")) > 1:
                result = _name_pattern(part).sub(PLACEHOLDER, result)

    return result


def reidentify_text(text: str, candidate_name: Optional[str] = None) -> str:
    """Restore the candidate's name (or a neutral phrase) in place of the placeholder"""
    display = candidate_name.strip() if candidate_name and candidate_name.strip() else DEFAULT_DISPLAY_NAME
    return text.replace(PLACEHOLDER, display)
