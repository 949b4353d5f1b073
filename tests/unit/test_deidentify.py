"""
Unit tests for de-identification of text sent to the extraction service
"""

from carrier_screening.extraction.deidentify import (
    DEFAULT_DISPLAY_NAME,
    PLACEHOLDER,
    deidentify_text,
    reidentify_text,
)


def test_dates_reduced_to_year():
    text = "Delivered 03/14/2019 and March 5, 2021; seen 14 March 2022."

    assert deidentify_text(text) == "Delivered 2019 and 2021; seen 2022."


def test_full_first_and_last_name_replaced():
    text = "Jane Doe reports Jane is well. Doe family history negative."

    result = deidentify_text(text, "Jane Doe")

    assert result == (
        f"{PLACEHOLDER} reports {PLACEHOLDER} is well. {PLACEHOLDER} family history negative."
    )


def test_name_match_is_case_insensitive():
    assert deidentify_text("JANE DOE, G2P2", "Jane Doe") == f"{PLACEHOLDER}, G2P2"


def test_single_letter_initials_left_alone():
    result = deidentify_text("J. Doe and J. Smith attended.", "J. Doe")

    assert result == f"{PLACEHOLDER} and J. Smith attended."


def test_blank_name_only_strips_dates():
    assert deidentify_text("Seen 1/2/2020 by Jane", "   ") == "Seen 2020 by Jane"


def test_reidentify_restores_name():
    assert reidentify_text(f"{PLACEHOLDER} had PIH", "Jane Doe") == "Jane Doe had PIH"


def test_reidentify_without_name_uses_neutral_phrase():
    assert reidentify_text(f"{PLACEHOLDER} had PIH") == f"{DEFAULT_DISPLAY_NAME} had PIH"
