import logging

import pytest

from budget_ingest.normalizer import apply_noise_filters, clean_descriptor


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("BS TOPDANMARK - EN DEL AF IF FO", "TOPDANMARK - EN DEL AF IF FO"),
        ("PAYPAL *SPOTIFY 4029357733", "PAYPAL"),
        ("NETTO  KOEBENHAVN", "NETTO"),
        ("IZ *KAFFEBAREN", "IZ"),
        ("1234 NETTO", "NETTO"),
        ("NETTO #4411", "NETTO"),
        ("NETTO 12345678 AMAGER", "NETTO AMAGER"),
        ("NETTO 1234 5678", "NETTO"),
        ("#12 3456 NETTO", "NETTO"),
        ("NETTO 1234 5678 AMAGER", "NETTO AMAGER"),
        ("spotify.com", "spotify"),
        ("", ""),
        (None, ""),
    ],
)
def test_clean_descriptor(raw, expected: str) -> None:
    assert clean_descriptor(raw) == expected


def test_noise_filters_remove_every_occurrence_case_insensitively() -> None:
    assert apply_noise_filters("Visa Netto visa", ["VISA"]) == "Netto"


def test_noise_filters_are_literal_not_regex() -> None:
    assert apply_noise_filters("NETTO (DK) .*", ["(DK)", ".*"]) == "NETTO"
    assert apply_noise_filters("NETTO", [".*"]) == "NETTO"


def test_noise_filter_order_is_significant() -> None:
    text = "MOBILEPAY NETTO"
    assert clean_descriptor(text, ["MOBILEPAY", "PAY"]) == "NETTO"
    assert clean_descriptor(text, ["PAY", "MOBILEPAY"]) == "MOBILE NETTO"


def test_invalid_filters_are_skipped_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="budget_ingest")
    assert clean_descriptor("MC/VISA NETTO", [None, "", 42, "MC/VISA"]) == "NETTO"
    assert any("noise_filter:invalid" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize(
    "raw",
    [
        "BS TOPDANMARK - EN DEL AF IF FO",
        "PAYPAL *SPOTIFY 4029357733",
        "MC/VISA DK K BYENS BRØDHUS A",
        "Dankort-nota NETTO 4411",
        "NETTO 12345678 AMAGER",
        "NETTO 1234 5678",
        "NETTO 4411-0042 #7",
        "NETTO 1234 5678 AMAGER",
    ],
)
def test_clean_descriptor_is_idempotent(raw: str) -> None:
    filters = ["Dankort-nota", "MC/VISA DK K"]
    once = clean_descriptor(raw, filters)
    assert clean_descriptor(once, filters) == once
