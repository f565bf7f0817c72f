import pytest
from pydantic import ValidationError

from budget_ingest.matching import RuleSet, find_fuzzy_rule, match_descriptor
from budget_ingest.models import MerchantRule


def _rule(**kw) -> MerchantRule:
    return MerchantRule.model_validate(kw)


# ---- Statement scenarios -------------------------------------------------------


def test_topdanmark_is_a_fuzzy_match(scenario_rules: RuleSet) -> None:
    result = match_descriptor("BS TOPDANMARK - EN DEL AF IF FO", scenario_rules)

    assert result.matched is True
    assert result.tier == "fuzzy"
    assert result.confidence == 0.8
    assert result.clean_descriptor.startswith("TOPDANMARK")
    assert result.clean_name == "TopDanmark Insurance"
    assert result.category == "Transport"


def test_card_descriptor_is_an_exact_match(scenario_rules: RuleSet) -> None:
    result = match_descriptor("MC/VISA DK K BYENS BRØDHUS A", scenario_rules)

    assert result.tier == "exact"
    assert result.confidence == 1.0
    assert result.clean_name == "Bakery - Byens Brodhus"
    assert (result.category, result.sub_category) == ("Food", "Takeaway")


def test_unmatched_descriptor_is_pending(scenario_rules: RuleSet) -> None:
    result = match_descriptor("NETTO 4411 KOEBENHAVN", scenario_rules)

    assert result.matched is False
    assert result.confidence == 0.0
    assert result.category == ""
    assert result.sub_category is None
    assert result.clean_name == result.clean_descriptor == "NETTO KOEBENHAVN"
    assert result.rule is None


# ---- Tiers and ordering --------------------------------------------------------


def test_exact_outranks_earlier_fuzzy_rule() -> None:
    rules = RuleSet.of(
        [
            {"sourceName": "NETTO", "autoCategory": "Groceries"},
            {"sourceName": "netto amager", "matchMode": "exact", "autoCategory": "Local"},
        ]
    )
    result = match_descriptor("NETTO AMAGER", rules)
    assert (result.tier, result.category, result.confidence) == ("exact", "Local", 1.0)


@pytest.mark.parametrize(
    ("source_name", "descriptor"),
    [
        (" NETTO AMAGER  ", "NETTO AMAGER"),
        ("NETTO AMAGER", "  netto amager "),
        ("\tNETTO AMAGER", " NETTO AMAGER\n"),
    ],
)
def test_exact_tier_ignores_surrounding_whitespace(source_name: str, descriptor: str) -> None:
    rule = _rule(sourceName=source_name, matchMode="exact", autoCategory="Local")
    assert rule.source_name == "NETTO AMAGER"

    result = match_descriptor(descriptor, [rule])
    assert (result.tier, result.confidence) == ("exact", 1.0)


def test_exact_on_clean_source_name() -> None:
    rules = [_rule(cleanSourceName="Spotify", autoCategory="Entertainment")]
    result = match_descriptor("spotify.com", rules)
    assert result.tier == "exact"
    assert result.category == "Entertainment"


def test_first_rule_in_table_order_wins_within_a_tier() -> None:
    first = _rule(sourceName="SHELL", autoCategory="Fuel")
    second = _rule(sourceName="SHELL", autoCategory="Snacks")

    assert match_descriptor("SHELL 7-ELEVEN", [first, second]).category == "Fuel"
    assert match_descriptor("SHELL 7-ELEVEN", [second, first]).category == "Snacks"
    assert match_descriptor("shell", [first, second]).category == "Fuel"


def test_exact_mode_rules_skip_the_fuzzy_tier() -> None:
    rules = [_rule(sourceName="NETTO", matchMode="exact", autoCategory="Groceries")]
    assert match_descriptor("NETTO AMAGER", rules).matched is False
    assert match_descriptor("netto", rules).matched is True


@pytest.mark.parametrize(
    ("descriptor", "name"),
    [
        ("IRMA CITY", "IRMA"),  # rule name prefixes the raw descriptor
        ("BS IRMA CITY", "IRMA"),  # ... or the clean descriptor
        ("IRMA", "IRMA CITY"),  # clean descriptor prefixes the rule name
        ("XX IRMA CITY", "IRMA CITY"),  # rule name contained in the raw text
    ],
)
def test_fuzzy_conditions(descriptor: str, name: str) -> None:
    rules = [_rule(sourceName=name, autoCategory="Groceries")]
    result = match_descriptor(descriptor, rules)
    assert result.tier == "fuzzy"


def test_short_clean_descriptor_does_not_prefix_match() -> None:
    rules = [_rule(sourceName="ABCDEF", autoCategory="X")]
    assert match_descriptor("ABC", rules).matched is False
    assert match_descriptor("ABCD", rules).matched is True


def test_one_character_rule_names_never_fuzzy_match() -> None:
    rules = [_rule(sourceName="A", autoCategory="X")]
    assert find_fuzzy_rule("A STORE", "A STORE", rules) is None


def test_effective_name_falls_back_to_clean_source_name() -> None:
    rules = [_rule(cleanSourceName="Lidl", autoCategory="Groceries")]
    result = match_descriptor("LIDL SOENDERBRO", rules)
    assert (result.tier, result.clean_name) == ("fuzzy", "Lidl")


def test_matched_without_clean_name_keeps_clean_descriptor() -> None:
    rules = [_rule(sourceName="FOETEX", autoCategory="Groceries")]
    result = match_descriptor("BS FOETEX #12", rules)
    assert result.clean_name == "FOETEX"


def test_noise_filters_feed_matching() -> None:
    rules = [_rule(cleanSourceName="Byens Brødhus", autoCategory="Food")]
    result = match_descriptor(
        "MC/VISA DK K BYENS BRØDHUS", rules, noise_filters=["MC/VISA DK K"]
    )
    assert result.tier == "exact"


def test_matching_is_deterministic(scenario_rules: RuleSet) -> None:
    runs = {match_descriptor("BYENS BR@DHUS 123", scenario_rules) for _ in range(5)}
    assert len(runs) == 1


# ---- Rule validation -------------------------------------------------------------


def test_rule_requires_a_name() -> None:
    with pytest.raises(ValidationError):
        MerchantRule.model_validate({"autoCategory": "Food"})


def test_rule_normalizes_storage_values() -> None:
    rule = MerchantRule.model_validate(
        {
            "source_name": "  NETTO ",
            "match_mode": None,
            "auto_category": None,
            "auto_sub_category": "",
            "id": 17,
        }
    )
    assert rule.source_name == "NETTO"
    assert rule.match_mode == "fuzzy"
    assert rule.auto_category == ""
    assert rule.auto_sub_category is None


def test_rule_set_is_ordered_and_sized(scenario_rules: RuleSet) -> None:
    assert len(scenario_rules) == 3
    assert [r.source_name for r in scenario_rules][0] == "TOPDANMARK"
