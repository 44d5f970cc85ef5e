import pytest

from config.models import (
    Confidence,
    JoinConfig,
    JoinConfigurationError,
    KeyPair,
    MatchingAlgorithm,
)
from config.rules import ColumnSelection, NamedColumnsRule, PatternRule


def test_key_pair_needs_both_columns() -> None:
    with pytest.raises(JoinConfigurationError):
        KeyPair("", "name")
    with pytest.raises(JoinConfigurationError):
        KeyPair("name", "  ")


def test_configuration_errors_are_value_errors() -> None:
    with pytest.raises(ValueError):
        JoinConfig(key_pairs=[])


def test_loose_inputs_are_coerced() -> None:
    config = JoinConfig(
        key_pairs=[("name", "full_name"), {"left": "city", "right": "town"}],
        algorithms=["exact", "Levenshtein"],
        threshold="85",
        master_columns=["name"],
        semantic_min_confidence="high",
    )

    assert config.key_pairs == (KeyPair("name", "full_name"), KeyPair("city", "town"))
    assert config.algorithms == frozenset({MatchingAlgorithm.EXACT, MatchingAlgorithm.LEVENSHTEIN})
    assert config.threshold == 85.0
    assert isinstance(config.master_columns, ColumnSelection)
    assert config.target_columns is None
    assert config.semantic_min_confidence is Confidence.HIGH


@pytest.mark.parametrize("threshold", [-1, 100.5, "high"])
def test_invalid_threshold_is_rejected(threshold) -> None:
    with pytest.raises(JoinConfigurationError):
        JoinConfig(key_pairs=[("a", "b")], threshold=threshold)


def test_unknown_algorithm_is_rejected() -> None:
    with pytest.raises(JoinConfigurationError, match="SOUNDEX"):
        JoinConfig(key_pairs=[("a", "b")], algorithms=["SOUNDEX"])


def test_malformed_key_pair_is_rejected() -> None:
    with pytest.raises(JoinConfigurationError):
        JoinConfig(key_pairs=["abc"])


def test_defaults() -> None:
    config = JoinConfig(key_pairs=[("a", "b")])
    assert config.algorithms == frozenset({MatchingAlgorithm.LEVENSHTEIN})
    assert config.threshold == 80.0
    assert config.exclusive_targets
    assert config.normalization.lowercase
    assert not config.normalization.remove_numbers


def test_right_columns_are_distinct_in_order() -> None:
    config = JoinConfig(key_pairs=[("a", "x"), ("b", "y"), ("c", "x")])
    assert config.right_columns == ["x", "y"]


def test_semantic_fallback_needs_flag_and_single_key() -> None:
    semantic = {MatchingAlgorithm.AI_SEMANTIC}
    assert JoinConfig(key_pairs=[("a", "b")], algorithms=semantic).semantic_fallback_enabled
    assert not JoinConfig(key_pairs=[("a", "b")]).semantic_fallback_enabled
    assert not JoinConfig(
        key_pairs=[("a", "b"), ("c", "d")], algorithms=semantic
    ).semantic_fallback_enabled


def test_confidence_parsing_falls_back_to_low() -> None:
    assert Confidence.parse(" MEDIUM ") is Confidence.MEDIUM
    assert Confidence.parse(None) is Confidence.LOW
    assert Confidence.parse("certain") is Confidence.LOW
    assert [c.score for c in Confidence] == [90, 75, 60]


def test_named_selection_keeps_given_order() -> None:
    selection = ColumnSelection.of(["city", "name"])
    assert selection.select(["name", "id", "city"]) == ["city", "name"]
    assert selection.missing(["name"]) == ["city"]


def test_everything_selects_dataset_order() -> None:
    assert ColumnSelection.everything().select(["b", "a"]) == ["b", "a"]


def test_pattern_rules_and_exclusions() -> None:
    selection = ColumnSelection(
        include_rules=[NamedColumnsRule(["name"]), PatternRule(r"url_.*")],
        exclude_columns=["url_internal"],
    )
    available = ["url_home", "name", "id", "url_internal", "url_blog"]

    assert selection.select(available) == ["name", "url_home", "url_blog"]
    assert selection.missing(available) == []
