from config.models import NormalizationConfig
from core.dataset import Dataset
from core.indexer import TargetIndex


def _target() -> Dataset:
    return Dataset.from_records("target", [
        {"name": "John Smith", "city": "Paris"},
        {"name": "john smith!", "city": "London"},
        {"name": "Jane", "city": None},
        {"name": None, "city": "Paris"},
        {"name": "", "city": "paris"},
    ])


def test_buckets_keep_every_position_in_target_order() -> None:
    index = TargetIndex.build(_target(), ["name"], NormalizationConfig())
    assert index.buckets["name"] == {
        "john smith": [0, 1],
        "jane": [2],
        "": [3, 4],
    }
    assert index.values["name"] == ["john smith", "john smith", "jane", "", ""]


def test_empty_value_is_an_ordinary_key() -> None:
    index = TargetIndex.build(_target(), ["name"], NormalizationConfig())
    assert index.lookup("name", "") == [3, 4]


def test_lookup_of_unknown_value_is_empty() -> None:
    index = TargetIndex.build(_target(), ["name"], NormalizationConfig())
    assert index.lookup("name", "nobody") == []


def test_lookup_returns_a_copy() -> None:
    index = TargetIndex.build(_target(), ["name"], NormalizationConfig())
    bucket = index.lookup("name", "john smith")
    bucket.append(99)
    assert index.lookup("name", "john smith") == [0, 1]


def test_only_referenced_columns_are_indexed_once() -> None:
    index = TargetIndex.build(_target(), ["city", "city"], NormalizationConfig())
    assert list(index.buckets) == ["city"]
    assert index.buckets["city"] == {"paris": [0, 3, 4], "london": [1], "": [2]}


def test_missing_column_indexes_every_row_as_empty() -> None:
    index = TargetIndex.build(_target(), ["country"], NormalizationConfig())
    assert index.lookup("country", "") == [0, 1, 2, 3, 4]
    assert index.distinct_values("country") == []


def test_distinct_values_skip_empty() -> None:
    index = TargetIndex.build(_target(), ["name"], NormalizationConfig())
    assert index.distinct_values("name") == ["john smith", "jane"]
    assert index.size == 5
