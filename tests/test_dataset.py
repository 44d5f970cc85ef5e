import numpy as np
import pandas as pd
import pytest

from core.dataset import ColumnDef, ColumnType, Dataset


def test_records_with_missing_keys_are_filled_with_null() -> None:
    dataset = Dataset.from_records("people", [{"name": "Ann"}, {"city": "Oslo"}])

    assert dataset.column_names == ["name", "city"]
    assert dataset.row(0) == {"name": "Ann", "city": None}
    assert dataset.value(1, "name") is None
    assert dataset.value(1, "country") is None


def test_explicit_columns_fix_schema_and_order() -> None:
    dataset = Dataset.from_records(
        "people",
        [{"name": "Ann", "age": 31, "extra": "x"}],
        columns=["age", ColumnDef("name", ColumnType.TEXT)],
    )
    assert dataset.column_names == ["age", "name"]
    assert dataset.row(0) == {"age": 31, "name": "Ann"}


def test_row_ids_are_unique_across_datasets() -> None:
    first = Dataset.from_records("a", [{"x": 1}, {"x": 2}])
    second = Dataset.from_records("b", [{"x": 1}])

    assert len(set(first.row_ids)) == 2
    assert not set(first.row_ids) & set(second.row_ids)


def test_explicit_id_prefix() -> None:
    dataset = Dataset.from_records("a", [{"x": 1}, {"x": 2}], id_prefix="m")
    assert dataset.row_ids == ["m-0", "m-1"]
    assert dataset.row_id(1) == "m-1"


def test_nan_cells_become_null() -> None:
    frame = pd.DataFrame({"name": ["Ann", np.nan], "score": [1.5, np.nan]})
    dataset = Dataset.from_dataframe("people", frame)

    assert dataset.value(1, "name") is None
    assert dataset.value(1, "score") is None
    assert dataset.column_values("score")[0] == 1.5
    assert dataset.column_values("missing") == [None, None]


def test_column_types_follow_dtypes() -> None:
    frame = pd.DataFrame({
        "name": ["a"],
        "count": [1],
        "flag": [True],
        "when": pd.to_datetime(["2024-01-01"]),
    })
    types = {col.name: col.type for col in Dataset.from_dataframe("t", frame).columns}
    assert types == {
        "name": ColumnType.TEXT,
        "count": ColumnType.NUMBER,
        "flag": ColumnType.BOOLEAN,
        "when": ColumnType.DATE,
    }


def test_frame_is_a_copy() -> None:
    dataset = Dataset.from_records("a", [{"x": "1"}])
    frame = dataset.frame
    frame.loc[frame.index[0], "x"] = "changed"
    assert dataset.value(0, "x") == "1"


def test_take_keeps_row_ids() -> None:
    dataset = Dataset.from_records("a", [{"x": 1}, {"x": 2}, {"x": 3}], id_prefix="t")
    taken = dataset.take([2, 0])
    assert list(taken.index) == ["t-2", "t-0"]
    assert list(taken["x"]) == [3, 1]


def test_duplicate_columns_are_rejected() -> None:
    with pytest.raises(ValueError):
        Dataset.from_records("a", [{"x": 1}], columns=["x", "x"])


def test_empty_dataset_keeps_schema() -> None:
    dataset = Dataset.from_records("empty", [], columns=["name"])
    assert len(dataset) == 0
    assert dataset.column_names == ["name"]
    assert dataset.records == []
