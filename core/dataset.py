"""In-memory tabular datasets handed to the join engine."""

from dataclasses import dataclass
from enum import Enum
from itertools import count
from typing import Any, Dict, Iterable, List, Optional, Sequence
import pandas as pd

_dataset_ids = count(1)


class ColumnType(str, Enum):
    """Coarse column types carried in a dataset schema."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    GEOMETRY = "geometry"

    @classmethod
    def from_dtype(cls, dtype: Any) -> 'ColumnType':
        """Map a pandas dtype onto a schema type."""
        if pd.api.types.is_bool_dtype(dtype):
            return cls.BOOLEAN
        if pd.api.types.is_numeric_dtype(dtype):
            return cls.NUMBER
        if pd.api.types.is_datetime64_any_dtype(dtype):
            return cls.DATE
        return cls.TEXT


@dataclass(frozen=True)
class ColumnDef:
    """One column of a dataset schema."""
    name: str
    type: ColumnType = ColumnType.TEXT


class Dataset:
    """
    A named table of rows sharing one column schema.

    Rows live in a DataFrame whose index holds the synthetic row ids and
    whose columns are exactly the declared schema; absent values are null.
    """

    def __init__(
        self,
        name: str,
        frame: pd.DataFrame,
        columns: Optional[Sequence[ColumnDef]] = None,
        source_type: str = 'csv'
    ):
        if columns is None:
            columns = [
                ColumnDef(str(col), ColumnType.from_dtype(frame[col].dtype))
                for col in frame.columns
            ]
        names = [col.name for col in columns]
        if len(set(names)) != len(names):
            raise ValueError(f"Dataset {name!r} declares duplicate columns")
        if not frame.index.is_unique:
            raise ValueError(f"Dataset {name!r} has duplicate row ids")

        self.name = name
        self.source_type = source_type
        self.columns: List[ColumnDef] = list(columns)
        self._frame = frame.reindex(columns=names).astype(object)
        self._frame = self._frame.where(pd.notna(self._frame), None)
        self._records: Optional[List[Dict[str, Any]]] = None

    @classmethod
    def from_dataframe(
        cls,
        name: str,
        frame: pd.DataFrame,
        id_prefix: Optional[str] = None,
        columns: Optional[Sequence[ColumnDef]] = None,
        source_type: str = 'csv'
    ) -> 'Dataset':
        """
        Wrap a DataFrame, assigning fresh row ids.

        Args:
            name: Dataset name
            frame: Source rows; its index is discarded
            id_prefix: Prefix for row ids, unique per dataset by default
            columns: Optional explicit schema
            source_type: Label of the source format

        Returns:
            Dataset: New dataset owning a copy of the rows
        """
        if columns is None:
            columns = [
                ColumnDef(str(col), ColumnType.from_dtype(frame[col].dtype))
                for col in frame.columns
            ]
        prefix = id_prefix or f"ds{next(_dataset_ids)}"
        copy = frame.copy()
        copy.columns = [str(col) for col in copy.columns]
        copy.index = pd.Index(
            [f"{prefix}-{i}" for i in range(len(copy))],
            name='id'
        )
        return cls(name, copy, columns=columns, source_type=source_type)

    @classmethod
    def from_records(
        cls,
        name: str,
        records: Iterable[Dict[str, Any]],
        columns: Optional[Sequence[Any]] = None,
        id_prefix: Optional[str] = None,
        source_type: str = 'csv'
    ) -> 'Dataset':
        """
        Build a dataset from row mappings.

        Column order follows `columns` when given, otherwise first appearance.
        Missing keys become null.
        """
        records = list(records)
        if columns is None:
            names = list(dict.fromkeys(key for record in records for key in record))
            defs = None
        else:
            defs = [
                col if isinstance(col, ColumnDef) else ColumnDef(str(col))
                for col in columns
            ]
            names = [col.name for col in defs]
        frame = pd.DataFrame(
            [[record.get(col) for col in names] for record in records],
            columns=names,
            dtype=object
        )
        if defs is None:
            defs = [
                ColumnDef(col, ColumnType.from_dtype(frame[col].infer_objects().dtype))
                for col in names
            ]
        return cls.from_dataframe(
            name, frame, id_prefix=id_prefix, columns=defs, source_type=source_type
        )

    @property
    def frame(self) -> pd.DataFrame:
        """A copy of the rows; the dataset itself never changes."""
        return self._frame.copy()

    @property
    def column_names(self) -> List[str]:
        return [col.name for col in self.columns]

    @property
    def row_ids(self) -> List[Any]:
        return list(self._frame.index)

    @property
    def records(self) -> List[Dict[str, Any]]:
        """Rows as column -> value mappings, cached for repeated scans."""
        if self._records is None:
            self._records = self._frame.to_dict('records')
        return self._records

    def __len__(self) -> int:
        return len(self._frame)

    def has_column(self, column: str) -> bool:
        return column in self._frame.columns

    def row_id(self, position: int) -> Any:
        return self._frame.index[position]

    def row(self, position: int) -> Dict[str, Any]:
        return self.records[position]

    def value(self, position: int, column: str) -> Any:
        """Cell value, or None when the column does not exist."""
        return self.records[position].get(column)

    def column_values(self, column: str) -> List[Any]:
        """All values of a column in row order; nulls for a missing column."""
        if column not in self._frame.columns:
            return [None] * len(self)
        return self._frame[column].tolist()

    def take(self, positions: Sequence[int]) -> pd.DataFrame:
        """Rows at the given positions, with their ids as index."""
        return self._frame.iloc[list(positions)].copy()

    def __repr__(self) -> str:
        return f"Dataset(name={self.name!r}, rows={len(self)}, columns={self.column_names})"
