"""Output column selection rules for the fuzzy join system."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
from dataclasses import dataclass
import regex as re


class ColumnRule(ABC):
    """Base class for column selection rules."""

    @abstractmethod
    def selects(self, column_name: str) -> bool:
        """
        Determine if a column should appear in the join output.

        Args:
            column_name: Name of a column of the dataset being selected from

        Returns:
            bool: Whether the column is selected
        """
        pass

    def missing(self, available: Sequence[str]) -> List[str]:
        """Columns this rule requires that are absent from the dataset."""
        return []


class AllColumnsRule(ColumnRule):
    """Select every column."""

    def selects(self, column_name: str) -> bool:
        return True


class NamedColumnsRule(ColumnRule):
    """Select an explicit list of columns."""

    def __init__(self, names: Sequence[str]):
        self.names = list(dict.fromkeys(names))

    def selects(self, column_name: str) -> bool:
        return column_name in self.names

    def missing(self, available: Sequence[str]) -> List[str]:
        return [name for name in self.names if name not in available]


class PatternRule(ColumnRule):
    """Select columns matching a regex pattern."""

    def __init__(self, pattern: str):
        self.pattern = re.compile(pattern)

    def selects(self, column_name: str) -> bool:
        return bool(self.pattern.match(column_name))


@dataclass
class ColumnSelection:
    """Which columns of one dataset appear in the join output."""

    include_rules: List[ColumnRule]
    exclude_columns: Optional[List[str]] = None

    @classmethod
    def of(cls, names: Sequence[str]) -> 'ColumnSelection':
        """Selection of exactly the given names, in the given order."""
        return cls(include_rules=[NamedColumnsRule(names)])

    @classmethod
    def everything(cls) -> 'ColumnSelection':
        return cls(include_rules=[AllColumnsRule()])

    def missing(self, available: Sequence[str]) -> List[str]:
        """Explicitly named columns that the dataset does not have."""
        return [
            name
            for rule in self.include_rules
            for name in rule.missing(available)
        ]

    def select(self, available: Sequence[str]) -> List[str]:
        """
        Resolve the selection against a dataset's columns.

        Explicitly named columns keep the order they were given in; columns
        picked by other rules follow in dataset order.

        Args:
            available: Column names of the dataset

        Returns:
            List[str]: Selected column names
        """
        excluded = set(self.exclude_columns or [])
        selected = []
        for rule in self.include_rules:
            if isinstance(rule, NamedColumnsRule):
                selected.extend(n for n in rule.names if n in available)
        selected.extend(
            name for name in available
            if any(rule.selects(name) for rule in self.include_rules)
        )
        return [
            name for name in dict.fromkeys(selected)
            if name not in excluded
        ]
