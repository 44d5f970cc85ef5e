"""Lookup structures over the target dataset."""

from collections import defaultdict
from typing import Dict, Iterable, List
import logging

from config.models import NormalizationConfig
from core.dataset import Dataset
from core.preprocessor import KeyNormalizer

logger = logging.getLogger(__name__)


class TargetIndex:
    """
    Normalized value -> target row positions, per referenced target column.

    Buckets keep every position sharing a value, in target order. The empty
    string is an ordinary key. Normalized values are also kept by position
    so that full scans never renormalize target cells.
    """

    def __init__(self, size: int):
        self.size = size
        self.buckets: Dict[str, Dict[str, List[int]]] = {}
        self.values: Dict[str, List[str]] = {}

    @classmethod
    def build(
        cls,
        target: Dataset,
        columns: Iterable[str],
        normalization: NormalizationConfig
    ) -> 'TargetIndex':
        """
        Index the given target columns.

        Args:
            target: Target dataset
            columns: Right-hand columns referenced by the key pairs
            normalization: Toggles applied to every value

        Returns:
            TargetIndex: Read-only index for one join execution
        """
        index = cls(len(target))
        normalizer = KeyNormalizer(normalization)

        for column in dict.fromkeys(columns):
            if column in index.buckets:
                continue
            if not target.has_column(column):
                logger.warning(
                    f"Target column {column!r} not found in dataset "
                    f"{target.name!r}; its values are treated as empty"
                )

            normalized = [normalizer.process(v) for v in target.column_values(column)]
            buckets: Dict[str, List[int]] = defaultdict(list)
            for position, value in enumerate(normalized):
                buckets[value].append(position)

            index.values[column] = normalized
            index.buckets[column] = dict(buckets)
            logger.debug(
                f"Indexed {column!r}: {len(normalized)} rows, "
                f"{len(buckets)} distinct values"
            )

        return index

    def lookup(self, column: str, value: str) -> List[int]:
        """Positions whose normalized value equals `value` (a fresh list)."""
        return list(self.buckets[column].get(value, ()))

    def normalized(self, column: str, position: int) -> str:
        return self.values[column][position]

    def distinct_values(self, column: str) -> List[str]:
        """Distinct non-empty normalized values in first-seen order."""
        return [value for value in self.buckets[column] if value]
