"""Turns match decisions into joined rows, leftovers and statistics."""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple
from collections import Counter
import logging
import pandas as pd

from config.models import (
    JoinConfig,
    JoinConfigurationError,
    JoinStatistics,
    MatchDecision,
    MatchResultRow,
    MatchStatus
)
from config.rules import ColumnSelection
from core.dataset import Dataset

logger = logging.getLogger(__name__)

STATUS_COLUMN = '_match_status'
SCORE_COLUMN = '_match_score'
METHOD_COLUMN = '_match_method'
TARGET_ID_COLUMN = '_matched_target_id'
TARGET_SUFFIX = '_target'


@dataclass
class JoinResult:
    """Everything one join execution produces."""
    rows: List[MatchResultRow]
    unused_target: pd.DataFrame
    statistics: JoinStatistics
    columns: List[str]
    consumed: frozenset

    @property
    def unmatched_master(self) -> List[MatchResultRow]:
        return [row for row in self.rows if row.status is MatchStatus.UNMATCHED]

    def to_dataframe(self) -> pd.DataFrame:
        """Joined rows indexed by master row id, with bookkeeping columns."""
        records = []
        for row in self.rows:
            record = {col: row.values.get(col) for col in self.columns}
            record[STATUS_COLUMN] = row.status.value
            record[SCORE_COLUMN] = row.score
            record[METHOD_COLUMN] = row.algorithm.value if row.algorithm else None
            record[TARGET_ID_COLUMN] = row.target_id
            records.append(record)

        frame = pd.DataFrame(
            records,
            columns=self.columns + [STATUS_COLUMN, SCORE_COLUMN, METHOD_COLUMN, TARGET_ID_COLUMN]
        )
        frame.index = pd.Index([row.master_id for row in self.rows], name='id')
        return frame


def resolve_columns(selection: ColumnSelection, dataset: Dataset) -> List[str]:
    """Resolve an output selection; explicitly named columns must exist."""
    selection = selection or ColumnSelection.everything()
    missing = selection.missing(dataset.column_names)
    if missing:
        raise JoinConfigurationError(
            f"Output columns not found in dataset {dataset.name!r}: {missing}"
        )
    return selection.select(dataset.column_names)


def output_layout(
    config: JoinConfig,
    master: Dataset,
    target: Dataset
) -> Tuple[List[str], List[Tuple[str, str]]]:
    """
    Output column names for a join.

    Returns:
        Tuple: master columns, and (target column, output name) pairs where
        target columns clashing with a master column get a suffix
    """
    master_columns = resolve_columns(config.master_columns, master)
    taken = set(master_columns)
    target_columns = []
    for column in resolve_columns(config.target_columns, target):
        name = column
        while name in taken:
            name = f"{name}{TARGET_SUFFIX}"
        if name != column:
            logger.debug(f"Target column {column!r} renamed to {name!r} in output")
        taken.add(name)
        target_columns.append((column, name))
    return master_columns, target_columns


class JoinAssembler:
    """Builds the output of one join execution from its decisions."""

    def __init__(self, config: JoinConfig, master: Dataset, target: Dataset):
        self.config = config
        self.master = master
        self.target = target
        self.master_columns, self.target_columns = output_layout(config, master, target)

    @property
    def columns(self) -> List[str]:
        return self.master_columns + [name for _, name in self.target_columns]

    def _build_row(self, decision: MatchDecision) -> MatchResultRow:
        source = self.master.row(decision.master_position)
        values: Dict[str, Any] = {col: source.get(col) for col in self.master_columns}

        if decision.is_matched:
            match = self.target.row(decision.target_position)
            for column, name in self.target_columns:
                values[name] = match.get(column)
            target_id = self.target.row_id(decision.target_position)
        else:
            for _, name in self.target_columns:
                values[name] = None
            target_id = None

        return MatchResultRow(
            master_id=self.master.row_id(decision.master_position),
            values=values,
            status=decision.status,
            score=decision.score,
            algorithm=decision.algorithm,
            target_id=target_id
        )

    def assemble(
        self,
        decisions: Sequence[MatchDecision],
        consumed: frozenset,
        elapsed_seconds: float = 0.0
    ) -> JoinResult:
        """
        Produce one output row per master row and the leftover target rows.

        Args:
            decisions: One decision per master row, in master order
            consumed: Target positions claimed during the execution
            elapsed_seconds: Duration reported in the statistics

        Returns:
            JoinResult: Joined rows, unused target rows and statistics
        """
        if len(decisions) != len(self.master):
            raise ValueError(
                f"Expected {len(self.master)} decisions, got {len(decisions)}"
            )

        rows = [self._build_row(decision) for decision in decisions]
        unused_positions = [p for p in range(len(self.target)) if p not in consumed]
        unused_target = self.target.take(unused_positions)

        matched = sum(1 for row in rows if row.status is MatchStatus.MATCHED)
        by_algorithm = Counter(
            row.algorithm.value for row in rows
            if row.status is MatchStatus.MATCHED and row.algorithm
        )
        statistics = JoinStatistics(
            total=len(rows),
            matched=matched,
            unmatched=len(rows) - matched,
            unused_target=len(unused_positions),
            by_algorithm=dict(by_algorithm),
            elapsed_seconds=elapsed_seconds
        )

        return JoinResult(
            rows=rows,
            unused_target=unused_target,
            statistics=statistics,
            columns=self.columns,
            consumed=frozenset(consumed)
        )
