"""Hierarchical multi-key matching cascade."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import math
import threading

from core.indexer import TargetIndex
from core.preprocessor import KeyNormalizer
from core.similarity import EXACT_SCORE, ScorerChain
from config.models import (
    JoinConfig,
    KeyPair,
    MatchDecision,
    MatchingAlgorithm,
    StepResult
)


@dataclass(frozen=True)
class CascadeOutcome:
    """
    Survivors of the cascade for one master row.

    `algorithms` holds, per surviving target position, the weakest algorithm
    that produced one of its verdicts along the way.
    """
    master_position: int
    survivors: Tuple[int, ...] = ()
    steps: Tuple[StepResult, ...] = ()
    algorithms: Dict[int, MatchingAlgorithm] = field(default_factory=dict)

    @property
    def has_candidates(self) -> bool:
        return bool(self.survivors)


class ConsumptionSet:
    """Target positions claimed during one join execution."""

    def __init__(self):
        self._claimed = set()
        self._lock = threading.Lock()

    def claim(self, position: int) -> bool:
        """Atomically claim a position; False if it was already claimed."""
        with self._lock:
            if position in self._claimed:
                return False
            self._claimed.add(position)
            return True

    def __contains__(self, position: int) -> bool:
        return position in self._claimed

    def __len__(self) -> int:
        return len(self._claimed)

    @property
    def claimed(self) -> frozenset:
        with self._lock:
            return frozenset(self._claimed)


def _weaker(
    previous: Optional[MatchingAlgorithm],
    current: MatchingAlgorithm
) -> MatchingAlgorithm:
    if previous is None or current.rank > previous.rank:
        return current
    return previous


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class HierarchicalMatcher:
    """
    Runs the key-pair cascade for master rows and resolves winners.

    The cascade only reads the master row, the target index and the scorers,
    so outcomes can be computed in any order or in worker processes. Claims
    against the consumption set happen in `resolve`, which callers invoke in
    master-row order.
    """

    def __init__(self, config: JoinConfig, index: TargetIndex):
        self.config = config
        self.index = index
        self.scorers = ScorerChain.from_config(config)
        self.normalizer = KeyNormalizer(config.normalization)

        # Index buckets are adopted for exact and approximate matching alike
        self._adopt_buckets = config.is_enabled(
            MatchingAlgorithm.EXACT, MatchingAlgorithm.LEVENSHTEIN
        )
        self._full_scan = config.is_enabled(
            MatchingAlgorithm.LEVENSHTEIN, MatchingAlgorithm.PHONETIC
        )

    def cascade(self, master_position: int, row: Dict[str, Any]) -> CascadeOutcome:
        """
        Narrow the target rows for one master row, key pair by key pair.

        Args:
            master_position: Position of the row in the master dataset
            row: Column -> value mapping of the master row

        Returns:
            CascadeOutcome: Surviving target positions in pool order
        """
        pool: Optional[List[int]] = None  # None means every target row
        steps: List[StepResult] = []
        algorithms: Dict[int, MatchingAlgorithm] = {}

        for step_number, key_pair in enumerate(self.config.key_pairs):
            value = self.normalizer.process(row.get(key_pair.left))

            if pool is None and step_number == 0:
                bucket = self.index.lookup(key_pair.right, value)
                if bucket and self._adopt_buckets:
                    pool = bucket
                    algorithms = dict.fromkeys(bucket, MatchingAlgorithm.EXACT)
                    steps.append(StepResult(key_pair, EXACT_SCORE, True, len(bucket)))
                    continue
                if not self._full_scan:
                    return CascadeOutcome(master_position, steps=tuple(steps))

            candidates = range(self.index.size) if pool is None else pool
            pool, step, algorithms = self._scan(key_pair, value, candidates, algorithms)
            if not pool:
                return CascadeOutcome(master_position, steps=tuple(steps))
            steps.append(step)

        return CascadeOutcome(
            master_position,
            survivors=tuple(pool or ()),
            steps=tuple(steps),
            algorithms=algorithms
        )

    def _scan(
        self,
        key_pair: KeyPair,
        value: str,
        candidates: Iterable[int],
        algorithms: Dict[int, MatchingAlgorithm]
    ) -> Tuple[List[int], Optional[StepResult], Dict[int, MatchingAlgorithm]]:
        """Score every candidate; the step score is the survivors' mean."""
        target_values = self.index.values[key_pair.right]
        survivors: List[int] = []
        kept: Dict[int, MatchingAlgorithm] = {}
        total = 0.0

        for position in candidates:
            verdict = self.scorers.evaluate(value, target_values[position])
            if verdict is None:
                continue
            survivors.append(position)
            total += verdict.score
            kept[position] = _weaker(algorithms.get(position), verdict.algorithm)

        if not survivors:
            return survivors, None, kept

        step = StepResult(key_pair, total / len(survivors), False, len(survivors))
        return survivors, step, kept

    def cascade_rows(
        self,
        rows: Sequence[Tuple[int, Dict[str, Any]]]
    ) -> List[CascadeOutcome]:
        """Cascade a batch of (position, row) pairs."""
        return [self.cascade(position, row) for position, row in rows]

    def final_score(self, steps: Sequence[StepResult]) -> int:
        """Mean step score over all key pairs, rounded half-up, capped at 100."""
        total = sum(step.score for step in steps)
        return min(_round_half_up(total / len(self.config.key_pairs)), 100)

    def resolve(
        self,
        outcome: CascadeOutcome,
        consumption: ConsumptionSet
    ) -> MatchDecision:
        """
        Pick the winning target row for a cascade outcome and claim it.

        The winner is the first survivor in pool order. With exclusive targets
        survivors claimed by an earlier master row are skipped; otherwise the
        claim is only recorded.

        Args:
            outcome: Result of `cascade`
            consumption: Claims made so far in this execution

        Returns:
            MatchDecision: Winner, score and algorithm, or an unmatched decision
        """
        winner = None
        if self.config.exclusive_targets:
            for position in outcome.survivors:
                if consumption.claim(position):
                    winner = position
                    break
        elif outcome.survivors:
            winner = outcome.survivors[0]
            consumption.claim(winner)

        if winner is None:
            return MatchDecision(outcome.master_position, steps=outcome.steps)

        return MatchDecision(
            master_position=outcome.master_position,
            target_position=winner,
            score=self.final_score(outcome.steps),
            algorithm=outcome.algorithms.get(winner, MatchingAlgorithm.EXACT),
            steps=outcome.steps
        )


def cascade_chunk(
    matcher: HierarchicalMatcher,
    rows: Sequence[Tuple[int, Dict[str, Any]]]
) -> List[CascadeOutcome]:
    """Worker entry point; module level so it pickles."""
    return matcher.cascade_rows(rows)
