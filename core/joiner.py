"""Fuzzy join pipeline: index, cascade, claim, fall back, assemble."""

from typing import Any, Dict, List, Optional, Sequence, Tuple
from functools import partial
from multiprocessing import Pool, cpu_count
import logging
import threading
import time
import numpy as np

from config.models import JoinAbortedError, JoinConfig, MatchingAlgorithm
from core.assembler import JoinAssembler, JoinResult
from core.dataset import Dataset
from core.indexer import TargetIndex
from core.matcher import CascadeOutcome, ConsumptionSet, HierarchicalMatcher, cascade_chunk
from core.semantic import OpenAISemanticMatcher, SemanticFallback, SemanticMatcher


class FuzzyJoiner:
    """
    Joins a master dataset against a target dataset.

    Every master row yields exactly one output row. Target rows never
    claimed by a master row are reported as unused.
    """

    def __init__(
        self,
        config: JoinConfig,
        semantic_matcher: Optional[SemanticMatcher] = None,
        worker_processes: int = 1,
        progress_interval: int = 500
    ):
        """
        Initialize the joiner.

        Args:
            config: Validated join configuration
            semantic_matcher: Fallback used when AI_SEMANTIC is enabled;
                defaults to the OpenAI-backed matcher
            worker_processes: Processes running the cascade (-1 for CPU count)
            progress_interval: Log progress every this many master rows
        """
        self.config = config
        self.semantic_matcher = semantic_matcher
        self.worker_processes = worker_processes if worker_processes > 0 else cpu_count()
        self.progress_interval = max(1, progress_interval)

        self._initialize_logging()
        self._warn_degenerate_config()

    def _initialize_logging(self) -> None:
        """Setup logging configuration."""
        self.logger = logging.getLogger(__name__)
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(
                logging.Formatter(
                    '%(asctime)s - %(levelname)s - %(message)s'
                )
            )
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def _warn_degenerate_config(self) -> None:
        if not self.config.is_enabled(
            MatchingAlgorithm.EXACT,
            MatchingAlgorithm.PHONETIC,
            MatchingAlgorithm.LEVENSHTEIN
        ):
            self.logger.warning(
                "No cascade algorithm enabled; every master row will go unmatched "
                "unless the semantic fallback finds it"
            )
        if (MatchingAlgorithm.AI_SEMANTIC in self.config.algorithms
                and len(self.config.key_pairs) > 1):
            self.logger.warning(
                "Semantic matching only applies to single-key joins; "
                f"{len(self.config.key_pairs)} key pairs configured, fallback disabled"
            )

    def _check_columns(self, master: Dataset) -> None:
        for column in dict.fromkeys(pair.left for pair in self.config.key_pairs):
            if not master.has_column(column):
                self.logger.warning(
                    f"Master column {column!r} not found in dataset {master.name!r}; "
                    "its values are treated as empty"
                )

    def run(
        self,
        master: Dataset,
        target: Dataset,
        abort_event: Optional[threading.Event] = None
    ) -> JoinResult:
        """
        Execute the join.

        Args:
            master: Driving dataset; every row appears in the output
            target: Lookup dataset
            abort_event: When set, the run stops before the next master row;
                parallel runs only check it between chunks

        Returns:
            JoinResult: Joined rows, unused target rows and statistics

        Raises:
            JoinConfigurationError: Output columns do not exist
            JoinAbortedError: The caller set `abort_event`
        """
        start_time = time.time()

        # Output layout is validated before any matching work
        assembler = JoinAssembler(self.config, master, target)
        self._check_columns(master)

        self.logger.info(
            f"Initializing hierarchical join: {master.name!r} ({len(master)} rows) -> "
            f"{target.name!r} ({len(target)} rows), "
            f"{len(self.config.key_pairs)} key pair(s)"
        )

        self.logger.info("Indexing target data columns for fast retrieval...")
        index = TargetIndex.build(target, self.config.right_columns, self.config.normalization)
        matcher = HierarchicalMatcher(self.config, index)

        self.logger.info(f"Starting hierarchical matching on {len(master)} master rows...")
        if self.worker_processes > 1 and len(master) > 1:
            outcomes = self._cascade_parallel(matcher, master, abort_event)
        else:
            outcomes = self._cascade_sequential(matcher, master, abort_event)

        consumption = ConsumptionSet()
        decisions = [matcher.resolve(outcome, consumption) for outcome in outcomes]

        if self.config.semantic_fallback_enabled:
            fallback = SemanticFallback(
                self.config,
                index,
                self.semantic_matcher or OpenAISemanticMatcher()
            )
            decisions = fallback.apply(decisions, master.records, consumption)

        self.logger.info("Analyzing unmatched target data...")
        result = assembler.assemble(
            decisions,
            consumption.claimed,
            elapsed_seconds=time.time() - start_time
        )
        self._log_statistics(result)
        return result

    def _check_abort(self, abort_event: Optional[threading.Event], processed: int) -> None:
        if abort_event is not None and abort_event.is_set():
            self.logger.warning(f"Join aborted after {processed} master rows")
            raise JoinAbortedError(f"Join aborted after {processed} master rows")

    def _cascade_sequential(
        self,
        matcher: HierarchicalMatcher,
        master: Dataset,
        abort_event: Optional[threading.Event]
    ) -> List[CascadeOutcome]:
        outcomes = []
        total = len(master)
        for position, record in enumerate(master.records):
            self._check_abort(abort_event, position)
            if position > 0 and position % self.progress_interval == 0:
                self.logger.info(f"Processed {position} / {total} rows...")
            outcomes.append(matcher.cascade(position, record))
        return outcomes

    def _cascade_parallel(
        self,
        matcher: HierarchicalMatcher,
        master: Dataset,
        abort_event: Optional[threading.Event]
    ) -> List[CascadeOutcome]:
        """Cascade contiguous chunks in worker processes, keeping master order."""
        records = master.records
        n_chunks = min(self.worker_processes, len(master))
        chunks: List[Sequence[Tuple[int, Dict[str, Any]]]] = [
            [(int(position), records[position]) for position in positions]
            for positions in np.array_split(np.arange(len(master)), n_chunks)
        ]

        outcomes: List[CascadeOutcome] = []
        self._check_abort(abort_event, 0)
        with Pool(processes=n_chunks) as pool:
            for chunk_outcomes in pool.imap(partial(cascade_chunk, matcher), chunks):
                outcomes.extend(chunk_outcomes)
                self._check_abort(abort_event, len(outcomes))
                self.logger.info(f"Processed {len(outcomes)} / {len(master)} rows...")
        return outcomes

    def _log_statistics(self, result: JoinResult) -> None:
        stats = result.statistics
        self.logger.info("Matching Statistics:")
        self.logger.info(f"Total records: {stats.total}")
        self.logger.info(
            f"Matched records: {stats.matched} ({stats.match_rate * 100:.1f}%)"
        )
        self.logger.info(f"Unmatched records: {stats.unmatched}")
        self.logger.info(f"Unused target records: {stats.unused_target}")
        for algorithm, count in sorted(stats.by_algorithm.items()):
            self.logger.info(f"{algorithm}: {count} matches")
        self.logger.info(f"Matching completed in {stats.elapsed_seconds:.2f} seconds")


def fuzzy_join(
    master: Dataset,
    target: Dataset,
    config: JoinConfig,
    semantic_matcher: Optional[SemanticMatcher] = None
) -> JoinResult:
    """Run a single-process join with default settings."""
    return FuzzyJoiner(config, semantic_matcher=semantic_matcher).run(master, target)
