"""Configuration models for the fuzzy join system."""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple, Union
from enum import Enum

from config.rules import ColumnSelection


class JoinConfigurationError(ValueError):
    """Raised when a join configuration cannot be executed."""


class JoinAbortedError(RuntimeError):
    """Raised when the caller aborts a join between master rows."""


class MatchingAlgorithm(str, Enum):
    """Matching techniques, in the priority order they are consulted."""
    EXACT = "EXACT"
    PHONETIC = "PHONETIC"
    LEVENSHTEIN = "LEVENSHTEIN"
    AI_SEMANTIC = "AI_SEMANTIC"

    @property
    def rank(self) -> int:
        """Lower rank means a stronger kind of match."""
        return _ALGORITHM_RANKS[self]


_ALGORITHM_RANKS = {
    MatchingAlgorithm.EXACT: 0,
    MatchingAlgorithm.PHONETIC: 1,
    MatchingAlgorithm.LEVENSHTEIN: 2,
    MatchingAlgorithm.AI_SEMANTIC: 3,
}


class MatchStatus(str, Enum):
    """Outcome of matching one master row."""
    MATCHED = "matched"
    UNMATCHED = "unmatched"


class Confidence(str, Enum):
    """Confidence label attached to semantic suggestions."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def level(self) -> int:
        return {"High": 3, "Medium": 2, "Low": 1}[self.value]

    @property
    def score(self) -> int:
        """Match score credited to a semantic match of this confidence."""
        return {"High": 90, "Medium": 75, "Low": 60}[self.value]

    @classmethod
    def parse(cls, value: Any) -> "Confidence":
        """Parse a free-form label, falling back to LOW."""
        text = str(value or '').strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.LOW


@dataclass(frozen=True)
class NormalizationConfig:
    """Toggles applied to every compared cell value."""
    lowercase: bool = True
    trim_whitespace: bool = True
    remove_special_chars: bool = True
    remove_numbers: bool = False


@dataclass(frozen=True)
class KeyPair:
    """A master column compared against a target column at one cascade step."""
    left: str
    right: str

    def __post_init__(self):
        if not self.left or not str(self.left).strip():
            raise JoinConfigurationError(
                f"Key pair {self.left!r} -> {self.right!r} is missing a master column"
            )
        if not self.right or not str(self.right).strip():
            raise JoinConfigurationError(
                f"Key pair {self.left!r} -> {self.right!r} is missing a target column"
            )


@dataclass(frozen=True)
class TFIDFConfig:
    """Configuration for the TF-IDF semantic matcher."""
    analyzer: str = 'char_wb'
    ngram_range: Tuple[int, int] = (2, 4)
    min_df: Union[int, float] = 1
    sublinear_tf: bool = True
    high_similarity: float = 0.85
    medium_similarity: float = 0.65
    min_similarity: float = 0.4  # Below this no suggestion is made


ColumnsSpec = Union[None, Sequence[str], ColumnSelection]


@dataclass(frozen=True)
class JoinConfig:
    """Complete, validated description of one join execution."""
    key_pairs: Sequence[KeyPair]
    algorithms: FrozenSet[MatchingAlgorithm] = frozenset({MatchingAlgorithm.LEVENSHTEIN})
    threshold: float = 80.0
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
    master_columns: ColumnsSpec = None  # None selects every column
    target_columns: ColumnsSpec = None
    exclusive_targets: bool = True
    semantic_min_confidence: Confidence = Confidence.MEDIUM

    def __post_init__(self):
        """Coerce loose inputs and reject configurations that cannot run."""
        pairs = tuple(_coerce_key_pair(pair) for pair in (self.key_pairs or ()))
        if not pairs:
            raise JoinConfigurationError("At least one key pair is required")
        object.__setattr__(self, 'key_pairs', pairs)

        object.__setattr__(
            self,
            'algorithms',
            frozenset(_coerce_algorithm(alg) for alg in self.algorithms)
        )

        try:
            threshold = float(self.threshold)
        except (TypeError, ValueError):
            raise JoinConfigurationError(f"Invalid threshold: {self.threshold!r}")
        if not 0 <= threshold <= 100:
            raise JoinConfigurationError(
                f"Threshold must be between 0 and 100, got {threshold}"
            )
        object.__setattr__(self, 'threshold', threshold)

        object.__setattr__(
            self,
            'semantic_min_confidence',
            Confidence.parse(self.semantic_min_confidence)
            if not isinstance(self.semantic_min_confidence, Confidence)
            else self.semantic_min_confidence
        )
        object.__setattr__(self, 'master_columns', _coerce_columns(self.master_columns))
        object.__setattr__(self, 'target_columns', _coerce_columns(self.target_columns))

    def is_enabled(self, *algorithms: MatchingAlgorithm) -> bool:
        """Whether any of the given algorithms is enabled."""
        return any(alg in self.algorithms for alg in algorithms)

    @property
    def right_columns(self) -> List[str]:
        """Distinct target columns referenced by the key pairs, in order."""
        return list(dict.fromkeys(pair.right for pair in self.key_pairs))

    @property
    def semantic_fallback_enabled(self) -> bool:
        return (
            MatchingAlgorithm.AI_SEMANTIC in self.algorithms
            and len(self.key_pairs) == 1
        )


def _coerce_key_pair(pair: Any) -> KeyPair:
    if isinstance(pair, KeyPair):
        return pair
    if isinstance(pair, dict):
        return KeyPair(pair.get('left', ''), pair.get('right', ''))
    try:
        left, right = pair
    except (TypeError, ValueError):
        raise JoinConfigurationError(f"Invalid key pair: {pair!r}")
    return KeyPair(left, right)


def _coerce_algorithm(value: Any) -> MatchingAlgorithm:
    if isinstance(value, MatchingAlgorithm):
        return value
    try:
        return MatchingAlgorithm(str(value).upper())
    except ValueError:
        raise JoinConfigurationError(f"Unknown matching algorithm: {value!r}")


def _coerce_columns(value: ColumnsSpec) -> Optional[ColumnSelection]:
    if value is None or isinstance(value, ColumnSelection):
        return value
    if isinstance(value, str):
        return ColumnSelection.of([value])
    return ColumnSelection.of(list(value))


@dataclass(frozen=True)
class StepResult:
    """Score bookkeeping for one cascade step of one master row."""
    key_pair: KeyPair
    score: float
    index_hit: bool
    candidates: int


@dataclass(frozen=True)
class MatchDecision:
    """Resolved outcome for one master row."""
    master_position: int
    target_position: Optional[int] = None
    score: int = 0
    algorithm: Optional[MatchingAlgorithm] = None
    steps: Tuple[StepResult, ...] = ()

    @property
    def is_matched(self) -> bool:
        return self.target_position is not None

    @property
    def status(self) -> MatchStatus:
        return MatchStatus.MATCHED if self.is_matched else MatchStatus.UNMATCHED


@dataclass(frozen=True)
class MatchResultRow:
    """One output record per master row."""
    master_id: Any
    values: Dict[str, Any]
    status: MatchStatus
    score: int
    algorithm: Optional[MatchingAlgorithm] = None
    target_id: Any = None


@dataclass(frozen=True)
class SemanticSuggestion:
    """Best reference value suggested for one query value."""
    query: str
    match: Optional[str]
    confidence: Confidence = Confidence.LOW


@dataclass
class JoinStatistics:
    """Aggregate counts for one join execution."""
    total: int = 0
    matched: int = 0
    unmatched: int = 0
    unused_target: int = 0
    by_algorithm: Dict[str, int] = field(default_factory=dict)
    elapsed_seconds: float = 0.0

    @property
    def match_rate(self) -> float:
        return self.matched / self.total if self.total else 0.0
