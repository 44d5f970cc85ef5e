"""String similarity scorers used by the matching cascade."""

from abc import ABC, abstractmethod
from functools import lru_cache
from typing import List, NamedTuple, Optional
import Levenshtein

from config.models import JoinConfig, MatchingAlgorithm

EXACT_SCORE = 100.0
PHONETIC_SCORE = 90.0

_PHONETIC_CLASSES = {
    **dict.fromkeys('BFPV', '1'),
    **dict.fromkeys('CGJKQSXZ', '2'),
    **dict.fromkeys('DT', '3'),
    'L': '4',
    **dict.fromkeys('MN', '5'),
    'R': '6',
}
_SILENT = frozenset('AEIOUHWY')


class Verdict(NamedTuple):
    """A scorer's decision that two values match."""
    score: float
    algorithm: MatchingAlgorithm


@lru_cache(maxsize=65536)
def phonetic_code(value: str) -> str:
    """
    Four character sound code of a string.

    The first character is kept; vowels and H, W, Y carry no code; the other
    consonants map onto six digit classes; any other character stands for
    itself. Adjacent repeats are collapsed. Unless the first character is
    silent, its own symbol takes part in the collapse and is then replaced
    by the character itself.

    Args:
        value: Normalized string

    Returns:
        str: Code such as 'R163' or '1234'; '0000' for the empty string
    """
    chars = value.upper()
    if not chars:
        return '0000'

    symbols = [_PHONETIC_CLASSES.get(c, c) for c in chars if c not in _SILENT]
    collapsed = [
        symbol for i, symbol in enumerate(symbols)
        if i == 0 or symbol != symbols[i - 1]
    ]
    if chars[0] not in _SILENT:
        collapsed = collapsed[1:]

    return (chars[0] + ''.join(collapsed))[:4].ljust(4, '0')


@lru_cache(maxsize=65536)
def similarity(a: str, b: str) -> float:
    """
    Edit-distance similarity on a 0-100 scale.

    Uses the full Levenshtein distance (unit cost insert, delete, substitute)
    relative to the longer string. Two empty strings are identical.
    """
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 100.0
    return 100.0 * (max_len - Levenshtein.distance(a, b)) / max_len


class SimilarityScorer(ABC):
    """Base class for a stateless matching strategy."""

    algorithm: MatchingAlgorithm

    @abstractmethod
    def score(self, a: str, b: str) -> Optional[float]:
        """
        Score two normalized values.

        Returns:
            Optional[float]: Score in [0, 100], or None when abstaining
        """
        pass

    def verdict(self, a: str, b: str) -> Optional[Verdict]:
        score = self.score(a, b)
        if score is None:
            return None
        return Verdict(score, self.algorithm)


class ExactScorer(SimilarityScorer):
    algorithm = MatchingAlgorithm.EXACT

    def score(self, a: str, b: str) -> Optional[float]:
        return EXACT_SCORE if a == b else None


class PhoneticScorer(SimilarityScorer):
    algorithm = MatchingAlgorithm.PHONETIC

    def score(self, a: str, b: str) -> Optional[float]:
        return PHONETIC_SCORE if phonetic_code(a) == phonetic_code(b) else None


class LevenshteinScorer(SimilarityScorer):
    """Approximate matching; a verdict needs at least `threshold` similarity."""

    algorithm = MatchingAlgorithm.LEVENSHTEIN

    def __init__(self, threshold: float):
        self.threshold = threshold

    def score(self, a: str, b: str) -> Optional[float]:
        ratio = similarity(a, b)
        return ratio if ratio >= self.threshold else None


class ScorerChain:
    """Enabled scorers consulted in priority order; the first verdict wins."""

    def __init__(self, scorers: List[SimilarityScorer]):
        self.scorers = scorers

    @classmethod
    def from_config(cls, config: JoinConfig) -> 'ScorerChain':
        scorers: List[SimilarityScorer] = []
        if config.is_enabled(MatchingAlgorithm.EXACT):
            scorers.append(ExactScorer())
        if config.is_enabled(MatchingAlgorithm.PHONETIC):
            scorers.append(PhoneticScorer())
        if config.is_enabled(MatchingAlgorithm.LEVENSHTEIN):
            scorers.append(LevenshteinScorer(config.threshold))
        return cls(scorers)

    def __bool__(self) -> bool:
        return bool(self.scorers)

    def evaluate(self, a: str, b: str) -> Optional[Verdict]:
        for scorer in self.scorers:
            verdict = scorer.verdict(a, b)
            if verdict is not None:
                return verdict
        return None
