"""
Fuzzy Join
==========

Reconciles a master dataset against a target dataset by matching rows on one
or more key-column pairs, cascading through exact, phonetic and approximate
string matching, with an optional semantic fallback.

Key Features:
- Hierarchical multi-key cascade; later key pairs refine earlier survivors
- Configurable normalization of every compared value
- Index lookups for exact keys, full scans for fuzzy ones
- At-most-once claiming of target rows, deterministic in master order
- Joined output plus unmatched master and unused target rows
- Optional parallel cascade across worker processes
"""

from core.joiner import FuzzyJoiner, fuzzy_join
from core.assembler import JoinResult
from core.dataset import ColumnDef, ColumnType, Dataset
from core.analyzer import TfidfSemanticMatcher
from core.semantic import NullSemanticMatcher, OpenAISemanticMatcher, SemanticMatcher

from config.models import (
    JoinConfig,
    KeyPair,
    MatchingAlgorithm,
    NormalizationConfig,
    JoinConfigurationError,
    JoinAbortedError
)
from config.rules import ColumnSelection, PatternRule

__version__ = "1.0.0"
