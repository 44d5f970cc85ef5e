"""Semantic matching fallback for rows the cascade leaves unmatched."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence
import json
import logging
import os

from openai import OpenAI

from config.models import (
    Confidence,
    JoinConfig,
    MatchDecision,
    MatchingAlgorithm,
    SemanticSuggestion
)
from core.indexer import TargetIndex
from core.matcher import ConsumptionSet
from core.preprocessor import KeyNormalizer

logger = logging.getLogger(__name__)


class SemanticMatcher(ABC):
    """
    Best-effort batch matcher.

    Implementations must never raise: any failure degrades to an empty list,
    which leaves every queried row unmatched.
    """

    @abstractmethod
    def find_matches(
        self,
        references: Sequence[str],
        queries: Sequence[str]
    ) -> List[SemanticSuggestion]:
        """
        Suggest, for each query, the best corresponding reference value.

        Args:
            references: Candidate values (from the target dataset)
            queries: Values still looking for a match (from the master dataset)

        Returns:
            List[SemanticSuggestion]: At most one suggestion per query
        """
        pass


class NullSemanticMatcher(SemanticMatcher):
    """Matcher that never suggests anything."""

    def find_matches(self, references, queries) -> List[SemanticSuggestion]:
        return []


_PROMPT = """You are an expert data reconciliation engine.

Task: Match items from the "Target List" to the best corresponding item in the "Reference List".
The match might be exact, a short form, an abbreviation, a typo, or a semantic equivalent
(e.g., "IBM" matches "International Business Machines").

Reference List:
{references}

Target List:
{queries}

Respond ONLY with a JSON object of the form {{"matches": [...]}}. Each element must have:
- "target": the value from the Target List.
- "match": the best match from the Reference List, or null if no reasonable match exists.
- "confidence": "High", "Medium", or "Low" based on your certainty."""


class OpenAISemanticMatcher(SemanticMatcher):
    """Semantic matcher backed by an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = 'gpt-4o-mini',
        base_url: Optional[str] = None,
        max_references: int = 50,
        batch_size: int = 20,
        timeout: float = 30.0,
        client: Any = None
    ):
        """
        Initialize the matcher.

        Args:
            api_key: Service credential; defaults to OPENAI_API_KEY
            model: Chat model name
            base_url: Optional endpoint of a compatible server
            max_references: Distinct reference values sent per request
            batch_size: Query values sent per request
            timeout: Request timeout in seconds
            client: Pre-built client, mainly for tests
        """
        self.api_key = api_key if api_key is not None else os.environ.get('OPENAI_API_KEY', '')
        self.model = model
        self.base_url = base_url
        self.max_references = max_references
        self.batch_size = max(1, batch_size)
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout
            )
        return self._client

    def find_matches(
        self,
        references: Sequence[str],
        queries: Sequence[str]
    ) -> List[SemanticSuggestion]:
        if self._client is None and not self.api_key:
            logger.error("Semantic matching skipped: API key not found")
            return []

        unique_refs = list(dict.fromkeys(r for r in references if r))[:self.max_references]
        unique_queries = list(dict.fromkeys(q for q in queries if q))
        if not unique_refs or not unique_queries:
            return []

        suggestions: List[SemanticSuggestion] = []
        try:
            client = self._get_client()
            for start in range(0, len(unique_queries), self.batch_size):
                batch = unique_queries[start:start + self.batch_size]
                suggestions.extend(self._match_batch(client, unique_refs, batch))
        except Exception as e:
            logger.exception(f"Semantic matching service failed: {e}")
            return []

        return suggestions

    def _match_batch(
        self,
        client: Any,
        references: List[str],
        queries: List[str]
    ) -> List[SemanticSuggestion]:
        response = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": "Return JSON only."},
                {"role": "user", "content": _PROMPT.format(
                    references=json.dumps(references),
                    queries=json.dumps(queries)
                )},
            ],
            temperature=0,
            response_format={"type": "json_object"},
        )
        text = (response.choices[0].message.content or '').strip()
        if not text:
            logger.warning("Semantic matching service returned empty content")
            return []
        return parse_suggestions(json.loads(text), references, queries)


def parse_suggestions(
    payload: Any,
    references: Sequence[str],
    queries: Sequence[str]
) -> List[SemanticSuggestion]:
    """
    Validate a decoded service response.

    Accepts either a list of items or an object holding one under "matches".
    Items for unknown queries are dropped; matches that are not reference
    values become None.
    """
    if isinstance(payload, dict):
        payload = payload.get('matches', [])
    if not isinstance(payload, list):
        raise ValueError(f"Unexpected semantic response: {type(payload).__name__}")

    known_refs = set(references)
    known_queries = set(queries)
    suggestions = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        query = item.get('target')
        if query not in known_queries:
            continue
        match = item.get('match')
        if match not in known_refs:
            match = None
        suggestions.append(SemanticSuggestion(
            query=query,
            match=match,
            confidence=Confidence.parse(item.get('confidence'))
        ))
    return suggestions


class SemanticFallback:
    """Resolves unmatched rows through a SemanticMatcher, after the cascade."""

    def __init__(
        self,
        config: JoinConfig,
        index: TargetIndex,
        matcher: SemanticMatcher
    ):
        self.config = config
        self.index = index
        self.matcher = matcher
        self.normalizer = KeyNormalizer(config.normalization)

    def apply(
        self,
        decisions: List[MatchDecision],
        master_records: Sequence[Dict[str, Any]],
        consumption: ConsumptionSet
    ) -> List[MatchDecision]:
        """
        Replace unmatched decisions with accepted semantic matches.

        Args:
            decisions: One decision per master row, in master order
            master_records: Master rows, in master order
            consumption: Claims made by the cascade pass

        Returns:
            List[MatchDecision]: Updated decisions, same length and order
        """
        key_pair = self.config.key_pairs[0]
        pending = {
            d.master_position: self.normalizer.process(
                master_records[d.master_position].get(key_pair.left)
            )
            for d in decisions if not d.is_matched
        }
        queries = list(dict.fromkeys(v for v in pending.values() if v))
        if not queries:
            return decisions

        references = self.index.distinct_values(key_pair.right)
        logger.info(
            f"Performing semantic analysis on {len(queries)} unmatched values "
            f"against {len(references)} reference values..."
        )
        try:
            found = self.matcher.find_matches(references, queries)
        except Exception as e:
            logger.exception(f"Semantic matcher failed, rows stay unmatched: {e}")
            found = []
        suggestions = {s.query: s for s in found}

        resolved = list(decisions)
        accepted = 0
        for i, decision in enumerate(decisions):
            value = pending.get(decision.master_position)
            suggestion = suggestions.get(value) if value else None
            if not self._accepts(suggestion):
                continue

            bucket = self.index.lookup(key_pair.right, self.normalizer.process(suggestion.match))
            winner = None
            for position in bucket:
                if consumption.claim(position) or not self.config.exclusive_targets:
                    winner = position
                    break
            if winner is None:
                continue

            resolved[i] = MatchDecision(
                master_position=decision.master_position,
                target_position=winner,
                score=suggestion.confidence.score,
                algorithm=MatchingAlgorithm.AI_SEMANTIC,
                steps=decision.steps
            )
            accepted += 1

        logger.info(f"Semantic analysis matched {accepted} of {len(pending)} rows")
        return resolved

    def _accepts(self, suggestion: Optional[SemanticSuggestion]) -> bool:
        return (
            suggestion is not None
            and suggestion.match is not None
            and suggestion.confidence.level >= self.config.semantic_min_confidence.level
        )
