"""TF-IDF analysis backing the offline semantic matcher."""

from typing import List, Optional, Sequence
import logging
import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from scipy.sparse import csr_matrix
import xxhash

from config.models import Confidence, SemanticSuggestion, TFIDFConfig
from core.semantic import SemanticMatcher

logger = logging.getLogger(__name__)


class TfidfSemanticMatcher(SemanticMatcher):
    """
    Suggests reference values by character n-gram TF-IDF cosine similarity.

    Needs no credential or network; useful as a local stand-in for a
    language-model service. The fitted vocabulary is reused while the
    reference values stay the same.
    """

    def __init__(self, config: Optional[TFIDFConfig] = None):
        """
        Initialize the matcher.

        Args:
            config: TF-IDF configuration
        """
        self.config = config or TFIDFConfig()
        self.vectorizer = self._new_vectorizer()
        self.references: List[str] = []
        self.feature_matrix: Optional[csr_matrix] = None
        self.texts_hash: Optional[str] = None
        self.fitted = False

    def _new_vectorizer(self) -> TfidfVectorizer:
        return TfidfVectorizer(
            analyzer=self.config.analyzer,
            ngram_range=self.config.ngram_range,
            min_df=self.config.min_df,
            lowercase=True,
            use_idf=True,
            smooth_idf=True,
            sublinear_tf=self.config.sublinear_tf
        )

    def _compute_texts_hash(self, texts: Sequence[str]) -> str:
        """Compute hash of input texts to detect changes."""
        return xxhash.xxh64('\x1f'.join(texts).encode('utf-8')).hexdigest()

    def fit(self, references: Sequence[str]) -> None:
        """
        Fit the vectorizer to the reference values.

        Args:
            references: Distinct reference values
        """
        new_hash = self._compute_texts_hash(references)
        if self.fitted and new_hash == self.texts_hash:
            return

        self.vectorizer = self._new_vectorizer()
        self.feature_matrix = self.vectorizer.fit_transform(references)
        self.references = list(references)
        self.texts_hash = new_hash
        self.fitted = True
        logger.debug(
            f"TF-IDF fitted on {len(references)} references, "
            f"{len(self.vectorizer.vocabulary_)} features"
        )

    def _confidence(self, score: float) -> Optional[Confidence]:
        if score >= self.config.high_similarity:
            return Confidence.HIGH
        if score >= self.config.medium_similarity:
            return Confidence.MEDIUM
        if score >= self.config.min_similarity:
            return Confidence.LOW
        return None

    def find_matches(
        self,
        references: Sequence[str],
        queries: Sequence[str]
    ) -> List[SemanticSuggestion]:
        unique_refs = list(dict.fromkeys(r for r in references if r))
        unique_queries = list(dict.fromkeys(q for q in queries if q))
        if not unique_refs or not unique_queries:
            return []

        try:
            self.fit(unique_refs)
            query_matrix = self.vectorizer.transform(unique_queries)
            # Rows are L2-normalized, so the dot product is the cosine
            similarities = (query_matrix @ self.feature_matrix.T).toarray()
        except Exception as e:
            logger.warning(f"Error in TF-IDF semantic matching: {e}")
            self.fitted = False
            return []

        suggestions = []
        for query, row in zip(unique_queries, similarities):
            best = int(np.argmax(row))
            confidence = self._confidence(float(row[best]))
            suggestions.append(SemanticSuggestion(
                query=query,
                match=self.references[best] if confidence else None,
                confidence=confidence or Confidence.LOW
            ))
        return suggestions
