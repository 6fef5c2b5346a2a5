"""
Candidate Scorer - Plausibility scoring for product-like objects
"""

import logging
from typing import Any, Dict, List, Optional

from .field_canonicalizer import FieldCanonicalizer, find_inner

logger = logging.getLogger(__name__)


class CandidateScorer:
    """
    Scores how product-like an untyped object is

    Weights are fixed: name and price are worth 2, every supporting signal 1.
    Arrays are judged by their mean score over a bounded sample. One well-formed
    outlier does not validate an array of ads or category tiles.
    """

    WEIGHTS = {
        'name': 2,
        'price': 2,
        'original_price': 1,
        'image_url': 1,
        'availability': 1,
    }
    IDENTIFIER_WEIGHT = 1

    DEFAULT_SAMPLE_SIZE = 25
    DEFAULT_THRESHOLD = 3

    def __init__(
        self,
        canonicalizer: Optional[FieldCanonicalizer] = None,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        threshold: float = DEFAULT_THRESHOLD
    ):
        self.canonicalizer = canonicalizer or FieldCanonicalizer()
        self.sample_size = sample_size
        self.threshold = threshold

    def score(self, candidate: Any) -> int:
        """Score a single object (inner wrapped object consulted first)"""
        if not isinstance(candidate, dict):
            return 0

        bases = (find_inner(candidate), candidate)
        total = 0
        for field, weight in self.WEIGHTS.items():
            if self.canonicalizer.extract_layered(bases, field) is not None:
                total += weight

        if (self.canonicalizer.extract_layered(bases, 'product_id') is not None or
                self.canonicalizer.extract_layered(bases, 'sku_id') is not None):
            total += self.IDENTIFIER_WEIGHT

        return total

    def has_price_signal(self, candidate: Any) -> bool:
        if not isinstance(candidate, dict):
            return False
        bases = (find_inner(candidate), candidate)
        return (self.canonicalizer.extract_layered(bases, 'price') is not None or
                self.canonicalizer.extract_layered(bases, 'original_price') is not None)

    def mean_score(self, items: List[Dict[str, Any]]) -> float:
        sample = items[:self.sample_size]
        if not sample:
            return 0.0
        return sum(self.score(item) for item in sample) / len(sample)

    def is_candidate(self, candidate: Any) -> bool:
        return self.score(candidate) >= self.threshold

    def is_product_array(self, items: List[Dict[str, Any]]) -> bool:
        return self.mean_score(items) >= self.threshold
