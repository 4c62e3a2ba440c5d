"""
Fuzzy Name Matcher

Resolves a free-text component name to a catalog product.
Cascade, first hit wins (case-insensitive, trimmed):
1. Exact equality of normalized names
2. Candidate name contains the query
3. Query contains the candidate name
4. Token overlap on tokens longer than two characters

Ties are resolved by candidate order, so callers must pass candidates in a
stable order to get reproducible results.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import structlog

from reconciler.config import get_settings
from reconciler.models import ProductRecord

logger = structlog.get_logger(__name__)


class MatchStage(str, Enum):
    """Cascade stage that produced a match"""
    EXACT = "exact"
    CANDIDATE_CONTAINS = "candidate_contains"
    QUERY_CONTAINS = "query_contains"
    TOKEN_OVERLAP = "token_overlap"


@dataclass
class MatchResult:
    """Matched record and the stage that found it"""
    record: ProductRecord
    stage: MatchStage


def normalize_name(name: str) -> str:
    return name.strip().lower()


class FuzzyMatcher:
    """
    Name matcher over a fixed candidate list.

    Candidate names and tokens are normalized once, so one matcher can
    resolve every component of a unification run.

    Example:
        matcher = FuzzyMatcher(simple_products)
        record = matcher.match("verre village")
    """

    def __init__(
        self,
        candidates: Sequence[ProductRecord],
        min_token_length: Optional[int] = None,
        min_shared_tokens: Optional[int] = None,
    ):
        engine = get_settings().engine
        self.min_token_length = min_token_length or engine.min_token_length
        self.min_shared_tokens = min_shared_tokens or engine.min_shared_tokens

        # Empty names would "contain" every query
        self._candidates = [
            (record, normalize_name(record.name))
            for record in candidates
            if normalize_name(record.name)
        ]
        self._tokens = [self._tokenize(name) for _, name in self._candidates]

    def __len__(self) -> int:
        return len(self._candidates)

    def _tokenize(self, normalized: str) -> List[str]:
        return [t for t in normalized.split() if len(t) >= self.min_token_length]

    @staticmethod
    def _tokens_related(a: str, b: str) -> bool:
        return a == b or a in b or b in a

    def _shared_tokens(self, query_tokens: List[str], candidate_tokens: List[str]) -> int:
        return sum(
            1 for q in query_tokens
            if any(self._tokens_related(q, c) for c in candidate_tokens)
        )

    def match_with_stage(self, name: str) -> Optional[MatchResult]:
        """Run the cascade and report which stage matched"""
        query = normalize_name(name or "")
        if not query:
            return None

        for record, candidate in self._candidates:
            if candidate == query:
                return MatchResult(record, MatchStage.EXACT)

        for record, candidate in self._candidates:
            if query in candidate:
                return MatchResult(record, MatchStage.CANDIDATE_CONTAINS)

        for record, candidate in self._candidates:
            if candidate in query:
                return MatchResult(record, MatchStage.QUERY_CONTAINS)

        query_tokens = self._tokenize(query)
        if len(query_tokens) >= self.min_shared_tokens:
            for (record, _), candidate_tokens in zip(self._candidates, self._tokens):
                if self._shared_tokens(query_tokens, candidate_tokens) >= self.min_shared_tokens:
                    return MatchResult(record, MatchStage.TOKEN_OVERLAP)

        return None

    def match(self, name: str) -> Optional[ProductRecord]:
        """Resolve a name to a candidate, None when every stage fails"""
        result = self.match_with_stage(name)
        return result.record if result else None


def match(name: str, candidates: Sequence[ProductRecord]) -> Optional[ProductRecord]:
    """
    Convenience function to resolve one name against a candidate list.

    Args:
        name: Free-text component name
        candidates: Catalog records in a stable order

    Returns:
        The first matching record, or None
    """
    return FuzzyMatcher(candidates).match(name)
