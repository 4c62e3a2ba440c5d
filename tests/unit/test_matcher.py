"""
Unit Tests - Fuzzy Matcher
"""
import pytest

from reconciler.models import ProductRecord, placeholder_id
from reconciler.transformation.matcher import FuzzyMatcher, MatchStage, match


def records(*names):
    return [ProductRecord(id=str(i), name=name) for i, name in enumerate(names, start=1)]


class TestMatchCascade:
    """Tests for the matching stages and their order"""

    def test_exact_match_is_case_insensitive_and_trimmed(self):
        """Test normalized equality"""
        candidates = records("Verre Village")

        result = FuzzyMatcher(candidates).match_with_stage("  VERRE village ")

        assert result.record.name == "Verre Village"
        assert result.stage == MatchStage.EXACT

    def test_exact_stage_runs_before_containment(self):
        """Test that a later equal candidate beats an earlier containing one"""
        candidates = records("Blue Widget", "Widget")

        result = FuzzyMatcher(candidates).match_with_stage("widget")

        assert result.record.name == "Widget"
        assert result.stage == MatchStage.EXACT

    def test_candidate_contains_query(self):
        """Test substring match in candidate name"""
        candidates = records("Seau à champagne inox", "Verre")

        result = FuzzyMatcher(candidates).match_with_stage("SEAU À CHAMPAGNE")

        assert result.record.id == "1"
        assert result.stage == MatchStage.CANDIDATE_CONTAINS

    def test_query_contains_candidate(self):
        """Test candidate name found inside a longer query"""
        candidates = records("Vasque Inox")

        result = FuzzyMatcher(candidates).match_with_stage("Grande vasque inox 40cm")

        assert result.record.name == "Vasque Inox"
        assert result.stage == MatchStage.QUERY_CONTAINS

    def test_token_overlap(self):
        """Test overlap of at least two significant tokens"""
        candidates = records("BK VERRE VILLAGE TROPEZ")

        result = FuzzyMatcher(candidates).match_with_stage("verre tropez gravé")

        assert result.record.id == "1"
        assert result.stage == MatchStage.TOKEN_OVERLAP

    def test_token_overlap_ignores_short_tokens(self):
        """Test that tokens of two characters or less never count"""
        candidates = records("BK DE VERRE")

        assert FuzzyMatcher(candidates).match("bk de coupe") is None

    def test_single_token_query_skips_overlap(self):
        """Test that a query with one usable token cannot overlap"""
        candidates = records("Coupe Cristal Gravée")

        assert FuzzyMatcher(candidates).match("cristallerie") is None

    def test_first_candidate_wins_within_stage(self):
        """Test candidate order decides ties"""
        candidates = records("Verre rouge", "Verre bleu")

        assert match("verre", candidates).name == "Verre rouge"
        assert match("verre", list(reversed(candidates))).name == "Verre bleu"


class TestMatchMisses:
    """Tests for empty inputs and misses"""

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_empty_query(self, query):
        """Test that an empty query matches nothing"""
        assert match(query, records("Anything")) is None

    def test_empty_candidate_names_are_ignored(self):
        """Test that nameless candidates do not swallow every query"""
        candidates = [ProductRecord(id="1", name=""), ProductRecord(id="2", name="Seau")]

        matcher = FuzzyMatcher(candidates)

        assert len(matcher) == 1
        assert matcher.match("seau").id == "2"

    def test_no_match(self):
        """Test a name sharing nothing with the catalog"""
        assert match("Parasol", records("Verre", "Seau")) is None

    def test_placeholder_id(self):
        """Test identifier synthesized on a miss"""
        assert placeholder_id("  Verre   à pied gravé ") == "VERRE_À_PIED_GRAVÉ"
