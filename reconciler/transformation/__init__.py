"""
Reconciliation Engine
"""
from .classifier import ClassificationRule, SaleClassifier, classify
from .compositions import composition_fingerprint, describe_composition
from .decomposer import DecompositionResult, SaleDecomposer, component_movements, decompose
from .matcher import FuzzyMatcher, MatchStage, match
from .merge import DuplicateReport, MergeResult, find_duplicates, merge_sales
from .pipeline import DecompositionReport, ReconciliationPipeline, UnificationResult
from .statistics import SalesStatistics, SalesStatisticsCalculator, sales_statistics
from .unifier import CatalogUnifier, unify

__all__ = [
    "CatalogUnifier",
    "ClassificationRule",
    "DecompositionReport",
    "DecompositionResult",
    "DuplicateReport",
    "FuzzyMatcher",
    "MatchStage",
    "MergeResult",
    "ReconciliationPipeline",
    "SaleClassifier",
    "SaleDecomposer",
    "SalesStatistics",
    "SalesStatisticsCalculator",
    "UnificationResult",
    "classify",
    "component_movements",
    "composition_fingerprint",
    "decompose",
    "describe_composition",
    "find_duplicates",
    "match",
    "merge_sales",
    "sales_statistics",
    "unify",
]
