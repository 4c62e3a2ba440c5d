"""
Catalog Reconciliation Platform

Unifies a master product catalog with user-authored compositions and
decomposes recorded sales of composite products into component movements.
"""

__version__ = "1.0.0"
