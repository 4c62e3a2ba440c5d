"""
Synthetic Data Module
"""
from .generators import CompositionGenerator, DataGenerator, ProductGenerator, SalesGenerator

__all__ = ["CompositionGenerator", "DataGenerator", "ProductGenerator", "SalesGenerator"]
