"""Service layer."""
from .aggregation import AggregationService

__all__ = ["AggregationService"]
