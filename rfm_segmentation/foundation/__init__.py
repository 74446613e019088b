"""Pipeline stages for RFM segmentation.

This package exposes the order-line normalizer, per-customer aggregation
and recency derivation, quintile scoring, and the segment classifier.
"""

from .customer_summary import (
    CustomerAggregate,
    CustomerSummary,
    aggregate_customers,
    dataset_max_order_date,
    derive_recency,
    summarize_customers,
)
from .order_lines import OrderLine, ParseError, normalize_order_lines, parse_order_date
from .rfm import RFMScore, calculate_rfm_scores, quintile_bins
from .segments import (
    CODE_TO_SEGMENT,
    ClassifiedCustomer,
    Segment,
    classify_code,
    classify_customers,
    combination_code,
)

__all__ = [
    "CustomerAggregate",
    "CustomerSummary",
    "aggregate_customers",
    "dataset_max_order_date",
    "derive_recency",
    "summarize_customers",
    "OrderLine",
    "ParseError",
    "normalize_order_lines",
    "parse_order_date",
    "RFMScore",
    "calculate_rfm_scores",
    "quintile_bins",
    "CODE_TO_SEGMENT",
    "ClassifiedCustomer",
    "Segment",
    "classify_code",
    "classify_customers",
    "combination_code",
]
