"""Segment-level analyses over classified customers.

Two independent aggregations, both grouped by segment:

1. Monetary view - customer count, total and average monetary value
2. Sales view - order-line quantity and sales amount, joined back to
   each line's customer segment
"""

from .segment_summary import (
    SegmentAggregate,
    SegmentMonetaryAggregate,
    SegmentSalesAggregate,
    aggregate_monetary_by_segment,
    aggregate_sales_by_segment,
    customers_in_recency_range,
    customers_in_segment,
    summarize_segments,
)

__all__ = [
    "SegmentAggregate",
    "SegmentMonetaryAggregate",
    "SegmentSalesAggregate",
    "aggregate_monetary_by_segment",
    "aggregate_sales_by_segment",
    "customers_in_recency_range",
    "customers_in_segment",
    "summarize_segments",
]
