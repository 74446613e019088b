"""Segment-level aggregation of classified customers.

Answers questions like:
- How much revenue does each segment hold, and how much per customer?
- Which segments order the most units?

Two independent views are produced, both grouped by segment:

1. Monetary view over classified customers (sum and average of monetary)
2. Sales view over the original order lines joined back to each line's
   customer segment (sum of quantity and sales amount)

Neither view mutates its inputs or the other view.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence, TypeVar

from rfm_segmentation.foundation.customer_summary import CustomerSummary
from rfm_segmentation.foundation.order_lines import OrderLine
from rfm_segmentation.foundation.rfm import RFMScore
from rfm_segmentation.foundation.segments import ClassifiedCustomer, Segment

# Averages are reported to the cent
AVERAGE_PRECISION = Decimal("0.01")

SALES_SORT_KEYS = ("total_sales_amount", "total_quantity")

RecencyRecord = TypeVar("RecencyRecord", CustomerSummary, RFMScore, ClassifiedCustomer)


@dataclass(frozen=True)
class SegmentMonetaryAggregate:
    """Monetary totals for one segment.

    Attributes
    ----------
    segment:
        Segment label
    customer_count:
        Number of customers in the segment
    total_monetary:
        Sum of customer monetary values
    average_monetary:
        Mean customer monetary value, rounded to 0.01
    """

    segment: Segment
    customer_count: int
    total_monetary: Decimal
    average_monetary: Decimal

    def __post_init__(self) -> None:
        if self.customer_count <= 0:
            raise ValueError(
                f"Customer count must be positive: {self.customer_count} (segment={self.segment})"
            )


@dataclass(frozen=True)
class SegmentSalesAggregate:
    """Order-line totals for one segment.

    ``segment`` is None for lines whose customer has no classification.
    """

    segment: Optional[Segment]
    order_line_count: int
    total_quantity: int
    total_sales_amount: Decimal


@dataclass(frozen=True)
class SegmentAggregate:
    """Combined monetary and sales totals for one segment."""

    segment: Optional[Segment]
    customer_count: int
    total_monetary: Decimal
    average_monetary: Decimal
    order_line_count: int
    total_quantity: int
    total_sales_amount: Decimal


def _segment_label(segment: Optional[Segment]) -> str:
    return "" if segment is None else segment.value


def aggregate_monetary_by_segment(
    classified: Sequence[ClassifiedCustomer],
) -> list[SegmentMonetaryAggregate]:
    """Sum and average customer monetary value per segment.

    Parameters
    ----------
    classified:
        Classified customers for the whole batch

    Returns
    -------
    list[SegmentMonetaryAggregate]
        One entry per segment present, ordered by total_monetary
        descending (ties by segment label)

    Examples
    --------
    >>> from decimal import Decimal
    >>> customers = [
    ...     ClassifiedCustomer("C1", 0, 5, Decimal("5000"), 5, 5, 5, 15, 555, Segment.CHAMPIONS),
    ...     ClassifiedCustomer("C2", 1, 4, Decimal("3001"), 5, 5, 4, 14, 554, Segment.CHAMPIONS),
    ... ]
    >>> aggregates = aggregate_monetary_by_segment(customers)
    >>> aggregates[0].total_monetary
    Decimal('8001')
    >>> aggregates[0].average_monetary
    Decimal('4000.50')
    """
    buckets: dict[Segment, dict[str, object]] = {}
    for customer in classified:
        bucket = buckets.setdefault(
            customer.segment, {"customer_count": 0, "total_monetary": Decimal("0")}
        )
        bucket["customer_count"] += 1
        bucket["total_monetary"] += customer.monetary

    aggregates: list[SegmentMonetaryAggregate] = []
    for segment, payload in buckets.items():
        customer_count = payload["customer_count"]
        total_monetary = payload["total_monetary"]
        aggregates.append(
            SegmentMonetaryAggregate(
                segment=segment,
                customer_count=customer_count,
                total_monetary=total_monetary,
                average_monetary=(total_monetary / customer_count).quantize(
                    AVERAGE_PRECISION, rounding=ROUND_HALF_UP
                ),
            )
        )

    aggregates.sort(key=lambda a: _segment_label(a.segment))
    aggregates.sort(key=lambda a: a.total_monetary, reverse=True)
    return aggregates


def aggregate_sales_by_segment(
    order_lines: Sequence[OrderLine],
    classified: Sequence[ClassifiedCustomer],
    sort_by: str = "total_sales_amount",
) -> list[SegmentSalesAggregate]:
    """Sum quantity and sales amount per segment over the raw order lines.

    Each line is joined to its customer's segment (left join): lines whose
    customer is missing from ``classified`` are grouped under a ``None``
    segment rather than dropped.

    Parameters
    ----------
    order_lines:
        The same order lines the classification was computed from
    classified:
        Classified customers
    sort_by:
        Metric to order by, descending: ``"total_sales_amount"`` (default)
        or ``"total_quantity"``. Ties are ordered by segment label.

    Returns
    -------
    list[SegmentSalesAggregate]
        One entry per segment present among the order lines
    """
    if sort_by not in SALES_SORT_KEYS:
        raise ValueError(f"sort_by must be one of {SALES_SORT_KEYS}, got {sort_by!r}")

    segment_by_customer = {c.customer_id: c.segment for c in classified}

    buckets: dict[Optional[Segment], dict[str, object]] = {}
    for line in order_lines:
        segment = segment_by_customer.get(line.customer_id)
        bucket = buckets.setdefault(
            segment,
            {
                "order_line_count": 0,
                "total_quantity": 0,
                "total_sales_amount": Decimal("0"),
            },
        )
        bucket["order_line_count"] += 1
        bucket["total_quantity"] += line.quantity
        bucket["total_sales_amount"] += line.sales_amount

    aggregates = [
        SegmentSalesAggregate(
            segment=segment,
            order_line_count=payload["order_line_count"],
            total_quantity=payload["total_quantity"],
            total_sales_amount=payload["total_sales_amount"],
        )
        for segment, payload in buckets.items()
    ]

    aggregates.sort(key=lambda a: _segment_label(a.segment))
    aggregates.sort(key=lambda a: getattr(a, sort_by), reverse=True)
    return aggregates


def summarize_segments(
    order_lines: Sequence[OrderLine],
    classified: Sequence[ClassifiedCustomer],
) -> list[SegmentAggregate]:
    """Merge the monetary and sales views into one row per segment.

    Ordered by total_monetary descending. A ``None`` segment (unclassified
    order lines) carries zero customers and zero monetary.
    """
    monetary = {a.segment: a for a in aggregate_monetary_by_segment(classified)}
    sales = {a.segment: a for a in aggregate_sales_by_segment(order_lines, classified)}

    combined: list[SegmentAggregate] = []
    for segment in list(monetary) + [s for s in sales if s not in monetary]:
        monetary_row = monetary.get(segment)
        sales_row = sales.get(segment)
        combined.append(
            SegmentAggregate(
                segment=segment,
                customer_count=monetary_row.customer_count if monetary_row else 0,
                total_monetary=monetary_row.total_monetary if monetary_row else Decimal("0"),
                average_monetary=(
                    monetary_row.average_monetary if monetary_row else Decimal("0")
                ),
                order_line_count=sales_row.order_line_count if sales_row else 0,
                total_quantity=sales_row.total_quantity if sales_row else 0,
                total_sales_amount=(
                    sales_row.total_sales_amount if sales_row else Decimal("0")
                ),
            )
        )
    return combined


def customers_in_segment(
    classified: Sequence[ClassifiedCustomer], segment: Segment
) -> list[ClassifiedCustomer]:
    """Return the customers classified into ``segment``."""
    return [c for c in classified if c.segment is segment]


def customers_in_recency_range(
    customers: Sequence[RecencyRecord],
    min_days: int,
    max_days: int,
) -> list[RecencyRecord]:
    """Return customers whose recency_days lies in ``[min_days, max_days]``.

    Accepts customer summaries, scores or classified customers and
    returns records of the same type.
    """
    if min_days > max_days:
        raise ValueError(f"min_days ({min_days}) cannot exceed max_days ({max_days})")
    return [c for c in customers if min_days <= c.recency_days <= max_days]
