"""Per-customer aggregation and recency derivation.

Groups normalized order lines by customer and derives the three raw RFM
inputs:

- Recency: days from the customer's last order to the latest order date
  seen anywhere in the dataset
- Frequency: number of distinct orders
- Monetary: total sales, rounded to a whole unit
"""

from __future__ import annotations

import logging
import multiprocessing
import os
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from rfm_segmentation.foundation.order_lines import OrderLine

logger = logging.getLogger(__name__)

# Monetary totals are rounded half away from zero to whole units
MONETARY_PRECISION = Decimal("1")


@dataclass(frozen=True)
class CustomerAggregate:
    """Order-line totals for a single customer, before recency is known.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    last_order_date:
        Latest order date across the customer's lines
    frequency:
        Number of distinct order ids
    monetary:
        Sum of sales amounts, rounded to a whole unit
    total_quantity:
        Sum of quantities across the customer's lines
    order_line_count:
        Number of order lines
    """

    customer_id: str
    last_order_date: date
    frequency: int
    monetary: Decimal
    total_quantity: int
    order_line_count: int


@dataclass(frozen=True)
class CustomerSummary:
    """Recency, frequency and monetary values for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    last_order_date:
        Latest order date for the customer
    recency_days:
        Days from ``last_order_date`` to the dataset's latest order date
    frequency:
        Number of distinct orders
    monetary:
        Total sales rounded to a whole unit
    """

    customer_id: str
    last_order_date: date
    recency_days: int
    frequency: int
    monetary: Decimal

    def __post_init__(self) -> None:
        """Validate customer summary."""
        if self.recency_days < 0:
            raise ValueError(
                f"Recency cannot be negative: {self.recency_days} (customer_id={self.customer_id})"
            )
        if self.frequency < 1:
            raise ValueError(
                f"Frequency must be positive: {self.frequency} (customer_id={self.customer_id})"
            )


def _aggregate_customer_chunk(
    grouped_chunk: dict[str, list[OrderLine]],
) -> list[CustomerAggregate]:
    """Aggregate a chunk of already-grouped customers.

    Module-level so it can be pickled for multiprocessing workers.
    """
    aggregates: list[CustomerAggregate] = []
    for customer_id, lines in grouped_chunk.items():
        total_sales = sum((line.sales_amount for line in lines), Decimal("0"))
        aggregates.append(
            CustomerAggregate(
                customer_id=customer_id,
                last_order_date=max(line.order_date for line in lines),
                frequency=len({line.order_id for line in lines}),
                monetary=total_sales.quantize(MONETARY_PRECISION, rounding=ROUND_HALF_UP),
                total_quantity=sum(line.quantity for line in lines),
                order_line_count=len(lines),
            )
        )
    return aggregates


def aggregate_customers(
    order_lines: Sequence[OrderLine],
    parallel: bool = True,
    parallel_threshold: int = 10_000_000,
    n_workers: Optional[int] = None,
) -> list[CustomerAggregate]:
    """Group order lines by customer and compute per-customer totals.

    Customers are matched on the exact ``customer_id`` string (case-sensitive,
    no trimming). Frequency counts distinct order ids, not lines.

    **Parallel Processing**: grouping always happens in a single pass; the
    per-customer reduction is split across worker processes once the number
    of customers reaches ``parallel_threshold``. Results are identical to
    the serial path.

    Parameters
    ----------
    order_lines:
        Normalized order lines for the whole batch.
    parallel:
        Enable parallel processing (default: True). Only takes effect
        above ``parallel_threshold`` customers.
    parallel_threshold:
        Number of customers at which to switch to multiprocessing
        (default: 10,000,000).
    n_workers:
        Number of worker processes. If None (default), uses CPU count.

    Returns
    -------
    list[CustomerAggregate]
        One aggregate per customer, sorted by customer_id

    Examples
    --------
    >>> from datetime import date
    >>> from decimal import Decimal
    >>> lines = [
    ...     OrderLine("C1", "O1", date(2003, 2, 24), Decimal("100.40"), 2),
    ...     OrderLine("C1", "O1", date(2003, 2, 24), Decimal("50.20"), 1),
    ...     OrderLine("C1", "O2", date(2003, 5, 7), Decimal("10.00"), 1),
    ... ]
    >>> agg = aggregate_customers(lines)
    >>> agg[0].frequency
    2
    >>> agg[0].monetary
    Decimal('161')
    """
    if not order_lines:
        return []

    grouped: dict[str, list[OrderLine]] = {}
    for line in order_lines:
        grouped.setdefault(line.customer_id, []).append(line)

    num_customers = len(grouped)
    use_parallel = parallel and num_customers >= parallel_threshold

    if use_parallel:
        if n_workers is None:
            workers = os.cpu_count() or 1
        else:
            workers = max(1, n_workers)

        customer_items = list(grouped.items())
        chunk_size = max(1, num_customers // workers)
        chunks = [
            dict(customer_items[i : i + chunk_size])
            for i in range(0, num_customers, chunk_size)
        ]

        logger.info(
            f"Aggregating {num_customers} customers across {workers} workers "
            f"({len(chunks)} chunks)"
        )
        with multiprocessing.Pool(processes=workers) as pool:
            chunk_results = pool.map(_aggregate_customer_chunk, chunks)

        aggregates: list[CustomerAggregate] = []
        for chunk_result in chunk_results:
            aggregates.extend(chunk_result)
    else:
        aggregates = _aggregate_customer_chunk(grouped)

    aggregates.sort(key=lambda a: a.customer_id)
    return aggregates


def dataset_max_order_date(order_lines: Sequence[OrderLine]) -> date | None:
    """Return the latest order date across all lines, or None if empty."""
    if not order_lines:
        return None
    return max(line.order_date for line in order_lines)


def derive_recency(
    aggregates: Sequence[CustomerAggregate],
    reference_date: date | None = None,
) -> list[CustomerSummary]:
    """Attach recency to each customer aggregate.

    Recency is measured against the dataset's own latest order date, not
    the current date. When ``reference_date`` is omitted it is taken as the
    latest ``last_order_date`` across ``aggregates``, which equals the
    latest order date of the underlying lines.

    Parameters
    ----------
    aggregates:
        Output of :func:`aggregate_customers`.
    reference_date:
        Date recency is measured from. Normally
        :func:`dataset_max_order_date` of the same batch.

    Returns
    -------
    list[CustomerSummary]
        One summary per aggregate, in the same order

    Raises
    ------
    ValueError
        If any customer ordered after ``reference_date``.
    """
    if not aggregates:
        return []

    if reference_date is None:
        reference_date = max(a.last_order_date for a in aggregates)

    summaries: list[CustomerSummary] = []
    for aggregate in aggregates:
        if aggregate.last_order_date > reference_date:
            raise ValueError(
                f"Last order date ({aggregate.last_order_date}) cannot be after "
                f"reference date ({reference_date}) for customer {aggregate.customer_id}"
            )
        summaries.append(
            CustomerSummary(
                customer_id=aggregate.customer_id,
                last_order_date=aggregate.last_order_date,
                recency_days=(reference_date - aggregate.last_order_date).days,
                frequency=aggregate.frequency,
                monetary=aggregate.monetary,
            )
        )
    return summaries


def summarize_customers(
    order_lines: Sequence[OrderLine],
    parallel: bool = True,
    parallel_threshold: int = 10_000_000,
    n_workers: Optional[int] = None,
) -> list[CustomerSummary]:
    """Aggregate order lines and derive recency in one call.

    Recency is relative to the latest order date in ``order_lines``.
    """
    aggregates = aggregate_customers(
        order_lines,
        parallel=parallel,
        parallel_threshold=parallel_threshold,
        n_workers=n_workers,
    )
    return derive_recency(aggregates, dataset_max_order_date(order_lines))
