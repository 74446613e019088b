"""End-to-end RFM segmentation pipeline.

Runs the stages in order, each over the complete output of the previous
one:

1. Normalize raw rows into order lines
2. Aggregate order lines per customer
3. Derive recency against the dataset's latest order date
4. Score recency, frequency and monetary into quintiles
5. Classify combination codes into segments
6. Aggregate by segment
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

from rfm_segmentation.analyses.segment_summary import (
    SegmentAggregate,
    SegmentMonetaryAggregate,
    SegmentSalesAggregate,
    aggregate_monetary_by_segment,
    aggregate_sales_by_segment,
    summarize_segments,
)
from rfm_segmentation.foundation.customer_summary import (
    CustomerSummary,
    aggregate_customers,
    dataset_max_order_date,
    derive_recency,
)
from rfm_segmentation.foundation.order_lines import (
    DEFAULT_DATE_FORMAT,
    PARSE_ERROR_POLICIES,
    OrderLine,
    normalize_order_lines,
)
from rfm_segmentation.foundation.rfm import RFMScore, calculate_rfm_scores
from rfm_segmentation.foundation.segments import ClassifiedCustomer, classify_customers

logger = logging.getLogger(__name__)


@dataclass
class RFMPipelineConfig:
    """Configuration for an RFM segmentation run.

    Attributes
    ----------
    date_format:
        ``strptime`` format of raw order dates (default day/month/2-digit year)
    on_parse_error:
        ``"raise"`` to abort the batch on an invalid date, ``"skip"`` to
        drop and log the row
    column_names:
        Overrides for raw row keys, e.g. ``{"customer_id": "CUSTOMERNAME"}``
    parallel:
        Allow multiprocessing in the customer aggregation stage
    parallel_threshold:
        Customer count at which aggregation goes parallel
    n_workers:
        Worker processes for parallel aggregation (default: CPU count)
    """

    date_format: str = DEFAULT_DATE_FORMAT
    on_parse_error: str = "raise"
    column_names: Mapping[str, str] = field(default_factory=dict)
    parallel: bool = True
    parallel_threshold: int = 10_000_000
    n_workers: Optional[int] = None

    #: Keys accepted in :attr:`column_names`.
    COLUMN_KEYS = ("customer_id", "order_id", "order_date", "sales_amount", "quantity")

    def __post_init__(self) -> None:
        if self.on_parse_error not in PARSE_ERROR_POLICIES:
            raise ValueError(
                f"on_parse_error must be one of {PARSE_ERROR_POLICIES}, got {self.on_parse_error!r}"
            )
        unknown = set(self.column_names) - set(self.COLUMN_KEYS)
        if unknown:
            raise ValueError(f"Unknown column name overrides: {sorted(unknown)}")
        if self.parallel_threshold < 1:
            raise ValueError(
                f"parallel_threshold must be positive: {self.parallel_threshold}"
            )
        if self.n_workers is not None and self.n_workers < 1:
            raise ValueError(f"n_workers must be positive: {self.n_workers}")

    def column_kwargs(self) -> dict[str, str]:
        """Return ``*_col`` keyword arguments for the normalizer."""
        return {
            f"{key}_col": self.column_names.get(key, key) for key in self.COLUMN_KEYS
        }


@dataclass(frozen=True)
class RFMPipelineResult:
    """Every snapshot produced by one pipeline run."""

    order_lines: list[OrderLine]
    customer_summaries: list[CustomerSummary]
    rfm_scores: list[RFMScore]
    classified_customers: list[ClassifiedCustomer]
    monetary_by_segment: list[SegmentMonetaryAggregate]
    sales_by_segment: list[SegmentSalesAggregate]
    segment_aggregates: list[SegmentAggregate]


def run_rfm_pipeline_on_order_lines(
    order_lines: Sequence[OrderLine],
    config: RFMPipelineConfig | None = None,
) -> RFMPipelineResult:
    """Run stages 2-6 on already-normalized order lines.

    An empty batch yields empty outputs at every stage.
    """
    config = config or RFMPipelineConfig()
    order_lines = list(order_lines)

    aggregates = aggregate_customers(
        order_lines,
        parallel=config.parallel,
        parallel_threshold=config.parallel_threshold,
        n_workers=config.n_workers,
    )
    reference_date = dataset_max_order_date(order_lines)
    summaries = derive_recency(aggregates, reference_date)
    logger.info(
        f"Summarized {len(order_lines)} order lines into {len(summaries)} customers "
        f"(reference date: {reference_date})"
    )

    scores = calculate_rfm_scores(summaries)
    classified = classify_customers(scores)

    return RFMPipelineResult(
        order_lines=order_lines,
        customer_summaries=summaries,
        rfm_scores=scores,
        classified_customers=classified,
        monetary_by_segment=aggregate_monetary_by_segment(classified),
        sales_by_segment=aggregate_sales_by_segment(order_lines, classified),
        segment_aggregates=summarize_segments(order_lines, classified),
    )


def run_rfm_pipeline(
    rows: Iterable[Mapping[str, Any]],
    config: RFMPipelineConfig | None = None,
) -> RFMPipelineResult:
    """Normalize raw rows and run the full segmentation pipeline.

    Parameters
    ----------
    rows:
        Raw order-line rows with a ``DD/MM/YY`` order date string
    config:
        Run configuration; defaults to :class:`RFMPipelineConfig`

    Returns
    -------
    RFMPipelineResult
        All intermediate and final snapshots

    Raises
    ------
    ParseError
        If an order date is invalid and ``config.on_parse_error == "raise"``

    Examples
    --------
    >>> rows = [
    ...     {"customer_id": "A", "order_id": "1", "order_date": "01/05/03",
    ...      "sales_amount": "120.50", "quantity": 3},
    ... ]
    >>> result = run_rfm_pipeline(rows)
    >>> result.classified_customers[0].combination_code
    555
    """
    config = config or RFMPipelineConfig()
    order_lines = normalize_order_lines(
        rows,
        on_error=config.on_parse_error,
        date_format=config.date_format,
        **config.column_kwargs(),
    )
    return run_rfm_pipeline_on_order_lines(order_lines, config)
