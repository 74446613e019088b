"""Pandas DataFrame adapters for the RFM segmentation pipeline."""

from typing import Dict, List, Optional, Sequence

import pandas as pd  # type: ignore

from rfm_segmentation.analyses.segment_summary import (
    SegmentAggregate,
    SegmentMonetaryAggregate,
    SegmentSalesAggregate,
)
from rfm_segmentation.foundation.customer_summary import CustomerSummary
from rfm_segmentation.foundation.order_lines import (
    DEFAULT_DATE_FORMAT,
    OrderLine,
    normalize_order_lines,
)
from rfm_segmentation.foundation.segments import ClassifiedCustomer
from rfm_segmentation.pipeline import RFMPipelineConfig, run_rfm_pipeline_on_order_lines
from ._utils import decimal_to_float

CUSTOMER_SUMMARY_COLUMNS = [
    "customer_id",
    "last_order_date",
    "recency_days",
    "frequency",
    "monetary",
]

CLASSIFIED_CUSTOMER_COLUMNS = [
    "customer_id",
    "recency_days",
    "frequency",
    "monetary",
    "r_score",
    "f_score",
    "m_score",
    "total_score",
    "combination_code",
    "segment",
]

SEGMENT_AGGREGATE_COLUMNS = [
    "segment",
    "customer_count",
    "total_monetary",
    "average_monetary",
    "order_line_count",
    "total_quantity",
    "total_sales_amount",
]


def dataframe_to_order_lines(
    orders_df: pd.DataFrame,
    customer_id_col: str = "customer_id",
    order_id_col: str = "order_id",
    order_date_col: str = "order_date",
    sales_amount_col: str = "sales_amount",
    quantity_col: str = "quantity",
    date_format: str = DEFAULT_DATE_FORMAT,
    on_error: str = "raise",
) -> List[OrderLine]:
    """Convert a pandas DataFrame of raw order lines to OrderLine records.

    Args:
        orders_df: DataFrame with one row per order line
        *_col: Column name mappings for flexibility
        date_format: strptime format of the order date column
        on_error: "raise" to abort on an invalid date, "skip" to drop the row

    Returns:
        List of OrderLine objects in row order

    Raises:
        ValueError: If DataFrame missing required columns or has null values
        ParseError: If an order date is invalid and on_error="raise"

    Example:
        >>> orders_df = pd.read_csv('sales_data_sample.csv', encoding='latin-1')
        >>> lines = dataframe_to_order_lines(
        ...     orders_df,
        ...     customer_id_col='CUSTOMERNAME',
        ...     order_id_col='ORDERNUMBER',
        ...     order_date_col='ORDERDATE',
        ...     sales_amount_col='SALES',
        ...     quantity_col='QUANTITYORDERED',
        ... )
    """
    required_cols = [
        customer_id_col,
        order_id_col,
        order_date_col,
        sales_amount_col,
        quantity_col,
    ]

    missing_cols = set(required_cols) - set(orders_df.columns)
    if missing_cols:
        raise ValueError(f"DataFrame missing required columns: {missing_cols}")

    if orders_df.empty:
        return []

    # Validate for null/NaN values
    null_cols = orders_df[required_cols].isnull().any()
    if null_cols.any():
        null_col_names = null_cols[null_cols].index.tolist()
        raise ValueError(
            f"Null/NaN values found in columns: {null_col_names}. "
            "Order lines require complete data."
        )

    return normalize_order_lines(
        orders_df[required_cols].to_dict("records"),
        on_error=on_error,
        date_format=date_format,
        customer_id_col=customer_id_col,
        order_id_col=order_id_col,
        order_date_col=order_date_col,
        sales_amount_col=sales_amount_col,
        quantity_col=quantity_col,
    )


def customer_summaries_to_dataframe(
    summaries: Sequence[CustomerSummary],
) -> pd.DataFrame:
    """Convert customer summaries to a DataFrame sorted by customer_id.

    Example:
        >>> summaries_df = customer_summaries_to_dataframe(result.customer_summaries)
        >>> summaries_df[summaries_df['recency_days'].between(50, 100)]
    """
    if not summaries:
        return pd.DataFrame(columns=CUSTOMER_SUMMARY_COLUMNS)

    rows = [
        {
            "customer_id": s.customer_id,
            "last_order_date": s.last_order_date,
            "recency_days": s.recency_days,
            "frequency": s.frequency,
            "monetary": decimal_to_float(s.monetary),
        }
        for s in summaries
    ]
    df = pd.DataFrame(rows, columns=CUSTOMER_SUMMARY_COLUMNS)
    return df.sort_values("customer_id").reset_index(drop=True)


def classified_customers_to_dataframe(
    classified: Sequence[ClassifiedCustomer],
) -> pd.DataFrame:
    """Convert classified customers to a DataFrame sorted by customer_id.

    The ``segment`` column holds the segment label string.
    """
    if not classified:
        return pd.DataFrame(columns=CLASSIFIED_CUSTOMER_COLUMNS)

    rows = [
        {
            "customer_id": c.customer_id,
            "recency_days": c.recency_days,
            "frequency": c.frequency,
            "monetary": decimal_to_float(c.monetary),
            "r_score": c.r_score,
            "f_score": c.f_score,
            "m_score": c.m_score,
            "total_score": c.total_score,
            "combination_code": c.combination_code,
            "segment": c.segment.value,
        }
        for c in classified
    ]
    df = pd.DataFrame(rows, columns=CLASSIFIED_CUSTOMER_COLUMNS)
    return df.sort_values("customer_id").reset_index(drop=True)


def segment_aggregates_to_dataframe(
    aggregates: Sequence[SegmentAggregate],
) -> pd.DataFrame:
    """Convert combined segment aggregates to a DataFrame, preserving order.

    Unclassified order lines (segment None) appear with a null segment.
    """
    if not aggregates:
        return pd.DataFrame(columns=SEGMENT_AGGREGATE_COLUMNS)

    rows = [
        {
            "segment": a.segment.value if a.segment is not None else None,
            "customer_count": a.customer_count,
            "total_monetary": decimal_to_float(a.total_monetary),
            "average_monetary": decimal_to_float(a.average_monetary),
            "order_line_count": a.order_line_count,
            "total_quantity": a.total_quantity,
            "total_sales_amount": decimal_to_float(a.total_sales_amount),
        }
        for a in aggregates
    ]
    return pd.DataFrame(rows, columns=SEGMENT_AGGREGATE_COLUMNS)


def monetary_aggregates_to_dataframe(
    aggregates: Sequence[SegmentMonetaryAggregate],
) -> pd.DataFrame:
    """Convert the per-segment monetary view to a DataFrame."""
    columns = ["segment", "customer_count", "total_monetary", "average_monetary"]
    rows = [
        {
            "segment": a.segment.value,
            "customer_count": a.customer_count,
            "total_monetary": decimal_to_float(a.total_monetary),
            "average_monetary": decimal_to_float(a.average_monetary),
        }
        for a in aggregates
    ]
    return pd.DataFrame(rows, columns=columns)


def sales_aggregates_to_dataframe(
    aggregates: Sequence[SegmentSalesAggregate],
) -> pd.DataFrame:
    """Convert the per-segment sales view to a DataFrame."""
    columns = ["segment", "order_line_count", "total_quantity", "total_sales_amount"]
    rows = [
        {
            "segment": a.segment.value if a.segment is not None else None,
            "order_line_count": a.order_line_count,
            "total_quantity": a.total_quantity,
            "total_sales_amount": decimal_to_float(a.total_sales_amount),
        }
        for a in aggregates
    ]
    return pd.DataFrame(rows, columns=columns)


def run_rfm_pipeline_df(
    orders_df: pd.DataFrame,
    customer_id_col: str = "customer_id",
    order_id_col: str = "order_id",
    order_date_col: str = "order_date",
    sales_amount_col: str = "sales_amount",
    quantity_col: str = "quantity",
    config: Optional[RFMPipelineConfig] = None,
) -> Dict[str, pd.DataFrame]:
    """Run the segmentation pipeline on a DataFrame of raw order lines.

    Convenience function that combines conversion and calculation.

    Args:
        orders_df: DataFrame with one row per order line
        *_col: Column name mappings for flexibility
        config: Pipeline configuration (date format, parse-error policy,
            parallelism). Defaults to RFMPipelineConfig().

    Returns:
        Dict of DataFrames keyed by "customers" (summaries), "classified",
        "monetary_by_segment", "sales_by_segment" and "segments"

    Example:
        >>> frames = run_rfm_pipeline_df(orders_df)
        >>> frames['classified'].query("segment == 'Champions'")
    """
    config = config or RFMPipelineConfig()
    order_lines = dataframe_to_order_lines(
        orders_df,
        customer_id_col=customer_id_col,
        order_id_col=order_id_col,
        order_date_col=order_date_col,
        sales_amount_col=sales_amount_col,
        quantity_col=quantity_col,
        date_format=config.date_format,
        on_error=config.on_parse_error,
    )
    result = run_rfm_pipeline_on_order_lines(order_lines, config)

    return {
        "customers": customer_summaries_to_dataframe(result.customer_summaries),
        "classified": classified_customers_to_dataframe(result.classified_customers),
        "monetary_by_segment": monetary_aggregates_to_dataframe(
            result.monetary_by_segment
        ),
        "sales_by_segment": sales_aggregates_to_dataframe(result.sales_by_segment),
        "segments": segment_aggregates_to_dataframe(result.segment_aggregates),
    }
