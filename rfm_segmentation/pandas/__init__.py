"""Pandas DataFrame adapters for the RFM segmentation pipeline."""

from .rfm import (
    dataframe_to_order_lines,
    customer_summaries_to_dataframe,
    classified_customers_to_dataframe,
    segment_aggregates_to_dataframe,
    monetary_aggregates_to_dataframe,
    sales_aggregates_to_dataframe,
    run_rfm_pipeline_df,
)

__all__ = [
    "dataframe_to_order_lines",
    "customer_summaries_to_dataframe",
    "classified_customers_to_dataframe",
    "segment_aggregates_to_dataframe",
    "monetary_aggregates_to_dataframe",
    "sales_aggregates_to_dataframe",
    "run_rfm_pipeline_df",
]
