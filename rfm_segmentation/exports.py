"""Export segmentation results to CSV and JSON.

These are data exports for downstream tools (spreadsheets, BI loaders),
not presentation reports.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from rfm_segmentation.pandas.rfm import (
    classified_customers_to_dataframe,
    segment_aggregates_to_dataframe,
)
from rfm_segmentation.pipeline import RFMPipelineResult

logger = logging.getLogger(__name__)

CUSTOMERS_FILENAME = "customers.csv"
SEGMENTS_FILENAME = "segments.csv"
SUMMARY_FILENAME = "summary.json"


def get_segmentation_summary(result: RFMPipelineResult) -> dict[str, Any]:
    """Summarise a pipeline run as a JSON-serialisable dictionary.

    Parameters
    ----------
    result:
        Output of :func:`~rfm_segmentation.pipeline.run_rfm_pipeline`

    Returns
    -------
    dict[str, Any]
        Totals plus one entry per segment, in the result's segment order

    Examples
    --------
    >>> summary = get_segmentation_summary(result)
    >>> print(f"{summary['customer_count']} customers in {len(summary['segments'])} segments")
    """
    summaries = result.customer_summaries
    reference_date = (
        max(s.last_order_date for s in summaries).isoformat() if summaries else None
    )
    return {
        "order_line_count": len(result.order_lines),
        "customer_count": len(summaries),
        "reference_date": reference_date,
        "segments": [
            {
                "segment": a.segment.value if a.segment is not None else None,
                "customer_count": a.customer_count,
                "total_monetary": str(a.total_monetary),
                "average_monetary": str(a.average_monetary),
                "order_line_count": a.order_line_count,
                "total_quantity": a.total_quantity,
                "total_sales_amount": str(a.total_sales_amount),
            }
            for a in result.segment_aggregates
        ],
    }


def export_segmentation_json(result: RFMPipelineResult, output_path: str | Path) -> None:
    """Write :func:`get_segmentation_summary` to ``output_path`` as JSON."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(get_segmentation_summary(result), f, indent=2)

    logger.info(f"Segmentation summary exported to {output_path}")


def export_segmentation_csv(
    result: RFMPipelineResult, output_dir: str | Path
) -> dict[str, Path]:
    """Write per-customer and per-segment CSV files into ``output_dir``.

    Returns
    -------
    dict[str, Path]
        Paths written, keyed by ``"customers"`` and ``"segments"``
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    customers_path = output_dir / CUSTOMERS_FILENAME
    segments_path = output_dir / SEGMENTS_FILENAME

    classified_customers_to_dataframe(result.classified_customers).to_csv(
        customers_path, index=False
    )
    segment_aggregates_to_dataframe(result.segment_aggregates).to_csv(
        segments_path, index=False
    )

    logger.info(f"Classified customers exported to {customers_path}")
    logger.info(f"Segment aggregates exported to {segments_path}")
    return {"customers": customers_path, "segments": segments_path}
