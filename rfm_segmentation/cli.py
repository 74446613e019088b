"""Command line entry points for the RFM segmentation toolkit."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import pandas as pd

from rfm_segmentation.exports import (
    SUMMARY_FILENAME,
    export_segmentation_csv,
    export_segmentation_json,
    get_segmentation_summary,
)
from rfm_segmentation.foundation.order_lines import (
    DEFAULT_DATE_FORMAT,
    PARSE_ERROR_POLICIES,
    ParseError,
)
from rfm_segmentation.pandas.rfm import dataframe_to_order_lines
from rfm_segmentation.pipeline import RFMPipelineConfig, run_rfm_pipeline_on_order_lines

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM


def _load_orders(path: Path, text_columns: list[str]) -> pd.DataFrame:
    """Load raw order lines from a CSV or JSON file into a DataFrame.

    Identifier and date columns are read as text so leading zeros and the
    original date strings survive.
    """
    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )

    if path.suffix.lower() == ".json":
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
        if not isinstance(payload, list):
            raise ValueError("Expected a list of order lines in the input file")
        return pd.DataFrame.from_records(payload)

    if size == 0:
        return pd.DataFrame()
    return pd.read_csv(path, dtype={col: str for col in text_columns})


def _resolve_output_dir(output_dir: Path) -> Path:
    resolved = output_dir.resolve()
    cwd = Path.cwd().resolve()
    try:
        resolved.relative_to(cwd)
    except ValueError:
        raise ValueError(
            f"Output directory {resolved} must reside within the current working directory"
        )
    return resolved


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Score customers with RFM quintiles and classify them into segments"
    )
    parser.add_argument(
        "input", type=Path, help="Path to CSV or JSON file with raw order lines"
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for customers.csv, segments.csv and summary.json. "
        "If omitted, a JSON summary is written to stdout.",
    )
    parser.add_argument("--customer-col", default="customer_id")
    parser.add_argument("--order-col", default="order_id")
    parser.add_argument("--date-col", default="order_date")
    parser.add_argument("--sales-col", default="sales_amount")
    parser.add_argument("--quantity-col", default="quantity")
    parser.add_argument(
        "--date-format",
        default=DEFAULT_DATE_FORMAT,
        help="strptime format of the order date column (default: %%d/%%m/%%y)",
    )
    parser.add_argument(
        "--on-parse-error",
        choices=PARSE_ERROR_POLICIES,
        default="raise",
        help="Abort on an invalid order date (raise, default) or drop the row (skip)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def segment_customers_cli(argv: list[str] | None = None) -> int:
    """Run RFM segmentation over an order-line file.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 for empty input, an invalid order date,
        or missing and blank order-line values)
    """
    args = build_parser().parse_args(argv)
    logging.getLogger("rfm_segmentation").setLevel(args.log_level)

    config = RFMPipelineConfig(
        date_format=args.date_format,
        on_parse_error=args.on_parse_error,
        column_names={
            "customer_id": args.customer_col,
            "order_id": args.order_col,
            "order_date": args.date_col,
            "sales_amount": args.sales_col,
            "quantity": args.quantity_col,
        },
    )

    output_dir = _resolve_output_dir(args.output_dir) if args.output_dir else None

    logger.info(f"Loading order lines from {args.input}")
    orders_df = _load_orders(
        args.input, [args.customer_col, args.order_col, args.date_col]
    )
    if orders_df.empty:
        logger.error("No order lines found in input file")
        return 1

    try:
        order_lines = dataframe_to_order_lines(
            orders_df,
            date_format=config.date_format,
            on_error=config.on_parse_error,
            **config.column_kwargs(),
        )
    except ParseError as exc:
        logger.error(f"Invalid order date at row {exc.row_index}: {exc}")
        return 1
    except (KeyError, ValueError) as exc:
        logger.error(f"Invalid order lines in {args.input}: {exc}")
        return 1

    result = run_rfm_pipeline_on_order_lines(order_lines, config)

    logger.info(
        f"Classified {len(result.classified_customers)} customers into "
        f"{len(result.monetary_by_segment)} segments"
    )

    if output_dir is not None:
        export_segmentation_csv(result, output_dir)
        export_segmentation_json(result, output_dir / SUMMARY_FILENAME)
    else:  # stdout fallback enables piping in shell usage.
        json.dump(get_segmentation_summary(result), fp=sys.stdout, indent=2)
        print()

    return 0


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    raise SystemExit(segment_customers_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
