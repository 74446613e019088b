"""Order-line records and the normalizer that builds them from raw rows.

Raw rows arrive from an upstream loader (CSV export, database cursor,
DataFrame) with the order date still encoded as a ``DD/MM/YY`` string.
The normalizer turns each row into a typed :class:`OrderLine` and is the
only place in the pipeline where input parsing happens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

#: Day/month/two-digit-year, e.g. ``24/02/03`` for 24 February 2003.
DEFAULT_DATE_FORMAT = "%d/%m/%y"

#: Supported policies for rows whose order date cannot be parsed.
PARSE_ERROR_POLICIES = ("raise", "skip")


class ParseError(ValueError):
    """Raised when an order date is malformed or not a real calendar date.

    Attributes
    ----------
    value:
        The raw value that failed to parse.
    row_index:
        Position of the offending row in the input, if known.
    """

    def __init__(self, message: str, value: Any = None, row_index: int | None = None):
        super().__init__(message)
        self.value = value
        self.row_index = row_index


@dataclass(frozen=True)
class OrderLine:
    """A single normalized order line.

    Attributes
    ----------
    customer_id:
        Customer identifier, kept exactly as supplied (case-sensitive,
        untrimmed).
    order_id:
        Opaque order key. Several lines may share one order.
    order_date:
        Calendar date of the order.
    sales_amount:
        Sales value of the line. Not validated; negative amounts
        (e.g. refunds) pass through unchanged.
    quantity:
        Units ordered on the line.
    """

    customer_id: str
    order_id: str
    order_date: date
    sales_amount: Decimal
    quantity: int


def parse_order_date(value: Any, date_format: str = DEFAULT_DATE_FORMAT) -> date:
    """Parse an order date in day/month/two-digit-year format.

    ``date`` and ``datetime`` instances are accepted as already parsed
    (datetimes are truncated to their date).

    Raises
    ------
    ParseError
        If ``value`` does not match ``date_format`` or names a day that
        does not exist (e.g. ``31/04/03``).

    Examples
    --------
    >>> parse_order_date("24/02/03")
    datetime.date(2003, 2, 24)
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ParseError(
            f"Order date must be a string in {date_format!r} format, got {type(value).__name__}",
            value=value,
        )
    try:
        return datetime.strptime(value, date_format).date()
    except ValueError as exc:
        raise ParseError(
            f"Invalid order date {value!r} for format {date_format!r}: {exc}",
            value=value,
        ) from exc


def _parse_sales_amount(value: Any, row_index: int) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(
            f"Order line at index {row_index} has invalid sales amount {value!r}"
        ) from exc
    if not amount.is_finite():
        raise ValueError(
            f"Order line at index {row_index} has invalid sales amount {value!r}"
        )
    return amount


def normalize_order_lines(
    rows: Iterable[Mapping[str, Any]],
    *,
    on_error: str = "raise",
    date_format: str = DEFAULT_DATE_FORMAT,
    customer_id_col: str = "customer_id",
    order_id_col: str = "order_id",
    order_date_col: str = "order_date",
    sales_amount_col: str = "sales_amount",
    quantity_col: str = "quantity",
) -> list[OrderLine]:
    """Convert raw rows into :class:`OrderLine` records.

    Parameters
    ----------
    rows:
        Raw row mappings from the data-loading collaborator.
    on_error:
        What to do with a row whose order date fails to parse. ``"raise"``
        (default) aborts the whole batch, since dropping rows silently
        would corrupt downstream sums. ``"skip"`` drops the row and logs a
        warning.
    date_format:
        ``strptime`` format of the order date column.
    *_col:
        Column name mappings for sources with different headers.

    Returns
    -------
    list[OrderLine]
        One record per accepted row, in input order.

    Raises
    ------
    ParseError
        On an unparseable date when ``on_error="raise"``.
    KeyError
        If a row lacks one of the mapped columns.
    ValueError
        If ``on_error`` is not a supported policy, or a sales amount is
        not a finite number.
    """
    if on_error not in PARSE_ERROR_POLICIES:
        raise ValueError(
            f"on_error must be one of {PARSE_ERROR_POLICIES}, got {on_error!r}"
        )

    order_lines: list[OrderLine] = []
    skipped = 0
    for idx, row in enumerate(rows):
        try:
            raw_customer_id = row[customer_id_col]
            raw_order_id = row[order_id_col]
            raw_order_date = row[order_date_col]
            raw_sales_amount = row[sales_amount_col]
            raw_quantity = row[quantity_col]
        except KeyError as exc:
            raise KeyError(
                f"Order line at index {idx} missing column {exc.args[0]!r}"
            ) from exc

        try:
            order_date = parse_order_date(raw_order_date, date_format)
        except ParseError as exc:
            exc.row_index = idx
            if on_error == "raise":
                raise
            skipped += 1
            logger.warning(f"Skipping order line at index {idx}: {exc}")
            continue

        order_lines.append(
            OrderLine(
                customer_id=str(raw_customer_id),
                order_id=str(raw_order_id),
                order_date=order_date,
                sales_amount=_parse_sales_amount(raw_sales_amount, idx),
                quantity=int(raw_quantity),
            )
        )

    if skipped:
        logger.warning(
            f"Skipped {skipped} order lines with invalid dates; kept {len(order_lines)}"
        )
    return order_lines
