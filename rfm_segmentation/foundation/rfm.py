"""RFM (Recency-Frequency-Monetary) quintile scoring.

Each customer is scored 1-5 on three independent dimensions:
- Recency: 5 = most recent purchase
- Frequency: 5 = most distinct orders
- Monetary: 5 = highest total spend

Scores are equal-count bins over the full ranked customer list, so every
customer summary has to be materialised before the first score is known.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

import numpy as np
import pandas as pd  # Used for the per-dimension ranking sorts

from rfm_segmentation.foundation.customer_summary import CustomerSummary

logger = logging.getLogger(__name__)

#: Number of equal-count bins per dimension (quintiles).
NUM_BINS = 5


@dataclass(frozen=True)
class RFMScore:
    """RFM quintile scores for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    recency_days:
        Raw recency the r_score was derived from
    frequency:
        Raw frequency the f_score was derived from
    monetary:
        Raw monetary value the m_score was derived from
    r_score:
        Recency score (1-5, where 5 = most recent)
    f_score:
        Frequency score (1-5, where 5 = most frequent)
    m_score:
        Monetary score (1-5, where 5 = highest spend)
    """

    customer_id: str
    recency_days: int
    frequency: int
    monetary: Decimal
    r_score: int
    f_score: int
    m_score: int

    def __post_init__(self) -> None:
        """Validate RFM scores."""
        for score_name, score_value in [
            ("r_score", self.r_score),
            ("f_score", self.f_score),
            ("m_score", self.m_score),
        ]:
            if not 1 <= score_value <= NUM_BINS:
                raise ValueError(
                    f"{score_name} must be between 1 and {NUM_BINS}: {score_value} (customer_id={self.customer_id})"
                )

    @property
    def total_score(self) -> int:
        """Sum of the three scores (3-15)."""
        return self.r_score + self.f_score + self.m_score


def quintile_bins(n: int, bins: int = NUM_BINS) -> list[int]:
    """Return the bin for each 1-based rank in a list of ``n`` sorted items.

    The bin for rank ``k`` is ``ceil(k * bins / n)``. Bin sizes therefore
    differ by at most one, and with ``n < bins`` some bin values are not
    used at all.

    Examples
    --------
    >>> quintile_bins(5)
    [1, 2, 3, 4, 5]
    >>> quintile_bins(6)
    [1, 2, 3, 4, 5, 5]
    >>> quintile_bins(2)
    [3, 5]
    """
    if n <= 0:
        return []
    ranks = np.arange(1, n + 1, dtype=np.int64)
    # Integer ceiling division avoids float rounding at bin boundaries
    return ((ranks * bins + n - 1) // n).tolist()


def _score_dimension(df: pd.DataFrame, column: str, ascending: bool) -> pd.Series:
    """Rank customers on ``column`` and assign quintile bins.

    Ties on the metric are broken by ``customer_id`` ascending so the
    result does not depend on input order.
    """
    ordered = df.sort_values(
        [column, "customer_id"], ascending=[ascending, True], kind="mergesort"
    )
    return pd.Series(quintile_bins(len(ordered)), index=ordered.index, dtype="int64")


def calculate_rfm_scores(summaries: Sequence[CustomerSummary]) -> list[RFMScore]:
    """Score customer summaries into quintiles (1-5).

    - Recency is sorted descending, so the stalest fifth of customers
      gets 1 and the most recent fifth gets 5.
    - Frequency and monetary are sorted ascending, so the highest values
      get 5.

    The bin for the customer at 1-based position ``k`` out of ``N`` is
    ``ceil(k * 5 / N)``. Customers sharing a metric value are ordered by
    ``customer_id`` before binning, which keeps the scores reproducible
    even when tied customers straddle a bin boundary.

    Parameters
    ----------
    summaries:
        Summaries for every customer in the batch. Scoring a subset gives
        different bins, since boundaries depend on the full population.

    Returns
    -------
    list[RFMScore]
        Scores for each customer, sorted by customer_id. With fewer than
        five customers not every score value occurs.

    Examples
    --------
    >>> from datetime import date
    >>> from decimal import Decimal
    >>> summaries = [
    ...     CustomerSummary("C1", date(2003, 5, 1), 0, 4, Decimal("900")),
    ...     CustomerSummary("C2", date(2003, 1, 1), 120, 1, Decimal("80")),
    ... ]
    >>> scores = calculate_rfm_scores(summaries)
    >>> (scores[0].r_score, scores[0].f_score, scores[0].m_score)
    (5, 5, 5)
    >>> (scores[1].r_score, scores[1].f_score, scores[1].m_score)
    (3, 3, 3)
    """
    if not summaries:
        return []

    df = pd.DataFrame(
        {
            "customer_id": [s.customer_id for s in summaries],
            "recency_days": [s.recency_days for s in summaries],
            "frequency": [s.frequency for s in summaries],
            "monetary": [s.monetary for s in summaries],
        }
    )
    if df["customer_id"].duplicated().any():
        duplicates = sorted(df.loc[df["customer_id"].duplicated(), "customer_id"].unique())
        raise ValueError(f"Duplicate customer_id values in summaries: {duplicates}")

    df["r_score"] = _score_dimension(df, "recency_days", ascending=False)
    df["f_score"] = _score_dimension(df, "frequency", ascending=True)
    df["m_score"] = _score_dimension(df, "monetary", ascending=True)

    logger.info(f"Scored {len(df)} customers into {NUM_BINS} bins per dimension")

    rfm_scores: list[RFMScore] = []
    for summary, r_score, f_score, m_score in zip(
        summaries, df["r_score"], df["f_score"], df["m_score"]
    ):
        rfm_scores.append(
            RFMScore(
                customer_id=summary.customer_id,
                recency_days=summary.recency_days,
                frequency=summary.frequency,
                monetary=summary.monetary,
                r_score=int(r_score),
                f_score=int(f_score),
                m_score=int(m_score),
            )
        )

    rfm_scores.sort(key=lambda s: s.customer_id)
    return rfm_scores
