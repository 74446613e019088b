"""Segment classification from RFM combination codes.

The combination code concatenates the three scores as decimal digits in
R, F, M order (r=4, f=5, m=5 gives 455). A fixed, hand-curated table maps
codes to marketing segments; codes that are not listed fall through to
:attr:`Segment.OTHER`.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Sequence

from rfm_segmentation.foundation.rfm import RFMScore


class Segment(str, Enum):
    """Marketing segments, with OTHER as the catch-all."""

    CHAMPIONS = "Champions"
    LOYAL_CUSTOMERS = "Loyal Customers"
    POTENTIAL_LOYALISTS = "Potential Loyalists"
    PROMISING_CUSTOMERS = "Promising Customers"
    NEEDS_ATTENTION = "Needs Attention"
    ABOUT_TO_SLEEP = "About to Sleep"
    OTHER = "OTHER"


# Business-curated; not every one of the 125 possible codes is listed.
SEGMENT_CODES: Mapping[Segment, tuple[int, ...]] = MappingProxyType(
    {
        Segment.CHAMPIONS: (455, 542, 544, 552, 553, 452, 545, 554, 555),
        Segment.LOYAL_CUSTOMERS: (
            344, 345, 353, 354, 355, 443, 451, 342, 351, 352,
            441, 442, 444, 445, 453, 454, 541, 543, 515, 551,
        ),
        Segment.POTENTIAL_LOYALISTS: (513, 413, 511, 411, 512, 341, 412, 343, 514),
        Segment.PROMISING_CUSTOMERS: (
            414, 415, 214, 211, 212, 213, 241, 251, 312, 314, 311,
            313, 315, 243, 245, 252, 253, 255, 242, 244, 254,
        ),
        Segment.NEEDS_ATTENTION: (141, 142, 143, 144, 151, 152, 155, 145, 153, 154, 215),
        Segment.ABOUT_TO_SLEEP: (113, 111, 112, 114, 115),
    }
)


def _build_code_lookup(
    segment_codes: Mapping[Segment, Sequence[int]],
) -> Mapping[int, Segment]:
    """Invert the segment table into a code -> segment lookup.

    Raises
    ------
    ValueError
        If a code is listed under more than one segment.
    """
    lookup: dict[int, Segment] = {}
    for segment, codes in segment_codes.items():
        for code in codes:
            existing = lookup.get(code)
            if existing is not None:
                raise ValueError(
                    f"Combination code {code} assigned to both {existing.value!r} and {segment.value!r}"
                )
            lookup[code] = segment
    return MappingProxyType(lookup)


#: Combination code -> segment, built once at import.
CODE_TO_SEGMENT: Mapping[int, Segment] = _build_code_lookup(SEGMENT_CODES)


def combination_code(r_score: int, f_score: int, m_score: int) -> int:
    """Concatenate R, F, M scores as decimal digits (4, 5, 5 -> 455)."""
    return r_score * 100 + f_score * 10 + m_score


def classify_code(code: int) -> Segment:
    """Return the segment for a combination code, or OTHER if unlisted.

    >>> classify_code(455)
    <Segment.CHAMPIONS: 'Champions'>
    >>> classify_code(999)
    <Segment.OTHER: 'OTHER'>
    """
    return CODE_TO_SEGMENT.get(code, Segment.OTHER)


@dataclass(frozen=True)
class ClassifiedCustomer:
    """A scored customer with its combination code and segment.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    recency_days, frequency, monetary:
        Raw RFM values
    r_score, f_score, m_score:
        Quintile scores (1-5)
    total_score:
        r_score + f_score + m_score (3-15)
    combination_code:
        Scores concatenated in R, F, M order
    segment:
        Segment from the classification table
    """

    customer_id: str
    recency_days: int
    frequency: int
    monetary: Decimal
    r_score: int
    f_score: int
    m_score: int
    total_score: int
    combination_code: int
    segment: Segment

    def __post_init__(self) -> None:
        """Validate derived fields against the scores."""
        expected_total = self.r_score + self.f_score + self.m_score
        if self.total_score != expected_total:
            raise ValueError(
                f"total_score ({self.total_score}) does not match r/f/m scores ({expected_total}) (customer_id={self.customer_id})"
            )
        expected_code = combination_code(self.r_score, self.f_score, self.m_score)
        if self.combination_code != expected_code:
            raise ValueError(
                f"combination_code ({self.combination_code}) does not match r/f/m scores ({expected_code}) (customer_id={self.customer_id})"
            )


def classify_customers(rfm_scores: Sequence[RFMScore]) -> list[ClassifiedCustomer]:
    """Attach combination codes and segments to RFM scores.

    Parameters
    ----------
    rfm_scores:
        Output of :func:`~rfm_segmentation.foundation.rfm.calculate_rfm_scores`.

    Returns
    -------
    list[ClassifiedCustomer]
        One entry per score, in input order
    """
    classified: list[ClassifiedCustomer] = []
    for score in rfm_scores:
        code = combination_code(score.r_score, score.f_score, score.m_score)
        classified.append(
            ClassifiedCustomer(
                customer_id=score.customer_id,
                recency_days=score.recency_days,
                frequency=score.frequency,
                monetary=score.monetary,
                r_score=score.r_score,
                f_score=score.f_score,
                m_score=score.m_score,
                total_score=score.total_score,
                combination_code=code,
                segment=classify_code(code),
            )
        )
    return classified
