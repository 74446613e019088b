"""Tests for segment-level aggregation."""

from datetime import date
from decimal import Decimal

import pytest

from rfm_segmentation.analyses.segment_summary import (
    SegmentMonetaryAggregate,
    aggregate_monetary_by_segment,
    aggregate_sales_by_segment,
    customers_in_recency_range,
    customers_in_segment,
    summarize_segments,
)
from rfm_segmentation.foundation.customer_summary import CustomerSummary
from rfm_segmentation.foundation.order_lines import OrderLine
from rfm_segmentation.foundation.rfm import RFMScore
from rfm_segmentation.foundation.segments import (
    ClassifiedCustomer,
    Segment,
    classify_code,
    combination_code,
)


def _classified(customer_id, r, f, m, monetary, recency_days=0, frequency=1):
    code = combination_code(r, f, m)
    return ClassifiedCustomer(
        customer_id=customer_id,
        recency_days=recency_days,
        frequency=frequency,
        monetary=Decimal(str(monetary)),
        r_score=r,
        f_score=f,
        m_score=m,
        total_score=r + f + m,
        combination_code=code,
        segment=classify_code(code),
    )


def _line(customer_id, sales, quantity, order_id="O1"):
    return OrderLine(customer_id, order_id, date(2003, 1, 1), Decimal(sales), quantity)


@pytest.fixture
def classified():
    return [
        _classified("A", 5, 5, 5, 5000, recency_days=2),  # Champions
        _classified("B", 4, 5, 5, 3001, recency_days=10),  # Champions
        _classified("C", 1, 1, 1, 50, recency_days=200),  # About to Sleep
        _classified("D", 3, 4, 4, 700, recency_days=60),  # Loyal Customers
        _classified("E", 2, 1, 2, 120, recency_days=95),  # Promising Customers
    ]


@pytest.fixture
def order_lines():
    return [
        _line("A", "3000.00", 30),
        _line("A", "2000.25", 20),
        _line("B", "3001.00", 41),
        _line("C", "50.00", 5),
        _line("D", "699.60", 7),
        _line("E", "120.00", 12),
    ]


class TestAggregateMonetaryBySegment:
    """Test aggregate_monetary_by_segment."""

    def test_empty_input(self):
        assert aggregate_monetary_by_segment([]) == []

    def test_sum_and_average(self, classified):
        """Monetary is summed and averaged per segment."""
        by_segment = {a.segment: a for a in aggregate_monetary_by_segment(classified)}
        champions = by_segment[Segment.CHAMPIONS]
        assert champions.customer_count == 2
        assert champions.total_monetary == Decimal("8001")
        assert champions.average_monetary == Decimal("4000.50")
        assert by_segment[Segment.ABOUT_TO_SLEEP].average_monetary == Decimal("50.00")

    def test_only_present_segments(self, classified):
        """Segments with no customers are not reported."""
        segments = {a.segment for a in aggregate_monetary_by_segment(classified)}
        assert segments == {
            Segment.CHAMPIONS,
            Segment.ABOUT_TO_SLEEP,
            Segment.LOYAL_CUSTOMERS,
            Segment.PROMISING_CUSTOMERS,
        }

    def test_ordered_by_total_monetary_descending(self, classified):
        totals = [a.total_monetary for a in aggregate_monetary_by_segment(classified)]
        assert totals == sorted(totals, reverse=True)

    def test_ties_ordered_by_segment_label(self):
        customers = [_classified("A", 1, 1, 1, 100), _classified("B", 5, 5, 5, 100)]
        result = aggregate_monetary_by_segment(customers)
        assert [a.segment for a in result] == [Segment.ABOUT_TO_SLEEP, Segment.CHAMPIONS]

    def test_conservation(self, classified):
        """Segment totals add up to the customer monetary total."""
        total = sum(a.total_monetary for a in aggregate_monetary_by_segment(classified))
        assert total == sum(c.monetary for c in classified)

    def test_zero_customer_count_rejected(self):
        with pytest.raises(ValueError, match="Customer count must be positive"):
            SegmentMonetaryAggregate(Segment.OTHER, 0, Decimal("0"), Decimal("0"))


class TestAggregateSalesBySegment:
    """Test aggregate_sales_by_segment."""

    def test_empty_input(self):
        assert aggregate_sales_by_segment([], []) == []

    def test_sums_quantity_and_sales(self, order_lines, classified):
        by_segment = {
            a.segment: a for a in aggregate_sales_by_segment(order_lines, classified)
        }
        champions = by_segment[Segment.CHAMPIONS]
        assert champions.order_line_count == 3
        assert champions.total_quantity == 91
        assert champions.total_sales_amount == Decimal("8001.25")
        assert by_segment[Segment.LOYAL_CUSTOMERS].total_sales_amount == Decimal("699.60")

    def test_unclassified_lines_grouped_under_none(self, order_lines, classified):
        """Lines whose customer has no segment are kept, not dropped."""
        lines = order_lines + [_line("Z", "10.00", 1)]
        by_segment = {a.segment: a for a in aggregate_sales_by_segment(lines, classified)}
        assert by_segment[None].order_line_count == 1
        assert by_segment[None].total_sales_amount == Decimal("10.00")

    def test_default_order_by_sales_descending(self, order_lines, classified):
        result = aggregate_sales_by_segment(order_lines, classified)
        amounts = [a.total_sales_amount for a in result]
        assert amounts == sorted(amounts, reverse=True)

    def test_order_by_quantity(self, order_lines, classified):
        result = aggregate_sales_by_segment(
            order_lines, classified, sort_by="total_quantity"
        )
        quantities = [a.total_quantity for a in result]
        assert quantities == sorted(quantities, reverse=True)

    def test_invalid_sort_key(self, order_lines, classified):
        with pytest.raises(ValueError, match="sort_by must be one of"):
            aggregate_sales_by_segment(order_lines, classified, sort_by="segment")

    def test_inputs_not_mutated(self, order_lines, classified):
        lines_before = list(order_lines)
        classified_before = list(classified)
        aggregate_sales_by_segment(order_lines, classified)
        aggregate_monetary_by_segment(classified)
        assert order_lines == lines_before
        assert classified == classified_before


class TestSummarizeSegments:
    """Test the combined segment view."""

    def test_combines_both_views(self, order_lines, classified):
        by_segment = {a.segment: a for a in summarize_segments(order_lines, classified)}
        champions = by_segment[Segment.CHAMPIONS]
        assert champions.customer_count == 2
        assert champions.total_monetary == Decimal("8001")
        assert champions.average_monetary == Decimal("4000.50")
        assert champions.total_quantity == 91
        assert champions.total_sales_amount == Decimal("8001.25")

    def test_unclassified_lines_appended(self, order_lines, classified):
        lines = order_lines + [_line("Z", "10.00", 1)]
        result = summarize_segments(lines, classified)
        assert result[-1].segment is None
        assert result[-1].customer_count == 0
        assert result[-1].total_monetary == Decimal("0")
        assert result[-1].total_quantity == 1

    def test_empty(self):
        assert summarize_segments([], []) == []


class TestCustomerQueries:
    """Test filtering helpers."""

    def test_customers_in_segment(self, classified):
        champions = customers_in_segment(classified, Segment.CHAMPIONS)
        assert [c.customer_id for c in champions] == ["A", "B"]

    def test_customers_in_recency_range_inclusive(self, classified):
        result = customers_in_recency_range(classified, 50, 100)
        assert [c.customer_id for c in result] == ["D", "E"]
        assert [c.customer_id for c in customers_in_recency_range(classified, 60, 60)] == ["D"]

    def test_recency_range_keeps_record_type(self):
        """Summaries and scores can be filtered as well as classified customers."""
        summaries = [
            CustomerSummary("A", date(2005, 5, 1), 30, 1, Decimal("10")),
            CustomerSummary("B", date(2005, 1, 1), 150, 2, Decimal("20")),
        ]
        scores = [
            RFMScore("A", 30, 1, Decimal("10"), 5, 3, 3),
            RFMScore("B", 150, 2, Decimal("20"), 3, 5, 5),
        ]

        [summary] = customers_in_recency_range(summaries, 0, 60)
        [score] = customers_in_recency_range(scores, 100, 200)

        assert isinstance(summary, CustomerSummary)
        assert summary.customer_id == "A"
        assert isinstance(score, RFMScore)
        assert score.customer_id == "B"

    def test_invalid_range(self, classified):
        with pytest.raises(ValueError, match="cannot exceed"):
            customers_in_recency_range(classified, 100, 50)
