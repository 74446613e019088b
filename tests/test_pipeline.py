"""End-to-end tests for the RFM segmentation pipeline."""

from collections import Counter
from datetime import date
from decimal import Decimal

import pytest

from rfm_segmentation import RFMPipelineConfig, run_rfm_pipeline
from rfm_segmentation.foundation.order_lines import ParseError
from rfm_segmentation.foundation.segments import Segment
from rfm_segmentation.synthetic import OrderRowConfig, generate_order_rows


def _row(customer_id, order_id, order_date, sales_amount, quantity=1):
    return {
        "customer_id": customer_id,
        "order_id": order_id,
        "order_date": order_date,
        "sales_amount": sales_amount,
        "quantity": quantity,
    }


@pytest.fixture
def five_customer_rows():
    """A, B and C plus two filler customers so that N = 5.

    B's last order (31/05/05) is the latest in the dataset, so recency is
    measured from there: A 8 days, B 0, C 198, D 48, E 98.
    """
    return [
        # A: one order, 100
        _row("A", "1001", "23/05/05", "60.00", 2),
        _row("A", "1001", "23/05/05", "40.00", 1),
        # B: five orders, 5000
        _row("B", "2001", "02/01/05", "1000.00", 10),
        _row("B", "2002", "15/02/05", "1000.00", 10),
        _row("B", "2003", "01/03/05", "1000.00", 10),
        _row("B", "2004", "20/04/05", "600.00", 6),
        _row("B", "2004", "20/04/05", "400.00", 4),
        _row("B", "2005", "31/05/05", "1000.00", 10),
        # C: one order, 50
        _row("C", "3001", "14/11/04", "50.00", 1),
        # D: three orders, 300
        _row("D", "4001", "10/01/05", "100.00", 3),
        _row("D", "4002", "10/02/05", "100.00", 3),
        _row("D", "4003", "13/04/05", "100.00", 3),
        # E: two orders, 800
        _row("E", "5001", "05/01/05", "400.00", 4),
        _row("E", "5002", "22/02/05", "400.00", 4),
    ]


class TestFiveCustomerScenario:
    """Worked example with one customer per quintile."""

    def test_customer_summaries(self, five_customer_rows):
        result = run_rfm_pipeline(five_customer_rows)
        summaries = {s.customer_id: s for s in result.customer_summaries}

        assert {c: s.recency_days for c, s in summaries.items()} == {
            "A": 8,
            "B": 0,
            "C": 198,
            "D": 48,
            "E": 98,
        }
        assert {c: s.frequency for c, s in summaries.items()} == {
            "A": 1,
            "B": 5,
            "C": 1,
            "D": 3,
            "E": 2,
        }
        assert summaries["B"].monetary == Decimal("5000")
        assert summaries["B"].last_order_date == date(2005, 5, 31)

    def test_each_score_used_once_per_dimension(self, five_customer_rows):
        result = run_rfm_pipeline(five_customer_rows)
        for attr in ("r_score", "f_score", "m_score"):
            assert sorted(getattr(s, attr) for s in result.rfm_scores) == [1, 2, 3, 4, 5]

    def test_best_customer_is_champion(self, five_customer_rows):
        """B is most recent, most frequent and highest spend: 555 Champions."""
        result = run_rfm_pipeline(five_customer_rows)
        customers = {c.customer_id: c for c in result.classified_customers}

        b = customers["B"]
        assert (b.r_score, b.f_score, b.m_score) == (5, 5, 5)
        assert b.combination_code == 555
        assert b.total_score == 15
        assert b.segment is Segment.CHAMPIONS

    def test_other_customers(self, five_customer_rows):
        """A and C tie on frequency; customer_id order puts A first."""
        result = run_rfm_pipeline(five_customer_rows)
        codes = {c.customer_id: c.combination_code for c in result.classified_customers}
        segments = {c.customer_id: c.segment for c in result.classified_customers}

        assert codes == {"A": 412, "B": 555, "C": 121, "D": 343, "E": 234}
        assert segments["A"] is Segment.POTENTIAL_LOYALISTS
        assert segments["C"] is Segment.OTHER
        assert segments["D"] is Segment.POTENTIAL_LOYALISTS
        assert segments["E"] is Segment.OTHER

    def test_segment_aggregates(self, five_customer_rows):
        result = run_rfm_pipeline(five_customer_rows)
        by_segment = {a.segment: a for a in result.segment_aggregates}

        loyalists = by_segment[Segment.POTENTIAL_LOYALISTS]
        assert loyalists.customer_count == 2
        assert loyalists.total_monetary == Decimal("400")
        assert loyalists.average_monetary == Decimal("200.00")
        assert loyalists.total_quantity == 12
        assert loyalists.total_sales_amount == Decimal("400.00")

        assert [a.segment for a in result.monetary_by_segment] == [
            Segment.CHAMPIONS,
            Segment.OTHER,
            Segment.POTENTIAL_LOYALISTS,
        ]


class TestPipelineEdgeCases:
    """Empty input, invalid dates and configuration."""

    def test_empty_input_gives_empty_outputs(self):
        result = run_rfm_pipeline([])
        assert result.order_lines == []
        assert result.customer_summaries == []
        assert result.rfm_scores == []
        assert result.classified_customers == []
        assert result.monetary_by_segment == []
        assert result.sales_by_segment == []
        assert result.segment_aggregates == []

    def test_invalid_date_aborts_by_default(self, five_customer_rows):
        rows = five_customer_rows + [_row("F", "6001", "31/06/05", "10.00")]
        with pytest.raises(ParseError):
            run_rfm_pipeline(rows)

    def test_invalid_date_skipped_when_configured(self, five_customer_rows):
        rows = five_customer_rows + [_row("F", "6001", "31/06/05", "10.00")]
        result = run_rfm_pipeline(rows, RFMPipelineConfig(on_parse_error="skip"))
        assert len(result.order_lines) == len(five_customer_rows)
        assert "F" not in {c.customer_id for c in result.classified_customers}

    def test_column_name_overrides(self):
        rows = [
            {
                "CUSTOMERNAME": "Mini Gifts Distributors Ltd.",
                "ORDERNUMBER": 10124,
                "ORDERDATE": "21/05/03",
                "SALES": 3746.7,
                "QUANTITYORDERED": 21,
            }
        ]
        config = RFMPipelineConfig(
            column_names={
                "customer_id": "CUSTOMERNAME",
                "order_id": "ORDERNUMBER",
                "order_date": "ORDERDATE",
                "sales_amount": "SALES",
                "quantity": "QUANTITYORDERED",
            }
        )
        [customer] = run_rfm_pipeline(rows, config).classified_customers
        assert customer.customer_id == "Mini Gifts Distributors Ltd."
        assert customer.monetary == Decimal("3747")

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"on_parse_error": "ignore"}, "on_parse_error must be one of"),
            ({"column_names": {"customer": "x"}}, "Unknown column name overrides"),
            ({"parallel_threshold": 0}, "parallel_threshold must be positive"),
            ({"n_workers": 0}, "n_workers must be positive"),
        ],
    )
    def test_invalid_config(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            RFMPipelineConfig(**kwargs)

    def test_column_kwargs_defaults(self):
        assert RFMPipelineConfig().column_kwargs() == {
            "customer_id_col": "customer_id",
            "order_id_col": "order_id",
            "order_date_col": "order_date",
            "sales_amount_col": "sales_amount",
            "quantity_col": "quantity",
        }


class TestPipelineProperties:
    """Properties over synthetic datasets."""

    @pytest.fixture(scope="class")
    def synthetic_rows(self):
        return generate_order_rows(
            137,
            date(2003, 1, 1),
            date(2005, 5, 31),
            config=OrderRowConfig(seed=42),
        )

    def test_idempotent(self, synthetic_rows):
        assert run_rfm_pipeline(synthetic_rows) == run_rfm_pipeline(synthetic_rows)

    def test_input_order_does_not_matter(self, synthetic_rows):
        reversed_result = run_rfm_pipeline(list(reversed(synthetic_rows)))
        result = run_rfm_pipeline(synthetic_rows)
        assert reversed_result.classified_customers == result.classified_customers
        assert reversed_result.monetary_by_segment == result.monetary_by_segment

    def test_quintile_partition(self, synthetic_rows):
        result = run_rfm_pipeline(synthetic_rows)
        for attr in ("r_score", "f_score", "m_score"):
            counts = Counter(getattr(s, attr) for s in result.rfm_scores)
            assert set(counts) == {1, 2, 3, 4, 5}
            assert max(counts.values()) - min(counts.values()) <= 1

    def test_recency_zero_for_most_recent(self, synthetic_rows):
        result = run_rfm_pipeline(synthetic_rows)
        assert min(s.recency_days for s in result.customer_summaries) == 0

    def test_monetary_conservation(self, synthetic_rows):
        """No customer is dropped or double-counted by the segment view."""
        result = run_rfm_pipeline(synthetic_rows)
        assert sum(a.total_monetary for a in result.monetary_by_segment) == sum(
            s.monetary for s in result.customer_summaries
        )
        assert sum(a.customer_count for a in result.monetary_by_segment) == len(
            result.customer_summaries
        )

    def test_sales_conservation(self, synthetic_rows):
        result = run_rfm_pipeline(synthetic_rows)
        assert sum(a.total_quantity for a in result.sales_by_segment) == sum(
            line.quantity for line in result.order_lines
        )
        assert sum(a.total_sales_amount for a in result.sales_by_segment) == sum(
            line.sales_amount for line in result.order_lines
        )
        assert None not in {a.segment for a in result.sales_by_segment}

    def test_segments_match_table(self, synthetic_rows):
        from rfm_segmentation.foundation.segments import classify_code

        result = run_rfm_pipeline(synthetic_rows)
        for customer in result.classified_customers:
            assert customer.segment is classify_code(customer.combination_code)
