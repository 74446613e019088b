from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
import math
import random
from typing import Dict, List, Optional

import numpy as np

from rfm_segmentation.foundation.order_lines import DEFAULT_DATE_FORMAT


@dataclass(frozen=True)
class OrderRowConfig:
    """Configuration for synthetic order-line rows.

    Attributes
    ----------
    mean_orders_per_customer: Average distinct orders per customer (at least one is always drawn).
    max_lines_per_order: Upper bound on lines per order (uniform 1..max).
    mean_unit_price: Average item price used to sample line values.
    price_variability: Coefficient in (0, 1] controlling price variance.
    quantity_mean: Average quantity per order line.
    seed: Optional RNG seed for reproducibility.
    """

    mean_orders_per_customer: float = 3.0
    max_lines_per_order: int = 3
    mean_unit_price: float = 90.0
    price_variability: float = 0.4
    quantity_mean: float = 30.0
    seed: Optional[int] = None


def _sample_price(rng: random.Random, mean: float, variability: float) -> float:
    variability = min(max(variability, 0.01), 1.0)
    sigma = variability
    mu = math.log(max(mean, 0.01)) - 0.5 * sigma * sigma
    return round(max(math.exp(rng.normalvariate(mu, sigma)), 0.01), 2)


def _sample_quantity(rng: random.Random, mean_q: float) -> int:
    q = max(1.0, rng.lognormvariate(mu=math.log(max(mean_q, 0.1)), sigma=0.5))
    return max(1, int(round(q)))


def generate_order_rows(
    n_customers: int,
    start: date,
    end: date,
    *,
    config: Optional[OrderRowConfig] = None,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> List[Dict[str, object]]:
    """Generate raw order-line rows for ``n_customers`` customers.

    Rows use the normalizer's default keys and carry the order date as a
    string in ``date_format``, so they exercise date parsing end to end.
    Every customer has at least one order; all lines of an order share
    its date.
    """

    if n_customers <= 0:
        return []
    if start > end:
        raise ValueError("start date must be <= end date")
    config = config or OrderRowConfig()
    if config.max_lines_per_order < 1:
        raise ValueError("max_lines_per_order must be >= 1")

    rng = random.Random(config.seed)
    order_counts = np.random.default_rng(config.seed).poisson(
        max(config.mean_orders_per_customer - 1, 0.0), size=n_customers
    )
    total_days = (end - start).days + 1

    rows: List[Dict[str, object]] = []
    order_seq = 10100
    for i in range(n_customers):
        customer_id = f"Customer {i + 1:04d}"
        num_orders = 1 + int(order_counts[i])
        for _ in range(num_orders):
            order_date = start + timedelta(days=rng.randrange(total_days))
            order_id = str(order_seq)
            order_seq += 1
            for _line in range(1 + rng.randrange(config.max_lines_per_order)):
                quantity = _sample_quantity(rng, config.quantity_mean)
                price = _sample_price(rng, config.mean_unit_price, config.price_variability)
                rows.append(
                    {
                        "customer_id": customer_id,
                        "order_id": order_id,
                        "order_date": order_date.strftime(date_format),
                        "sales_amount": round(price * quantity, 2),
                        "quantity": quantity,
                    }
                )

    return rows
