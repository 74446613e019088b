"""Synthetic order data for exercising the segmentation pipeline.

Produces realistic-but-fake order-line rows so the pipeline can be run
end to end without production sales data.
"""

from .generator import OrderRowConfig, generate_order_rows

__all__ = [
    "OrderRowConfig",
    "generate_order_rows",
]
