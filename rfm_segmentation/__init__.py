"""RFM segmentation of customers from transactional order lines."""

from .pipeline import (
    RFMPipelineConfig,
    RFMPipelineResult,
    run_rfm_pipeline,
    run_rfm_pipeline_on_order_lines,
)

__version__ = "0.1.0"

__all__ = [
    "RFMPipelineConfig",
    "RFMPipelineResult",
    "run_rfm_pipeline",
    "run_rfm_pipeline_on_order_lines",
]
