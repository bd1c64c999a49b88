"""SPACE, FLOW and DORA metrics over the canonical activity log."""

from teampulse.metrics.service import MetricsService
from teampulse.metrics.space import SpaceMetrics, calculate_space_metrics, get_org_space_overview
from teampulse.metrics.flow import FlowMetrics, calculate_flow_metrics, get_org_flow_overview
from teampulse.metrics.dora import DoraMetrics, calculate_dora_metrics, get_org_dora_overview

__all__ = [
    "MetricsService",
    "SpaceMetrics",
    "FlowMetrics",
    "DoraMetrics",
    "calculate_space_metrics",
    "calculate_flow_metrics",
    "calculate_dora_metrics",
    "get_org_space_overview",
    "get_org_flow_overview",
    "get_org_dora_overview",
]
