# repguard/metrics/__init__.py
"""
Thin re-export layer: `from repguard.metrics import build_metrics`.
"""
from .registry import GuardMetrics, build_metrics

__all__ = [
    "GuardMetrics",
    "build_metrics",
]
