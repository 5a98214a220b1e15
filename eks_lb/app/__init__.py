"""
Application Module (ALB Ingress)
"""

from .functions import (
    alb_ingress_annotations,
    chart_values,
    create_app_chart_release,
    create_app_manifests,
    deep_merge,
)

__all__ = [
    "alb_ingress_annotations",
    "chart_values",
    "create_app_chart_release",
    "create_app_manifests",
    "deep_merge"
]
