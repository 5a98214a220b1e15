"""
Addons Module
"""

from .functions import (
    cluster_autoscaler_values,
    create_addons_resources,
    create_composed_app,
)

__all__ = [
    "cluster_autoscaler_values",
    "create_addons_resources",
    "create_composed_app"
]
