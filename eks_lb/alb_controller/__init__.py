"""
AWS Load Balancer Controller Module
"""

from .functions import create_alb_controller_resources, load_balancer_controller_values
from .policy import load_balancer_controller_policy

__all__ = [
    "create_alb_controller_resources",
    "load_balancer_controller_values",
    "load_balancer_controller_policy"
]
