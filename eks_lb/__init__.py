"""
Pulumi modules for provisioning AWS load balancers in front of EKS
Simple function-based approach, one package per concern
"""

from .vpc import create_vpc_resources
from .iam import create_iam_resources
from .eks import create_eks_resources
from .alb_controller import create_alb_controller_resources
from .app import create_app_manifests, create_app_chart_release
from .nlb import create_nlb_resources
from .addons import create_addons_resources

__all__ = [
    "create_vpc_resources",
    "create_iam_resources",
    "create_eks_resources",
    "create_alb_controller_resources",
    "create_app_manifests",
    "create_app_chart_release",
    "create_nlb_resources",
    "create_addons_resources"
]
