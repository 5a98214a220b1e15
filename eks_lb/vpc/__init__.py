"""
VPC Module for EKS
"""

from .functions import create_vpc_resources, create_subnets, subnet_tags

__all__ = ["create_vpc_resources", "create_subnets", "subnet_tags"]
