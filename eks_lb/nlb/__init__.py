"""
NLB + NGINX Ingress Controller Module
"""

from .functions import create_nlb_resources, nginx_ingress_values, validate_node_port

__all__ = ["create_nlb_resources", "nginx_ingress_values", "validate_node_port"]
