"""
EKS Module
"""

from .functions import create_eks_resources, create_kubernetes_provider, build_kubeconfig

__all__ = ["create_eks_resources", "create_kubernetes_provider", "build_kubeconfig"]
