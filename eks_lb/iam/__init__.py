"""
IAM Module for EKS and IRSA
"""

from .functions import (
    create_iam_resources,
    create_oidc_provider,
    create_irsa_role,
    irsa_trust_policy,
)

__all__ = [
    "create_iam_resources",
    "create_oidc_provider",
    "create_irsa_role",
    "irsa_trust_policy"
]
