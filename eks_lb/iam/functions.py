"""
IAM Module Functions
Creates IAM roles for the EKS cluster and node groups, and IRSA roles for controllers
"""

import json
import pulumi
import pulumi_aws as aws
from typing import Any, Dict

# Root CA thumbprint of the EKS OIDC endpoints
EKS_OIDC_THUMBPRINT = "9e99a48a9960b14926bb7f3b02e22da2b0ab7280"


def create_cluster_role(name: str, tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create IAM role for EKS cluster

    Args:
        name: Role name
        tags: Additional tags

    Returns:
        Dict with role resource and outputs
    """
    tags = tags or {}

    role = aws.iam.Role(
        f"{name}-cluster-role",
        assume_role_policy=json.dumps({
            "Version": "2012-10-17",
            "Statement": [{
                "Action": "sts:AssumeRole",
                "Effect": "Allow",
                "Principal": {"Service": "eks.amazonaws.com"}
            }]
        }),
        tags={
            **tags,
            "Name": f"{name}-cluster-role",
            "Module": "iam"
        }
    )

    policy_attachment = aws.iam.RolePolicyAttachment(
        f"{name}-cluster-policy",
        policy_arn="arn:aws:iam::aws:policy/AmazonEKSClusterPolicy",
        role=role.name
    )

    return {
        "role": role,
        "policy_attachment": policy_attachment,
        "role_arn": role.arn,
        "role_name": role.name
    }


def create_node_group_role(name: str, tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create IAM role for EKS node group

    Args:
        name: Role name prefix
        tags: Additional tags

    Returns:
        Dict with role resource and outputs
    """
    tags = tags or {}

    role = aws.iam.Role(
        f"{name}-ng-role",
        assume_role_policy=json.dumps({
            "Version": "2012-10-17",
            "Statement": [{
                "Action": "sts:AssumeRole",
                "Effect": "Allow",
                "Principal": {"Service": "ec2.amazonaws.com"}
            }]
        }),
        tags={
            **tags,
            "Name": f"{name}-node-group-role",
            "Module": "iam"
        }
    )

    policies = [
        ("worker", "arn:aws:iam::aws:policy/AmazonEKSWorkerNodePolicy"),
        ("cni", "arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy"),
        ("registry", "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly"),
        ("ssm", "arn:aws:iam::aws:policy/AmazonSSMManagedInstanceCore")
    ]

    policy_attachments = {}
    for policy_name, policy_arn in policies:
        attachment = aws.iam.RolePolicyAttachment(
            f"{name}-node-{policy_name}-policy",
            policy_arn=policy_arn,
            role=role.name
        )
        policy_attachments[f"{policy_name}_policy"] = attachment

    return {
        "role": role,
        "policy_attachments": policy_attachments,
        "role_arn": role.arn,
        "role_name": role.name
    }


def create_oidc_provider(name: str, issuer_url: pulumi.Input[str],
                         tags: Dict[str, str] = None) -> aws.iam.OpenIdConnectProvider:
    """
    Register the cluster OIDC issuer in IAM

    EKS publishes an issuer URL but does not create the IAM provider, IRSA needs both.
    """
    tags = tags or {}

    return aws.iam.OpenIdConnectProvider(
        f"{name}-oidc-provider",
        url=issuer_url,
        client_id_lists=["sts.amazonaws.com"],
        thumbprint_lists=[EKS_OIDC_THUMBPRINT],
        tags={
            **tags,
            "Name": f"{name}-oidc-provider",
            "Module": "iam"
        }
    )


def irsa_trust_policy(oidc_provider_arn: str, issuer_url: str,
                      namespace: str, service_account: str) -> Dict[str, Any]:
    """
    Trust policy letting exactly one Kubernetes service account assume a role

    Args:
        oidc_provider_arn: ARN of the IAM OIDC provider
        issuer_url: Cluster OIDC issuer URL (with or without https://)
        namespace: Service account namespace
        service_account: Service account name

    Returns:
        IAM policy document
    """
    issuer = issuer_url.replace("https://", "")
    return {
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Federated": oidc_provider_arn},
            "Action": "sts:AssumeRoleWithWebIdentity",
            "Condition": {
                "StringEquals": {
                    f"{issuer}:sub": f"system:serviceaccount:{namespace}:{service_account}",
                    f"{issuer}:aud": "sts.amazonaws.com"
                }
            }
        }]
    }


def create_irsa_role(name: str, oidc_provider_arn: pulumi.Input[str], issuer_url: pulumi.Input[str],
                     namespace: str, service_account: str,
                     tags: Dict[str, str] = None) -> aws.iam.Role:
    """
    Create an IAM role assumable by a Kubernetes service account

    Args:
        name: Role resource name
        oidc_provider_arn: ARN of the IAM OIDC provider
        issuer_url: Cluster OIDC issuer URL
        namespace: Service account namespace
        service_account: Service account name
        tags: Additional tags

    Returns:
        IAM role resource
    """
    tags = tags or {}

    return aws.iam.Role(
        name,
        assume_role_policy=pulumi.Output.all(oidc_provider_arn, issuer_url).apply(
            lambda args: json.dumps(irsa_trust_policy(args[0], args[1], namespace, service_account))
        ),
        tags={
            **tags,
            "Name": name,
            "ServiceAccount": f"{namespace}/{service_account}",
            "Module": "iam"
        }
    )


def create_iam_resources(cluster_name: str, tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create IAM resources required before the cluster exists

    Args:
        cluster_name: EKS cluster name
        tags: Additional tags

    Returns:
        Dict with all IAM resources and outputs
    """
    tags = tags or {}

    cluster_role_result = create_cluster_role(cluster_name, tags)
    node_role_result = create_node_group_role(cluster_name, tags)

    return {
        "cluster_role_arn": cluster_role_result["role_arn"],
        "cluster_role_name": cluster_role_result["role_name"],
        "node_group_role_arn": node_role_result["role_arn"],
        "node_group_role_name": node_role_result["role_name"],
        # Keep references to resources for dependencies
        "_cluster_role": cluster_role_result["role"],
        "_node_role": node_role_result["role"],
        "_cluster_policy_attachment": cluster_role_result["policy_attachment"],
        "_node_policy_attachments": node_role_result["policy_attachments"]
    }
