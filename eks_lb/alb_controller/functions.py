"""
AWS Load Balancer Controller Module Functions
IRSA role + ServiceAccount + Helm release of aws-load-balancer-controller
"""

import json
import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s
from typing import Any, Dict, List

from eks_lb.iam import create_irsa_role
from .policy import load_balancer_controller_policy

CONTROLLER_NAMESPACE = "kube-system"
CONTROLLER_SERVICE_ACCOUNT = "aws-load-balancer-controller"
EKS_CHARTS_REPO = "https://aws.github.io/eks-charts"


def load_balancer_controller_values(cluster_name: str, region: str, vpc_id: str,
                                    service_account_name: str = CONTROLLER_SERVICE_ACCOUNT,
                                    replicas: int = 2) -> Dict[str, Any]:
    """
    Helm values for the controller chart

    The ServiceAccount is created outside the chart so it can carry the IRSA annotation.
    """
    return {
        "clusterName": cluster_name,
        "region": region,
        "vpcId": vpc_id,
        "replicaCount": replicas,
        "serviceAccount": {
            "create": False,
            "name": service_account_name
        },
        "podDisruptionBudget": {
            "maxUnavailable": 1
        },
        "enableServiceMutatorWebhook": False
    }


def create_controller_service_account(name: str, role_arn: pulumi.Output[str],
                                      provider: k8s.Provider) -> k8s.core.v1.ServiceAccount:
    """
    Create the controller ServiceAccount annotated with its IAM role
    """
    return k8s.core.v1.ServiceAccount(
        f"{name}-alb-controller-sa",
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=CONTROLLER_SERVICE_ACCOUNT,
            namespace=CONTROLLER_NAMESPACE,
            labels={
                "app.kubernetes.io/name": CONTROLLER_SERVICE_ACCOUNT,
                "managed-by": "pulumi"
            },
            annotations={
                "eks.amazonaws.com/role-arn": role_arn
            }
        ),
        opts=pulumi.ResourceOptions(provider=provider)
    )


def deploy_alb_controller(name: str, cluster_name: pulumi.Output[str], region: str,
                          vpc_id: pulumi.Output[str], chart_version: str, replicas: int,
                          provider: k8s.Provider,
                          depends_on: List[pulumi.Resource]) -> k8s.helm.v3.Release:
    """
    Install the controller chart from the EKS charts repository
    """
    values = pulumi.Output.all(cluster_name, vpc_id).apply(
        lambda args: load_balancer_controller_values(args[0], region, args[1], replicas=replicas)
    )

    return k8s.helm.v3.Release(
        f"{name}-aws-load-balancer-controller",
        repository_opts=k8s.helm.v3.RepositoryOptsArgs(
            repo=EKS_CHARTS_REPO
        ),
        chart="aws-load-balancer-controller",
        version=chart_version,
        name="aws-load-balancer-controller",
        namespace=CONTROLLER_NAMESPACE,
        values=values,
        opts=pulumi.ResourceOptions(provider=provider, depends_on=depends_on)
    )


def create_alb_controller_resources(cluster_name: str, region: str,
                                    cluster: aws.eks.Cluster,
                                    vpc_id: pulumi.Output[str],
                                    oidc_provider_arn: pulumi.Output[str],
                                    oidc_issuer: pulumi.Output[str],
                                    provider: k8s.Provider,
                                    node_group=None,
                                    chart_version: str = "1.8.1",
                                    replicas: int = 2,
                                    tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create the AWS Load Balancer Controller

    Args:
        cluster_name: EKS cluster name
        region: AWS region
        cluster: EKS cluster resource
        vpc_id: VPC ID the controller manages load balancers in
        oidc_provider_arn: IAM OIDC provider ARN
        oidc_issuer: Cluster OIDC issuer URL
        provider: Kubernetes provider
        node_group: Node group the controller pods need to be scheduled on
        chart_version: aws-load-balancer-controller chart version
        replicas: Controller replica count
        tags: Additional tags

    Returns:
        Dict with controller resources
    """
    tags = tags or {}

    policy = aws.iam.Policy(
        f"{cluster_name}-alb-controller-policy",
        description="Permissions for the AWS Load Balancer Controller",
        policy=json.dumps(load_balancer_controller_policy()),
        tags={
            **tags,
            "Name": f"{cluster_name}-alb-controller-policy",
            "Module": "alb_controller"
        }
    )

    role = create_irsa_role(
        f"{cluster_name}-alb-controller-role",
        oidc_provider_arn,
        oidc_issuer,
        CONTROLLER_NAMESPACE,
        CONTROLLER_SERVICE_ACCOUNT,
        tags
    )

    attachment = aws.iam.RolePolicyAttachment(
        f"{cluster_name}-alb-controller-policy-attachment",
        role=role.name,
        policy_arn=policy.arn
    )

    service_account = create_controller_service_account(cluster_name, role.arn, provider)

    depends_on = [service_account, attachment]
    if node_group:
        depends_on.append(node_group)

    pulumi.log.info(f"Installing aws-load-balancer-controller {chart_version} into {CONTROLLER_NAMESPACE}")
    release = deploy_alb_controller(
        cluster_name,
        cluster.name,
        region,
        vpc_id,
        chart_version,
        replicas,
        provider,
        depends_on
    )

    return {
        "role_arn": role.arn,
        "policy_arn": policy.arn,
        "release_status": release.status,
        # Keep references to resources for dependencies
        "_role": role,
        "_service_account": service_account,
        "_release": release
    }
