"""
Addons Module Functions
Cluster add-ons installed with Helm and an application composed on top of them
"""

import json
import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s
from typing import Any, Dict, List

from eks_lb.app.functions import (
    alb_ingress_annotations,
    app_labels,
    create_deployment,
    create_ingress,
    create_service,
    ingress_hostname,
)
from eks_lb.iam import create_irsa_role

CLUSTER_AUTOSCALER_SERVICE_ACCOUNT = "cluster-autoscaler"


def create_namespace(name: str, namespace: str, provider: k8s.Provider) -> Dict[str, Any]:
    """
    Create namespace for applications

    Args:
        name: Resource name prefix
        namespace: Namespace name
        provider: Kubernetes provider

    Returns:
        Dict with namespace resource and outputs
    """
    ns = k8s.core.v1.Namespace(
        f"{name}-{namespace}-namespace",
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=namespace,
            labels={
                "name": namespace,
                "managed-by": "pulumi"
            }
        ),
        opts=pulumi.ResourceOptions(provider=provider)
    )

    return {
        "namespace": ns,
        "namespace_name": ns.metadata.name
    }


def deploy_metrics_server(name: str, chart_version: str, provider: k8s.Provider,
                          depends_on: List[pulumi.Resource] = None) -> Dict[str, Any]:
    """
    Deploy metrics server using Helm

    Args:
        name: Release name prefix
        chart_version: metrics-server chart version
        provider: Kubernetes provider
        depends_on: Resources to wait for

    Returns:
        Dict with metrics server resources
    """
    metrics_server = k8s.helm.v3.Release(
        f"{name}-metrics-server",
        repository_opts=k8s.helm.v3.RepositoryOptsArgs(
            repo="https://kubernetes-sigs.github.io/metrics-server/"
        ),
        chart="metrics-server",
        version=chart_version,
        name="metrics-server",
        namespace="kube-system",
        values={
            "args": [
                "--kubelet-preferred-address-types=InternalIP,ExternalIP,Hostname",
                "--kubelet-use-node-status-port",
                "--metric-resolution=15s"
            ]
        },
        opts=pulumi.ResourceOptions(provider=provider, depends_on=depends_on or [])
    )

    return {
        "metrics_server": metrics_server,
        "status": metrics_server.status
    }


def cluster_autoscaler_policy() -> Dict[str, Any]:
    return {
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Action": [
                "autoscaling:DescribeAutoScalingGroups",
                "autoscaling:DescribeAutoScalingInstances",
                "autoscaling:DescribeLaunchConfigurations",
                "autoscaling:DescribeScalingActivities",
                "autoscaling:DescribeTags",
                "ec2:DescribeImages",
                "ec2:DescribeInstanceTypes",
                "ec2:DescribeLaunchTemplateVersions",
                "ec2:GetInstanceTypesFromInstanceRequirements",
                "eks:DescribeNodegroup"
            ],
            "Resource": "*"
        }, {
            "Effect": "Allow",
            "Action": [
                "autoscaling:SetDesiredCapacity",
                "autoscaling:TerminateInstanceInAutoScalingGroup"
            ],
            "Resource": "*"
        }]
    }


def cluster_autoscaler_values(cluster_name: str, region: str, role_arn: str) -> Dict[str, Any]:
    """
    Helm values for cluster-autoscaler using ASG auto-discovery by cluster tag
    """
    return {
        "cloudProvider": "aws",
        "awsRegion": region,
        "autoDiscovery": {
            "clusterName": cluster_name
        },
        "rbac": {
            "serviceAccount": {
                "create": True,
                "name": CLUSTER_AUTOSCALER_SERVICE_ACCOUNT,
                "annotations": {
                    "eks.amazonaws.com/role-arn": role_arn
                }
            }
        },
        "extraArgs": {
            "balance-similar-node-groups": True,
            "skip-nodes-with-system-pods": False,
            "expander": "least-waste"
        }
    }


def deploy_cluster_autoscaler(cluster_name: str, region: str, chart_version: str,
                              oidc_provider_arn: pulumi.Output[str], oidc_issuer: pulumi.Output[str],
                              provider: k8s.Provider,
                              depends_on: List[pulumi.Resource] = None,
                              tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Deploy cluster-autoscaler with its own IRSA role

    Args:
        cluster_name: EKS cluster name (matches node group auto-discovery tags)
        region: AWS region
        chart_version: cluster-autoscaler chart version
        oidc_provider_arn: IAM OIDC provider ARN
        oidc_issuer: Cluster OIDC issuer URL
        provider: Kubernetes provider
        depends_on: Resources to wait for
        tags: Additional tags

    Returns:
        Dict with cluster autoscaler resources
    """
    role = create_irsa_role(
        f"{cluster_name}-cluster-autoscaler-role",
        oidc_provider_arn,
        oidc_issuer,
        "kube-system",
        CLUSTER_AUTOSCALER_SERVICE_ACCOUNT,
        tags
    )

    aws.iam.RolePolicy(
        f"{cluster_name}-cluster-autoscaler-policy",
        role=role.id,
        policy=json.dumps(cluster_autoscaler_policy())
    )

    release = k8s.helm.v3.Release(
        f"{cluster_name}-cluster-autoscaler",
        repository_opts=k8s.helm.v3.RepositoryOptsArgs(
            repo="https://kubernetes.github.io/autoscaler"
        ),
        chart="cluster-autoscaler",
        version=chart_version,
        name="cluster-autoscaler",
        namespace="kube-system",
        values=role.arn.apply(lambda arn: cluster_autoscaler_values(cluster_name, region, arn)),
        opts=pulumi.ResourceOptions(provider=provider, depends_on=depends_on or [])
    )

    return {
        "cluster_autoscaler": release,
        "role_arn": role.arn,
        "status": release.status
    }


def create_horizontal_pod_autoscaler(name: str, namespace: str, min_replicas: int, max_replicas: int,
                                     provider: k8s.Provider,
                                     depends_on: List[pulumi.Resource] = None,
                                     cpu_utilization: int = 70) -> k8s.autoscaling.v2.HorizontalPodAutoscaler:
    """
    Scale a Deployment on CPU utilization reported by metrics-server
    """
    if min_replicas > max_replicas:
        raise Exception(f"min_replicas ({min_replicas}) must not exceed max_replicas ({max_replicas})")

    return k8s.autoscaling.v2.HorizontalPodAutoscaler(
        f"{name}-hpa",
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=name,
            namespace=namespace,
            labels={**app_labels(name), "managed-by": "pulumi"}
        ),
        spec=k8s.autoscaling.v2.HorizontalPodAutoscalerSpecArgs(
            scale_target_ref=k8s.autoscaling.v2.CrossVersionObjectReferenceArgs(
                api_version="apps/v1",
                kind="Deployment",
                name=name
            ),
            min_replicas=min_replicas,
            max_replicas=max_replicas,
            metrics=[k8s.autoscaling.v2.MetricSpecArgs(
                type="Resource",
                resource=k8s.autoscaling.v2.ResourceMetricSourceArgs(
                    name="cpu",
                    target=k8s.autoscaling.v2.MetricTargetArgs(
                        type="Utilization",
                        average_utilization=cpu_utilization
                    )
                )
            )]
        ),
        opts=pulumi.ResourceOptions(provider=provider, depends_on=depends_on or [])
    )


def create_composed_app(name: str, namespace: str, image: str, min_replicas: int, max_replicas: int,
                        provider: k8s.Provider, controller_release=None, metrics_server=None,
                        certificate_arn: str = "", tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Deploy an application wired to the add-ons it relies on

    The Ingress waits for the load balancer controller and the HPA waits for metrics-server,
    so Pulumi creates them in that order.
    """
    namespace_result = create_namespace(name, namespace, provider)
    ns = namespace_result["namespace"]

    # spec.replicas is left unset, the HPA owns the replica count
    deployment = create_deployment(name, namespace, image, None, provider, depends_on=[ns])
    service = create_service(name, namespace, provider, depends_on=[deployment])

    ingress_depends_on = [service]
    if controller_release:
        ingress_depends_on.append(controller_release)
    ingress = create_ingress(
        name,
        namespace,
        name,
        alb_ingress_annotations(certificate_arn=certificate_arn, group_name=name, tags=tags),
        provider,
        depends_on=ingress_depends_on
    )

    hpa_depends_on = [deployment]
    if metrics_server:
        hpa_depends_on.append(metrics_server)
    hpa = create_horizontal_pod_autoscaler(name, namespace, min_replicas, max_replicas, provider,
                                           depends_on=hpa_depends_on)

    return {
        "namespace_name": namespace_result["namespace_name"],
        "ingress_hostname": ingress_hostname(ingress),
        # Keep references to resources for dependencies
        "_deployment": deployment,
        "_service": service,
        "_ingress": ingress,
        "_hpa": hpa
    }


def create_addons_resources(cluster_name: str, region: str,
                            oidc_provider_arn: pulumi.Output[str], oidc_issuer: pulumi.Output[str],
                            provider: k8s.Provider,
                            node_group=None,
                            controller_release=None,
                            metrics_server_chart_version: str = "3.12.1",
                            cluster_autoscaler_chart_version: str = "9.37.0",
                            app_name: str = "web-app",
                            app_image: str = "nginx:1.27",
                            app_min_replicas: int = 2,
                            app_max_replicas: int = 10,
                            certificate_arn: str = "",
                            tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create cluster add-ons and the composed application

    Args:
        cluster_name: EKS cluster name
        region: AWS region
        oidc_provider_arn: IAM OIDC provider ARN
        oidc_issuer: Cluster OIDC issuer URL
        provider: Kubernetes provider
        node_group: Node group add-ons are scheduled on
        controller_release: AWS Load Balancer Controller release, if installed
        metrics_server_chart_version: metrics-server chart version
        cluster_autoscaler_chart_version: cluster-autoscaler chart version
        app_name: Composed application name (also its namespace)
        app_image: Composed application image
        app_min_replicas: HPA minimum
        app_max_replicas: HPA maximum
        certificate_arn: Optional ACM certificate for HTTPS
        tags: Additional tags

    Returns:
        Dict with all addon resources and status
    """
    tags = tags or {}
    base_depends_on = [node_group] if node_group else []

    if controller_release is None:
        pulumi.log.warn(f"{app_name} Ingress has no AWS Load Balancer Controller to reconcile it in this stack")

    metrics_server_result = deploy_metrics_server(
        cluster_name,
        metrics_server_chart_version,
        provider,
        depends_on=base_depends_on
    )

    autoscaler_result = deploy_cluster_autoscaler(
        cluster_name,
        region,
        cluster_autoscaler_chart_version,
        oidc_provider_arn,
        oidc_issuer,
        provider,
        depends_on=base_depends_on,
        tags=tags
    )

    app_result = create_composed_app(
        app_name,
        app_name,
        app_image,
        app_min_replicas,
        app_max_replicas,
        provider,
        controller_release=controller_release,
        metrics_server=metrics_server_result["metrics_server"],
        certificate_arn=certificate_arn,
        tags=tags
    )

    return {
        "metrics_server_status": metrics_server_result["status"],
        "cluster_autoscaler_status": autoscaler_result["status"],
        "cluster_autoscaler_role_arn": autoscaler_result["role_arn"],
        "app_namespace": app_result["namespace_name"],
        "app_ingress_hostname": app_result["ingress_hostname"],
        # Keep references to resources for dependencies
        "_metrics_server": metrics_server_result["metrics_server"],
        "_cluster_autoscaler": autoscaler_result["cluster_autoscaler"],
        "_app": app_result
    }
