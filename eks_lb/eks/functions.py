"""
EKS Module Functions
Creates EKS cluster, managed node group, core add-ons and the Kubernetes provider
"""

import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s
from typing import Any, Dict, List


def build_kubeconfig(endpoint: str, ca_data: str, cluster_name: str) -> str:
    """
    Render a kubeconfig that authenticates with `aws eks get-token`
    """
    return f"""apiVersion: v1
clusters:
- cluster:
    certificate-authority-data: {ca_data}
    server: {endpoint}
  name: {cluster_name}
contexts:
- context:
    cluster: {cluster_name}
    user: {cluster_name}
  name: {cluster_name}
current-context: {cluster_name}
kind: Config
users:
- name: {cluster_name}
  user:
    exec:
      apiVersion: client.authentication.k8s.io/v1beta1
      command: aws
      args:
        - eks
        - get-token
        - --cluster-name
        - {cluster_name}
"""


def create_eks_cluster(name: str, version: str, role_arn: pulumi.Output[str],
                       subnet_ids: List[pulumi.Output[str]],
                       enabled_log_types: List[str] = None,
                       depends_on: List[pulumi.Resource] = None,
                       tags: Dict[str, str] = None) -> aws.eks.Cluster:
    """
    Create EKS cluster

    Args:
        name: Cluster name
        version: Kubernetes version
        role_arn: IAM role ARN for cluster
        subnet_ids: Public and private subnet IDs
        enabled_log_types: Control plane log types
        depends_on: Resources the cluster must wait for (role policy attachments)
        tags: Additional tags

    Returns:
        Cluster resource
    """
    tags = tags or {}
    enabled_log_types = enabled_log_types or ["api", "audit", "authenticator"]

    return aws.eks.Cluster(
        f"{name}-cluster",
        name=name,
        version=version,
        role_arn=role_arn,
        vpc_config=aws.eks.ClusterVpcConfigArgs(
            subnet_ids=subnet_ids,
            endpoint_private_access=True,
            endpoint_public_access=True
        ),
        access_config=aws.eks.ClusterAccessConfigArgs(
            authentication_mode="API_AND_CONFIG_MAP"
        ),
        enabled_cluster_log_types=enabled_log_types,
        tags={
            **tags,
            "Name": f"{name}-cluster",
            "Module": "eks"
        },
        opts=pulumi.ResourceOptions(depends_on=depends_on or [])
    )


def create_node_group(name: str, cluster_name: pulumi.Output[str], role_arn: pulumi.Output[str],
                      subnet_ids: List[pulumi.Output[str]], instance_types: List[str],
                      desired_size: int, max_size: int, min_size: int, disk_size: int,
                      depends_on: List[pulumi.Resource] = None,
                      tags: Dict[str, str] = None) -> aws.eks.NodeGroup:
    """
    Create EKS managed node group

    EKS tags the backing Auto Scaling group for cluster-autoscaler auto-discovery itself.
    Tags set here stay on the node group resource and do not reach the ASG.
    """
    tags = tags or {}

    return aws.eks.NodeGroup(
        f"{name}-node-group",
        cluster_name=cluster_name,
        node_group_name=f"{name}-nodes",
        node_role_arn=role_arn,
        subnet_ids=subnet_ids,
        capacity_type="ON_DEMAND",
        instance_types=instance_types,
        disk_size=disk_size,
        scaling_config=aws.eks.NodeGroupScalingConfigArgs(
            desired_size=desired_size,
            max_size=max_size,
            min_size=min_size
        ),
        update_config=aws.eks.NodeGroupUpdateConfigArgs(
            max_unavailable_percentage=25
        ),
        tags={
            **tags,
            "Name": f"{name}-node-group",
            "Module": "eks"
        },
        opts=pulumi.ResourceOptions(
            depends_on=depends_on or [],
            # cluster-autoscaler owns desired_size once installed
            ignore_changes=["scalingConfig.desiredSize"]
        )
    )


def create_eks_addons(name: str, cluster_name: pulumi.Output[str], node_group=None,
                      tags: Dict[str, str] = None) -> Dict[str, aws.eks.Addon]:
    """
    Create the core EKS managed add-ons

    CoreDNS needs schedulable nodes, so it waits for the node group.
    """
    tags = tags or {}
    addons = {}

    for addon_name in ["vpc-cni", "coredns", "kube-proxy"]:
        opts = pulumi.ResourceOptions()
        if addon_name == "coredns" and node_group:
            opts = pulumi.ResourceOptions(depends_on=[node_group])

        addons[addon_name.replace("-", "_")] = aws.eks.Addon(
            f"{name}-{addon_name}-addon",
            cluster_name=cluster_name,
            addon_name=addon_name,
            resolve_conflicts_on_create="OVERWRITE",
            resolve_conflicts_on_update="OVERWRITE",
            tags={
                **tags,
                "Name": f"{name}-{addon_name}-addon",
                "Module": "eks"
            },
            opts=opts
        )

    return addons


def create_kubernetes_provider(name: str, cluster: aws.eks.Cluster) -> Dict[str, Any]:
    """
    Create Kubernetes provider for EKS cluster

    Args:
        name: Provider name prefix
        cluster: EKS cluster resource

    Returns:
        Dict with provider and rendered kubeconfig
    """
    kubeconfig = pulumi.Output.all(
        cluster.endpoint,
        cluster.certificate_authority.data,
        cluster.name
    ).apply(lambda args: build_kubeconfig(args[0], args[1], args[2]))

    provider = k8s.Provider(
        f"{name}-k8s-provider",
        kubeconfig=kubeconfig,
        opts=pulumi.ResourceOptions(depends_on=[cluster])
    )

    return {
        "provider": provider,
        "kubeconfig": kubeconfig
    }


def create_eks_resources(cluster_name: str, cluster_version: str,
                         cluster_role_arn: pulumi.Output[str], node_group_role_arn: pulumi.Output[str],
                         public_subnet_ids: List[pulumi.Output[str]],
                         private_subnet_ids: List[pulumi.Output[str]],
                         node_instance_types: List[str],
                         node_desired_size: int, node_max_size: int, node_min_size: int,
                         node_disk_size: int,
                         cluster_enabled_log_types: List[str] = None,
                         cluster_depends_on: List[pulumi.Resource] = None,
                         node_depends_on: List[pulumi.Resource] = None,
                         tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create complete EKS infrastructure

    Args:
        cluster_name: EKS cluster name
        cluster_version: Kubernetes version
        cluster_role_arn: IAM role ARN for cluster
        node_group_role_arn: IAM role ARN for node group
        public_subnet_ids: Public subnet IDs (internet-facing load balancers)
        private_subnet_ids: Private subnet IDs (nodes)
        node_instance_types: List of EC2 instance types
        node_desired_size: Desired number of nodes
        node_max_size: Maximum number of nodes
        node_min_size: Minimum number of nodes
        node_disk_size: EBS volume size in GB
        cluster_enabled_log_types: Control plane log types
        cluster_depends_on: Resources the cluster waits for
        node_depends_on: Resources the node group waits for
        tags: Additional tags

    Returns:
        Dict with all EKS resources and outputs
    """
    tags = tags or {}

    cluster = create_eks_cluster(
        name=cluster_name,
        version=cluster_version,
        role_arn=cluster_role_arn,
        subnet_ids=public_subnet_ids + private_subnet_ids,
        enabled_log_types=cluster_enabled_log_types,
        depends_on=cluster_depends_on,
        tags=tags
    )

    node_group = create_node_group(
        name=cluster_name,
        cluster_name=cluster.name,
        role_arn=node_group_role_arn,
        subnet_ids=private_subnet_ids,
        instance_types=node_instance_types,
        desired_size=node_desired_size,
        max_size=node_max_size,
        min_size=node_min_size,
        disk_size=node_disk_size,
        depends_on=node_depends_on,
        tags=tags
    )

    addons = create_eks_addons(cluster_name, cluster.name, node_group, tags)
    provider_result = create_kubernetes_provider(cluster_name, cluster)

    return {
        "cluster_name": cluster.name,
        "cluster_arn": cluster.arn,
        "cluster_endpoint": cluster.endpoint,
        "oidc_issuer": cluster.identities[0].oidcs[0].issuer,
        "cluster_security_group_id": cluster.vpc_config.cluster_security_group_id,
        "node_group_arn": node_group.arn,
        "kubeconfig": provider_result["kubeconfig"],
        # Keep references to resources for dependencies
        "_cluster": cluster,
        "_node_group": node_group,
        "_addons": addons,
        "_k8s_provider": provider_result["provider"]
    }
