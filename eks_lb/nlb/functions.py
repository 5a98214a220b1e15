"""
NLB Module Functions
Network Load Balancer managed directly in AWS, forwarding to an NGINX Ingress Controller on fixed NodePorts
"""

import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s
from typing import Any, Dict, List

NODE_PORT_RANGE = (30000, 32767)
INGRESS_NGINX_REPO = "https://kubernetes.github.io/ingress-nginx"
INGRESS_NGINX_NAMESPACE = "ingress-nginx"


def validate_node_port(port: int) -> int:
    if not NODE_PORT_RANGE[0] <= port <= NODE_PORT_RANGE[1]:
        raise Exception(
            f"NodePort {port} is outside the Kubernetes NodePort range {NODE_PORT_RANGE[0]}-{NODE_PORT_RANGE[1]}"
        )
    return port


def nginx_ingress_values(http_node_port: int = 30080, https_node_port: int = 30443,
                         replicas: int = 2) -> Dict[str, Any]:
    """
    Helm values for ingress-nginx exposed on fixed NodePorts

    The NLB is created outside Kubernetes, so the controller Service must not request one.
    """
    validate_node_port(http_node_port)
    validate_node_port(https_node_port)
    if http_node_port == https_node_port:
        raise Exception(f"HTTP and HTTPS NodePorts must differ. Got: {http_node_port}")

    return {
        "controller": {
            "replicaCount": replicas,
            "ingressClassResource": {
                "name": "nginx",
                "default": False
            },
            "service": {
                "type": "NodePort",
                # only nodes running a controller pod pass the NLB health check
                "externalTrafficPolicy": "Local",
                "nodePorts": {
                    "http": http_node_port,
                    "https": https_node_port
                }
            },
            "config": {
                "use-forwarded-headers": "true"
            },
            "metrics": {
                "enabled": True
            }
        }
    }


def create_target_group(name: str, port: int, vpc_id: pulumi.Output[str], health_check_port: int,
                        tags: Dict[str, str] = None) -> aws.lb.TargetGroup:
    """
    Create a TCP target group of worker instances on a NodePort

    Health checks hit the HTTP NodePort so both groups follow controller health.
    """
    tags = tags or {}

    return aws.lb.TargetGroup(
        name,
        port=port,
        protocol="TCP",
        vpc_id=vpc_id,
        target_type="instance",
        deregistration_delay=30,
        # NLB node IPs become the source, so the NodePort rule can stay inside the VPC
        preserve_client_ip="false",
        health_check=aws.lb.TargetGroupHealthCheckArgs(
            protocol="HTTP",
            port=str(health_check_port),
            path="/healthz",
            healthy_threshold=2,
            unhealthy_threshold=2,
            interval=10
        ),
        tags={
            **tags,
            "Name": name,
            "Module": "nlb"
        }
    )


def create_listener(name: str, load_balancer_arn: pulumi.Output[str], port: int,
                    target_group_arn: pulumi.Output[str]) -> aws.lb.Listener:
    return aws.lb.Listener(
        name,
        load_balancer_arn=load_balancer_arn,
        port=port,
        protocol="TCP",
        default_actions=[
            aws.lb.ListenerDefaultActionArgs(
                type="forward",
                target_group_arn=target_group_arn
            )
        ]
    )


def node_group_asg_name(node_group: aws.eks.NodeGroup) -> pulumi.Output[str]:
    """Name of the Auto Scaling group backing a managed node group"""
    return node_group.resources.apply(lambda resources: resources[0].autoscaling_groups[0].name)


def deploy_ingress_nginx(name: str, chart_version: str, values: Dict[str, Any],
                         provider: k8s.Provider,
                         depends_on: List[pulumi.Resource] = None) -> k8s.helm.v3.Release:
    """
    Install ingress-nginx with Helm
    """
    return k8s.helm.v3.Release(
        f"{name}-ingress-nginx",
        repository_opts=k8s.helm.v3.RepositoryOptsArgs(
            repo=INGRESS_NGINX_REPO
        ),
        chart="ingress-nginx",
        version=chart_version,
        name="ingress-nginx",
        namespace=INGRESS_NGINX_NAMESPACE,
        create_namespace=True,
        values=values,
        opts=pulumi.ResourceOptions(provider=provider, depends_on=depends_on or [])
    )


def create_nlb_resources(cluster_name: str, vpc_id: pulumi.Output[str], vpc_cidr_block: pulumi.Output[str],
                         public_subnet_ids: List[pulumi.Output[str]],
                         node_group: aws.eks.NodeGroup,
                         node_security_group_id: pulumi.Output[str],
                         provider: k8s.Provider,
                         http_node_port: int = 30080, https_node_port: int = 30443,
                         chart_version: str = "4.11.2", replicas: int = 2,
                         tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create the NLB + NGINX Ingress Controller setup

    Args:
        cluster_name: EKS cluster name
        vpc_id: VPC ID
        vpc_cidr_block: VPC CIDR, source of NLB traffic to the NodePorts
        public_subnet_ids: Subnets for the internet-facing NLB
        node_group: Managed node group registered as targets
        node_security_group_id: Security group attached to the nodes
        provider: Kubernetes provider
        http_node_port: NodePort for HTTP traffic
        https_node_port: NodePort for HTTPS traffic
        chart_version: ingress-nginx chart version
        replicas: Controller replica count
        tags: Additional tags

    Returns:
        Dict with NLB resources and outputs
    """
    tags = tags or {}
    values = nginx_ingress_values(http_node_port, https_node_port, replicas)

    nlb = aws.lb.LoadBalancer(
        f"{cluster_name}-nlb",
        internal=False,
        load_balancer_type="network",
        subnets=public_subnet_ids,
        enable_cross_zone_load_balancing=True,
        tags={
            **tags,
            "Name": f"{cluster_name}-nlb",
            "Module": "nlb"
        }
    )

    http_tg = create_target_group(f"{cluster_name}-http-tg", http_node_port, vpc_id, http_node_port, tags)
    https_tg = create_target_group(f"{cluster_name}-https-tg", https_node_port, vpc_id, http_node_port, tags)

    http_listener = create_listener(f"{cluster_name}-http-listener", nlb.arn, 80, http_tg.arn)
    https_listener = create_listener(f"{cluster_name}-https-listener", nlb.arn, 443, https_tg.arn)

    asg_name = node_group_asg_name(node_group)
    for kind, target_group, node_port in [("http", http_tg, http_node_port), ("https", https_tg, https_node_port)]:
        aws.autoscaling.Attachment(
            f"{cluster_name}-{kind}-tg-attachment",
            autoscaling_group_name=asg_name,
            lb_target_group_arn=target_group.arn
        )

        # one port per rule, other NodePort Services stay closed
        aws.ec2.SecurityGroupRule(
            f"{cluster_name}-{kind}-nodeport-ingress",
            type="ingress",
            from_port=node_port,
            to_port=node_port,
            protocol="tcp",
            cidr_blocks=[vpc_cidr_block],
            security_group_id=node_security_group_id,
            description=f"NLB {kind} traffic to ingress-nginx NodePort {node_port}"
        )

    pulumi.log.info(f"Exposing ingress-nginx on NodePorts {http_node_port}/{https_node_port} behind {cluster_name}-nlb")
    release = deploy_ingress_nginx(cluster_name, chart_version, values, provider, depends_on=[node_group])

    return {
        "nlb_dns_name": nlb.dns_name,
        "nlb_arn": nlb.arn,
        "http_target_group_arn": http_tg.arn,
        "https_target_group_arn": https_tg.arn,
        "ingress_nginx_status": release.status,
        # Keep references to resources for dependencies
        "_nlb": nlb,
        "_listeners": [http_listener, https_listener],
        "_release": release
    }
