"""
EKS Load Balancers - four ways
1. AWS Load Balancer Controller (Helm) on a VPC + EKS foundation
2. Application behind an ALB Ingress (plain manifests or local Helm chart)
3. NLB managed in AWS in front of the NGINX Ingress Controller
4. Cluster add-ons and an application composed on top of them
"""
import pulumi
from config import get_config
from eks_lb.vpc import create_vpc_resources
from eks_lb.iam import create_iam_resources, create_oidc_provider
from eks_lb.eks import create_eks_resources
from eks_lb.alb_controller import create_alb_controller_resources
from eks_lb.app import create_app_manifests, create_app_chart_release
from eks_lb.nlb import create_nlb_resources
from eks_lb.addons import create_addons_resources

config = get_config()
tags = config.common_tags
pulumi.log.info(f"Load balancer methods enabled: {', '.join(config.enabled_methods)}")

# 1. Network and cluster
network = create_vpc_resources(
    cluster_name=config.cluster_name,
    vpc_cidr=config.vpc_cidr,
    public_subnet_cidrs=config.public_subnet_cidrs,
    private_subnet_cidrs=config.private_subnet_cidrs,
    tags=tags
)

iam = create_iam_resources(config.cluster_name, tags)

eks = create_eks_resources(
    cluster_name=config.cluster_name,
    cluster_version=config.cluster_version,
    cluster_role_arn=iam["cluster_role_arn"],
    node_group_role_arn=iam["node_group_role_arn"],
    public_subnet_ids=network["public_subnet_ids"],
    private_subnet_ids=network["private_subnet_ids"],
    node_instance_types=config.node_instance_types,
    node_desired_size=config.node_desired_size,
    node_max_size=config.node_max_size,
    node_min_size=config.node_min_size,
    node_disk_size=config.node_disk_size,
    cluster_enabled_log_types=config.cluster_enabled_log_types,
    cluster_depends_on=[iam["_cluster_policy_attachment"]],
    node_depends_on=list(iam["_node_policy_attachments"].values()) + [network["_nat_gateway"]],
    tags=tags
)

oidc_provider = create_oidc_provider(config.cluster_name, eks["oidc_issuer"], tags)
k8s_provider = eks["_k8s_provider"]

# 1. AWS Load Balancer Controller
controller = None
if config.enable_alb_controller:
    controller = create_alb_controller_resources(
        cluster_name=config.cluster_name,
        region=config.aws_region,
        cluster=eks["_cluster"],
        vpc_id=network["vpc_id"],
        oidc_provider_arn=oidc_provider.arn,
        oidc_issuer=eks["oidc_issuer"],
        provider=k8s_provider,
        node_group=eks["_node_group"],
        chart_version=config.alb_controller_chart_version,
        replicas=config.alb_controller_replicas,
        tags=tags
    )
    pulumi.export("alb_controller_role_arn", controller["role_arn"])
controller_release = controller["_release"] if controller else None

# 2. Sample application behind an ALB
if config.enable_sample_app:
    if controller_release is None:
        pulumi.log.warn("Sample app Ingress needs the AWS Load Balancer Controller, set enable_alb_controller")
    deploy_app = create_app_manifests if config.sample_app_mode == "manifests" else create_app_chart_release
    sample_app = deploy_app(
        config.app_name,
        config.app_namespace,
        config.app_image,
        config.app_replicas,
        k8s_provider,
        host=config.app_host,
        certificate_arn=config.certificate_arn,
        depends_on=[controller_release] if controller_release else [],
        tags=tags
    )
    pulumi.export("sample_app_url", sample_app["ingress_hostname"].apply(
        lambda hostname: f"http://{hostname}" if hostname else "pending"))
    if "release_status" in sample_app:
        pulumi.export("sample_app_release_status", sample_app["release_status"])

# 3. NLB + NGINX Ingress Controller
if config.enable_nlb:
    nlb = create_nlb_resources(
        cluster_name=config.cluster_name,
        vpc_id=network["vpc_id"],
        vpc_cidr_block=network["vpc_cidr_block"],
        public_subnet_ids=network["public_subnet_ids"],
        node_group=eks["_node_group"],
        node_security_group_id=eks["cluster_security_group_id"],
        provider=k8s_provider,
        http_node_port=config.nginx_http_node_port,
        https_node_port=config.nginx_https_node_port,
        chart_version=config.nginx_chart_version,
        replicas=config.nginx_replicas,
        tags=tags
    )
    pulumi.export("nlb_dns_name", nlb["nlb_dns_name"])

# 4. Cluster add-ons and composed application
if config.enable_cluster_addons:
    addons = create_addons_resources(
        cluster_name=config.cluster_name,
        region=config.aws_region,
        oidc_provider_arn=oidc_provider.arn,
        oidc_issuer=eks["oidc_issuer"],
        provider=k8s_provider,
        node_group=eks["_node_group"],
        controller_release=controller_release,
        metrics_server_chart_version=config.metrics_server_chart_version,
        cluster_autoscaler_chart_version=config.cluster_autoscaler_chart_version,
        app_name=config.web_app_name,
        app_image=config.web_app_image,
        app_min_replicas=config.web_app_min_replicas,
        app_max_replicas=config.web_app_max_replicas,
        certificate_arn=config.certificate_arn,
        tags=tags
    )
    pulumi.export("web_app_ingress_hostname", addons["app_ingress_hostname"])
    pulumi.export("cluster_autoscaler_role_arn", addons["cluster_autoscaler_role_arn"])

# Exports
pulumi.export("cluster_name", eks["cluster_name"])
pulumi.export("cluster_endpoint", eks["cluster_endpoint"])
pulumi.export("vpc_id", network["vpc_id"])
pulumi.export("public_subnet_ids", network["public_subnet_ids"])
pulumi.export("private_subnet_ids", network["private_subnet_ids"])
pulumi.export("kubeconfig_command",
    pulumi.Output.concat(
        "aws eks update-kubeconfig --region ", config.aws_region, " --name ",
        eks["cluster_name"]
    ))
pulumi.export("methods_enabled", config.enabled_methods)
