"""
Configuration management for the EKS load balancer stack
"""

import pulumi
from typing import Dict, List

SAMPLE_APP_MODES = ("manifests", "helm")


class Config:
    """Centralized configuration management for the load balancer methods"""

    def __init__(self):
        self.config = pulumi.Config()

        # AWS Configuration
        self.aws_region = pulumi.Config("aws").get("region") or "us-west-2"

        # Cluster Configuration
        self.cluster_name = self.config.get("cluster_name") or "eks-lb"
        self.cluster_version = self.config.get("cluster_version") or "1.31"
        self.cluster_enabled_log_types = self.config.get_object("cluster_enabled_log_types") or ["api", "audit", "authenticator"]

        # Node Configuration
        self.node_instance_types = self.config.get_object("node_instance_types") or ["t3.medium"]
        self.node_desired_size = self.config.get_int("node_desired_size") or 2
        self.node_max_size = self.config.get_int("node_max_size") or 4
        self.node_min_size = self.config.get_int("node_min_size") or 1
        self.node_disk_size = self.config.get_int("node_disk_size") or 20

        # VPC Configuration
        self.vpc_cidr = self.config.get("vpc_cidr") or "10.0.0.0/16"
        self.public_subnet_cidrs = self.config.get_object("public_subnet_cidrs") or ["10.0.101.0/24", "10.0.102.0/24"]
        self.private_subnet_cidrs = self.config.get_object("private_subnet_cidrs") or ["10.0.1.0/24", "10.0.2.0/24"]

        # Method 1: AWS Load Balancer Controller
        self.enable_alb_controller = self._get_bool("enable_alb_controller", True)
        self.alb_controller_chart_version = self.config.get("alb_controller_chart_version") or "1.8.1"
        self.alb_controller_replicas = self.config.get_int("alb_controller_replicas") or 2

        # Method 2: sample application behind an ALB Ingress
        self.enable_sample_app = self._get_bool("enable_sample_app", True)
        self.sample_app_mode = self.config.get("sample_app_mode") or "manifests"
        self.app_name = self.config.get("app_name") or "sample-app"
        self.app_namespace = self.config.get("app_namespace") or "default"
        self.app_image = self.config.get("app_image") or "nginx:1.27"
        self.app_replicas = self.config.get_int("app_replicas") or 2
        self.app_host = self.config.get("app_host") or ""
        self.certificate_arn = self.config.get("certificate_arn") or ""

        # Method 3: NLB + NGINX Ingress Controller
        self.enable_nlb = self._get_bool("enable_nlb", False)
        self.nginx_chart_version = self.config.get("nginx_chart_version") or "4.11.2"
        self.nginx_http_node_port = self.config.get_int("nginx_http_node_port") or 30080
        self.nginx_https_node_port = self.config.get_int("nginx_https_node_port") or 30443
        self.nginx_replicas = self.config.get_int("nginx_replicas") or 2

        # Method 4: cluster add-ons and composed application
        self.enable_cluster_addons = self._get_bool("enable_cluster_addons", False)
        self.metrics_server_chart_version = self.config.get("metrics_server_chart_version") or "3.12.1"
        self.cluster_autoscaler_chart_version = self.config.get("cluster_autoscaler_chart_version") or "9.37.0"
        self.web_app_name = self.config.get("web_app_name") or "web-app"
        self.web_app_image = self.config.get("web_app_image") or "nginx:1.27"
        self.web_app_min_replicas = self.config.get_int("web_app_min_replicas") or 2
        self.web_app_max_replicas = self.config.get_int("web_app_max_replicas") or 10

        # Additional tags
        self.additional_tags = self.config.get_object("tags") or {}

        if self.sample_app_mode not in SAMPLE_APP_MODES:
            raise Exception(
                f"sample_app_mode must be one of {', '.join(SAMPLE_APP_MODES)}. Got: {self.sample_app_mode}"
            )

    def _get_bool(self, key: str, default: bool) -> bool:
        # get_bool returns None when unset; `or default` would turn an explicit false into true
        value = self.config.get_bool(key)
        return default if value is None else value

    @property
    def common_tags(self) -> Dict[str, str]:
        """Get common tags for all resources"""
        base_tags = {
            "Environment": pulumi.get_stack(),
            "Project": "eks-lb",
            "ManagedBy": "pulumi",
            "Cluster": self.cluster_name
        }
        base_tags.update(self.additional_tags)
        return base_tags

    @property
    def enabled_methods(self) -> List[str]:
        """Names of the load balancer methods switched on for this stack"""
        methods = ["vpc-eks"]
        if self.enable_alb_controller:
            methods.append("alb-controller")
        if self.enable_sample_app:
            methods.append(f"sample-app-{self.sample_app_mode}")
        if self.enable_nlb:
            methods.append("nlb-nginx")
        if self.enable_cluster_addons:
            methods.append("cluster-addons")
        return methods


def get_config() -> Config:
    """Get the global configuration instance"""
    return Config()
