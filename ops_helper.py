#!/usr/bin/env python3
"""
Operations Helper for the EKS load balancer stack
Prints the deploy, verification, troubleshooting and cleanup commands for each method

The command listings take any object exposing cluster_name, aws_region, app_name,
app_namespace and web_app_name: a config.Config inside a Pulumi run, or StackSettings outside one.
"""

import os
from typing import List


class StackSettings:
    """Plain settings used to render commands outside of a Pulumi run"""

    def __init__(self, cluster_name: str = "eks-lb", region: str = "us-west-2",
                 app_name: str = "sample-app", app_namespace: str = "default",
                 web_app_name: str = "web-app"):
        self.cluster_name = cluster_name
        self.aws_region = region
        self.app_name = app_name
        self.app_namespace = app_namespace
        self.web_app_name = web_app_name


def deploy_commands(config) -> List[str]:
    """Commands to bring up each method"""
    return [
        "# Install dependencies and select a stack",
        "pip install -e .",
        "pulumi stack select dev || pulumi stack init dev",
        f"pulumi config set aws:region {config.aws_region}",
        f"pulumi config set cluster_name {config.cluster_name}",
        "",
        "# Method 1: VPC, EKS and the AWS Load Balancer Controller",
        "pulumi config set enable_alb_controller true",
        "",
        "# Method 2: sample app behind an ALB (manifests or helm)",
        "pulumi config set enable_sample_app true",
        "pulumi config set sample_app_mode helm",
        "",
        "# Method 3: NLB in front of the NGINX Ingress Controller",
        "pulumi config set enable_nlb true",
        "",
        "# Method 4: metrics-server, cluster-autoscaler and the composed app",
        "pulumi config set enable_cluster_addons true",
        "",
        "pulumi preview",
        "pulumi up",
        f"aws eks update-kubeconfig --region {config.aws_region} --name {config.cluster_name}",
    ]


def verify_commands(config) -> List[str]:
    """Commands that confirm load balancers were provisioned"""
    return [
        "kubectl get nodes -o wide",
        "kubectl get deployment -n kube-system aws-load-balancer-controller",
        f"kubectl get ingress -n {config.app_namespace} {config.app_name}",
        "kubectl get svc -n ingress-nginx ingress-nginx-controller",
        "kubectl top nodes",
        f"kubectl get hpa -n {config.web_app_name} {config.web_app_name}",
        f"aws elbv2 describe-load-balancers --region {config.aws_region} "
        "--query 'LoadBalancers[].{Name:LoadBalancerName,Type:Type,DNS:DNSName,State:State.Code}' --output table",
        "curl -I http://$(pulumi stack output nlb_dns_name)",
    ]


def troubleshooting_commands(config) -> List[str]:
    """Commands for the usual failure points: IRSA, subnet discovery, target health"""
    return [
        "# Controller logs (permission and subnet discovery errors show up here)",
        "kubectl logs -n kube-system deployment/aws-load-balancer-controller --tail=100",
        "",
        "# Ingress events, e.g. 'couldn't auto-discover subnets'",
        f"kubectl describe ingress -n {config.app_namespace} {config.app_name}",
        "",
        "# IRSA: the service account must carry the role annotation",
        "kubectl get serviceaccount -n kube-system aws-load-balancer-controller -o yaml",
        f"aws eks describe-cluster --name {config.cluster_name} --region {config.aws_region} "
        "--query 'cluster.identity.oidc.issuer' --output text",
        "aws iam list-open-id-connect-providers",
        "",
        "# Subnet discovery tags (kubernetes.io/role/elb and kubernetes.io/role/internal-elb)",
        f"aws ec2 describe-subnets --region {config.aws_region} "
        f"--filters Name=tag:kubernetes.io/cluster/{config.cluster_name},Values=shared "
        "--query 'Subnets[].{Id:SubnetId,Tags:Tags}'",
        "",
        "# Target health (unhealthy targets usually mean a blocked NodePort or failing probe)",
        f"aws elbv2 describe-target-groups --region {config.aws_region} --query 'TargetGroups[].TargetGroupArn' --output text",
        f"aws elbv2 describe-target-health --region {config.aws_region} --target-group-arn <target-group-arn>",
        "",
        "# NGINX Ingress Controller",
        "kubectl logs -n ingress-nginx deployment/ingress-nginx-controller --tail=100",
        "",
        "# Cluster autoscaler decisions",
        "kubectl logs -n kube-system deployment/cluster-autoscaler-aws-cluster-autoscaler --tail=100",
    ]


def cleanup_commands(config) -> List[str]:
    """Teardown order: Kubernetes-created load balancers first, then the stack"""
    return [
        "# Delete Ingresses so the controller removes the ALBs it created",
        f"kubectl delete ingress -n {config.app_namespace} {config.app_name} --ignore-not-found",
        f"kubectl delete ingress -n {config.web_app_name} {config.web_app_name} --ignore-not-found",
        f"aws elbv2 describe-load-balancers --region {config.aws_region} --query 'LoadBalancers[].LoadBalancerName'",
        "pulumi destroy",
    ]


def best_practices() -> List[str]:
    return [
        "Tag public subnets kubernetes.io/role/elb=1 and private subnets kubernetes.io/role/internal-elb=1.",
        "Give the controller its own IAM role through IRSA instead of widening the node role.",
        "Prefer target-type ip for ALBs so traffic skips the extra NodePort hop.",
        "Use an ACM certificate with ssl-redirect rather than terminating TLS in pods.",
        "Share one ALB between Ingresses with alb.ingress.kubernetes.io/group.name.",
        "Pin chart versions and upgrade the controller before the cluster version.",
        "Delete Ingress and LoadBalancer Services before destroying the cluster, or their load balancers are orphaned.",
        "Run at least two controller replicas with a PodDisruptionBudget.",
    ]


def print_section(title: str, lines: List[str]):
    print(f"\n📋 {title}")
    print("=" * (len(title) + 3))
    for line in lines:
        print(line)


def main():
    """Main operations helper"""
    config = StackSettings(
        cluster_name=os.environ.get("CLUSTER_NAME", "eks-lb"),
        region=os.environ.get("AWS_REGION", "us-west-2")
    )

    print("🚀 EKS Load Balancer Operations Helper")
    print("======================================")
    print(f"Cluster: {config.cluster_name} ({config.aws_region})")
    print()

    sections = {
        "1": ("Deploy commands", lambda: deploy_commands(config)),
        "2": ("Verification commands", lambda: verify_commands(config)),
        "3": ("Troubleshooting commands", lambda: troubleshooting_commands(config)),
        "4": ("Cleanup commands", lambda: cleanup_commands(config)),
        "5": ("Best practices", best_practices),
    }

    while True:
        print("Choose an option:")
        for key, (title, _) in sections.items():
            print(f"{key}. {title}")
        print("6. Exit")
        print()

        choice = input("Enter your choice (1-6): ").strip()

        if choice in sections:
            title, render = sections[choice]
            print_section(title, render())
        elif choice == "6":
            print("👋 Done")
            break
        else:
            print("❌ Invalid choice. Please enter 1-6.")

        print("\n" + "="*50 + "\n")


if __name__ == "__main__":
    main()
