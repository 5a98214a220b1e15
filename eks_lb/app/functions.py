"""
Application Module Functions
Deployment/Service/Ingress behind an ALB, as plain manifests or as the local Helm chart
"""

import copy
import json
import os
import pulumi
import pulumi_kubernetes as k8s
import yaml
from typing import Any, Dict, List, Optional

CHART_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
                          "charts", "sample-app")


def alb_ingress_annotations(scheme: str = "internet-facing", target_type: str = "ip",
                            healthcheck_path: str = "/", certificate_arn: str = "",
                            group_name: str = "", tags: Dict[str, str] = None) -> Dict[str, str]:
    """
    Build alb.ingress.kubernetes.io annotations for an Ingress

    Args:
        scheme: internet-facing or internal
        target_type: ip (pods directly) or instance (NodePort)
        healthcheck_path: Target group health check path
        certificate_arn: ACM certificate ARN, enables HTTPS and the HTTP redirect
        group_name: IngressGroup name to share one ALB between Ingresses
        tags: Tags applied to the ALB and its target groups

    Returns:
        Annotation dict
    """
    if scheme not in ("internet-facing", "internal"):
        raise Exception(f"ALB scheme must be internet-facing or internal. Got: {scheme}")
    if target_type not in ("ip", "instance"):
        raise Exception(f"ALB target type must be ip or instance. Got: {target_type}")

    annotations = {
        "alb.ingress.kubernetes.io/scheme": scheme,
        "alb.ingress.kubernetes.io/target-type": target_type,
        "alb.ingress.kubernetes.io/healthcheck-path": healthcheck_path,
        "alb.ingress.kubernetes.io/healthcheck-interval-seconds": "15",
        "alb.ingress.kubernetes.io/healthy-threshold-count": "2",
        "alb.ingress.kubernetes.io/unhealthy-threshold-count": "2"
    }

    if certificate_arn:
        annotations.update({
            "alb.ingress.kubernetes.io/listen-ports": json.dumps([{"HTTP": 80}, {"HTTPS": 443}]),
            "alb.ingress.kubernetes.io/certificate-arn": certificate_arn,
            "alb.ingress.kubernetes.io/ssl-redirect": "443",
            "alb.ingress.kubernetes.io/ssl-policy": "ELBSecurityPolicy-TLS13-1-2-2021-06"
        })
    else:
        annotations["alb.ingress.kubernetes.io/listen-ports"] = json.dumps([{"HTTP": 80}])

    if group_name:
        annotations["alb.ingress.kubernetes.io/group.name"] = group_name

    if tags:
        annotations["alb.ingress.kubernetes.io/tags"] = ",".join(
            f"{key}={value}" for key, value in sorted(tags.items())
        )

    return annotations


def deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Merge overrides into a copy of base, recursing into nested dicts"""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def chart_values(overrides: Dict[str, Any] = None, chart_path: str = CHART_PATH) -> Dict[str, Any]:
    """
    Chart defaults from values.yaml with overrides applied on top
    """
    with open(os.path.join(chart_path, "values.yaml"), "r") as f:
        defaults = yaml.safe_load(f) or {}
    return deep_merge(defaults, overrides or {})


def app_labels(app_name: str) -> Dict[str, str]:
    return {
        "app.kubernetes.io/name": app_name,
        "app.kubernetes.io/instance": app_name
    }


def create_deployment(name: str, namespace: str, image: str, replicas: Optional[int],
                      provider: k8s.Provider, port: int = 80,
                      depends_on: List[pulumi.Resource] = None) -> k8s.apps.v1.Deployment:
    """
    Create the application Deployment with readiness/liveness probes

    replicas=None leaves spec.replicas unset for Deployments scaled by an HPA.
    """
    labels = app_labels(name)
    return k8s.apps.v1.Deployment(
        f"{name}-deployment",
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=name,
            namespace=namespace,
            labels={**labels, "managed-by": "pulumi"}
        ),
        spec=k8s.apps.v1.DeploymentSpecArgs(
            replicas=replicas,
            selector=k8s.meta.v1.LabelSelectorArgs(match_labels=labels),
            template=k8s.core.v1.PodTemplateSpecArgs(
                metadata=k8s.meta.v1.ObjectMetaArgs(labels=labels),
                spec=k8s.core.v1.PodSpecArgs(
                    containers=[
                        k8s.core.v1.ContainerArgs(
                            name=name,
                            image=image,
                            ports=[k8s.core.v1.ContainerPortArgs(name="http", container_port=port)],
                            readiness_probe=k8s.core.v1.ProbeArgs(
                                http_get=k8s.core.v1.HTTPGetActionArgs(path="/", port="http"),
                                initial_delay_seconds=5,
                                period_seconds=10
                            ),
                            liveness_probe=k8s.core.v1.ProbeArgs(
                                http_get=k8s.core.v1.HTTPGetActionArgs(path="/", port="http"),
                                initial_delay_seconds=15,
                                period_seconds=20
                            ),
                            resources=k8s.core.v1.ResourceRequirementsArgs(
                                requests={"cpu": "100m", "memory": "128Mi"},
                                limits={"cpu": "250m", "memory": "256Mi"}
                            )
                        )
                    ]
                )
            )
        ),
        opts=pulumi.ResourceOptions(provider=provider, depends_on=depends_on or [])
    )


def create_service(name: str, namespace: str, provider: k8s.Provider, port: int = 80,
                   depends_on: List[pulumi.Resource] = None) -> k8s.core.v1.Service:
    """
    Create a ClusterIP Service, the ALB targets pod IPs directly
    """
    return k8s.core.v1.Service(
        f"{name}-service",
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=name,
            namespace=namespace,
            labels={**app_labels(name), "managed-by": "pulumi"}
        ),
        spec=k8s.core.v1.ServiceSpecArgs(
            type="ClusterIP",
            selector=app_labels(name),
            ports=[k8s.core.v1.ServicePortArgs(name="http", port=port, target_port="http", protocol="TCP")]
        ),
        opts=pulumi.ResourceOptions(provider=provider, depends_on=depends_on or [])
    )


def create_ingress(name: str, namespace: str, service_name: str, annotations: Dict[str, str],
                   provider: k8s.Provider, host: str = "", port: int = 80,
                   depends_on: List[pulumi.Resource] = None) -> k8s.networking.v1.Ingress:
    """
    Create an Ingress handled by the alb IngressClass
    """
    rule = k8s.networking.v1.IngressRuleArgs(
        host=host or None,
        http=k8s.networking.v1.HTTPIngressRuleValueArgs(
            paths=[
                k8s.networking.v1.HTTPIngressPathArgs(
                    path="/",
                    path_type="Prefix",
                    backend=k8s.networking.v1.IngressBackendArgs(
                        service=k8s.networking.v1.IngressServiceBackendArgs(
                            name=service_name,
                            port=k8s.networking.v1.ServiceBackendPortArgs(number=port)
                        )
                    )
                )
            ]
        )
    )

    return k8s.networking.v1.Ingress(
        f"{name}-ingress",
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=name,
            namespace=namespace,
            labels={**app_labels(name), "managed-by": "pulumi"},
            annotations=annotations
        ),
        spec=k8s.networking.v1.IngressSpecArgs(
            ingress_class_name="alb",
            rules=[rule]
        ),
        opts=pulumi.ResourceOptions(provider=provider, depends_on=depends_on or [])
    )


def ingress_hostname(ingress: k8s.networking.v1.Ingress) -> pulumi.Output[str]:
    """ALB DNS name once the controller has reconciled the Ingress"""
    return ingress.status.apply(
        lambda status: status.load_balancer.ingress[0].hostname
        if status and status.load_balancer and status.load_balancer.ingress else ""
    )


def create_app_manifests(name: str, namespace: str, image: str, replicas: int,
                         provider: k8s.Provider, host: str = "", certificate_arn: str = "",
                         depends_on: List[pulumi.Resource] = None,
                         tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Deploy the application as individual Deployment/Service/Ingress objects

    Args:
        name: Application name
        namespace: Target namespace
        image: Container image
        replicas: Replica count
        provider: Kubernetes provider
        host: Optional Ingress host
        certificate_arn: Optional ACM certificate for HTTPS
        depends_on: Resources the Ingress waits for (the controller release)
        tags: Tags propagated to the ALB

    Returns:
        Dict with application resources and outputs
    """
    deployment = create_deployment(name, namespace, image, replicas, provider)
    service = create_service(name, namespace, provider, depends_on=[deployment])
    annotations = alb_ingress_annotations(certificate_arn=certificate_arn, tags=tags)
    ingress = create_ingress(
        name,
        namespace,
        name,
        annotations,
        provider,
        host=host,
        depends_on=[service] + (depends_on or [])
    )

    return {
        "deployment_name": deployment.metadata.name,
        "service_name": service.metadata.name,
        "ingress_hostname": ingress_hostname(ingress),
        # Keep references to resources for dependencies
        "_deployment": deployment,
        "_service": service,
        "_ingress": ingress
    }


def create_app_chart_release(name: str, namespace: str, image: str, replicas: int,
                             provider: k8s.Provider, host: str = "", certificate_arn: str = "",
                             depends_on: List[pulumi.Resource] = None,
                             tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Deploy the same application through the local charts/sample-app Helm chart
    """
    repository, sep, tag = image.rpartition(":")
    if not sep or "/" in tag:
        # no tag, or the colon belongs to a registry port
        repository, tag = image, "latest"
    values = chart_values({
        "replicaCount": replicas,
        "image": {"repository": repository, "tag": tag},
        "ingress": {
            "host": host,
            "annotations": alb_ingress_annotations(certificate_arn=certificate_arn, tags=tags)
        }
    })

    release = k8s.helm.v3.Release(
        f"{name}-release",
        chart=CHART_PATH,
        name=name,
        namespace=namespace,
        values=values,
        opts=pulumi.ResourceOptions(provider=provider, depends_on=depends_on or [])
    )

    # the chart names its Ingress after the release
    ingress = k8s.networking.v1.Ingress.get(
        f"{name}-ingress",
        pulumi.Output.concat(release.namespace, "/", release.name),
        opts=pulumi.ResourceOptions(provider=provider, depends_on=[release])
    )

    return {
        "release_name": release.name,
        "release_status": release.status,
        "ingress_hostname": ingress_hostname(ingress),
        # Keep references to resources for dependencies
        "_release": release,
        "_ingress": ingress
    }
