"""
Unit tests for cluster add-ons and the composed application
"""

import json
import unittest
from unittest.mock import MagicMock, patch
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from eks_lb.addons.functions import (
    cluster_autoscaler_policy,
    cluster_autoscaler_values,
    create_addons_resources,
    create_composed_app,
    create_horizontal_pod_autoscaler,
    deploy_cluster_autoscaler,
)


class TestClusterAutoscaler(unittest.TestCase):

    def test_values_enable_auto_discovery(self):
        values = cluster_autoscaler_values("demo", "us-west-2", "arn:aws:iam::1:role/ca")

        self.assertEqual(values["autoDiscovery"]["clusterName"], "demo")
        self.assertEqual(values["awsRegion"], "us-west-2")
        self.assertEqual(values["rbac"]["serviceAccount"]["name"], "cluster-autoscaler")
        self.assertEqual(values["rbac"]["serviceAccount"]["annotations"],
                         {"eks.amazonaws.com/role-arn": "arn:aws:iam::1:role/ca"})

    def test_policy_allows_scaling_actions(self):
        actions = [action for statement in cluster_autoscaler_policy()["Statement"]
                   for action in statement["Action"]]
        self.assertIn("autoscaling:SetDesiredCapacity", actions)
        self.assertIn("autoscaling:TerminateInstanceInAutoScalingGroup", actions)

    def test_autoscaler_gets_own_irsa_role(self):
        with patch('eks_lb.addons.functions.aws') as mock_aws, \
             patch('eks_lb.addons.functions.k8s') as mock_k8s, \
             patch('eks_lb.addons.functions.pulumi'), \
             patch('eks_lb.addons.functions.create_irsa_role') as mock_irsa:
            deploy_cluster_autoscaler("demo", "us-west-2", "9.37.0", "arn:oidc", "issuer", MagicMock())

            self.assertEqual(mock_irsa.call_args[0][3:5], ("kube-system", "cluster-autoscaler"))
            policy = json.loads(mock_aws.iam.RolePolicy.call_args[1]["policy"])
            self.assertEqual(policy["Version"], "2012-10-17")

            release_kwargs = mock_k8s.helm.v3.Release.call_args[1]
            self.assertEqual(release_kwargs["chart"], "cluster-autoscaler")
            self.assertEqual(release_kwargs["repository_opts"], mock_k8s.helm.v3.RepositoryOptsArgs.return_value)
            mock_k8s.helm.v3.RepositoryOptsArgs.assert_called_once_with(repo="https://kubernetes.github.io/autoscaler")

            render = mock_irsa.return_value.arn.apply.call_args[0][0]
            self.assertEqual(render("arn:role")["autoDiscovery"]["clusterName"], "demo")


class TestHorizontalPodAutoscaler(unittest.TestCase):

    def test_min_above_max_is_rejected(self):
        with self.assertRaises(Exception):
            create_horizontal_pod_autoscaler("web", "web", 5, 2, MagicMock())

    def test_targets_deployment_cpu(self):
        with patch('eks_lb.addons.functions.k8s') as mock_k8s, \
             patch('eks_lb.addons.functions.pulumi'):
            create_horizontal_pod_autoscaler("web", "web", 2, 10, MagicMock())

            mock_k8s.autoscaling.v2.CrossVersionObjectReferenceArgs.assert_called_once_with(
                api_version="apps/v1", kind="Deployment", name="web"
            )
            spec_kwargs = mock_k8s.autoscaling.v2.HorizontalPodAutoscalerSpecArgs.call_args[1]
            self.assertEqual((spec_kwargs["min_replicas"], spec_kwargs["max_replicas"]), (2, 10))


class TestComposedApp(unittest.TestCase):

    def test_ordering_on_controller_and_metrics_server(self):
        with patch('eks_lb.addons.functions.create_namespace') as mock_ns, \
             patch('eks_lb.addons.functions.create_deployment') as mock_deployment, \
             patch('eks_lb.addons.functions.create_service') as mock_service, \
             patch('eks_lb.addons.functions.create_ingress') as mock_ingress, \
             patch('eks_lb.addons.functions.create_horizontal_pod_autoscaler') as mock_hpa:
            controller = MagicMock()
            metrics_server = MagicMock()

            result = create_composed_app("web-app", "web-app", "nginx:1.27", 2, 10, MagicMock(),
                                         controller_release=controller, metrics_server=metrics_server)

            namespace = mock_ns.return_value["namespace"]
            self.assertEqual(mock_deployment.call_args[1]["depends_on"], [namespace])
            self.assertEqual(mock_service.call_args[1]["depends_on"], [mock_deployment.return_value])

            ingress_depends = mock_ingress.call_args[1]["depends_on"]
            self.assertEqual(ingress_depends, [mock_service.return_value, controller])

            annotations = mock_ingress.call_args[0][3]
            self.assertEqual(annotations["alb.ingress.kubernetes.io/group.name"], "web-app")

            hpa_depends = mock_hpa.call_args[1]["depends_on"]
            self.assertEqual(hpa_depends, [mock_deployment.return_value, metrics_server])

            self.assertIn("ingress_hostname", result)

    def test_without_controller_ingress_only_waits_for_service(self):
        with patch('eks_lb.addons.functions.create_namespace'), \
             patch('eks_lb.addons.functions.create_deployment'), \
             patch('eks_lb.addons.functions.create_service') as mock_service, \
             patch('eks_lb.addons.functions.create_ingress') as mock_ingress, \
             patch('eks_lb.addons.functions.create_horizontal_pod_autoscaler'):
            create_composed_app("web-app", "web-app", "nginx:1.27", 2, 10, MagicMock())

            self.assertEqual(mock_ingress.call_args[1]["depends_on"], [mock_service.return_value])

    def test_deployment_leaves_replicas_to_hpa(self):
        with patch('eks_lb.app.functions.k8s') as mock_app_k8s, \
             patch('eks_lb.app.functions.pulumi'), \
             patch('eks_lb.addons.functions.k8s') as mock_k8s, \
             patch('eks_lb.addons.functions.pulumi'):
            create_composed_app("web-app", "web-app", "nginx:1.27", 2, 10, MagicMock())

            self.assertIsNone(mock_app_k8s.apps.v1.DeploymentSpecArgs.call_args[1]["replicas"])
            hpa_spec = mock_k8s.autoscaling.v2.HorizontalPodAutoscalerSpecArgs.call_args[1]
            self.assertEqual((hpa_spec["min_replicas"], hpa_spec["max_replicas"]), (2, 10))


class TestAddonsResources(unittest.TestCase):

    def test_addons_function_structure(self):
        with patch('eks_lb.addons.functions.deploy_metrics_server') as mock_metrics, \
             patch('eks_lb.addons.functions.deploy_cluster_autoscaler') as mock_autoscaler, \
             patch('eks_lb.addons.functions.create_composed_app') as mock_app, \
             patch('eks_lb.addons.functions.pulumi') as mock_pulumi:
            node_group = MagicMock()
            controller = MagicMock()

            result = create_addons_resources(
                cluster_name="test-cluster",
                region="us-west-2",
                oidc_provider_arn="arn:oidc",
                oidc_issuer="issuer",
                provider=MagicMock(),
                node_group=node_group,
                controller_release=controller
            )

            self.assertEqual(mock_metrics.call_args[1]["depends_on"], [node_group])
            self.assertEqual(mock_autoscaler.call_args[1]["depends_on"], [node_group])

            app_kwargs = mock_app.call_args[1]
            self.assertIs(app_kwargs["metrics_server"], mock_metrics.return_value["metrics_server"])
            self.assertIs(app_kwargs["controller_release"], controller)
            mock_pulumi.log.warn.assert_not_called()

            for key in ["metrics_server_status", "cluster_autoscaler_status", "app_namespace", "app_ingress_hostname"]:
                self.assertIn(key, result)

    def test_warns_when_no_controller(self):
        with patch('eks_lb.addons.functions.deploy_metrics_server'), \
             patch('eks_lb.addons.functions.deploy_cluster_autoscaler'), \
             patch('eks_lb.addons.functions.create_composed_app'), \
             patch('eks_lb.addons.functions.pulumi') as mock_pulumi:
            create_addons_resources("test-cluster", "us-west-2", "arn:oidc", "issuer", MagicMock())

            mock_pulumi.log.warn.assert_called_once()


if __name__ == "__main__":
    unittest.main()
