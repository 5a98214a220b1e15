"""
Unit tests for the operations helper command listings
"""

import unittest
from types import SimpleNamespace
from unittest.mock import patch
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ops_helper import (
    StackSettings,
    best_practices,
    cleanup_commands,
    deploy_commands,
    main,
    troubleshooting_commands,
    verify_commands,
)


class TestCommandListings(unittest.TestCase):

    def setUp(self):
        self.settings = StackSettings(cluster_name="demo", region="eu-west-1")

    def test_deploy_ends_with_kubeconfig_update(self):
        commands = deploy_commands(self.settings)

        self.assertIn("pulumi config set aws:region eu-west-1", commands)
        self.assertLess(commands.index("pulumi preview"), commands.index("pulumi up"))
        self.assertEqual(commands[-1], "aws eks update-kubeconfig --region eu-west-1 --name demo")

    def test_verify_covers_each_method(self):
        joined = "\n".join(verify_commands(self.settings))

        self.assertIn("aws-load-balancer-controller", joined)
        self.assertIn("kubectl get ingress -n default sample-app", joined)
        self.assertIn("ingress-nginx-controller", joined)
        self.assertIn("kubectl get hpa -n web-app web-app", joined)

    def test_troubleshooting_checks_irsa_and_subnet_tags(self):
        joined = "\n".join(troubleshooting_commands(self.settings))

        self.assertIn("kubectl logs -n kube-system deployment/aws-load-balancer-controller", joined)
        self.assertIn("aws eks describe-cluster --name demo --region eu-west-1", joined)
        self.assertIn("kubernetes.io/cluster/demo", joined)
        self.assertIn("describe-target-health", joined)

    def test_cleanup_removes_ingresses_before_destroy(self):
        commands = cleanup_commands(self.settings)

        ingress_deletes = [i for i, c in enumerate(commands) if c.startswith("kubectl delete ingress")]
        self.assertTrue(ingress_deletes)
        self.assertEqual(commands[-1], "pulumi destroy")
        self.assertLess(max(ingress_deletes), len(commands) - 1)

    def test_listings_accept_any_config_with_same_attributes(self):
        stack_config = SimpleNamespace(cluster_name="prod", aws_region="us-east-1", app_name="shop",
                                       app_namespace="shop", web_app_name="storefront")

        self.assertEqual(deploy_commands(config=stack_config)[-1],
                         "aws eks update-kubeconfig --region us-east-1 --name prod")
        self.assertIn("kubectl get ingress -n shop shop", verify_commands(stack_config))
        self.assertIn("kubectl delete ingress -n storefront storefront --ignore-not-found",
                      cleanup_commands(stack_config))
        self.assertIn("kubernetes.io/cluster/prod", "\n".join(troubleshooting_commands(config=stack_config)))

    def test_best_practices_mention_subnet_tags(self):
        self.assertTrue(any("kubernetes.io/role/elb" in line for line in best_practices()))


class TestMenu(unittest.TestCase):

    def test_menu_prints_section_then_exits(self):
        with patch('builtins.input', side_effect=["3", "9", "6"]), \
             patch('builtins.print') as mock_print:
            main()

        printed = "\n".join(str(call[0][0]) for call in mock_print.call_args_list if call[0])
        self.assertIn("Troubleshooting commands", printed)
        self.assertIn("Invalid choice", printed)


if __name__ == "__main__":
    unittest.main()
