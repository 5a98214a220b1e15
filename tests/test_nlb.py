"""
Unit tests for the NLB + NGINX Ingress Controller module
"""

import unittest
from unittest.mock import MagicMock, patch
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from eks_lb.nlb.functions import create_nlb_resources, nginx_ingress_values, validate_node_port


class TestNginxValues(unittest.TestCase):

    def test_controller_service_is_fixed_node_port(self):
        values = nginx_ingress_values(30080, 30443, replicas=3)
        controller = values["controller"]

        self.assertEqual(controller["replicaCount"], 3)
        self.assertEqual(controller["service"]["type"], "NodePort")
        self.assertEqual(controller["service"]["nodePorts"], {"http": 30080, "https": 30443})
        self.assertEqual(controller["ingressClassResource"]["name"], "nginx")

    def test_node_port_range(self):
        self.assertEqual(validate_node_port(30000), 30000)
        self.assertEqual(validate_node_port(32767), 32767)
        with self.assertRaises(Exception):
            validate_node_port(8080)
        with self.assertRaises(Exception):
            nginx_ingress_values(30080, 40443)

    def test_ports_must_differ(self):
        with self.assertRaises(Exception):
            nginx_ingress_values(30080, 30080)


class TestNlbResources(unittest.TestCase):

    def _create(self, node_group, **kwargs):
        return create_nlb_resources(
            cluster_name="test-cluster",
            vpc_id="vpc-123",
            vpc_cidr_block="10.0.0.0/16",
            public_subnet_ids=["subnet-1", "subnet-2"],
            node_group=node_group,
            node_security_group_id="sg-123",
            provider=MagicMock(),
            tags={"Environment": "test"},
            **kwargs
        )

    def test_nlb_function_structure(self):
        with patch('eks_lb.nlb.functions.aws') as mock_aws, \
             patch('eks_lb.nlb.functions.k8s') as mock_k8s, \
             patch('eks_lb.nlb.functions.pulumi'):
            result = self._create(MagicMock())

            lb_kwargs = mock_aws.lb.LoadBalancer.call_args[1]
            self.assertEqual(lb_kwargs["load_balancer_type"], "network")
            self.assertFalse(lb_kwargs["internal"])
            self.assertEqual(lb_kwargs["subnets"], ["subnet-1", "subnet-2"])

            target_groups = {call[0][0]: call[1] for call in mock_aws.lb.TargetGroup.call_args_list}
            self.assertEqual(target_groups["test-cluster-http-tg"]["port"], 30080)
            self.assertEqual(target_groups["test-cluster-https-tg"]["port"], 30443)
            for kwargs in target_groups.values():
                self.assertEqual(kwargs["protocol"], "TCP")
                self.assertEqual(kwargs["target_type"], "instance")

            listener_ports = sorted(call[1]["port"] for call in mock_aws.lb.Listener.call_args_list)
            self.assertEqual(listener_ports, [80, 443])

            self.assertEqual(mock_k8s.helm.v3.Release.call_args[1]["chart"], "ingress-nginx")
            self.assertIn("nlb_dns_name", result)

    def test_node_group_instances_registered_as_targets(self):
        with patch('eks_lb.nlb.functions.aws') as mock_aws, \
             patch('eks_lb.nlb.functions.k8s'), \
             patch('eks_lb.nlb.functions.pulumi'):
            node_group = MagicMock()
            self._create(node_group)

            asg_name = node_group.resources.apply.return_value
            attachments = mock_aws.autoscaling.Attachment.call_args_list
            self.assertEqual(len(attachments), 2)
            for call in attachments:
                self.assertIs(call[1]["autoscaling_group_name"], asg_name)

            resources = [MagicMock()]
            resources[0].autoscaling_groups[0].name = "eks-nodes-asg"
            render = node_group.resources.apply.call_args[0][0]
            self.assertEqual(render(resources), "eks-nodes-asg")

    def test_node_ports_opened_one_port_per_rule_to_vpc(self):
        with patch('eks_lb.nlb.functions.aws') as mock_aws, \
             patch('eks_lb.nlb.functions.k8s'), \
             patch('eks_lb.nlb.functions.pulumi'):
            self._create(MagicMock(), https_node_port=32000)

            rules = [call[1] for call in mock_aws.ec2.SecurityGroupRule.call_args_list]
            self.assertEqual(sorted((rule["from_port"], rule["to_port"]) for rule in rules),
                             [(30080, 30080), (32000, 32000)])
            for rule in rules:
                self.assertEqual(rule["security_group_id"], "sg-123")
                self.assertEqual(rule["cidr_blocks"], ["10.0.0.0/16"])
                self.assertEqual(rule["type"], "ingress")

            for call in mock_aws.lb.TargetGroup.call_args_list:
                self.assertEqual(call[1]["preserve_client_ip"], "false")


if __name__ == "__main__":
    unittest.main()
