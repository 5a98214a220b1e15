"""
Unit tests for the EKS module
"""

import unittest
from unittest.mock import patch
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from eks_lb.eks.functions import build_kubeconfig, create_eks_resources


class TestKubeconfig(unittest.TestCase):

    def test_kubeconfig_uses_aws_token_exec(self):
        kubeconfig = build_kubeconfig("https://ABC.gr7.us-west-2.eks.amazonaws.com", "LS0tCA==", "demo")

        self.assertIn("server: https://ABC.gr7.us-west-2.eks.amazonaws.com", kubeconfig)
        self.assertIn("certificate-authority-data: LS0tCA==", kubeconfig)
        self.assertIn("current-context: demo", kubeconfig)
        self.assertIn("command: aws", kubeconfig)
        self.assertIn("- --cluster-name\n        - demo", kubeconfig)


class TestEksResources(unittest.TestCase):

    def _create(self, mock_aws):
        return create_eks_resources(
            cluster_name="test-cluster",
            cluster_version="1.31",
            cluster_role_arn="arn:cluster-role",
            node_group_role_arn="arn:node-role",
            public_subnet_ids=["subnet-pub-1", "subnet-pub-2"],
            private_subnet_ids=["subnet-priv-1", "subnet-priv-2"],
            node_instance_types=["t3.medium"],
            node_desired_size=2,
            node_max_size=4,
            node_min_size=1,
            node_disk_size=20,
            tags={"Environment": "test"}
        )

    def test_eks_function_structure(self):
        with patch('eks_lb.eks.functions.aws') as mock_aws, \
             patch('eks_lb.eks.functions.k8s') as mock_k8s, \
             patch('eks_lb.eks.functions.pulumi'):
            result = self._create(mock_aws)

            for key in ["cluster_name", "cluster_endpoint", "oidc_issuer", "cluster_security_group_id",
                        "kubeconfig", "_cluster", "_node_group", "_k8s_provider"]:
                self.assertIn(key, result)

            self.assertIs(result["_k8s_provider"], mock_k8s.Provider.return_value)
            self.assertEqual(mock_aws.eks.Addon.call_count, 3)

    def test_nodes_run_in_private_subnets_only(self):
        with patch('eks_lb.eks.functions.aws') as mock_aws, \
             patch('eks_lb.eks.functions.k8s'), \
             patch('eks_lb.eks.functions.pulumi') as mock_pulumi:
            self._create(mock_aws)

            node_kwargs = mock_aws.eks.NodeGroup.call_args[1]
            self.assertEqual(node_kwargs["subnet_ids"], ["subnet-priv-1", "subnet-priv-2"])
            # node group tags never reach the ASG, EKS adds the discovery tags there
            self.assertFalse([key for key in node_kwargs["tags"] if key.startswith("k8s.io/cluster-autoscaler/")])
            ignored = [call[1]["ignore_changes"] for call in mock_pulumi.ResourceOptions.call_args_list
                       if "ignore_changes" in call[1]]
            self.assertEqual(ignored, [["scalingConfig.desiredSize"]])

            mock_aws.eks.ClusterVpcConfigArgs.assert_called_once_with(
                subnet_ids=["subnet-pub-1", "subnet-pub-2", "subnet-priv-1", "subnet-priv-2"],
                endpoint_private_access=True,
                endpoint_public_access=True
            )

    def test_coredns_waits_for_node_group(self):
        with patch('eks_lb.eks.functions.aws') as mock_aws, \
             patch('eks_lb.eks.functions.k8s'), \
             patch('eks_lb.eks.functions.pulumi') as mock_pulumi:
            self._create(mock_aws)

            node_group = mock_aws.eks.NodeGroup.return_value
            depends = [call[1].get("depends_on") for call in mock_pulumi.ResourceOptions.call_args_list]
            self.assertIn([node_group], depends)


if __name__ == "__main__":
    unittest.main()
