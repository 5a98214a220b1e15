"""
Unit tests for IAM and IRSA helpers
"""

import json
import unittest
from unittest.mock import Mock, patch
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from eks_lb.iam.functions import (
    create_iam_resources,
    create_irsa_role,
    irsa_trust_policy,
)

ISSUER = "https://oidc.eks.us-west-2.amazonaws.com/id/EXAMPLED539D4633E53DE1B71EXAMPLE"
PROVIDER_ARN = "arn:aws:iam::111122223333:oidc-provider/oidc.eks.us-west-2.amazonaws.com/id/EXAMPLED539D4633E53DE1B71EXAMPLE"


class TestIrsaTrustPolicy(unittest.TestCase):
    """Trust policy scoping for service accounts"""

    def test_scopes_to_single_service_account(self):
        policy = irsa_trust_policy(PROVIDER_ARN, ISSUER, "kube-system", "aws-load-balancer-controller")

        statement = policy["Statement"][0]
        self.assertEqual(statement["Action"], "sts:AssumeRoleWithWebIdentity")
        self.assertEqual(statement["Principal"], {"Federated": PROVIDER_ARN})

        conditions = statement["Condition"]["StringEquals"]
        issuer_host = ISSUER.replace("https://", "")
        self.assertEqual(conditions[f"{issuer_host}:sub"],
                         "system:serviceaccount:kube-system:aws-load-balancer-controller")
        self.assertEqual(conditions[f"{issuer_host}:aud"], "sts.amazonaws.com")

    def test_condition_keys_never_contain_scheme(self):
        policy = irsa_trust_policy(PROVIDER_ARN, ISSUER, "ns", "sa")
        for key in policy["Statement"][0]["Condition"]["StringEquals"]:
            self.assertFalse(key.startswith("https://"))

    def test_issuer_without_scheme_is_accepted(self):
        bare = ISSUER.replace("https://", "")
        self.assertEqual(
            irsa_trust_policy(PROVIDER_ARN, bare, "ns", "sa"),
            irsa_trust_policy(PROVIDER_ARN, ISSUER, "ns", "sa")
        )


class TestIamFunctions(unittest.TestCase):
    """Resource creation with mocked providers"""

    def test_irsa_role_renders_trust_policy_from_outputs(self):
        with patch('eks_lb.iam.functions.aws') as mock_aws, \
             patch('eks_lb.iam.functions.pulumi') as mock_pulumi:
            create_irsa_role("controller-role", "provider-arn", "issuer", "kube-system", "controller")

            render = mock_pulumi.Output.all.return_value.apply.call_args[0][0]
            policy = json.loads(render([PROVIDER_ARN, ISSUER]))
            conditions = policy["Statement"][0]["Condition"]["StringEquals"]
            self.assertIn("system:serviceaccount:kube-system:controller", conditions.values())

            kwargs = mock_aws.iam.Role.call_args[1]
            self.assertEqual(mock_aws.iam.Role.call_args[0][0], "controller-role")
            self.assertEqual(kwargs["tags"]["ServiceAccount"], "kube-system/controller")

    def test_iam_resources_structure(self):
        with patch('eks_lb.iam.functions.aws') as mock_aws:
            mock_aws.iam.Role.return_value = Mock(arn="arn:role")
            mock_aws.iam.RolePolicyAttachment.return_value = Mock()

            result = create_iam_resources("test-cluster", {"Environment": "test"})

            for key in ["cluster_role_arn", "cluster_role_name", "node_group_role_arn", "node_group_role_name"]:
                self.assertIn(key, result)

            # cluster policy + worker, cni, registry, ssm
            self.assertEqual(mock_aws.iam.RolePolicyAttachment.call_count, 5)
            self.assertEqual(len(result["_node_policy_attachments"]), 4)

    def test_cluster_role_trusts_eks_service(self):
        with patch('eks_lb.iam.functions.aws') as mock_aws:
            create_iam_resources("test-cluster")

            trust_policies = [json.loads(call[1]["assume_role_policy"])
                              for call in mock_aws.iam.Role.call_args_list]
            principals = [p["Statement"][0]["Principal"]["Service"] for p in trust_policies]
            self.assertEqual(principals, ["eks.amazonaws.com", "ec2.amazonaws.com"])


if __name__ == "__main__":
    unittest.main()
