"""
VPC Module Functions
Creates VPC, public/private subnets, NAT and route tables for EKS load balancers
"""

import pulumi
import pulumi_aws as aws
from typing import Dict, List, Any


def subnet_tags(cluster_name: str, name: str, public: bool, tags: Dict[str, str] = None) -> Dict[str, str]:
    """
    Build subnet tags used by the AWS Load Balancer Controller for subnet discovery

    Public subnets host internet-facing load balancers, private subnets host internal ones.
    """
    tags = tags or {}
    role_tag = "kubernetes.io/role/elb" if public else "kubernetes.io/role/internal-elb"
    return {
        **tags,
        "Name": name,
        "Type": "public" if public else "private",
        f"kubernetes.io/cluster/{cluster_name}": "shared",
        role_tag: "1",
        "Module": "vpc"
    }


def create_subnets(cluster_name: str, vpc_id: pulumi.Output[str], subnet_cidrs: List[str],
                   availability_zones: List[str], public: bool,
                   tags: Dict[str, str] = None) -> List[aws.ec2.Subnet]:
    """
    Create one subnet per CIDR, spread across availability zones

    Args:
        cluster_name: EKS cluster name
        vpc_id: VPC ID
        subnet_cidrs: List of CIDR blocks
        availability_zones: Availability zones, one per CIDR
        public: Create public (ELB) or private (internal ELB) subnets
        tags: Additional tags

    Returns:
        List of subnet resources
    """
    if len(subnet_cidrs) > len(availability_zones):
        raise Exception(
            f"Got {len(subnet_cidrs)} subnet CIDRs but only {len(availability_zones)} availability zones are available"
        )

    kind = "public" if public else "private"
    subnets = []
    for i, cidr in enumerate(subnet_cidrs):
        name = f"{cluster_name}-{kind}-subnet-{i+1}"
        subnet = aws.ec2.Subnet(
            name,
            vpc_id=vpc_id,
            cidr_block=cidr,
            availability_zone=availability_zones[i],
            map_public_ip_on_launch=public,
            tags=subnet_tags(cluster_name, name, public, tags)
        )
        subnets.append(subnet)
    return subnets


def create_vpc_resources(cluster_name: str, vpc_cidr: str, public_subnet_cidrs: List[str],
                         private_subnet_cidrs: List[str], tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create complete VPC infrastructure for EKS

    Args:
        cluster_name: EKS cluster name
        vpc_cidr: VPC CIDR block
        public_subnet_cidrs: CIDR blocks for public subnets
        private_subnet_cidrs: CIDR blocks for private subnets
        tags: Additional tags for all resources

    Returns:
        Dict with all VPC resources and outputs
    """
    tags = tags or {}

    if not public_subnet_cidrs:
        raise Exception(
            "At least one public subnet CIDR is required for the NAT gateway and internet-facing load balancers"
        )

    azs = aws.get_availability_zones(state="available")

    vpc = aws.ec2.Vpc(
        f"{cluster_name}-vpc",
        cidr_block=vpc_cidr,
        enable_dns_hostnames=True,
        enable_dns_support=True,
        tags={
            **tags,
            "Name": f"{cluster_name}-vpc",
            f"kubernetes.io/cluster/{cluster_name}": "shared",
            "Module": "vpc"
        }
    )

    igw = aws.ec2.InternetGateway(
        f"{cluster_name}-igw",
        vpc_id=vpc.id,
        tags={
            **tags,
            "Name": f"{cluster_name}-igw",
            "Module": "vpc"
        }
    )

    public_subnets = create_subnets(cluster_name, vpc.id, public_subnet_cidrs, azs.names, True, tags)
    private_subnets = create_subnets(cluster_name, vpc.id, private_subnet_cidrs, azs.names, False, tags)

    # Single NAT gateway in the first public subnet
    nat_eip = aws.ec2.Eip(
        f"{cluster_name}-nat-eip",
        domain="vpc",
        tags={
            **tags,
            "Name": f"{cluster_name}-nat-eip",
            "Module": "vpc"
        },
        opts=pulumi.ResourceOptions(depends_on=[igw])
    )

    nat_gateway = aws.ec2.NatGateway(
        f"{cluster_name}-nat",
        allocation_id=nat_eip.id,
        subnet_id=public_subnets[0].id,
        tags={
            **tags,
            "Name": f"{cluster_name}-nat",
            "Module": "vpc"
        }
    )

    public_route_table = aws.ec2.RouteTable(
        f"{cluster_name}-public-rt",
        vpc_id=vpc.id,
        routes=[aws.ec2.RouteTableRouteArgs(
            cidr_block="0.0.0.0/0",
            gateway_id=igw.id
        )],
        tags={
            **tags,
            "Name": f"{cluster_name}-public-rt",
            "Module": "vpc"
        }
    )

    private_route_table = aws.ec2.RouteTable(
        f"{cluster_name}-private-rt",
        vpc_id=vpc.id,
        routes=[aws.ec2.RouteTableRouteArgs(
            cidr_block="0.0.0.0/0",
            nat_gateway_id=nat_gateway.id
        )],
        tags={
            **tags,
            "Name": f"{cluster_name}-private-rt",
            "Module": "vpc"
        }
    )

    for i, subnet in enumerate(public_subnets):
        aws.ec2.RouteTableAssociation(
            f"{cluster_name}-public-rta-{i+1}",
            subnet_id=subnet.id,
            route_table_id=public_route_table.id
        )

    for i, subnet in enumerate(private_subnets):
        aws.ec2.RouteTableAssociation(
            f"{cluster_name}-private-rta-{i+1}",
            subnet_id=subnet.id,
            route_table_id=private_route_table.id
        )

    return {
        "vpc_id": vpc.id,
        "vpc_cidr_block": vpc.cidr_block,
        "public_subnet_ids": [subnet.id for subnet in public_subnets],
        "private_subnet_ids": [subnet.id for subnet in private_subnets],
        "availability_zones": azs.names,
        # Keep references to resources for dependencies
        "_vpc": vpc,
        "_nat_gateway": nat_gateway
    }
