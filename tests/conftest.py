"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for aws_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from aws_mock import MockEc2Client  # noqa: E402

from aws_operator.models import ClusterSnapshot  # noqa: E402
from aws_operator.provider import Ec2Gateway  # noqa: E402

CLUSTER_NAME = "demo"
VPC_ID = "vpc-0123456789abcdef0"


@pytest.fixture
def snapshot() -> ClusterSnapshot:
    """A cluster with two created public subnets."""
    return ClusterSnapshot.model_validate(
        {
            "name": CLUSTER_NAME,
            "region": "us-east-1",
            "network": {
                "name": CLUSTER_NAME,
                "identifier": VPC_ID,
                "cidr": "10.0.0.0/16",
                "publicSubnets": [
                    {"name": "public-a", "identifier": "subnet-aaaa", "cidr": "10.0.0.0/24"},
                    {"name": "public-b", "identifier": "subnet-bbbb", "cidr": "10.0.1.0/24"},
                ],
            },
        }
    )


@pytest.fixture
def client() -> MockEc2Client:
    """Mock EC2 client with the cluster's internet gateway in place."""
    ec2 = MockEc2Client()
    ec2.state.add_internet_gateway({"kubicorn-internet-gateway-name": CLUSTER_NAME})
    return ec2


@pytest.fixture
def gateway(client: MockEc2Client) -> Ec2Gateway:
    """Real Ec2Gateway wired to the mock client."""
    return Ec2Gateway(client)
