"""AWS API Mock for Integration Testing.

This module provides a mock implementation of the EC2 networking APIs the
operator uses, so reconciliation can be tested without AWS connectivity.

Key Features:
- In-memory state for route tables and internet gateways
- Tag-filtered describe calls matching EC2 semantics
- Call log for asserting ordering and idempotence
- Error injection with real botocore ClientError instances

Usage:
    from aws_mock import MockEc2Client

    client = MockEc2Client()
    client.state.add_internet_gateway({"kubicorn-internet-gateway-name": "demo"})
    gateway = Ec2Gateway(client)
"""

from .context import MockAwsContext, MockSession, mock_aws_context
from .ec2 import MockEc2Client, MockEc2State, MockInternetGateway, MockRouteTable

__all__ = [
    "MockAwsContext",
    "MockEc2Client",
    "MockEc2State",
    "MockInternetGateway",
    "MockRouteTable",
    "MockSession",
    "mock_aws_context",
]
