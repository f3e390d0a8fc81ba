"""Cloud provider gateway for the EC2 networking objects the operator manages.

Resources never talk to boto3 directly. They receive a ProviderGateway,
which keeps the reconciliation code independent of the SDK's response
shapes and lets tests substitute an in-memory double.

Provider failures (``botocore.exceptions.ClientError`` and
``BotoCoreError``) are not caught here. They propagate unmodified to the
caller, and nothing in this package retries them.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

import boto3
from botocore.config import Config as BotoConfig

from .tags import dict_to_tags, tags_to_dict

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)

# Destination of the default route to the internet gateway
DEFAULT_ROUTE_CIDR = "0.0.0.0/0"

SINGLE_ATTEMPT_RETRIES = {"mode": "standard", "total_max_attempts": 1}


@dataclass(frozen=True)
class RouteTableAssociation:
    """Link between a route table and a subnet (or the VPC main table)."""

    association_id: str
    subnet_id: str | None = None
    main: bool = False


@dataclass(frozen=True)
class RouteTable:
    """Route table as observed on the provider."""

    route_table_id: str
    tags: dict[str, str] = field(default_factory=dict)
    associations: tuple[RouteTableAssociation, ...] = ()


@dataclass(frozen=True)
class InternetGateway:
    """Internet gateway as observed on the provider."""

    internet_gateway_id: str


class ProviderGateway(Protocol):
    """Operations the reconciliation core consumes from the provider."""

    def describe_route_tables(self, filters: Sequence[Mapping[str, Any]]) -> list[RouteTable]: ...

    def create_route_table(self, vpc_id: str) -> RouteTable: ...

    def describe_internet_gateways(
        self, filters: Sequence[Mapping[str, Any]]
    ) -> list[InternetGateway]: ...

    def create_route(
        self, route_table_id: str, gateway_id: str, destination_cidr: str = DEFAULT_ROUTE_CIDR
    ) -> None: ...

    def associate_route_table(self, route_table_id: str, subnet_id: str) -> str: ...

    def disassociate_route_table(self, association_id: str) -> None: ...

    def delete_route_table(self, route_table_id: str) -> None: ...

    def create_tags(self, resource_ids: Sequence[str], tags: Mapping[str, str]) -> None: ...


def _route_table_from_response(data: Mapping[str, Any]) -> RouteTable:
    associations = tuple(
        RouteTableAssociation(
            association_id=assoc["RouteTableAssociationId"],
            subnet_id=assoc.get("SubnetId"),
            main=bool(assoc.get("Main", False)),
        )
        for assoc in data.get("Associations") or ()
    )
    return RouteTable(
        route_table_id=data["RouteTableId"],
        tags=tags_to_dict(data.get("Tags")),
        associations=associations,
    )


class Ec2Gateway:
    """ProviderGateway backed by a boto3 EC2 client."""

    def __init__(self, client: Any) -> None:
        """Initialize the gateway.

        Args:
            client: A boto3 ``ec2`` client (or anything with the same methods).
        """
        self._client = client

    def describe_route_tables(self, filters: Sequence[Mapping[str, Any]]) -> list[RouteTable]:
        response = self._client.describe_route_tables(Filters=list(filters))
        return [_route_table_from_response(rt) for rt in response.get("RouteTables", [])]

    def create_route_table(self, vpc_id: str) -> RouteTable:
        response = self._client.create_route_table(VpcId=vpc_id)
        return _route_table_from_response(response["RouteTable"])

    def describe_internet_gateways(
        self, filters: Sequence[Mapping[str, Any]]
    ) -> list[InternetGateway]:
        response = self._client.describe_internet_gateways(Filters=list(filters))
        return [
            InternetGateway(internet_gateway_id=igw["InternetGatewayId"])
            for igw in response.get("InternetGateways", [])
        ]

    def create_route(
        self, route_table_id: str, gateway_id: str, destination_cidr: str = DEFAULT_ROUTE_CIDR
    ) -> None:
        self._client.create_route(
            DestinationCidrBlock=destination_cidr,
            GatewayId=gateway_id,
            RouteTableId=route_table_id,
        )

    def associate_route_table(self, route_table_id: str, subnet_id: str) -> str:
        response = self._client.associate_route_table(
            RouteTableId=route_table_id,
            SubnetId=subnet_id,
        )
        return response["AssociationId"]

    def disassociate_route_table(self, association_id: str) -> None:
        self._client.disassociate_route_table(AssociationId=association_id)

    def delete_route_table(self, route_table_id: str) -> None:
        self._client.delete_route_table(RouteTableId=route_table_id)

    def create_tags(self, resource_ids: Sequence[str], tags: Mapping[str, str]) -> None:
        self._client.create_tags(Resources=list(resource_ids), Tags=dict_to_tags(tags))


def create_ec2_client(config: Config) -> Any:
    """Create a boto3 EC2 client for the configured region and profile.

    botocore's own retry handling is limited to a single attempt: failed
    calls surface to the caller instead of being retried behind its back.
    """
    session = boto3.session.Session(
        profile_name=config.profile,
        region_name=config.region,
    )
    logger.info(
        "Creating EC2 client",
        extra={"region": config.region, "profile": config.profile or "default"},
    )
    return session.client("ec2", config=BotoConfig(retries=SINGLE_ATTEMPT_RETRIES))


def create_gateway(config: Config) -> Ec2Gateway:
    """Build the default provider gateway from configuration."""
    return Ec2Gateway(create_ec2_client(config))
