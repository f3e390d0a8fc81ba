"""Reconcilable resources: the Actual / Expected / Apply / Delete protocol.

Every resource kind implements four phases:

1. actual():   query the provider and describe what exists right now
2. expected(): compute what should exist, purely from the cluster snapshot
3. apply():    converge the provider from actual toward expected
4. delete():   tear the provider object down

Each phase returns a ``(snapshot, resource)`` pair. Resource values are
frozen and built fresh for every phase, and snapshots are never edited in
place, so consecutive passes share no mutable state. The provider gateway
is passed into every call instead of being looked up globally.

IDENTIFIER INVARIANT:
``identifier`` is non-empty only while the provider object is known to
exist. Apply never short-circuits on, and Delete never targets, a resource
with an empty identifier.

LOOKUP STRICTNESS:
Actual tolerates zero matches (first run) and several matches (takes the
first). Delete and the internet gateway lookup in Apply require exactly
one match, because they act on the object they find.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import ClassVar, Self

from .compare import is_equal
from .models import ClusterSnapshot, PublicSubnet
from .provider import ProviderGateway
from .tags import (
    CLUSTER_TAG,
    INTERNET_GATEWAY_NAME_TAG,
    NAME_TAG,
    ROUTE_TABLE_SUBNET_PAIR_TAG,
    tag_filter,
)

logger = logging.getLogger(__name__)


class ReconcileError(Exception):
    """Base class for failures detected by the reconciliation core."""

    pass


class AmbiguousLookupError(ReconcileError):
    """Raised when a lookup that must match exactly one object does not."""

    def __init__(self, kind: str, count: int, key: str, value: str) -> None:
        self.kind = kind
        self.count = count
        self.key = key
        self.value = value
        super().__init__(f"Found [{count}] {kind} for tag [{key}={value}], expected exactly 1")


class MissingIdentifierError(ReconcileError):
    """Raised when an operation needs a provider identifier that is absent."""

    pass


class DependencyResolutionError(ReconcileError):
    """Raised when a required sibling resource cannot be resolved."""

    pass


@dataclass(frozen=True)
class Resource(ABC):
    """A single reconcilable infrastructure object.

    Attributes:
        name: Logical name, stable across reconciliations.
        identifier: Provider handle; empty until the object exists.
        tags: Tags as a plain mapping. Compared, but left out of the hash.
    """

    kind: ClassVar[str] = "resource"

    name: str = ""
    identifier: str = ""
    tags: dict[str, str] = field(default_factory=dict, hash=False)

    @abstractmethod
    def actual(
        self, snapshot: ClusterSnapshot, gateway: ProviderGateway
    ) -> tuple[ClusterSnapshot, Self]:
        """Describe the live provider state of this resource."""

    @abstractmethod
    def expected(self, snapshot: ClusterSnapshot) -> tuple[ClusterSnapshot, Self]:
        """Compute the desired state from the snapshot alone (no provider calls)."""

    @abstractmethod
    def apply(
        self,
        actual: Self,
        expected: Self,
        snapshot: ClusterSnapshot,
        gateway: ProviderGateway,
    ) -> tuple[ClusterSnapshot, Self]:
        """Converge the provider from ``actual`` toward ``expected``."""

    @abstractmethod
    def delete(
        self, actual: Self, snapshot: ClusterSnapshot, gateway: ProviderGateway
    ) -> tuple[ClusterSnapshot, Self]:
        """Remove the provider object described by ``actual``."""

    def render(self, new_resource: Self, snapshot: ClusterSnapshot) -> ClusterSnapshot:
        """Fold a phase outcome into the snapshot used by the next step.

        The default keeps the outcome in the returned resource only and hands
        back ``snapshot`` itself. Kinds whose identifiers later resources
        need override this and return a derived copy.
        """
        logger.debug(
            "Rendering snapshot",
            extra={"resource_kind": self.kind, "resource_name": new_resource.name},
        )
        return snapshot

    def tag(self, gateway: ProviderGateway, tags: Mapping[str, str]) -> None:
        """Apply all ``tags`` to this resource in a single provider call.

        Raises:
            MissingIdentifierError: If the resource has no identifier yet.
        """
        if not self.identifier:
            raise MissingIdentifierError(
                f"Unable to tag {self.kind} without identifier [{self.name}]"
            )
        for key, value in sorted(tags.items()):
            logger.debug(
                "Registering tag",
                extra={"resource_kind": self.kind, "tag_key": key, "tag_value": value},
            )
        gateway.create_tags([self.identifier], tags)


@dataclass(frozen=True)
class PublicRouteTable(Resource):
    """Route table sending a public subnet's traffic to the internet gateway.

    The table is named after, and paired with, one public subnet. The pairing
    lives on the provider as the ``kubicorn-public-route-table-subnet-pair``
    tag, which is how later passes find the table again.

    Attributes:
        subnet: The public subnet this table serves, referenced by name and
            identifier rather than by live object.
        route_table_id: Provider id of the table as last observed.
    """

    kind: ClassVar[str] = "public route table"

    subnet: PublicSubnet | None = field(default=None, compare=False)
    route_table_id: str = field(default="", compare=False)

    def _require_subnet(self) -> PublicSubnet:
        if self.subnet is None:
            raise DependencyResolutionError(
                f"Public route table [{self.name}] has no public subnet reference"
            )
        return self.subnet

    def actual(
        self, snapshot: ClusterSnapshot, gateway: ProviderGateway
    ) -> tuple[ClusterSnapshot, PublicRouteTable]:
        logger.debug("publicroutetable.Actual", extra={"resource_name": self.name})
        new_resource = PublicRouteTable(name=self.name, subnet=self.subnet)

        # Nothing can be paired with a subnet that does not exist yet
        if self.subnet is None or not self.subnet.identifier:
            return self.render(new_resource, snapshot), new_resource

        route_tables = gateway.describe_route_tables(
            tag_filter(ROUTE_TABLE_SUBNET_PAIR_TAG, self.subnet.name)
        )
        if route_tables:
            if len(route_tables) > 1:
                logger.warning(
                    "Multiple public route tables match, using the first",
                    extra={
                        "resource_name": self.name,
                        "match_count": len(route_tables),
                        "route_table_id": route_tables[0].route_table_id,
                    },
                )
            route_table = route_tables[0]
            new_resource = replace(
                new_resource,
                name=self.subnet.name,
                identifier=self.subnet.name,
                tags=dict(route_table.tags),
                route_table_id=route_table.route_table_id,
            )

        return self.render(new_resource, snapshot), new_resource

    def expected(self, snapshot: ClusterSnapshot) -> tuple[ClusterSnapshot, PublicRouteTable]:
        logger.debug("publicroutetable.Expected", extra={"resource_name": self.name})
        subnet = self._require_subnet()
        new_resource = PublicRouteTable(
            name=subnet.name,
            identifier=subnet.name,
            tags={
                NAME_TAG: self.name,
                CLUSTER_TAG: snapshot.name,
                ROUTE_TABLE_SUBNET_PAIR_TAG: subnet.name,
            },
            subnet=subnet,
        )
        return self.render(new_resource, snapshot), new_resource

    def apply(
        self,
        actual: PublicRouteTable,
        expected: PublicRouteTable,
        snapshot: ClusterSnapshot,
        gateway: ProviderGateway,
    ) -> tuple[ClusterSnapshot, PublicRouteTable]:
        logger.debug("publicroutetable.Apply", extra={"resource_name": self.name})
        if actual.identifier and is_equal(actual, expected):
            return snapshot, expected

        vpc_id = snapshot.network.identifier
        if not vpc_id:
            raise DependencyResolutionError(
                f"Unable to create public route table [{self.name}]: "
                f"network of cluster [{snapshot.name}] has no identifier"
            )

        # Create the route table inside the cluster VPC
        route_table = gateway.create_route_table(vpc_id)
        route_table_id = route_table.route_table_id
        logger.info(
            "Created public route table",
            extra={"resource_name": self.name, "route_table_id": route_table_id},
        )

        # Look up the cluster's internet gateway
        internet_gateways = gateway.describe_internet_gateways(
            tag_filter(INTERNET_GATEWAY_NAME_TAG, snapshot.name)
        )
        if len(internet_gateways) != 1:
            raise AmbiguousLookupError(
                "internet gateways",
                len(internet_gateways),
                INTERNET_GATEWAY_NAME_TAG,
                snapshot.name,
            )
        internet_gateway_id = internet_gateways[0].internet_gateway_id
        logger.info(
            "Mapping public route table to internet gateway",
            extra={"route_table_id": route_table_id, "internet_gateway_id": internet_gateway_id},
        )

        gateway.create_route(route_table_id, internet_gateway_id)

        subnet_id = snapshot.public_subnet_identifier(self.name)
        if not subnet_id:
            raise DependencyResolutionError(
                f"Unable to find public subnet identifier for [{self.name}]"
            )

        association_id = gateway.associate_route_table(route_table_id, subnet_id)
        logger.info(
            "Associated public route table with public subnet",
            extra={
                "route_table_id": route_table_id,
                "subnet_id": subnet_id,
                "association_id": association_id,
            },
        )

        new_resource = PublicRouteTable(
            name=expected.name,
            identifier=route_table_id,
            subnet=self.subnet,
            route_table_id=route_table_id,
        )
        new_resource.tag(gateway, expected.tags)
        new_resource = replace(new_resource, tags=dict(expected.tags))

        return self.render(new_resource, snapshot), new_resource

    def delete(
        self,
        actual: PublicRouteTable,
        snapshot: ClusterSnapshot,
        gateway: ProviderGateway,
    ) -> tuple[ClusterSnapshot, PublicRouteTable]:
        logger.debug("publicroutetable.Delete", extra={"resource_name": self.name})
        if not actual.identifier:
            raise MissingIdentifierError(
                f"Unable to delete public route table resource without identifier [{actual.name}]"
            )
        subnet = self._require_subnet()

        # Re-query by tag: the cached identifier is a logical handle, not the table id
        route_tables = gateway.describe_route_tables(
            tag_filter(ROUTE_TABLE_SUBNET_PAIR_TAG, subnet.name)
        )
        if len(route_tables) != 1:
            raise AmbiguousLookupError(
                "public route tables",
                len(route_tables),
                ROUTE_TABLE_SUBNET_PAIR_TAG,
                subnet.name,
            )
        route_table = route_tables[0]

        associations = [a for a in route_table.associations if not a.main]
        if associations:
            association = associations[0]
            gateway.disassociate_route_table(association.association_id)
            logger.info(
                "Disassociated public route table from public subnet",
                extra={
                    "route_table_id": route_table.route_table_id,
                    "subnet_id": association.subnet_id,
                    "association_id": association.association_id,
                },
            )
        else:
            logger.warning(
                "Public route table has no subnet association",
                extra={"route_table_id": route_table.route_table_id},
            )

        gateway.delete_route_table(route_table.route_table_id)
        logger.info(
            "Deleted public route table",
            extra={"resource_name": actual.name, "route_table_id": route_table.route_table_id},
        )

        new_resource = PublicRouteTable(
            name=actual.name,
            tags=dict(actual.tags),
            subnet=self.subnet,
        )
        return self.render(new_resource, snapshot), new_resource
