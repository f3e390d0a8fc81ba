"""Pydantic models for the immutable cluster snapshot.

A ClusterSnapshot describes the declared and last-observed topology of one
cluster. Snapshots are frozen: reconciling a resource never edits the
snapshot it was given, it returns a new one (often the very same object).
Every holder of an older snapshot therefore keeps a consistent view.

These models provide:
1. Type-safe YAML parsing
2. Validation at the boundary (fail fast, fail loudly)
3. Immutability, so a snapshot handed to one step cannot change under the next
"""

from __future__ import annotations

import ipaddress
from typing import Annotated

from pydantic import BaseModel, Field, field_validator

# Cluster names end up in tag values and AWS names
VALID_CLUSTER_NAME_PATTERN = r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$"


def _validate_cidr(v: str | None) -> str | None:
    if v is None:
        return v
    if "/" not in v:
        raise ValueError(f"must be in CIDR notation (e.g., 10.0.0.0/24): {v}")
    try:
        ipaddress.ip_network(v, strict=False)
    except ValueError as e:
        raise ValueError(f"must be in CIDR notation (e.g., 10.0.0.0/24): {v}") from e
    return v


class PublicSubnet(BaseModel):
    """A public subnet record: logical name plus provider identifier."""

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    name: Annotated[str, Field(min_length=1, max_length=255)]
    identifier: str = ""
    cidr: str | None = None
    zone: str | None = Field(None, alias="availabilityZone")

    @field_validator("cidr")
    @classmethod
    def validate_cidr(cls, v: str | None) -> str | None:
        return _validate_cidr(v)


class Network(BaseModel):
    """The cluster VPC and its public subnets."""

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    name: str = ""
    identifier: str = ""
    cidr: str | None = None
    public_subnets: tuple[PublicSubnet, ...] = Field(default=(), alias="publicSubnets")

    @field_validator("cidr")
    @classmethod
    def validate_cidr(cls, v: str | None) -> str | None:
        return _validate_cidr(v)

    @field_validator("public_subnets")
    @classmethod
    def validate_unique_names(cls, v: tuple[PublicSubnet, ...]) -> tuple[PublicSubnet, ...]:
        seen: set[str] = set()
        for subnet in v:
            if subnet.name in seen:
                raise ValueError(f"duplicate public subnet name: {subnet.name}")
            seen.add(subnet.name)
        return v


class ClusterSnapshot(BaseModel):
    """Immutable point-in-time description of a cluster.

    Derive updated snapshots with ``model_copy(update=...)``; the receiver
    is never touched.
    """

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    name: Annotated[str, Field(min_length=1, max_length=63, pattern=VALID_CLUSTER_NAME_PATTERN)]
    region: str | None = None
    network: Network = Field(default_factory=Network)

    def public_subnet(self, name: str) -> PublicSubnet | None:
        """Find a declared public subnet by logical name."""
        for subnet in self.network.public_subnets:
            if subnet.name == name:
                return subnet
        return None

    def public_subnet_identifier(self, name: str) -> str:
        """Scan the public subnets for ``name`` and return its provider id.

        Returns an empty string when the subnet is unknown or has not been
        created yet. If a name were listed twice the last entry wins.
        """
        identifier = ""
        for subnet in self.network.public_subnets:
            if subnet.name == name:
                identifier = subnet.identifier
        return identifier
