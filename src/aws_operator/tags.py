"""Tag convention shared by lookups and ownership marking.

EC2 objects carry no foreign keys between each other, so tags are the only
durable link between a route table, the subnet it serves and the cluster
that owns it. The same keys are written on creation and used as describe
filters afterwards, which is what lets a fresh process re-derive state.

The key strings are part of the wire contract with existing clusters and
must never change.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

# Correlates a public route table with the public subnet it is paired with
ROUTE_TABLE_SUBNET_PAIR_TAG = "kubicorn-public-route-table-subnet-pair"

# Marks the internet gateway belonging to a cluster (value: cluster name)
INTERNET_GATEWAY_NAME_TAG = "kubicorn-internet-gateway-name"

NAME_TAG = "Name"
CLUSTER_TAG = "KubernetesCluster"


def tag_filter(key: str, value: str) -> list[dict[str, Any]]:
    """Build an EC2 describe filter matching objects tagged ``key=value``."""
    return [{"Name": f"tag:{key}", "Values": [value]}]


def tags_to_dict(tags: Iterable[Mapping[str, str]] | None) -> dict[str, str]:
    """Convert an EC2 tag list into a plain mapping."""
    result: dict[str, str] = {}
    for tag in tags or ():
        result[tag["Key"]] = tag["Value"]
    return result


def dict_to_tags(tags: Mapping[str, str]) -> list[dict[str, str]]:
    """Convert a mapping into an EC2 tag list, sorted by key."""
    return [{"Key": key, "Value": tags[key]} for key in sorted(tags)]
