"""Cluster declaration loading with validation.

File size is checked before reading and the document is validated at the
boundary, so everything downstream can rely on a well-formed snapshot.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_CLUSTER_FILE_SIZE_BYTES
from .models import ClusterSnapshot

logger = logging.getLogger(__name__)


class ClusterLoadError(Exception):
    """Raised when a cluster declaration cannot be loaded or validated."""

    pass


def load_cluster(path: Path) -> ClusterSnapshot:
    """Load and validate a cluster declaration from YAML.

    Both a flat document and a Kubernetes-style wrapper (``apiVersion``,
    ``kind``, ``metadata``, ``spec``) are accepted.

    Args:
        path: Path to the cluster YAML file.

    Returns:
        Validated, immutable cluster snapshot.

    Raises:
        ClusterLoadError: If the file cannot be loaded or fails validation.
    """
    if not path.exists():
        raise ClusterLoadError(f"Cluster file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise ClusterLoadError(f"Failed to stat cluster file {path}: {e}") from e

    if file_size > MAX_CLUSTER_FILE_SIZE_BYTES:
        raise ClusterLoadError(
            f"Cluster file exceeds maximum size of {MAX_CLUSTER_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ClusterLoadError(f"Failed to read cluster file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ClusterLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise ClusterLoadError(f"Cluster file must contain a YAML mapping: {path}")

    if "apiVersion" in raw_data and "spec" in raw_data:
        cluster_data = raw_data.get("spec", {})
        if not isinstance(cluster_data, dict):
            raise ClusterLoadError(f"Spec section must be a mapping: {path}")
        # metadata.name stands in for a missing spec.name
        metadata = raw_data.get("metadata")
        if "name" not in cluster_data and isinstance(metadata, dict) and "name" in metadata:
            cluster_data = {**cluster_data, "name": metadata["name"]}
    else:
        cluster_data = raw_data

    try:
        cluster = ClusterSnapshot.model_validate(cluster_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise ClusterLoadError(f"Validation failed for {path}:\n{error_list}") from e

    logger.info(
        "Loaded cluster '%s' from %s",
        cluster.name,
        path,
        extra={"public_subnets": len(cluster.network.public_subnets)},
    )
    return cluster
