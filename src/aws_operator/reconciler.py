"""Reconciliation driver.

This module sequences the resource phases:
1. Build the resource set from the cluster snapshot
2. For each resource: Actual -> Expected -> compare -> Apply
3. For teardown: Actual -> Delete, in reverse declaration order
4. Thread every returned snapshot into the next step

Execution is single-threaded and synchronous. Provider errors are never
retried here: a failed pass stops at the failing resource, and the next pass
converges whatever partial state it left behind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from .compare import ComparisonError, differences, is_equal
from .models import ClusterSnapshot
from .provider import ProviderGateway
from .resources import (
    AmbiguousLookupError,
    DependencyResolutionError,
    MissingIdentifierError,
    PublicRouteTable,
    ReconcileError,
    Resource,
)

logger = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    """What a reconciliation pass was asked to do."""

    APPLY = "apply"
    DESTROY = "destroy"


class ResourceAction(str, Enum):
    """What happened to a single resource during a pass."""

    UNCHANGED = "unchanged"  # Actual already matched Expected
    CREATED = "created"  # Provider converged toward Expected
    DRIFTED = "drifted"  # Drift found but not applied (dry run)
    DELETED = "deleted"  # Provider object removed
    WOULD_DELETE = "would-delete"  # Deletion pending but not applied (dry run)
    ABSENT = "absent"  # Nothing to delete


@dataclass(frozen=True)
class ResourceOutcome:
    """Result of reconciling one resource."""

    name: str
    kind: str
    action: ResourceAction
    resource: Resource
    snapshot: ClusterSnapshot

    @property
    def changed(self) -> bool:
        """Whether provider mutations were performed."""
        return self.action in (ResourceAction.CREATED, ResourceAction.DELETED)


@dataclass
class ReconcileResult:
    """Result of a reconciliation pass over a whole cluster."""

    cluster: str
    action: ReconcileAction = ReconcileAction.APPLY
    dry_run: bool = False
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    outcomes: list[ResourceOutcome] = field(default_factory=list)
    snapshot: ClusterSnapshot | None = None
    error: Exception | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        """Check if the pass succeeded."""
        return self.error is None

    @property
    def drift_found(self) -> bool:
        """Whether any resource needed (or received) a change."""
        return any(o.action != ResourceAction.UNCHANGED for o in self.outcomes)

    @property
    def changes_applied(self) -> int:
        """Number of resources mutated on the provider."""
        return sum(1 for o in self.outcomes if o.changed)


def resources_for(snapshot: ClusterSnapshot) -> list[PublicRouteTable]:
    """Build the resource set declared by ``snapshot``.

    One public route table per public subnet, named after the subnet and in
    declaration order.
    """
    return [
        PublicRouteTable(name=subnet.name, subnet=subnet)
        for subnet in snapshot.network.public_subnets
    ]


class Reconciler:
    """Drives resources through their phases against one provider gateway.

    The gateway is injected so that the same driver runs against EC2 in
    production and against an in-memory double in tests.
    """

    def __init__(self, gateway: ProviderGateway, *, dry_run: bool = False) -> None:
        """Initialize the reconciler.

        Args:
            gateway: Provider gateway used for every phase.
            dry_run: If True, report drift without applying it.
        """
        self._gateway = gateway
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        """Whether drift is only reported."""
        return self._dry_run

    def reconcile_resource(self, resource: Resource, snapshot: ClusterSnapshot) -> ResourceOutcome:
        """Converge one resource: Actual, Expected, compare, then Apply.

        Raises:
            ReconcileError: On ambiguous lookups, missing identifiers or
                unresolvable dependencies.
            ComparisonError: If actual and expected cannot be compared.
            botocore.exceptions.ClientError: On provider failures.
        """
        snapshot, actual = resource.actual(snapshot, self._gateway)
        snapshot, expected = resource.expected(snapshot)

        if actual.identifier and is_equal(actual, expected):
            logger.debug(
                "Resource up to date",
                extra={"resource_kind": resource.kind, "resource_name": resource.name},
            )
            return ResourceOutcome(
                name=resource.name,
                kind=resource.kind,
                action=ResourceAction.UNCHANGED,
                resource=expected,
                snapshot=snapshot,
            )

        drift = differences(actual, expected)
        logger.info(
            "Drift detected",
            extra={
                "resource_kind": resource.kind,
                "resource_name": resource.name,
                "exists": bool(actual.identifier),
                "fields": drift,
            },
        )

        if self._dry_run:
            logger.info(
                "Dry-run mode, skipping apply",
                extra={"resource_kind": resource.kind, "resource_name": resource.name},
            )
            return ResourceOutcome(
                name=resource.name,
                kind=resource.kind,
                action=ResourceAction.DRIFTED,
                resource=actual,
                snapshot=snapshot,
            )

        snapshot, applied = resource.apply(actual, expected, snapshot, self._gateway)
        return ResourceOutcome(
            name=resource.name,
            kind=resource.kind,
            action=ResourceAction.CREATED,
            resource=applied,
            snapshot=snapshot,
        )

    def destroy_resource(self, resource: Resource, snapshot: ClusterSnapshot) -> ResourceOutcome:
        """Tear one resource down: Actual, then Delete.

        A resource whose Actual phase finds nothing is reported as absent and
        Delete is not invoked.
        """
        snapshot, actual = resource.actual(snapshot, self._gateway)

        if not actual.identifier:
            logger.info(
                "Resource already absent",
                extra={"resource_kind": resource.kind, "resource_name": resource.name},
            )
            return ResourceOutcome(
                name=resource.name,
                kind=resource.kind,
                action=ResourceAction.ABSENT,
                resource=actual,
                snapshot=snapshot,
            )

        if self._dry_run:
            logger.info(
                "Dry-run mode, skipping delete",
                extra={"resource_kind": resource.kind, "resource_name": resource.name},
            )
            return ResourceOutcome(
                name=resource.name,
                kind=resource.kind,
                action=ResourceAction.WOULD_DELETE,
                resource=actual,
                snapshot=snapshot,
            )

        snapshot, deleted = resource.delete(actual, snapshot, self._gateway)
        return ResourceOutcome(
            name=resource.name,
            kind=resource.kind,
            action=ResourceAction.DELETED,
            resource=deleted,
            snapshot=snapshot,
        )

    def reconcile(self, snapshot: ClusterSnapshot) -> ReconcileResult:
        """Run one apply pass over every resource the snapshot declares."""
        result = ReconcileResult(
            cluster=snapshot.name, action=ReconcileAction.APPLY, dry_run=self._dry_run
        )
        self._run(result, snapshot, resources_for(snapshot), self.reconcile_resource)
        return result

    def destroy(self, snapshot: ClusterSnapshot) -> ReconcileResult:
        """Run one teardown pass, in reverse declaration order."""
        result = ReconcileResult(
            cluster=snapshot.name, action=ReconcileAction.DESTROY, dry_run=self._dry_run
        )
        resources = list(reversed(resources_for(snapshot)))
        self._run(result, snapshot, resources, self.destroy_resource)
        return result

    def _run(
        self,
        result: ReconcileResult,
        snapshot: ClusterSnapshot,
        resources: Sequence[Resource],
        step: Callable[[Resource, ClusterSnapshot], ResourceOutcome],
    ) -> None:
        """Run ``step`` over ``resources``, stopping at the first failure."""
        logger.info(
            "Starting reconciliation",
            extra={
                "cluster": result.cluster,
                "action": result.action.value,
                "dry_run": result.dry_run,
                "resource_count": len(resources),
            },
        )

        try:
            for resource in resources:
                outcome = step(resource, snapshot)
                result.outcomes.append(outcome)
                snapshot = outcome.snapshot
        except AmbiguousLookupError as e:
            logger.error(
                "Ambiguous provider lookup",
                extra={"cluster": result.cluster, "error": str(e), "match_count": e.count},
            )
            result.error = e
        except MissingIdentifierError as e:
            logger.error("Missing resource identifier", extra={"error": str(e)})
            result.error = e
        except DependencyResolutionError as e:
            logger.error(
                "Dependency not resolvable",
                extra={"cluster": result.cluster, "error": str(e)},
            )
            result.error = e
        except ReconcileError as e:
            logger.error("Reconciliation error", extra={"error": str(e)})
            result.error = e
        except ComparisonError as e:
            logger.error("Resource comparison failed", extra={"error": str(e)})
            result.error = e
        except ClientError as e:
            logger.error(
                "AWS API error",
                extra={
                    "error": str(e),
                    "error_code": e.response.get("Error", {}).get("Code", "Unknown"),
                },
            )
            result.error = e
        except BotoCoreError as e:
            logger.error("AWS transport error", extra={"error": str(e)})
            result.error = e
        except Exception as e:
            logger.exception("Unexpected error during reconciliation")
            result.error = e

        result.snapshot = snapshot
        result.end_time = datetime.now(UTC)
        self._log_result(result)

    def _log_result(self, result: ReconcileResult) -> None:
        """Log a pass summary with structured data."""
        log_data: dict[str, Any] = {
            "cluster": result.cluster,
            "action": result.action.value,
            "success": result.success,
            "drift_found": result.drift_found,
            "changes_applied": result.changes_applied,
            "duration_seconds": round(result.duration_seconds, 2),
        }

        if result.error:
            log_data["error"] = str(result.error)
            logger.error("Reconciliation failed", extra=log_data)
        else:
            logger.info("Reconciliation complete", extra=log_data)
