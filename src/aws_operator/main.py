"""Main entry point for the AWS Operator.

Reads its configuration from the environment, loads the cluster
declaration and runs one apply pass. Intended as a container entrypoint;
the ``aws-operator`` CLI offers the same operations interactively.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from botocore.exceptions import BotoCoreError

from .cluster_loader import ClusterLoadError, load_cluster
from .config import Config, ConfigurationError
from .provider import create_gateway
from .reconciler import Reconciler, ReconcileResult

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_RECORD_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """Configure root logging, JSON lines by default."""
    handler = logging.StreamHandler(sys.stdout)
    if json_logs:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Reduce noise from the AWS SDK
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def run_pass(config: Config, *, destroy: bool = False) -> ReconcileResult:
    """Load the cluster and run one apply (or destroy) pass.

    Raises:
        ClusterLoadError: If the cluster declaration is invalid.
        ConfigurationError: If the cluster is declared in another region.
    """
    snapshot = load_cluster(config.cluster_file)
    if snapshot.region and snapshot.region != config.region:
        raise ConfigurationError(
            f"Cluster '{snapshot.name}' is declared in region {snapshot.region}, "
            f"not {config.region}"
        )
    reconciler = Reconciler(create_gateway(config), dry_run=config.dry_run)
    if destroy:
        return reconciler.destroy(snapshot)
    return reconciler.reconcile(snapshot)


def main() -> int:
    """Run the operator once.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        setup_logging()
        logging.getLogger(__name__).error("Configuration error", extra={"error": str(e)})
        return 1

    setup_logging(config.log_level, config.json_logs)
    logger = logging.getLogger(__name__)

    logger.info(
        "Starting AWS Operator",
        extra={
            "region": config.region,
            "cluster_file": str(config.cluster_file),
            "dry_run": config.dry_run,
        },
    )

    try:
        result = run_pass(config)
    except ClusterLoadError as e:
        logger.error(
            "Cluster declaration loading failed",
            extra={"error": str(e), "cluster_file": str(config.cluster_file)},
        )
        return 1
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return 1
    except BotoCoreError as e:
        # Session/client construction failures (missing profile, no region, ...)
        logger.error("Failed to create AWS client", extra={"error": str(e)})
        return 1

    return 0 if result.success else 1


def run() -> None:
    """Entry point for the container image."""
    sys.exit(main())


if __name__ == "__main__":
    run()
