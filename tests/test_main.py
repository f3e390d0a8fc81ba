"""Tests for the container entry point and logging setup."""

import json
import logging
import os
import sys
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from aws_mock import MockAwsContext
from botocore.exceptions import ProfileNotFound

from aws_operator.main import JsonFormatter, main, setup_logging

CLUSTER_YAML = """\
name: demo
region: us-east-1
network:
  identifier: vpc-1234
  publicSubnets:
    - name: public-a
      identifier: subnet-aaaa
    - name: public-b
      identifier: subnet-bbbb
"""


@pytest.fixture
def cluster_file(tmp_path: Path) -> Path:
    path = tmp_path / "cluster.yaml"
    path.write_text(CLUSTER_YAML)
    return path


@pytest.fixture
def env(cluster_file: Path) -> dict[str, str]:
    return {"AWS_REGION": "us-east-1", "CLUSTER_FILE": str(cluster_file)}


@pytest.fixture
def root_logger() -> Iterator[logging.Logger]:
    """Restore root logger handlers and level after the test."""
    logger = logging.getLogger()
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_includes_extra_fields(self) -> None:
        """Test that structured extras become top-level keys."""
        record = logging.LogRecord(
            "aws_operator.reconciler", logging.INFO, __file__, 1, "Drift detected", None, None
        )
        record.resource_name = "public-a"
        record.fields = ["tags"]

        data = json.loads(JsonFormatter().format(record))

        assert data["message"] == "Drift detected"
        assert data["level"] == "INFO"
        assert data["logger"] == "aws_operator.reconciler"
        assert data["resource_name"] == "public-a"
        assert data["fields"] == ["tags"]
        assert data["timestamp"].endswith("Z")
        assert "msg" not in data

    def test_includes_exception(self) -> None:
        """Test that exception text is rendered."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        data = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json_handler(self, root_logger: logging.Logger) -> None:
        """Test that a single JSON handler is installed."""
        setup_logging("debug")

        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, JsonFormatter)
        assert root_logger.level == logging.DEBUG
        assert logging.getLogger("botocore").level == logging.WARNING

    def test_text_handler(self, root_logger: logging.Logger) -> None:
        """Test plain text logging."""
        setup_logging("INFO", json_logs=False)

        assert not isinstance(root_logger.handlers[0].formatter, JsonFormatter)


@patch("aws_operator.main.setup_logging")
class TestMain:
    """Tests for main exit codes."""

    def test_success(self, _setup: object, env: dict[str, str]) -> None:
        """Test that a converged pass exits 0."""
        with MockAwsContext() as ctx, patch.dict(os.environ, env, clear=True):
            ctx.state.add_internet_gateway({"kubicorn-internet-gateway-name": "demo"})
            assert main() == 0
            assert ctx.state.route_table_count == 2

    def test_dry_run(self, _setup: object, env: dict[str, str]) -> None:
        """Test that DRY_RUN leaves the provider untouched."""
        dry_env = {**env, "DRY_RUN": "true"}
        with MockAwsContext() as ctx, patch.dict(os.environ, dry_env, clear=True):
            ctx.state.add_internet_gateway({"kubicorn-internet-gateway-name": "demo"})
            assert main() == 0
            assert ctx.client.mutating_operations() == []

    def test_configuration_error(self, _setup: object) -> None:
        """Test that invalid configuration exits 1."""
        with patch.dict(os.environ, {}, clear=True):
            assert main() == 1

    def test_cluster_load_error(
        self, _setup: object, env: dict[str, str], cluster_file: Path
    ) -> None:
        """Test that an invalid cluster declaration exits 1."""
        cluster_file.write_text("name: [unclosed\n")

        with MockAwsContext() as ctx, patch.dict(os.environ, env, clear=True):
            assert main() == 1
            assert ctx.client.calls == []

    def test_reconcile_failure(self, _setup: object, env: dict[str, str]) -> None:
        """Test that a failed pass exits 1."""
        with MockAwsContext(), patch.dict(os.environ, env, clear=True):
            assert main() == 1

    def test_client_creation_error(self, _setup: object, env: dict[str, str]) -> None:
        """Test that an unknown credentials profile exits 1."""
        with (
            patch.dict(os.environ, {**env, "AWS_PROFILE": "missing"}, clear=True),
            patch(
                "aws_operator.main.create_gateway",
                side_effect=ProfileNotFound(profile="missing"),
            ),
        ):
            assert main() == 1

    def test_region_mismatch(self, _setup: object, env: dict[str, str]) -> None:
        """Test that a cluster declared in another region exits 1 untouched."""
        with (
            MockAwsContext() as ctx,
            patch.dict(os.environ, {**env, "AWS_REGION": "eu-west-1"}, clear=True),
        ):
            ctx.state.add_internet_gateway({"kubicorn-internet-gateway-name": "demo"})
            assert main() == 1
            assert ctx.client.calls == []
            assert ctx.sessions == []
