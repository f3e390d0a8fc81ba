"""Tests for the aws-operator CLI."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from aws_mock import MockAwsContext
from click.testing import CliRunner, Result

from aws_operator.cli import CLI_VERSION, cli

CLUSTER_YAML = """\
name: demo
network:
  identifier: vpc-1234
  publicSubnets:
    - name: public-a
      identifier: subnet-aaaa
    - name: public-b
      identifier: subnet-bbbb
"""

# Keep host settings from leaking into option fallbacks
CLEAN_ENV = {"AWS_REGION": None, "AWS_PROFILE": None, "CLUSTER_FILE": None, "LOG_LEVEL": None}


@pytest.fixture
def cluster_file(tmp_path: Path) -> Path:
    path = tmp_path / "cluster.yaml"
    path.write_text(CLUSTER_YAML)
    return path


@pytest.fixture
def aws() -> Iterator[MockAwsContext]:
    with MockAwsContext() as ctx, patch("aws_operator.cli.setup_logging"):
        ctx.state.add_internet_gateway({"kubicorn-internet-gateway-name": "demo"})
        yield ctx


def invoke(*args: str) -> Result:
    return CliRunner().invoke(cli, list(args), env=CLEAN_ENV)


class TestCli:
    """Tests for the CLI commands."""

    def test_version(self) -> None:
        """Test the version option."""
        result = invoke("--version")

        assert result.exit_code == 0
        assert CLI_VERSION in result.output

    def test_plan_reports_drift(self, cluster_file: Path, aws: MockAwsContext) -> None:
        """Test that plan lists drift without changing anything."""
        result = invoke("plan", "-f", str(cluster_file), "-r", "us-east-1")

        assert result.exit_code == 0, result.output
        assert "drifted      public route table [public-a]" in result.output
        assert "2 resource(s) drifted, nothing changed (dry run)" in result.output
        assert aws.client.mutating_operations() == []

    def test_apply_then_unchanged(self, cluster_file: Path, aws: MockAwsContext) -> None:
        """Test that apply converges and a second apply changes nothing."""
        first = invoke("apply", "-f", str(cluster_file), "-r", "us-east-1")
        second = invoke("apply", "-f", str(cluster_file), "-r", "us-east-1")

        assert first.exit_code == 0, first.output
        assert "created      public route table [public-b]" in first.output
        assert "demo: 2 resource(s) changed" in first.output
        assert second.exit_code == 0, second.output
        assert "unchanged    public route table [public-a]" in second.output
        assert "demo: 0 resource(s) changed" in second.output
        assert aws.state.route_table_count == 2

    def test_apply_dry_run(self, cluster_file: Path, aws: MockAwsContext) -> None:
        """Test that apply --dry-run behaves like plan."""
        result = invoke("apply", "--dry-run", "-f", str(cluster_file), "-r", "us-east-1")

        assert result.exit_code == 0, result.output
        assert aws.state.route_table_count == 0

    def test_delete(self, cluster_file: Path, aws: MockAwsContext) -> None:
        """Test that delete tears down applied tables."""
        invoke("apply", "-f", str(cluster_file), "-r", "us-east-1")

        result = invoke("delete", "-f", str(cluster_file), "-r", "us-east-1")

        assert result.exit_code == 0, result.output
        assert "deleted      public route table [public-a]" in result.output
        assert aws.state.route_table_count == 0

    def test_delete_dry_run(self, cluster_file: Path, aws: MockAwsContext) -> None:
        """Test that delete --dry-run lists pending deletions and keeps the tables."""
        invoke("apply", "-f", str(cluster_file), "-r", "us-east-1")

        result = invoke("delete", "--dry-run", "-f", str(cluster_file), "-r", "us-east-1")

        assert result.exit_code == 0, result.output
        assert "would-delete public route table [public-b]" in result.output
        assert "demo: 2 resource(s) would be deleted (dry run)" in result.output
        assert "drifted" not in result.output
        assert aws.state.route_table_count == 2

    def test_apply_failure_exits_nonzero(self, cluster_file: Path, aws: MockAwsContext) -> None:
        """Test that a failed pass is reported with exit code 1."""
        aws.state.internet_gateways.clear()

        result = invoke("apply", "-f", str(cluster_file), "-r", "us-east-1")

        assert result.exit_code == 1
        assert "apply failed" in result.output
        assert "internet gateways" in result.output

    def test_invalid_region(self, cluster_file: Path, aws: MockAwsContext) -> None:
        """Test that configuration errors are reported."""
        result = invoke("apply", "-f", str(cluster_file), "-r", "nowhere")

        assert result.exit_code == 1
        assert "valid AWS region" in result.output
        assert aws.client.calls == []

    def test_invalid_cluster_file(self, tmp_path: Path, aws: MockAwsContext) -> None:
        """Test that cluster loading errors are reported."""
        path = tmp_path / "cluster.yaml"
        path.write_text("- not a mapping\n")

        result = invoke("plan", "-f", str(path), "-r", "us-east-1")

        assert result.exit_code == 1
        assert "YAML mapping" in result.output

    def test_region_mismatch(self, tmp_path: Path, aws: MockAwsContext) -> None:
        """Test that a cluster declared in another region is refused."""
        path = tmp_path / "cluster.yaml"
        path.write_text("region: eu-west-1\n" + CLUSTER_YAML)

        result = invoke("apply", "-f", str(path), "-r", "us-east-1")

        assert result.exit_code == 1
        assert "declared in region eu-west-1" in result.output
        assert aws.client.calls == []
