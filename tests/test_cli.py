"""
Tests for the command-line interface.
"""

import csv
import io
import json

import pytest
from click.testing import CliRunner

from multicloud.cli.main import cli
from multicloud.services.gateway import StorageGateway

from conftest import StubAdapter


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def invoke(runner: CliRunner, gateway: StorageGateway, *args: str):
    return runner.invoke(cli, list(args), obj={"gateway": gateway})


@pytest.fixture
def stubs(call_log) -> dict[str, StubAdapter]:
    return {name: StubAdapter(name, log=call_log) for name in ("primary", "secondary", "tertiary")}


@pytest.fixture
def gateway(make_gateway, stubs) -> StorageGateway:
    return make_gateway(*stubs.values(), chains={"primary": ("secondary", "tertiary")})


def test_providers_lists_catalog(runner, make_gateway):
    gateway = make_gateway(
        StubAdapter("aws"),
        StubAdapter("azure"),
        enabled={"azure": False},
    )

    result = invoke(runner, gateway, "providers")

    assert result.exit_code == 0
    assert "aws" in result.output
    assert "[default]" in result.output
    assert "[disabled]" in result.output


def test_usage_json(runner, gateway, stubs):
    result = invoke(runner, gateway, "usage", "--provider", "secondary", "--format", "json")

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert list(data) == ["secondary"]
    assert data["secondary"]["status"] == "success"


def test_usage_csv_marks_failed_backends(runner, gateway, stubs):
    stubs["secondary"].usage_error = "access denied"

    result = invoke(runner, gateway, "usage", "--all", "--format", "csv")

    assert result.exit_code == 0
    names = {"Provider", "primary", "secondary", "tertiary"}
    rows = [row for row in csv.reader(io.StringIO(result.output)) if row and row[0] in names]
    assert rows[0][0] == "Provider"
    assert [row[0] for row in rows[1:]] == ["primary", "secondary", "tertiary"]
    assert rows[2][1:] == ["ERROR"] * 6


def test_usage_table_detailed(runner, gateway, stubs):
    result = invoke(runner, gateway, "usage", "--detailed")

    assert result.exit_code == 0
    assert "primary Usage Statistics" in result.output
    assert "Cost Type" in result.output


def test_usage_invalid_provider_exits_1(runner, gateway, stubs):
    result = invoke(runner, gateway, "usage", "--provider", "nope")

    assert result.exit_code == 1
    assert "Invalid provider: nope" in result.output


def test_usage_failed_single_backend_exits_1(runner, gateway, stubs):
    stubs["primary"].usage_error = "access denied"

    result = invoke(runner, gateway, "usage")

    assert result.exit_code == 1


def test_test_connection(runner, gateway, stubs):
    ok = invoke(runner, gateway, "test-connection", "--provider", "secondary")
    stubs["tertiary"].fail_always = True
    failed = invoke(runner, gateway, "test-connection", "--provider", "tertiary")

    assert ok.exit_code == 0
    assert "connection successful" in ok.output
    assert failed.exit_code == 1
    assert "Connection failed" in failed.output


def test_deploy_dry_run_writes_nothing(runner, gateway, stubs):
    result = invoke(runner, gateway, "deploy", "--dry-run", "--environment", "staging")

    assert result.exit_code == 0
    assert "Dry Run" in result.output
    assert stubs["primary"].files == {}


def test_deploy_uploads_manifest(runner, gateway, stubs):
    result = invoke(runner, gateway, "deploy", "--provider", "primary", "--region", "eu-west-1")

    assert result.exit_code == 0
    files = stubs["primary"].files
    assert len(files) == 1
    key, body = next(iter(files.items()))
    assert key.startswith("deployments/production/")
    manifest = json.loads(body)
    assert manifest["region"] == "eu-west-1"
    assert len(manifest["steps"]) == 8


def test_deploy_connection_failure_exits_1(runner, gateway, stubs):
    stubs["primary"].fail_always = True

    result = invoke(runner, gateway, "deploy")

    assert result.exit_code == 1
    assert stubs["primary"].files == {}


def test_closes_gateway_after_command(runner, gateway, stubs):
    invoke(runner, gateway, "test-connection")

    assert stubs["primary"].closed == 1
