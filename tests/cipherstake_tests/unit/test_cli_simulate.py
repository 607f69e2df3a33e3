"""
Tests for the devnet CLI.
"""

import json
import logging

import pytest
from click.testing import CliRunner

from cipherstake.cli.main import cli
from cipherstake.core.config import ENV_PREFIX

ENV_NAMES = [
    "NETWORK",
    "ADMIN_ADDRESSES",
    "ENFORCE_IDENTIFIER_HOLDER",
    "FOLD_REQUEST_COUNTER",
    "INDEX_VOTES",
    "KEY_BITS",
    "LOG_LEVEL",
    "LOG_FILE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(ENV_PREFIX + name, raising=False)


@pytest.fixture(autouse=True)
def restore_package_logger():
    """The CLI installs handlers on the package logger; put the original ones back."""
    package_logger = logging.getLogger("cipherstake")
    handlers, level = list(package_logger.handlers), package_logger.level
    yield
    for handler in package_logger.handlers:
        if handler not in handlers:
            handler.close()
    package_logger.handlers = handlers
    package_logger.setLevel(level)


def test_simulate_json_output():
    runner = CliRunner()
    result = runner.invoke(
        cli,
        [
            "--log-level",
            "ERROR",
            "simulate",
            "--key-bits",
            "1024",
            "--delegate",
            "alice:validator-1:40",
            "--delegate",
            "bob:validator-1:2",
            "--delegate",
            "carol:validator-2:7",
            "--votes",
            "1,0,1",
            "--json-output",
        ],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["results"] == {
        "validator-1": [42],
        "validator-2": [7],
        "proposal 1": [1, 0, 1],
    }
    assert payload["stats"]["delegations"] == 3
    assert payload["stats"]["pending_decryptions"] == 0
    assert payload["stats"]["completed_decryptions"] == 3


def test_simulate_table_output():
    runner = CliRunner()
    result = runner.invoke(cli, ["--log-level", "ERROR", "simulate", "--key-bits", "1024", "--delegate", "a:v:5"])
    assert result.exit_code == 0, result.output
    assert "Decrypted results" in result.stdout


def test_simulate_rejects_malformed_delegation():
    runner = CliRunner()
    result = runner.invoke(cli, ["--log-level", "ERROR", "simulate", "--delegate", "alice-validator"])
    assert result.exit_code != 0


def test_simulate_rejects_out_of_range_weight():
    runner = CliRunner()
    result = runner.invoke(
        cli, ["--log-level", "ERROR", "simulate", "--key-bits", "1024", "--delegate", f"a:v:{2**32}"]
    )
    assert result.exit_code == 1
    assert "Error" in result.stdout


def test_simulate_uses_environment_key_bits(monkeypatch):
    monkeypatch.setenv(ENV_PREFIX + "KEY_BITS", "512")
    runner = CliRunner()
    result = runner.invoke(cli, ["--log-level", "CRITICAL", "simulate", "--delegate", "a:v:5"])
    assert result.exit_code == 1
    assert "key_bits" in result.stdout


def test_simulate_key_bits_flag_overrides_environment(monkeypatch):
    monkeypatch.setenv(ENV_PREFIX + "KEY_BITS", "512")
    runner = CliRunner()
    result = runner.invoke(
        cli, ["--log-level", "ERROR", "simulate", "--key-bits", "1024", "--delegate", "a:v:5", "--json-output"]
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["results"] == {"v": [5]}


def test_simulate_refuses_mainnet_without_admins(monkeypatch):
    monkeypatch.setenv(ENV_PREFIX + "NETWORK", "mainnet")
    runner = CliRunner()
    result = runner.invoke(cli, ["--log-level", "CRITICAL", "simulate", "--key-bits", "1024"])
    assert result.exit_code == 1


def test_log_file_from_environment(monkeypatch, tmp_path):
    log_file = tmp_path / "logs" / "cipherstake.json"
    monkeypatch.setenv(ENV_PREFIX + "LOG_FILE", str(log_file))
    monkeypatch.setenv(ENV_PREFIX + "LOG_LEVEL", "INFO")
    runner = CliRunner()
    result = runner.invoke(cli, ["simulate", "--key-bits", "1024", "--delegate", "a:v:5", "--json-output"])
    assert result.exit_code == 0, result.output

    records = [json.loads(line) for line in log_file.read_text().splitlines() if line.strip()]
    delegation = next(record for record in records if record.get("event") == "ledger.delegation_submitted")
    assert delegation["environment"] == "testnet"
    assert delegation["service"] == "cipherstake"


def test_config_command(monkeypatch):
    monkeypatch.setenv(ENV_PREFIX + "ADMIN_ADDRESSES", "0xAdmin")
    monkeypatch.setenv(ENV_PREFIX + "NETWORK", "testnet")
    runner = CliRunner()
    result = runner.invoke(cli, ["--log-level", "ERROR", "config"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["network"] == "testnet"
    assert payload["admin_addresses"] == ["0xadmin"]


def test_config_command_reports_errors(monkeypatch):
    monkeypatch.setenv(ENV_PREFIX + "NETWORK", "mainnet")
    runner = CliRunner()
    result = runner.invoke(cli, ["--log-level", "CRITICAL", "config"])
    assert result.exit_code == 1
