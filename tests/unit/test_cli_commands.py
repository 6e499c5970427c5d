"""Tests for CLI commands — uses typer.testing.CliRunner."""

from __future__ import annotations

import json
import textwrap

import pytest
import responses
from conftest import addr, tx_hash
from typer.testing import CliRunner

from chainregistry.bridge.script_runner import SubprocessScriptRunner
from chainregistry.cli.app import app
from chainregistry.core.registry_store import RegistryStore

runner = CliRunner()

RPC_URL = "https://rpc.example.org/v1"


@pytest.fixture
def seeded(registry_path, make_deployment, make_transaction):
    """A saved registry with two Token deployments and a Vault."""
    with RegistryStore(registry_path) as store:
        store.put(make_deployment("Token", chain_id=1, address=addr(0xAAA), transaction_id=f"tx-{tx_hash(1)}"))
        store.put(make_deployment("Token", chain_id=10, address=addr(0xBBB)))
        store.put(make_deployment("Vault", chain_id=1, namespace="staging", address=addr(0xCCC)))
        store.put(make_transaction(1, deployments=["prod/1/Token"]))
    return registry_path


def invoke(registry_path, *args, **kwargs):
    return runner.invoke(app, ["--registry", str(registry_path), *args], **kwargs)


# ---------------------------------------------------------------------------
# App wiring
# ---------------------------------------------------------------------------


class TestCliApp:
    """Basic app wiring."""

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "orchestrate" in result.output

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("list", "show", "tag", "sync", "prune", "orchestrate", "addresses"):
            assert command in result.output


# ---------------------------------------------------------------------------
# Read commands
# ---------------------------------------------------------------------------


class TestListCommand:
    def test_list_json(self, seeded):
        result = invoke(seeded, "list", "--json")
        assert result.exit_code == 0
        ids = [d["id"] for d in json.loads(result.output)]
        assert ids == ["prod/1/Token", "prod/10/Token", "staging/1/Vault"]

    def test_list_filters(self, seeded):
        result = invoke(seeded, "list", "--json", "--namespace", "prod", "--chain", "10")
        assert [d["id"] for d in json.loads(result.output)] == ["prod/10/Token"]

    def test_list_table(self, seeded):
        result = invoke(seeded, "list")
        assert result.exit_code == 0
        assert "Vault" in result.output

    def test_list_empty(self, registry_path):
        result = invoke(registry_path, "list")
        assert result.exit_code == 0
        assert "No deployments found" in result.output


class TestShowCommand:
    def test_show_json(self, seeded):
        result = invoke(seeded, "show", "prod/1/Token", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output)["address"] == addr(0xAAA)

    def test_show_panel(self, seeded):
        result = invoke(seeded, "show", addr(0xCCC))
        assert result.exit_code == 0
        assert "staging/1/Vault" in result.output

    def test_show_not_found(self, seeded):
        result = invoke(seeded, "show", "Nope")
        assert result.exit_code == 1
        assert "no deployment found matching 'Nope'" in result.output

    def test_show_ambiguous_non_interactive(self, seeded):
        result = invoke(seeded, "--non-interactive", "show", "Token")
        assert result.exit_code == 1
        assert "multiple deployments found matching 'Token'" in result.output

    def test_show_ambiguous_prompts(self, seeded):
        result = invoke(seeded, "show", "Token", "--json", input="2\n")
        assert result.exit_code == 0
        assert '"id": "prod/10/Token"' in result.output


class TestAddressesCommand:
    def test_addresses(self, seeded):
        result = invoke(seeded, "addresses", "--chain", "1")
        assert result.exit_code == 0
        assert json.loads(result.output) == {
            "1": {"prod": {"Token": addr(0xAAA)}, "staging": {"Vault": addr(0xCCC)}}
        }

    def test_addresses_namespace(self, seeded):
        result = invoke(seeded, "addresses", "--namespace", "staging")
        assert json.loads(result.output) == {"1": {"staging": {"Vault": addr(0xCCC)}}}


# ---------------------------------------------------------------------------
# Write commands
# ---------------------------------------------------------------------------


class TestTagCommand:
    def test_add_and_remove(self, seeded):
        result = invoke(seeded, "tag", "staging/Vault", "--add", "core", "--add", "audited")
        assert result.exit_code == 0
        assert RegistryStore(seeded).get("staging/1/Vault").tags == ["audited", "core"]

        invoke(seeded, "tag", "staging/Vault", "--remove", "core")
        assert RegistryStore(seeded).get("staging/1/Vault").tags == ["audited"]

    def test_nothing_to_do(self, seeded):
        result = invoke(seeded, "tag", "Vault")
        assert result.exit_code == 1
        assert "nothing to do" in result.output

    def test_ambiguous_non_interactive_never_applies_to_all(self, seeded):
        result = invoke(seeded, "--non-interactive", "tag", "Token", "-a", "x")
        assert result.exit_code == 1
        store = RegistryStore(seeded)
        assert store.get("prod/1/Token").tags == []
        assert store.get("prod/10/Token").tags == []

    def test_all_flag_applies_to_every_match(self, seeded):
        result = invoke(seeded, "--non-interactive", "tag", "Token", "-a", "x", "--all")
        assert result.exit_code == 0
        store = RegistryStore(seeded)
        assert store.get("prod/1/Token").tags == ["x"]
        assert store.get("prod/10/Token").tags == ["x"]

    def test_interactive_choice(self, seeded):
        result = invoke(seeded, "tag", "Token", "-a", "picked", input="1\n")
        assert result.exit_code == 0
        store = RegistryStore(seeded)
        assert store.get("prod/1/Token").tags == ["picked"]
        assert store.get("prod/10/Token").tags == []


class TestSyncCommand:
    def test_sync_nothing_pending(self, registry_path):
        result = invoke(registry_path, "sync")
        assert result.exit_code == 0
        assert "already up to date" in result.output

    @responses.activate
    def test_sync_updates_receipt(self, seeded, monkeypatch):
        monkeypatch.setenv("CHAINREGISTRY_RPC_URLS", json.dumps({"1": RPC_URL}))
        responses.add(
            responses.POST,
            RPC_URL,
            json={"jsonrpc": "2.0", "id": 1, "result": {"status": "0x1", "blockNumber": "0x10"}},
        )
        result = invoke(seeded, "sync")
        assert result.exit_code == 0
        tx = RegistryStore(seeded).get_transaction(f"tx-{tx_hash(1)}")
        assert tx.status.value == "EXECUTED"
        assert tx.block_number == 16


class TestPruneCommand:
    @responses.activate
    def test_non_interactive_requires_yes(self, seeded, monkeypatch):
        monkeypatch.setenv("CHAINREGISTRY_RPC_URLS", json.dumps({"1": RPC_URL}))
        responses.add(responses.POST, RPC_URL, json={"jsonrpc": "2.0", "id": 1, "result": "0x"})
        result = invoke(seeded, "--non-interactive", "prune", "--chain", "1")
        assert result.exit_code == 1
        assert len(RegistryStore(seeded)) == 3

    @responses.activate
    def test_prune_with_yes(self, seeded, monkeypatch):
        monkeypatch.setenv("CHAINREGISTRY_RPC_URLS", json.dumps({"1": RPC_URL}))
        responses.add(responses.POST, RPC_URL, json={"jsonrpc": "2.0", "id": 1, "result": "0x"})
        result = invoke(seeded, "prune", "--chain", "1", "--yes")
        assert result.exit_code == 0
        store = RegistryStore(seeded)
        assert [d.id for d in store.get_all_deployments()] == ["prod/10/Token"]
        assert store.get_transaction(f"tx-{tx_hash(1)}").deployments == []

    def test_unreachable_chain_prunes_nothing(self, seeded, monkeypatch):
        monkeypatch.delenv("CHAINREGISTRY_RPC_URLS", raising=False)
        result = invoke(seeded, "prune", "--chain", "1", "--yes")
        assert result.exit_code == 0
        assert "Could not check" in result.output
        assert len(RegistryStore(seeded)) == 3


class TestOrchestrateCommand:
    @pytest.fixture
    def plan_file(self, tmp_path):
        result = {
            "chainId": 1,
            "deployments": [{"contractName": "Token", "address": addr(0x123)}],
        }
        path = tmp_path / "plan.yaml"
        path.write_text(
            textwrap.dedent(
                f"""
                group: core
                components:
                  Token:
                    script: script/Token.s.sol
                    env:
                      RESULT: '{json.dumps(result)}'
                  Broken:
                    script: script/Broken.s.sol
                    deps: [Token]
                """
            )
        )
        return path

    def test_plan_only(self, registry_path, plan_file):
        result = invoke(registry_path, "orchestrate", str(plan_file), "--plan")
        assert result.exit_code == 0
        assert "Execution plan: core" in result.output
        assert not registry_path.exists()

    def test_run_reports_failure(self, registry_path, plan_file, monkeypatch):
        # Succeeds only for components that set RESULT.
        monkeypatch.setenv(
            "CHAINREGISTRY_SCRIPT_COMMAND", """sh -c 'test -n "$RESULT" && echo "$RESULT"'"""
        )
        result = invoke(registry_path, "orchestrate", str(plan_file), "-n", "prod")
        assert result.exit_code == 1
        assert RegistryStore(registry_path).get("prod/1/Token").address == addr(0x123)

    def test_invalid_plan(self, registry_path, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("group: g\ncomponents:\n  A:\n    script: a\n    deps: [A]\n")
        result = invoke(registry_path, "orchestrate", str(path))
        assert result.exit_code == 1
        assert "cannot depend on itself" in result.output

    def test_script_timeout_from_config(self, registry_path, plan_file, monkeypatch):
        built = []

        class RecordingRunner(SubprocessScriptRunner):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                built.append(self)

        monkeypatch.setattr(
            "chainregistry.cli.commands.orchestrate.SubprocessScriptRunner", RecordingRunner
        )
        monkeypatch.setenv("CHAINREGISTRY_SCRIPT_TIMEOUT_SECONDS", "42")
        result = invoke(registry_path, "orchestrate", str(plan_file), "--plan")
        assert result.exit_code == 0
        assert [runner.timeout for runner in built] == [42.0]
