import json
import subprocess
import textwrap

import pytest
from typer.testing import CliRunner

from clusterize.cli.app import app
from clusterize.state.models import ClusterJoinState

runner = CliRunner()


class DummyCP:
    def __init__(self, rc=0, out="", err=""):
        self.returncode = rc
        self.stdout = out
        self.stderr = err


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("CLUSTERIZE_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("CLUSTERIZE_SECRETS_FILE", raising=False)
    f = tmp_path / "cluster.yaml"
    f.write_text(textwrap.dedent(f"""
        cluster:
          cluster_name: c1
          hosts_num: 1
        azure:
          prefix: pfx
        state:
          backend: file
          path: {tmp_path / "state"}
    """))
    return f


def test_init_state_is_idempotent(config_file):
    first = runner.invoke(app, ["init-state", "-c", str(config_file)])
    assert first.exit_code == 0, first.output
    again = runner.invoke(app, ["init-state", "-c", str(config_file)])
    assert again.exit_code == 0, again.output

    shown = runner.invoke(app, ["show-state", "-c", str(config_file)])
    assert shown.exit_code == 0
    state = ClusterJoinState.model_validate_json(shown.stdout)
    assert state.expected_size == 1 and state.instances == []

def test_show_state_without_record_fails(config_file):
    result = runner.invoke(app, ["show-state", "-c", str(config_file)])
    assert result.exit_code == 1

def test_invalid_config_exits_2(tmp_path, monkeypatch):
    monkeypatch.delenv("CLUSTERIZE_SECRETS_FILE", raising=False)
    f = tmp_path / "cluster.yaml"
    f.write_text("cluster: {cluster_name: c1, hosts_num: 0}\n")
    result = runner.invoke(app, ["show-state", "-c", str(f)])
    assert result.exit_code == 2

def test_register_on_full_pool_prints_shutdown(config_file, monkeypatch, tmp_path):
    # every az call fails: public ip lookup is skipped, overflow needs nothing else
    monkeypatch.setattr(subprocess, "run", lambda *a, **kw: DummyCP(1, "", "az not logged in"))
    assert runner.invoke(app, ["init-state", "-c", str(config_file)]).exit_code == 0

    state_file = tmp_path / "state" / "c1-state.json"
    record = json.loads(state_file.read_text())
    value = json.loads(record["value"])
    value["instances"] = ["pfx-c1-vmss_0:weka-0"]
    record["value"] = json.dumps(value)
    state_file.write_text(json.dumps(record))

    events = tmp_path / "events.jsonl"
    result = runner.invoke(app, [
        "register", "pfx-c1-vmss_4:weka-4", "-c", str(config_file), "--events-file", str(events),
    ])
    assert result.exit_code == 0, result.output
    assert "shutdown now" in result.stdout

    types = [json.loads(line)["type"] for line in events.read_text().splitlines()]
    assert "RegistrationOverflow" in types
    assert types[-1] == "InstructionRendered"

def test_handle_bad_request(config_file):
    result = runner.invoke(app, ["handle", "-c", str(config_file)], input="not json")
    assert result.exit_code == 0
    body = json.loads(result.stdout.strip().splitlines()[-1])["Outputs"]["res"]["body"]
    assert "Bad request" in body
    assert body.rstrip().endswith("exit 1")
