import json
import subprocess

import pytest

from clusterize.azure.cli_runner import AzCliError, AzCliRunner, vm_index_from_id


class DummyCP:
    def __init__(self, rc=0, out="", err=""):
        self.returncode = rc
        self.stdout = out
        self.stderr = err


def _runner():
    return AzCliRunner(subscription_id="sub", resource_group="rg", location="eastus")


def _fake(monkeypatch, responses):
    """responses: list of (predicate(argv) -> bool, DummyCP)"""
    calls = []
    def fake_run(argv, check=False, text=False, capture_output=False, env=None):
        calls.append(argv)
        for match, cp in responses:
            if match(argv):
                return cp
        return DummyCP(0)
    monkeypatch.setattr(subprocess, "run", fake_run)
    return calls


VM_ID = "/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Compute/virtualMachineScaleSets/pfx-c1-vmss/virtualMachines/{}"


def test_vm_index_from_id():
    assert vm_index_from_id(VM_ID.format(7) + "/networkInterfaces/nic") == 7
    with pytest.raises(AzCliError):
        vm_index_from_id("/subscriptions/sub")

def test_public_address_picks_matching_instance(monkeypatch):
    ips = [
        {"id": VM_ID.format(0) + "/networkInterfaces/n/ipConfigurations/c/publicIPAddresses/p", "ipAddress": "20.0.0.1"},
        {"id": VM_ID.format(3) + "/networkInterfaces/n/ipConfigurations/c/publicIPAddresses/p", "ipAddress": "20.0.0.9"},
    ]
    calls = _fake(monkeypatch, [(lambda a: "list-instance-public-ips" in a, DummyCP(0, json.dumps(ips)))])
    assert _runner().resolve_public_address("pfx-c1-vmss", 3) == "20.0.0.9"
    assert calls[0][:3] == ["az", "vmss", "list-instance-public-ips"]
    assert "--subscription" in calls[0]

def test_public_address_missing(monkeypatch):
    _fake(monkeypatch, [(lambda a: True, DummyCP(0, "[]"))])
    with pytest.raises(AzCliError):
        _runner().resolve_public_address("pfx-c1-vmss", 1)

def test_private_addresses_keyed_by_instance_name(monkeypatch):
    nics = [
        {"virtualMachine": {"id": VM_ID.format(0)}, "primary": True,
         "ipConfigurations": [{"primary": True, "privateIPAddress": "10.0.0.4"}]},
        {"virtualMachine": {"id": VM_ID.format(1)}, "primary": True,
         "ipConfigurations": [{"primary": False, "privateIPAddress": "10.0.1.5"},
                              {"primary": True, "privateIPAddress": "10.0.0.5"}]},
    ]
    _fake(monkeypatch, [(lambda a: a[1:3] == ["vmss", "nic"], DummyCP(0, json.dumps(nics)))])
    assert _runner().resolve_private_addresses("pfx-c1-vmss") == {
        "pfx-c1-vmss_0": "10.0.0.4",
        "pfx-c1-vmss_1": "10.0.0.5",
    }

def test_create_container_returns_key(monkeypatch):
    calls = _fake(monkeypatch, [(lambda a: "keys" in a, DummyCP(0, "the-key\n"))])
    assert _runner().create_container("obsacct", "tier") == "the-key"
    assert calls[0][:4] == ["az", "storage", "account", "create"]
    assert calls[-1][:4] == ["az", "storage", "container", "create"]
    assert "the-key" in calls[-1]

def test_failure_raises(monkeypatch):
    _fake(monkeypatch, [(lambda a: True, DummyCP(1, "", "AuthorizationFailed"))])
    with pytest.raises(AzCliError) as ei:
        _runner().create_container("obsacct", "tier")
    assert "AuthorizationFailed" in str(ei.value)

def test_grant_data_access_tolerates_existing_assignment(monkeypatch):
    calls = _fake(monkeypatch, [
        (lambda a: a[1:3] == ["vmss", "show"], DummyCP(0, "principal-id\n")),
        (lambda a: a[1:3] == ["role", "assignment"], DummyCP(1, "", "RoleAssignmentExists: already exists")),
    ])
    _runner().grant_data_access("pfx-c1-vmss", "obsacct", "tier")
    role = calls[-1]
    assert role[role.index("--assignee-object-id") + 1] == "principal-id"
    assert role[role.index("--role") + 1] == "Storage Blob Data Contributor"
    assert role[role.index("--scope") + 1].endswith(
        "/storageAccounts/obsacct/blobServices/default/containers/tier"
    )

def test_get_secret(monkeypatch):
    calls = _fake(monkeypatch, [(lambda a: "keyvault" in a, DummyCP(0, "pw\n"))])
    assert _runner().get_secret("https://kv.vault.azure.net/", "weka-password") == "pw"
    assert "https://kv.vault.azure.net/secrets/weka-password" in calls[0]
