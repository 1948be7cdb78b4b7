import pytest
from pydantic import ValidationError

from clusterize.state.models import ClusterJoinState, InvalidRegistration, NodeIdentifier


def test_parse_full_identifier():
    n = NodeIdentifier.parse("pfx-c1-vmss_3:weka-3:20.1.2.3")
    assert n.instance_name == "pfx-c1-vmss_3"
    assert n.hostname == "weka-3"
    assert n.public_address == "20.1.2.3"
    assert n.index == 3
    assert n.encode() == "pfx-c1-vmss_3:weka-3:20.1.2.3"

def test_parse_without_hostname_uses_instance_name():
    n = NodeIdentifier.parse("pfx-c1-vmss_0")
    assert n.hostname == "pfx-c1-vmss_0"
    assert n.public_address is None

def test_with_address_keeps_identity():
    n = NodeIdentifier.parse("vmss_1:host-1")
    assert n.with_address("1.1.1.1").encode() == "vmss_1:host-1:1.1.1.1"
    assert n.with_address("1.1.1.1").instance_name == n.instance_name

@pytest.mark.parametrize("raw", ["", "   ", ":host-1"])
def test_parse_rejects_missing_instance(raw):
    with pytest.raises(InvalidRegistration):
        NodeIdentifier.parse(raw)

@pytest.mark.parametrize("raw", [123, ["vmss_0"], {"vm": "vmss_0"}])
def test_parse_rejects_non_string(raw):
    with pytest.raises(InvalidRegistration):
        NodeIdentifier.parse(raw)

def test_index_requires_numeric_suffix():
    with pytest.raises(InvalidRegistration):
        NodeIdentifier.parse("no-index:host").index

def test_membership_is_by_instance_name():
    state = ClusterJoinState(expected_size=3, instances=["vmss_0:h0:1.1.1.1"])
    assert state.contains(NodeIdentifier.parse("vmss_0:h0"))
    assert state.find(NodeIdentifier.parse("vmss_0:h0")).public_address == "1.1.1.1"
    assert not state.contains(NodeIdentifier.parse("vmss_1:h1"))

def test_state_rejects_duplicates_and_overfill():
    with pytest.raises(ValidationError):
        ClusterJoinState(expected_size=3, instances=["vmss_0:a", "vmss_0:a:1.2.3.4"])
    with pytest.raises(ValidationError):
        ClusterJoinState(expected_size=1, instances=["vmss_0:a", "vmss_1:b"])

def test_appended_returns_copy_in_order():
    state = ClusterJoinState(expected_size=2, instances=["vmss_0:a"])
    updated = state.appended(NodeIdentifier.parse("vmss_1:b"))
    assert updated.instances == ["vmss_0:a", "vmss_1:b"]
    assert state.instances == ["vmss_0:a"]
    assert updated.is_full and not state.is_full

def test_json_round_trip_keeps_order():
    state = ClusterJoinState(expected_size=3, instances=["vmss_2:c", "vmss_0:a"])
    again = ClusterJoinState.model_validate_json(state.model_dump_json())
    assert again == state
