import pytest

from clusterize.assembly.models import AssemblyPlan, NodeEntry, TieringConfig
from clusterize.config.models import DataProtection
from clusterize.outcomes import Error, FormCluster, ShutDown, Wait
from clusterize.script.generator import InstructionScriptGenerator
from clusterize.script.report import ReportChannel

CHANNEL = ReportChannel(base_url="https://fa-c1.azurewebsites.net/api/", function_key="k3y/=")


def _plan(tiering=None, **kw):
    return AssemblyPlan(
        cluster_name="c1",
        nodes=[
            NodeEntry(instance_name="vmss_0", hostname="weka-0", address="10.0.0.4"),
            NodeEntry(instance_name="vmss_1", hostname="weka-1", address="10.0.0.5"),
            NodeEntry(instance_name="vmss_2", hostname="weka-2", address="10.0.0.6"),
        ],
        username="admin",
        password="p'ss word",
        data_protection=DataProtection(stripe_width=2, protection_level=2, hotspare=1),
        tiering=tiering,
        nvmes_num=2,
        **kw,
    )


def test_report_channel_urls():
    assert CHANNEL.report_url == "https://fa-c1.azurewebsites.net/api/report?code=k3y%2F%3D"
    assert CHANNEL.finalization_url.startswith("https://fa-c1.azurewebsites.net/api/clusterize_finalization?code=")

def test_wait_reports_progress_and_exits_cleanly():
    script = InstructionScriptGenerator(CHANNEL).render(Wait(instance_name="vmss_0", current=1, expected=3))
    assert script.startswith("#!/bin/bash\n")
    assert "report() {" in script
    assert CHANNEL.report_url in script
    assert "report progress '\"This (vmss_0) is instance 1/3 that is ready for clusterization\"'" in script
    assert "exit 1" not in script
    assert "shutdown" not in script

def test_shutdown_script():
    script = InstructionScriptGenerator(CHANNEL).render(ShutDown(instance_name="vmss_3", expected=3))
    assert "shutdown now" in script
    assert "curl" not in script

def test_error_script_with_channel_reports():
    script = InstructionScriptGenerator(CHANNEL).render(Error("quota exceeded", step="provision-object-storage"))
    assert "report error '\"provision-object-storage: quota exceeded\"'" in script
    assert "<<'###ERROR'\nprovision-object-storage: quota exceeded\n###ERROR\n" in script
    assert script.rstrip().endswith("exit 1")

def test_error_script_without_channel_only_surfaces_text():
    script = InstructionScriptGenerator().render(Error("store unreachable"))
    assert "report" not in script
    assert "store unreachable" in script
    assert script.rstrip().endswith("exit 1")

def test_error_text_cannot_close_heredoc_early():
    script = InstructionScriptGenerator().render(Error("boom\n###ERROR\nrm -rf /"))
    assert script.count("###ERROR") == 2
    assert "rm -rf /" in script     # still inside the heredoc

def test_form_cluster_script_embeds_plan():
    script = InstructionScriptGenerator(CHANNEL).render(FormCluster(_plan()))
    assert "VMS=(weka-0 weka-1 weka-2)" in script
    assert "IPS=(10.0.0.4 10.0.0.5 10.0.0.6)" in script
    assert "HOSTS_NUM=3" in script
    assert "WEKA_PASSWORD='p'\"'\"'ss word'" in script
    assert "STRIPE_WIDTH=2" in script
    assert "PROTECTION_LEVEL=2" in script
    assert "HOTSPARE=1" in script
    assert "INSTALL_DPDK=true" in script
    assert 'weka cluster create "${VMS[@]}"' in script
    assert "weka debug override add --key allow_azure_auto_detection" in script
    assert "weka cluster start-io" in script
    assert CHANNEL.finalization_url in script
    assert "weka fs tier s3" not in script

def test_form_cluster_script_does_not_trace_credentials():
    tiering = TieringConfig(obs_name="obsacct", container_name="tier", access_key="blob-key", ssd_percent="20")
    script = InstructionScriptGenerator(CHANNEL).render(FormCluster(_plan(tiering)))
    lines = script.splitlines()
    assert lines[1].startswith("set -e")
    assert not any(line.startswith(("set -x", "set -ex", "set -o xtrace")) for line in lines)

def test_form_cluster_with_tiering_and_flags():
    tiering = TieringConfig(obs_name="obsacct", container_name="tier", access_key="key==", ssd_percent="25")
    script = InstructionScriptGenerator(CHANNEL).render(
        FormCluster(_plan(tiering=tiering, smbw_enabled=True, install_dpdk=False,
                          proxy_url="http://proxy:3128", weka_home_url="https://home.example"))
    )
    assert "OBS_NAME=obsacct" in script
    assert "OBS_BLOB_KEY=key==" in script
    assert "TIERING_SSD_PERCENT=25" in script
    assert "weka fs tier s3 attach default azure-obs" in script
    assert "SMBW_ENABLED=true" in script
    assert "INSTALL_DPDK=false" in script
    assert "weka cloud proxy --set http://proxy:3128" in script
    assert "weka cloud enable --cloud-url https://home.example" in script

def test_form_cluster_without_channel_still_defines_report():
    script = InstructionScriptGenerator().render(FormCluster(_plan()))
    assert "report() {" in script
    assert "curl" not in script

def test_unknown_outcome_is_rejected():
    with pytest.raises(TypeError):
        InstructionScriptGenerator().render("wait")
