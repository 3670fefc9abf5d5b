"""Tests for vboxctl.registry module."""

from __future__ import annotations

import subprocess
import textwrap
from unittest.mock import patch

import pytest

from vboxctl.exceptions import CommandError, MachineExistsError, MachineNotFoundError, ParseError, UsageError
from vboxctl.models import MachineState
from vboxctl.registry import create_machine, get_machine, list_machine_ids, list_machines

DEMO_VMINFO = textwrap.dedent(
    """\
    name="demo"
    groups="/"
    ostype="Ubuntu (64-bit)"
    UUID="1234-uuid"
    CfgFile="/vms/demo/demo.vbox"
    memory=512
    vram=16
    cpus=2
    VMState="running"
    VMStateChangeTime="2024-01-01T00:00:00.000000000"
    """
)


def _completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestGetMachine:
    def test_parses_machinereadable_block(self):
        with patch("vboxctl.utils.subprocess.run", return_value=_completed(DEMO_VMINFO)) as mock_run:
            m = get_machine("demo")
        assert mock_run.call_args[0][0][1:] == ["showvminfo", "demo", "--machinereadable"]
        assert m.name == "demo"
        assert m.uuid == "1234-uuid"
        assert m.state is MachineState.RUNNING
        assert m.memory_mb == 512
        assert m.cpus == 2
        assert m.vram_mb == 16
        assert m.cfg_file == "/vms/demo/demo.vbox"
        assert m.base_folder == "/vms/demo"

    def test_not_found_by_name(self, fake_vbm):
        with pytest.raises(MachineNotFoundError) as exc:
            get_machine("ghost")
        assert exc.value.machine_id == "ghost"

    def test_not_found_by_uuid(self):
        stderr = (
            "VBoxManage: error: Could not find a registered machine with UUID {0000-0000}\n"
            "VBoxManage: error: Details: code VBOX_E_OBJECT_NOT_FOUND\n"
        )
        with patch("vboxctl.utils.subprocess.run", return_value=_completed(stderr=stderr, returncode=1)):
            with pytest.raises(MachineNotFoundError):
                get_machine("0000-0000")

    def test_other_failures_stay_generic(self):
        stderr = "VBoxManage: error: The object is not ready\n"
        with patch("vboxctl.utils.subprocess.run", return_value=_completed(stderr=stderr, returncode=1)):
            with pytest.raises(CommandError) as exc:
                get_machine("demo")
        assert not isinstance(exc.value, MachineNotFoundError)
        assert exc.value.stderr == stderr

    def test_empty_id_issues_no_command(self):
        with patch("vboxctl.utils.subprocess.run") as mock_run:
            with pytest.raises(UsageError):
                get_machine("")
        mock_run.assert_not_called()

    def test_parse_failure(self):
        with patch("vboxctl.utils.subprocess.run", return_value=_completed('name="demo"\ncpus=two\n')):
            with pytest.raises(ParseError, match="cpus"):
                get_machine("demo")

    def test_inaccessible_machine_is_a_parse_error(self, fake_vbm):
        record = fake_vbm.add_machine("<inaccessible!>", accessible="off")
        del record["VMState"]
        with pytest.raises(ParseError, match="VMState: missing"):
            get_machine(record["UUID"])
        assert fake_vbm.commands() == []


class TestListMachines:
    def test_skips_malformed_lines(self):
        responses = [
            _completed('"demo" {1234-uuid}\n<inaccessible>\n'),
            _completed(DEMO_VMINFO),
        ]
        with patch("vboxctl.utils.subprocess.run", side_effect=responses) as mock_run:
            machines = list_machines()
        assert len(machines) == 1
        assert machines[0].name == "demo"
        assert mock_run.call_count == 2
        assert mock_run.call_args_list[1][0][0][1:] == ["showvminfo", "1234-uuid", "--machinereadable"]

    def test_resolves_every_machine(self, fake_vbm):
        fake_vbm.add_machine("alpha", state="running")
        fake_vbm.add_machine("beta", state="saved")
        machines = list_machines()
        assert [(m.name, m.state) for m in machines] == [
            ("alpha", MachineState.RUNNING),
            ("beta", MachineState.SAVED),
        ]

    def test_single_failure_aborts_listing(self, fake_vbm):
        fake_vbm.add_machine("alpha")
        fake_vbm.add_machine("beta", memory="huge")
        with pytest.raises(ParseError):
            list_machines()

    def test_returns_fresh_instances(self, fake_vbm):
        fake_vbm.add_machine("alpha")
        first = list_machines()[0]
        second = list_machines()[0]
        assert first == second
        assert first is not second

    def test_list_machine_ids(self, fake_vbm):
        record = fake_vbm.add_machine("alpha")
        assert list_machine_ids() == [("alpha", record["UUID"])]
        assert fake_vbm.calls == [["list", "vms"]]


class TestCreateMachine:
    def test_empty_name_issues_no_command(self, fake_vbm):
        with pytest.raises(UsageError):
            create_machine("", "")
        assert fake_vbm.calls == []

    def test_existing_name_rejected_before_createvm(self, fake_vbm):
        fake_vbm.add_machine("demo")
        with pytest.raises(MachineExistsError):
            create_machine("demo", "")
        assert all(call[0] != "createvm" for call in fake_vbm.calls)
        assert len(fake_vbm.machines) == 1

    def test_creates_and_returns_machine(self, fake_vbm):
        m = create_machine("demo")
        assert ["createvm", "--name", "demo", "--register"] in fake_vbm.calls
        assert m.name == "demo"
        assert m.state is MachineState.POWEROFF
        assert fake_vbm.calls[-1] == ["showvminfo", "demo", "--machinereadable"]

    def test_basefolder(self, fake_vbm):
        m = create_machine("demo", "/data/vms")
        assert ["createvm", "--name", "demo", "--register", "--basefolder", "/data/vms"] in fake_vbm.calls
        assert m.base_folder == "/data/vms/demo"

    def test_createvm_failure_propagates(self, fake_vbm):
        fake_vbm.fail["createvm"] = "VBoxManage: error: Machine settings file already exists\n"
        with pytest.raises(CommandError, match="settings file already exists"):
            create_machine("demo")
