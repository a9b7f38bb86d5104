"""Tests for debvm.vm_delete module."""

import pytest

from debvm.operations import ProvisionError
from debvm.vm_delete import build_delete_operations, delete_vm

VM = {"vmid": 120, "name": "web01", "node": "pve1", "status": "running"}


def test_build_delete_operations():
    stop, destroy = build_delete_operations(120)
    assert stop.args == ("qm", "stop", "120")
    assert stop.fatal is False
    assert destroy.args == ("qm", "destroy", "120", "--purge")
    assert destroy.fatal is True


class TestDeleteVM:
    def test_force(self, runner):
        assert delete_vm(VM, force=True) is True
        assert runner.subcommands == ["stop", "destroy"]

    def test_stopped_vm_still_destroyed(self, runner):
        runner.fail_on = "stop"
        assert delete_vm(VM, force=True) is True
        assert runner.subcommands == ["stop", "destroy"]

    def test_destroy_failure_raises(self, runner):
        runner.fail_on = "destroy"
        with pytest.raises(ProvisionError):
            delete_vm(VM, force=True)

    def test_confirmation_declined(self, runner, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt="": "n")
        assert delete_vm(VM) is False
        assert runner.calls == []

    def test_confirmation_accepted(self, runner, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt="": "y")
        assert delete_vm(VM) is True
        assert runner.subcommands == ["stop", "destroy"]

    def test_reserved_id_refused(self, runner):
        assert delete_vm(dict(VM, vmid=99), force=True) is False
        assert runner.calls == []

    def test_dry_run(self, runner):
        assert delete_vm(VM, force=True, dry_run=True) is True
        assert runner.calls == []
