"""Tests for debvm.operations module."""

import logging

import pytest

from debvm.operations import ProvisionError, format_command, qm, run_operations


class TestFormatCommand:
    def test_quotes_arguments(self):
        op = qm("Set name", "set", 100, "--description", "two words")
        assert format_command(op) == "qm set 100 --description 'two words'"

    def test_masks_secrets(self):
        op = qm("Set password", "set", 100, "--cipassword", "hunter22", secrets=["hunter22"])
        assert format_command(op) == "qm set 100 --cipassword ********"
        assert op.args[-1] == "hunter22"


class TestRunOperations:
    def test_runs_in_order(self, runner):
        ops = [qm("one", "create", 100), qm("two", "start", 100)]
        commands = run_operations(ops)

        assert runner.calls == [["qm", "create", "100"], ["qm", "start", "100"]]
        assert commands == ["qm create 100", "qm start 100"]

    def test_fatal_failure_stops_sequence(self, runner):
        runner.fail_on = "resize"
        ops = [qm("create", "create", 100), qm("resize", "resize", 100, "scsi0", "20G"),
               qm("start", "start", 100)]

        with pytest.raises(ProvisionError) as excinfo:
            run_operations(ops)

        assert excinfo.value.returncode == 1
        assert excinfo.value.operation.name == "resize"
        assert runner.subcommands == ["create", "resize"]

    def test_non_fatal_failure_continues(self, runner, caplog):
        runner.fail_on = "stop"
        ops = [qm("stop", "stop", 100, fatal=False), qm("destroy", "destroy", 100)]

        with caplog.at_level(logging.WARNING):
            run_operations(ops)

        assert runner.subcommands == ["stop", "destroy"]
        assert "stop failed" in caplog.text

    def test_missing_binary_is_a_failure(self, monkeypatch):
        def not_found(*args, **kwargs):
            raise FileNotFoundError("qm")
        monkeypatch.setattr("debvm.operations.subprocess.run", not_found)

        with pytest.raises(ProvisionError) as excinfo:
            run_operations([qm("create", "create", 100)])
        assert excinfo.value.returncode == 127

    def test_dry_run_executes_nothing(self, runner, caplog):
        ops = [qm("create", "create", 100), qm("password", "set", 100, "--cipassword", "pw",
                                                secrets=["pw"])]

        with caplog.at_level(logging.INFO):
            commands = run_operations(ops, dry_run=True)

        assert runner.calls == []
        assert commands == ["qm create 100", "qm set 100 --cipassword ********"]
        assert "would run: qm create 100" in caplog.text
        assert "pw\n" not in caplog.text
