"""Tests for debvm.cli module."""

import logging
import os
import time

import pytest

from debvm.cli import build_parser, main
from debvm.image_cache import cached_image_path
from debvm.proxmox_utils import DebvmConfig, ProxmoxConnectionError


@pytest.fixture
def no_proxmox(monkeypatch):
    def unreachable():
        raise ProxmoxConnectionError("Error connecting to Proxmox: pvesh not found")
    monkeypatch.setattr("debvm.commands.vm.connect_proxmox", unreachable)


@pytest.fixture
def as_root(monkeypatch):
    monkeypatch.setattr("debvm.proxmox_utils.os.geteuid", lambda: 0)


@pytest.fixture
def env_settings(monkeypatch):
    monkeypatch.setenv("DEBVM_VMID", "140")
    monkeypatch.setenv("DEBVM_NAME", "batch01")
    monkeypatch.setenv("DEBVM_CI_PASSWORD", "s3cretpass")


class TestParser:
    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_create_flags(self):
        args = build_parser().parse_args(["vm", "create", "--dry-run", "-n"])
        assert args.dry_run is True
        assert args.non_interactive is True
        assert args.config is None

    def test_delete_multiple(self):
        args = build_parser().parse_args(["vm", "delete", "120", "web", "-f"])
        assert args.vm == ["120", "web"]
        assert args.force is True


class TestCreate:
    def test_dry_run_reports_without_executing(self, config_file, env_settings, no_proxmox,
                                               runner, caplog):
        with caplog.at_level(logging.INFO):
            main(["vm", "create", "--dry-run", "--non-interactive"])

        assert runner.calls == []
        assert "would run: qm create 140 --name batch01" in caplog.text
        assert "would run: qm start 140" in caplog.text

    def test_static_ip_without_gateway_fails_before_qm(self, config_file, env_settings,
                                                       no_proxmox, runner, monkeypatch):
        monkeypatch.setenv("DEBVM_IP", "10.0.0.5/24")
        with pytest.raises(SystemExit) as excinfo:
            main(["vm", "create", "--dry-run", "--non-interactive"])
        assert excinfo.value.code == 1
        assert runner.calls == []

    def test_invalid_memory_fails_before_qm(self, config_file, env_settings, as_root,
                                            runner, monkeypatch):
        monkeypatch.setattr("debvm.commands.vm.connect_proxmox", lambda: None)
        monkeypatch.setenv("DEBVM_MEMORY", "128")
        with pytest.raises(SystemExit):
            main(["vm", "create", "--non-interactive"])
        assert runner.calls == []

    def test_real_run_uses_cached_image(self, config_file, env_settings, as_root, runner,
                                        monkeypatch):
        monkeypatch.setattr("debvm.commands.vm.connect_proxmox", lambda: None)
        config = DebvmConfig(str(config_file))
        cache_path = cached_image_path(config)
        os.makedirs(os.path.dirname(cache_path))
        with open(cache_path, "wb") as f:
            f.write(b"img")

        main(["vm", "create", "--non-interactive"])

        assert runner.subcommands[0] == "create"
        assert runner.calls[1] == ["qm", "importdisk", "140", cache_path, "local-zfs"]
        assert runner.subcommands[-1] == "start"

    def test_qm_failure_exits(self, config_file, env_settings, as_root, runner, monkeypatch):
        monkeypatch.setattr("debvm.commands.vm.connect_proxmox", lambda: None)
        monkeypatch.setattr(
            "debvm.vm_create.get_base_image",
            lambda config, workdir, dry_run=False: ("/tmp/img.qcow2", True),
        )
        runner.fail_on = "create"
        with pytest.raises(SystemExit) as excinfo:
            main(["vm", "create", "--non-interactive"])
        assert excinfo.value.code == 1
        assert runner.subcommands == ["create"]

    def test_requires_root(self, config_file, env_settings, runner, monkeypatch):
        monkeypatch.setattr("debvm.proxmox_utils.os.geteuid", lambda: 1000)
        with pytest.raises(SystemExit):
            main(["vm", "create", "--non-interactive"])
        assert runner.calls == []


class TestDelete:
    def test_dry_run_by_id(self, no_proxmox, runner, caplog):
        with caplog.at_level(logging.INFO):
            main(["vm", "delete", "120", "-f", "--dry-run"])
        assert runner.calls == []
        assert "would run: qm destroy 120 --purge" in caplog.text

    def test_name_needs_api(self, no_proxmox, runner):
        with pytest.raises(SystemExit):
            main(["vm", "delete", "webserver", "-f", "--dry-run"])
        assert runner.calls == []


class TestImage:
    def test_status_not_cached(self, config_file, capsys):
        main(["image", "status"])
        out = capsys.readouterr().out
        assert "not cached" in out

    def test_status_fresh(self, config_file, capsys):
        path = cached_image_path(DebvmConfig(str(config_file)))
        os.makedirs(os.path.dirname(path))
        with open(path, "wb") as f:
            f.write(b"img")
        stamp = time.time() - 2 * 86400
        os.utime(path, (stamp, stamp))

        main(["image", "status"])
        out = capsys.readouterr().out
        assert "Status:    fresh" in out
        assert "2.0 days" in out

    def test_update_if_stale_skips_fresh(self, config_file, monkeypatch):
        path = cached_image_path(DebvmConfig(str(config_file)))
        os.makedirs(os.path.dirname(path))
        with open(path, "wb") as f:
            f.write(b"img")

        def no_network(*args, **kwargs):
            raise AssertionError("network access with a fresh cache")
        monkeypatch.setattr("debvm.image_cache.requests.get", no_network)

        main(["image", "update", "--if-stale"])

    def test_update_if_stale_refreshes_expired(self, config_file, monkeypatch):
        path = cached_image_path(DebvmConfig(str(config_file)))
        os.makedirs(os.path.dirname(path))
        with open(path, "wb") as f:
            f.write(b"img")
        stamp = time.time() - 8 * 86400
        os.utime(path, (stamp, stamp))

        refreshed = []
        monkeypatch.setattr("debvm.commands.images.refresh_cache", refreshed.append)

        main(["image", "update", "--if-stale"])
        assert len(refreshed) == 1

    def test_status_stale(self, config_file, capsys):
        path = cached_image_path(DebvmConfig(str(config_file)))
        os.makedirs(os.path.dirname(path))
        with open(path, "wb") as f:
            f.write(b"img")
        stamp = time.time() - 8 * 86400
        os.utime(path, (stamp, stamp))

        main(["image", "status"])
        assert "Status:    stale" in capsys.readouterr().out
