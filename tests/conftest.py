"""Shared test fixtures."""

import os
import subprocess

import pytest

from debvm.models import VMSettings
from debvm.proxmox_utils import DebvmConfig


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep tests away from real config files, DEBVM_* variables and preview delays."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("DEBVM_"):
            monkeypatch.delenv(name)
    monkeypatch.setattr("debvm.operations.PREVIEW_DELAY", 0)


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def config_file(tmp_path, cache_dir):
    path = tmp_path / "debvm.ini"
    path.write_text(
        "[defaults]\n"
        "storage = local-zfs\n"
        "\n"
        "[image]\n"
        f"cache_dir = {cache_dir}\n"
        "base_url = https://images.example.org/cloud\n"
    )
    return path


@pytest.fixture
def config(config_file) -> DebvmConfig:
    return DebvmConfig(str(config_file))


@pytest.fixture
def dhcp_settings() -> VMSettings:
    return VMSettings(
        vmid=120,
        name="web01",
        cores=2,
        memory=2048,
        disk_size=20,
        storage="local-lvm",
        bridge="vmbr0",
        ci_user="debian",
        ci_password="s3cretpass",
    )


@pytest.fixture
def static_settings(dhcp_settings) -> VMSettings:
    dhcp_settings.ip = "192.168.1.50/24"
    dhcp_settings.gateway = "192.168.1.1"
    dhcp_settings.dns_servers = ["1.1.1.1", "8.8.8.8"]
    dhcp_settings.ssh_key = "ssh-ed25519 AAAAC3Nza user@host"
    return dhcp_settings


class RecordingRunner:
    """Stand-in for subprocess.run that records commands and fails on request."""

    def __init__(self, fail_on=None, returncode=1):
        self.calls = []
        self.fail_on = fail_on
        self.returncode = returncode

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        code = self.returncode if self.fail_on and self.fail_on in args else 0
        return subprocess.CompletedProcess(args, code, stdout="")

    @property
    def subcommands(self):
        return [call[1] for call in self.calls]


@pytest.fixture
def runner(monkeypatch):
    recorder = RecordingRunner()
    monkeypatch.setattr("debvm.operations.subprocess.run", recorder)
    return recorder
