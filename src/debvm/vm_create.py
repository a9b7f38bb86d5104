#!/usr/bin/env python3
"""
Debian Cloud-Init VM Creation

Build a VM from the latest Debian cloud image: import and resize the disk,
attach a cloud-init drive and apply user, SSH key and network settings.
"""

import os
import shutil
import tempfile
from typing import List

from debvm.image_cache import get_base_image
from debvm.models import CreateResult, Operation, VMSettings
from debvm.operations import qm, run_operations
from debvm.proxmox_utils import DebvmConfig, logger

SSH_KEY_FILENAME = 'ssh_key.pub'
RESOLV_FILENAME = 'resolv.conf'


def disk_volume(settings: VMSettings) -> str:
    """Volume name qm importdisk gives the first imported disk"""
    return f"{settings.storage}:vm-{settings.vmid}-disk-0"


def render_resolv_conf(dns_servers: List[str]) -> str:
    return ''.join(f"nameserver {server}\n" for server in dns_servers)


def write_cloud_init_files(settings: VMSettings, workdir: str):
    """
    Write the SSH key and DNS resolver fragment referenced by qm

    Only files the settings call for are written.
    """
    if settings.ssh_key:
        with open(os.path.join(workdir, SSH_KEY_FILENAME), 'w') as f:
            f.write(settings.ssh_key + '\n')

    if not settings.is_dhcp:
        with open(os.path.join(workdir, RESOLV_FILENAME), 'w') as f:
            f.write(render_resolv_conf(settings.dns_servers))


def build_create_operations(settings: VMSettings, image_path: str, workdir: str) -> List[Operation]:
    """
    Build the ordered qm sequence that creates and configures the VM

    Args:
        settings: Validated VMSettings
        image_path: Base image to import
        workdir: Directory holding the SSH key and resolver fragment

    Returns:
        List of Operation descriptors
    """
    vmid = settings.vmid
    storage = settings.storage

    operations = [
        qm(f"Creating VM {vmid} with name {settings.name}",
           'create', vmid,
           '--name', settings.name,
           '--memory', settings.memory,
           '--cores', settings.cores,
           '--net0', f"virtio,bridge={settings.bridge}"),
        qm("Importing cloud disk image", 'importdisk', vmid, image_path, storage),
        qm("Attaching disk to VM",
           'set', vmid, '--scsihw', 'virtio-scsi-pci', '--scsi0', disk_volume(settings)),
        qm(f"Resizing disk to {settings.disk_size} GB",
           'resize', vmid, 'scsi0', f"{settings.disk_size}G"),
        qm("Setting boot order", 'set', vmid, '--boot', 'c', '--bootdisk', 'scsi0'),
        qm("Setting serial console display", 'set', vmid, '--serial0', 'socket', '--vga', 'serial0'),
        qm("Attaching cloud-init drive", 'set', vmid, '--ide2', f"{storage}:cloudinit"),
        qm("Setting cloud-init user", 'set', vmid, '--ciuser', settings.ci_user),
        qm("Setting cloud-init password", 'set', vmid, '--cipassword', settings.ci_password,
           secrets=[settings.ci_password]),
    ]

    if settings.ssh_key:
        operations.append(
            qm("Setting SSH key", 'set', vmid, '--sshkeys', os.path.join(workdir, SSH_KEY_FILENAME))
        )

    if settings.is_dhcp:
        operations.append(qm("Configuring DHCP networking", 'set', vmid, '--ipconfig0', 'ip=dhcp'))
    else:
        operations.append(
            qm(f"Configuring static IP {settings.ip}",
               'set', vmid, '--ipconfig0', f"ip={settings.ip},gw={settings.gateway}")
        )
        operations.append(
            qm("Setting DNS servers",
               'set', vmid, '--cicustom', f"dns=raw:{os.path.join(workdir, RESOLV_FILENAME)}")
        )

    if settings.start:
        operations.append(qm(f"Starting VM {vmid}", 'start', vmid))

    return operations


def create_vm(settings: VMSettings, config: DebvmConfig, dry_run: bool = False) -> CreateResult:
    """
    Create a new VM from the latest Debian cloud image

    Args:
        settings: Validated VMSettings
        config: DebvmConfig instance
        dry_run: Report every step without changing anything

    Returns:
        CreateResult describing what was (or would have been) run

    Raises:
        ImageError if the image cannot be obtained
        ProvisionError if a qm step fails; the VM is left as-is
    """
    workdir = tempfile.mkdtemp(prefix=f"vm-{settings.vmid}-")
    try:
        image_path, _ = get_base_image(config, workdir, dry_run=dry_run)

        if not dry_run:
            write_cloud_init_files(settings, workdir)

        operations = build_create_operations(settings, image_path, workdir)
        commands = run_operations(operations, dry_run=dry_run)

        if not settings.start and not dry_run:
            logger.info("→ VM created but not started")

        return CreateResult(
            vmid=settings.vmid,
            image_path=image_path,
            commands=commands,
            started=settings.start and not dry_run,
            dry_run=dry_run,
        )
    finally:
        logger.info("→ Cleaning up temporary files")
        shutil.rmtree(workdir, ignore_errors=True)
