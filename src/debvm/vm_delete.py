#!/usr/bin/env python3
"""
VM Deletion

Stop and destroy a VM by ID with a confirmation prompt.
"""

from typing import List

from debvm.models import Operation
from debvm.operations import qm, run_operations
from debvm.proxmox_utils import logger
from debvm.validation import MIN_VMID


def build_delete_operations(vmid: int, purge: bool = True) -> List[Operation]:
    """
    Build the stop/destroy sequence

    Stopping is non-fatal because qm stop fails on a VM that is not running.
    """
    destroy_args = ['destroy', vmid]
    if purge:
        destroy_args.append('--purge')
    return [
        qm(f"Stopping VM {vmid}", 'stop', vmid, fatal=False),
        qm(f"Destroying VM {vmid}", *destroy_args),
    ]


def delete_vm(vm_info: dict, force: bool = False, dry_run: bool = False) -> bool:
    """
    Delete a VM with optional confirmation

    Args:
        vm_info: Dict with 'vmid', 'name', 'node', 'status'
        force: Skip confirmation if True
        dry_run: Report commands without running them

    Returns:
        True if deleted, False if cancelled

    Raises:
        ProvisionError if destroying the VM fails
    """
    vmid = vm_info['vmid']
    name = vm_info.get('name') or '?'

    if vmid < MIN_VMID:
        logger.error(f"Refusing to delete VM {vmid}: IDs below {MIN_VMID} are reserved")
        return False

    logger.info(f"→ VM {vmid} ({name}) on node {vm_info.get('node', '?')} (status: {vm_info.get('status', 'unknown')})")

    if not force:
        response = input(f"Delete VM {vmid} ({name})? [y/N]: ").strip().lower()
        if response != 'y':
            logger.info(f"→ Skipping VM {vmid}")
            return False

    run_operations(build_delete_operations(vmid), dry_run=dry_run)
    if dry_run:
        logger.info(f"→ [dry-run] VM {vmid} would be deleted")
    else:
        logger.info(f"✓ VM {vmid} ({name}) deleted successfully")
    return True
