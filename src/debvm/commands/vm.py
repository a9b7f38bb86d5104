"""VM management commands"""

import sys

from debvm.image_cache import ImageError
from debvm.operations import ProvisionError
from debvm.prompts import collect_settings, confirm
from debvm.proxmox_utils import (
    ConfigError,
    DebvmConfig,
    DebvmError,
    ProxmoxConnectionError,
    ValidationError,
    connect_proxmox,
    find_vm_by_id,
    find_vm_by_name,
    logger,
    require_root,
)
from debvm.report import print_configuration, print_delete_summary, print_results
from debvm.vm_create import create_vm
from debvm.vm_delete import delete_vm


def setup_create_parser(parser):
    """Setup argument parser for VM create command"""
    parser.add_argument('-n', '--non-interactive', action='store_true',
                        help='Read all settings from DEBVM_* environment variables instead of prompting')
    parser.add_argument('--dry-run', action='store_true',
                        help='Show what would be done without changing anything')
    parser.add_argument('-y', '--yes', action='store_true',
                        help='Do not ask for confirmation before creating the VM')


def setup_delete_parser(parser):
    """Setup argument parser for VM delete command"""
    parser.add_argument('vm', nargs='+',
                        help='VM ID or name to delete')
    parser.add_argument('-f', '--force', action='store_true',
                        help='Force delete without confirmation')
    parser.add_argument('--dry-run', action='store_true',
                        help='Show what would be done without changing anything')


def load_config(args) -> DebvmConfig:
    try:
        return DebvmConfig(args.config)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)


def connect_or_skip(dry_run: bool):
    """
    Connect to the local Proxmox API

    In dry-run mode an unreachable API is not fatal, so a preview also works
    away from a Proxmox host.
    """
    try:
        proxmox = connect_proxmox()
    except ProxmoxConnectionError as e:
        if not dry_run:
            logger.error(str(e))
            sys.exit(1)
        logger.info(f"→ [dry-run] Proxmox API unavailable, VM ID checks skipped ({e})")
        return None
    logger.info("✓ Connected to Proxmox")
    return proxmox


def handle_create(args):
    """Handle VM create command"""
    config = load_config(args)

    try:
        require_root(args.dry_run)
    except DebvmError as e:
        logger.error(str(e))
        sys.exit(1)

    proxmox = connect_or_skip(args.dry_run)

    try:
        settings = collect_settings(config, proxmox, non_interactive=args.non_interactive)
    except (ValidationError, ProxmoxConnectionError) as e:
        logger.error(str(e))
        sys.exit(1)

    print_configuration(settings, dry_run=args.dry_run)

    if not (args.non_interactive or args.yes or args.dry_run):
        if not confirm("Proceed with VM creation?"):
            logger.info("→ Aborted, nothing was changed")
            return

    try:
        result = create_vm(settings, config, dry_run=args.dry_run)
    except ImageError as e:
        logger.error(str(e))
        sys.exit(1)
    except ProvisionError as e:
        logger.error(str(e))
        logger.error(f"VM {settings.vmid} may be left partially configured; "
                     f"remove it with: debvm vm delete {settings.vmid}")
        sys.exit(1)

    print_results(settings, result)
    if not args.dry_run:
        logger.info("✓ VM setup complete!")


def find_vm_identifier(proxmox, vm_identifier: str):
    """
    Find VM by name or ID

    Without an API connection only numeric IDs resolve, with unknown
    name and status.
    """
    try:
        vm_id = int(vm_identifier)
    except ValueError:
        if proxmox is None:
            raise DebvmError(f"Cannot look up VM name '{vm_identifier}' without the Proxmox API")
        logger.info(f"→ Searching for VM with name '{vm_identifier}'...")
        return find_vm_by_name(proxmox, vm_identifier)

    if proxmox is None:
        return {'vmid': vm_id, 'name': '', 'node': '?', 'status': 'unknown'}
    logger.info(f"→ Searching for VM with ID {vm_id}...")
    return find_vm_by_id(proxmox, vm_id)


def handle_delete(args):
    """Handle VM delete command"""
    # Config is only validated here; delete has no tunable defaults
    load_config(args)

    try:
        require_root(args.dry_run)
    except DebvmError as e:
        logger.error(str(e))
        sys.exit(1)

    proxmox = connect_or_skip(args.dry_run)

    deleted_count = 0
    skipped_count = 0
    failed = False

    for identifier in args.vm:
        try:
            vm = find_vm_identifier(proxmox, identifier)
        except DebvmError as e:
            logger.error(str(e))
            failed = True
            continue
        if not vm:
            logger.error(f"VM '{identifier}' not found")
            failed = True
            continue

        try:
            if delete_vm(vm, force=args.force, dry_run=args.dry_run):
                deleted_count += 1
            else:
                skipped_count += 1
        except ProvisionError as e:
            logger.error(str(e))
            failed = True

    print_delete_summary(deleted_count, skipped_count)

    if failed:
        sys.exit(1)
    if deleted_count > 0:
        logger.info("✓ Deletion completed")
    else:
        logger.info("→ No VMs were deleted")
