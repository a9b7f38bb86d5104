"""
Input collection

Gathers VM and cloud-init settings either interactively or from DEBVM_*
environment variables, validating every value as it arrives. The first
invalid value raises ValidationError; nothing has been changed on the host
at that point.
"""

import getpass
import os
from typing import Callable, Optional

from debvm.models import VMSettings
from debvm.proxmox_utils import (
    DebvmConfig,
    ProxmoxConnectionError,
    ValidationError,
    find_vm_by_id,
    get_env,
    get_next_vmid,
    list_vmids,
    logger,
)
from debvm.validation import (
    parse_yes_no,
    validate_cores,
    validate_disk_size,
    validate_dns_servers,
    validate_gateway,
    validate_ip_config,
    validate_memory,
    validate_name,
    validate_not_empty,
    validate_password,
    validate_vmid,
)


def read_ssh_key(key_file: str) -> str:
    """
    Read SSH public key from file

    Args:
        key_file: Path to SSH public key file (supports ~ expansion)

    Returns:
        SSH public key content

    Raises:
        ValidationError if the key file is missing, empty or unreadable
    """
    key_file = os.path.expanduser(key_file)

    if not os.path.exists(key_file):
        raise ValidationError(f"SSH key file not found: {key_file}")

    try:
        with open(key_file, 'r') as f:
            key = f.read().strip()
    except OSError as e:
        raise ValidationError(f"Failed to read SSH key: {e}") from e

    if not key:
        raise ValidationError(f"SSH key file is empty: {key_file}")
    return key


def resolve_ssh_key(value: Optional[str]) -> Optional[str]:
    """Accept either a public key or a path to a public key file"""
    text = (value or '').strip()
    if not text:
        return None
    if text.startswith(('ssh-', 'ecdsa-', 'sk-')):
        return text
    return read_ssh_key(text)


def suggest_vmid(proxmox, config: DebvmConfig) -> Optional[int]:
    """Next free VM ID, or None when the cluster cannot be queried"""
    if proxmox is None:
        return None
    vmid_min, vmid_max = config.get_vmid_range()
    try:
        return get_next_vmid(proxmox, vmid_min, vmid_max)
    except Exception as e:
        logger.debug(f"Could not determine next free VM ID: {e}")
        return None


def check_vmid_available(proxmox, vmid: int):
    """Reject a VM ID that is already in use"""
    if proxmox is None:
        logger.info(f"→ Skipping check whether VM {vmid} already exists (Proxmox API unavailable)")
        return
    vm = find_vm_by_id(proxmox, vmid)
    if vm:
        raise ValidationError(
            f"VM with ID {vmid} already exists ({vm['name']} on node {vm['node']})"
        )

    # VMs and containers share one ID space
    try:
        used_vmids = list_vmids(proxmox)
    except Exception as e:
        raise ProxmoxConnectionError(f"Error listing VM IDs: {e}") from e
    if vmid in used_vmids:
        raise ValidationError(f"ID {vmid} is already used by a container")


def _ask(prompt: str, default=None) -> str:
    if default is not None and default != '':
        prompt = f"{prompt} (default: {default}): "
    else:
        prompt = f"{prompt}: "
    answer = input(prompt).strip()
    return answer if answer else ('' if default is None else str(default))


def collect_interactive(config: DebvmConfig, proxmox=None) -> VMSettings:
    """
    Prompt for every setting

    Args:
        config: DebvmConfig providing defaults
        proxmox: ProxmoxAPI instance used for VM ID checks, or None

    Returns:
        Validated VMSettings
    """
    vmid = validate_vmid(validate_not_empty(_ask("Enter VM ID", suggest_vmid(proxmox, config)), 'VM ID'))
    check_vmid_available(proxmox, vmid)

    name = validate_name(_ask("Enter VM Name"))
    cores = validate_cores(_ask("Enter number of cores", config.get_default_cores()))
    memory = validate_memory(_ask("Enter RAM in MB", config.get_default_memory()))
    disk_size = validate_disk_size(_ask("Enter disk size in GB", config.get_default_disk_size()))
    storage = validate_not_empty(_ask("Storage location", config.get_storage()), 'Storage')
    bridge = validate_not_empty(_ask("Network bridge", config.get_bridge()), 'Network bridge')

    print("\n--- Cloud-Init Configuration ---")
    ci_user = validate_not_empty(_ask("Username", config.get_default_username()), 'Username')
    ci_password = validate_password(getpass.getpass("Password: "))
    ssh_key = resolve_ssh_key(input("SSH public key or key file (or press enter to skip): "))

    ip = validate_ip_config(input("IP address with CIDR (e.g., 192.168.1.100/24) or 'dhcp': "))
    gateway = None
    dns_servers = []
    if ip != 'dhcp':
        gateway = validate_gateway(input("Gateway IP: "))
        dns_servers = validate_dns_servers(_ask("DNS servers (comma-separated)", config.get_dns_servers()))

    start = parse_yes_no(input("Start VM now? (y/n, default: y): "), default=True)

    return VMSettings(
        vmid=vmid,
        name=name,
        cores=cores,
        memory=memory,
        disk_size=disk_size,
        storage=storage,
        bridge=bridge,
        ci_user=ci_user,
        ci_password=ci_password,
        ssh_key=ssh_key,
        ip=ip,
        gateway=gateway,
        dns_servers=dns_servers,
        start=start,
    )


def collect_from_env(config: DebvmConfig, proxmox=None) -> VMSettings:
    """
    Read every setting from DEBVM_* environment variables

    Unset variables take the same defaults as the interactive prompts.
    DEBVM_NAME and DEBVM_CI_PASSWORD are required.
    """
    vmid_raw = get_env('VMID')
    if vmid_raw is None:
        suggested = suggest_vmid(proxmox, config)
        if suggested is None:
            raise ValidationError("DEBVM_VMID is required when the next free VM ID cannot be determined")
        vmid_raw = str(suggested)
    vmid = validate_vmid(vmid_raw)
    check_vmid_available(proxmox, vmid)

    ip = validate_ip_config(get_env('IP', 'dhcp'))
    gateway = None
    dns_servers = []
    if ip != 'dhcp':
        gateway = validate_gateway(get_env('GATEWAY'))
        dns_servers = validate_dns_servers(get_env('DNS', config.get_dns_servers()))

    return VMSettings(
        vmid=vmid,
        name=validate_name(get_env('NAME')),
        cores=validate_cores(get_env('CORES', str(config.get_default_cores()))),
        memory=validate_memory(get_env('MEMORY', str(config.get_default_memory()))),
        disk_size=validate_disk_size(get_env('DISK_SIZE', str(config.get_default_disk_size()))),
        storage=get_env('STORAGE', config.get_storage()),
        bridge=get_env('BRIDGE', config.get_bridge()),
        ci_user=get_env('CI_USER', config.get_default_username()),
        ci_password=validate_password(get_env('CI_PASSWORD', strip=False)),
        ssh_key=resolve_ssh_key(get_env('SSH_KEY')),
        ip=ip,
        gateway=gateway,
        dns_servers=dns_servers,
        start=parse_yes_no(get_env('START'), default=True),
    )


def collect_settings(config: DebvmConfig, proxmox=None, non_interactive: bool = False) -> VMSettings:
    collector: Callable = collect_from_env if non_interactive else collect_interactive
    return collector(config, proxmox)


def confirm(prompt: str, default: bool = True) -> bool:
    suffix = "[Y/n]" if default else "[y/N]"
    try:
        return parse_yes_no(input(f"{prompt} {suffix}: "), default=default)
    except ValidationError:
        return False
