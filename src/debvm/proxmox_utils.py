#!/usr/bin/env python3
"""
Debian VM Provisioning Utilities

Common logging, configuration loading, error types and Proxmox inventory
lookups shared by the create, delete and image commands.
"""

import configparser
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from proxmoxer import ProxmoxAPI

# Configure logging
# Use a logger named after the module
logger = logging.getLogger(__name__)

# Set up default logging configuration if not already configured
if not logger.handlers:
    # Handler for INFO/WARNING (stdout) - filters out ERROR and above
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.addFilter(lambda record: record.levelno < logging.ERROR)
    console_formatter = logging.Formatter('%(message)s')
    console_handler.setFormatter(console_formatter)

    # Handler for ERROR/CRITICAL (stderr)
    error_handler = logging.StreamHandler(sys.stderr)
    error_handler.setLevel(logging.ERROR)
    error_formatter = logging.Formatter('Error: %(message)s')
    error_handler.setFormatter(error_formatter)

    logger.addHandler(console_handler)
    logger.addHandler(error_handler)
    logger.setLevel(logging.INFO)


# Custom exceptions for better error handling

class DebvmError(Exception):
    """Base exception for all provisioning errors"""
    pass


class ConfigError(DebvmError):
    """Raised when the configuration file is missing or malformed"""
    pass


class ValidationError(DebvmError):
    """Raised when a configuration value fails validation"""
    pass


class ProxmoxConnectionError(DebvmError):
    """Raised when the local Proxmox API cannot be reached"""
    pass


class ProxmoxVMIDError(DebvmError):
    """Raised when VM ID operations fail"""
    pass


# Built-in defaults, taken over by [defaults] and [image] in the config file
DEFAULTS = {
    'cores': 2,
    'memory': 2048,
    'disk_size': 20,
    'storage': 'local-lvm',
    'bridge': 'vmbr0',
    'username': 'debian',
    'dns_servers': '1.1.1.1,8.8.8.8',
    'vmid_min': 100,
    'vmid_max': 999999999,
}

IMAGE_DEFAULTS = {
    'release': 'bookworm',
    'arch': 'amd64',
    'base_url': 'https://cloud.debian.org/images/cloud',
    'cache_dir': '/var/lib/vz/template/cache/debvm',
    'expiry_days': 7,
    'timeout': 60,
}

ENV_PREFIX = 'DEBVM_'


def find_config_file(config_file: Optional[str] = None) -> Optional[str]:
    """
    Find configuration file in standard locations.

    Search order:
    1. Explicit path (if provided)
    2. Current directory: ./debvm.ini
    3. XDG config directory: ~/.config/debvm/debvm.ini
    4. Home directory: ~/.debvm.ini

    Args:
        config_file: Explicit path to config file, or None to search

    Returns:
        Path to found config file, or None if no file exists in the
        standard locations

    Raises:
        ConfigError: If an explicit config file was given but does not exist
    """
    if config_file:
        if os.path.isfile(config_file):
            return config_file
        raise ConfigError(f"Configuration file '{config_file}' not found")

    search_paths = [
        Path.cwd() / "debvm.ini",
        Path.home() / ".config" / "debvm" / "debvm.ini",
        Path.home() / ".debvm.ini",
    ]

    for path in search_paths:
        if path.is_file():
            return str(path)

    return None


class DebvmConfig:
    """Load defaults from an optional INI file"""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize DebvmConfig.

        Args:
            config_file: Path to config file, or None to search in standard locations
        """
        self.config_file = find_config_file(config_file)
        self.config = configparser.ConfigParser()

        if self.config_file:
            try:
                self.config.read(self.config_file)
            except configparser.Error as e:
                raise ConfigError(f"Failed to parse {self.config_file}: {e}") from e

    def _getint(self, section: str, option: str, fallback: int) -> int:
        try:
            return self.config.getint(section, option, fallback=fallback)
        except ValueError as e:
            raise ConfigError(f"[{section}] {option} must be an integer: {e}") from e

    def _get(self, section: str, option: str, fallback: str) -> str:
        value = self.config.get(section, option, fallback='').strip()
        return value if value else fallback

    def get_default_cores(self) -> int:
        """Get default CPU cores"""
        return self._getint('defaults', 'cores', DEFAULTS['cores'])

    def get_default_memory(self) -> int:
        """Get default memory in MB"""
        return self._getint('defaults', 'memory', DEFAULTS['memory'])

    def get_default_disk_size(self) -> int:
        """Get default disk size in GB"""
        return self._getint('defaults', 'disk_size', DEFAULTS['disk_size'])

    def get_storage(self) -> str:
        """Get default storage name"""
        return self._get('defaults', 'storage', DEFAULTS['storage'])

    def get_bridge(self) -> str:
        """Get default network bridge"""
        return self._get('defaults', 'bridge', DEFAULTS['bridge'])

    def get_default_username(self) -> str:
        """Get default cloud-init username"""
        return self._get('defaults', 'username', DEFAULTS['username'])

    def get_dns_servers(self) -> str:
        """Get default DNS servers (comma-separated)"""
        return self._get('defaults', 'dns_servers', DEFAULTS['dns_servers'])

    def get_vmid_range(self) -> Tuple[int, int]:
        """Get VM ID range"""
        vmid_min = self._getint('defaults', 'vmid_min', DEFAULTS['vmid_min'])
        vmid_max = self._getint('defaults', 'vmid_max', DEFAULTS['vmid_max'])
        return (vmid_min, vmid_max)

    def get_image_release(self) -> str:
        """Get Debian release codename for the cloud image"""
        return self._get('image', 'release', IMAGE_DEFAULTS['release'])

    def get_image_arch(self) -> str:
        """Get cloud image architecture"""
        return self._get('image', 'arch', IMAGE_DEFAULTS['arch'])

    def get_image_base_url(self) -> str:
        """Get base URL of the Debian cloud image repository"""
        return self._get('image', 'base_url', IMAGE_DEFAULTS['base_url']).rstrip('/')

    def get_cache_dir(self) -> str:
        """Get directory holding the cached base image"""
        return os.path.expanduser(self._get('image', 'cache_dir', IMAGE_DEFAULTS['cache_dir']))

    def get_cache_expiry_days(self) -> int:
        """Get number of days a cached image stays fresh (default: 7)"""
        return self._getint('image', 'expiry_days', IMAGE_DEFAULTS['expiry_days'])

    def get_http_timeout(self) -> int:
        """Get HTTP timeout in seconds for listing and download requests"""
        return self._getint('image', 'timeout', IMAGE_DEFAULTS['timeout'])


def get_env(name: str, default: Optional[str] = None, strip: bool = True) -> Optional[str]:
    """
    Read a DEBVM_-prefixed environment variable, treating empty as unset

    With strip=False the value is returned exactly as set (passwords).
    """
    value = os.environ.get(ENV_PREFIX + name, '')
    if strip:
        value = value.strip()
    return value if value else default


def require_root(dry_run: bool = False):
    """Abort unless running as root; preview mode may run unprivileged"""
    if dry_run:
        return
    if os.geteuid() != 0:
        raise DebvmError("This script must be run as root (on a Proxmox host)")


def connect_proxmox() -> ProxmoxAPI:
    """
    Connect to the Proxmox API of the local node

    Uses proxmoxer's local backend, which talks to pvesh on the host, so no
    credentials are required when running as root on a Proxmox node.

    Returns:
        ProxmoxAPI instance
    """
    try:
        proxmox = ProxmoxAPI(backend='local', service='PVE')
        # Test connection
        proxmox.version.get()
        return proxmox
    except Exception as e:
        raise ProxmoxConnectionError(f"Error connecting to Proxmox: {e}") from e


def list_vmids(proxmox) -> List[int]:
    """
    List the IDs of all VMs and containers in the cluster

    Args:
        proxmox: ProxmoxAPI instance

    Returns:
        List of used VM IDs
    """
    used = []
    for node in proxmox.nodes.get():
        node_name = node['node']
        used.extend(int(vm['vmid']) for vm in proxmox.nodes(node_name).qemu.get())
        used.extend(int(ct['vmid']) for ct in proxmox.nodes(node_name).lxc.get())
    return used


def get_next_vmid(proxmox, vmid_min: int, vmid_max: int) -> int:
    """
    Find the next available VM ID in the specified range

    Args:
        proxmox: ProxmoxAPI instance
        vmid_min: Minimum VM ID
        vmid_max: Maximum VM ID

    Returns:
        Next available VM ID
    """
    used_vmids = set(list_vmids(proxmox))

    for vmid in range(vmid_min, vmid_max + 1):
        if vmid not in used_vmids:
            return vmid

    raise ProxmoxVMIDError(f"No available VM ID in range {vmid_min}-{vmid_max}")


def find_vm_by_id(proxmox, vmid: int) -> Optional[Dict]:
    """
    Find VM by ID

    Args:
        proxmox: ProxmoxAPI instance
        vmid: VM ID to search for

    Returns:
        VM info dict with 'vmid', 'name', 'node', 'status' or None if not found
    """
    try:
        nodes = proxmox.nodes.get()
    except Exception as e:
        raise ProxmoxConnectionError(f"Error querying nodes: {e}") from e

    for node in nodes:
        node_name = node['node']
        try:
            vms = proxmox.nodes(node_name).qemu.get()
        except Exception as e:
            logger.error(f"Error querying node {node_name}: {e}")
            continue
        for vm in vms:
            if int(vm.get('vmid')) == vmid:
                return {
                    'vmid': vmid,
                    'name': vm.get('name', ''),
                    'node': node_name,
                    'status': vm.get('status', 'unknown')
                }

    return None


def find_vm_by_name(proxmox, name: str) -> Optional[Dict]:
    """
    Find VM by name (returns first match)

    Args:
        proxmox: ProxmoxAPI instance
        name: VM name to search for

    Returns:
        VM info dict with 'vmid', 'name', 'node', 'status' or None if not found
    """
    try:
        nodes = proxmox.nodes.get()
    except Exception as e:
        raise ProxmoxConnectionError(f"Error querying nodes: {e}") from e

    for node in nodes:
        node_name = node['node']
        try:
            vms = proxmox.nodes(node_name).qemu.get()
        except Exception as e:
            logger.error(f"Error querying node {node_name}: {e}")
            continue
        for vm in vms:
            if vm.get('name', '') == name:
                return {
                    'vmid': int(vm.get('vmid')),
                    'name': name,
                    'node': node_name,
                    'status': vm.get('status', 'unknown')
                }

    return None


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None):
    """
    Configure logging for the application

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file, written in addition to the console
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger.setLevel(log_level)
    for handler in logger.handlers:
        if handler.level < logging.ERROR:
            handler.setLevel(log_level)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        logger.addHandler(file_handler)
