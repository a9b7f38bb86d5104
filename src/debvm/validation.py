"""Validation of VM and cloud-init settings"""

import ipaddress
import re
from typing import List, Optional

from debvm.proxmox_utils import ValidationError, logger

MIN_VMID = 100
MIN_CORES = 1
MIN_MEMORY = 512
MIN_DISK_SIZE = 2
MIN_PASSWORD_LENGTH = 8

IP_CIDR_RE = re.compile(r'^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})/(\d{1,2})$', re.ASCII)
VM_NAME_RE = re.compile(r'^[A-Za-z0-9]([A-Za-z0-9.-]*[A-Za-z0-9])?$')


def parse_int(value, field: str, minimum: int) -> int:
    """
    Parse a positive integer and enforce a minimum

    Args:
        value: Raw value (string or int)
        field: Field name used in error messages
        minimum: Smallest accepted value

    Returns:
        Parsed integer

    Raises:
        ValidationError if value is not an integer or is below minimum
    """
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()):
        raise ValidationError(f"{field} must be a positive integer, got '{value}'")
    number = int(text)
    if number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}, got {number}")
    return number


def validate_vmid(value) -> int:
    return parse_int(value, 'VM ID', MIN_VMID)


def validate_cores(value) -> int:
    return parse_int(value, 'CPU cores', MIN_CORES)


def validate_memory(value) -> int:
    return parse_int(value, 'Memory (MB)', MIN_MEMORY)


def validate_disk_size(value) -> int:
    return parse_int(value, 'Disk size (GB)', MIN_DISK_SIZE)


def validate_name(value: Optional[str]) -> str:
    """VM names end up as hostnames, so only DNS label characters are allowed"""
    name = (value or '').strip()
    if not name:
        raise ValidationError("VM Name cannot be empty")
    if not VM_NAME_RE.match(name):
        raise ValidationError(
            f"Invalid VM name '{name}': use letters, digits, '-' and '.' only"
        )
    return name


def validate_not_empty(value: Optional[str], field: str) -> str:
    text = (value or '').strip()
    if not text:
        raise ValidationError(f"{field} cannot be empty")
    return text


def validate_password(value: Optional[str]) -> str:
    """
    Validate the cloud-init password

    An empty password is fatal, a short one only produces a warning.
    """
    if not value:
        raise ValidationError("Password cannot be empty")
    if len(value) < MIN_PASSWORD_LENGTH:
        logger.warning(
            f"→ Warning: password is shorter than {MIN_PASSWORD_LENGTH} characters"
        )
    return value


def validate_ip_config(value: Optional[str]) -> str:
    """
    Validate the IP configuration

    Returns 'dhcp' for empty input or 'dhcp' (any case), otherwise the
    address in CIDR notation (e.g., '192.168.1.100/24').
    """
    text = (value or '').strip()
    if not text or text.lower() == 'dhcp':
        return 'dhcp'

    match = IP_CIDR_RE.match(text)
    if not match:
        raise ValidationError(
            f"Invalid IP address '{text}': expected CIDR notation "
            f"(e.g., 192.168.1.100/24) or 'dhcp'"
        )
    octets = [int(part) for part in match.groups()[:4]]
    prefix = int(match.group(5))
    if any(octet > 255 for octet in octets) or prefix > 32:
        raise ValidationError(f"Invalid IP address '{text}': octet or prefix out of range")
    return text


def validate_ipv4(value: Optional[str], field: str) -> str:
    text = validate_not_empty(value, field)
    try:
        ipaddress.IPv4Address(text)
    except ValueError:
        raise ValidationError(f"{field} '{text}' is not a valid IPv4 address")
    return text


def validate_gateway(value: Optional[str]) -> str:
    if not (value or '').strip():
        raise ValidationError("Gateway IP cannot be empty when using static IP")
    return validate_ipv4(value, 'Gateway IP')


def validate_dns_servers(value: str) -> List[str]:
    """Split a comma-separated DNS server list and validate each entry"""
    servers = [s.strip() for s in value.split(',') if s.strip()]
    if not servers:
        raise ValidationError("At least one DNS server is required for static IP")
    return [validate_ipv4(server, 'DNS server') for server in servers]


def parse_yes_no(value: Optional[str], default: bool) -> bool:
    text = (value or '').strip().lower()
    if not text:
        return default
    if text in ('y', 'yes', 'true', '1', 'on'):
        return True
    if text in ('n', 'no', 'false', '0', 'off'):
        return False
    raise ValidationError(f"Expected yes or no, got '{value}'")
