"""Data models for VM provisioning."""

from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple


@dataclass
class VMSettings:
    vmid: int
    name: str
    cores: int
    memory: int  # MB
    disk_size: int  # GB
    storage: str
    bridge: str
    ci_user: str
    ci_password: str
    ssh_key: Optional[str] = None
    ip: str = 'dhcp'
    gateway: Optional[str] = None
    dns_servers: List[str] = field(default_factory=list)
    start: bool = True

    @property
    def is_dhcp(self) -> bool:
        return self.ip == 'dhcp'


class Operation(NamedTuple):
    """One external command in a provisioning sequence"""
    name: str
    args: Tuple[str, ...]
    fatal: bool = True
    # argument values hidden when the command is printed
    secrets: Tuple[str, ...] = ()


@dataclass
class CreateResult:
    vmid: int
    image_path: str
    commands: List[str]
    started: bool
    dry_run: bool = False
