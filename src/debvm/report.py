"""Configuration and result summaries"""

from debvm.models import CreateResult, VMSettings

RULE = "=" * 80


def print_configuration(settings: VMSettings, dry_run: bool = False):
    """Print the resolved configuration before anything is changed"""
    print("\n" + RULE)
    print("VM Configuration:" + ("  (dry-run)" if dry_run else ""))
    print(RULE)
    print(f"  VM ID:     {settings.vmid}")
    print(f"  Name:      {settings.name}")
    print(f"  Cores:     {settings.cores}")
    print(f"  Memory:    {settings.memory} MB")
    print(f"  Disk:      {settings.disk_size} GB")
    print(f"  Storage:   {settings.storage}")
    print(f"  Bridge:    {settings.bridge}")
    print(f"  User:      {settings.ci_user}")
    print(f"  Password:  {'*' * 8}")
    print(f"  SSH Key:   {'Yes' if settings.ssh_key else 'No'}")
    _print_network(settings)
    print(f"  Start:     {'Yes' if settings.start else 'No'}")
    print(RULE + "\n")


def print_results(settings: VMSettings, result: CreateResult):
    print("\n" + RULE)
    if result.dry_run:
        print(f"Dry-run complete: {len(result.commands)} command(s) would be run")
        print(RULE)
        for command in result.commands:
            print(f"  {command}")
        print(RULE + "\n")
        return

    print("VM setup complete!")
    print(RULE)
    print(f"  VM ID:     {settings.vmid}")
    print(f"  Name:      {settings.name}")
    print(f"  Status:    {'Running' if result.started else 'Stopped'}")
    print(f"  Cloud-init username: {settings.ci_user}")
    _print_network(settings)
    print(RULE)
    print("\nNote: Wait a few minutes for cloud-init to complete initial setup.")
    print(RULE + "\n")


def print_delete_summary(deleted: int, skipped: int):
    print(f"\n{RULE}")
    print("Summary:")
    print(f"  Deleted: {deleted}")
    print(f"  Skipped: {skipped}")
    print(RULE)


def _print_network(settings: VMSettings):
    if settings.is_dhcp:
        print("  Network:   DHCP")
    else:
        print(f"  IP:        {settings.ip}")
        print(f"  Gateway:   {settings.gateway}")
        print(f"  DNS:       {', '.join(settings.dns_servers)}")
