#!/usr/bin/env python3
"""
debvm CLI Entry Point

Create and delete Proxmox VMs built from the latest Debian cloud image,
and manage the locally cached copy of that image.
"""

import argparse
import sys

from debvm.commands import vm, images as image
from debvm.proxmox_utils import setup_logging

CONFIG_HELP = 'Path to configuration file (default: searches ./debvm.ini, ~/.config/debvm/debvm.ini, ~/.debvm.ini)'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='debvm',
        description='Debian cloud-init VM provisioning for Proxmox VE',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  # VM operations
  debvm vm create                     # interactive
  debvm vm create --dry-run           # show the qm commands only
  DEBVM_NAME=web DEBVM_CI_PASSWORD=secret debvm vm create --non-interactive
  debvm vm delete 120
  debvm vm delete webserver -f

  # Image cache operations
  debvm image status
  debvm image update
  debvm image update --if-stale
  debvm image delete
        '''
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show debug output, including qm command output')
    parser.add_argument('--log-file', default=None,
                        help='Also write log messages to this file')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute', required=True)

    # VM command
    vm_parser = subparsers.add_parser('vm', help='VM management commands')
    vm_subparsers = vm_parser.add_subparsers(dest='action', help='VM action', required=True)

    vm_create = vm_subparsers.add_parser('create', help='Create a new Debian VM')
    vm_create.add_argument('--config', default=None, help=CONFIG_HELP)
    vm.setup_create_parser(vm_create)

    vm_delete = vm_subparsers.add_parser('delete', help='Stop and destroy a VM')
    vm_delete.add_argument('--config', default=None, help=CONFIG_HELP)
    vm.setup_delete_parser(vm_delete)

    # Image command
    image_parser = subparsers.add_parser('image', help='Image cache commands')
    image_subparsers = image_parser.add_subparsers(dest='action', help='Image action', required=True)

    image_status = image_subparsers.add_parser('status', help='Show the cached image and its age')
    image_status.add_argument('--config', default=None, help=CONFIG_HELP)
    image.setup_status_parser(image_status)

    image_update = image_subparsers.add_parser('update', help='Download the latest image into the cache')
    image_update.add_argument('--config', default=None, help=CONFIG_HELP)
    image.setup_update_parser(image_update)

    image_delete = image_subparsers.add_parser('delete', help='Remove the cached image')
    image_delete.add_argument('--config', default=None, help=CONFIG_HELP)
    image.setup_delete_parser(image_delete)

    return parser


HANDLERS = {
    ('vm', 'create'): vm.handle_create,
    ('vm', 'delete'): vm.handle_delete,
    ('image', 'status'): image.handle_status,
    ('image', 'update'): image.handle_update,
    ('image', 'delete'): image.handle_delete,
}


def main(argv=None):
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)
    setup_logging('DEBUG' if args.verbose else 'INFO', args.log_file)

    try:
        HANDLERS[(args.command, args.action)](args)
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user")
        sys.exit(1)
    except EOFError:
        print("\n\nInput closed, aborting")
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
