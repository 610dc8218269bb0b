#!/usr/bin/env python3
"""
Argument parsers for the crunchloop CLI.
"""

import argparse
import sys

from crunchloop import __version__
from crunchloop.cli.catalog_commands import cmd_host_get, cmd_host_list, cmd_vmi_get, cmd_vmi_list
from crunchloop.cli.utils import console
from crunchloop.cli.vm_commands import (
    cmd_vm_create,
    cmd_vm_delete,
    cmd_vm_get,
    cmd_vm_start,
    cmd_vm_state,
    cmd_vm_stop,
    cmd_vm_update,
)
from crunchloop.errors import ConfigError, CrunchloopError, OperationError

EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crunchloop", description="Manage Crunchloop Cloud VMs"
    )
    parser.add_argument("--version", action="version", version=f"crunchloop {__version__}")
    parser.add_argument("--config", "-c", help="Config file (default: discover .crunchloop.yaml)")
    parser.add_argument("--url", help="Crunchloop Cloud URL (overrides config)")
    parser.add_argument(
        "--poll-interval", type=float, help="Seconds between status polls (default: 5)"
    )
    parser.add_argument(
        "--timeout", type=float, help="Seconds to wait for a VM to converge (default: 300)"
    )
    parser.add_argument("--json", action="store_true", help="Print JSON instead of tables")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", help="Also write JSON log lines to this file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # VM commands
    vm_parser = subparsers.add_parser("vm", help="Manage VMs")
    vm_sub = vm_parser.add_subparsers(dest="vm_command", help="VM commands")

    create_parser = vm_sub.add_parser("create", help="Create a VM and wait until it runs")
    create_parser.add_argument("--name", "-n", required=True, help="VM name")
    create_parser.add_argument("--memory-mb", type=int, required=True, help="Memory in MiB")
    create_parser.add_argument("--cores", type=int, required=True, help="Virtual CPU cores")
    create_parser.add_argument(
        "--root-volume-gb", type=int, required=True, help="Root volume size in GiB"
    )
    vmi_group = create_parser.add_mutually_exclusive_group(required=True)
    vmi_group.add_argument("--vmi", help="Image name")
    vmi_group.add_argument("--vmi-id", type=int, help="Image id")
    host_group = create_parser.add_mutually_exclusive_group()
    host_group.add_argument("--host", help="Host name")
    host_group.add_argument("--host-id", type=int, help="Host id")
    create_parser.add_argument("--user-data-file", help="Cloud-init user data script")
    create_parser.add_argument("--ssh-key-file", help="SSH public key file")
    create_parser.set_defaults(func=cmd_vm_create)

    get_parser = vm_sub.add_parser("get", help="Show a VM")
    get_parser.add_argument("vm_id", type=int, help="VM id")
    get_parser.set_defaults(func=cmd_vm_get)

    update_parser = vm_sub.add_parser("update", help="Change memory or cores")
    update_parser.add_argument("vm_id", type=int, help="VM id")
    update_parser.add_argument("--memory-mb", type=int, help="Memory in MiB")
    update_parser.add_argument("--cores", type=int, help="Virtual CPU cores")
    update_parser.set_defaults(func=cmd_vm_update)

    start_parser = vm_sub.add_parser("start", help="Start a VM")
    start_parser.add_argument("vm_id", type=int, help="VM id")
    start_parser.set_defaults(func=cmd_vm_start)

    stop_parser = vm_sub.add_parser("stop", help="Stop a VM")
    stop_parser.add_argument("vm_id", type=int, help="VM id")
    stop_parser.set_defaults(func=cmd_vm_stop)

    state_parser = vm_sub.add_parser("state", help="Drive a VM to running or stopped")
    state_parser.add_argument("vm_id", type=int, help="VM id")
    state_parser.add_argument("status", choices=["running", "stopped"], help="Desired status")
    state_parser.set_defaults(func=cmd_vm_state)

    delete_parser = vm_sub.add_parser("delete", aliases=["rm"], help="Delete a VM")
    delete_parser.add_argument("vm_id", type=int, help="VM id")
    delete_parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")
    delete_parser.set_defaults(func=cmd_vm_delete)

    # Catalog commands
    host_parser = subparsers.add_parser("host", help="Look up hosts")
    host_sub = host_parser.add_subparsers(dest="host_command", help="Host commands")
    host_list = host_sub.add_parser("list", aliases=["ls"], help="List hosts")
    host_list.set_defaults(func=cmd_host_list)
    host_get = host_sub.add_parser("get", help="Find a host by name")
    host_get.add_argument("name", help="Host name")
    host_get.set_defaults(func=cmd_host_get)

    vmi_parser = subparsers.add_parser("vmi", help="Look up VM images")
    vmi_sub = vmi_parser.add_subparsers(dest="vmi_command", help="Image commands")
    vmi_list = vmi_sub.add_parser("list", aliases=["ls"], help="List images")
    vmi_list.set_defaults(func=cmd_vmi_list)
    vmi_get = vmi_sub.add_parser("get", help="Find an image by name")
    vmi_get.add_argument("name", help="Image name")
    vmi_get.set_defaults(func=cmd_vmi_get)

    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        args.func(args)
    except OperationError as e:
        console.print(f"[red]❌ {e}[/]")
        if e.accepted:
            console.print("[dim]The request was accepted; the VM may still converge.[/]")
        sys.exit(EXIT_CANCELLED if e.cancelled else EXIT_ERROR)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/]")
        sys.exit(EXIT_CONFIG)
    except (CrunchloopError, ValueError, OSError) as e:
        console.print(f"[red]Error: {e}[/]")
        sys.exit(EXIT_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/]")
        sys.exit(EXIT_CANCELLED)
