#!/usr/bin/env python3
"""
Host and image catalog commands for the crunchloop CLI.
"""

from crunchloop.cli.utils import build_services, print_catalog


def cmd_host_list(args):
    """List hosts."""
    _, catalog = build_services(args)
    rows = [host.model_dump() for host in catalog.list_hosts()]
    print_catalog("Hosts", rows, as_json=args.json)


def cmd_host_get(args):
    """Look up a host by name."""
    _, catalog = build_services(args)
    print_catalog("Hosts", [catalog.find_host(args.name).model_dump()], as_json=args.json)


def cmd_vmi_list(args):
    """List VM images."""
    _, catalog = build_services(args)
    rows = [vmi.model_dump() for vmi in catalog.list_vmis()]
    print_catalog("Images", rows, as_json=args.json)


def cmd_vmi_get(args):
    """Look up a VM image by name."""
    _, catalog = build_services(args)
    print_catalog("Images", [catalog.find_vmi(args.name).model_dump()], as_json=args.json)
