#!/usr/bin/env python3
"""
VM lifecycle commands for the crunchloop CLI.
"""

import base64

import questionary

from crunchloop.cli.utils import (
    build_services,
    console,
    custom_style,
    print_json,
    print_vm,
    read_text_file,
    run_cancellable,
)
from crunchloop.models import CreateVmRequest


def _user_data(path):
    """Cloud-init user data goes over the wire base64 encoded."""
    raw = read_text_file(path)
    if raw is None:
        return None
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def cmd_vm_create(args):
    """Create a VM and wait for it to be running."""
    service, catalog = build_services(args)

    vmi_id = args.vmi_id
    if vmi_id is None:
        vmi_id = catalog.find_vmi(args.vmi).id
    host_id = args.host_id
    if host_id is None and args.host:
        host_id = catalog.find_host(args.host).id

    ssh_key = read_text_file(args.ssh_key_file)
    request = CreateVmRequest(
        name=args.name,
        memory_megabytes=args.memory_mb,
        cores=args.cores,
        vmi_id=vmi_id,
        host_id=host_id,
        root_volume_size_gigabytes=args.root_volume_gb,
        user_data=_user_data(args.user_data_file),
        ssh_key=ssh_key.strip() if ssh_key else None,
    )

    with console.status(f"[cyan]Creating VM '{request.name}' and waiting for it to run...[/]"):
        vm = run_cancellable(service.create, request)
    if not args.json:
        console.print(f"[bold green]VM '{vm.name}' is running[/]")
    print_vm(vm, as_json=args.json)


def cmd_vm_get(args):
    """Show a VM."""
    service, _ = build_services(args)
    print_vm(service.read(args.vm_id), as_json=args.json)


def cmd_vm_update(args):
    """Change memory or cores of a VM."""
    changes = {}
    if args.memory_mb is not None:
        changes["memory_megabytes"] = args.memory_mb
    if args.cores is not None:
        changes["cores"] = args.cores
    if not changes:
        console.print("[red]Nothing to update: pass --memory-mb and/or --cores[/]")
        return

    service, _ = build_services(args)
    with console.status(f"[cyan]Updating VM {args.vm_id}...[/]"):
        vm = run_cancellable(service.update, args.vm_id, changes)
    print_vm(vm, as_json=args.json)


def cmd_vm_start(args):
    """Start a VM."""
    service, _ = build_services(args)
    with console.status(f"[cyan]Starting VM {args.vm_id}...[/]"):
        vm = run_cancellable(service.start, args.vm_id)
    print_vm(vm, as_json=args.json)


def cmd_vm_stop(args):
    """Stop a VM."""
    service, _ = build_services(args)
    with console.status(f"[cyan]Stopping VM {args.vm_id}...[/]"):
        vm = run_cancellable(service.stop, args.vm_id)
    print_vm(vm, as_json=args.json)


def cmd_vm_state(args):
    """Drive a VM to running or stopped."""
    service, _ = build_services(args)
    with console.status(f"[cyan]Setting VM {args.vm_id} to {args.status}...[/]"):
        vm = run_cancellable(service.set_state, args.vm_id, args.status)
    print_vm(vm, as_json=args.json)


def cmd_vm_delete(args):
    """Delete a VM and wait until it is gone."""
    if not args.yes:
        if not questionary.confirm(
            f"Delete VM {args.vm_id}?", default=False, style=custom_style
        ).ask():
            return

    service, _ = build_services(args)
    with console.status(f"[cyan]Deleting VM {args.vm_id}...[/]"):
        run_cancellable(service.delete, args.vm_id)
    if args.json:
        print_json({"id": args.vm_id, "deleted": True})
    else:
        console.print(f"[green]VM {args.vm_id} deleted[/]")
