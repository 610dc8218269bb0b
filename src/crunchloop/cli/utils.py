#!/usr/bin/env python3
"""
Shared utilities for the crunchloop CLI.
"""

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from questionary import Style
from rich.console import Console
from rich.table import Table

from crunchloop.backends.http_client import HttpVmApi
from crunchloop.catalog import CatalogService
from crunchloop.config import CrunchloopConfig, load_config
from crunchloop.lifecycle import VmLifecycleService
from crunchloop.logging import configure_logging
from crunchloop.models import VirtualMachine

custom_style = Style(
    [
        ("qmark", "fg:cyan bold"),
        ("question", "bold"),
        ("answer", "fg:green"),
        ("pointer", "fg:cyan bold"),
        ("highlighted", "fg:cyan bold"),
        ("selected", "fg:green"),
        ("separator", "fg:gray"),
        ("instruction", "fg:gray italic"),
    ]
)

console = Console()

# How often the main thread wakes up to notice Ctrl-C while an operation runs.
RESULT_POLL_SECONDS = 0.2


def resolve_config(args) -> CrunchloopConfig:
    """Effective config: file + environment + command line flags."""
    config_path = Path(args.config) if getattr(args, "config", None) else None
    config = load_config(config_path)

    data = config.model_dump()
    if getattr(args, "url", None):
        data["api"]["url"] = args.url
    if getattr(args, "poll_interval", None):
        data["wait"]["poll_interval_seconds"] = args.poll_interval
    if getattr(args, "timeout", None):
        data["wait"]["timeout_seconds"] = args.timeout
    if getattr(args, "verbose", False):
        data["log_level"] = "DEBUG"
    if getattr(args, "log_file", None):
        data["log_file"] = args.log_file
    return CrunchloopConfig.from_dict(data, source="command line")


def build_services(args) -> Tuple[VmLifecycleService, CatalogService]:
    config = resolve_config(args)
    configure_logging(
        level=config.log_level, json_output=config.log_json, log_file=config.log_file
    )
    api = HttpVmApi.from_settings(config.api)
    return VmLifecycleService(api, config.wait), CatalogService(api)


def run_cancellable(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Run a lifecycle call on a worker thread, passing it a cancel event.

    Ctrl-C sets the event instead of killing the process, so the call ends
    with its own cancellation error and the remote request is left alone.
    """
    cancel = threading.Event()
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="crunchloop-op") as executor:
        future = executor.submit(func, *args, cancel=cancel, **kwargs)
        while True:
            try:
                return future.result(timeout=RESULT_POLL_SECONDS)
            except FutureTimeout:
                continue
            except KeyboardInterrupt:
                console.print("\n[yellow]Interrupted, cancelling wait...[/]")
                cancel.set()
                return future.result()


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def print_vm(vm: VirtualMachine, as_json: bool = False) -> None:
    summary = vm.summary()
    if as_json:
        print_json(summary)
        return

    state_style = "green" if vm.status == "running" else "yellow"
    table = Table(title=f"VM {vm.id}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in summary.items():
        if key == "status":
            value = f"[{state_style}]{value}[/{state_style}]"
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)


def print_catalog(title: str, rows: Iterable[Dict[str, Any]], as_json: bool = False) -> None:
    rows = list(rows)
    if as_json:
        print_json(rows)
        return
    if not rows:
        console.print(f"[dim]No {title.lower()} found[/]")
        return

    table = Table(title=title)
    for column in rows[0]:
        table.add_column(column.replace("_", " ").title(), style="cyan" if column == "name" else None)
    for row in rows:
        table.add_row(*("-" if v is None else str(v) for v in row.values()))
    console.print(table)


def read_text_file(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    return Path(path).expanduser().read_text()
