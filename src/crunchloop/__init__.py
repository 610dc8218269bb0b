"""
crunchloop - manage Crunchloop Cloud VMs and wait for them to converge.

Every mutating call (create, update, start, stop, delete) returns only once the
VM has reached the status the call implies, the wait times out, or the caller
cancels it.
"""

__version__ = "0.1.0"
__author__ = "Crunchloop Team"

from crunchloop.backends.http_client import HttpVmApi
from crunchloop.catalog import CatalogService
from crunchloop.config import CrunchloopConfig, WaitPolicy, load_config
from crunchloop.convergence import ConvergencePoller
from crunchloop.lifecycle import VmLifecycleService
from crunchloop.models import CreateVmRequest, UpdateVmRequest, VirtualMachine
from crunchloop.status import Operation, VmStatus

__all__ = [
    "CatalogService",
    "ConvergencePoller",
    "CreateVmRequest",
    "CrunchloopConfig",
    "HttpVmApi",
    "Operation",
    "UpdateVmRequest",
    "VirtualMachine",
    "VmLifecycleService",
    "VmStatus",
    "WaitPolicy",
    "load_config",
    "__version__",
]
