"""Interface for the Crunchloop Cloud VM API."""

from abc import ABC, abstractmethod
from typing import List

from ..models import CreateVmRequest, Host, UpdateVmRequest, VirtualMachine, Vmi


class VmApi(ABC):
    """Single request/response calls against the control plane.

    Implementations raise ``NotFoundError`` for a 404, ``ApiError`` for any
    other unexpected status and ``TransportError`` when the API cannot be
    reached. They never retry and never wait for status changes.
    Implementations must be safe to share between threads.
    """

    @abstractmethod
    def create_vm(self, request: CreateVmRequest) -> VirtualMachine:
        """Create a VM. Returns the snapshot from the create response."""
        pass

    @abstractmethod
    def get_vm(self, vm_id: int) -> VirtualMachine:
        """Fetch a VM snapshot."""
        pass

    @abstractmethod
    def update_vm(self, vm_id: int, request: UpdateVmRequest) -> None:
        """Ask the control plane to change mutable fields of a VM."""
        pass

    @abstractmethod
    def start_vm(self, vm_id: int) -> None:
        """Ask the control plane to start a VM."""
        pass

    @abstractmethod
    def stop_vm(self, vm_id: int) -> None:
        """Ask the control plane to stop a VM."""
        pass

    @abstractmethod
    def delete_vm(self, vm_id: int) -> None:
        """Ask the control plane to delete a VM."""
        pass

    @abstractmethod
    def list_hosts(self) -> List[Host]:
        """List hosts."""
        pass

    @abstractmethod
    def list_vmis(self) -> List[Vmi]:
        """List virtual machine images."""
        pass
