"""
VM lifecycle service.

Turns one high-level operation into a mutating API call followed by a
convergence wait, and returns the converged VM or raises ``OperationError``.
"""

from typing import Any, Mapping, Optional, Union

from .config import WaitPolicy
from .convergence import CancelSignal, ConvergencePoller
from .errors import CrunchloopError, OperationError, VmBusyError
from .interfaces.vm_api import VmApi
from .logging import get_logger, log_operation
from .models import CreateVmRequest, UpdateVmRequest, VirtualMachine
from .status import TRANSIENT_STATUSES, ConvergenceTarget, Operation, VmStatus, status_matches

log = get_logger(__name__)

UpdateLike = Union[UpdateVmRequest, Mapping[str, Any]]


class VmLifecycleService:
    """
    Create, read, update, start, stop and delete VMs, waiting for each
    mutating call to converge.

    The service keeps no per-VM state, so operations on different VMs can run
    concurrently from different threads. Callers serialise operations on the
    same VM.

    Usage:
        service = VmLifecycleService(HttpVmApi(url), WaitPolicy())
        vm = service.create(CreateVmRequest(...), cancel=event)
        service.stop(vm.id)
    """

    def __init__(
        self,
        api: VmApi,
        policy: Optional[WaitPolicy] = None,
        poller: Optional[ConvergencePoller] = None,
    ):
        self.api = api
        self.poller = poller or ConvergencePoller(policy)

    @property
    def policy(self) -> WaitPolicy:
        return self.poller.policy

    def create(
        self, request: CreateVmRequest, cancel: Optional[CancelSignal] = None
    ) -> VirtualMachine:
        """Create a VM and wait for it to be running."""
        op = Operation.CREATE
        target = op.target()
        with log_operation(log, "vm_create", vm_name=request.name) as oplog:
            try:
                created = self.api.create_vm(request)
            except CrunchloopError as e:
                raise OperationError(op.value, None, target, e) from e

            oplog.info("vm_create.accepted", vm_id=created.id, status=created.status)
            return self._converge(op, created.id, target, cancel)

    def read(self, vm_id: int) -> VirtualMachine:
        """Fetch a VM once. A missing VM is an error here."""
        return self._fetch(Operation.READ, vm_id)

    def _fetch(
        self, op: Operation, vm_id: int, target: Optional[ConvergenceTarget] = None
    ) -> VirtualMachine:
        try:
            return self.api.get_vm(vm_id)
        except CrunchloopError as e:
            raise OperationError(op.value, vm_id, target, e) from e

    def update(
        self,
        vm_id: int,
        changes: UpdateLike,
        cancel: Optional[CancelSignal] = None,
    ) -> VirtualMachine:
        """Change memory and/or cores, then wait for the VM to settle back.

        The VM passes through ``updating`` and returns to the status it had
        before the call, so that status is captured first and used as the
        target. The call is always issued, even if nothing differs.
        An update is refused while the VM is in a transient status, since that
        is not a status it will settle back to.

        Raises:
            ImmutableFieldError: ``changes`` names a creation-only field.
            OperationError: the VM is in a transient status, or the update failed.
        """
        request = (
            changes
            if isinstance(changes, UpdateVmRequest)
            else UpdateVmRequest.from_changes(changes)
        )
        op = Operation.UPDATE
        with log_operation(log, "vm_update", vm_id=vm_id, **request.to_payload()) as oplog:
            prior = self._fetch(op, vm_id)
            if prior.status in TRANSIENT_STATUSES:
                raise OperationError(op.value, vm_id, None, VmBusyError(vm_id, prior.status))
            target = op.target(prior)
            diff = request.changes_against(prior)
            oplog.info("vm_update.prior", status=prior.status, changed=sorted(diff))

            try:
                self.api.update_vm(vm_id, request)
            except CrunchloopError as e:
                raise OperationError(op.value, vm_id, target, e) from e

            return self._converge(op, vm_id, target, cancel)

    def start(self, vm_id: int, cancel: Optional[CancelSignal] = None) -> VirtualMachine:
        """Start a VM unless it is already running."""
        return self._power(Operation.START, vm_id, cancel)

    def stop(self, vm_id: int, cancel: Optional[CancelSignal] = None) -> VirtualMachine:
        """Stop a VM unless it is already stopped."""
        return self._power(Operation.STOP, vm_id, cancel)

    def set_state(
        self, vm_id: int, desired: str, cancel: Optional[CancelSignal] = None
    ) -> VirtualMachine:
        """Drive a VM to ``running`` or ``stopped``."""
        if status_matches(desired, VmStatus.RUNNING):
            return self.start(vm_id, cancel)
        if status_matches(desired, VmStatus.STOPPED):
            return self.stop(vm_id, cancel)
        raise ValueError(f"desired status must be 'running' or 'stopped', got '{desired}'")

    def delete(self, vm_id: int, cancel: Optional[CancelSignal] = None) -> None:
        """Delete a VM and wait until the API no longer knows it."""
        op = Operation.DELETE
        target = op.target()
        with log_operation(log, "vm_delete", vm_id=vm_id):
            try:
                self.api.delete_vm(vm_id)
            except CrunchloopError as e:
                raise OperationError(op.value, vm_id, target, e) from e

            try:
                self.poller.wait(vm_id, self.api.get_vm, target, cancel)
            except CrunchloopError as e:
                raise OperationError(op.value, vm_id, target, e, accepted=True) from e

    def _power(
        self, op: Operation, vm_id: int, cancel: Optional[CancelSignal]
    ) -> VirtualMachine:
        target = op.target()
        with log_operation(log, f"vm_{op.value}", vm_id=vm_id) as oplog:
            current = self._fetch(op, vm_id, target)
            if status_matches(current.status, op.noop_status):
                oplog.info(f"vm_{op.value}.skipped", status=current.status)
                return current

            call = self.api.start_vm if op is Operation.START else self.api.stop_vm
            try:
                call(vm_id)
            except CrunchloopError as e:
                raise OperationError(op.value, vm_id, target, e) from e

            return self._converge(op, vm_id, target, cancel)

    def _converge(
        self,
        op: Operation,
        vm_id: int,
        target: ConvergenceTarget,
        cancel: Optional[CancelSignal],
    ) -> VirtualMachine:
        # The mutating call has been accepted; failures from here on are
        # non-convergence, not rejection.
        try:
            self.poller.wait(vm_id, self.api.get_vm, target, cancel)
            # Ancillary fields such as the host can lag behind the status flip.
            return self.api.get_vm(vm_id)
        except CrunchloopError as e:
            raise OperationError(op.value, vm_id, target, e, accepted=True) from e
