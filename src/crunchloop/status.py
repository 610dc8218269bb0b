"""VM status vocabulary, convergence targets and lifecycle operation kinds."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from crunchloop.models import VirtualMachine


class VmStatus(str, Enum):
    """Statuses reported by the control plane.

    The remote side owns this vocabulary. Snapshots keep the raw string, so a
    status we do not know about still compares cleanly against these members.
    """

    CREATING = "creating"
    RUNNING = "running"
    STOPPED = "stopped"
    UPDATING = "updating"
    DELETING = "deleting"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


# Statuses a VM does not leave on its own.
FAILURE_STATUSES = frozenset({VmStatus.ERROR.value})

# Statuses a VM passes through on its way to a settled one.
TRANSIENT_STATUSES = frozenset(
    {VmStatus.CREATING.value, VmStatus.UPDATING.value, VmStatus.DELETING.value}
)


def status_matches(observed: Optional[str], target: str) -> bool:
    """Equality test between an observed status and a target status."""
    if observed is None:
        return False
    return str(observed) == str(target)


class ConvergenceTarget:
    """What a convergence wait is waiting for."""

    accepts_not_found = False

    def is_satisfied(self, vm: VirtualMachine) -> bool:
        raise NotImplementedError

    def is_failed(self, vm: VirtualMachine) -> bool:
        return False


@dataclass(frozen=True)
class StatusTarget(ConvergenceTarget):
    status: str

    def is_satisfied(self, vm: VirtualMachine) -> bool:
        return status_matches(vm.status, self.status)

    def is_failed(self, vm: VirtualMachine) -> bool:
        return vm.status in FAILURE_STATUSES and not self.is_satisfied(vm)

    def __str__(self) -> str:
        return str(self.status)


@dataclass(frozen=True)
class DeletedTarget(ConvergenceTarget):
    """Satisfied only when the API reports the VM as not found."""

    accepts_not_found = True

    def is_satisfied(self, vm: VirtualMachine) -> bool:
        return False

    def __str__(self) -> str:
        return "deleted"


DELETED = DeletedTarget()


class Operation(Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    START = "start"
    STOP = "stop"
    DELETE = "delete"

    @property
    def noop_status(self) -> Optional[str]:
        """Status in which this operation has nothing left to do."""
        return {
            Operation.START: VmStatus.RUNNING.value,
            Operation.STOP: VmStatus.STOPPED.value,
        }.get(self)

    def target(self, prior: Optional[VirtualMachine] = None) -> Optional[ConvergenceTarget]:
        """Build the convergence target for this operation.

        UPDATE returns to whatever status the VM had before the call, so it
        needs the snapshot observed right before the update was issued.
        """
        if self is Operation.CREATE or self is Operation.START:
            return StatusTarget(VmStatus.RUNNING.value)
        if self is Operation.STOP:
            return StatusTarget(VmStatus.STOPPED.value)
        if self is Operation.DELETE:
            return DELETED
        if self is Operation.UPDATE:
            if prior is None:
                raise ValueError("update target needs the status observed before the update")
            return StatusTarget(prior.status)
        return None
