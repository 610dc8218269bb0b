"""Wait for a remote VM to reach a target status."""

import threading
import time
from typing import Callable, Optional, Protocol

from .config import WaitPolicy
from .errors import NotFoundError, WaitCancelledError, WaitFailedError, WaitTimeoutError
from .logging import get_logger
from .models import VirtualMachine
from .status import ConvergenceTarget

log = get_logger(__name__)

FetchFn = Callable[[int], VirtualMachine]


class CancelSignal(Protocol):
    """Anything shaped like ``threading.Event``."""

    def is_set(self) -> bool: ...

    def wait(self, timeout: Optional[float] = None) -> bool: ...


class ConvergencePoller:
    """
    Poll a VM until it satisfies a target, the deadline passes or the caller
    cancels.

    The first fetch happens one poll interval after ``wait`` is called, never
    immediately, so a VM is not hammered right after a mutating call. Between
    fetches the poller blocks on the cancel signal, so cancelling wakes it
    straight away.

    Usage:
        poller = ConvergencePoller(WaitPolicy(poll_interval_seconds=5))
        vm = poller.wait(42, api.get_vm, StatusTarget("running"), cancel=event)
    """

    def __init__(
        self,
        policy: Optional[WaitPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.policy = policy or WaitPolicy()
        self._clock = clock

    def wait(
        self,
        vm_id: int,
        fetch: FetchFn,
        target: ConvergenceTarget,
        cancel: Optional[CancelSignal] = None,
    ) -> Optional[VirtualMachine]:
        """Block until ``target`` holds for ``vm_id``.

        Returns:
            The satisfying snapshot, or None when the target is deletion.

        Raises:
            WaitCancelledError: ``cancel`` was set before the target was met.
            WaitTimeoutError: the policy timeout elapsed first.
            WaitFailedError: the VM settled in a failure status.
            CrunchloopError: any fetch error other than an accepted 404.
        """
        cancel = cancel if cancel is not None else threading.Event()
        interval = self.policy.poll_interval_seconds
        timeout = self.policy.timeout_seconds
        deadline = self._clock() + timeout
        polls = 0

        while True:
            remaining = deadline - self._clock()
            cancel.wait(max(0.0, min(interval, remaining)))

            if cancel.is_set():
                log.info("vm.wait.cancelled", vm_id=vm_id, target=str(target), polls=polls)
                raise WaitCancelledError(vm_id, target)
            if self._clock() >= deadline:
                log.warning("vm.wait.timeout", vm_id=vm_id, target=str(target), polls=polls)
                raise WaitTimeoutError(vm_id, target, timeout)

            polls += 1
            try:
                vm = fetch(vm_id)
            except NotFoundError:
                if target.accepts_not_found:
                    log.debug("vm.poll", vm_id=vm_id, status="not_found", target=str(target))
                    return None
                raise

            log.debug("vm.poll", vm_id=vm_id, status=vm.status, target=str(target), poll=polls)
            if target.is_satisfied(vm):
                return vm
            if target.is_failed(vm):
                raise WaitFailedError(vm_id, target, vm.status)
