"""Exception types raised by the crunchloop client and lifecycle service."""

from typing import Any, Optional


class CrunchloopError(RuntimeError):
    """Base error for crunchloop failures."""


class ConfigError(ValueError):
    """Configuration file or environment could not be turned into settings."""


class ImmutableFieldError(ValueError):
    """An update tried to change a field that can only be set at creation."""

    def __init__(self, fields):
        self.fields = sorted(fields)
        super().__init__(
            f"Fields cannot be updated in place: {', '.join(self.fields)}. "
            "Recreate the VM to change them."
        )


class TransportError(CrunchloopError):
    """The remote API could not be reached."""

    def __init__(self, method: str, path: str, reason: Any):
        self.method = method
        self.path = path
        self.reason = reason
        super().__init__(f"{method} {path} failed: {reason}")


class ApiError(CrunchloopError):
    """The remote API answered with an unexpected status code."""

    def __init__(self, method: str, path: str, status_code: int, body: str = ""):
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"{method} {path} returned {status_code}. Response body: {body}"
        )


class NotFoundError(ApiError):
    """The requested resource does not exist (HTTP 404)."""


class InvalidResponseError(ApiError):
    """A successful response carried a body we could not parse."""


class WaitError(CrunchloopError):
    """Base for failures of a convergence wait."""

    def __init__(self, vm_id: int, target: Any, message: str):
        self.vm_id = vm_id
        self.target = target
        super().__init__(message)


class WaitTimeoutError(WaitError):
    def __init__(self, vm_id: int, target: Any, timeout: float):
        self.timeout = timeout
        super().__init__(
            vm_id,
            target,
            f"timeout waiting for VM {vm_id} to become '{target}' after {timeout:g}s",
        )


class WaitCancelledError(WaitError):
    def __init__(self, vm_id: int, target: Any):
        super().__init__(
            vm_id, target, f"cancelled while waiting for VM {vm_id} to become '{target}'"
        )


class WaitFailedError(WaitError):
    """The VM settled in a failure status while we waited for another one."""

    def __init__(self, vm_id: int, target: Any, status: str):
        self.status = status
        super().__init__(
            vm_id,
            target,
            f"VM {vm_id} entered status '{status}' while waiting for '{target}'",
        )


class OperationError(CrunchloopError):
    """
    A lifecycle operation failed.

    ``cause`` is the original error, untouched. ``accepted`` is True when the
    remote system accepted the mutating call and the failure happened while
    waiting for convergence, False when the request itself was rejected or
    never made it.
    """

    def __init__(
        self,
        operation: str,
        vm_id: Optional[int],
        target: Any,
        cause: Exception,
        accepted: bool = False,
    ):
        self.operation = operation
        self.vm_id = vm_id
        self.target = target
        self.cause = cause
        self.accepted = accepted
        subject = f"vm {vm_id}" if vm_id is not None else "vm"
        goal = f" (awaiting '{target}')" if target is not None else ""
        super().__init__(f"{operation} {subject}{goal} failed: {cause}")

    @property
    def timed_out(self) -> bool:
        return isinstance(self.cause, WaitTimeoutError)

    @property
    def cancelled(self) -> bool:
        return isinstance(self.cause, WaitCancelledError)


class VmBusyError(CrunchloopError):
    """The VM is between statuses, so there is no settled status to return to."""

    def __init__(self, vm_id: int, status: str):
        self.vm_id = vm_id
        self.status = status
        super().__init__(
            f"VM {vm_id} is '{status}'; wait for it to be running or stopped and retry"
        )
