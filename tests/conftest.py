"""
Pytest fixtures and fakes for crunchloop tests.
"""
import threading
from collections import defaultdict, deque
from typing import Dict, List, Optional

import pytest

from crunchloop.config import WaitPolicy
from crunchloop.convergence import ConvergencePoller
from crunchloop.errors import NotFoundError
from crunchloop.interfaces.vm_api import VmApi
from crunchloop.lifecycle import VmLifecycleService
from crunchloop.models import Host, VirtualMachine, Vmi

# Scripted get_vm outcome meaning "the API answers 404".
GONE = object()


def make_vm(vm_id: int = 1, status: str = "running", **overrides) -> VirtualMachine:
    data = {
        "id": vm_id,
        "name": f"vm-{vm_id}",
        "status": status,
        "memory_bytes": 2048 * 1024 * 1024,
        "cores": 2,
        "provider": "kvm",
        "host": {"id": 7, "name": "host-a", "status": "online"},
        "vmi": {"id": 3, "name": "ubuntu-24.04"},
        "root_volume": {"size_bytes": 20 * 1024 ** 3},
    }
    data.update(overrides)
    return VirtualMachine.model_validate(data)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class FakeCancel:
    """threading.Event stand-in whose wait() advances a FakeClock.

    With ``cancel_at`` set, a wait that spans that instant wakes up exactly
    then, the way a real event wakes a blocked waiter.
    """

    def __init__(self, clock: FakeClock, cancel_at: Optional[float] = None):
        self.clock = clock
        self.cancel_at = cancel_at
        self.waits: List[float] = []
        self._set = False

    def set(self) -> None:
        self._set = True

    def is_set(self) -> bool:
        if self.cancel_at is not None and self.clock.now >= self.cancel_at:
            return True
        return self._set

    def wait(self, timeout: Optional[float] = None) -> bool:
        self.waits.append(timeout)
        if self.is_set():
            return True
        if self.cancel_at is not None and self.clock.now + timeout >= self.cancel_at:
            self.clock.now = self.cancel_at
            return True
        self.clock.now += timeout
        return False


class FakeVmApi(VmApi):
    """In-memory control plane.

    ``script(vm_id, *outcomes)`` queues what successive ``get_vm`` calls
    observe: a status string, ``GONE`` for a 404, or an exception to raise.
    Once the queue is empty ``get_vm`` keeps returning the last snapshot.
    """

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock
        self.vms: Dict[int, VirtualMachine] = {}
        self.scripts: Dict[int, deque] = defaultdict(deque)
        self.errors: Dict[str, Exception] = {}
        self.calls: List[tuple] = []
        self.get_times: List[float] = []
        self.hosts = [Host(id=7, name="host-a"), Host(id=8, name="host-b")]
        self.vmis = [Vmi(id=3, name="ubuntu-24.04"), Vmi(id=4, name="debian-12")]
        self._next_id = 1
        self._lock = threading.Lock()

    def add(self, vm: VirtualMachine) -> VirtualMachine:
        self.vms[vm.id] = vm
        self._next_id = max(self._next_id, vm.id + 1)
        return vm

    def script(self, vm_id: int, *outcomes) -> None:
        self.scripts[vm_id].extend(outcomes)

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    def _record(self, method: str, *args) -> None:
        with self._lock:
            self.calls.append((method, *args))
        if method in self.errors:
            raise self.errors[method]

    def create_vm(self, request):
        self._record("create_vm", request)
        with self._lock:
            vm_id = self._next_id
            self._next_id += 1
        return self.add(
            make_vm(
                vm_id,
                status="creating",
                name=request.name,
                cores=request.cores,
                memory_bytes=request.memory_megabytes * 1024 * 1024,
                host=None,
            )
        )

    def get_vm(self, vm_id):
        self._record("get_vm", vm_id)
        if self.clock is not None:
            self.get_times.append(self.clock.now)
        with self._lock:
            queue = self.scripts[vm_id]
            if queue:
                outcome = queue.popleft()
                if isinstance(outcome, Exception):
                    raise outcome
                if outcome is GONE:
                    self.vms.pop(vm_id, None)
                else:
                    self.vms[vm_id] = self.vms[vm_id].model_copy(update={"status": outcome})
            if vm_id not in self.vms:
                raise NotFoundError("GET", f"vms/{vm_id}", 404, '{"error":"not found"}')
            return self.vms[vm_id]

    def update_vm(self, vm_id, request):
        self._record("update_vm", vm_id, request.to_payload())

    def start_vm(self, vm_id):
        self._record("start_vm", vm_id)

    def stop_vm(self, vm_id):
        self._record("stop_vm", vm_id)

    def delete_vm(self, vm_id):
        self._record("delete_vm", vm_id)

    def list_hosts(self):
        self._record("list_hosts")
        return list(self.hosts)

    def list_vmis(self):
        self._record("list_vmis")
        return list(self.vmis)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cancel(clock):
    """A cancel signal that is never triggered."""
    return FakeCancel(clock)


@pytest.fixture
def policy():
    return WaitPolicy(poll_interval_seconds=5, timeout_seconds=300)


@pytest.fixture
def poller(policy, clock):
    return ConvergencePoller(policy, clock=clock)


@pytest.fixture
def api(clock):
    return FakeVmApi(clock)


@pytest.fixture
def service(api, poller):
    return VmLifecycleService(api, poller=poller)
