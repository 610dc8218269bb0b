"""HTTP backend for the Crunchloop Cloud API, built on requests."""

import threading
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from ..config import ApiSettings
from ..errors import ApiError, InvalidResponseError, NotFoundError, TransportError
from ..interfaces.vm_api import VmApi
from ..logging import get_logger
from ..models import (
    CreateVmRequest,
    Host,
    HostList,
    UpdateVmRequest,
    VirtualMachine,
    Vmi,
    VmiList,
)

log = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

API_PREFIX = "api/v1"


class HttpVmApi(VmApi):
    """requests-based ``VmApi``.

    Holds only transport configuration. When no session is injected each
    thread gets its own ``requests.Session``, so one instance can serve
    concurrent lifecycle operations.
    """

    update_method = "PATCH"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Accept": "application/json", **(headers or {})}
        self._session = session
        self._local = threading.local()

    @classmethod
    def from_settings(cls, settings: ApiSettings, **kwargs: Any) -> "HttpVmApi":
        if not settings.url:
            raise ValueError("Crunchloop url is not configured (set api.url or CRUNCHLOOP_URL)")
        return cls(settings.url, timeout=settings.request_timeout_seconds, **kwargs)

    @property
    def session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{API_PREFIX}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        expected: Iterable[int],
        json: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        url = self.url_for(path)
        log.debug("api.request", method=method, url=url)
        try:
            response = self.session.request(
                method, url, json=json, headers=self.headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TransportError(method, url, e) from e

        log.debug("api.response", method=method, url=url, status_code=response.status_code)
        if response.status_code in expected:
            return response
        if response.status_code == 404:
            raise NotFoundError(method, url, 404, response.text)
        raise ApiError(method, url, response.status_code, response.text)

    def _parse(self, response: requests.Response, model: Type[M]) -> M:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            request = response.request
            raise InvalidResponseError(
                request.method if request is not None else "?",
                response.url,
                response.status_code,
                f"{response.text} ({e})",
            ) from e

    def create_vm(self, request: CreateVmRequest) -> VirtualMachine:
        response = self._request("POST", "vms", (201,), json=request.to_payload())
        return self._parse(response, VirtualMachine)

    def get_vm(self, vm_id: int) -> VirtualMachine:
        response = self._request("GET", f"vms/{int(vm_id)}", (200,))
        return self._parse(response, VirtualMachine)

    # Mutating acknowledgements are not trusted for status; callers re-poll.
    def update_vm(self, vm_id: int, request: UpdateVmRequest) -> None:
        self._request(self.update_method, f"vms/{int(vm_id)}", (200,), json=request.to_payload())

    def start_vm(self, vm_id: int) -> None:
        self._request("POST", f"vms/{int(vm_id)}/start", (200, 202))

    def stop_vm(self, vm_id: int) -> None:
        self._request("POST", f"vms/{int(vm_id)}/stop", (200, 202))

    def delete_vm(self, vm_id: int) -> None:
        self._request("DELETE", f"vms/{int(vm_id)}", (200, 202, 204))

    def list_hosts(self) -> List[Host]:
        response = self._request("GET", "hosts", (200,))
        return self._parse(response, HostList).data

    def list_vmis(self) -> List[Vmi]:
        response = self._request("GET", "vmis", (200,))
        return self._parse(response, VmiList).data
