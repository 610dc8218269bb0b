"""Name lookups over the read-only host and image catalogs."""

from typing import List, Sequence, TypeVar

from .errors import NotFoundError
from .interfaces.vm_api import VmApi
from .models import Host, Vmi

T = TypeVar("T", Host, Vmi)


def find_by_name(items: Sequence[T], name: str, kind: str, path: str) -> T:
    for item in items:
        if item.name == name:
            return item
    raise NotFoundError("GET", path, 404, f"{kind} with name {name} was not found")


class CatalogService:
    """Look up hosts and VM images by name."""

    def __init__(self, api: VmApi):
        self.api = api

    def list_hosts(self) -> List[Host]:
        return self.api.list_hosts()

    def list_vmis(self) -> List[Vmi]:
        return self.api.list_vmis()

    def find_host(self, name: str) -> Host:
        return find_by_name(self.list_hosts(), name, "host", "hosts")

    def find_vmi(self, name: str) -> Vmi:
        return find_by_name(self.list_vmis(), name, "vmi", "vmis")
